"""Data models for configuration management."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..models.enums import AnalysisFeature


class ConfigurationType(Enum):
    """Types of configuration supported by the pipeline."""
    ROUTING = "routing"
    BUSINESS_RULES = "business_rules"
    FIELD_MAPPINGS = "field_mappings"


DEFAULT_PRICE_PER_PAGE: Dict[AnalysisFeature, float] = {
    AnalysisFeature.TEXT: 0.0015,
    AnalysisFeature.TABLES: 0.015,
    AnalysisFeature.FORMS: 0.05,
    AnalysisFeature.LAYOUT: 0.004,
}


@dataclass
class RoutingConfig:
    """
    Extraction router configuration.

    Costs are in dollars. The secondary backend is local and free; its
    safe processing size and feature set bound what can be sent to it.
    """
    primary_enabled: bool = True
    prefer_primary: bool = False
    max_cost_per_document: float = 5.0
    max_batch_cost: Optional[float] = None
    secondary_max_bytes: int = 10 * 1024 * 1024
    secondary_features: frozenset = field(
        default_factory=lambda: frozenset({AnalysisFeature.TEXT})
    )
    bytes_per_page: int = 100_000
    price_per_page: Dict[AnalysisFeature, float] = field(
        default_factory=lambda: dict(DEFAULT_PRICE_PER_PAGE)
    )
    success_window: int = 50

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_enabled": self.primary_enabled,
            "prefer_primary": self.prefer_primary,
            "max_cost_per_document": self.max_cost_per_document,
            "max_batch_cost": self.max_batch_cost,
            "secondary_max_bytes": self.secondary_max_bytes,
            "secondary_features": sorted(f.value for f in self.secondary_features),
            "bytes_per_page": self.bytes_per_page,
            "price_per_page": {f.value: p for f, p in self.price_per_page.items()},
            "success_window": self.success_window,
        }


@dataclass
class BusinessRules:
    """
    Commercial constants used by parsing, defaulting and validation.

    Defaults only ever apply to safe operational fields; contract term,
    customer name and base rate are never defaulted.
    """
    module_size_kw: int = 325
    standard_terms: Tuple[int, ...] = (5, 10, 15, 20)
    escalation_min: float = 2.0
    escalation_max: float = 5.0
    base_rate_floor: float = 0.001
    default_voltage: str = "480V"
    default_installation: str = "Ground"
    default_output_warranty: float = 95.0
    default_efficiency_warranty: float = 50.0
    reliability_microgrid: float = 99.99
    reliability_standard: float = 99.9
    default_components: Tuple[str, ...] = ("RI", "AC", "UC")
    min_demand_ratio: float = 0.3
    critical_output_ratio: float = 0.8
    supplier_markers: Tuple[str, ...] = ("bloom energy",)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module_size_kw": self.module_size_kw,
            "standard_terms": list(self.standard_terms),
            "escalation_min": self.escalation_min,
            "escalation_max": self.escalation_max,
            "base_rate_floor": self.base_rate_floor,
            "default_voltage": self.default_voltage,
            "default_installation": self.default_installation,
            "default_output_warranty": self.default_output_warranty,
            "default_efficiency_warranty": self.default_efficiency_warranty,
            "reliability_microgrid": self.reliability_microgrid,
            "reliability_standard": self.reliability_standard,
            "default_components": list(self.default_components),
            "min_demand_ratio": self.min_demand_ratio,
            "critical_output_ratio": self.critical_output_ratio,
            "supplier_markers": list(self.supplier_markers),
        }


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another validation result into this one."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings
        )


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.message = message
        self.validation_result = validation_result
