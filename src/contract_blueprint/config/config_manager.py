"""Configuration Manager implementation for the Contract Blueprint pipeline.

This module provides functionality to load, validate, and manage the
routing configuration, the business rules used by defaulting and
validation, and the field mapping table.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..mapping.field_mappings import (
    DEFAULT_FIELD_MAPPINGS,
    FieldMapping,
    build_field_mapping,
    field_mapping_to_dict,
)
from ..models.enums import AnalysisFeature, ComponentType, InstallationType, VoltageLevel
from .models import (
    BusinessRules,
    ConfigurationError,
    ConfigurationType,
    RoutingConfig,
    ValidationResult,
)


logger = logging.getLogger(__name__)

Source = Union[str, Path, Dict[str, Any], List[Dict[str, Any]]]

CONFIG_FILES = {
    ConfigurationType.ROUTING: "routing.json",
    ConfigurationType.BUSINESS_RULES: "business_rules.json",
    ConfigurationType.FIELD_MAPPINGS: "field_mappings.json",
}


class ConfigurationManager:
    """
    Manager for pipeline configuration.

    Starts from the built-in defaults; each load_* method validates its
    input completely and only applies it when no errors were found.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional directory path for configuration files.
        """
        self._config_dir = Path(config_dir) if config_dir else None
        self._routing = RoutingConfig()
        self._business_rules = BusinessRules()
        self._field_mappings: Tuple[FieldMapping, ...] = DEFAULT_FIELD_MAPPINGS
        self._is_loaded = False

    @property
    def routing(self) -> RoutingConfig:
        return self._routing

    @property
    def business_rules(self) -> BusinessRules:
        return self._business_rules

    @property
    def field_mappings(self) -> Tuple[FieldMapping, ...]:
        return self._field_mappings

    @property
    def is_loaded(self) -> bool:
        """Check if any configuration has been loaded."""
        return self._is_loaded

    # =========================================================================
    # Routing
    # =========================================================================

    def load_routing_config(self, source: Source) -> ValidationResult:
        """
        Load and validate the extraction router configuration.

        Args:
            source: File path or dictionary.

        Returns:
            ValidationResult indicating success or failure with details.

        Raises:
            ConfigurationError: If validation fails.
        """
        data = self._parse_source(source)
        result = ValidationResult(is_valid=True)
        if not isinstance(data, dict):
            result.add_error("Routing configuration must be an object")
            raise ConfigurationError("Routing configuration validation failed", result)

        defaults = RoutingConfig()
        values: Dict[str, Any] = {}

        for name in ("primary_enabled", "prefer_primary"):
            if name in data:
                if not isinstance(data[name], bool):
                    result.add_error(f"Routing: '{name}' must be a boolean")
                else:
                    values[name] = data[name]

        for name in ("max_cost_per_document", "max_batch_cost"):
            if name in data:
                value = data[name]
                if value is None and name == "max_batch_cost":
                    values[name] = None
                elif not self._is_number(value) or value <= 0:
                    result.add_error(f"Routing: '{name}' must be a positive number")
                else:
                    values[name] = float(value)

        for name in ("secondary_max_bytes", "bytes_per_page", "success_window"):
            if name in data:
                value = data[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    result.add_error(f"Routing: '{name}' must be a positive integer")
                else:
                    values[name] = value

        if "secondary_features" in data:
            features = self._parse_features(data["secondary_features"], result)
            if features is not None:
                if AnalysisFeature.TEXT not in features:
                    result.add_warning(
                        "Routing: secondary backend without 'text' support will "
                        "never be chosen on features"
                    )
                values["secondary_features"] = frozenset(features)

        if "price_per_page" in data:
            prices = data["price_per_page"]
            if not isinstance(prices, dict):
                result.add_error("Routing: 'price_per_page' must be an object")
            else:
                parsed = dict(defaults.price_per_page)
                for name, price in prices.items():
                    try:
                        feature = AnalysisFeature(name)
                    except ValueError:
                        result.add_error(f"Routing: unknown feature '{name}' in price_per_page")
                        continue
                    if not self._is_number(price) or price < 0:
                        result.add_error(f"Routing: price for '{name}' must be >= 0")
                        continue
                    parsed[feature] = float(price)
                values["price_per_page"] = parsed

        unknown = set(data) - set(defaults.to_dict())
        for name in sorted(unknown):
            result.add_warning(f"Routing: ignoring unknown setting '{name}'")

        if not result.is_valid:
            raise ConfigurationError("Routing configuration validation failed", result)

        self._routing = RoutingConfig(**{**self._routing_kwargs(defaults), **values})
        self._is_loaded = True
        logger.info("Loaded routing configuration")
        return result

    def _routing_kwargs(self, config: RoutingConfig) -> Dict[str, Any]:
        return {
            "primary_enabled": config.primary_enabled,
            "prefer_primary": config.prefer_primary,
            "max_cost_per_document": config.max_cost_per_document,
            "max_batch_cost": config.max_batch_cost,
            "secondary_max_bytes": config.secondary_max_bytes,
            "secondary_features": config.secondary_features,
            "bytes_per_page": config.bytes_per_page,
            "price_per_page": dict(config.price_per_page),
            "success_window": config.success_window,
        }

    def _parse_features(
        self, names: Any, result: ValidationResult
    ) -> Optional[List[AnalysisFeature]]:
        if not isinstance(names, list):
            result.add_error("Routing: 'secondary_features' must be a list")
            return None
        features = []
        for name in names:
            try:
                features.append(AnalysisFeature(name))
            except ValueError:
                result.add_error(f"Routing: unknown feature '{name}'")
        return features

    # =========================================================================
    # Business rules
    # =========================================================================

    def load_business_rules(self, source: Source) -> ValidationResult:
        """
        Load and validate business rules (module size, term set, defaults).

        Raises:
            ConfigurationError: If validation fails.
        """
        data = self._parse_source(source)
        result = ValidationResult(is_valid=True)
        if not isinstance(data, dict):
            result.add_error("Business rules must be an object")
            raise ConfigurationError("Business rules validation failed", result)

        current = BusinessRules().to_dict()
        values: Dict[str, Any] = {}

        for name, value in data.items():
            if name not in current:
                result.add_warning(f"Business rules: ignoring unknown setting '{name}'")
                continue
            expected = current[name]
            if isinstance(expected, list):
                if not isinstance(value, list):
                    result.add_error(f"Business rules: '{name}' must be a list")
                    continue
                values[name] = tuple(value)
            elif isinstance(expected, str):
                if not isinstance(value, str) or not value.strip():
                    result.add_error(f"Business rules: '{name}' must be a non-empty string")
                    continue
                values[name] = value.strip()
            else:
                if not self._is_number(value) or value < 0:
                    result.add_error(f"Business rules: '{name}' must be a non-negative number")
                    continue
                values[name] = type(expected)(value)

        if "module_size_kw" in values and values["module_size_kw"] <= 0:
            result.add_error("Business rules: 'module_size_kw' must be positive")
        if "standard_terms" in values and not all(
            isinstance(t, int) and t > 0 for t in values["standard_terms"]
        ):
            result.add_error("Business rules: 'standard_terms' must be positive integers")

        merged = {**current, **values}
        if merged["escalation_min"] > merged["escalation_max"]:
            result.add_error("Business rules: 'escalation_min' exceeds 'escalation_max'")
        for name in ("min_demand_ratio", "critical_output_ratio"):
            if merged[name] > 1:
                result.add_error(f"Business rules: '{name}' must be at most 1")
        for name in ("default_output_warranty", "default_efficiency_warranty"):
            if not 0 < merged[name] <= 100:
                result.add_error(f"Business rules: '{name}' must be in (0, 100]")

        for name, enum_type in (("default_voltage", VoltageLevel),
                                ("default_installation", InstallationType)):
            if merged[name] not in {member.value for member in enum_type}:
                result.add_error(f"Business rules: unknown {name} '{merged[name]}'")
        components = {member.value for member in ComponentType}
        for name in merged["default_components"]:
            if name not in components:
                result.add_error(f"Business rules: unknown default component '{name}'")

        if not result.is_valid:
            raise ConfigurationError("Business rules validation failed", result)

        self._business_rules = BusinessRules(**{
            name: tuple(value) if isinstance(value, list) else value
            for name, value in merged.items()
        })
        self._is_loaded = True
        logger.info("Loaded business rules")
        return result

    # =========================================================================
    # Field mappings
    # =========================================================================

    def load_field_mappings(self, source: Source) -> ValidationResult:
        """
        Load and validate the field mapping table.

        Supports a list of mapping dictionaries or a dictionary with a
        "mappings" list. The loaded table replaces the built-in one.

        Raises:
            ConfigurationError: If validation fails.
        """
        raw_data = self._parse_source(source)
        if isinstance(raw_data, dict):
            if "mappings" in raw_data:
                mappings_data = raw_data["mappings"]
            else:
                mappings_data = [raw_data]
        else:
            mappings_data = raw_data

        result = ValidationResult(is_valid=True)
        mappings: List[FieldMapping] = []
        if not isinstance(mappings_data, list):
            result.add_error("Field mappings must be a list")
            mappings_data = []

        for i, entry in enumerate(mappings_data):
            try:
                mapping = build_field_mapping(entry)
            except ValueError as e:
                result.add_error(f"Field mapping [{i}]: {e}")
                continue
            if not mapping.categories:
                result.add_warning(
                    f"Field mapping [{i}]: {mapping.field.value} has no rule "
                    f"categories and can only come from raw values"
                )
            mappings.append(mapping)

        fields = [m.field for m in mappings]
        duplicates = {f.value for f in fields if fields.count(f) > 1}
        if duplicates:
            result.add_error(f"Duplicate field mappings found: {sorted(duplicates)}")

        if not result.is_valid:
            raise ConfigurationError("Field mapping validation failed", validation_result=result)

        self._field_mappings = tuple(mappings)
        self._is_loaded = True
        logger.info(f"Loaded {len(mappings)} field mappings")
        return result

    # =========================================================================
    # Files
    # =========================================================================

    def _parse_source(self, source: Source) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Parse configuration source to raw data."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")

            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}")

        return source

    def load_from_directory(self, config_dir: Union[str, Path]) -> ValidationResult:
        """
        Load all configuration files from a directory.

        Expects any of routing.json, business_rules.json and
        field_mappings.json; missing files keep their defaults.

        Returns:
            Combined ValidationResult for all loaded configurations.
        """
        config_dir = Path(config_dir)
        result = ValidationResult(is_valid=True)
        loaders = {
            ConfigurationType.ROUTING: self.load_routing_config,
            ConfigurationType.BUSINESS_RULES: self.load_business_rules,
            ConfigurationType.FIELD_MAPPINGS: self.load_field_mappings,
        }

        for config_type, loader in loaders.items():
            path = config_dir / CONFIG_FILES[config_type]
            if not path.exists():
                continue
            try:
                result = result.merge(loader(path))
            except ConfigurationError as e:
                result.add_error(f"{config_type.value} loading failed: {e.message}")
                if e.validation_result:
                    result = result.merge(e.validation_result)

        self._config_dir = config_dir
        return result

    def save_to_directory(self, config_dir: Optional[Union[str, Path]] = None) -> None:
        """
        Save current configuration to a directory.

        Args:
            config_dir: Directory to save to. Uses current config_dir if None.
        """
        config_dir = Path(config_dir) if config_dir else self._config_dir
        if not config_dir:
            raise ConfigurationError("No configuration directory specified")

        config_dir.mkdir(parents=True, exist_ok=True)
        data = self.to_dict()
        files = {
            ConfigurationType.ROUTING: data["routing"],
            ConfigurationType.BUSINESS_RULES: data["business_rules"],
            ConfigurationType.FIELD_MAPPINGS: {"mappings": data["field_mappings"]},
        }
        for config_type, content in files.items():
            with open(config_dir / CONFIG_FILES[config_type], "w", encoding="utf-8") as f:
                json.dump(content, f, indent=2, ensure_ascii=False)

    def reset(self) -> None:
        """Reset configuration to the built-in defaults."""
        self._routing = RoutingConfig()
        self._business_rules = BusinessRules()
        self._field_mappings = DEFAULT_FIELD_MAPPINGS
        self._is_loaded = False

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as a dictionary."""
        return {
            "routing": self._routing.to_dict(),
            "business_rules": self._business_rules.to_dict(),
            "field_mappings": [field_mapping_to_dict(m) for m in self._field_mappings],
        }

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
