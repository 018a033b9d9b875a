"""Configuration management for the Contract Blueprint pipeline."""

from .models import (
    BusinessRules,
    ConfigurationError,
    ConfigurationType,
    RoutingConfig,
    ValidationResult,
)
from .config_manager import ConfigurationManager

__all__ = [
    "ConfigurationManager",
    "ConfigurationType",
    "BusinessRules",
    "RoutingConfig",
    "ConfigurationError",
    "ValidationResult",
]
