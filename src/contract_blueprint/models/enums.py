"""Enumerations for the Contract Blueprint pipeline."""

from enum import Enum


class RuleCategory(Enum):
    """Categories an analysis backend assigns to extracted rules."""
    PAYMENT = "payment"
    PERFORMANCE = "performance"
    COMPLIANCE = "compliance"
    RISK = "risk"
    OPERATIONAL = "operational"
    SYSTEM = "system"
    TECHNICAL = "technical"


class RuleKind(Enum):
    """Structural kind of an extracted rule."""
    CONDITIONAL = "conditional"
    CALCULATION = "calculation"
    THRESHOLD = "threshold"
    VALIDATION = "validation"
    CONSTRAINT = "constraint"
    WORKFLOW = "workflow"


class BackendKind(Enum):
    """Document analysis backends (primary = cloud, secondary = local)."""
    PRIMARY = "primary"
    SECONDARY = "secondary"

    @property
    def other(self) -> "BackendKind":
        """The backend used for a fallback attempt."""
        if self is BackendKind.PRIMARY:
            return BackendKind.SECONDARY
        return BackendKind.PRIMARY


class DecisionReason(Enum):
    """Reason codes recorded with every routing decision."""
    NOT_CONFIGURED = "not-configured"
    COST_EXCEEDED = "cost-exceeded"
    FEATURE_REQUIRED = "feature-required"
    SIZE_EXCEEDED = "size-exceeded"
    PREFERENCE = "preference"
    PERFORMANCE_BASED = "performance-based"


class AnalysisFeature(Enum):
    """Analysis features a caller can request from a backend."""
    TEXT = "text"
    TABLES = "tables"
    FORMS = "forms"
    LAYOUT = "layout"


class FailureKind(Enum):
    """Typed failures an analysis backend can report."""
    TIMEOUT = "timeout"
    AUTH = "auth"
    QUOTA = "quota"
    MALFORMED_RESPONSE = "malformed_response"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class BlueprintSection(Enum):
    """Display sections of a contract blueprint."""
    GENERAL = "general"
    FINANCIAL = "financial"
    TECHNICAL = "technical"
    OPERATING = "operating"


class FieldSource(Enum):
    """Where a blueprint field value came from."""
    RAW_VALUE = "raw_value"
    RULE_PARAMETER = "rule_parameter"
    DOCUMENT_SUMMARY = "document_summary"
    DEFAULT = "default"
    USER_OVERRIDE = "user_override"


class ContractField(Enum):
    """Canonical contract fields populated by the pipeline."""
    CUSTOMER_NAME = "customer_name"
    SITE_LOCATION = "site_location"
    EFFECTIVE_DATE = "effective_date"
    SOLUTION_TYPE = "solution_type"
    RATED_CAPACITY = "rated_capacity"
    INSTALLATION_TYPE = "installation_type"
    RELIABILITY_LEVEL = "reliability_level"
    NUMBER_OF_SERVERS = "number_of_servers"
    SELECTED_COMPONENTS = "selected_components"
    GRID_PARALLEL_VOLTAGE = "grid_parallel_voltage"
    BASE_RATE = "base_rate"
    ANNUAL_ESCALATION = "annual_escalation"
    CONTRACT_TERM = "contract_term"
    OUTPUT_WARRANTY_PERCENT = "output_warranty_percent"
    EFFICIENCY_WARRANTY_PERCENT = "efficiency_warranty_percent"
    MIN_DEMAND_KW = "min_demand_kw"
    MAX_DEMAND_KW = "max_demand_kw"
    GUARANTEED_CRITICAL_OUTPUT = "guaranteed_critical_output"


class VoltageLevel(Enum):
    """Grid-parallel voltage levels."""
    V208 = "208V"
    V480 = "480V"
    KV4_16 = "4.16kV"
    KV13_2 = "13.2kV"
    KV34_5 = "34.5kV"


class SolutionType(Enum):
    """Commercial solution types."""
    POWER_PURCHASE_STANDARD = "Power Purchase - Standard"
    POWER_PURCHASE_BATTERY = "Power Purchase - With Battery"
    MICROGRID_CONSTRAINED = "Microgrid - Constrained"
    MICROGRID_UNCONSTRAINED = "Microgrid - Unconstrained"


class InstallationType(Enum):
    """Physical installation types."""
    PES = "PES"
    GROUND = "Ground"
    STACKED = "Stacked"
    INDOOR = "Indoor"
    OUTDOOR = "Outdoor"


class ComponentType(Enum):
    """Optional system components."""
    RENEWABLE_INTEGRATION = "RI"
    ADVANCED_CONTROLS = "AC"
    UTILITY_CONNECTIONS = "UC"
    BATTERY_STORAGE = "BESS"
    SOLAR = "Solar"
    WIND = "Wind"
