"""Data models and enums for the Contract Blueprint pipeline."""

from .enums import (
    AnalysisFeature,
    BackendKind,
    BlueprintSection,
    ComponentType,
    ContractField,
    DecisionReason,
    FailureKind,
    FieldSource,
    InstallationType,
    RuleCategory,
    RuleKind,
    SolutionType,
    VoltageLevel,
)
from .document import DocumentMeta
from .extraction import (
    DocumentAnalysisResult,
    DocumentSummary,
    ExtractedRule,
    ExtractionSummary,
)
from .routing import BackendAttempt, DocumentFailure, ExtractionDecision, RoutedAnalysis
from .blueprint import (
    ContractBlueprint,
    FieldValue,
    PartialFieldSet,
    RuleReference,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    # Enums
    "AnalysisFeature",
    "BackendKind",
    "BlueprintSection",
    "ComponentType",
    "ContractField",
    "DecisionReason",
    "FailureKind",
    "FieldSource",
    "InstallationType",
    "RuleCategory",
    "RuleKind",
    "SolutionType",
    "VoltageLevel",
    # Documents and analysis results
    "DocumentMeta",
    "DocumentAnalysisResult",
    "DocumentSummary",
    "ExtractedRule",
    "ExtractionSummary",
    # Routing
    "BackendAttempt",
    "DocumentFailure",
    "ExtractionDecision",
    "RoutedAnalysis",
    # Blueprint
    "ContractBlueprint",
    "FieldValue",
    "PartialFieldSet",
    "RuleReference",
    "ValidationIssue",
    "ValidationReport",
]
