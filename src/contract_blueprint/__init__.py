"""
Contract Blueprint

Routes uploaded contract documents to an analysis backend and consolidates
the extracted rules and values into one validated contract blueprint.
"""

__version__ = "0.1.0"

# Export main components
from .models.enums import (
    AnalysisFeature,
    BackendKind,
    BlueprintSection,
    ContractField,
    DecisionReason,
    FailureKind,
    FieldSource,
)
from .models.document import DocumentMeta
from .models.extraction import DocumentAnalysisResult, ExtractedRule
from .models.routing import DocumentFailure, ExtractionDecision
from .models.blueprint import ContractBlueprint, FieldValue, PartialFieldSet, ValidationReport
from .exceptions import BackendError, BatchNotFoundError, PipelineError
from .interfaces.backend import IAnalysisBackend
from .interfaces.registry import IDocumentRegistry
from .interfaces.audit import AuditEvent, AuditEventType, IAuditLogger
from .config import (
    BusinessRules,
    ConfigurationError,
    ConfigurationManager,
    RoutingConfig,
    ValidationResult,
)
from .routing import ExtractionRouter, PayloadBackend
from .mapping import (
    BlueprintFinalizer,
    ConfidenceAggregator,
    MultiDocumentConsolidator,
    RuleToFieldMapper,
)
from .review import CorrectionSet, apply_overrides
from .storage import AuditLogger, BlueprintSnapshotStore, DatabaseManager, SqlDocumentRegistry
from .pipeline import BatchAnalysisResult, BlueprintPipeline, PipelineConfig

__all__ = [
    "AnalysisFeature",
    "BackendKind",
    "BlueprintSection",
    "ContractField",
    "DecisionReason",
    "FailureKind",
    "FieldSource",
    "DocumentMeta",
    "DocumentAnalysisResult",
    "ExtractedRule",
    "DocumentFailure",
    "ExtractionDecision",
    "ContractBlueprint",
    "FieldValue",
    "PartialFieldSet",
    "ValidationReport",
    "BackendError",
    "BatchNotFoundError",
    "PipelineError",
    "IAnalysisBackend",
    "IDocumentRegistry",
    "AuditEvent",
    "AuditEventType",
    "IAuditLogger",
    "BusinessRules",
    "ConfigurationError",
    "ConfigurationManager",
    "RoutingConfig",
    "ValidationResult",
    "ExtractionRouter",
    "PayloadBackend",
    "BlueprintFinalizer",
    "ConfidenceAggregator",
    "MultiDocumentConsolidator",
    "RuleToFieldMapper",
    "CorrectionSet",
    "apply_overrides",
    "AuditLogger",
    "BlueprintSnapshotStore",
    "DatabaseManager",
    "SqlDocumentRegistry",
    "BatchAnalysisResult",
    "BlueprintPipeline",
    "PipelineConfig",
]
