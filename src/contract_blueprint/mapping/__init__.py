"""Field mapping, confidence, consolidation and finalization."""

from .field_mappings import (
    DEFAULT_FIELD_MAPPINGS,
    ExtractionPattern,
    FieldMapping,
    build_field_mapping,
    build_field_mappings,
    section_for_category,
)
from .confidence import ConfidenceAggregator
from .rule_mapper import RuleToFieldMapper
from .consolidator import MultiDocumentConsolidator
from .finalizer import BlueprintFinalizer, REVIEW_REQUIRED_FIELDS

__all__ = [
    "DEFAULT_FIELD_MAPPINGS",
    "ExtractionPattern",
    "FieldMapping",
    "build_field_mapping",
    "build_field_mappings",
    "section_for_category",
    "ConfidenceAggregator",
    "RuleToFieldMapper",
    "MultiDocumentConsolidator",
    "BlueprintFinalizer",
    "REVIEW_REQUIRED_FIELDS",
]
