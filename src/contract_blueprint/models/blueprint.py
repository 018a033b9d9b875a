"""Blueprint data models for the Contract Blueprint pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .enums import BlueprintSection, ContractField, FieldSource
from .extraction import ExtractedRule


def to_plain(value: Any) -> Any:
    """Convert enum-bearing field values into JSON-friendly data."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class FieldValue:
    """
    A canonical field value with its provenance.

    document_id is None only for values that did not come from a document
    (defaults and user overrides).
    """
    field: ContractField
    value: Any
    source: FieldSource
    confidence: float = 0.0
    document_id: Optional[str] = None
    source_key: Optional[str] = None
    rule_ids: Tuple[str, ...] = ()
    alternatives: Tuple["FieldValue", ...] = ()
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value,
            "value": to_plain(self.value),
            "source": self.source.value,
            "confidence": self.confidence,
            "document_id": self.document_id,
            "source_key": self.source_key,
            "rule_ids": list(self.rule_ids),
            "alternatives": [alt.to_dict() for alt in self.alternatives],
            "note": self.note,
        }


@dataclass(frozen=True)
class PartialFieldSet:
    """Fields mapped from a single document; missing fields are simply absent."""
    document_id: str
    fields: Mapping[ContractField, FieldValue] = field(default_factory=dict)
    confidence: float = 0.0

    def __contains__(self, item: ContractField) -> bool:
        return item in self.fields

    def get(self, item: ContractField) -> Optional[FieldValue]:
        return self.fields.get(item)


@dataclass(frozen=True)
class RuleReference:
    """An extracted rule together with the document it came from."""
    document_id: str
    rule: ExtractedRule


@dataclass(frozen=True)
class ContractBlueprint:
    """
    Consolidated canonical contract field set for one analysis batch.

    Never mutated: finalization, corrections and re-analysis all build a
    new blueprint so callers can compare versions or roll back.
    """
    id: str
    batch_id: str
    fields: Mapping[ContractField, FieldValue] = field(default_factory=dict)
    rules_by_section: Mapping[BlueprintSection, Tuple[RuleReference, ...]] = field(
        default_factory=dict
    )
    document_ids: Tuple[str, ...] = ()
    failed_document_ids: Tuple[str, ...] = ()
    risk_factors: Tuple[Tuple[str, str], ...] = ()
    anomalies: Tuple[Tuple[str, str], ...] = ()
    overall_confidence: float = 0.0
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def value(self, item: ContractField, default: Any = None) -> Any:
        """Get the bare value of a field, or default when absent."""
        found = self.fields.get(item)
        return found.value if found is not None else default

    def has(self, item: ContractField) -> bool:
        return item in self.fields

    def provenance(self) -> List[Dict[str, Any]]:
        """
        Per-field provenance records for review badges.

        Each record says which document (and rules) a value came from and
        with what confidence, so a UI can render "extracted from X with
        confidence Y" and offer a correction.
        """
        records = []
        for item in ContractField:
            found = self.fields.get(item)
            if found is None:
                continue
            records.append({
                "field": item.value,
                "value": to_plain(found.value),
                "source": found.source.value,
                "document_id": found.document_id,
                "rule_ids": list(found.rule_ids),
                "confidence": found.confidence,
                "note": found.note,
            })
        return records

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "fields": {
                item.value: self.fields[item].to_dict()
                for item in ContractField
                if item in self.fields
            },
            "rules_by_section": {
                section.value: [
                    {
                        "document_id": ref.document_id,
                        "rule_id": ref.rule.id,
                        "category": ref.rule.category.value,
                        "name": ref.rule.name,
                        "confidence": ref.rule.confidence,
                    }
                    for ref in refs
                ]
                for section, refs in self.rules_by_section.items()
            },
            "document_ids": list(self.document_ids),
            "failed_document_ids": list(self.failed_document_ids),
            "risk_factors": [
                {"document_id": doc_id, "text": text}
                for doc_id, text in self.risk_factors
            ],
            "anomalies": [
                {"document_id": doc_id, "text": text}
                for doc_id, text in self.anomalies
            ],
            "overall_confidence": self.overall_confidence,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding about one field."""
    field: Optional[ContractField]
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value if self.field else None,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class ValidationReport:
    """
    Outcome of blueprint validation.

    Errors block contract creation, warnings are surfaced for review, and
    review_required lists critical fields that were deliberately left unset.
    """
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    review_required: List[ContractField] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def can_create_contract(self) -> bool:
        return self.is_valid and not self.review_required

    def add_error(self, item: Optional[ContractField], code: str, message: str) -> None:
        self.errors.append(ValidationIssue(item, code, message))

    def add_warning(self, item: Optional[ContractField], code: str, message: str) -> None:
        self.warnings.append(ValidationIssue(item, code, message))

    def require_review(self, item: ContractField) -> None:
        if item not in self.review_required:
            self.review_required.append(item)

    def issues_for(self, item: ContractField) -> List[ValidationIssue]:
        """All errors and warnings attached to a field."""
        return [i for i in self.errors + self.warnings if i.field == item]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "can_create_contract": self.can_create_contract,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
            "review_required": [f.value for f in self.review_required],
        }
