"""Analysis result data models for the Contract Blueprint pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .enums import BackendKind, RuleCategory, RuleKind


@dataclass(frozen=True)
class ExtractedRule:
    """
    One atomic fact asserted by an analysis backend about a document.

    Parameters are kept as an open string-keyed map; only the field
    mapping table decides which keys matter and how they are parsed.
    """
    id: str
    category: RuleCategory
    kind: RuleKind
    name: str = ""
    description: str = ""
    condition: str = ""
    action: str = ""
    parameters: Mapping[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    source_text: str = ""


@dataclass(frozen=True)
class DocumentSummary:
    """Document-level facts reported alongside the rules."""
    contract_type: str = ""
    parties: Union[List[str], Dict[str, str]] = field(default_factory=list)
    effective_date: Optional[str] = None
    contract_term: Any = None


@dataclass(frozen=True)
class ExtractionSummary:
    """Backend-reported statistics for one analysis."""
    total_rules_extracted: int = 0
    confidence_score: float = 0.0
    processing_notes: str = ""


@dataclass(frozen=True)
class DocumentAnalysisResult:
    """
    Result of analyzing one document with one backend.

    Created once per successful analysis and never mutated; re-analysis
    produces a new result that supersedes this one.
    """
    document_id: str
    backend: BackendKind
    summary: DocumentSummary = field(default_factory=DocumentSummary)
    rules: Tuple[ExtractedRule, ...] = ()
    raw_values: Mapping[str, Any] = field(default_factory=dict)
    risk_factors: Tuple[str, ...] = ()
    anomalies: Tuple[str, ...] = ()
    extraction_summary: ExtractionSummary = field(default_factory=ExtractionSummary)
    analyzed_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def rule_count(self) -> int:
        return len(self.rules)

    def rules_in(self, categories) -> List[ExtractedRule]:
        """Rules whose category is one of the given categories, in order."""
        allowed = set(categories)
        return [rule for rule in self.rules if rule.category in allowed]
