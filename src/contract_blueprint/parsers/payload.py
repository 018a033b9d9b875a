"""
Parser for loosely structured backend analysis payloads.

Backends return JSON with inconsistent key names (camelCase or
snake_case, "extractedRules" or "rules") and optional sections. This
module is the one place that tolerates that; everything downstream
works with DocumentAnalysisResult.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..models.enums import BackendKind, RuleCategory, RuleKind
from ..models.extraction import (
    DocumentAnalysisResult,
    DocumentSummary,
    ExtractedRule,
    ExtractionSummary,
)
from ..exceptions import MalformedResponseError


logger = logging.getLogger(__name__)


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key's value."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def normalize_confidence(value: Any) -> float:
    """
    Normalize a confidence into [0, 1].

    Percentage-style confidences (e.g. 85) are divided by 100; anything
    unreadable counts as 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)) or value != value:
        return 0.0
    if 1.0 < value <= 100.0:
        value = value / 100.0
    return max(0.0, min(1.0, float(value)))


class AnalysisPayloadParser:
    """
    Converts a backend payload into a DocumentAnalysisResult.

    Rules with an unknown category are dropped and recorded as anomalies;
    a payload that is not a mapping, or whose sections have the wrong
    shape, raises MalformedResponseError.
    """

    def parse(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        document_id: str,
        backend: BackendKind,
    ) -> DocumentAnalysisResult:
        data = self._load(payload, document_id, backend)

        anomalies = list(self._string_list(
            _first(data, "anomalies", default=[]), "anomalies", document_id, backend
        ))
        rules = self._parse_rules(
            _first(data, "extractedRules", "extracted_rules", "rules", default=[]),
            document_id,
            backend,
            anomalies,
        )
        raw_values = _first(data, "extractedData", "extracted_data", "rawValues", "raw_values",
                            default={})
        if not isinstance(raw_values, Mapping):
            raise MalformedResponseError(
                "Raw value section must be an object",
                backend=backend,
                document_id=document_id,
            )

        return DocumentAnalysisResult(
            document_id=document_id,
            backend=backend,
            summary=self._parse_summary(
                _first(data, "documentSummary", "document_summary", default={}),
                document_id,
                backend,
            ),
            rules=tuple(rules),
            raw_values=dict(raw_values),
            risk_factors=tuple(self._string_list(
                _first(data, "riskFactors", "risk_factors", default=[]),
                "riskFactors",
                document_id,
                backend,
            )),
            anomalies=tuple(anomalies),
            extraction_summary=self._parse_statistics(data, len(rules)),
        )

    def _load(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        document_id: str,
        backend: BackendKind,
    ) -> Mapping[str, Any]:
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise MalformedResponseError(
                    f"Invalid JSON: {str(e)}",
                    backend=backend,
                    document_id=document_id,
                )
        if not isinstance(payload, Mapping):
            raise MalformedResponseError(
                f"Expected an object payload, got {type(payload).__name__}",
                backend=backend,
                document_id=document_id,
            )
        return payload

    def _parse_rules(
        self,
        items: Any,
        document_id: str,
        backend: BackendKind,
        anomalies: List[str],
    ) -> List[ExtractedRule]:
        if not isinstance(items, list):
            raise MalformedResponseError(
                "Extracted rules must be a list",
                backend=backend,
                document_id=document_id,
            )

        rules = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                logger.warning(f"Skipping non-object rule #{index} in {document_id}")
                anomalies.append(f"Dropped rule #{index}: not an object")
                continue

            rule_id = str(_first(item, "id", default=f"{document_id}-rule-{index + 1}"))
            category_name = str(_first(item, "category", default="")).strip().lower()
            try:
                category = RuleCategory(category_name)
            except ValueError:
                logger.warning(
                    f"Dropping rule {rule_id} in {document_id}: "
                    f"unknown category '{category_name}'"
                )
                anomalies.append(f"Dropped rule {rule_id}: unknown category '{category_name}'")
                continue

            kind_name = str(_first(item, "type", "kind", default="")).strip().lower()
            try:
                kind = RuleKind(kind_name)
            except ValueError:
                logger.debug(f"Rule {rule_id} has unknown kind '{kind_name}'")
                kind = RuleKind.CONDITIONAL

            parameters = _first(item, "parameters", default={})
            if not isinstance(parameters, Mapping):
                parameters = {}

            rules.append(ExtractedRule(
                id=rule_id,
                category=category,
                kind=kind,
                name=str(_first(item, "name", default="")),
                description=str(_first(item, "description", default="")),
                condition=str(_first(item, "condition", default="")),
                action=str(_first(item, "action", default="")),
                parameters=dict(parameters),
                confidence=normalize_confidence(_first(item, "confidence", default=0.0)),
                source_text=str(_first(item, "sourceText", "source_text", default="")),
            ))
        return rules

    def _parse_summary(
        self,
        data: Any,
        document_id: str,
        backend: BackendKind,
    ) -> DocumentSummary:
        if not isinstance(data, Mapping):
            raise MalformedResponseError(
                "Document summary must be an object",
                backend=backend,
                document_id=document_id,
            )

        parties = _first(data, "parties", default=[])
        if isinstance(parties, Mapping):
            parties = {str(k): str(v) for k, v in parties.items() if v is not None}
        elif isinstance(parties, list):
            parties = [str(p) for p in parties if p is not None]
        else:
            parties = []

        effective_date = _first(data, "effectiveDate", "effective_date")
        return DocumentSummary(
            contract_type=str(_first(data, "contractType", "contract_type", default="")),
            parties=parties,
            effective_date=str(effective_date) if effective_date is not None else None,
            contract_term=_first(data, "contractTerm", "contract_term"),
        )

    def _parse_statistics(self, data: Mapping[str, Any], rule_count: int) -> ExtractionSummary:
        stats = _first(data, "summary", default={})
        if not isinstance(stats, Mapping):
            stats = {}
        confidence = _first(stats, "confidenceScore", "confidence_score")
        if confidence is None:
            confidence = _first(data, "overallConfidence", "overall_confidence", default=0.0)
        total = _first(stats, "totalRulesExtracted", "total_rules_extracted", default=rule_count)
        return ExtractionSummary(
            total_rules_extracted=total if isinstance(total, int) else rule_count,
            confidence_score=normalize_confidence(confidence),
            processing_notes=str(_first(stats, "processingNotes", "processing_notes", default="")),
        )

    def _string_list(
        self,
        items: Any,
        name: str,
        document_id: str,
        backend: BackendKind,
    ) -> Tuple[str, ...]:
        if not isinstance(items, list):
            raise MalformedResponseError(
                f"'{name}' must be a list",
                backend=backend,
                document_id=document_id,
            )
        return tuple(str(item) for item in items if item is not None)


_default_parser: Optional[AnalysisPayloadParser] = None


def parse_analysis_payload(
    payload: Union[str, bytes, Dict[str, Any]],
    document_id: str,
    backend: BackendKind,
) -> DocumentAnalysisResult:
    """Convenience function using a shared AnalysisPayloadParser."""
    global _default_parser
    if _default_parser is None:
        _default_parser = AnalysisPayloadParser()
    return _default_parser.parse(payload, document_id, backend)
