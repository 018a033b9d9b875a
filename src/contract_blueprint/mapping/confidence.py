"""Confidence scoring for documents, fields and blueprints."""

from typing import Iterable, Sequence

from ..models.blueprint import FieldValue
from ..models.enums import FieldSource
from ..models.extraction import DocumentAnalysisResult, ExtractedRule


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class ConfidenceAggregator:
    """
    Computes document, field and overall confidences.

    A document's score starts from the backend-reported confidence, is
    penalized for sparse extractions and rewarded for rich ones, then
    averaged with the mean confidence of its rules.
    """

    SPARSE_RULE_COUNT = 3
    RICH_RULE_COUNT = 10
    SPARSE_FACTOR = 0.7
    RICH_FACTOR = 1.1

    def __init__(self, agreement_bonus: float = 0.05):
        """
        Initialize the aggregator.

        Args:
            agreement_bonus: Added per additional document that proposes
                the same value for a field.
        """
        self.agreement_bonus = agreement_bonus

    def score(self, analysis: DocumentAnalysisResult) -> float:
        """Document-level confidence in [0, 1]."""
        confidence = analysis.extraction_summary.confidence_score
        rule_count = analysis.rule_count

        if rule_count < self.SPARSE_RULE_COUNT:
            confidence *= self.SPARSE_FACTOR
        elif rule_count > self.RICH_RULE_COUNT:
            confidence = min(1.0, confidence * self.RICH_FACTOR)

        if rule_count:
            confidence = (confidence + _mean([r.confidence for r in analysis.rules])) / 2
        return _clamp(confidence)

    def field_confidence(
        self,
        document_score: float,
        rules: Sequence[ExtractedRule] = (),
    ) -> float:
        """
        Confidence of one mapped field.

        Raw values and summary facts carry the document score; values read
        from rule parameters average it with the supporting rules.
        """
        if not rules:
            return _clamp(document_score)
        return _clamp((document_score + _mean([r.confidence for r in rules])) / 2)

    def with_agreement(self, confidence: float, agreeing: int) -> float:
        """Raise a field confidence for documents that agree on its value."""
        return _clamp(confidence + self.agreement_bonus * max(0, agreeing))

    def overall(self, fields: Iterable[FieldValue]) -> float:
        """
        Blueprint confidence: the mean over extracted fields.

        Defaults and user overrides do not contribute. Never exceeds the
        highest contributing field confidence; 0.0 with no contributors.
        """
        contributing = [
            f.confidence for f in fields
            if f.source not in (FieldSource.DEFAULT, FieldSource.USER_OVERRIDE)
        ]
        if not contributing:
            return 0.0
        return min(_mean(contributing), max(contributing))
