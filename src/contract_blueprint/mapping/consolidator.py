"""Multi-document consolidation of per-document field sets."""

import logging
import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.blueprint import ContractBlueprint, FieldValue, PartialFieldSet, RuleReference
from ..models.enums import BlueprintSection, ContractField
from ..models.extraction import DocumentAnalysisResult
from .confidence import ConfidenceAggregator
from .field_mappings import section_for_category


logger = logging.getLogger(__name__)

# Confidences closer than this are treated as a tie.
_TIE_TOLERANCE = 1e-9

ConsolidationEntry = Tuple[DocumentAnalysisResult, PartialFieldSet]


class MultiDocumentConsolidator:
    """
    Merges the documents of one batch into a single blueprint.

    Entries must be given in upload order. Per field the candidate with
    the highest field confidence wins and ties go to the earliest
    document, since later documents are usually amendments or schedules.
    Losing candidates with a different value are kept as alternatives;
    documents agreeing with the winner raise its confidence slightly.
    Every rule of every document is kept, grouped by section.
    """

    def __init__(self, confidence: Optional[ConfidenceAggregator] = None):
        self._confidence = confidence or ConfidenceAggregator()

    def consolidate(
        self,
        entries: Sequence[ConsolidationEntry],
        batch_id: str,
        failed: Iterable[str] = (),
        blueprint_id: Optional[str] = None,
    ) -> ContractBlueprint:
        """
        Consolidate a batch into a blueprint.

        Args:
            entries: (analysis, partial field set) pairs in upload order.
            batch_id: Batch the blueprint belongs to.
            failed: Ids of documents that could not be analyzed.
            blueprint_id: Optional id for the new blueprint.

        Returns:
            ContractBlueprint; not yet defaulted or validated.
        """
        fields: Dict[ContractField, FieldValue] = {}
        for item in ContractField:
            candidates = [partial.get(item) for _, partial in entries]
            candidates = [c for c in candidates if c is not None]
            if candidates:
                fields[item] = self._select(candidates)

        blueprint = ContractBlueprint(
            id=blueprint_id or str(uuid.uuid4()),
            batch_id=batch_id,
            fields=fields,
            rules_by_section=self._group_rules(entries),
            document_ids=tuple(analysis.document_id for analysis, _ in entries),
            failed_document_ids=tuple(failed),
            risk_factors=tuple(
                (analysis.document_id, text)
                for analysis, _ in entries
                for text in analysis.risk_factors
            ),
            anomalies=tuple(
                (analysis.document_id, text)
                for analysis, _ in entries
                for text in analysis.anomalies
            ),
            overall_confidence=self._confidence.overall(fields.values()),
        )
        logger.info(
            f"Consolidated {len(entries)} documents into blueprint {blueprint.id} "
            f"for batch {batch_id} ({len(fields)} fields, "
            f"{len(blueprint.failed_document_ids)} failed documents)"
        )
        return blueprint

    def _select(self, candidates: List[FieldValue]) -> FieldValue:
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.confidence > best.confidence + _TIE_TOLERANCE:
                best = candidate

        others = [c for c in candidates if c is not best]
        agreeing = [c for c in others if c.value == best.value]
        alternatives = tuple(c for c in others if c.value != best.value)

        note = best.note
        if agreeing:
            note = f"Confirmed by {len(agreeing)} other document(s)"
        if alternatives:
            logger.debug(
                f"{best.field.value}: kept {best.document_id}'s value over "
                f"{len(alternatives)} competing candidate(s)"
            )

        return replace(
            best,
            confidence=self._confidence.with_agreement(best.confidence, len(agreeing)),
            alternatives=alternatives,
            note=note,
        )

    def _group_rules(
        self, entries: Sequence[ConsolidationEntry]
    ) -> Dict[BlueprintSection, Tuple[RuleReference, ...]]:
        grouped: Dict[BlueprintSection, List[RuleReference]] = {}
        for analysis, _ in entries:
            for rule in analysis.rules:
                section = section_for_category(rule.category)
                grouped.setdefault(section, []).append(
                    RuleReference(document_id=analysis.document_id, rule=rule)
                )
        return {
            section: tuple(grouped[section])
            for section in BlueprintSection
            if section in grouped
        }
