"""
Rule-to-field mapper.

Turns one document's analysis (extracted rules plus the raw value bag)
into a partial canonical field set with per-field provenance.
"""

import logging
import re
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..config.models import BusinessRules
from ..models.blueprint import FieldValue, PartialFieldSet
from ..models.enums import ContractField, FieldSource
from ..models.extraction import DocumentAnalysisResult, DocumentSummary, ExtractedRule
from ..parsers.values import (
    PARSERS,
    UNPARSED,
    is_not_specified,
    parse_capacity,
    parse_contract_term,
    parse_date,
    parse_text,
)
from .confidence import ConfidenceAggregator
from .field_mappings import DEFAULT_FIELD_MAPPINGS, ExtractionPattern, FieldMapping


logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(key: str) -> str:
    """systemCapacity -> system_capacity"""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class RuleToFieldMapper:
    """
    Maps a DocumentAnalysisResult onto canonical contract fields.

    For each field the mapping patterns are tried in declared order. For
    each pattern the raw value bag is consulted first; rule parameters
    (from rules in the field's eligible categories) are scanned only while
    the raw bag has produced no usable value for the field. Once the raw
    bag has supplied any non-sentinel value for a field, rules are never
    scanned for it, even if that value fails to parse.

    Customer name, effective date and contract term fall back to the
    document summary when no pattern succeeds. Everything else that
    cannot be mapped stays absent.
    """

    def __init__(
        self,
        field_mappings: Optional[Iterable[FieldMapping]] = None,
        business_rules: Optional[BusinessRules] = None,
        confidence: Optional[ConfidenceAggregator] = None,
    ):
        self._table: Tuple[FieldMapping, ...] = (
            tuple(field_mappings) if field_mappings is not None else DEFAULT_FIELD_MAPPINGS
        )
        self._rules = business_rules or BusinessRules()
        self._confidence = confidence or ConfidenceAggregator()
        self._parsers: Dict[str, Callable[[Any], Any]] = dict(PARSERS)
        self._parsers["capacity"] = partial(
            parse_capacity, module_size=self._rules.module_size_kw
        )

    @property
    def field_mappings(self) -> Tuple[FieldMapping, ...]:
        return self._table

    def map_to_fields(
        self,
        analysis: DocumentAnalysisResult,
        field_mappings: Optional[Iterable[FieldMapping]] = None,
    ) -> PartialFieldSet:
        """
        Map one document's analysis to a partial field set.

        Args:
            analysis: The document's analysis result.
            field_mappings: Optional table overriding the mapper's own.

        Returns:
            PartialFieldSet holding only the fields that could be mapped.
        """
        table = self._table if field_mappings is None else tuple(field_mappings)
        document_score = self._confidence.score(analysis)
        fields: Dict[ContractField, FieldValue] = {}

        for mapping in table:
            value = self._map_field(mapping, analysis, document_score)
            if value is not None:
                fields[mapping.field] = value

        for item, key, value in self._summary_fallbacks(analysis.summary):
            if item in fields or value is UNPARSED:
                continue
            fields[item] = FieldValue(
                field=item,
                value=value,
                source=FieldSource.DOCUMENT_SUMMARY,
                confidence=self._confidence.field_confidence(document_score),
                document_id=analysis.document_id,
                source_key=key,
            )

        logger.debug(
            f"Mapped {len(fields)} fields from {analysis.document_id} "
            f"({analysis.rule_count} rules, score {document_score:.2f})"
        )
        return PartialFieldSet(
            document_id=analysis.document_id,
            fields=fields,
            confidence=document_score,
        )

    def _map_field(
        self,
        mapping: FieldMapping,
        analysis: DocumentAnalysisResult,
        document_score: float,
    ) -> Optional[FieldValue]:
        eligible = analysis.rules_in(mapping.categories)
        raw_supplied = False

        for pattern in mapping.patterns:
            found, raw = self._raw_lookup(analysis.raw_values, pattern.source_key)
            if found:
                raw_supplied = True
                value = self._parse(pattern, raw, mapping.field, analysis.document_id)
                if value is UNPARSED:
                    continue
                return FieldValue(
                    field=mapping.field,
                    value=value,
                    source=FieldSource.RAW_VALUE,
                    confidence=self._confidence.field_confidence(document_score),
                    document_id=analysis.document_id,
                    source_key=pattern.source_key,
                )

            if raw_supplied:
                continue

            value, supporting = self._scan_rules(pattern, eligible, mapping.field,
                                                 analysis.document_id)
            if supporting:
                return FieldValue(
                    field=mapping.field,
                    value=value,
                    source=FieldSource.RULE_PARAMETER,
                    confidence=self._confidence.field_confidence(document_score, supporting),
                    document_id=analysis.document_id,
                    source_key=pattern.source_key,
                    rule_ids=tuple(r.id for r in supporting),
                )
        return None

    def _raw_lookup(self, raw_values, key: str) -> Tuple[bool, Any]:
        for candidate in (key, snake_case(key)):
            if candidate in raw_values and not is_not_specified(raw_values[candidate]):
                return True, raw_values[candidate]
        return False, None

    def _scan_rules(
        self,
        pattern: ExtractionPattern,
        rules: List[ExtractedRule],
        item: ContractField,
        document_id: str,
    ) -> Tuple[Any, List[ExtractedRule]]:
        """
        First rule whose parameter parses wins; later rules asserting the
        same value are kept as supporting rules.
        """
        chosen: Any = UNPARSED
        supporting: List[ExtractedRule] = []
        for rule in rules:
            raw = rule.parameters.get(pattern.source_key)
            if is_not_specified(raw):
                continue
            value = self._parse(pattern, raw, item, document_id)
            if value is UNPARSED:
                continue
            if not supporting:
                chosen = value
                supporting.append(rule)
            elif value == chosen:
                supporting.append(rule)
        return chosen, supporting

    def _parse(
        self,
        pattern: ExtractionPattern,
        raw: Any,
        item: ContractField,
        document_id: str,
    ) -> Any:
        if pattern.parser is None:
            return raw
        value = self._parsers[pattern.parser](raw)
        if value is UNPARSED:
            logger.warning(
                f"Could not parse {item.value} from {pattern.source_key}={raw!r} "
                f"in {document_id}"
            )
        return value

    def _summary_fallbacks(self, summary: DocumentSummary):
        yield (ContractField.CUSTOMER_NAME, "documentSummary.parties",
               self._customer_from_parties(summary.parties))
        yield (ContractField.EFFECTIVE_DATE, "documentSummary.effectiveDate",
               parse_date(summary.effective_date))
        yield (ContractField.CONTRACT_TERM, "documentSummary.contractTerm",
               parse_contract_term(summary.contract_term))

    def _customer_from_parties(self, parties) -> Any:
        """
        Pick the customer out of the contract parties.

        A list needs at least two parties: the first one that is not the
        supplier wins, else the second. A mapping uses its buyer entry.
        """
        if isinstance(parties, dict):
            return parse_text(parties.get("buyer"))
        if not isinstance(parties, list) or len(parties) < 2:
            return UNPARSED

        markers = [m.lower() for m in self._rules.supplier_markers]
        for party in parties:
            if not any(marker in party.lower() for marker in markers):
                return parse_text(party)
        return parse_text(parties[1])
