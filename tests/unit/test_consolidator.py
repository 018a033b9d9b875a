"""Unit tests for MultiDocumentConsolidator."""

from dataclasses import replace

import pytest

from contract_blueprint.mapping.consolidator import MultiDocumentConsolidator
from contract_blueprint.models.blueprint import FieldValue, PartialFieldSet
from contract_blueprint.models.enums import (
    BlueprintSection,
    ContractField,
    FieldSource,
    RuleCategory,
)


def _partial(document_id, values, confidence=0.7):
    """PartialFieldSet from {field: (value, confidence)}."""
    fields = {
        item: FieldValue(
            field=item,
            value=value,
            source=FieldSource.RAW_VALUE,
            confidence=field_confidence,
            document_id=document_id,
            source_key=item.value,
        )
        for item, (value, field_confidence) in values.items()
    }
    return PartialFieldSet(document_id=document_id, fields=fields, confidence=confidence)


@pytest.fixture
def consolidator():
    return MultiDocumentConsolidator()


class TestFieldSelection:
    """Tests for per-field candidate selection."""

    def test_highest_confidence_wins(self, consolidator, make_analysis):
        entries = [
            (make_analysis("doc-1"), _partial("doc-1", {ContractField.BASE_RATE: (0.08, 0.6)})),
            (make_analysis("doc-2"), _partial("doc-2", {ContractField.BASE_RATE: (0.09, 0.9)})),
        ]

        blueprint = consolidator.consolidate(entries, "batch-1")

        rate = blueprint.fields[ContractField.BASE_RATE]
        assert rate.value == 0.09
        assert rate.document_id == "doc-2"
        assert rate.confidence == pytest.approx(0.9)
        assert [alt.document_id for alt in rate.alternatives] == ["doc-1"]
        assert rate.alternatives[0].value == 0.08

    def test_tie_goes_to_earliest_document(self, consolidator, make_analysis):
        entries = [
            (make_analysis("doc-1"), _partial("doc-1", {ContractField.BASE_RATE: (0.08, 0.7)})),
            (make_analysis("doc-2"), _partial("doc-2", {ContractField.BASE_RATE: (0.09, 0.7)})),
        ]

        rate = consolidator.consolidate(entries, "batch-1").fields[ContractField.BASE_RATE]

        assert rate.value == 0.08
        assert rate.document_id == "doc-1"

    def test_agreeing_documents_raise_confidence(self, consolidator, make_analysis):
        entries = [
            (make_analysis(f"doc-{i}"), _partial(f"doc-{i}", {ContractField.CONTRACT_TERM: (15, c)}))
            for i, c in ((1, 0.6), (2, 0.5), (3, 0.6))
        ]

        term = consolidator.consolidate(entries, "batch-1").fields[ContractField.CONTRACT_TERM]

        assert term.value == 15
        assert term.document_id == "doc-1"
        assert term.confidence == pytest.approx(0.7)
        assert term.alternatives == ()
        assert term.note == "Confirmed by 2 other document(s)"

    def test_field_from_any_document(self, consolidator, make_analysis):
        entries = [
            (make_analysis("doc-1"), _partial("doc-1", {ContractField.BASE_RATE: (0.08, 0.6)})),
            (make_analysis("doc-2"), _partial("doc-2", {ContractField.CONTRACT_TERM: (20, 0.8)})),
        ]

        blueprint = consolidator.consolidate(entries, "batch-1")

        assert blueprint.fields[ContractField.CONTRACT_TERM].document_id == "doc-2"
        assert blueprint.fields[ContractField.BASE_RATE].document_id == "doc-1"
        assert not blueprint.has(ContractField.CUSTOMER_NAME)
        assert blueprint.overall_confidence == pytest.approx(0.7)

    def test_provenance_lists_source_documents(self, consolidator, make_analysis):
        entries = [
            (make_analysis("doc-1"), _partial("doc-1", {ContractField.BASE_RATE: (0.08, 0.6)})),
        ]

        records = consolidator.consolidate(entries, "batch-1").provenance()

        assert records == [{
            "field": "base_rate",
            "value": 0.08,
            "source": "raw_value",
            "document_id": "doc-1",
            "rule_ids": [],
            "confidence": 0.6,
            "note": None,
        }]


class TestBlueprintAssembly:
    """Tests for the batch-level parts of the blueprint."""

    def test_rules_grouped_by_section(self, consolidator, make_analysis, make_rule):
        first = make_analysis("doc-1", rules=[
            make_rule("r1", RuleCategory.PAYMENT),
            make_rule("r2", RuleCategory.SYSTEM),
        ])
        second = make_analysis("doc-2", rules=[
            make_rule("r3", RuleCategory.RISK),
            make_rule("r4", RuleCategory.PAYMENT),
        ])
        entries = [(first, _partial("doc-1", {})), (second, _partial("doc-2", {}))]

        grouped = consolidator.consolidate(entries, "batch-1").rules_by_section

        assert list(grouped) == [
            BlueprintSection.FINANCIAL,
            BlueprintSection.TECHNICAL,
            BlueprintSection.OPERATING,
        ]
        assert [(ref.document_id, ref.rule.id) for ref in grouped[BlueprintSection.FINANCIAL]] == [
            ("doc-1", "r1"),
            ("doc-2", "r4"),
        ]
        assert grouped[BlueprintSection.OPERATING][0].rule.id == "r3"

    def test_documents_failures_and_findings(self, consolidator, make_analysis):
        first = make_analysis("doc-1", risk_factors=["Uncapped escalation"])
        second = replace(make_analysis("doc-2"), anomalies=("Signature page missing",))
        entries = [(first, _partial("doc-1", {})), (second, _partial("doc-2", {}))]

        blueprint = consolidator.consolidate(
            entries, "batch-1", failed=["doc-3"], blueprint_id="bp-1"
        )

        assert blueprint.id == "bp-1"
        assert blueprint.batch_id == "batch-1"
        assert blueprint.document_ids == ("doc-1", "doc-2")
        assert blueprint.failed_document_ids == ("doc-3",)
        assert blueprint.risk_factors == (("doc-1", "Uncapped escalation"),)
        assert blueprint.anomalies == (("doc-2", "Signature page missing"),)

    def test_generated_ids_are_unique(self, consolidator, make_analysis):
        entries = [(make_analysis("doc-1"), _partial("doc-1", {}))]
        assert consolidator.consolidate(entries, "b").id != consolidator.consolidate(entries, "b").id

    def test_no_fields(self, consolidator, make_analysis):
        blueprint = consolidator.consolidate([(make_analysis("doc-1"), _partial("doc-1", {}))], "b")
        assert blueprint.fields == {}
        assert blueprint.overall_confidence == 0.0
