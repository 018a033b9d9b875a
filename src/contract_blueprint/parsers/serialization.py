"""Serialization and deserialization utilities for analyses and blueprints."""

import json
from typing import Any

from ..models.blueprint import ContractBlueprint, FieldValue, RuleReference
from ..models.enums import (
    BackendKind,
    BlueprintSection,
    ComponentType,
    ContractField,
    FieldSource,
    InstallationType,
    RuleCategory,
    RuleKind,
    SolutionType,
    VoltageLevel,
)
from ..models.extraction import (
    DocumentAnalysisResult,
    DocumentSummary,
    ExtractedRule,
    ExtractionSummary,
)


# Fields whose stored values are enum values and must be rebuilt as enums.
_ENUM_FIELDS = {
    ContractField.SOLUTION_TYPE: SolutionType,
    ContractField.INSTALLATION_TYPE: InstallationType,
    ContractField.GRID_PARALLEL_VOLTAGE: VoltageLevel,
}


class AnalysisSerializer:
    """
    Handles serialization and deserialization of DocumentAnalysisResult
    and ContractBlueprint structures.

    Ensures round-trip consistency: deserialize(serialize(x)) == x
    """

    @staticmethod
    def serialize(result: DocumentAnalysisResult) -> str:
        """
        Serialize a DocumentAnalysisResult to JSON string.

        Args:
            result: The analysis result to serialize.

        Returns:
            JSON string representation of the analysis.
        """
        return json.dumps(
            AnalysisSerializer.analysis_to_dict(result),
            ensure_ascii=False,
            indent=2,
        )

    @staticmethod
    def deserialize(json_str: str) -> DocumentAnalysisResult:
        """
        Deserialize a JSON string to a DocumentAnalysisResult.

        Raises:
            ValueError: If the JSON is invalid or malformed.
        """
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {str(e)}")

        return AnalysisSerializer.dict_to_analysis(data)

    @staticmethod
    def analysis_to_dict(result: DocumentAnalysisResult) -> dict[str, Any]:
        """Convert DocumentAnalysisResult to dictionary."""
        return {
            "document_id": result.document_id,
            "backend": result.backend.value,
            "summary": {
                "contract_type": result.summary.contract_type,
                "parties": result.summary.parties,
                "effective_date": result.summary.effective_date,
                "contract_term": result.summary.contract_term,
            },
            "rules": [AnalysisSerializer._rule_to_dict(r) for r in result.rules],
            "raw_values": dict(result.raw_values),
            "risk_factors": list(result.risk_factors),
            "anomalies": list(result.anomalies),
            "extraction_summary": {
                "total_rules_extracted": result.extraction_summary.total_rules_extracted,
                "confidence_score": result.extraction_summary.confidence_score,
                "processing_notes": result.extraction_summary.processing_notes,
            },
            "analyzed_at": result.analyzed_at,
        }

    @staticmethod
    def dict_to_analysis(data: dict[str, Any]) -> DocumentAnalysisResult:
        """Convert dictionary to DocumentAnalysisResult."""
        if not isinstance(data, dict):
            raise ValueError("Expected dictionary for DocumentAnalysisResult")

        for required in ("document_id", "backend"):
            if required not in data:
                raise ValueError(f"Missing required field: {required}")

        summary = data.get("summary", {})
        stats = data.get("extraction_summary", {})
        return DocumentAnalysisResult(
            document_id=data["document_id"],
            backend=BackendKind(data["backend"]),
            summary=DocumentSummary(
                contract_type=summary.get("contract_type", ""),
                parties=summary.get("parties", []),
                effective_date=summary.get("effective_date"),
                contract_term=summary.get("contract_term"),
            ),
            rules=tuple(AnalysisSerializer._dict_to_rule(r) for r in data.get("rules", [])),
            raw_values=data.get("raw_values", {}),
            risk_factors=tuple(data.get("risk_factors", [])),
            anomalies=tuple(data.get("anomalies", [])),
            extraction_summary=ExtractionSummary(
                total_rules_extracted=stats.get("total_rules_extracted", 0),
                confidence_score=stats.get("confidence_score", 0.0),
                processing_notes=stats.get("processing_notes", ""),
            ),
            analyzed_at=data.get("analyzed_at", ""),
        )

    @staticmethod
    def _rule_to_dict(rule: ExtractedRule) -> dict[str, Any]:
        return {
            "id": rule.id,
            "category": rule.category.value,
            "kind": rule.kind.value,
            "name": rule.name,
            "description": rule.description,
            "condition": rule.condition,
            "action": rule.action,
            "parameters": dict(rule.parameters),
            "confidence": rule.confidence,
            "source_text": rule.source_text,
        }

    @staticmethod
    def _dict_to_rule(data: dict[str, Any]) -> ExtractedRule:
        if not isinstance(data, dict):
            raise ValueError("Expected dictionary for ExtractedRule")
        if "id" not in data:
            raise ValueError("Missing required field 'id' in ExtractedRule")

        return ExtractedRule(
            id=data["id"],
            category=RuleCategory(data["category"]),
            kind=RuleKind(data.get("kind", RuleKind.CONDITIONAL.value)),
            name=data.get("name", ""),
            description=data.get("description", ""),
            condition=data.get("condition", ""),
            action=data.get("action", ""),
            parameters=data.get("parameters", {}),
            confidence=data.get("confidence", 0.0),
            source_text=data.get("source_text", ""),
        )

    @staticmethod
    def dict_to_blueprint(data: dict[str, Any]) -> ContractBlueprint:
        """
        Rebuild a ContractBlueprint from its snapshot form.

        Rules in a snapshot only keep their id, category, name and
        confidence, so rebuilt rule references carry just those.
        """
        if not isinstance(data, dict):
            raise ValueError("Expected dictionary for ContractBlueprint")
        for required in ("id", "batch_id"):
            if required not in data:
                raise ValueError(f"Missing required field: {required}")

        fields = {}
        for name, value in data.get("fields", {}).items():
            field_value = AnalysisSerializer._dict_to_field_value(value)
            fields[ContractField(name)] = field_value

        rules_by_section = {}
        for section, refs in data.get("rules_by_section", {}).items():
            rules_by_section[BlueprintSection(section)] = tuple(
                RuleReference(
                    document_id=ref["document_id"],
                    rule=ExtractedRule(
                        id=ref["rule_id"],
                        category=RuleCategory(ref["category"]),
                        kind=RuleKind.CONDITIONAL,
                        name=ref.get("name", ""),
                        confidence=ref.get("confidence", 0.0),
                    ),
                )
                for ref in refs
            )

        return ContractBlueprint(
            id=data["id"],
            batch_id=data["batch_id"],
            fields=fields,
            rules_by_section=rules_by_section,
            document_ids=tuple(data.get("document_ids", [])),
            failed_document_ids=tuple(data.get("failed_document_ids", [])),
            risk_factors=tuple(
                (item["document_id"], item["text"]) for item in data.get("risk_factors", [])
            ),
            anomalies=tuple(
                (item["document_id"], item["text"]) for item in data.get("anomalies", [])
            ),
            overall_confidence=data.get("overall_confidence", 0.0),
            created_at=data.get("created_at", ""),
        )

    @staticmethod
    def _dict_to_field_value(data: dict[str, Any]) -> FieldValue:
        item = ContractField(data["field"])
        value = data.get("value")
        if item in _ENUM_FIELDS and value is not None:
            value = _ENUM_FIELDS[item](value)
        elif item is ContractField.SELECTED_COMPONENTS and value is not None:
            value = [ComponentType(v) for v in value]

        return FieldValue(
            field=item,
            value=value,
            source=FieldSource(data["source"]),
            confidence=data.get("confidence", 0.0),
            document_id=data.get("document_id"),
            source_key=data.get("source_key"),
            rule_ids=tuple(data.get("rule_ids", [])),
            alternatives=tuple(
                AnalysisSerializer._dict_to_field_value(alt)
                for alt in data.get("alternatives", [])
            ),
            note=data.get("note"),
        )


def serialize_analysis(result: DocumentAnalysisResult) -> str:
    """Convenience function to serialize an analysis result."""
    return AnalysisSerializer.serialize(result)


def deserialize_analysis(json_str: str) -> DocumentAnalysisResult:
    """Convenience function to deserialize an analysis result."""
    return AnalysisSerializer.deserialize(json_str)


def blueprint_from_dict(data: dict[str, Any]) -> ContractBlueprint:
    """Convenience function to rebuild a blueprint from its snapshot form."""
    return AnalysisSerializer.dict_to_blueprint(data)
