"""
Field mapping table.

For each canonical contract field: the rule categories allowed to supply
it and an ordered list of extraction patterns, each naming a source key
and the parser applied to its raw value. Earlier patterns are the more
trusted extraction strategies.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.enums import BlueprintSection, ContractField, RuleCategory
from ..parsers.values import PARSERS


@dataclass(frozen=True)
class ExtractionPattern:
    """One extraction attempt: a source key and an optional parser name."""
    source_key: str
    parser: Optional[str] = None


@dataclass(frozen=True)
class FieldMapping:
    """How one canonical field is extracted."""
    field: ContractField
    categories: Tuple[RuleCategory, ...]
    patterns: Tuple[ExtractionPattern, ...]
    section: BlueprintSection = BlueprintSection.GENERAL

    @property
    def primary_key(self) -> str:
        return self.patterns[0].source_key

    def accepts(self, category: RuleCategory) -> bool:
        return category in self.categories


CATEGORY_SECTIONS: Dict[RuleCategory, BlueprintSection] = {
    RuleCategory.PAYMENT: BlueprintSection.FINANCIAL,
    RuleCategory.SYSTEM: BlueprintSection.TECHNICAL,
    RuleCategory.TECHNICAL: BlueprintSection.TECHNICAL,
    RuleCategory.PERFORMANCE: BlueprintSection.OPERATING,
    RuleCategory.OPERATIONAL: BlueprintSection.OPERATING,
    RuleCategory.COMPLIANCE: BlueprintSection.OPERATING,
    RuleCategory.RISK: BlueprintSection.OPERATING,
}


def section_for_category(category: RuleCategory) -> BlueprintSection:
    """Display section used when grouping rules of a category."""
    return CATEGORY_SECTIONS[category]


def _mapping(
    item: ContractField,
    categories: Iterable[RuleCategory],
    patterns: Iterable[Tuple[str, Optional[str]]],
    section: BlueprintSection,
) -> FieldMapping:
    return FieldMapping(
        field=item,
        categories=tuple(categories),
        patterns=tuple(ExtractionPattern(key, parser) for key, parser in patterns),
        section=section,
    )


_OP = RuleCategory.OPERATIONAL
_TECH = RuleCategory.TECHNICAL
_SYS = RuleCategory.SYSTEM
_PAY = RuleCategory.PAYMENT
_PERF = RuleCategory.PERFORMANCE

DEFAULT_FIELD_MAPPINGS: Tuple[FieldMapping, ...] = (
    # General
    _mapping(ContractField.CUSTOMER_NAME, [_OP],
             [("customerName", "text"), ("clientName", "text")],
             BlueprintSection.GENERAL),
    _mapping(ContractField.SITE_LOCATION, [_OP, _TECH],
             [("siteLocation", "text"), ("location", "text"), ("facilityLocation", "text")],
             BlueprintSection.GENERAL),
    _mapping(ContractField.EFFECTIVE_DATE, [_OP],
             [("effectiveDate", "date"), ("startDate", "date")],
             BlueprintSection.GENERAL),
    _mapping(ContractField.CONTRACT_TERM, [_OP],
             [("contractTerm", "contract_term"), ("termLength", "contract_term")],
             BlueprintSection.GENERAL),

    # Technical
    _mapping(ContractField.SOLUTION_TYPE, [_SYS],
             [("solutionType", "solution_type")],
             BlueprintSection.TECHNICAL),
    _mapping(ContractField.RATED_CAPACITY, [_SYS, _TECH],
             [("systemCapacity", "capacity"), ("capacity", "capacity")],
             BlueprintSection.TECHNICAL),
    _mapping(ContractField.INSTALLATION_TYPE, [_SYS, _TECH],
             [("installationType", "installation_type"), ("installation", "installation_type")],
             BlueprintSection.TECHNICAL),
    _mapping(ContractField.NUMBER_OF_SERVERS, [_TECH, _SYS],
             [("numberOfServers", "integer"), ("servers", "integer")],
             BlueprintSection.TECHNICAL),
    _mapping(ContractField.SELECTED_COMPONENTS, [_SYS, _TECH],
             [("selectedComponents", "components"), ("components", "components")],
             BlueprintSection.TECHNICAL),
    _mapping(ContractField.GRID_PARALLEL_VOLTAGE, [_TECH],
             [("voltage", "voltage"), ("gridParallelVoltage", "voltage")],
             BlueprintSection.TECHNICAL),

    # Financial
    _mapping(ContractField.BASE_RATE, [_PAY],
             [("baseRate", "currency"), ("amount", "currency")],
             BlueprintSection.FINANCIAL),
    _mapping(ContractField.ANNUAL_ESCALATION, [_PAY],
             [("annualEscalation", "percentage"), ("escalationRate", "percentage")],
             BlueprintSection.FINANCIAL),

    # Operating
    _mapping(ContractField.RELIABILITY_LEVEL, [_PERF],
             [("reliabilityLevel", "percentage"), ("reliability", "percentage")],
             BlueprintSection.OPERATING),
    _mapping(ContractField.OUTPUT_WARRANTY_PERCENT, [_PERF],
             [("outputWarranty", "percentage"), ("minimumAvailability", "percentage")],
             BlueprintSection.OPERATING),
    _mapping(ContractField.EFFICIENCY_WARRANTY_PERCENT, [_PERF],
             [("efficiencyWarranty", "percentage"), ("minimumEfficiency", "percentage"),
              ("efficiency", "percentage")],
             BlueprintSection.OPERATING),
    _mapping(ContractField.MIN_DEMAND_KW, [_OP, _TECH],
             [("minDemand", "number"), ("minimumDemand", "number")],
             BlueprintSection.OPERATING),
    _mapping(ContractField.MAX_DEMAND_KW, [_OP, _TECH],
             [("maxDemand", "number"), ("maximumDemand", "number")],
             BlueprintSection.OPERATING),
    _mapping(ContractField.GUARANTEED_CRITICAL_OUTPUT, [_PERF, _TECH],
             [("guaranteedCriticalOutput", "number"), ("criticalOutput", "number")],
             BlueprintSection.OPERATING),
)


def build_field_mapping(data: Mapping[str, Any]) -> FieldMapping:
    """
    Build one FieldMapping from its configuration dictionary.

    Raises:
        ValueError: On unknown fields, categories, sections or parser names,
            or when no pattern is given.
    """
    if not isinstance(data, Mapping):
        raise ValueError("Field mapping must be an object")
    try:
        item = ContractField(data["field"])
    except KeyError:
        raise ValueError("Missing required field 'field'") from None
    except ValueError:
        raise ValueError(f"Unknown contract field: {data['field']!r}") from None

    categories = []
    for name in data.get("categories", []):
        try:
            categories.append(RuleCategory(name))
        except ValueError:
            raise ValueError(f"{item.value}: unknown rule category {name!r}") from None

    patterns = []
    for pattern in data.get("patterns", []):
        if not isinstance(pattern, Mapping) or not pattern.get("source_key"):
            raise ValueError(f"{item.value}: each pattern needs a 'source_key'")
        parser = pattern.get("parser")
        if parser is not None and parser not in PARSERS:
            raise ValueError(f"{item.value}: unknown parser {parser!r}")
        patterns.append(ExtractionPattern(str(pattern["source_key"]), parser))
    if not patterns:
        raise ValueError(f"{item.value}: at least one pattern is required")

    section_name = data.get("section")
    if section_name is None:
        section = default_section(item)
    else:
        try:
            section = BlueprintSection(section_name)
        except ValueError:
            raise ValueError(f"{item.value}: unknown section {section_name!r}") from None

    return FieldMapping(
        field=item,
        categories=tuple(categories),
        patterns=tuple(patterns),
        section=section,
    )


def build_field_mappings(data: Iterable[Mapping[str, Any]]) -> Tuple[FieldMapping, ...]:
    """Build an ordered mapping table; duplicate fields are rejected."""
    table: List[FieldMapping] = []
    seen = set()
    for entry in data:
        mapping = build_field_mapping(entry)
        if mapping.field in seen:
            raise ValueError(f"Duplicate mapping for field {mapping.field.value}")
        seen.add(mapping.field)
        table.append(mapping)
    return tuple(table)


def field_mapping_to_dict(mapping: FieldMapping) -> Dict[str, Any]:
    return {
        "field": mapping.field.value,
        "categories": [c.value for c in mapping.categories],
        "patterns": [
            {"source_key": p.source_key, "parser": p.parser} for p in mapping.patterns
        ],
        "section": mapping.section.value,
    }


def default_section(item: ContractField) -> BlueprintSection:
    for mapping in DEFAULT_FIELD_MAPPINGS:
        if mapping.field is item:
            return mapping.section
    return BlueprintSection.GENERAL


def find_mapping(
    table: Iterable[FieldMapping], item: ContractField
) -> Optional[FieldMapping]:
    for mapping in table:
        if mapping.field is item:
            return mapping
    return None
