"""Value and payload parsers for the Contract Blueprint pipeline."""

from .values import (
    PARSERS,
    UNPARSED,
    get_parser,
    is_not_specified,
    is_unparsed,
    parse_capacity,
    parse_components,
    parse_contract_term,
    parse_currency,
    parse_date,
    parse_installation_type,
    parse_integer,
    parse_number,
    parse_percentage,
    parse_solution_type,
    parse_text,
    parse_voltage,
    round_to_module,
)
from .payload import AnalysisPayloadParser, normalize_confidence, parse_analysis_payload
from .serialization import (
    AnalysisSerializer,
    blueprint_from_dict,
    deserialize_analysis,
    serialize_analysis,
)

__all__ = [
    "PARSERS",
    "UNPARSED",
    "get_parser",
    "is_not_specified",
    "is_unparsed",
    "parse_capacity",
    "parse_components",
    "parse_contract_term",
    "parse_currency",
    "parse_date",
    "parse_installation_type",
    "parse_integer",
    "parse_number",
    "parse_percentage",
    "parse_solution_type",
    "parse_text",
    "parse_voltage",
    "round_to_module",
    "AnalysisPayloadParser",
    "normalize_confidence",
    "parse_analysis_payload",
    "AnalysisSerializer",
    "blueprint_from_dict",
    "deserialize_analysis",
    "serialize_analysis",
]
