"""
Value parsers for raw extraction output.

Every parser is a pure, total function: it never raises and never
consults external state. A value that cannot be interpreted yields the
UNPARSED sentinel so the mapper can move on to its next extraction
attempt. Parsers never substitute defaults; defaulting is the
finalizer's job.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from ..models.enums import ComponentType, InstallationType, SolutionType, VoltageLevel


DEFAULT_MODULE_SIZE_KW = 325

NOT_SPECIFIED_MARKERS = frozenset({
    "",
    "not specified",
    "n/a",
    "na",
    "none",
    "null",
    "unknown",
    "not found",
    "not provided",
})


class _Unparsed:
    """Falsy singleton returned by parsers that cannot interpret a value."""

    _instance: Optional["_Unparsed"] = None

    def __new__(cls) -> "_Unparsed":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNPARSED"

    def __reduce__(self):
        return (_Unparsed, ())


UNPARSED = _Unparsed()


def is_unparsed(value: Any) -> bool:
    """Check whether a parser result is the UNPARSED sentinel."""
    return value is UNPARSED


def is_not_specified(value: Any) -> bool:
    """
    Check whether a raw value means "the backend looked and found nothing".

    Covers None, blank strings and the usual marker phrases such as
    "NOT SPECIFIED" or "N/A" (case-insensitive).
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in NOT_SPECIFIED_MARKERS
    if isinstance(value, (list, tuple, dict, set)) and not value:
        return True
    return False


_NUMBER_RE = re.compile(r"[-+]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|[-+]?\.\d+")
_CURRENCY_RE = re.compile(r"(-)?\s*\$?\s*(-)?\s*((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|\.\d+)")
_CAPACITY_UNIT_RE = re.compile(
    r"((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?)\s*(kw|kilowatts?|mw|megawatts?)\b",
    re.IGNORECASE,
)
_PLAIN_NUMBER_RE = re.compile(r"^\s*((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?)\s*$")
_TERM_RE = re.compile(r"(?<!\d)(\d{1,4})\s*-?\s*(?:years?|yrs?)\b", re.IGNORECASE)
_VOLTAGE_RE = re.compile(r"((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?)\s*(kv|v)?", re.IGNORECASE)


def _finite(number: float) -> Any:
    if math.isnan(number) or math.isinf(number):
        return UNPARSED
    return number


def _real(value: Any) -> Any:
    # ints past the float range overflow
    try:
        return _finite(float(value))
    except OverflowError:
        return UNPARSED


def _to_float(text: str) -> float:
    return float(text.replace(",", ""))


def parse_number(value: Any) -> Any:
    """Parse a generic number, ignoring surrounding unit text ("12.5 kW" -> 12.5)."""
    if isinstance(value, bool):
        return UNPARSED
    if isinstance(value, (int, float)):
        return _real(value)
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED
    match = _NUMBER_RE.search(value)
    if not match:
        return UNPARSED
    return _finite(_to_float(match.group(0)))


def parse_integer(value: Any) -> Any:
    """Parse a positive whole count such as a number of servers."""
    number = parse_number(value)
    if number is UNPARSED or number <= 0:
        return UNPARSED
    return int(math.floor(number + 0.5))


def parse_currency(value: Any) -> Any:
    """
    Parse a currency amount.

    Accepts "$0.0847", "0.0847", "$1,250.50", "-$0.05" and bare numbers.
    """
    if isinstance(value, bool):
        return UNPARSED
    if isinstance(value, (int, float)):
        return _real(value)
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED
    match = _CURRENCY_RE.search(value)
    if not match:
        return UNPARSED
    amount = _finite(_to_float(match.group(3)))
    if amount is UNPARSED or not (match.group(1) or match.group(2)):
        return amount
    return -amount


def parse_percentage(value: Any) -> Any:
    """Parse a percentage ("3.2%", "3.2", 3.2) into its numeric value."""
    return parse_number(value)


def round_to_module(kw: float, module_size: int = DEFAULT_MODULE_SIZE_KW) -> int:
    """Round half-up to the nearest module multiple, never below one module."""
    modules = int(math.floor(kw / module_size + 0.5))
    return max(1, modules) * module_size


def parse_capacity(value: Any, module_size: int = DEFAULT_MODULE_SIZE_KW) -> Any:
    """
    Parse a system capacity into kW rounded to a module-size multiple.

    5000, "5000", "5,000 kW" and "5 MW" all describe the same magnitude
    and parse to the same integer. Non-positive capacities are rejected.
    """
    if isinstance(value, bool):
        return UNPARSED
    if isinstance(value, (int, float)):
        kw = _real(value)
    elif isinstance(value, str) and not is_not_specified(value):
        match = _CAPACITY_UNIT_RE.search(value)
        if match:
            kw = _to_float(match.group(1))
            if match.group(2).lower().startswith("m"):
                kw *= 1000
        else:
            plain = _PLAIN_NUMBER_RE.match(value)
            kw = _to_float(plain.group(1)) if plain else UNPARSED
    else:
        return UNPARSED

    if kw is not UNPARSED:
        kw = _finite(kw)
    if kw is UNPARSED or kw <= 0:
        return UNPARSED
    return round_to_module(kw, module_size)


def parse_contract_term(value: Any) -> Any:
    """Parse a contract term in years (15, "15", "15 years", "15-year")."""
    if isinstance(value, bool):
        return UNPARSED
    if isinstance(value, (int, float)):
        if _real(value) is UNPARSED or value <= 0 or value != int(value):
            return UNPARSED
        return int(value)
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED

    plain = re.match(r"^\s*(\d{1,4})\s*$", value)
    match = plain or _TERM_RE.search(value)
    if not match:
        return UNPARSED
    years = int(match.group(1))
    return years if years > 0 else UNPARSED


_VOLTAGE_BY_VOLTS = {
    208: VoltageLevel.V208,
    480: VoltageLevel.V480,
    4160: VoltageLevel.KV4_16,
    13200: VoltageLevel.KV13_2,
    34500: VoltageLevel.KV34_5,
}


def parse_voltage(value: Any) -> Any:
    """
    Parse a voltage label or numeric code into a VoltageLevel.

    Numbers below 100 are read as kV (4.16, 13.2, 34.5). Anything that is
    not one of the standard levels is UNPARSED.
    """
    if isinstance(value, VoltageLevel):
        return value
    if isinstance(value, bool):
        return UNPARSED

    kilovolts = False
    if isinstance(value, (int, float)):
        number = _real(value)
    elif isinstance(value, str) and not is_not_specified(value):
        for level in VoltageLevel:
            if value.strip().lower() == level.value.lower():
                return level
        match = _VOLTAGE_RE.search(value)
        if not match:
            return UNPARSED
        number = _finite(_to_float(match.group(1)))
        kilovolts = (match.group(2) or "").lower() == "kv"
    else:
        return UNPARSED

    if number is UNPARSED or number <= 0:
        return UNPARSED
    volts = _finite(number * 1000 if kilovolts or number < 100 else number)
    if volts is UNPARSED:
        return UNPARSED
    return _VOLTAGE_BY_VOLTS.get(int(round(volts)), UNPARSED)


_DATE_FORMATS = (
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)


def parse_date(value: Any) -> Any:
    """Parse a date into an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED

    text = value.strip()
    iso = re.match(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$", text)
    if iso:
        text = iso.group(1)
    text = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", text)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return UNPARSED


def parse_text(value: Any) -> Any:
    """Normalize a free-text value (collapse whitespace, reject markers)."""
    if isinstance(value, bool):
        return UNPARSED
    if isinstance(value, (int, float)):
        return str(value) if _real(value) is not UNPARSED else UNPARSED
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED
    return " ".join(value.split())


def parse_solution_type(value: Any) -> Any:
    """Map a solution description onto a SolutionType."""
    if isinstance(value, SolutionType):
        return value
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED

    text = value.strip().lower()
    for solution in SolutionType:
        if text == solution.value.lower():
            return solution
    if "battery" in text or "bess" in text or "storage" in text:
        return SolutionType.POWER_PURCHASE_BATTERY
    if "microgrid" in text or text == "mg":
        if "unconstrained" in text:
            return SolutionType.MICROGRID_UNCONSTRAINED
        return SolutionType.MICROGRID_CONSTRAINED
    if "power purchase" in text or text in ("pp", "ppa"):
        return SolutionType.POWER_PURCHASE_STANDARD
    return UNPARSED


_INSTALLATION_KEYWORDS = (
    ("pes", InstallationType.PES),
    ("stack", InstallationType.STACKED),
    ("indoor", InstallationType.INDOOR),
    ("outdoor", InstallationType.OUTDOOR),
    ("ground", InstallationType.GROUND),
)


def parse_installation_type(value: Any) -> Any:
    """Map an installation description onto an InstallationType."""
    if isinstance(value, InstallationType):
        return value
    if not isinstance(value, str) or is_not_specified(value):
        return UNPARSED

    text = value.strip().lower()
    for installation in InstallationType:
        if text == installation.value.lower():
            return installation
    for keyword, installation in _INSTALLATION_KEYWORDS:
        if keyword in text:
            return installation
    return UNPARSED


_COMPONENT_KEYWORDS = (
    ("renewable", ComponentType.RENEWABLE_INTEGRATION),
    ("advanced", ComponentType.ADVANCED_CONTROLS),
    ("control", ComponentType.ADVANCED_CONTROLS),
    ("utility", ComponentType.UTILITY_CONNECTIONS),
    ("battery", ComponentType.BATTERY_STORAGE),
    ("storage", ComponentType.BATTERY_STORAGE),
    ("solar", ComponentType.SOLAR),
    ("wind", ComponentType.WIND),
)


def _component(item: Any) -> Optional[ComponentType]:
    if isinstance(item, ComponentType):
        return item
    if not isinstance(item, str):
        return None
    text = item.strip()
    for component in ComponentType:
        if text.lower() == component.value.lower():
            return component
    for keyword, component in _COMPONENT_KEYWORDS:
        if keyword in text.lower():
            return component
    return None


def parse_components(value: Any) -> Any:
    """
    Parse selected components from a list or a delimited string.

    Returns a de-duplicated list in first-seen order.
    """
    if isinstance(value, str):
        if is_not_specified(value):
            return UNPARSED
        items = re.split(r",|;|/|\band\b", value)
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return UNPARSED

    components: List[ComponentType] = []
    for item in items:
        component = _component(item)
        if component is not None and component not in components:
            components.append(component)
    return components or UNPARSED


PARSERS: Dict[str, Callable[[Any], Any]] = {
    "text": parse_text,
    "number": parse_number,
    "integer": parse_integer,
    "currency": parse_currency,
    "percentage": parse_percentage,
    "capacity": parse_capacity,
    "contract_term": parse_contract_term,
    "voltage": parse_voltage,
    "date": parse_date,
    "solution_type": parse_solution_type,
    "installation_type": parse_installation_type,
    "components": parse_components,
}


def get_parser(name: str) -> Callable[[Any], Any]:
    """Look up a parser by its registry name."""
    try:
        return PARSERS[name]
    except KeyError:
        raise KeyError(f"Unknown value parser: {name}") from None
