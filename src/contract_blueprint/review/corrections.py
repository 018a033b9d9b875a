"""
User corrections to extracted blueprint fields.

Corrections are a fixed-key override map keyed by ContractField. They
never overwrite the extraction record: applying them builds a new
blueprint in which the extracted value survives as an alternative.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Union

from ..config.models import BusinessRules
from ..mapping.confidence import ConfidenceAggregator
from ..mapping.field_mappings import DEFAULT_FIELD_MAPPINGS, FieldMapping, find_mapping
from ..models.blueprint import ContractBlueprint, FieldValue, to_plain
from ..models.enums import ContractField, FieldSource
from ..parsers.values import PARSERS, UNPARSED, is_not_specified, parse_capacity


logger = logging.getLogger(__name__)


class InvalidOverrideError(ValueError):
    """Exception raised when an override value cannot be interpreted."""

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field_name = field_name
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "field": self.field_name,
            "value": self.value,
        }


@dataclass(frozen=True)
class FieldOverride:
    """A user-supplied value for one field, already normalized."""
    field: ContractField
    value: Any
    raw_value: Any = None
    user_id: Optional[str] = None
    comment: Optional[str] = None
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value,
            "value": to_plain(self.value),
            "raw_value": to_plain(self.raw_value),
            "user_id": self.user_id,
            "comment": self.comment,
            "created_at": self.created_at,
        }


class CorrectionSet:
    """
    Fixed-key override map.

    Values are normalized with the same parser the field mapping table
    uses for the field, so an override of "5 MW" for rated capacity is
    stored as the module-rounded 4875 kW.
    """

    def __init__(
        self,
        business_rules: Optional[BusinessRules] = None,
        field_mappings: Iterable[FieldMapping] = DEFAULT_FIELD_MAPPINGS,
    ):
        self._rules = business_rules or BusinessRules()
        self._table = tuple(field_mappings)
        self._overrides: Dict[ContractField, FieldOverride] = {}

    def _parser_for(self, item: ContractField) -> Optional[Callable[[Any], Any]]:
        mapping = find_mapping(self._table, item)
        if mapping is None or mapping.patterns[0].parser is None:
            return None
        name = mapping.patterns[0].parser
        if name == "capacity":
            return partial(parse_capacity, module_size=self._rules.module_size_kw)
        return PARSERS[name]

    def set(
        self,
        item: Union[ContractField, str],
        value: Any,
        user_id: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> FieldOverride:
        """
        Record an override for a field, replacing any earlier one.

        Raises:
            InvalidOverrideError: If the field is unknown or the value
                cannot be parsed for it.
        """
        if not isinstance(item, ContractField):
            try:
                item = ContractField(item)
            except ValueError:
                raise InvalidOverrideError(f"Unknown field: {item!r}", str(item), value) from None

        if is_not_specified(value):
            raise InvalidOverrideError(
                f"An override for {item.value} needs a value", item.value, value
            )
        parser = self._parser_for(item)
        normalized = parser(value) if parser else value
        if normalized is UNPARSED:
            raise InvalidOverrideError(
                f"Cannot interpret {value!r} as {item.value}", item.value, value
            )

        override = FieldOverride(
            field=item,
            value=normalized,
            raw_value=value,
            user_id=user_id,
            comment=comment,
        )
        self._overrides[item] = override
        return override

    def remove(self, item: ContractField) -> None:
        self._overrides.pop(item, None)

    def get(self, item: ContractField) -> Optional[FieldOverride]:
        return self._overrides.get(item)

    def __contains__(self, item: ContractField) -> bool:
        return item in self._overrides

    def __iter__(self) -> Iterator[FieldOverride]:
        return iter(self._overrides.values())

    def __len__(self) -> int:
        return len(self._overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {item.value: o.to_dict() for item, o in self._overrides.items()}

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        user_id: Optional[str] = None,
        business_rules: Optional[BusinessRules] = None,
        field_mappings: Iterable[FieldMapping] = DEFAULT_FIELD_MAPPINGS,
    ) -> "CorrectionSet":
        """Build a correction set from a plain {field: value} map."""
        corrections = cls(business_rules, field_mappings)
        for name, value in data.items():
            corrections.set(name, value, user_id=user_id)
        return corrections


def apply_overrides(
    blueprint: ContractBlueprint,
    overrides: Iterable[FieldOverride],
    confidence: Optional[ConfidenceAggregator] = None,
) -> ContractBlueprint:
    """
    Build a corrected copy of a blueprint.

    Overridden fields carry source user_override; the value they replace
    is kept as the first alternative. The input blueprint is unchanged.

    Args:
        blueprint: The blueprint to correct.
        overrides: FieldOverride records, e.g. a CorrectionSet.
        confidence: Aggregator used to recompute the overall confidence.

    Returns:
        A new ContractBlueprint.
    """
    confidence = confidence or ConfidenceAggregator()
    fields = dict(blueprint.fields)
    applied = 0

    for override in overrides:
        original = fields.get(override.field)
        alternatives = (original,) if original is not None else ()
        fields[override.field] = FieldValue(
            field=override.field,
            value=override.value,
            source=FieldSource.USER_OVERRIDE,
            confidence=1.0,
            alternatives=alternatives,
            note=override.comment or (
                f"Corrected by {override.user_id}" if override.user_id else "Corrected by user"
            ),
        )
        applied += 1

    logger.info(f"Applied {applied} overrides to blueprint {blueprint.id}")
    return replace(
        blueprint,
        fields=fields,
        overall_confidence=confidence.overall(fields.values()),
    )
