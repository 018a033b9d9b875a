"""
Business defaulting and validation.

Safe operational fields get conservative, clearly marked defaults.
Fields that gate commercial terms (contract term, customer name, base
rate) are never defaulted: they stay absent and are listed for review.
"""

import logging
import math
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from ..config.models import BusinessRules
from ..models.blueprint import ContractBlueprint, FieldValue, ValidationReport
from ..models.enums import (
    ComponentType,
    ContractField,
    FieldSource,
    InstallationType,
    SolutionType,
    VoltageLevel,
)
from .confidence import ConfidenceAggregator


logger = logging.getLogger(__name__)

REVIEW_REQUIRED_FIELDS = (
    ContractField.CUSTOMER_NAME,
    ContractField.CONTRACT_TERM,
    ContractField.BASE_RATE,
    ContractField.RATED_CAPACITY,
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class BlueprintFinalizer:
    """Fills safe defaults into a consolidated blueprint and validates it."""

    def __init__(
        self,
        business_rules: Optional[BusinessRules] = None,
        confidence: Optional[ConfidenceAggregator] = None,
    ):
        self._rules = business_rules or BusinessRules()
        self._confidence = confidence or ConfidenceAggregator()

    def finalize(
        self, blueprint: ContractBlueprint
    ) -> Tuple[ContractBlueprint, ValidationReport]:
        """
        Apply defaults and validate.

        Args:
            blueprint: Consolidated blueprint; left untouched.

        Returns:
            The finalized blueprint and its validation report.
        """
        fields = dict(blueprint.fields)
        rejected_rate = self._reject_implausible_base_rate(fields)
        self._apply_defaults(fields)

        finalized = replace(
            blueprint,
            fields=fields,
            overall_confidence=self._confidence.overall(fields.values()),
        )
        report = self.validate(finalized)
        if rejected_rate is not None:
            report.add_warning(
                ContractField.BASE_RATE,
                "base_rate_below_floor",
                f"Extracted base rate {rejected_rate.value} is below the sanity floor "
                f"{self._rules.base_rate_floor} and was discarded",
            )

        logger.info(
            f"Finalized blueprint {finalized.id}: {len(report.errors)} errors, "
            f"{len(report.warnings)} warnings, "
            f"{len(report.review_required)} fields need review"
        )
        return finalized, report

    def refinalize(
        self, blueprint: ContractBlueprint
    ) -> Tuple[ContractBlueprint, ValidationReport]:
        """
        Re-derive defaults after corrections and validate.

        Defaulted fields are dropped and filled again, so values derived
        from a corrected capacity or solution type follow the correction.
        Extracted and user-supplied fields are kept.
        """
        fields = {
            item: value
            for item, value in blueprint.fields.items()
            if value.source is not FieldSource.DEFAULT
        }
        return self.finalize(replace(blueprint, fields=fields))

    def _reject_implausible_base_rate(
        self, fields: Dict[ContractField, FieldValue]
    ) -> Optional[FieldValue]:
        rate = fields.get(ContractField.BASE_RATE)
        if rate is None or rate.source is FieldSource.USER_OVERRIDE:
            return None
        if _is_number(rate.value) and rate.value < self._rules.base_rate_floor:
            logger.warning(
                f"Discarding base rate {rate.value} from {rate.document_id}: "
                f"below floor {self._rules.base_rate_floor}"
            )
            del fields[ContractField.BASE_RATE]
            return rate
        return None

    def _apply_defaults(self, fields: Dict[ContractField, FieldValue]) -> None:
        rules = self._rules

        def default(item: ContractField, value: Any, note: str) -> None:
            if item not in fields:
                fields[item] = FieldValue(
                    field=item,
                    value=value,
                    source=FieldSource.DEFAULT,
                    confidence=0.0,
                    note=note,
                )

        solution = fields.get(ContractField.SOLUTION_TYPE)
        solution_name = ""
        if solution is not None and isinstance(solution.value, SolutionType):
            solution_name = solution.value.value

        default(ContractField.GRID_PARALLEL_VOLTAGE, VoltageLevel(rules.default_voltage),
                f"Default voltage {rules.default_voltage}")
        default(ContractField.INSTALLATION_TYPE, InstallationType(rules.default_installation),
                f"Default installation {rules.default_installation}")
        default(ContractField.OUTPUT_WARRANTY_PERCENT, rules.default_output_warranty,
                f"Default output warranty {rules.default_output_warranty}%")
        default(ContractField.EFFICIENCY_WARRANTY_PERCENT, rules.default_efficiency_warranty,
                f"Default efficiency warranty {rules.default_efficiency_warranty}%")

        if "Microgrid" in solution_name:
            default(ContractField.RELIABILITY_LEVEL, rules.reliability_microgrid,
                    "Default reliability for microgrid solutions")
        else:
            default(ContractField.RELIABILITY_LEVEL, rules.reliability_standard,
                    "Default reliability")

        components = [ComponentType(c) for c in rules.default_components]
        if "Battery" in solution_name and ComponentType.BATTERY_STORAGE not in components:
            components.append(ComponentType.BATTERY_STORAGE)
        default(ContractField.SELECTED_COMPONENTS, components, "Default component selection")

        capacity = fields.get(ContractField.RATED_CAPACITY)
        if capacity is None or not _is_number(capacity.value) or capacity.value <= 0:
            return
        kw = capacity.value
        note = f"Derived from rated capacity {kw} kW"
        default(ContractField.NUMBER_OF_SERVERS, math.ceil(kw / rules.module_size_kw), note)
        default(ContractField.MIN_DEMAND_KW, _round_half_up(kw * rules.min_demand_ratio), note)
        default(ContractField.MAX_DEMAND_KW, kw, note)
        default(ContractField.GUARANTEED_CRITICAL_OUTPUT,
                _round_half_up(kw * rules.critical_output_ratio), note)

    def validate(self, blueprint: ContractBlueprint) -> ValidationReport:
        """
        Check domain invariants without changing anything.

        Errors block contract creation; warnings are informational.
        """
        rules = self._rules
        report = ValidationReport()
        value = blueprint.value

        for item in REVIEW_REQUIRED_FIELDS:
            if not blueprint.has(item):
                report.require_review(item)

        capacity = value(ContractField.RATED_CAPACITY)
        if capacity is not None:
            if not _is_number(capacity) or capacity <= 0:
                report.add_error(ContractField.RATED_CAPACITY, "capacity_not_positive",
                                 "Rated capacity must be a positive number")
                capacity = None
            elif capacity % rules.module_size_kw != 0:
                report.add_error(
                    ContractField.RATED_CAPACITY, "capacity_not_module_multiple",
                    f"Rated capacity must be a multiple of {rules.module_size_kw} kW",
                )

        base_rate = value(ContractField.BASE_RATE)
        if base_rate is not None and (not _is_number(base_rate) or base_rate <= 0):
            report.add_error(ContractField.BASE_RATE, "base_rate_not_positive",
                             "Base rate must be greater than 0")

        escalation = value(ContractField.ANNUAL_ESCALATION)
        if _is_number(escalation) and not (
            rules.escalation_min <= escalation <= rules.escalation_max
        ):
            report.add_warning(
                ContractField.ANNUAL_ESCALATION, "escalation_out_of_range",
                f"Annual escalation typically ranges from {rules.escalation_min}% "
                f"to {rules.escalation_max}%",
            )

        term = value(ContractField.CONTRACT_TERM)
        if term is not None and term not in rules.standard_terms:
            terms = ", ".join(str(t) for t in rules.standard_terms)
            report.add_warning(ContractField.CONTRACT_TERM, "nonstandard_term",
                               f"Contract term is typically one of {terms} years")

        for item in (ContractField.OUTPUT_WARRANTY_PERCENT,
                     ContractField.EFFICIENCY_WARRANTY_PERCENT):
            percent = value(item)
            if percent is not None and (not _is_number(percent) or not 0 < percent <= 100):
                report.add_error(item, "percentage_out_of_range",
                                 f"{item.value} must be within (0, 100]")

        min_demand = value(ContractField.MIN_DEMAND_KW)
        max_demand = value(ContractField.MAX_DEMAND_KW)
        if _is_number(min_demand) and _is_number(max_demand) and min_demand > max_demand:
            report.add_warning(ContractField.MIN_DEMAND_KW, "demand_range_inverted",
                               "Minimum demand exceeds maximum demand")

        critical = value(ContractField.GUARANTEED_CRITICAL_OUTPUT)
        if _is_number(critical) and _is_number(capacity) and critical > capacity:
            report.add_error(
                ContractField.GUARANTEED_CRITICAL_OUTPUT, "critical_output_exceeds_capacity",
                "Guaranteed critical output cannot exceed rated capacity",
            )

        return report
