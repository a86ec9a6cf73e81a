"""Condition evaluation against entity instances.

A rule's conditions are AND-ed. Each condition is either a simple value
(equality after placeholder substitution) or an operator map, in which
every operator must pass:

    {"status": "published"}                    # simple
    {"views": {"gte": 10, "lt": 1000}}         # complex (operator map)

The first failing condition short-circuits with a reason that names the
property. Bad condition data never raises; errors raised by the entity
accessor do, since they indicate a broken accessor rather than bad rules.
"""

from __future__ import annotations

__all__ = ["ConditionEvaluator"]

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from data_pdp.access.accessor import EntityAccessor, FieldRegistry
from data_pdp.pdp.matcher import apply_operator, display_value, resolve_operand, values_equal
from data_pdp.pdp.operands import Condition, ConditionSet, Operand, decode_conditions
from data_pdp.pdp.results import ConditionEvaluationResult


class ConditionEvaluator:
    """Evaluates declarative property conditions against one entity.

    Stateless apart from the injected accessor; safe to share across threads.
    """

    def __init__(self, accessor: EntityAccessor | None = None) -> None:
        self._accessor = accessor if accessor is not None else FieldRegistry()

    @property
    def accessor(self) -> EntityAccessor:
        return self._accessor

    def evaluate(
        self,
        conditions: ConditionSet | Mapping[str, Any] | str | None,
        entity: Any,
        principal_id: Any,
        *,
        now: datetime | None = None,
    ) -> ConditionEvaluationResult:
        """Evaluate all conditions (AND logic).

        Args:
            conditions: Decoded ConditionSet, a raw mapping, or JSON text.
            entity: Entity instance to test.
            principal_id: Acting principal, substituted for {UserId}.
            now: Evaluation time for date placeholders (default: now, UTC).

        Returns:
            Match if every condition passes; otherwise the first failure.
        """
        condition_set = decode_conditions(conditions)
        if condition_set is not None and condition_set.is_malformed:
            return ConditionEvaluationResult.no_match(f"Condition evaluation error: {condition_set.error}")

        if condition_set is not None:
            now = now or datetime.now(timezone.utc)
            for condition in condition_set.conditions:
                result = self._evaluate_condition(condition, entity, principal_id, now)
                if not result.is_match:
                    return result

        return ConditionEvaluationResult.match("All conditions matched")

    def evaluate_one(
        self,
        property_name: str,
        expected_value: Any,
        entity: Any,
        principal_id: Any,
        *,
        now: datetime | None = None,
    ) -> ConditionEvaluationResult:
        """Evaluate a single property condition given as a raw value."""
        try:
            operand = Operand.decode(expected_value)
        except TypeError as e:
            return ConditionEvaluationResult.no_match(f"Condition evaluation error: {e}")
        return self._evaluate_condition(
            Condition(property_name, operand),
            entity,
            principal_id,
            now or datetime.now(timezone.utc),
        )

    def _evaluate_condition(
        self,
        condition: Condition,
        entity: Any,
        principal_id: Any,
        now: datetime,
    ) -> ConditionEvaluationResult:
        # Accessor errors propagate to the rule evaluator's guard
        actual = self._accessor.get_value(entity, condition.property_name)

        try:
            if condition.operand.is_operator_map:
                return self._evaluate_operators(condition, actual, principal_id, now)

            expected = resolve_operand(condition.operand, principal_id, now)
            name = condition.property_name
            if actual is None and expected is not None:
                return ConditionEvaluationResult.no_match(
                    f"Property {name} is null but expected {display_value(expected)}"
                )
            if values_equal(actual, expected):
                return ConditionEvaluationResult.match(f"Property {name} matches expected value")
            return ConditionEvaluationResult.no_match(
                f"Property {name} ({display_value(actual)}) does not match expected value "
                f"({display_value(expected)})"
            )
        except Exception as e:
            return ConditionEvaluationResult.no_match(f"Condition evaluation error: {e}")

    def _evaluate_operators(
        self,
        condition: Condition,
        actual: Any,
        principal_id: Any,
        now: datetime,
    ) -> ConditionEvaluationResult:
        """Every operator in the map must pass."""
        for operator_name, operand in condition.operand.value:
            expected = resolve_operand(operand, principal_id, now)
            is_match, detail = apply_operator(operator_name, actual, expected)
            if not is_match:
                return ConditionEvaluationResult.no_match(
                    f"Property {condition.property_name} failed {operator_name} check: {detail}"
                )
        return ConditionEvaluationResult.match(f"Property {condition.property_name} passed all operator checks")
