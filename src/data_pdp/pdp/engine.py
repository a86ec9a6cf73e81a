"""Rule evaluator - decide one (principal, entity, operation) request.

Evaluation flow:
1. Keep rules that are effective at `now` and govern the operation
2. None left → DENY ("no applicable rules")
3. Order by priority, highest first (stable: ties keep input order)
4. For each rule: owner check → scope → conditions
5. First matching rule decides (its is_allowed is the decision)
6. No match → DENY ("no matching rules, default deny")

Design principles:
1. First match wins; evaluation stops at the first matching rule
2. Default to DENY if no rule matches (zero trust)
3. Any unexpected error becomes a DENY carrying the error (fail closed)
4. Every inspected rule is recorded in the trace, in evaluation order

The evaluator never logs and never raises for evaluation failures;
callers read `reason`, `trace` and `error` off the result.
"""

from __future__ import annotations

__all__ = [
    "RuleEvaluator",
    "applicable_rules",
]

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from data_pdp.access.accessor import EntityAccessor, FieldRegistry, identifiers_equal
from data_pdp.access.hierarchy import HierarchyFallback, HierarchyResolver
from data_pdp.constants import REASON_DEFAULT_DENY, REASON_NO_APPLICABLE_RULES
from data_pdp.pdp.conditions import ConditionEvaluator
from data_pdp.pdp.results import PermissionEvaluationResult, RuleEvaluationResult
from data_pdp.pdp.rules import Operation, PermissionRule
from data_pdp.pdp.scope import ScopeResolver


def applicable_rules(
    rules: Iterable[PermissionRule],
    operation: Operation | str,
    now: datetime,
) -> list[PermissionRule]:
    """Effective rules for an operation, highest priority first.

    sorted() is stable, so rules with equal priority keep their input order.
    """
    operation = Operation.parse(operation)
    candidates = [rule for rule in rules if rule.operation is operation and rule.is_effective(now)]
    return sorted(candidates, key=lambda rule: -rule.priority)


class RuleEvaluator:
    """Evaluates an ordered rule set for one entity and one operation.

    Stateless apart from its collaborators; safe to share across threads.

    Attributes:
        conditions: ConditionEvaluator used for rule conditions.
        scopes: ScopeResolver used for rule scopes.
    """

    def __init__(
        self,
        accessor: EntityAccessor | None = None,
        hierarchy: HierarchyResolver | None = None,
        hierarchy_fallback: HierarchyFallback = "match",
    ) -> None:
        """Initialize the evaluator.

        Args:
            accessor: Entity field accessor shared by conditions and scopes.
            hierarchy: Optional department/organization resolver.
            hierarchy_fallback: Outcome for hierarchy scopes with no resolver.
        """
        accessor = accessor if accessor is not None else FieldRegistry()
        self.conditions = ConditionEvaluator(accessor)
        self.scopes = ScopeResolver(accessor, hierarchy, hierarchy_fallback)

    def evaluate(
        self,
        rules: Iterable[PermissionRule],
        entity: Any,
        principal_id: Any,
        operation: Operation | str,
        *,
        now: datetime | None = None,
    ) -> PermissionEvaluationResult:
        """Evaluate rules against an entity.

        Args:
            rules: Candidate rules (any order; filtered and sorted here).
            entity: Entity instance the operation targets.
            principal_id: Acting principal.
            operation: Requested operation (Operation or its name).
            now: Evaluation time (default: now, UTC).

        Returns:
            PermissionEvaluationResult. Never raises; failures become a deny
            with `error` set.
        """
        trace: list[RuleEvaluationResult] = []
        try:
            now = now or datetime.now(timezone.utc)
            candidates = applicable_rules(rules, operation, now)
            if not candidates:
                return PermissionEvaluationResult.deny(REASON_NO_APPLICABLE_RULES)

            for rule in candidates:
                entry = self._inspect(rule, entity, principal_id, now)
                trace.append(entry)
                if entry.is_match:
                    verb = "Allowed" if rule.is_allowed else "Denied"
                    return PermissionEvaluationResult(
                        is_allowed=rule.is_allowed,
                        reason=f"{verb} by rule: {rule.id}",
                        applied_rules=(rule,),
                        trace=tuple(trace),
                    )

            return PermissionEvaluationResult.deny(REASON_DEFAULT_DENY, trace=tuple(trace))

        except Exception as e:
            # Cannot trust a partial evaluation - fail closed
            message = f"{type(e).__name__}: {e}"
            return PermissionEvaluationResult.deny(
                f"Evaluation error: {message}",
                trace=tuple(trace),
                error=message,
            )

    def _inspect(
        self,
        rule: PermissionRule,
        entity: Any,
        principal_id: Any,
        now: datetime,
    ) -> RuleEvaluationResult:
        """Check one rule: owner, then scope, then conditions."""
        if not identifiers_equal(rule.owner_user_id, principal_id):
            return RuleEvaluationResult(rule, False, "User ID mismatch")

        scope_result = self.scopes.resolve_scope(rule.scope, entity, principal_id)
        if not scope_result.is_match:
            return RuleEvaluationResult(rule, False, f"Scope mismatch: {scope_result.reason}")

        if rule.conditions is not None:
            condition_result = self.conditions.evaluate(rule.conditions, entity, principal_id, now=now)
            if not condition_result.is_match:
                return RuleEvaluationResult(rule, False, f"Condition mismatch: {condition_result.reason}")

        return RuleEvaluationResult(rule, True, "All criteria matched")
