"""Evaluation result value objects.

Results are created fresh for every call and never mutated. Every result
carries a human-readable reason so callers can log or display why a
decision was made.
"""

from __future__ import annotations

__all__ = [
    "ConditionEvaluationResult",
    "PermissionEvaluationResult",
    "RuleEvaluationResult",
    "ScopeEvaluationResult",
]

from dataclasses import dataclass

from data_pdp.pdp.decision import Decision
from data_pdp.pdp.rules import PermissionRule


@dataclass(frozen=True, slots=True)
class ConditionEvaluationResult:
    """Outcome of evaluating one rule's conditions against an entity."""

    is_match: bool
    reason: str

    @classmethod
    def match(cls, reason: str) -> "ConditionEvaluationResult":
        return cls(True, reason)

    @classmethod
    def no_match(cls, reason: str) -> "ConditionEvaluationResult":
        return cls(False, reason)


@dataclass(frozen=True, slots=True)
class ScopeEvaluationResult:
    """Outcome of resolving one rule's scope against an entity."""

    is_match: bool
    reason: str

    @classmethod
    def match(cls, reason: str) -> "ScopeEvaluationResult":
        return cls(True, reason)

    @classmethod
    def no_match(cls, reason: str) -> "ScopeEvaluationResult":
        return cls(False, reason)


@dataclass(frozen=True, slots=True)
class RuleEvaluationResult:
    """Trace entry for one inspected rule.

    Attributes:
        rule: The inspected rule.
        is_match: True if scope and conditions both matched.
        reason: Why the rule matched or was skipped.
        error: Error message if inspecting the rule failed.
    """

    rule: PermissionRule
    is_match: bool
    reason: str
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PermissionEvaluationResult:
    """Final decision for one (principal, entity, operation) evaluation.

    Attributes:
        is_allowed: The decision.
        reason: Human-readable explanation.
        applied_rules: The deciding rule (empty on default deny or error).
        trace: Every inspected rule, in evaluation order.
        error: Set when evaluation failed and the result is a fail-closed deny.
    """

    is_allowed: bool
    reason: str
    applied_rules: tuple[PermissionRule, ...] = ()
    trace: tuple[RuleEvaluationResult, ...] = ()
    error: str | None = None

    @property
    def decision(self) -> Decision:
        return Decision.from_allowed(self.is_allowed)

    @property
    def applied_rule_ids(self) -> list[str]:
        return [rule.id for rule in self.applied_rules if rule.id is not None]

    @classmethod
    def deny(
        cls,
        reason: str,
        *,
        trace: tuple[RuleEvaluationResult, ...] = (),
        error: str | None = None,
    ) -> "PermissionEvaluationResult":
        return cls(False, reason, (), trace, error)
