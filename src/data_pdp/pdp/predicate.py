"""Predicate compilation for bulk filtering.

Compiles a principal's rules for one operation into a Predicate over an
entity type. The predicate is callable for in-memory filtering and exposes
an expression tree that storage layers translate into their own filters
(see sql.py for SQLAlchemy).

Expression nodes:
    Constant(value)            - true / false
    FieldEquals(field, value)  - entity field equals value (string forms)
    AnyOf(operands)            - OR
    AllOf(operands)            - AND
    Not(operand)               - negation

Nodes carry no entity binding; the entity is supplied when the tree is
evaluated or translated, so trees from different rules combine directly.

Compilation (first-match semantics, priority order):
- allow rule:  contributes  scope_body AND NOT (higher-priority deny bodies)
- deny rule:   its scope body is added to the exclusion for lower rules
- conditions:  not folded; allow rules contribute their scope body only,
               conditional deny rules are skipped (callers post-filter)
- failures:    an allow rule degrades to false, a deny rule excludes
               everything below it; never a constant-true allow
"""

from __future__ import annotations

__all__ = [
    "FALSE",
    "TRUE",
    "AllOf",
    "AnyOf",
    "Constant",
    "Expression",
    "FieldEquals",
    "Not",
    "Predicate",
    "PredicateCompiler",
    "all_of",
    "any_of",
    "evaluate_expression",
    "negate",
    "render_expression",
]

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

from data_pdp.access.accessor import EntityAccessor, FieldRegistry, identifiers_equal
from data_pdp.access.hierarchy import HierarchyFallback, HierarchyPredicateProvider, HierarchyResolver
from data_pdp.exceptions import PredicateCompilationError
from data_pdp.pdp.engine import applicable_rules
from data_pdp.pdp.rules import Operation, PermissionRule, Scope

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

T = TypeVar("T")

# =============================================================================
# Expression tree
# =============================================================================


@dataclass(frozen=True, slots=True)
class Constant:
    value: bool


@dataclass(frozen=True, slots=True)
class FieldEquals:
    field: str
    value: Any


@dataclass(frozen=True, slots=True)
class AnyOf:
    operands: tuple["Expression", ...]


@dataclass(frozen=True, slots=True)
class AllOf:
    operands: tuple["Expression", ...]


@dataclass(frozen=True, slots=True)
class Not:
    operand: "Expression"


Expression = Union[Constant, FieldEquals, AnyOf, AllOf, Not]

TRUE = Constant(True)
FALSE = Constant(False)


def any_of(*expressions: Expression) -> Expression:
    """OR with constant folding and flattening."""
    operands: list[Expression] = []
    for expression in expressions:
        if expression == TRUE:
            return TRUE
        if expression == FALSE:
            continue
        if isinstance(expression, AnyOf):
            operands.extend(expression.operands)
        else:
            operands.append(expression)
    if not operands:
        return FALSE
    if len(operands) == 1:
        return operands[0]
    return AnyOf(tuple(operands))


def all_of(*expressions: Expression) -> Expression:
    """AND with constant folding and flattening."""
    operands: list[Expression] = []
    for expression in expressions:
        if expression == FALSE:
            return FALSE
        if expression == TRUE:
            continue
        if isinstance(expression, AllOf):
            operands.extend(expression.operands)
        else:
            operands.append(expression)
    if not operands:
        return TRUE
    if len(operands) == 1:
        return operands[0]
    return AllOf(tuple(operands))


def negate(expression: Expression) -> Expression:
    if isinstance(expression, Constant):
        return Constant(not expression.value)
    if isinstance(expression, Not):
        return expression.operand
    return Not(expression)


def evaluate_expression(expression: Expression, entity: Any, accessor: EntityAccessor) -> bool:
    """Evaluate an expression tree against one entity in memory."""
    if isinstance(expression, Constant):
        return expression.value
    if isinstance(expression, FieldEquals):
        return identifiers_equal(accessor.get_value(entity, expression.field), expression.value)
    if isinstance(expression, AnyOf):
        return any(evaluate_expression(operand, entity, accessor) for operand in expression.operands)
    if isinstance(expression, AllOf):
        return all(evaluate_expression(operand, entity, accessor) for operand in expression.operands)
    if isinstance(expression, Not):
        return not evaluate_expression(expression.operand, entity, accessor)
    raise TypeError(f"Unsupported expression node: {type(expression).__name__}")


def render_expression(expression: Expression) -> str:
    """Human-readable form, e.g. "(created_by == 'u1' OR true)"."""
    if isinstance(expression, Constant):
        return "true" if expression.value else "false"
    if isinstance(expression, FieldEquals):
        return f"{expression.field} == {expression.value!r}"
    if isinstance(expression, AnyOf):
        return "(" + " OR ".join(render_expression(operand) for operand in expression.operands) + ")"
    if isinstance(expression, AllOf):
        return "(" + " AND ".join(render_expression(operand) for operand in expression.operands) + ")"
    if isinstance(expression, Not):
        return f"NOT {render_expression(expression.operand)}"
    raise TypeError(f"Unsupported expression node: {type(expression).__name__}")


# =============================================================================
# Predicate
# =============================================================================


@dataclass(frozen=True)
class Predicate(Generic[T]):
    """A composable boolean test over entities of one type.

    Attributes:
        entity_type: Type the predicate was compiled for.
        expression: Introspectable expression tree.
        accessor: Field accessor used for in-memory evaluation.
    """

    entity_type: type
    expression: Expression
    accessor: EntityAccessor = field(default_factory=FieldRegistry, compare=False, repr=False)

    def __call__(self, entity: T) -> bool:
        """True if the entity passes; an entity that cannot be read fails."""
        try:
            return evaluate_expression(self.expression, entity, self.accessor)
        except Exception:
            # Same outcome as the rule evaluator's guard: deny
            return False

    def filter(self, entities: Iterable[T]) -> list[T]:
        return [entity for entity in entities if self(entity)]

    @property
    def is_always_false(self) -> bool:
        return self.expression == FALSE

    @property
    def is_always_true(self) -> bool:
        return self.expression == TRUE

    def _check_compatible(self, other: "Predicate[T]") -> None:
        if other.entity_type is not self.entity_type:
            raise TypeError(
                f"Cannot combine predicates over {self.entity_type.__name__} and {other.entity_type.__name__}"
            )

    def __or__(self, other: "Predicate[T]") -> "Predicate[T]":
        if not isinstance(other, Predicate):
            return NotImplemented
        self._check_compatible(other)
        return Predicate(self.entity_type, any_of(self.expression, other.expression), self.accessor)

    def __and__(self, other: "Predicate[T]") -> "Predicate[T]":
        if not isinstance(other, Predicate):
            return NotImplemented
        self._check_compatible(other)
        return Predicate(self.entity_type, all_of(self.expression, other.expression), self.accessor)

    def __invert__(self) -> "Predicate[T]":
        return Predicate(self.entity_type, negate(self.expression), self.accessor)

    def to_sqlalchemy(self, model: Any) -> "ColumnElement[bool]":
        """Translate into a SQLAlchemy boolean clause for Select.where()."""
        from data_pdp.pdp.sql import to_sqlalchemy

        return to_sqlalchemy(self.expression, model)

    def __str__(self) -> str:
        return render_expression(self.expression)


# =============================================================================
# Compiler
# =============================================================================


class PredicateCompiler:
    """Compiles rules into a Predicate for one (entity type, principal, operation).

    Agrees with RuleEvaluator for rule sets without conditions. Allow rules
    with conditions over-approximate (scope only); callers needing exact
    results post-filter through the RuleEvaluator.
    """

    def __init__(
        self,
        accessor: EntityAccessor | None = None,
        hierarchy: HierarchyResolver | None = None,
        hierarchy_fallback: HierarchyFallback = "match",
    ) -> None:
        if hierarchy_fallback not in ("match", "deny"):
            raise ValueError(f"hierarchy_fallback must be 'match' or 'deny', got {hierarchy_fallback!r}")
        self._accessor = accessor if accessor is not None else FieldRegistry()
        self._hierarchy = hierarchy
        self._fallback = hierarchy_fallback

    def compile_predicate(
        self,
        entity_type: type,
        rules: Iterable[PermissionRule],
        principal_id: Any,
        operation: Operation | str,
        *,
        now: datetime | None = None,
    ) -> Predicate[Any]:
        """Build the predicate.

        Args:
            entity_type: Type of the entities to filter.
            rules: Candidate rules (any order).
            principal_id: Acting principal.
            operation: Requested operation.
            now: Evaluation time for effective windows (default: now, UTC).

        Returns:
            Predicate; constant-false when no allow rule applies.
        """
        now = now or datetime.now(timezone.utc)
        candidates = [
            rule
            for rule in applicable_rules(rules, operation, now)
            if identifiers_equal(rule.owner_user_id, principal_id)
        ]
        if not any(rule.is_allowed for rule in candidates):
            return Predicate(entity_type, FALSE, self._accessor)

        terms: list[Expression] = []
        excluded: Expression = FALSE
        for rule in candidates:
            if rule.is_allowed:
                try:
                    body = self._scope_body(rule.scope, entity_type, principal_id)
                except PredicateCompilationError:
                    body = FALSE
                terms.append(all_of(body, negate(excluded)))
                continue

            if rule.conditions is not None:
                # Cannot express conditions; left to the post-filter
                continue
            try:
                body = self._scope_body(rule.scope, entity_type, principal_id)
            except PredicateCompilationError:
                body = TRUE
            excluded = any_of(excluded, body)
            if excluded == TRUE:
                break

        return Predicate(entity_type, any_of(*terms), self._accessor)

    def _scope_body(self, scope: Scope, entity_type: type, principal_id: Any) -> Expression:
        """Expression for the entities a scope covers.

        Raises:
            PredicateCompilationError: If the scope cannot be expressed.
        """
        if scope is Scope.GLOBAL:
            return TRUE
        if scope is Scope.NONE:
            return FALSE
        if scope is Scope.OWN:
            owner_field = self._accessor.owner_field(entity_type)
            if owner_field is None:
                # Ownership never resolves for this type, so Own never matches
                return FALSE
            return FieldEquals(owner_field, principal_id)

        if self._hierarchy is None:
            return Constant(self._fallback == "match")
        if not isinstance(self._hierarchy, HierarchyPredicateProvider):
            raise PredicateCompilationError(
                f"Hierarchy resolver {type(self._hierarchy).__name__} cannot express {scope.value} scope"
            )
        if scope is Scope.DEPARTMENT:
            return self._hierarchy.department_expression(entity_type, principal_id)
        return self._hierarchy.organization_expression(entity_type, principal_id)
