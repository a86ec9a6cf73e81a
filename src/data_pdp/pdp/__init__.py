"""Policy Decision Point for data-level permissions.

Stateless evaluation engine:
- decision.py   - Decision enum (ALLOW/DENY)
- operands.py   - Typed condition operands, decoded once per rule
- rules.py      - PermissionRule / RuleSet models
- results.py    - Evaluation result value objects
- matcher.py    - Placeholders, coercion and condition operators
- conditions.py - ConditionEvaluator
- scope.py      - ScopeResolver
- engine.py     - RuleEvaluator (first match by priority, default deny)
- predicate.py  - PredicateCompiler and expression trees
- sql.py        - SQLAlchemy translation of predicates (import directly)
"""

from data_pdp.pdp.conditions import ConditionEvaluator
from data_pdp.pdp.decision import Decision
from data_pdp.pdp.engine import RuleEvaluator, applicable_rules
from data_pdp.pdp.operands import Condition, ConditionSet, Operand, OperandKind, decode_conditions
from data_pdp.pdp.predicate import (
    AllOf,
    AnyOf,
    Constant,
    Expression,
    FieldEquals,
    Not,
    Predicate,
    PredicateCompiler,
)
from data_pdp.pdp.results import (
    ConditionEvaluationResult,
    PermissionEvaluationResult,
    RuleEvaluationResult,
    ScopeEvaluationResult,
)
from data_pdp.pdp.rules import Operation, PermissionRule, RuleSet, Scope
from data_pdp.pdp.scope import ScopeResolver

__all__ = [
    "AllOf",
    "AnyOf",
    "Condition",
    "ConditionEvaluationResult",
    "ConditionEvaluator",
    "ConditionSet",
    "Constant",
    "Decision",
    "Expression",
    "FieldEquals",
    "Not",
    "Operand",
    "OperandKind",
    "Operation",
    "PermissionEvaluationResult",
    "PermissionRule",
    "Predicate",
    "PredicateCompiler",
    "RuleEvaluationResult",
    "RuleEvaluator",
    "RuleSet",
    "Scope",
    "ScopeEvaluationResult",
    "ScopeResolver",
    "applicable_rules",
    "decode_conditions",
]
