"""Operator and coercion primitives for condition evaluation.

This module provides the building blocks the ConditionEvaluator uses:
- Placeholders: {UserId}, {CurrentDate}, {CurrentDateTime} (case-insensitive)
- Operand resolution: typed Operand -> plain Python value
- Equality: null-aware, with coercion of the expected value to the actual
  value's type and a case-insensitive text fallback
- Operators: eq, ne, gt, gte, lt, lte, in, notin, startswith, endswith,
  regex, isnull, isnotnull (plus synonyms, see constants.OPERATOR_ALIASES)

Every operator returns (is_match, reason) and never raises for bad data.
Unknown operators, uncoercible numbers and invalid patterns are non-matches.
"""

from __future__ import annotations

__all__ = [
    "apply_operator",
    "canonical_operator",
    "display_value",
    "resolve_operand",
    "substitute_placeholders",
    "to_decimal",
    "to_text",
    "values_equal",
]

import operator
import re
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from data_pdp.constants import (
    CURRENT_DATE_FORMAT,
    CURRENT_DATETIME_FORMAT,
    OPERATOR_ALIASES,
    PLACEHOLDER_CURRENT_DATE,
    PLACEHOLDER_CURRENT_DATETIME,
    PLACEHOLDER_USER_ID,
)
from data_pdp.pdp.operands import Operand, OperandKind

# Errors that mean "this value cannot be converted", never programming errors
_COERCION_ERRORS = (TypeError, ValueError, ArithmeticError, KeyError)

_PLACEHOLDER_RE = re.compile(
    r"\{(" + "|".join((PLACEHOLDER_USER_ID, PLACEHOLDER_CURRENT_DATETIME, PLACEHOLDER_CURRENT_DATE)) + r")\}",
    re.IGNORECASE,
)

# =============================================================================
# Placeholders
# =============================================================================


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def substitute_placeholders(text: str, principal_id: Any, now: datetime) -> str:
    """Replace placeholder markers in a single pass.

    Substituted text is never rescanned, so a principal id that itself
    looks like "{CurrentDate}" stays literal.

    Args:
        text: Operand text.
        principal_id: Acting principal (any id type; string form is used).
        now: Evaluation time, converted to UTC.

    Returns:
        Text with markers replaced.
    """
    if "{" not in text:
        return text

    now_utc = _utc(now)
    replacements = {
        PLACEHOLDER_USER_ID.lower(): "" if principal_id is None else str(principal_id),
        PLACEHOLDER_CURRENT_DATE.lower(): now_utc.strftime(CURRENT_DATE_FORMAT),
        PLACEHOLDER_CURRENT_DATETIME.lower(): now_utc.strftime(CURRENT_DATETIME_FORMAT),
    }
    return _PLACEHOLDER_RE.sub(lambda m: replacements[m.group(1).lower()], text)


def resolve_operand(operand: Operand, principal_id: Any, now: datetime) -> Any:
    """Turn a scalar or list operand into a plain value, substituting placeholders.

    Operator maps are not resolved here; the condition evaluator walks them.
    """
    if operand.kind is OperandKind.STRING:
        return substitute_placeholders(operand.value, principal_id, now)
    if operand.kind is OperandKind.LIST:
        return [resolve_operand(item, principal_id, now) for item in operand.value]
    if operand.kind is OperandKind.OPERATOR_MAP:
        raise TypeError("Operator map cannot be used as a comparison value")
    return operand.value


# =============================================================================
# Conversions
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def to_text(value: Any) -> str:
    """Canonical text form used for string operators and text fallback."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, Enum):
        return to_text(value.value)
    if isinstance(value, datetime):
        return _utc(value).strftime(CURRENT_DATETIME_FORMAT)
    if isinstance(value, date):
        return value.strftime(CURRENT_DATE_FORMAT)
    return str(value)


def to_decimal(value: Any) -> Decimal:
    """Convert a value to Decimal.

    Raises:
        TypeError: For None and non-numeric types.
        ArithmeticError: For text that is not a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    if isinstance(value, Enum):
        return to_decimal(value.value)
    raise TypeError(f"Cannot convert {type(value).__name__} to a number")


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise ValueError(f"Cannot convert {value!r} to bool")
    if _is_number(value):
        return to_decimal(value) != 0
    raise TypeError(f"Cannot convert {type(value).__name__} to bool")


def _to_enum(enum_type: type[Enum], value: Any) -> Enum:
    if isinstance(value, Decimal) and value == value.to_integral_value():
        value = int(value)
    try:
        return enum_type(value)
    except ValueError:
        pass
    name = to_text(value).strip().lower()
    for member in enum_type:
        if member.name.lower() == name or to_text(member.value).lower() == name:
            return member
    raise ValueError(f"{value!r} is not a valid {enum_type.__name__}")


def _coerce_to(expected: Any, actual: Any) -> tuple[Any, Any]:
    """Coerce expected to actual's type.

    Returns:
        (normalized actual, coerced expected) ready for ==.

    Raises:
        TypeError, ValueError, ArithmeticError, KeyError: If coercion fails.
    """
    if isinstance(actual, Enum):
        return actual, _to_enum(type(actual), expected)
    if isinstance(actual, bool):
        return actual, _to_bool(expected)
    if _is_number(actual):
        return to_decimal(actual), to_decimal(expected)
    if isinstance(actual, str):
        return actual, to_text(expected)
    if isinstance(actual, datetime):
        if isinstance(expected, datetime):
            return _utc(actual), _utc(expected)
        return _utc(actual), _utc(datetime.fromisoformat(to_text(expected).strip()))
    if isinstance(actual, date):
        if isinstance(expected, date):
            return actual, expected
        return actual, date.fromisoformat(to_text(expected).strip())
    if isinstance(actual, UUID):
        return actual, expected if isinstance(expected, UUID) else UUID(to_text(expected).strip())
    raise TypeError(f"No coercion to {type(actual).__name__}")


def values_equal(actual: Any, expected: Any) -> bool:
    """Null-aware equality with coercion.

    - Both None: equal; exactly one None: not equal
    - Same type: native equality (strings are case-sensitive)
    - Otherwise: coerce expected to actual's type and compare; if coercion
      fails, compare text forms case-insensitively
    """
    if actual is None and expected is None:
        return True
    if actual is None or expected is None:
        return False
    if type(actual) is type(expected) and not isinstance(actual, datetime):
        return actual == expected
    try:
        left, right = _coerce_to(expected, actual)
        return left == right
    except _COERCION_ERRORS:
        return to_text(actual).casefold() == to_text(expected).casefold()


# =============================================================================
# Operators
# =============================================================================


def display_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(display_value(item) for item in value) + "]"
    return to_text(value)


def _list_items(expected: Any) -> list[Any]:
    """Expected value of in/notin: a list, or a comma-separated string."""
    if expected is None:
        return []
    if isinstance(expected, (list, tuple)):
        return list(expected)
    if isinstance(expected, str):
        return [item.strip() for item in expected.split(",") if item.strip()]
    return [expected]


def _is_in(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    return any(values_equal(actual, item) for item in _list_items(expected))


def _numeric(symbol: str, compare: Callable[[Decimal, Decimal], bool]) -> Callable[[Any, Any], tuple[bool, str]]:
    def check(actual: Any, expected: Any) -> tuple[bool, str]:
        try:
            is_match = compare(to_decimal(actual), to_decimal(expected))
        except _COERCION_ERRORS:
            return False, f"Cannot compare {display_value(actual)} {symbol} {display_value(expected)} numerically"
        return is_match, f"Comparison: {display_value(actual)} {symbol} {display_value(expected)}"

    return check


def _text_check(
    label: str, verb: str, compare: Callable[[str, str], bool]
) -> Callable[[Any, Any], tuple[bool, str]]:
    def check(actual: Any, expected: Any) -> tuple[bool, str]:
        reason = f"{label}: {display_value(actual)} {verb} {display_value(expected)}"
        if actual is None or expected is None:
            return False, reason
        return compare(to_text(actual).casefold(), to_text(expected).casefold()), reason

    return check


def _regex(actual: Any, expected: Any) -> tuple[bool, str]:
    reason = f"Regex check: {display_value(actual)} matches pattern {display_value(expected)}"
    if actual is None or expected is None:
        return False, reason
    try:
        return re.search(to_text(expected), to_text(actual), re.IGNORECASE) is not None, reason
    except re.error as e:
        return False, f"Invalid regex pattern {display_value(expected)}: {e}"


_OPERATORS: dict[str, Callable[[Any, Any], tuple[bool, str]]] = {
    "eq": lambda a, e: (values_equal(a, e), f"Equality check: {display_value(a)} == {display_value(e)}"),
    "ne": lambda a, e: (not values_equal(a, e), f"Inequality check: {display_value(a)} != {display_value(e)}"),
    "gt": _numeric(">", operator.gt),
    "gte": _numeric(">=", operator.ge),
    "lt": _numeric("<", operator.lt),
    "lte": _numeric("<=", operator.le),
    "in": lambda a, e: (_is_in(a, e), f"In/Contains check: {display_value(a)} in {display_value(e)}"),
    "notin": lambda a, e: (not _is_in(a, e), f"Not in check: {display_value(a)} not in {display_value(e)}"),
    "startswith": _text_check("Starts with check", "starts with", str.startswith),
    "endswith": _text_check("Ends with check", "ends with", str.endswith),
    "regex": _regex,
    "isnull": lambda a, e: (a is None, f"Is null check: {display_value(a)} is null"),
    "isnotnull": lambda a, e: (a is not None, f"Is not null check: {display_value(a)} is not null"),
}


def canonical_operator(name: str) -> str | None:
    """Map an operator name or synonym (any case) to its canonical name."""
    return OPERATOR_ALIASES.get(name.strip().lower())


def apply_operator(name: str, actual: Any, expected: Any) -> tuple[bool, str]:
    """Apply a named operator.

    Args:
        name: Operator name or synonym, case-insensitive.
        actual: Value read from the entity (None if missing).
        expected: Resolved operand value (placeholders already substituted).

    Returns:
        (is_match, reason). Unknown operators are a non-match.
    """
    canonical = canonical_operator(name)
    if canonical is None:
        return False, f"Unknown operator: {name}"
    return _OPERATORS[canonical](actual, expected)
