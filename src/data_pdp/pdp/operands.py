"""Typed condition operands.

Rule conditions arrive as JSON text or as plain mappings, for example:

    {"status": "published",
     "created_by": "{UserId}",
     "views": {"gte": 10, "lt": 1000},
     "category": {"in": ["news", "blog"]}}

They are decoded once, when the rule is constructed, into a ConditionSet:
an ordered tuple of Condition(property_name, Operand). Each Operand is a
tagged variant (STRING | NUMBER | BOOL | NULL | LIST | OPERATOR_MAP), so
evaluation never re-inspects raw JSON.

Decoding never raises for bad rule data. Malformed JSON, a non-object
document or an unsupported value type produce a ConditionSet whose
`error` is set; a rule carrying such a set never matches.
"""

from __future__ import annotations

__all__ = [
    "Condition",
    "ConditionSet",
    "Operand",
    "OperandKind",
    "decode_conditions",
]

import json
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class OperandKind(str, Enum):
    """Kind tag of a condition operand."""

    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    NULL = "null"
    LIST = "list"
    OPERATOR_MAP = "operator_map"


@dataclass(frozen=True, slots=True)
class Operand:
    """A decoded condition operand.

    Attributes:
        kind: Variant tag.
        value: str for STRING, Decimal for NUMBER, bool for BOOL, None for NULL,
            tuple[Operand, ...] for LIST, and tuple[tuple[str, Operand], ...]
            (operator name, operand) for OPERATOR_MAP.
    """

    kind: OperandKind
    value: Any = None

    @classmethod
    def decode(cls, raw: Any) -> "Operand":
        """Decode a JSON-compatible value into an Operand.

        Raises:
            TypeError: If the value (or a nested value) is not JSON-compatible.
        """
        if isinstance(raw, Operand):
            return raw
        if raw is None:
            return cls(OperandKind.NULL)
        # bool before int: bool is an int subclass
        if isinstance(raw, bool):
            return cls(OperandKind.BOOL, raw)
        if isinstance(raw, Decimal):
            return cls(OperandKind.NUMBER, raw)
        if isinstance(raw, int):
            return cls(OperandKind.NUMBER, Decimal(raw))
        if isinstance(raw, float):
            return cls(OperandKind.NUMBER, Decimal(str(raw)))
        if isinstance(raw, str):
            return cls(OperandKind.STRING, raw)
        if isinstance(raw, Mapping):
            return cls(
                OperandKind.OPERATOR_MAP,
                tuple((str(name), cls.decode(value)) for name, value in raw.items()),
            )
        if isinstance(raw, (list, tuple)):
            return cls(OperandKind.LIST, tuple(cls.decode(item) for item in raw))
        raise TypeError(f"Unsupported condition value type: {type(raw).__name__}")

    @property
    def is_operator_map(self) -> bool:
        return self.kind is OperandKind.OPERATOR_MAP

    def to_raw(self) -> Any:
        """Convert back to a JSON-compatible value."""
        if self.kind is OperandKind.NUMBER:
            number: Decimal = self.value
            if number == number.to_integral_value():
                return int(number)
            return float(number)
        if self.kind is OperandKind.LIST:
            return [item.to_raw() for item in self.value]
        if self.kind is OperandKind.OPERATOR_MAP:
            return {name: operand.to_raw() for name, operand in self.value}
        return self.value


@dataclass(frozen=True, slots=True)
class Condition:
    """One property condition: the property path and its expected operand."""

    property_name: str
    operand: Operand


@dataclass(frozen=True, slots=True)
class ConditionSet:
    """Decoded conditions of one rule (AND logic).

    Attributes:
        conditions: Conditions in declaration order.
        error: Decoding error; when set, the set can never match.
        source: Original text when decoding failed, kept for round-tripping.
    """

    conditions: tuple[Condition, ...] = ()
    error: str | None = None
    source: str | None = None

    @property
    def is_malformed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ConditionSet":
        try:
            conditions = tuple(Condition(str(name), Operand.decode(value)) for name, value in raw.items())
        except TypeError as e:
            # repr() is not JSON, so a saved copy stays malformed on reload
            return cls(error=f"Invalid condition format: {e}", source=repr(dict(raw)))
        return cls(conditions)

    def to_raw(self) -> dict[str, Any] | str:
        """Convert back to a mapping (or the original text if malformed)."""
        if self.is_malformed:
            return self.source or repr(self.error)
        return {condition.property_name: condition.operand.to_raw() for condition in self.conditions}

    def __len__(self) -> int:
        return len(self.conditions)


def decode_conditions(raw: Any) -> ConditionSet | None:
    """Decode serialized rule conditions.

    Args:
        raw: JSON text, a mapping, an already decoded ConditionSet, or None.

    Returns:
        ConditionSet, or None when the rule has no conditions (None, empty or
        whitespace-only text, or a JSON null document).
    """
    if raw is None or isinstance(raw, ConditionSet):
        return raw

    if isinstance(raw, (str, bytes)):
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        if not text.strip():
            return None
        try:
            document = json.loads(text, parse_float=Decimal)
        except json.JSONDecodeError as e:
            return ConditionSet(error=f"Invalid condition format: {e}", source=text)
        if document is None:
            return None
        if not isinstance(document, dict):
            return ConditionSet(
                error=f"Invalid condition format: expected a JSON object, got {type(document).__name__}",
                source=text,
            )
        result = ConditionSet.from_mapping(document)
        if result.is_malformed:
            return ConditionSet(error=result.error, source=text)
        return result

    if isinstance(raw, Mapping):
        return ConditionSet.from_mapping(raw)

    return ConditionSet(
        error=f"Invalid condition format: unsupported type {type(raw).__name__}",
        source=repr(raw),
    )
