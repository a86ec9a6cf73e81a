"""Translate predicate expressions into SQLAlchemy filter clauses.

    stmt = select(Post).where(predicate.to_sqlalchemy(Post))

Field names resolve to mapped attributes on the model, exact name first,
then case-insensitively. Dotted paths are not supported in SQL filters.
"""

from __future__ import annotations

__all__ = ["to_sqlalchemy"]

from functools import reduce
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, and_, false, inspect, not_, or_, true

from data_pdp.pdp.predicate import AllOf, AnyOf, Constant, Expression, FieldEquals, Not

if TYPE_CHECKING:
    from data_pdp.pdp.predicate import Predicate


def _column(model: Any, name: str) -> Any:
    if "." in name:
        raise ValueError(f"Dotted field paths are not supported in SQL filters: {name}")
    attribute = getattr(model, name, None)
    if attribute is not None:
        return attribute
    lowered = name.lower()
    for key in inspect(model).all_orm_descriptors.keys():
        if key.lower() == lowered:
            return getattr(model, key)
    raise ValueError(f"{model.__name__} has no mapped field {name!r}")


def to_sqlalchemy(expression: "Expression | Predicate[Any]", model: Any) -> ColumnElement[bool]:
    """Build a boolean clause suitable for Select.where().

    Args:
        expression: Expression tree, or a Predicate (its expression is used).
        model: Mapped model class the fields belong to.

    Returns:
        ColumnElement[bool]. An empty OR is false(), an empty AND is true().

    Raises:
        ValueError: If a field does not map to a model attribute.
    """
    expression = getattr(expression, "expression", expression)

    if isinstance(expression, Constant):
        return true() if expression.value else false()
    if isinstance(expression, FieldEquals):
        return _column(model, expression.field) == expression.value
    if isinstance(expression, AnyOf):
        clauses = [to_sqlalchemy(operand, model) for operand in expression.operands]
        return reduce(or_, clauses) if clauses else false()
    if isinstance(expression, AllOf):
        clauses = [to_sqlalchemy(operand, model) for operand in expression.operands]
        return reduce(and_, clauses) if clauses else true()
    if isinstance(expression, Not):
        return not_(to_sqlalchemy(expression.operand, model))
    raise TypeError(f"Unsupported expression node: {type(expression).__name__}")
