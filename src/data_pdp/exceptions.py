"""Custom exceptions for data-pdp.

The evaluation engine itself never raises for bad rule data: malformed
conditions become non-matches and unexpected errors become deny decisions.
Exceptions exist only at the edges:

Enforcement:
    - PermissionDeniedError: DataPermissionService.require() denied a request

Setup:
    - ConfigurationError: Config file missing, unreadable or invalid

Internal:
    - PredicateCompilationError: A rule scope cannot be expressed as a
      predicate; the compiler catches it and degrades to the safe default

Usage:
    from data_pdp.exceptions import PermissionDeniedError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "PermissionDeniedError",
    "PredicateCompilationError",
]

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from data_pdp.pdp.decision import Decision


class PermissionDeniedError(Exception):
    """Raised when an operation on an entity is denied by the permission rules.

    Attributes:
        message: Human-readable denial reason (the evaluation reason).
        decision: The decision that caused the denial (always DENY).
        principal_id: Principal the decision was made for.
        operation: Operation that was denied.
        applied_rules: IDs of the rules that decided the outcome.
    """

    def __init__(
        self,
        message: str,
        *,
        decision: "Decision | None" = None,
        principal_id: str | None = None,
        operation: str | None = None,
        applied_rules: list[str] | None = None,
    ) -> None:
        self.message = message
        self.decision = decision
        self.principal_id = principal_id
        self.operation = operation
        self.applied_rules = applied_rules or []
        super().__init__(message)

    @property
    def error_data(self) -> dict[str, Any]:
        """Structured data for API error responses."""
        data: dict[str, Any] = {}
        if self.principal_id is not None:
            data["principal_id"] = self.principal_id
        if self.operation is not None:
            data["operation"] = self.operation
        if self.applied_rules:
            data["applied_rules"] = self.applied_rules
        if self.decision is not None:
            data["decision"] = self.decision.value
        return data

    def __repr__(self) -> str:
        parts = [f"PermissionDeniedError({self.message!r}"]
        if self.principal_id is not None:
            parts.append(f", principal_id={self.principal_id!r}")
        if self.operation is not None:
            parts.append(f", operation={self.operation!r}")
        if self.applied_rules:
            parts.append(f", applied_rules={self.applied_rules!r}")
        parts.append(")")
        return "".join(parts)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(Exception):
    """Configuration is invalid or incomplete.

    Raised when:
    - Config file does not exist
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    """


class PredicateCompilationError(Exception):
    """A rule scope cannot be expressed as a predicate.

    Raised when a Department/Organization rule relies on a hierarchy
    resolver that offers no predicate expression.
    """
