"""Rule sources - where the enforcement service gets its rules.

The evaluation engine never fetches rules. DataPermissionService asks a
RuleSource for the rules of one principal and operation per call.

Provided:
- RuleSource: protocol for custom sources (database, cache, remote service)
- InMemoryRuleSource: rules held in memory, optionally loaded from a JSON
  rule file and reloadable without restarting the caller
"""

from __future__ import annotations

__all__ = [
    "InMemoryRuleSource",
    "ReloadResult",
    "RuleSource",
]

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from data_pdp.pdp.rules import Operation, PermissionRule, RuleSet
from data_pdp.utils.rules.rule_helpers import load_rules

_logger = logging.getLogger(__name__)


@runtime_checkable
class RuleSource(Protocol):
    """Supplies candidate rules for one evaluation.

    Implementations may return more rules than needed (for example every
    rule of the principal); the engine filters by owner, operation and
    effective window itself.
    """

    def get_rules(
        self,
        principal_id: Any,
        operation: Operation,
        resource_type: str | None = None,
    ) -> Sequence[PermissionRule]:
        """Rules that may apply to the principal and operation."""
        ...


@dataclass(frozen=True, slots=True)
class ReloadResult:
    """Result of a rule reload attempt.

    Attributes:
        status: "success", "validation_error", or "file_error".
        old_rules_count: Number of rules before reload.
        new_rules_count: Number of rules after reload.
        error: Error message if status is not "success".
    """

    status: Literal["success", "validation_error", "file_error"]
    old_rules_count: int = 0
    new_rules_count: int = 0
    error: str | None = None


class InMemoryRuleSource:
    """Rules held in memory.

    Rules are indexed by owner at construction. Reload swaps the index
    reference in one assignment, so concurrent readers see either the old
    or the new rule set, never a mix.
    """

    def __init__(self, rules: Iterable[PermissionRule] = (), *, path: Path | None = None) -> None:
        """Initialize the source.

        Args:
            rules: Initial rules.
            path: Rule file backing this source (used by reload()).
        """
        self._path = path
        self._index = self._build_index(rules)

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryRuleSource":
        """Load rules from a JSON rule file.

        Raises:
            FileNotFoundError: If the rule file does not exist.
            ValueError: If the file contains invalid JSON or fails validation.
        """
        return cls(load_rules(path).rules, path=path)

    @staticmethod
    def _build_index(rules: Iterable[PermissionRule]) -> dict[str, tuple[PermissionRule, ...]]:
        index: dict[str, list[PermissionRule]] = {}
        for rule in rules:
            index.setdefault(rule.owner_user_id, []).append(rule)
        return {owner: tuple(owned) for owner, owned in index.items()}

    @property
    def rule_count(self) -> int:
        return sum(len(owned) for owned in self._index.values())

    @property
    def rules(self) -> list[PermissionRule]:
        """All rules, grouped by owner in first-seen order."""
        return [rule for owned in self._index.values() for rule in owned]

    def get_rules(
        self,
        principal_id: Any,
        operation: Operation,
        resource_type: str | None = None,
    ) -> Sequence[PermissionRule]:
        """Rules owned by the principal for the operation.

        Rules without a resource_type apply to every resource type; rules
        with one apply only when it matches (case-insensitive).
        """
        operation = Operation.parse(operation)
        owned = self._index.get(str(principal_id), ())
        wanted = resource_type.lower() if resource_type else None
        return [
            rule
            for rule in owned
            if rule.operation is operation
            and (wanted is None or rule.resource_type is None or rule.resource_type.lower() == wanted)
        ]

    def replace(self, rules: Iterable[PermissionRule]) -> None:
        """Swap in a new rule set."""
        self._index = self._build_index(rules)

    def reload(self) -> ReloadResult:
        """Reload rules from the backing file.

        On failure the current rules stay in place.
        """
        old_count = self.rule_count
        if self._path is None:
            return ReloadResult(status="file_error", old_rules_count=old_count, error="No rule file configured")

        try:
            rule_set: RuleSet = load_rules(self._path)
        except FileNotFoundError as e:
            _logger.error("Rule reload failed: %s", e)
            return ReloadResult(status="file_error", old_rules_count=old_count, error=str(e))
        except ValueError as e:
            _logger.error("Rule reload failed: %s", e)
            return ReloadResult(status="validation_error", old_rules_count=old_count, error=str(e))

        self.replace(rule_set.rules)
        _logger.info("Reloaded %d rules from %s (previously %d)", self.rule_count, self._path, old_count)
        return ReloadResult(status="success", old_rules_count=old_count, new_rules_count=self.rule_count)
