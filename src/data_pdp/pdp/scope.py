"""Scope resolution: does an entity fall within a rule's scope?

Scopes:
- global: every entity
- own: entities whose owner field equals the principal (for principal
  records, entities whose id equals the principal)
- department / organization: delegated to a HierarchyResolver; without one
  the configured hierarchy fallback decides
- none: no entity
"""

from __future__ import annotations

__all__ = ["ScopeResolver"]

from typing import Any

from data_pdp.access.accessor import EntityAccessor, FieldRegistry, identifiers_equal
from data_pdp.access.hierarchy import HierarchyFallback, HierarchyResolver
from data_pdp.pdp.results import ScopeEvaluationResult
from data_pdp.pdp.rules import Scope


class ScopeResolver:
    """Resolves rule scopes for one entity relative to a principal.

    Args:
        accessor: Entity field accessor (default: an empty FieldRegistry,
            which reads mappings and get_field entities).
        hierarchy: Optional department/organization resolver.
        hierarchy_fallback: Outcome for hierarchy scopes when no resolver
            is configured ("match" or "deny").
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

    def resolve_scope(self, scope: Scope | str, entity: Any, principal_id: Any) -> ScopeEvaluationResult:
        """Decide whether the entity is within scope.

        Raises:
            ValueError: If scope is a string that names no known scope.
        """
        scope = Scope.parse(scope)

        if scope is Scope.GLOBAL:
            return ScopeEvaluationResult.match("Global scope")
        if scope is Scope.OWN:
            return self._resolve_own(entity, principal_id)
        if scope is Scope.DEPARTMENT:
            return self._resolve_hierarchy("Department", entity, principal_id)
        if scope is Scope.ORGANIZATION:
            return self._resolve_hierarchy("Organization", entity, principal_id)
        return ScopeEvaluationResult.no_match("No scope")

    def _resolve_own(self, entity: Any, principal_id: Any) -> ScopeEvaluationResult:
        ownership = self._accessor.get_owner(entity)
        if ownership is None:
            return ScopeEvaluationResult.no_match("Cannot determine ownership")

        is_owner = identifiers_equal(ownership.owner_id, principal_id)
        if ownership.is_self_record:
            return ScopeEvaluationResult(is_owner, "User is self" if is_owner else "User is not self")
        return ScopeEvaluationResult(is_owner, "User is owner" if is_owner else "User is not owner")

    def _resolve_hierarchy(self, level: str, entity: Any, principal_id: Any) -> ScopeEvaluationResult:
        if self._hierarchy is None:
            if self._fallback == "match":
                return ScopeEvaluationResult.match(f"{level} scope not resolved, allowed by fallback")
            return ScopeEvaluationResult.no_match(f"{level} scope not resolved, denied by fallback")

        if level == "Department":
            is_member = self._hierarchy.in_department(entity, principal_id)
        else:
            is_member = self._hierarchy.in_organization(entity, principal_id)

        if is_member:
            return ScopeEvaluationResult.match(f"Entity is in user's {level.lower()}")
        return ScopeEvaluationResult.no_match(f"Entity is not in user's {level.lower()}")
