"""Organizational hierarchy contracts for Department/Organization scopes.

The engine has no organizational data of its own. Callers that need real
department or organization membership checks inject a HierarchyResolver.
Without one, the configured hierarchy fallback decides (see config.py).

A resolver may additionally implement HierarchyPredicateProvider so the
predicate compiler can express membership as a storage filter. Resolvers
that only answer per-entity questions cause hierarchy rules to degrade to
their safe default in compiled predicates.
"""

from __future__ import annotations

__all__ = [
    "HierarchyFallback",
    "HierarchyPredicateProvider",
    "HierarchyResolver",
]

from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from data_pdp.pdp.predicate import Expression

# "match": unresolved hierarchy scopes match (legacy placeholder behavior)
# "deny": unresolved hierarchy scopes never match
HierarchyFallback = Literal["match", "deny"]


@runtime_checkable
class HierarchyResolver(Protocol):
    """Answers department/organization membership questions for one entity."""

    def in_department(self, entity: Any, principal_id: Any) -> bool:
        """True if the entity belongs to the principal's department."""
        ...

    def in_organization(self, entity: Any, principal_id: Any) -> bool:
        """True if the entity belongs to the principal's organization."""
        ...


@runtime_checkable
class HierarchyPredicateProvider(Protocol):
    """Expresses department/organization membership as predicate trees."""

    def department_expression(self, entity_type: type, principal_id: Any) -> "Expression":
        ...

    def organization_expression(self, entity_type: type, principal_id: Any) -> "Expression":
        ...
