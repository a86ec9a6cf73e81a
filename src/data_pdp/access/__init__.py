"""Entity access contracts used by the evaluation engine.

- accessor.py   - EntityAccessor protocol and the FieldRegistry implementation
- hierarchy.py  - HierarchyResolver protocol for Department/Organization scopes
"""

from data_pdp.access.accessor import (
    EntityAccessor,
    FieldRegistry,
    Ownership,
    SupportsGetField,
    identifiers_equal,
)
from data_pdp.access.hierarchy import (
    HierarchyFallback,
    HierarchyPredicateProvider,
    HierarchyResolver,
)

__all__ = [
    "EntityAccessor",
    "FieldRegistry",
    "HierarchyFallback",
    "HierarchyPredicateProvider",
    "HierarchyResolver",
    "Ownership",
    "SupportsGetField",
    "identifiers_equal",
]
