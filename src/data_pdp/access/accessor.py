"""Entity field access for condition and scope evaluation.

The engine never inspects entities by reflection. Instead every read goes
through an EntityAccessor:

- FieldRegistry: explicit per-type getter maps registered by the caller
- SupportsGetField: entities that expose get_field(name) -> (value, found)
- Mappings (dict rows, JSON documents): read by case-insensitive key

Dotted paths (e.g. "author.role") are resolved one segment at a time.
A missing field or a None intermediate yields None for the whole path;
conditions rely on this to test for absence.
"""

from __future__ import annotations

__all__ = [
    "EntityAccessor",
    "FieldRegistry",
    "Ownership",
    "SupportsGetField",
    "identifiers_equal",
]

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Protocol, runtime_checkable

from data_pdp.constants import DEFAULT_ID_FIELD, DEFAULT_OWNER_FIELD

Getter = Callable[[Any], Any]


def identifiers_equal(left: Any, right: Any) -> bool:
    """Compare two principal/owner identifiers by their string forms.

    Identifiers may arrive as UUIDs, ints or strings depending on the
    entity source. None never equals anything.
    """
    if left is None or right is None:
        return False
    return str(left) == str(right)


@dataclass(frozen=True, slots=True)
class Ownership:
    """Who owns an entity, as seen by the Own scope.

    Attributes:
        owner_id: Owner (creator) id, or the entity's own id for principal records.
        is_self_record: True when the entity is a principal record itself,
            so ownership means "entity id equals principal id".
    """

    owner_id: Any
    is_self_record: bool = False


@runtime_checkable
class SupportsGetField(Protocol):
    """Entities that expose their fields explicitly."""

    def get_field(self, name: str) -> tuple[Any, bool]:
        """Return (value, found) for a single, non-dotted field name."""
        ...


@runtime_checkable
class EntityAccessor(Protocol):
    """Protocol for reading fields off arbitrary entities.

    Implementations must be safe for concurrent calls and must not
    mutate entities.
    """

    def get_value(self, entity: Any, path: str) -> Any:
        """Resolve a (possibly dotted) field path; None if missing."""
        ...

    def get_owner(self, entity: Any) -> Ownership | None:
        """Return ownership info, or None if it cannot be determined."""
        ...

    def owner_field(self, entity_type: type) -> str | None:
        """Return the field compared against the principal for Own scope."""
        ...

    def get_id(self, entity: Any) -> Any:
        """Return the entity's id, or None if it has none."""
        ...


@dataclass(frozen=True)
class _TypeFields:
    getters: Mapping[str, Getter]
    owner_field: str | None
    id_field: str
    is_principal: bool


@dataclass
class FieldRegistry:
    """Default EntityAccessor backed by explicitly registered getters.

    Field names are case-insensitive. Types are looked up along the MRO,
    so a registration for a base class covers its subclasses.

    Example:
        registry = FieldRegistry()
        registry.register(Post, ["id", "title", "created_by", "author"])
        registry.register(Author, {"role": lambda a: a.role.value})
        registry.register(User, ["id", "email"], principal=True)
    """

    default_owner_field: str = DEFAULT_OWNER_FIELD
    _types: dict[type, _TypeFields] = field(default_factory=dict, init=False, repr=False)

    def register(
        self,
        entity_type: type,
        fields: Mapping[str, Getter] | Iterable[str],
        *,
        owner_field: str | None = None,
        id_field: str = DEFAULT_ID_FIELD,
        principal: bool = False,
    ) -> None:
        """Register readable fields for an entity type.

        Args:
            entity_type: Class whose instances will be evaluated.
            fields: Mapping of field name -> getter, or an iterable of
                attribute names (each read with operator.attrgetter).
            owner_field: Field holding the creator/owner id. Defaults to
                the registry's default_owner_field when that field is registered.
            id_field: Field holding the entity id.
            principal: True if instances are principal (user) records; Own
                scope then compares the entity id with the principal id.
        """
        if isinstance(fields, Mapping):
            getters = {name.lower(): getter for name, getter in fields.items()}
        else:
            getters = {name.lower(): attrgetter(name) for name in fields}

        if owner_field is None and self.default_owner_field.lower() in getters:
            owner_field = self.default_owner_field

        self._types[entity_type] = _TypeFields(
            getters=getters,
            owner_field=owner_field,
            id_field=id_field,
            is_principal=principal,
        )

    def is_registered(self, entity_type: type) -> bool:
        return self._lookup(entity_type) is not None

    def get_value(self, entity: Any, path: str) -> Any:
        current = entity
        for segment in path.split("."):
            if current is None:
                return None
            found, current = self._get_field(current, segment)
            if not found:
                return None
        return current

    def get_owner(self, entity: Any) -> Ownership | None:
        if entity is None:
            return None

        registered = self._lookup(type(entity))
        if registered is not None:
            if registered.is_principal:
                found, entity_id = self._get_field(entity, registered.id_field)
                return Ownership(entity_id, is_self_record=True) if found else None
            if registered.owner_field is None:
                return None
            found, owner_id = self._get_field(entity, registered.owner_field)
            return Ownership(owner_id) if found else None

        found, owner_id = self._get_field(entity, self.default_owner_field)
        return Ownership(owner_id) if found else None

    def owner_field(self, entity_type: type) -> str | None:
        registered = self._lookup(entity_type)
        if registered is not None:
            return registered.id_field if registered.is_principal else registered.owner_field
        if issubclass(entity_type, Mapping) or hasattr(entity_type, "get_field"):
            return self.default_owner_field
        return None

    def get_id(self, entity: Any) -> Any:
        if entity is None:
            return None
        registered = self._lookup(type(entity))
        id_field = registered.id_field if registered is not None else DEFAULT_ID_FIELD
        found, entity_id = self._get_field(entity, id_field)
        return entity_id if found else None

    def _lookup(self, entity_type: type) -> _TypeFields | None:
        for klass in entity_type.__mro__:
            registered = self._types.get(klass)
            if registered is not None:
                return registered
        return None

    def _get_field(self, obj: Any, name: str) -> tuple[bool, Any]:
        """Read one field; returns (found, value)."""
        registered = self._lookup(type(obj))
        if registered is not None:
            getter = registered.getters.get(name.lower())
            if getter is None:
                return False, None
            return True, getter(obj)

        if isinstance(obj, SupportsGetField):
            value, found = obj.get_field(name)
            return found, value

        if isinstance(obj, Mapping):
            if name in obj:
                return True, obj[name]
            lowered = name.lower()
            for key, value in obj.items():
                if isinstance(key, str) and key.lower() == lowered:
                    return True, value
            return False, None

        return False, None
