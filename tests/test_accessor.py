"""Unit tests for entity field access (FieldRegistry)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import pytest

from data_pdp.access.accessor import (
    EntityAccessor,
    FieldRegistry,
    Ownership,
    identifiers_equal,
)


@dataclass
class Author:
    id: int
    role: str


@dataclass
class Post:
    id: int
    title: str
    created_by: str
    author: Author | None = None


@dataclass
class FeaturedPost(Post):
    featured: bool = True


@dataclass
class User:
    id: str
    email: str


@dataclass
class Tag:
    id: int
    name: str


class Row:
    """Entity exposing get_field()."""

    def __init__(self, **fields: Any) -> None:
        self._fields = fields

    def get_field(self, name: str) -> tuple[Any, bool]:
        if name in self._fields:
            return self._fields[name], True
        return None, False


@pytest.fixture
def registry() -> FieldRegistry:
    registry = FieldRegistry()
    registry.register(Post, ["id", "title", "created_by", "author"])
    registry.register(Author, {"id": lambda a: a.id, "role": lambda a: a.role.upper()})
    registry.register(User, ["id", "email"], principal=True)
    registry.register(Tag, ["id", "name"])
    return registry


class TestIdentifiersEqual:
    """Tests for identifiers_equal()."""

    @pytest.mark.parametrize(
        ("left", "right", "expected"),
        [
            ("u1", "u1", True),
            (42, "42", True),
            (UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678", True),
            ("u1", "u2", False),
            (None, "u1", False),
            (None, None, False),
        ],
    )
    def test_compares_string_forms(self, left: Any, right: Any, expected: bool) -> None:
        """Given two identifiers, compares their string forms; None never matches."""
        # Act & Assert
        assert identifiers_equal(left, right) is expected


class TestFieldRegistryValues:
    """Tests for FieldRegistry.get_value()."""

    def test_reads_registered_attribute(self, registry: FieldRegistry) -> None:
        """Given a registered field, returns its value."""
        # Arrange
        post = Post(id=1, title="Hello", created_by="u1")

        # Act & Assert
        assert registry.get_value(post, "title") == "Hello"

    def test_field_names_are_case_insensitive(self, registry: FieldRegistry) -> None:
        """Given a differently cased name, resolves the same field."""
        # Arrange
        post = Post(id=1, title="Hello", created_by="u1")

        # Act & Assert
        assert registry.get_value(post, "Created_By") == "u1"

    def test_unregistered_field_is_none(self, registry: FieldRegistry) -> None:
        """Given a field that exists on the object but is not registered, returns None."""
        # Arrange
        post = FeaturedPost(id=1, title="Hello", created_by="u1")

        # Act & Assert
        assert registry.get_value(post, "featured") is None

    def test_dotted_path_uses_getters(self, registry: FieldRegistry) -> None:
        """Given a dotted path, resolves each segment with its type's getters."""
        # Arrange
        post = Post(id=1, title="Hello", created_by="u1", author=Author(id=9, role="editor"))

        # Act & Assert
        assert registry.get_value(post, "author.role") == "EDITOR"

    def test_dotted_path_through_none(self, registry: FieldRegistry) -> None:
        """Given a None intermediate, returns None."""
        # Arrange
        post = Post(id=1, title="Hello", created_by="u1", author=None)

        # Act & Assert
        assert registry.get_value(post, "author.role") is None

    def test_subclass_uses_base_registration(self, registry: FieldRegistry) -> None:
        """Given a subclass of a registered type, uses the base registration."""
        # Arrange
        post = FeaturedPost(id=1, title="Hello", created_by="u1")

        # Act & Assert
        assert registry.is_registered(FeaturedPost)
        assert registry.get_value(post, "title") == "Hello"

    def test_reads_mappings(self, registry: FieldRegistry) -> None:
        """Given a dict, reads keys case-insensitively."""
        # Act & Assert
        assert registry.get_value({"Status": "draft"}, "status") == "draft"
        assert registry.get_value({"status": "draft"}, "missing") is None

    def test_reads_get_field_entities(self, registry: FieldRegistry) -> None:
        """Given an entity exposing get_field(), uses it."""
        # Arrange
        row = Row(status="draft", meta={"lang": "en"})

        # Act & Assert
        assert registry.get_value(row, "status") == "draft"
        assert registry.get_value(row, "meta.lang") == "en"
        assert registry.get_value(row, "missing") is None

    def test_unknown_object_has_no_fields(self, registry: FieldRegistry) -> None:
        """Given an unregistered plain object, returns None."""
        # Act & Assert
        assert registry.get_value(object(), "id") is None

    def test_satisfies_protocol(self, registry: FieldRegistry) -> None:
        """FieldRegistry implements EntityAccessor."""
        # Assert
        assert isinstance(registry, EntityAccessor)


class TestFieldRegistryOwnership:
    """Tests for FieldRegistry.get_owner() and owner_field()."""

    def test_default_owner_field_is_detected(self, registry: FieldRegistry) -> None:
        """Given a registration including created_by, uses it as owner field."""
        # Arrange
        post = Post(id=1, title="Hello", created_by="u1")

        # Act & Assert
        assert registry.owner_field(Post) == "created_by"
        assert registry.get_owner(post) == Ownership("u1")

    def test_explicit_owner_field(self) -> None:
        """Given an explicit owner field, uses it."""
        # Arrange
        registry = FieldRegistry()
        registry.register(Author, ["id", "role"], owner_field="id")

        # Act & Assert
        assert registry.owner_field(Author) == "id"
        assert registry.get_owner(Author(id=3, role="x")) == Ownership(3)

    def test_no_owner_field(self, registry: FieldRegistry) -> None:
        """Given a type without owner field, ownership cannot be determined."""
        # Act & Assert
        assert registry.owner_field(Tag) is None
        assert registry.get_owner(Tag(id=1, name="python")) is None

    def test_principal_record_is_self_owned(self, registry: FieldRegistry) -> None:
        """Given a principal record, ownership is its own id."""
        # Arrange
        user = User(id="u1", email="u1@example.com")

        # Act
        ownership = registry.get_owner(user)

        # Assert
        assert ownership == Ownership("u1", is_self_record=True)
        assert registry.owner_field(User) == "id"

    def test_mapping_uses_default_owner_field(self, registry: FieldRegistry) -> None:
        """Given a dict, reads the default owner field."""
        # Act & Assert
        assert registry.get_owner({"created_by": "u2"}) == Ownership("u2")
        assert registry.get_owner({"title": "no owner"}) is None
        assert registry.owner_field(dict) == "created_by"

    def test_custom_default_owner_field(self) -> None:
        """Given a registry with another default owner field, uses it for dicts."""
        # Arrange
        registry = FieldRegistry(default_owner_field="owner_id")

        # Act & Assert
        assert registry.get_owner({"owner_id": "u1", "created_by": "u2"}) == Ownership("u1")

    def test_unknown_type_has_no_owner_field(self, registry: FieldRegistry) -> None:
        """Given an unregistered class, returns no owner field."""
        # Act & Assert
        assert registry.owner_field(object) is None
        assert registry.get_owner(None) is None


class TestFieldRegistryIds:
    """Tests for FieldRegistry.get_id()."""

    def test_registered_id_field(self) -> None:
        """Given a type registered with a custom id field, reads that field."""

        # Arrange
        @dataclass
        class Invoice:
            pk: int
            created_by: str

        registry = FieldRegistry()
        registry.register(Invoice, ["pk", "created_by"], id_field="pk")

        # Act & Assert
        assert registry.get_id(Invoice(pk=9, created_by="u1")) == 9

    def test_default_id_field(self, registry: FieldRegistry) -> None:
        """Given registered types, mappings and get_field entities, reads "id"."""
        # Act & Assert
        assert registry.get_id(Tag(id=3, name="python")) == 3
        assert registry.get_id({"ID": 4}) == 4
        assert registry.get_id(Row(id=5)) == 5

    def test_missing_id_is_none(self, registry: FieldRegistry) -> None:
        """Given entities without an id, returns None."""
        # Act & Assert
        assert registry.get_id({"title": "untitled"}) is None
        assert registry.get_id(object()) is None
        assert registry.get_id(None) is None
