"""Unit tests for ScopeResolver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import pytest

from data_pdp.access.accessor import FieldRegistry
from data_pdp.pdp.rules import Scope
from data_pdp.pdp.scope import ScopeResolver


@dataclass
class User:
    id: str
    department: str


class DepartmentDirectory:
    """Hierarchy resolver backed by a static principal -> department map."""

    def __init__(self, departments: dict[str, str], organizations: dict[str, str] | None = None) -> None:
        self.departments = departments
        self.organizations = organizations or {}

    def in_department(self, entity: Any, principal_id: Any) -> bool:
        return entity.get("department") == self.departments.get(str(principal_id))

    def in_organization(self, entity: Any, principal_id: Any) -> bool:
        return entity.get("organization") == self.organizations.get(str(principal_id))


@pytest.fixture
def resolver() -> ScopeResolver:
    return ScopeResolver()


class TestBasicScopes:
    """Tests for Global, None and Own scopes."""

    def test_global_always_matches(self, resolver: ScopeResolver) -> None:
        """Given Global scope, matches any entity."""
        # Act
        result = resolver.resolve_scope(Scope.GLOBAL, {"created_by": "someone"}, "u1")

        # Assert
        assert result.is_match
        assert result.reason == "Global scope"

    def test_none_never_matches(self, resolver: ScopeResolver) -> None:
        """Given None scope, never matches, even for the owner."""
        # Act
        result = resolver.resolve_scope(Scope.NONE, {"created_by": "u1"}, "u1")

        # Assert
        assert not result.is_match
        assert result.reason == "No scope"

    def test_own_matches_owner(self, resolver: ScopeResolver) -> None:
        """Given Own scope and the principal as owner, matches."""
        # Act
        result = resolver.resolve_scope(Scope.OWN, {"created_by": "u1"}, "u1")

        # Assert
        assert result.is_match
        assert result.reason == "User is owner"

    def test_own_rejects_other_owner(self, resolver: ScopeResolver) -> None:
        """Given Own scope and another owner, does not match."""
        # Act
        result = resolver.resolve_scope(Scope.OWN, {"created_by": "u2"}, "u1")

        # Assert
        assert not result.is_match
        assert result.reason == "User is not owner"

    def test_own_compares_identifier_forms(self, resolver: ScopeResolver) -> None:
        """Given a UUID principal and a string owner, compares string forms."""
        # Arrange
        principal = UUID("12345678-1234-5678-1234-567812345678")

        # Act
        result = resolver.resolve_scope(Scope.OWN, {"created_by": str(principal)}, principal)

        # Assert
        assert result.is_match

    def test_own_without_owner_field(self, resolver: ScopeResolver) -> None:
        """Given an entity without ownership info, does not match."""
        # Act
        result = resolver.resolve_scope(Scope.OWN, {"title": "orphan"}, "u1")

        # Assert
        assert not result.is_match
        assert result.reason == "Cannot determine ownership"

    def test_own_null_owner_does_not_match(self, resolver: ScopeResolver) -> None:
        """Given a null owner, does not match."""
        # Act
        result = resolver.resolve_scope(Scope.OWN, {"created_by": None}, "u1")

        # Assert
        assert not result.is_match

    def test_own_on_principal_record(self) -> None:
        """Given a principal record, Own means the record is the principal."""
        # Arrange
        registry = FieldRegistry()
        registry.register(User, ["id", "department"], principal=True)
        resolver = ScopeResolver(registry)

        # Act
        self_result = resolver.resolve_scope(Scope.OWN, User(id="u1", department="d1"), "u1")
        other_result = resolver.resolve_scope(Scope.OWN, User(id="u2", department="d1"), "u1")

        # Assert
        assert self_result.is_match
        assert self_result.reason == "User is self"
        assert not other_result.is_match
        assert other_result.reason == "User is not self"

    def test_scope_names_are_parsed(self, resolver: ScopeResolver) -> None:
        """Given a scope name in any case, parses it."""
        # Act
        result = resolver.resolve_scope("OWN", {"created_by": "u1"}, "u1")

        # Assert
        assert result.is_match

    def test_unknown_scope_name_raises(self, resolver: ScopeResolver) -> None:
        """Given an unknown scope name, raises ValueError."""
        # Act & Assert
        with pytest.raises(ValueError):
            resolver.resolve_scope("team", {}, "u1")


class TestHierarchyScopes:
    """Tests for Department and Organization scopes."""

    @pytest.mark.parametrize(
        ("scope", "level"),
        [(Scope.DEPARTMENT, "Department"), (Scope.ORGANIZATION, "Organization")],
    )
    def test_fallback_match(self, scope: Scope, level: str) -> None:
        """Given no resolver and fallback "match", matches."""
        # Arrange
        resolver = ScopeResolver(hierarchy_fallback="match")

        # Act
        result = resolver.resolve_scope(scope, {}, "u1")

        # Assert
        assert result.is_match
        assert result.reason == f"{level} scope not resolved, allowed by fallback"

    @pytest.mark.parametrize(
        ("scope", "level"),
        [(Scope.DEPARTMENT, "Department"), (Scope.ORGANIZATION, "Organization")],
    )
    def test_fallback_deny(self, scope: Scope, level: str) -> None:
        """Given no resolver and fallback "deny", does not match."""
        # Arrange
        resolver = ScopeResolver(hierarchy_fallback="deny")

        # Act
        result = resolver.resolve_scope(scope, {}, "u1")

        # Assert
        assert not result.is_match
        assert result.reason == f"{level} scope not resolved, denied by fallback"

    def test_resolver_decides_department(self) -> None:
        """Given a hierarchy resolver, delegates department membership."""
        # Arrange
        resolver = ScopeResolver(hierarchy=DepartmentDirectory({"u1": "sales"}))

        # Act
        inside = resolver.resolve_scope(Scope.DEPARTMENT, {"department": "sales"}, "u1")
        outside = resolver.resolve_scope(Scope.DEPARTMENT, {"department": "legal"}, "u1")

        # Assert
        assert inside.is_match
        assert inside.reason == "Entity is in user's department"
        assert not outside.is_match
        assert outside.reason == "Entity is not in user's department"

    def test_resolver_decides_organization(self) -> None:
        """Given a hierarchy resolver, delegates organization membership."""
        # Arrange
        resolver = ScopeResolver(hierarchy=DepartmentDirectory({}, {"u1": "acme"}))

        # Act
        result = resolver.resolve_scope(Scope.ORGANIZATION, {"organization": "acme"}, "u1")

        # Assert
        assert result.is_match
        assert result.reason == "Entity is in user's organization"

    def test_resolver_overrides_fallback(self) -> None:
        """Given a resolver, the fallback is not used."""
        # Arrange
        resolver = ScopeResolver(hierarchy=DepartmentDirectory({"u1": "sales"}), hierarchy_fallback="match")

        # Act
        result = resolver.resolve_scope(Scope.DEPARTMENT, {"department": "legal"}, "u1")

        # Assert
        assert not result.is_match

    def test_invalid_fallback_raises(self) -> None:
        """Given an unknown fallback, raises ValueError."""
        # Act & Assert
        with pytest.raises(ValueError, match="hierarchy_fallback"):
            ScopeResolver(hierarchy_fallback="allow")  # type: ignore[arg-type]
