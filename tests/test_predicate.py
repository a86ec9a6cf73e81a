"""Unit tests for expression trees, Predicate and PredicateCompiler.

Includes a consistency check: for scope-only rule sets the compiled
predicate agrees with the RuleEvaluator on every entity.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import pytest

from data_pdp.access.accessor import FieldRegistry
from data_pdp.pdp.engine import RuleEvaluator
from data_pdp.pdp.predicate import (
    FALSE,
    TRUE,
    AllOf,
    AnyOf,
    Constant,
    Expression,
    FieldEquals,
    Not,
    Predicate,
    PredicateCompiler,
    all_of,
    any_of,
    negate,
    render_expression,
)
from data_pdp.pdp.rules import PermissionRule

MakeRule = Callable[..., PermissionRule]


@dataclass
class Post:
    id: int
    created_by: str
    department: str = "sales"


@dataclass
class Tag:
    id: int
    name: str


@pytest.fixture
def registry() -> FieldRegistry:
    registry = FieldRegistry()
    registry.register(Post, ["id", "created_by", "department"])
    registry.register(Tag, ["id", "name"])
    return registry


@pytest.fixture
def compiler(registry: FieldRegistry) -> PredicateCompiler:
    return PredicateCompiler(registry)


class DepartmentDirectory:
    """Hierarchy resolver that can also express membership as a predicate."""

    departments = {"u1": "sales"}

    def in_department(self, entity: Any, principal_id: Any) -> bool:
        return entity.department == self.departments.get(str(principal_id))

    def in_organization(self, entity: Any, principal_id: Any) -> bool:
        return True

    def department_expression(self, entity_type: type, principal_id: Any) -> Expression:
        return FieldEquals("department", self.departments.get(str(principal_id)))

    def organization_expression(self, entity_type: type, principal_id: Any) -> Expression:
        return TRUE


class MembershipOnlyDirectory:
    """Hierarchy resolver without predicate support."""

    def in_department(self, entity: Any, principal_id: Any) -> bool:
        return True

    def in_organization(self, entity: Any, principal_id: Any) -> bool:
        return True


# ============================================================================
# Expression trees
# ============================================================================


class TestExpressionBuilders:
    """Tests for any_of(), all_of() and negate()."""

    def test_any_of_folds_constants(self) -> None:
        """Given TRUE among operands, returns TRUE; FALSE operands are dropped."""
        # Arrange
        owned = FieldEquals("created_by", "u1")

        # Act & Assert
        assert any_of(owned, TRUE) == TRUE
        assert any_of(FALSE, owned) == owned
        assert any_of() == FALSE

    def test_all_of_folds_constants(self) -> None:
        """Given FALSE among operands, returns FALSE; TRUE operands are dropped."""
        # Arrange
        owned = FieldEquals("created_by", "u1")

        # Act & Assert
        assert all_of(owned, FALSE) == FALSE
        assert all_of(TRUE, owned) == owned
        assert all_of() == TRUE

    def test_nested_operands_are_flattened(self) -> None:
        """Given nested ORs, produces one flat AnyOf."""
        # Arrange
        a, b, c = FieldEquals("a", 1), FieldEquals("b", 2), FieldEquals("c", 3)

        # Act
        result = any_of(any_of(a, b), c)

        # Assert
        assert result == AnyOf((a, b, c))

    def test_negate(self) -> None:
        """Given constants or a Not, simplifies the negation."""
        # Arrange
        owned = FieldEquals("created_by", "u1")

        # Act & Assert
        assert negate(TRUE) == FALSE
        assert negate(owned) == Not(owned)
        assert negate(Not(owned)) == owned

    def test_render(self) -> None:
        """Given a tree, renders it readably."""
        # Arrange
        expression = AnyOf((FieldEquals("created_by", "u1"), AllOf((Constant(True), Not(FieldEquals("x", 1))))))

        # Act & Assert
        assert render_expression(expression) == "(created_by == 'u1' OR (true AND NOT x == 1))"


class TestPredicate:
    """Tests for Predicate evaluation and composition."""

    def test_call_and_filter(self, registry: FieldRegistry) -> None:
        """Given an owner predicate, keeps owned entities."""
        # Arrange
        predicate = Predicate(Post, FieldEquals("created_by", "u1"), registry)
        posts = [Post(1, "u1"), Post(2, "u2"), Post(3, "u1")]

        # Act & Assert
        assert predicate(posts[0])
        assert [post.id for post in predicate.filter(posts)] == [1, 3]

    def test_unreadable_entity_is_excluded(self) -> None:
        """Given a getter that raises, the entity fails the predicate and its negation."""
        # Arrange
        registry = FieldRegistry()
        registry.register(Post, {"id": lambda post: post.id, "created_by": lambda post: 1 / 0})
        predicate = Predicate(Post, FieldEquals("created_by", "u1"), registry)
        posts = [Post(1, "u1"), Post(2, "u2")]

        # Act & Assert
        assert predicate.filter(posts) == []
        assert (~predicate).filter(posts) == []

    def test_field_equality_uses_identifier_forms(self, registry: FieldRegistry) -> None:
        """Given an int field and a str value, compares string forms."""
        # Arrange
        predicate = Predicate(Post, FieldEquals("id", "2"), registry)

        # Act & Assert
        assert predicate(Post(2, "u1"))

    def test_combinators(self, registry: FieldRegistry) -> None:
        """Given two predicates, |, & and ~ combine them."""
        # Arrange
        mine = Predicate(Post, FieldEquals("created_by", "u1"), registry)
        first = Predicate(Post, FieldEquals("id", 1), registry)
        post = Post(2, "u1")

        # Act & Assert
        assert (mine | first)(post)
        assert not (mine & first)(post)
        assert (~first)(post)
        assert str(mine & first) == "(created_by == 'u1' AND id == 1)"

    def test_combining_different_types_raises(self, registry: FieldRegistry) -> None:
        """Given predicates over different types, raises TypeError."""
        # Arrange
        posts = Predicate(Post, TRUE, registry)
        tags = Predicate(Tag, TRUE, registry)

        # Act & Assert
        with pytest.raises(TypeError, match="Cannot combine predicates"):
            posts | tags

    def test_constant_properties(self, registry: FieldRegistry) -> None:
        """Given constant predicates, reports them."""
        # Act & Assert
        assert Predicate(Post, FALSE, registry).is_always_false
        assert Predicate(Post, TRUE, registry).is_always_true


# ============================================================================
# Compiler
# ============================================================================


class TestPredicateCompiler:
    """Tests for PredicateCompiler.compile_predicate()."""

    def test_no_rules_is_false(self, compiler: PredicateCompiler, now: datetime) -> None:
        """Given no rules, returns constant false."""
        # Act
        predicate = compiler.compile_predicate(Post, [], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_false
        assert predicate.entity_type is Post

    def test_only_deny_rules_is_false(self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime) -> None:
        """Given only deny rules, returns constant false."""
        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(is_allowed=False)], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_false

    def test_global_allow_is_true(self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime) -> None:
        """Given a Global allow, returns constant true."""
        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="global")], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_true

    def test_own_allow_compares_owner_field(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given an Own allow, returns owner_field == principal."""
        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="own")], "u1", "read", now=now)

        # Assert
        assert predicate.expression == FieldEquals("created_by", "u1")
        assert predicate(Post(1, "u1"))
        assert not predicate(Post(2, "u2"))

    def test_none_scope_allow_is_false(self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime) -> None:
        """Given an allow scoped None, contributes nothing."""
        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="none")], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_false

    def test_other_principals_rules_are_ignored(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a Global allow owned by someone else, returns false."""
        # Act
        predicate = compiler.compile_predicate(
            Post, [make_rule(owner_user_id="u2", scope="global")], "u1", "read", now=now
        )

        # Assert
        assert predicate.is_always_false

    def test_ineffective_rules_are_ignored(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given inactive or other-operation rules, returns false."""
        # Arrange
        rules = [make_rule(is_active=False), make_rule(operation="delete")]

        # Act & Assert
        assert compiler.compile_predicate(Post, rules, "u1", "read", now=now).is_always_false

    def test_higher_priority_deny_excludes(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a Global deny above an Own allow, denies everything."""
        # Arrange
        rules = [
            make_rule(id="deny-all", operation="delete", scope="global", is_allowed=False, priority=10),
            make_rule(id="own", operation="delete", scope="own", priority=1),
        ]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "u1", "delete", now=now)

        # Assert
        assert predicate.is_always_false

    def test_deny_own_above_global_allow(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given an Own deny above a Global allow, allows only others' entities."""
        # Arrange
        rules = [
            make_rule(scope="own", is_allowed=False, priority=5),
            make_rule(scope="global", priority=1),
        ]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "u1", "read", now=now)

        # Assert
        assert predicate.expression == Not(FieldEquals("created_by", "u1"))
        assert not predicate(Post(1, "u1"))
        assert predicate(Post(2, "u2"))

    def test_lower_priority_deny_is_shadowed(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a deny below an allow, the allow still applies."""
        # Arrange
        rules = [
            make_rule(scope="own", priority=5),
            make_rule(scope="global", is_allowed=False, priority=1),
        ]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "u1", "read", now=now)

        # Assert
        assert predicate.expression == FieldEquals("created_by", "u1")

    def test_conditional_allow_uses_scope_only(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given an allow with conditions, over-approximates by its scope."""
        # Act
        predicate = compiler.compile_predicate(
            Post, [make_rule(scope="own", conditions={"status": "published"})], "u1", "read", now=now
        )

        # Assert
        assert predicate.expression == FieldEquals("created_by", "u1")

    def test_conditional_deny_is_skipped(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a conditional deny above an allow, the allow is not narrowed."""
        # Arrange
        rules = [
            make_rule(scope="global", is_allowed=False, conditions={"status": "draft"}, priority=5),
            make_rule(scope="own", priority=1),
        ]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "u1", "read", now=now)

        # Assert
        assert predicate.expression == FieldEquals("created_by", "u1")

    def test_own_without_owner_field_degrades_to_false(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given an Own allow on a type without owner field, contributes false."""
        # Act
        predicate = compiler.compile_predicate(Tag, [make_rule(scope="own")], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_false

    def test_own_deny_without_owner_field_excludes_nothing(
        self, compiler: PredicateCompiler, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given an Own deny on a type without owner field, the deny never applies."""
        # Arrange
        rules = [make_rule(scope="own", is_allowed=False, priority=5), make_rule(scope="global")]

        # Act
        predicate = compiler.compile_predicate(Tag, rules, "u1", "read", now=now)

        # Assert
        assert predicate.is_always_true

    def test_inexpressible_deny_excludes_everything(
        self, registry: FieldRegistry, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a hierarchy deny the resolver cannot express, denies everything below it."""
        # Arrange
        compiler = PredicateCompiler(registry, MembershipOnlyDirectory())
        rules = [
            make_rule(scope="own", priority=9),
            make_rule(scope="department", is_allowed=False, priority=5),
            make_rule(scope="global", priority=1),
        ]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "u1", "read", now=now)

        # Assert
        assert predicate.expression == FieldEquals("created_by", "u1")

    @pytest.mark.parametrize(("fallback", "expected"), [("match", TRUE), ("deny", FALSE)])
    def test_hierarchy_without_resolver_uses_fallback(
        self, registry: FieldRegistry, make_rule: MakeRule, now: datetime, fallback: str, expected: Expression
    ) -> None:
        """Given no resolver, department scope follows the fallback."""
        # Arrange
        compiler = PredicateCompiler(registry, hierarchy_fallback=fallback)  # type: ignore[arg-type]

        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="department")], "u1", "read", now=now)

        # Assert
        assert predicate.expression == expected

    def test_hierarchy_predicate_provider(self, registry: FieldRegistry, make_rule: MakeRule, now: datetime) -> None:
        """Given a resolver with predicate support, uses its expression."""
        # Arrange
        compiler = PredicateCompiler(registry, DepartmentDirectory())

        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="department")], "u1", "read", now=now)

        # Assert
        assert predicate.expression == FieldEquals("department", "sales")

    def test_hierarchy_without_predicate_support_degrades_to_false(
        self, registry: FieldRegistry, make_rule: MakeRule, now: datetime
    ) -> None:
        """Given a resolver without predicate support, contributes false."""
        # Arrange
        compiler = PredicateCompiler(registry, MembershipOnlyDirectory())

        # Act
        predicate = compiler.compile_predicate(Post, [make_rule(scope="organization")], "u1", "read", now=now)

        # Assert
        assert predicate.is_always_false

    def test_dict_entities_use_default_owner_field(self, make_rule: MakeRule, now: datetime) -> None:
        """Given dict entities, Own compares the default owner field."""
        # Arrange
        compiler = PredicateCompiler()

        # Act
        predicate = compiler.compile_predicate(dict, [make_rule(scope="own")], "u1", "read", now=now)

        # Assert
        assert predicate.filter([{"created_by": "u1"}, {"created_by": "u2"}, {}]) == [{"created_by": "u1"}]


class TestPredicateEvaluatorConsistency:
    """The compiled predicate agrees with the evaluator for scope-only rules."""

    SCOPES = ["global", "own", "department", "none"]

    @pytest.mark.parametrize("fallback", ["match", "deny"])
    def test_every_scope_combination_agrees(
        self, registry: FieldRegistry, make_rule: MakeRule, now: datetime, fallback: str
    ) -> None:
        """Given every pair of scope-only rules, predicate(entity) == evaluate(...).is_allowed."""
        # Arrange
        compiler = PredicateCompiler(registry, hierarchy_fallback=fallback)  # type: ignore[arg-type]
        evaluator = RuleEvaluator(registry, hierarchy_fallback=fallback)  # type: ignore[arg-type]
        entities = [Post(1, "u1"), Post(2, "u2")]
        combos = itertools.product(self.SCOPES, [True, False], self.SCOPES, [True, False], [(2, 1), (1, 1)])

        for high_scope, high_allowed, low_scope, low_allowed, (high_priority, low_priority) in combos:
            rules = [
                make_rule(id="high", scope=high_scope, is_allowed=high_allowed, priority=high_priority),
                make_rule(id="low", scope=low_scope, is_allowed=low_allowed, priority=low_priority),
                make_rule(id="other", owner_user_id="u2", scope="global", priority=99),
            ]

            # Act
            predicate = compiler.compile_predicate(Post, rules, "u1", "read", now=now)

            # Assert
            for entity in entities:
                expected = evaluator.evaluate(rules, entity, "u1", "read", now=now).is_allowed
                assert predicate(entity) is expected, (rules, entity, str(predicate))

    def test_self_records_agree(self, make_rule: MakeRule, now: datetime) -> None:
        """Given principal records, Own compares the record id on both paths."""
        # Arrange
        registry = FieldRegistry()
        registry.register(Post, ["id", "created_by"], principal=True)
        compiler = PredicateCompiler(registry)
        evaluator = RuleEvaluator(registry)
        rules = [make_rule(owner_user_id="1", scope="own")]

        # Act
        predicate = compiler.compile_predicate(Post, rules, "1", "read", now=now)

        # Assert
        for entity in [Post(1, "u9"), Post(2, "1")]:
            assert predicate(entity) is evaluator.evaluate(rules, entity, "1", "read", now=now).is_allowed
        assert predicate.expression == FieldEquals("id", "1")
