"""Permission rule models for data-level evaluation.

Rule structure:
    RuleSet
    ├── version: Schema version for migrations
    └── rules: List[PermissionRule]
        └── PermissionRule
            ├── id: Optional identifier (generated from content if absent)
            ├── owner_user_id: Principal the rule belongs to
            ├── operation: create | read | update | delete
            ├── scope: global | own | department | organization | none
            ├── conditions: Optional property conditions (AND logic)
            ├── is_allowed: Effect (allow or explicit deny)
            ├── priority: Higher evaluates first
            └── effective_from / effective_to / is_active: Effective window

Design principles:
1. Rules are per-user; a rule only ever applies to its owner_user_id
2. First matching rule by priority wins (allow or deny)
3. Default to DENY if no rule matches
4. Conditions are decoded once, here; evaluation never parses JSON
"""

from __future__ import annotations

__all__ = [
    "Operation",
    "PermissionRule",
    "RuleSet",
    "Scope",
    "generate_rule_id",
]

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Self
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from data_pdp.constants import GENERATED_RULE_ID_PREFIX
from data_pdp.pdp.operands import ConditionSet, decode_conditions


class Operation(str, Enum):
    """Data operation a rule governs."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: "Operation | str") -> "Operation":
        """Parse an operation name case-insensitively.

        Raises:
            ValueError: If the name is not a known operation.
        """
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class Scope(str, Enum):
    """Breadth of entities a rule covers, relative to the principal."""

    GLOBAL = "global"
    OWN = "own"
    DEPARTMENT = "department"
    ORGANIZATION = "organization"
    NONE = "none"

    @classmethod
    def parse(cls, value: "Scope | str") -> "Scope":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PermissionRule(BaseModel):
    """A single data permission rule.

    Attributes:
        id: Identifier for tracing/logging. Generated from content if absent.
        owner_user_id: Principal this rule applies to (stored as text).
        operation: Operation governed by the rule.
        scope: Entities covered relative to the principal.
        conditions: Decoded property conditions, or None if the scope alone
            decides. A malformed condition document is kept (with its error)
            and makes the rule unmatchable instead of failing validation.
        is_allowed: True for allow, False for explicit deny.
        priority: Higher priority rules are evaluated first.
        effective_from: Start of the effective window (inclusive), UTC.
        effective_to: End of the effective window (exclusive), UTC.
        is_active: Inactive rules are never applicable.
        resource_type: Entity type name the rule targets (used by rule sources).
        description: Optional human-readable description.
    """

    id: str | None = None
    owner_user_id: str = Field(validation_alias=AliasChoices("owner_user_id", "ownerUserId", "user_id"))
    operation: Operation
    scope: Scope
    conditions: ConditionSet | None = None
    is_allowed: bool = Field(validation_alias=AliasChoices("is_allowed", "isAllowed"))
    priority: int = 0
    effective_from: datetime | None = Field(
        default=None, validation_alias=AliasChoices("effective_from", "effectiveFrom")
    )
    effective_to: datetime | None = Field(
        default=None, validation_alias=AliasChoices("effective_to", "effectiveTo")
    )
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))
    resource_type: str | None = Field(
        default=None, validation_alias=AliasChoices("resource_type", "resourceType")
    )
    description: str | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("owner_user_id", mode="before")
    @classmethod
    def owner_as_text(cls, v: Any) -> Any:
        """Accept UUID, int or str principal ids; store the text form."""
        if isinstance(v, (UUID, int)) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str) and not v.strip():
            raise ValueError("owner_user_id cannot be empty or whitespace-only")
        return v

    @field_validator("operation", mode="before")
    @classmethod
    def parse_operation(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("scope", mode="before")
    @classmethod
    def parse_scope(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("conditions", mode="plain")
    @classmethod
    def decode_condition_document(cls, v: Any) -> ConditionSet | None:
        """Decode JSON text or a mapping into a ConditionSet (never raises)."""
        return decode_conditions(v)

    @field_validator("effective_from", "effective_to", mode="after")
    @classmethod
    def normalize_to_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_window_and_id(self) -> Self:
        """Reject inverted windows and generate an id when none was given."""
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to <= self.effective_from
        ):
            raise ValueError(
                f"effective_to ({self.effective_to.isoformat()}) must be after "
                f"effective_from ({self.effective_from.isoformat()})"
            )
        if self.id is None:
            # Model is frozen, use object.__setattr__
            object.__setattr__(self, "id", generate_rule_id(self))
        return self

    @field_serializer("conditions")
    def serialize_conditions(self, conditions: ConditionSet | None) -> dict[str, Any] | str | None:
        if conditions is None:
            return None
        return conditions.to_raw()

    @property
    def has_conditions(self) -> bool:
        return self.conditions is not None

    def is_effective(self, now: datetime) -> bool:
        """Check the active flag and the [effective_from, effective_to) window."""
        if not self.is_active:
            return False
        now = _as_utc(now)
        if self.effective_from is not None and self.effective_from > now:
            return False
        if self.effective_to is not None and self.effective_to <= now:
            return False
        return True


def generate_rule_id(rule: PermissionRule) -> str:
    """Generate deterministic ID from rule content.

    Same rule content always produces the same ID.

    Args:
        rule: PermissionRule to generate ID for.

    Returns:
        ID in format "rule_<8-char-hex>", e.g., "rule_a1b2c3d4".
    """
    content = json.dumps(
        rule.model_dump(mode="json", exclude={"id", "description"}, exclude_none=True),
        sort_keys=True,
    )
    hash_id = hashlib.sha256(content.encode()).hexdigest()[:8]
    return f"{GENERATED_RULE_ID_PREFIX}{hash_id}"


class RuleSet(BaseModel):
    """A document of permission rules, as stored in rule files.

    Attributes:
        version: Schema version for migrations.
        rules: Rules in declaration order (ties in priority keep this order).

    Note:
        User-provided IDs must be unique within the rule set. Rules without
        IDs get deterministic IDs; identical rules therefore collide and must
        be given explicit IDs.
    """

    version: str = "1"
    rules: list[PermissionRule] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def check_user_ids(cls, data: Any) -> Any:
        """Check user-provided IDs are unique before any are generated."""
        if not isinstance(data, dict):
            return data
        raw_rules = data.get("rules") or []
        user_ids = []
        for raw in raw_rules:
            rule_id = raw.get("id") if isinstance(raw, dict) else getattr(raw, "id", None)
            if rule_id is not None:
                user_ids.append(rule_id)
        if len(user_ids) != len(set(user_ids)):
            duplicates = {rule_id for rule_id in user_ids if user_ids.count(rule_id) > 1}
            raise ValueError(f"Duplicate rule IDs: {duplicates}")
        return data

    @model_validator(mode="after")
    def check_generated_ids(self) -> Self:
        """Check all final IDs (user + generated) are unique."""
        all_ids = [r.id for r in self.rules]
        if len(all_ids) != len(set(all_ids)):
            duplicates = {rule_id for rule_id in all_ids if all_ids.count(rule_id) > 1}
            raise ValueError(f"Rule ID collision: {duplicates}. Add explicit IDs to conflicting rules.")
        return self

    def for_principal(self, principal_id: Any) -> list[PermissionRule]:
        """Rules owned by a principal, in declaration order."""
        key = str(principal_id)
        return [rule for rule in self.rules if rule.owner_user_id == key]
