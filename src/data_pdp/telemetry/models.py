"""Pydantic models for decision audit logs.

The 'time' field is None when a model is created; ISO8601Formatter adds
the timestamp during log serialization, so every logged event carries a
'time' field in ISO 8601 format (e.g., "2026-03-11T10:30:45.123Z").
"""

from __future__ import annotations

__all__ = [
    "AppliedRuleLog",
    "DecisionEvent",
]

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AppliedRuleLog(BaseModel):
    """The rule that decided an evaluation, as recorded in the audit log."""

    id: str
    scope: str
    is_allowed: bool
    priority: int
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class DecisionEvent(BaseModel):
    """
    One permission decision log entry (audit/decisions.jsonl).

    Captures who asked to do what to which entity, the outcome and why.

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    time: str | None = Field(
        None,
        description="ISO 8601 timestamp, added by formatter during serialization",
    )
    event: Literal["decision", "batch_decision", "filter"] = "decision"

    # --- outcome ---
    decision: Literal["allow", "deny"]
    reason: str
    error: str | None = None

    # --- request ---
    principal_id: str
    operation: str
    entity_type: str | None = None
    entity_id: str | None = None
    resource_type: str | None = None

    # --- evaluation ---
    applied_rule: AppliedRuleLog | None = None
    rules_considered: int = 0  # rules inspected (trace length)
    rules_available: int = 0  # rules supplied by the rule source
    entities_total: int | None = None  # batch/filter only
    entities_allowed: int | None = None  # batch/filter only
    eval_ms: float | None = None

    model_config = ConfigDict(frozen=True)
