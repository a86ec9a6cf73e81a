"""Shared fixtures for data-pdp tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from data_pdp.pdp.rules import PermissionRule


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return datetime(2026, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_rule() -> Callable[..., PermissionRule]:
    """Factory fixture for rules owned by u1 with sensible defaults.

    Returns a function that accepts any PermissionRule field as keyword.
    """

    def _make(**overrides: Any) -> PermissionRule:
        data: dict[str, Any] = {
            "owner_user_id": "u1",
            "operation": "read",
            "scope": "global",
            "is_allowed": True,
            "priority": 0,
        }
        data.update(overrides)
        return PermissionRule.model_validate(data)

    return _make
