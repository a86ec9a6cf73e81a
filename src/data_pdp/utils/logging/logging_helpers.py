"""Logging helper utilities.

Provides generic utilities for telemetry logging:
- Event serialization (audit event model_dump with consistent options)
- Sanitization (log injection prevention)
"""

from __future__ import annotations

__all__ = [
    "sanitize_for_logging",
    "serialize_audit_event",
]

from typing import Any

from pydantic import BaseModel


def serialize_audit_event(event: BaseModel) -> dict[str, Any]:
    """Serialize a Pydantic event model for audit logging.

    - Excludes the 'time' field (added by ISO8601Formatter at log time)
    - Excludes None values for cleaner logs
    - Uses JSON mode so datetime/enum values serialize cleanly

    Args:
        event: Pydantic model instance (e.g., DecisionEvent).

    Returns:
        dict: Serialized event data ready for logging.
    """
    return event.model_dump(mode="json", exclude={"time"}, exclude_none=True)


def sanitize_for_logging(value: Any) -> str:
    """Sanitize values for safe JSONL logging.

    Evaluation reasons can embed entity field values, so newlines and
    tabs are escaped to keep one event per line.

    Example:
        >>> sanitize_for_logging("title\\nwith\\nnewlines")
        'title\\\\nwith\\\\nnewlines'
    """
    if not isinstance(value, str):
        value = str(value)
    return value.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
