"""Telemetry for data-pdp: audit event models and the decision logger.

- models.py          - Pydantic models for audit log events
- decision_logger.py - Writes decision events to decisions.jsonl
"""

from data_pdp.telemetry.decision_logger import DecisionEventLogger, create_decision_logger
from data_pdp.telemetry.models import AppliedRuleLog, DecisionEvent

__all__ = [
    "AppliedRuleLog",
    "DecisionEvent",
    "DecisionEventLogger",
    "create_decision_logger",
]
