"""Decision logging for permission enforcement.

Logs are written to <log_dir>/data_pdp_logs/audit/decisions.jsonl, one
JSON object per decision. The engine itself never logs; the enforcement
service calls DecisionEventLogger after every evaluation.
"""

from __future__ import annotations

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
    "get_decisions_log_path",
]

import logging
from pathlib import Path
from typing import Any

from data_pdp.constants import DECISION_LOGGER_NAME, DECISIONS_LOG_RELATIVE_PATH, LOGS_SUBDIR
from data_pdp.pdp.results import PermissionEvaluationResult
from data_pdp.telemetry.models import AppliedRuleLog, DecisionEvent
from data_pdp.utils.logging.logger_setup import setup_jsonl_logger
from data_pdp.utils.logging.logging_helpers import sanitize_for_logging, serialize_audit_event

_system_logger = logging.getLogger(__name__)


def get_decisions_log_path(log_dir: Path) -> Path:
    """Path of decisions.jsonl under a base log directory."""
    return log_dir.expanduser() / LOGS_SUBDIR / DECISIONS_LOG_RELATIVE_PATH


def create_decision_logger(log_dir: Path, log_level: int = logging.INFO) -> logging.Logger:
    """Create the JSONL logger for decision events.

    Args:
        log_dir: Base log directory (the data_pdp_logs folder is created inside).
        log_level: Logging level (default: INFO).

    Returns:
        Configured logger instance.
    """
    return setup_jsonl_logger(DECISION_LOGGER_NAME, get_decisions_log_path(log_dir), log_level)


def _entity_type_name(entity: Any) -> str | None:
    if entity is None:
        return None
    return type(entity).__name__


class DecisionEventLogger:
    """Logs permission decision events to decisions.jsonl.

    Logging failures never change a decision: if writing the event fails,
    the failure is reported on the module logger and the caller proceeds.
    """

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize decision event logger.

        Args:
            logger: Logger for decision events (usually from create_decision_logger).
        """
        self._logger = logger

    def log(
        self,
        result: PermissionEvaluationResult,
        *,
        principal_id: Any,
        operation: str,
        entity: Any = None,
        entity_id: Any = None,
        resource_type: str | None = None,
        rules_available: int = 0,
        eval_ms: float | None = None,
    ) -> None:
        """Log one single-entity decision."""
        applied = result.applied_rules[0] if result.applied_rules else None
        event = DecisionEvent(
            decision=result.decision.value,
            reason=sanitize_for_logging(result.reason),
            error=sanitize_for_logging(result.error) if result.error else None,
            principal_id=str(principal_id),
            operation=operation,
            entity_type=_entity_type_name(entity),
            entity_id=None if entity_id is None else str(entity_id),
            resource_type=resource_type,
            applied_rule=(
                AppliedRuleLog(
                    id=applied.id or "",
                    scope=applied.scope.value,
                    is_allowed=applied.is_allowed,
                    priority=applied.priority,
                    description=applied.description,
                )
                if applied is not None
                else None
            ),
            rules_considered=len(result.trace),
            rules_available=rules_available,
            eval_ms=round(eval_ms, 2) if eval_ms is not None else None,
        )
        self._emit(event)

    def log_bulk(
        self,
        *,
        event: str,
        principal_id: Any,
        operation: str,
        entity_type: str | None,
        total: int,
        allowed: int,
        rules_available: int,
        reason: str,
        error: str | None = None,
        eval_ms: float | None = None,
    ) -> None:
        """Log a summary of a batch check or filter call."""
        summary = DecisionEvent(
            event=event,
            decision="allow" if allowed else "deny",
            reason=sanitize_for_logging(reason),
            error=sanitize_for_logging(error) if error else None,
            principal_id=str(principal_id),
            operation=operation,
            entity_type=entity_type,
            rules_available=rules_available,
            entities_total=total,
            entities_allowed=allowed,
            eval_ms=round(eval_ms, 2) if eval_ms is not None else None,
        )
        self._emit(summary)

    def _emit(self, event: DecisionEvent) -> None:
        try:
            self._logger.info(serialize_audit_event(event))
        except Exception as e:
            _system_logger.error("Failed to write decision event: %s", e)
