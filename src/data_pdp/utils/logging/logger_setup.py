"""JSONL logger setup for the decision audit log.

setup_jsonl_logger returns a non-propagating logger whose single file
handler writes one ISO8601Formatter line per event.
"""

from __future__ import annotations

__all__ = ["setup_jsonl_logger"]

import logging
from pathlib import Path

from data_pdp.utils.file_helpers import set_secure_permissions
from data_pdp.utils.logging.iso_formatter import ISO8601Formatter


def _prepare_log_directory(log_file: Path) -> None:
    """Create the parent directory of log_file (owner-only).

    Raises:
        PermissionError: If the directory cannot be created due to permissions.
        OSError: If creation fails for other reasons.
    """
    directory = log_file.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(f"Cannot create log directory {directory}: {e}") from e
    except OSError as e:
        raise OSError(f"Failed to create log directory {directory}: {e}") from e
    set_secure_permissions(directory, is_directory=True)


def setup_jsonl_logger(
    logger_name: str,
    log_file: Path,
    log_level: int = logging.INFO,
) -> logging.Logger:
    """Return the logger named logger_name, writing JSONL to log_file.

    Repeated calls for one name swap the file handler, so the logger never
    writes to two files at once. Decision events can contain entity ids, so
    the directory and file are restricted to the owner.

    Args:
        logger_name: Logger name (e.g., "data-pdp.audit.decisions").
        log_file: JSONL file to append to.
        log_level: Minimum level written (default: INFO).

    Raises:
        PermissionError: If the log directory cannot be created due to permissions.
        OSError: If the log directory or file cannot be created.
    """
    _prepare_log_directory(log_file)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.propagate = False

    for previous in list(logger.handlers):
        logger.removeHandler(previous)
        previous.close()

    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setLevel(log_level)
    handler.setFormatter(ISO8601Formatter())
    logger.addHandler(handler)
    set_secure_permissions(log_file)

    return logger
