"""Logging utilities and helpers.

This package provides logging infrastructure for data-pdp:
- iso_formatter: ISO 8601 timestamp formatting for JSONL logs
- logger_setup: Factory function for creating JSONL file loggers
- logging_helpers: Serialization of audit event models

Import directly from submodules to avoid circular imports:
    from data_pdp.utils.logging.logger_setup import setup_jsonl_logger
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
