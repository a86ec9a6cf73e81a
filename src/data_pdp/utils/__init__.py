"""Shared utilities: logging setup, file helpers and rule-file helpers."""

__all__: list[str] = []  # Direct submodule imports required
