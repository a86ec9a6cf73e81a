"""Command-line interface for data-pdp.

Provides commands for validating rule files and evaluating them offline
against JSON entities.
"""

from .main import cli, main

__all__ = ["cli", "main"]
