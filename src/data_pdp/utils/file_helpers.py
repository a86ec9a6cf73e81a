"""Shared file utilities for data-pdp.

Provides common utilities used by config and rule-file handling:
- compute_file_checksum: SHA256 checksum for file integrity
- set_secure_permissions: Secure file/directory permissions
- require_file_exists: FileNotFoundError with a helpful message
- load_validated_json: JSON + Pydantic validation with per-field errors
- atomic_write_json: Write JSON via temp file + rename
"""

from __future__ import annotations

import hashlib
import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

__all__ = [
    "atomic_write_json",
    "compute_file_checksum",
    "load_validated_json",
    "require_file_exists",
    "set_secure_permissions",
]


def compute_file_checksum(file_path: Path) -> str:
    """Compute SHA256 checksum of file content.

    Returns:
        str: Checksum in format "sha256:<hex_digest>".

    Raises:
        FileNotFoundError: If file doesn't exist.
        OSError: If file cannot be read.
    """
    with open(file_path, "rb") as f:
        content = f.read()
    digest = hashlib.sha256(content).hexdigest()
    return f"sha256:{digest}"


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Restrict a file (0o600) or directory (0o700) to its owner.

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def require_file_exists(file_path: Path, file_type: str = "file") -> None:
    """Raise FileNotFoundError with helpful message if file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for error message (e.g., "config", "rules").

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if file_path.exists():
        return
    raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.")


def _rule_context(data: Any, loc_parts: tuple[Any, ...]) -> str:
    """Identify the rule an error belongs to (by id, else by position)."""
    if len(loc_parts) < 2 or loc_parts[0] != "rules" or not isinstance(loc_parts[1], int):
        return ""
    rules = data.get("rules", []) if isinstance(data, dict) else []
    rule_index = loc_parts[1]
    if 0 <= rule_index < len(rules) and isinstance(rules[rule_index], dict):
        rule_id = rules[rule_index].get("id")
        if rule_id:
            return f" (rule id: {rule_id})"
    return f" (rule #{rule_index + 1})"


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
    recovery_hint: str | None = None,
) -> T:
    """Load JSON file and validate against Pydantic model.

    Combines file reading, JSON parsing, and Pydantic validation with
    consistent error messages.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "config", "rules").
        recovery_hint: Optional hint appended to validation errors.

    Returns:
        Validated Pydantic model instance.

    Raises:
        ValueError: If JSON is invalid or validation fails.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc_parts = tuple(error["loc"])
            loc = ".".join(str(x) for x in loc_parts) or "(root)"
            errors.append(f"  - {loc}{_rule_context(data, loc_parts)}: {error['msg']}")

        hint = f"\n\n{recovery_hint}" if recovery_hint else ""
        raise ValueError(f"Invalid {file_type} file {file_path}:\n" + "\n".join(errors) + hint) from e


def atomic_write_json(data: Any, path: Path, *, prefix: str = ".data_pdp_") -> None:
    """Write JSON to a file atomically.

    Writes to a temp file in the same directory, then renames over the
    target, so a failed write never leaves a truncated file. Creates
    parent directories (0o700) and leaves the file owner-only (0o600).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(path.parent, is_directory=True)

    content = json.dumps(data, indent=2) + "\n"

    # Same directory ensures rename is atomic (same filesystem)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, 0o600)
        os.replace(temp_path, path)

    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
