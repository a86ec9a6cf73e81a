"""Rule file loader - load and save JSON rule files.

Rule file format:
    {
      "version": "1",
      "rules": [
        {"id": "own-posts", "owner_user_id": "u1", "operation": "read",
         "scope": "own", "is_allowed": true, "priority": 1,
         "conditions": {"status": {"in": ["draft", "published"]}}}
      ]
    }

Features:
- Secure file permissions (0o700 for directory, 0o600 for file)
- Detailed validation error messages (per field, per rule)
- Optional normalization: generated rule IDs are written back to the file
"""

from __future__ import annotations

__all__ = [
    "load_rules",
    "save_rules",
]

import json
import logging
from pathlib import Path

from data_pdp.pdp.rules import RuleSet
from data_pdp.utils.file_helpers import atomic_write_json, load_validated_json, require_file_exists

_logger = logging.getLogger(__name__)


def _has_generated_ids(path: Path, rule_set: RuleSet) -> bool:
    """True if any rule in the file had no ID before validation."""
    try:
        with open(path, encoding="utf-8") as f:
            raw_rules = json.load(f).get("rules", [])
    except (OSError, json.JSONDecodeError, AttributeError):
        return False
    if len(raw_rules) != len(rule_set.rules):
        return False
    return any(isinstance(raw, dict) and raw.get("id") is None for raw in raw_rules)


def load_rules(path: Path, *, normalize: bool = False) -> RuleSet:
    """Load a rule set from a JSON file.

    Args:
        path: Path to the rule file.
        normalize: If True, save back to file when rule IDs were generated,
            so generated IDs stay stable in logs across edits.

    Returns:
        RuleSet loaded from file.

    Raises:
        FileNotFoundError: If the rule file does not exist.
        ValueError: If the file contains invalid JSON or fails validation.

    Note:
        If the normalization save fails, a warning is logged but the valid
        rule set is still returned.
    """
    require_file_exists(path, file_type="rules")
    rule_set = load_validated_json(
        path,
        RuleSet,
        file_type="rules",
        recovery_hint="Edit the rule file to fix the errors.",
    )

    if normalize and _has_generated_ids(path, rule_set):
        try:
            save_rules(rule_set, path)
        except OSError as e:
            _logger.warning(
                "Failed to save normalized rules to %s: %s. Generated rule IDs will not be persisted.",
                path,
                e,
            )

    return rule_set


def save_rules(rule_set: RuleSet, path: Path) -> None:
    """Save a rule set to file atomically.

    Creates parent directories if they don't exist and sets secure
    permissions (0o700 on directory, 0o600 on file).
    """
    data = rule_set.model_dump(mode="json", exclude_none=True)
    atomic_write_json(data, path, prefix=".rules_")
