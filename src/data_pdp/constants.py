"""Application-wide constants for data-pdp.

Constants that define engine behavior.
For user-configurable settings per deployment, see config.py.
"""

import os

__all__ = [
    # Application identity
    "APP_NAME",
    # Placeholders
    "PLACEHOLDER_USER_ID",
    "PLACEHOLDER_CURRENT_DATE",
    "PLACEHOLDER_CURRENT_DATETIME",
    "CURRENT_DATE_FORMAT",
    "CURRENT_DATETIME_FORMAT",
    # Operators
    "OPERATOR_ALIASES",
    # Field access
    "DEFAULT_OWNER_FIELD",
    "DEFAULT_ID_FIELD",
    # Rule ids
    "GENERATED_RULE_ID_PREFIX",
    # Logging
    "DEFAULT_LOG_DIR",
    "LOGS_SUBDIR",
    "DECISIONS_LOG_RELATIVE_PATH",
    "DECISION_LOGGER_NAME",
    # Decision reasons
    "REASON_NO_APPLICABLE_RULES",
    "REASON_DEFAULT_DENY",
]

APP_NAME = "data-pdp"

# =============================================================================
# Condition placeholders
# =============================================================================
# Markers are matched case-insensitively inside string operands.

PLACEHOLDER_USER_ID = "UserId"
PLACEHOLDER_CURRENT_DATE = "CurrentDate"
PLACEHOLDER_CURRENT_DATETIME = "CurrentDateTime"

CURRENT_DATE_FORMAT = "%Y-%m-%d"
CURRENT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# =============================================================================
# Condition operators
# =============================================================================
# Lowercase operator name (including synonyms) -> canonical operator name.

OPERATOR_ALIASES: dict[str, str] = {
    "eq": "eq",
    "equals": "eq",
    "ne": "ne",
    "notequals": "ne",
    "gt": "gt",
    "greaterthan": "gt",
    "gte": "gte",
    "greaterthanorequal": "gte",
    "lt": "lt",
    "lessthan": "lt",
    "lte": "lte",
    "lessthanorequal": "lte",
    "in": "in",
    "contains": "in",
    "notin": "notin",
    "notcontains": "notin",
    "startswith": "startswith",
    "endswith": "endswith",
    "regex": "regex",
    "isnull": "isnull",
    "isnotnull": "isnotnull",
}

# =============================================================================
# Entity field access
# =============================================================================

DEFAULT_OWNER_FIELD = "created_by"
DEFAULT_ID_FIELD = "id"

# =============================================================================
# Rules
# =============================================================================

GENERATED_RULE_ID_PREFIX = "rule_"

REASON_NO_APPLICABLE_RULES = "no applicable rules"
REASON_DEFAULT_DENY = "no matching rules, default deny"

# =============================================================================
# Logging
# =============================================================================
# Linux/Unix: XDG_STATE_HOME is for logs and state, falls back to ~/.local/state

DEFAULT_LOG_DIR = os.environ.get("XDG_STATE_HOME", "~/.local/state")
LOGS_SUBDIR = "data_pdp_logs"
DECISIONS_LOG_RELATIVE_PATH = "audit/decisions.jsonl"
DECISION_LOGGER_NAME = "data-pdp.audit.decisions"
