"""Application configuration for data-pdp.

Defines configuration models for the evaluation engine and decision logging.
Config is a JSON file; every section has defaults, so an empty object is a
valid configuration.

Example usage:
    # Load from config file
    config = AppConfig.load_from_file(config_path)

    # Save configuration
    config.save_to_file(config_path)

Example config file:
    {
      "engine": {"hierarchy_fallback": "deny", "default_owner_field": "created_by"},
      "logging": {"log_dir": "~/.local/state", "log_level": "INFO"},
      "rules_path": "rules.json"
    }
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "EngineConfig",
    "LoggingConfig",
]

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from data_pdp.access.hierarchy import HierarchyFallback
from data_pdp.constants import DEFAULT_LOG_DIR, DEFAULT_OWNER_FIELD
from data_pdp.exceptions import ConfigurationError
from data_pdp.utils.file_helpers import atomic_write_json, load_validated_json, require_file_exists


class EngineConfig(BaseModel):
    """Evaluation engine settings.

    Attributes:
        hierarchy_fallback: Outcome of Department/Organization scopes when no
            hierarchy resolver is configured. "match" treats them as in scope,
            "deny" treats them as out of scope.
        default_owner_field: Field read as the owner id for Own scope on
            entities without an explicit registration (mappings, get_field).
    """

    hierarchy_fallback: HierarchyFallback = "match"
    default_owner_field: str = Field(default=DEFAULT_OWNER_FIELD, min_length=1)

    model_config = ConfigDict(frozen=True)


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Decision events are stored under the base directory:
        <log_dir>/
        └── data_pdp_logs/
            └── audit/
                └── decisions.jsonl

    Attributes:
        log_dir: Base directory for logs (default: $XDG_STATE_HOME or ~/.local/state).
        log_level: Level of the decision logger. WARNING suppresses allow/deny
            events but keeps rule source failures.
        decision_log_enabled: Write decision events at all.
    """

    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    log_level: Literal["DEBUG", "INFO", "WARNING"] = "INFO"
    decision_log_enabled: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level)

    @property
    def log_path(self) -> Path:
        return Path(self.log_dir).expanduser()


class AppConfig(BaseModel):
    """Main application configuration for data-pdp.

    Attributes:
        engine: Evaluation engine settings.
        logging: Decision logging settings.
        rules_path: Optional default rule file for the CLI and InMemoryRuleSource.
    """

    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    rules_path: str | None = None

    model_config = ConfigDict(frozen=True)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file atomically.

        Creates parent directories if they don't exist and sets secure
        permissions (0o700 on the directory, 0o600 on the file).

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        try:
            atomic_write_json(self.model_dump(mode="json"), config_path, prefix=".config_")
        except OSError as e:
            raise ConfigurationError(f"Could not write config file {config_path}: {e}") from e

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            ConfigurationError: If the file is missing, not valid JSON or
                fails validation.
        """
        try:
            require_file_exists(config_path, file_type="configuration")
            return load_validated_json(
                config_path,
                cls,
                file_type="config",
                recovery_hint="Edit the config file to fix the errors.",
            )
        except (FileNotFoundError, ValueError) as e:
            raise ConfigurationError(str(e)) from e
