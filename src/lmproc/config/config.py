"""
Configuration management for lmproc.

Provides a configuration file at ~/.lmproc/config.json for default settings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from lmproc.engine.extraction import BOUNDARY_NAMES

logger = logging.getLogger(__name__)

TOOL_CALL_FORMATS = ("auto", "tagged", "bracketed")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Default values - single source of truth
DEFAULTS = {
    "max_retry_count": 3,
    "verbose": False,
    "lenient_json": False,
    "json_boundary": "none",
    "tool_call_format": "auto",
    "log_level": "WARNING",
}


class Config(BaseModel):
    """Configuration settings for lmproc.

    All settings are optional. Use DEFAULTS for default values.
    """

    model_config = {"extra": "ignore", "validate_assignment": True}

    # Conversation settings
    max_retry_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Failures allowed before a conversation stops retrying"
    )
    verbose: Optional[bool] = Field(
        default=None,
        description="Log every processor step at INFO level"
    )

    # Processing settings
    lenient_json: Optional[bool] = Field(
        default=None,
        description="Clean up malformed JSON before decoding"
    )
    json_boundary: Optional[str] = Field(
        default=None,
        description="Where JSON lives in a reply: none, tag, fenced_json, fenced"
    )
    tool_call_format: Optional[str] = Field(
        default=None,
        description="Tool call grammar: auto, tagged, bracketed"
    )

    # Logging
    log_level: Optional[str] = Field(
        default=None,
        description="Console log level for the CLI: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("json_boundary")
    @classmethod
    def _check_boundary(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in BOUNDARY_NAMES:
            raise ValueError(f"must be one of {sorted(BOUNDARY_NAMES)}")
        return value

    @field_validator("tool_call_format")
    @classmethod
    def _check_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in TOOL_CALL_FORMATS:
            raise ValueError(f"must be one of {list(TOOL_CALL_FORMATS)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {list(LOG_LEVELS)}")
        return level

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value with fallback to DEFAULTS, then to provided default."""
        value = getattr(self, key, None)
        if value is not None:
            return value
        return DEFAULTS.get(key, default)


class ConfigManager:
    """Reads and writes ~/.lmproc/config.json.

    The file only holds settings the user changed. Keys this version does
    not know about (such as a "_comment") are left in place on write.
    """

    CONFIG_DIR = Path.home() / ".lmproc"
    CONFIG_FILE = CONFIG_DIR / "config.json"

    def __init__(self):
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        """The loaded config, read from disk on first use."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> Config:
        """Load settings; a missing or invalid file gives an empty Config."""
        try:
            return Config.model_validate(self._read_raw())
        except ValueError as e:
            logger.warning(f"Invalid config file ({e}), using defaults")
            return Config()

    def _read_raw(self) -> dict[str, Any]:
        if not self.CONFIG_FILE.exists():
            return {}
        try:
            data = json.loads(self.CONFIG_FILE.read_text())
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid config file ({e}), using defaults")
            return {}
        if not isinstance(data, dict):
            logger.warning("Invalid config file (expected a JSON object), using defaults")
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        self.CONFIG_FILE.write_text(json.dumps(data, indent=2) + "\n")
        self._config = None

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in Config.model_fields:
            raise ValueError(f"Unknown config key: {key}")

    def set(self, key: str, value: Any) -> None:
        """Validate one setting and store it.

        Raises:
            ValueError: Unknown key or invalid value.
        """
        self._check_key(key)
        checked = Config()
        setattr(checked, key, value)

        data = self._read_raw()
        data[key] = getattr(checked, key)
        self._write(data)

    def unset(self, key: str) -> None:
        """Drop a setting so its default applies again."""
        self._check_key(key)
        data = self._read_raw()
        data.pop(key, None)
        self._write(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def list_settings(self) -> dict[str, Any]:
        """Settings whose value differs from DEFAULTS."""
        return {
            key: value
            for key, value in self.config.model_dump(exclude_none=True).items()
            if value != DEFAULTS.get(key)
        }

    def reset(self) -> None:
        """Delete the config file."""
        self.CONFIG_FILE.unlink(missing_ok=True)
        self._config = None


# Singleton instance
_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the singleton ConfigManager instance."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def get_config() -> Config:
    """Get the current configuration."""
    return get_config_manager().config
