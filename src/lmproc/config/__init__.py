"""Configuration management for lmproc."""

from lmproc.config.config import (
    DEFAULTS,
    LOG_LEVELS,
    TOOL_CALL_FORMATS,
    Config,
    ConfigManager,
    get_config,
    get_config_manager,
)

__all__ = [
    "DEFAULTS",
    "LOG_LEVELS",
    "TOOL_CALL_FORMATS",
    "Config",
    "ConfigManager",
    "get_config",
    "get_config_manager",
]
