"""Logging configuration for lmproc.

Provides optional file logging for pipeline runs and a helper that records
processor exceptions with their traceback while returning a short message.
Logs are written to ~/.lmproc/logs/<name>.log
"""
from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Optional

# Directory for log files
LOGS_DIR = Path.home() / ".lmproc" / "logs"

# Root logger for the package
PACKAGE_LOGGER = "lmproc"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Module-level state
_file_handler: Optional[logging.FileHandler] = None
_log_path: Optional[Path] = None


def get_log_path(name: str) -> Path:
    """Get the log file path for a run name."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    return LOGS_DIR / f"{name}.log"


def configure_file_logging(name: str, level: int = logging.DEBUG) -> Path:
    """Send lmproc logs to ~/.lmproc/logs/<name>.log.

    Replaces any handler installed by a previous call.

    Args:
        name: Log file stem, e.g. a conversation id (first 8 chars are used)
        level: Logging level for file output (default DEBUG)

    Returns:
        Path to the log file
    """
    global _file_handler, _log_path

    log_path = get_log_path(name[:8])
    close_file_logging()

    _file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    _file_handler.setLevel(level)
    _file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.addHandler(_file_handler)
    logger.setLevel(min(logger.level or logging.DEBUG, level))

    _log_path = log_path
    logger.info(f"=== Logging started: {name} ===")
    return log_path


def close_file_logging() -> None:
    """Flush and detach the file handler, if any."""
    global _file_handler, _log_path

    if _file_handler is not None:
        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.info("=== Logging ended ===")
        logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
        _log_path = None


def get_current_log_path() -> Optional[Path]:
    """Return the active log file path, or None."""
    return _log_path


def configure_console_logging(level: str | int = logging.WARNING) -> None:
    """Basic stderr logging for the CLI."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)


def log_processor_exception(
    error: Exception,
    context: str = "",
    include_traceback: bool = True,
) -> str:
    """Log an exception raised inside a message processor.

    The traceback goes to the log; the return value is a one-line message
    suitable for showing to the model.

    Args:
        error: The exception to log
        context: What was running, e.g. the processor repr
        include_traceback: Whether to include full traceback in log

    Returns:
        Short error message (without traceback)
    """
    logger = logging.getLogger(f"{PACKAGE_LOGGER}.pipeline")

    error_type = type(error).__name__
    error_msg = str(error)

    if include_traceback:
        tb_str = traceback.format_exc()
        logger.error(f"{context}\n{error_type}: {error_msg}\n\nTraceback:\n{tb_str}")
    else:
        logger.error(f"{context} - {error_type}: {error_msg}")

    return f"An exception was raised! Exception: {error!r}"
