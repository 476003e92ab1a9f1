"""Logging setup for Terminator.

One rotating log file per log directory, optional console output, and
levels named the way the configuration names them (``debug`` .. ``fatal``,
plus ``none`` to silence the package entirely).
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

from .models import LogLevel

PACKAGE_LOGGER = "terminator"
LOG_FILE_NAME = "terminator.log"

# Default configuration
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_BACKUP_COUNT = 3

LEVELS: dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}

_current_log_file: Path | None = None


def to_logging_level(level: LogLevel | int | str) -> int | None:
    """Convert a configured level to a ``logging`` level.

    Returns None for ``LogLevel.NONE``. Unknown strings fall back to INFO.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        try:
            level = LogLevel(level.strip().lower())
        except ValueError:
            return getattr(logging, level.upper(), DEFAULT_LOG_LEVEL)
    if level is LogLevel.NONE:
        return None
    return LEVELS[level]


def get_log_file_path(log_dir: Path) -> Path:
    """Get the path to the log file, creating the directory if needed."""
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / LOG_FILE_NAME


def setup_logging(
    *,
    level: LogLevel | int | str = DEFAULT_LOG_LEVEL,
    log_dir: Path | None = None,
    log_to_file: bool = True,
    log_to_console: bool = False,
    console_stream: TextIO = sys.stderr,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    debug_modules: list[str] | None = None,
) -> None:
    """Configure logging for the package.

    Args:
        level: Log level as a LogLevel, ``logging`` constant or name.
        log_dir: Directory for ``terminator.log``. Required for file output.
        log_to_file: Whether to log to file.
        log_to_console: Whether to log to console.
        console_stream: Stream for console output.
        max_bytes: Maximum log file size before rotation.
        backup_count: Number of backup log files to keep.
        debug_modules: Module names (with or without the package prefix)
            to force to DEBUG.
    """
    global _current_log_file

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    _current_log_file = None

    resolved = to_logging_level(level)
    if resolved is None:
        # Above CRITICAL, so child loggers inheriting the level emit nothing
        package_logger.setLevel(logging.CRITICAL + 1)
        package_logger.addHandler(logging.NullHandler())
        return

    package_logger.setLevel(resolved)
    formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT)

    if log_to_file and log_dir is not None:
        log_file = get_log_file_path(log_dir)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(resolved)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
        _current_log_file = log_file

    if log_to_console:
        console_handler = logging.StreamHandler(console_stream)
        console_handler.setLevel(resolved)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if debug_modules:
        for module_name in debug_modules:
            logging.getLogger(_qualify(module_name)).setLevel(logging.DEBUG)


def _qualify(name: str) -> str:
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return name
    return f"{PACKAGE_LOGGER}.{name}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the ``terminator`` namespace."""
    return logging.getLogger(_qualify(name))


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    message: str = "An error occurred",
    *,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> None:
    """Log an exception with consistent formatting."""
    if include_traceback:
        logger.log(level, "%s: %s", message, exc, exc_info=True)
    else:
        logger.log(level, "%s: %s (%s)", message, exc, type(exc).__name__)


def get_recent_logs(lines: int = 100) -> list[str]:
    """Last ``lines`` entries of the active log file, if any."""
    if _current_log_file is None or not _current_log_file.exists():
        return []

    with open(_current_log_file, "r", encoding="utf-8") as f:
        all_lines = f.readlines()
        return all_lines[-lines:]
