"""Config loading, merging and terminal application lookup.

Configuration comes from four layers, later layers winning:

1. ``AppConfig`` defaults
2. ``~/.config/terminator/config.json`` (optional)
3. ``TERMINATOR_*`` environment variables
4. Explicit overrides (command-line flags)
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import dacite

from .exceptions import (
    ConfigLoadError,
    ConfigValidationError,
    UnsupportedTerminalError,
    record_error,
)
from .models import AppConfig, TerminalApp, load_config_from_dict

logger = logging.getLogger(__name__)

# Configuration file locations
CONFIG_DIR = Path.home() / ".config" / "terminator"
GLOBAL_CONFIG_PATH = CONFIG_DIR / "config.json"

ENV_PREFIX = "TERMINATOR_"
TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
FALSE_VALUES = frozenset({"false", "0", "no", "off"})

TERMINAL_APP_ALIASES: dict[str, TerminalApp] = {
    "terminal": TerminalApp.APPLE_TERMINAL,
    "terminal.app": TerminalApp.APPLE_TERMINAL,
    "apple terminal": TerminalApp.APPLE_TERMINAL,
    "appleterminal": TerminalApp.APPLE_TERMINAL,
    "iterm": TerminalApp.ITERM,
    "iterm.app": TerminalApp.ITERM,
    "iterm2": TerminalApp.ITERM,
    "iterm2.app": TerminalApp.ITERM,
}


def parse_bool(value: str) -> bool:
    """Parse an environment boolean; raises ValueError when unrecognized."""
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _lower(value: str) -> str:
    lowered = value.strip().lower()
    return "warn" if lowered == "warning" else lowered


def _optional_str(value: str) -> str | None:
    return value.strip() or None


# Environment variable -> (AppConfig field, converter)
ENV_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "TERMINATOR_APP": ("terminal_app", str.strip),
    "TERMINATOR_LOG_LEVEL": ("log_level", _lower),
    "TERMINATOR_LOG_DIR": ("log_dir", str.strip),
    "TERMINATOR_WINDOW_GROUPING": ("window_grouping", _lower),
    "TERMINATOR_DEFAULT_LINES": ("default_lines", int),
    "TERMINATOR_BACKGROUND_STARTUP_SECONDS": ("background_startup_seconds", float),
    "TERMINATOR_FOREGROUND_COMPLETION_SECONDS": ("foreground_completion_seconds", float),
    "TERMINATOR_DEFAULT_FOCUS_ON_ACTION": ("default_focus_on_action", parse_bool),
    "TERMINATOR_SIGINT_WAIT_SECONDS": ("sigint_wait_seconds", float),
    "TERMINATOR_SIGTERM_WAIT_SECONDS": ("sigterm_wait_seconds", float),
    "TERMINATOR_BUSY_SIGINT_WAIT_SECONDS": ("busy_sigint_wait_seconds", float),
    "TERMINATOR_BUSY_SIGTERM_WAIT_SECONDS": ("busy_sigterm_wait_seconds", float),
    "TERMINATOR_DEFAULT_FOCUS_ON_KILL": ("default_focus_on_kill", parse_bool),
    "TERMINATOR_DEFAULT_BACKGROUND_EXECUTION": ("default_background_execution", parse_bool),
    "TERMINATOR_PRE_KILL_SCRIPT_PATH": ("pre_kill_script_path", _optional_str),
    "TERMINATOR_REUSE_BUSY_SESSIONS": ("reuse_busy_sessions", parse_bool),
    "TERMINATOR_ITERM_PROFILE_NAME": ("iterm_profile_name", _optional_str),
}

_NON_NEGATIVE_FIELDS = (
    "background_startup_seconds",
    "foreground_completion_seconds",
    "sigint_wait_seconds",
    "sigterm_wait_seconds",
    "busy_sigint_wait_seconds",
    "busy_sigterm_wait_seconds",
)


def merge_configs(base: dict, overrides: dict) -> dict:
    """
    Merge an override layer into a base configuration.

    Rules:
    - Scalars: override wins
    - Lists: override replaces base (no merge)
    - Dicts: recursive merge
    - None in overrides: removes key from base

    Args:
        base: The base configuration dictionary
        overrides: The override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = copy.deepcopy(base)

    for key, value in overrides.items():
        if value is None:
            # None removes key
            result.pop(key, None)
        elif isinstance(value, dict) and key in result and isinstance(result[key], dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def load_file_config(path: Path | None = None) -> dict:
    """
    Read the JSON configuration file.

    Returns an empty dict when the file does not exist.

    Raises:
        ConfigLoadError: If the file exists but cannot be read or parsed.
    """
    config_path = path or GLOBAL_CONFIG_PATH
    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        logger.debug("Loaded config from %s", config_path)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in config file: %s", e)
        record_error(e)
        raise ConfigLoadError(
            f"Invalid JSON in config file at line {e.lineno}",
            file_path=str(config_path),
            context={"line": e.lineno, "column": e.colno},
            cause=e,
        ) from e
    except OSError as e:
        logger.error("Failed to read config file: %s", e)
        record_error(e)
        raise ConfigLoadError(
            "Failed to read config file",
            file_path=str(config_path),
            cause=e,
        ) from e

    if not isinstance(data, dict):
        raise ConfigLoadError(
            "Config file must contain a JSON object",
            file_path=str(config_path),
        )
    return data


def load_env_config(environ: Mapping[str, str] | None = None) -> dict:
    """Collect ``TERMINATOR_*`` variables into config fields.

    Values that fail to parse are logged and skipped.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    for name, (field_name, convert) in ENV_FIELDS.items():
        raw = env.get(name)
        if raw is None:
            continue
        try:
            data[field_name] = convert(raw)
        except ValueError as e:
            logger.warning("Ignoring %s=%r: %s", name, raw, e)
    return data


def validate_config(config: AppConfig) -> AppConfig:
    """Range checks dacite cannot express.

    Raises:
        ConfigValidationError: A value is out of range.
    """
    if config.default_lines <= 0:
        raise ConfigValidationError(
            "default_lines must be positive",
            field="default_lines",
            value=config.default_lines,
            expected="integer > 0",
        )
    for name in _NON_NEGATIVE_FIELDS:
        value = getattr(config, name)
        if value < 0:
            raise ConfigValidationError(
                f"{name} must not be negative",
                field=name,
                value=value,
                expected="seconds >= 0",
            )
    return config


def load_config(
    overrides: dict | None = None,
    *,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Build the effective configuration from every layer.

    Args:
        overrides: Explicit values, e.g. from command-line flags
        config_path: Config file to read instead of the default location
        environ: Environment mapping instead of ``os.environ``

    Returns:
        The merged, validated AppConfig

    Raises:
        ConfigLoadError: If the config file cannot be read.
        ConfigValidationError: If the merged values do not fit AppConfig.
    """
    data = merge_configs(load_file_config(config_path), load_env_config(environ))
    if overrides:
        data = merge_configs(data, overrides)

    try:
        config = load_config_from_dict(data)
    except (dacite.DaciteError, ValueError, TypeError) as e:
        logger.error("Config validation failed: %s", e)
        record_error(e)
        raise ConfigValidationError(
            f"Config validation failed: {e}",
            cause=e,
        ) from e
    return validate_config(config)


def resolve_terminal_app(name: str) -> TerminalApp:
    """Map a user-facing application name to a supported backend.

    Raises:
        UnsupportedTerminalError: The name is not a known alias.
    """
    app = TERMINAL_APP_ALIASES.get(name.strip().lower())
    if app is None:
        raise UnsupportedTerminalError(name)
    return app
