"""Core dataclasses for sessions, requests, results and configuration.

Request records are frozen: they are built once per invocation and never
mutated. Results expose ``to_dict()`` producing the JSON shape the calling
wrapper consumes.
"""

from __future__ import annotations

import tempfile
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import dacite


# =============================================================================
# Enumerations
# =============================================================================


class TerminalApp(Enum):
    """Terminal applications with a backend implementation."""

    APPLE_TERMINAL = "Terminal"
    ITERM = "iTerm"


class WindowGrouping(Enum):
    """Placement policy for newly created sessions."""

    OFF = "off"  # Every new session gets its own window
    PROJECT = "project"  # Tab in a window of the same project, else new window
    SMART = "smart"  # Like PROJECT, falling back to the frontmost window


class ExecutionMode(Enum):
    """Whether the caller waits for command completion."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


class FocusPreference(Enum):
    """Caller preference for bringing the session to the front."""

    FORCE = "force-focus"
    SUPPRESS = "no-focus"
    AUTO = "auto-behavior"
    DEFAULT = "default"

    def resolve(self, default: bool) -> bool:
        """Return whether to focus, given the configured default."""
        if self is FocusPreference.FORCE:
            return True
        if self is FocusPreference.SUPPRESS:
            return False
        return default


class LogLevel(Enum):
    """Log levels accepted in configuration."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"
    NONE = "none"


# =============================================================================
# Session Models
# =============================================================================


@dataclass(frozen=True)
class TabRef:
    """Backend handle for a tab, optionally narrowed to one session in it.

    Apple Terminal only has tabs (``session_id`` is None). iTerm nests
    sessions inside tabs, so both identifiers are needed to address one.
    """

    tab_id: str
    session_id: str | None = None

    SEPARATOR = ":"

    def serialize(self) -> str:
        """Render as ``tab`` or ``tab:session`` for output."""
        if self.session_id is None:
            return self.tab_id
        return f"{self.tab_id}{self.SEPARATOR}{self.session_id}"

    @classmethod
    def parse(cls, value: str) -> TabRef:
        """Parse the serialized form back into a TabRef."""
        tab_id, sep, session_id = value.partition(cls.SEPARATOR)
        return cls(tab_id=tab_id, session_id=session_id if sep else None)

    def __str__(self) -> str:
        return self.serialize()


@dataclass
class SessionInfo:
    """A live session as discovered in the terminal application."""

    identifier: str  # Display name, e.g. "myproj: build"
    project_hash: str  # Hash of the project path, or the no-project sentinel
    tag: str
    title: str  # Full encoded title (source of truth)
    window_identifier: str
    tab_identifier: TabRef
    tty: str | None = None
    is_busy: bool = False
    tty_from_title: str | None = None
    pid_from_title: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON wire shape."""
        return {
            "session_identifier": self.identifier,
            "project_hash": self.project_hash,
            "tag": self.tag,
            "full_tab_title": self.title,
            "tty": self.tty,
            "is_busy": self.is_busy,
            "window_identifier": self.window_identifier,
            "tab_identifier": self.tab_identifier.serialize(),
            "tty_from_title": self.tty_from_title,
            "pid_from_title": self.pid_from_title,
        }


# =============================================================================
# Request Models
# =============================================================================


@dataclass(frozen=True)
class ExecuteCommandParams:
    """Request to run a command in a tagged session.

    ``execution_mode``, ``timeout`` and ``lines_to_capture`` fall back to
    configuration when None.
    An empty or missing ``command`` only ensures the session exists.
    """

    tag: str
    project_path: str | None = None
    command: str | None = None
    execution_mode: ExecutionMode | None = None
    lines_to_capture: int | None = None
    timeout: float | None = None
    focus_preference: FocusPreference = FocusPreference.DEFAULT


@dataclass(frozen=True)
class ReadSessionParams:
    """Request to read the tail of a session's buffer."""

    tag: str
    project_path: str | None = None
    lines_to_read: int | None = None
    focus_preference: FocusPreference = FocusPreference.DEFAULT


@dataclass(frozen=True)
class FocusSessionParams:
    """Request to bring a session to the front."""

    tag: str
    project_path: str | None = None


@dataclass(frozen=True)
class KillSessionParams:
    """Request to stop whatever is running in a session."""

    tag: str
    project_path: str | None = None
    focus_preference: FocusPreference = FocusPreference.DEFAULT


# =============================================================================
# Result Models
# =============================================================================


@dataclass
class ExecuteCommandResult:
    """Outcome of an execute request."""

    session_info: SessionInfo
    output: str = ""
    exit_code: int | None = None
    pid: int | None = None
    was_killed_by_timeout: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_info": self.session_info.to_dict(),
            "output": self.output,
            "exit_code": self.exit_code,
            "pid": self.pid,
            "was_killed_by_timeout": self.was_killed_by_timeout,
        }


@dataclass
class ReadSessionResult:
    session_info: SessionInfo
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"session_info": self.session_info.to_dict(), "output": self.output}


@dataclass
class FocusSessionResult:
    focused_session_info: SessionInfo

    def to_dict(self) -> dict[str, Any]:
        return {"focused_session_info": self.focused_session_info.to_dict()}


@dataclass
class KillSessionResult:
    killed_session_info: SessionInfo
    kill_success: bool
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "killed_session_info": self.killed_session_info.to_dict(),
            "kill_success": self.kill_success,
            "message": self.message,
        }


@dataclass
class InfoResult:
    """Version, effective configuration and managed sessions."""

    version: str
    active_configuration: dict[str, Any]
    sessions: list[SessionInfo] = field(default_factory=list)
    error: str | None = None
    error_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "active_configuration": self.active_configuration,
            "managed_sessions": [s.to_dict() for s in self.sessions],
        }
        if self.error:
            data["error"] = self.error
        if self.error_counts:
            data["error_counts"] = self.error_counts
        return data


# =============================================================================
# App Configuration
# =============================================================================

SYSTEM_TEMP_LOG_DIR = "SYSTEM_TEMP"


@dataclass
class AppConfig:
    """Complete application configuration.

    Timing values are in seconds.
    """

    terminal_app: str = "Terminal"
    log_level: LogLevel = LogLevel.INFO
    log_dir: str = "~/Library/Logs/terminator-mcp/"
    window_grouping: WindowGrouping = WindowGrouping.SMART
    default_lines: int = 100
    background_startup_seconds: float = 5.0
    foreground_completion_seconds: float = 60.0
    default_focus_on_action: bool = True
    sigint_wait_seconds: float = 2.0
    sigterm_wait_seconds: float = 2.0
    busy_sigint_wait_seconds: float = 2.0
    busy_sigterm_wait_seconds: float = 2.0
    default_focus_on_kill: bool = False
    default_background_execution: bool = False
    pre_kill_script_path: str | None = None
    reuse_busy_sessions: bool = False
    iterm_profile_name: str | None = None

    @property
    def resolved_log_dir(self) -> Path:
        """Expanded log directory; ``SYSTEM_TEMP`` maps to the temp dir."""
        if self.log_dir.strip().upper() == SYSTEM_TEMP_LOG_DIR:
            return Path(tempfile.gettempdir()) / "terminator-mcp"
        return Path(self.log_dir).expanduser()

    @property
    def command_output_dir(self) -> Path:
        """Directory holding per-command output logs."""
        return self.resolved_log_dir / "cli_command_outputs"

    def as_environment(self) -> dict[str, Any]:
        """Effective settings keyed by their ``TERMINATOR_*`` variable names.

        Unset optional values are omitted.
        """
        data = {
            "TERMINATOR_APP": self.terminal_app,
            "TERMINATOR_LOG_DIR": str(self.resolved_log_dir),
            "TERMINATOR_LOG_LEVEL": self.log_level.value,
            "TERMINATOR_WINDOW_GROUPING": self.window_grouping.value,
            "TERMINATOR_DEFAULT_LINES": self.default_lines,
            "TERMINATOR_BACKGROUND_STARTUP_SECONDS": self.background_startup_seconds,
            "TERMINATOR_FOREGROUND_COMPLETION_SECONDS": self.foreground_completion_seconds,
            "TERMINATOR_DEFAULT_FOCUS_ON_ACTION": self.default_focus_on_action,
            "TERMINATOR_SIGINT_WAIT_SECONDS": self.sigint_wait_seconds,
            "TERMINATOR_SIGTERM_WAIT_SECONDS": self.sigterm_wait_seconds,
            "TERMINATOR_BUSY_SIGINT_WAIT_SECONDS": self.busy_sigint_wait_seconds,
            "TERMINATOR_BUSY_SIGTERM_WAIT_SECONDS": self.busy_sigterm_wait_seconds,
            "TERMINATOR_DEFAULT_FOCUS_ON_KILL": self.default_focus_on_kill,
            "TERMINATOR_DEFAULT_BACKGROUND_EXECUTION": self.default_background_execution,
            "TERMINATOR_PRE_KILL_SCRIPT_PATH": self.pre_kill_script_path,
            "TERMINATOR_REUSE_BUSY_SESSIONS": self.reuse_busy_sessions,
            "TERMINATOR_ITERM_PROFILE_NAME": self.iterm_profile_name,
        }
        return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Serialization Helpers
# =============================================================================

DACITE_CONFIG = dacite.Config(cast=[Enum, float])


def load_config_from_dict(data: dict) -> AppConfig:
    """Load AppConfig from a dictionary (parsed JSON or merged sources)."""
    return dacite.from_dict(
        data_class=AppConfig,
        data=data,
        config=DACITE_CONFIG,
    )


def _convert_enums(obj: object) -> object:
    """Recursively convert Enum values to their string values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _convert_enums(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_enums(item) for item in obj]
    return obj


def model_to_dict(obj: object) -> dict:
    """Convert a dataclass model to a dictionary for JSON serialization."""
    data = asdict(obj)  # type: ignore[arg-type]
    return _convert_enums(data)  # type: ignore[return-value]
