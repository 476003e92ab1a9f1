"""Custom exception hierarchy for Terminator.

Every error the engine can surface maps onto one process exit code, so the
calling wrapper can branch on the status alone. Exceptions carry:
- A human-readable message
- Optional debugging context (rendered as ``key=value`` pairs)
- The underlying cause when one foreign exception was converted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """Process exit codes reported to the calling wrapper."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIGURATION_ERROR = 2
    SCRIPT_ERROR = 3
    SESSION_NOT_FOUND = 4
    SESSION_BUSY = 5
    COMMAND_FAILED = 6
    TIMEOUT = 7
    INTERNAL_ERROR = 8
    PERMISSION_DENIED = 9


class TerminatorError(Exception):
    """Base exception for all Terminator errors.

    Attributes:
        message: Human-readable error description.
        context: Additional context for debugging.
        timestamp: When the error occurred.
        exit_code: Exit status the CLI reports for this error.
    """

    exit_code: ExitCode = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(TerminatorError):
    """Base class for configuration-related errors."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class ConfigLoadError(ConfigError):
    """Raised when the configuration file fails to load."""

    def __init__(
        self,
        message: str = "Failed to load configuration",
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class ConfigValidationError(ConfigError):
    """Raised when configuration values do not fit the schema."""

    def __init__(
        self,
        message: str = "Configuration validation failed",
        *,
        field: str | None = None,
        value: Any = None,
        expected: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)[:100]
        if expected:
            ctx["expected"] = expected
        super().__init__(message, context=ctx, cause=cause)


class UnsupportedTerminalError(ConfigError):
    """Raised when the configured terminal application is not supported."""

    def __init__(
        self,
        app_name: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        ctx["terminal_app"] = app_name
        super().__init__(
            f"Unknown terminal application: {app_name}",
            context=ctx,
            cause=cause,
        )


# =============================================================================
# Scripting Bridge Errors
# =============================================================================


class ScriptError(TerminatorError):
    """Base class for scripting bridge failures.

    ``script`` holds the source that failed so a log reader can replay it.
    """

    exit_code = ExitCode.SCRIPT_ERROR

    def __init__(
        self,
        message: str,
        *,
        script: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.script = script
        super().__init__(message, context=context, cause=cause)


class ScriptCompilationError(ScriptError):
    """Raised when the target application cannot compile a script."""

    def __init__(
        self,
        message: str = "Script failed to compile",
        *,
        script: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, script=script, context=context, cause=cause)


class ScriptExecutionError(ScriptError):
    """Raised when a script fails while running in the target application."""

    def __init__(
        self,
        message: str = "Script execution failed",
        *,
        error_number: int | None = None,
        script: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_number = error_number
        ctx = context or {}
        if error_number is not None:
            ctx["error_number"] = error_number
        super().__init__(message, script=script, context=ctx, cause=cause)


class PermissionDeniedError(ScriptError):
    """Raised when macOS refuses automation access to the target application.

    This needs the user to grant access in System Settings, so retrying
    within the same invocation is pointless.
    """

    exit_code = ExitCode.PERMISSION_DENIED

    def __init__(
        self,
        message: str = (
            "Automation permission denied. Grant access in System Settings > "
            "Privacy & Security > Automation"
        ),
        *,
        app_name: str | None = None,
        script: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if app_name:
            ctx["app"] = app_name
        super().__init__(message, script=script, context=ctx, cause=cause)


class TypeConversionError(ScriptError):
    """Raised when a script result does not have the expected shape."""

    def __init__(
        self,
        message: str = "Unexpected script result",
        *,
        raw: Any = None,
        script: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if raw is not None:
            ctx["raw"] = repr(raw)[:200]
        super().__init__(message, script=script, context=ctx, cause=cause)


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(TerminatorError):
    """Base class for session-related errors."""

    pass


class SessionNotFoundError(SessionError):
    """Raised when no session matches a project/tag lookup."""

    exit_code = ExitCode.SESSION_NOT_FOUND

    def __init__(
        self,
        tag: str,
        *,
        project_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        ctx["tag"] = tag
        if project_path:
            ctx["project_path"] = project_path
        super().__init__(
            f"No session found for tag '{tag}'",
            context=ctx,
            cause=cause,
        )


class SessionBusyError(SessionError):
    """Raised when a session is occupied and cannot be reused."""

    exit_code = ExitCode.SESSION_BUSY

    def __init__(
        self,
        message: str = "Session is busy",
        *,
        tty: str | None = None,
        process_description: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.process_description = process_description
        ctx = context or {}
        if tty:
            ctx["tty"] = tty
        if process_description:
            ctx["process"] = process_description
        super().__init__(message, context=ctx, cause=cause)


class InvalidTagError(SessionError):
    """Raised when a tag does not match the allowed pattern."""

    def __init__(
        self,
        tag: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["tag"] = tag[:60]
        super().__init__(
            "Tag must be 1-40 characters of letters, digits, '_' or '-'",
            context=ctx,
        )


# =============================================================================
# Execution Errors
# =============================================================================


class CommandTimeoutError(TerminatorError):
    """Raised by the CLI when a foreground command hit its timeout.

    The engine itself returns partial output instead of raising; the CLI
    converts the flag into this error only to pick the exit code.
    """

    exit_code = ExitCode.TIMEOUT

    def __init__(
        self,
        message: str = "Command timed out",
        *,
        timeout: float | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if timeout is not None:
            ctx["timeout_seconds"] = timeout
        super().__init__(message, context=ctx, cause=cause)


class InternalError(TerminatorError):
    """Raised when an adapter or the bridge breaks its own contract."""

    exit_code = ExitCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str = "Internal error",
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, context=context, cause=cause)


def exit_code_for(error: BaseException) -> ExitCode:
    """Map any exception to the exit code the CLI should report."""
    if isinstance(error, TerminatorError):
        return error.exit_code
    return ExitCode.GENERAL_ERROR


# =============================================================================
# Error Registry for Categorization
# =============================================================================


@dataclass
class ErrorStats:
    """Track error statistics for diagnostics."""

    total_count: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    recent_errors: list[tuple[datetime, str, str]] = field(default_factory=list)
    max_recent: int = 50

    def record(self, error: Exception) -> None:
        """Record an error occurrence."""
        self.total_count += 1
        type_name = type(error).__name__
        self.by_type[type_name] = self.by_type.get(type_name, 0) + 1

        self.recent_errors.append((datetime.now(), type_name, str(error)[:200]))
        if len(self.recent_errors) > self.max_recent:
            self.recent_errors.pop(0)


# Process-local error stats tracker
error_stats = ErrorStats()


def record_error(error: Exception) -> None:
    """Record an error to the process-local stats."""
    error_stats.record(error)
