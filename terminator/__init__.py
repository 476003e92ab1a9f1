"""Terminator: tagged terminal sessions driven from the command line.

Runs shell commands in visible Apple Terminal or iTerm2 tabs that are
identified by a (project path, tag) pair. Sessions are found again on later
invocations through an encoded tab title, so no state is kept anywhere else.

Public API Usage:
    from terminator import TerminatorController, ExecuteCommandParams

    async def main():
        controller = TerminatorController.from_config()
        result = await controller.execute_command(
            ExecuteCommandParams(tag="tests", project_path=".", command="pytest -q")
        )
        print(result.exit_code, result.output)
"""

__version__ = "0.1.0"

from terminator.config import load_config, resolve_terminal_app
from terminator.controller import TerminatorController
from terminator.exceptions import (
    CommandTimeoutError,
    ConfigError,
    ExitCode,
    InternalError,
    PermissionDeniedError,
    ScriptError,
    SessionBusyError,
    SessionNotFoundError,
    TerminatorError,
)
from terminator.models import (
    AppConfig,
    ExecuteCommandParams,
    ExecuteCommandResult,
    ExecutionMode,
    FocusPreference,
    FocusSessionParams,
    FocusSessionResult,
    InfoResult,
    KillSessionParams,
    KillSessionResult,
    ReadSessionParams,
    ReadSessionResult,
    SessionInfo,
    TabRef,
    TerminalApp,
    WindowGrouping,
)

__all__ = [
    "__version__",
    # Entry points
    "TerminatorController",
    "load_config",
    "resolve_terminal_app",
    # Models
    "AppConfig",
    "ExecuteCommandParams",
    "ExecuteCommandResult",
    "ExecutionMode",
    "FocusPreference",
    "FocusSessionParams",
    "FocusSessionResult",
    "InfoResult",
    "KillSessionParams",
    "KillSessionResult",
    "ReadSessionParams",
    "ReadSessionResult",
    "SessionInfo",
    "TabRef",
    "TerminalApp",
    "WindowGrouping",
    # Errors
    "CommandTimeoutError",
    "ConfigError",
    "ExitCode",
    "InternalError",
    "PermissionDeniedError",
    "ScriptError",
    "SessionBusyError",
    "SessionNotFoundError",
    "TerminatorError",
]
