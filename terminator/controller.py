"""Public entry point for programmatic access to Terminator.

Usage:
    from terminator.controller import TerminatorController
    from terminator.models import ExecuteCommandParams

    async def main():
        controller = TerminatorController.from_config()
        result = await controller.execute_command(
            ExecuteCommandParams(tag="build", project_path="~/src/app", command="make")
        )
        print(result.output)

The controller owns one scripting bridge and one backend for the configured
terminal application. Nothing is cached between calls; every operation
enumerates the terminal afresh.
"""

from __future__ import annotations

import logging
from typing import Any

from . import __version__
from .backends import BaseTerminalBackend, create_backend
from .bridge import ScriptBridge
from .config import load_config, resolve_terminal_app
from .exceptions import TerminatorError, error_stats, record_error
from .models import (
    AppConfig,
    ExecuteCommandParams,
    ExecuteCommandResult,
    FocusSessionParams,
    FocusSessionResult,
    InfoResult,
    KillSessionParams,
    KillSessionResult,
    ReadSessionParams,
    ReadSessionResult,
    SessionInfo,
    TerminalApp,
)
from .ports import ScriptRunner

logger = logging.getLogger(__name__)


class TerminatorController:
    """Facade over the backend selected by ``config.terminal_app``."""

    def __init__(
        self,
        config: AppConfig,
        backend: BaseTerminalBackend,
    ) -> None:
        self.config = config
        self.backend = backend

    @classmethod
    def from_config(
        cls,
        config: AppConfig | None = None,
        *,
        bridge: ScriptRunner | None = None,
        **backend_kwargs: Any,
    ) -> TerminatorController:
        """Build a controller, resolving the terminal application by name.

        Raises:
            UnsupportedTerminalError: ``terminal_app`` is not supported.
        """
        config = config or load_config()
        app = resolve_terminal_app(config.terminal_app)
        backend = create_backend(app, config, bridge or ScriptBridge(), **backend_kwargs)
        logger.debug("Using %s backend", app.value)
        return cls(config, backend)

    @property
    def terminal_app(self) -> TerminalApp:
        return self.backend.app

    async def list_sessions(
        self,
        filter_tag: str | None = None,
        project_path: str | None = None,
    ) -> list[SessionInfo]:
        return await self.backend.list_sessions(filter_tag=filter_tag, project_path=project_path)

    async def execute_command(self, params: ExecuteCommandParams) -> ExecuteCommandResult:
        return await self.backend.execute_command(params)

    async def read_session_output(self, params: ReadSessionParams) -> ReadSessionResult:
        return await self.backend.read_session_output(params)

    async def focus_session(self, params: FocusSessionParams) -> FocusSessionResult:
        return await self.backend.focus_session(params)

    async def kill_process_in_session(self, params: KillSessionParams) -> KillSessionResult:
        return await self.backend.kill_process_in_session(params)

    async def info(self) -> InfoResult:
        """Version, effective configuration and the managed sessions.

        A listing failure is reported in ``error`` instead of raised.
        ``error_counts`` holds the errors recorded so far in this process.
        """
        result = InfoResult(
            version=__version__,
            active_configuration=self.config.as_environment(),
        )
        try:
            result.sessions = await self.backend.list_sessions()
        except TerminatorError as e:
            logger.warning("Could not list sessions for info: %s", e)
            record_error(e)
            result.error = str(e)
        result.error_counts = dict(error_stats.by_type)
        return result
