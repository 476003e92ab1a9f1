"""Shared orchestration for terminal backends.

Every backend exposes the same five operations. The flow for each lives
here; concrete backends only provide the primitives that talk to their
application (enumerate tabs, create, focus, type text and so on).
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable

from terminator.exceptions import (
    ScriptError,
    SessionBusyError,
    TerminatorError,
    TypeConversionError,
)
from terminator.execution import CommandExecutor, tail_lines
from terminator.identity import NO_PROJECT, decode_title, display_identifier, project_hash
from terminator.interrupt import InterruptController, run_pre_kill_script
from terminator.locator import SessionLocator
from terminator.models import (
    AppConfig,
    ExecuteCommandParams,
    ExecuteCommandResult,
    ExecutionMode,
    FocusSessionParams,
    FocusSessionResult,
    KillSessionParams,
    KillSessionResult,
    ReadSessionParams,
    ReadSessionResult,
    SessionInfo,
    TabRef,
    TerminalApp,
)
from terminator.ports import ScriptRunner, TerminalTab, TerminalWindow
from terminator.process import ProcessIntrospector

logger = logging.getLogger(__name__)

# Share of the post-deadline poll interval spent waiting on SIGTERM
TIMEOUT_GRACE_FRACTION = 0.5


def listing_identifier(project_hash_value: str, tag: str) -> str:
    """Display name when only the hash is known, e.g. ``3f2a9c1b: build``."""
    if project_hash_value == NO_PROJECT:
        return f"Global: {tag}"
    return f"{project_hash_value[:8]}: {tag}"


def as_text(value: Any) -> str:
    """Script results may come back as numbers where ids are expected."""
    if value is None:
        return ""
    return str(value)


def expect_list(value: Any, *, length: int | None = None, what: str = "result") -> list:
    """Check a script result is a list, optionally of an exact length."""
    if not isinstance(value, list):
        raise TypeConversionError(f"Expected a list for {what}", raw=value)
    if length is not None and len(value) != length:
        raise TypeConversionError(
            f"Expected {length} items for {what}, got {len(value)}", raw=value
        )
    return value


class BaseTerminalBackend(ABC):
    """Template for a terminal backend.

    Subclasses set ``app`` and implement the primitives. The public
    operations validate input, locate sessions through the
    :class:`SessionLocator` and delegate command handling to the
    :class:`CommandExecutor` and the interrupt controllers.
    """

    app: TerminalApp

    def __init__(
        self,
        config: AppConfig,
        bridge: ScriptRunner,
        *,
        introspector: ProcessIntrospector | None = None,
        killpg: Callable[[int, int], None] = os.killpg,
    ) -> None:
        self.config = config
        self.bridge = bridge
        self.introspector = introspector or ProcessIntrospector()
        self.locator = SessionLocator(self, config)
        self.executor = CommandExecutor(config)
        self.kill_interrupter = InterruptController.for_kill(
            config, self.introspector, killpg=killpg
        )
        self.busy_interrupter = InterruptController.for_busy_reuse(
            config, self.introspector, killpg=killpg
        )
        self.timeout_interrupter = InterruptController(
            self.introspector,
            sigint_wait=0,
            sigterm_wait=0,
            sigkill_wait=0,
            killpg=killpg,
        )

    @property
    def app_name(self) -> str:
        """Application name used in ``tell application`` blocks."""
        return self.app.value

    # =========================================================================
    # Primitives
    # =========================================================================

    @abstractmethod
    async def enumerate_tabs(self) -> list[TerminalTab]:
        """All tabs (or iTerm sessions) with their titles and ttys."""

    async def list_windows(self) -> list[TerminalWindow]:
        """Windows with the titles they contain, in enumeration order."""
        windows: dict[str, TerminalWindow] = {}
        for tab in await self.enumerate_tabs():
            window = windows.setdefault(tab.window_id, TerminalWindow(tab.window_id))
            window.tab_titles.append(tab.title)
        return list(windows.values())

    @abstractmethod
    async def frontmost_window_id(self) -> str | None:
        """Id of the frontmost window, or None when there are no windows."""

    @abstractmethod
    async def create_window(self, title: str, *, activate: bool) -> TerminalTab:
        """Open a new window and title its first tab."""

    @abstractmethod
    async def create_tab(
        self, window_id: str, title: str, *, activate: bool
    ) -> TerminalTab:
        """Open a new tab in ``window_id`` and title it."""

    @abstractmethod
    async def set_title(self, window_id: str, tab: TabRef, title: str) -> None:
        """Replace the title of an existing tab."""

    async def mark_project_window(
        self, window_id: str, project_hash_value: str, tag: str
    ) -> None:
        """Name a new window after its project, where the app supports it."""

    @abstractmethod
    async def submit_text(
        self, window_id: str, tab: TabRef, text: str, *, activate: bool = False
    ) -> None:
        """Type ``text`` followed by return into the tab."""

    @abstractmethod
    async def read_buffer(self, window_id: str, tab: TabRef) -> str:
        """Full scrollback text of the tab."""

    @abstractmethod
    async def focus_tab(self, window_id: str, tab: TabRef) -> None:
        """Bring the app, window and tab to the front."""

    @abstractmethod
    async def clear_tab(self, window_id: str, tab: TabRef, *, activate: bool) -> None:
        """Clear the visible screen and scrollback."""

    @abstractmethod
    async def send_interrupt_keystroke(self, window_id: str, tab: TabRef) -> None:
        """Type Ctrl-C into the tab."""

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _run_script(self, script: str, *, operation: str) -> Any:
        """Run a script after the permission preflight.

        Bridge errors propagate with the operation name and script attached.
        """
        await self.bridge.ensure_permission(self.app_name)
        try:
            return await self.bridge.run(script)
        except ScriptError as e:
            e.context.setdefault("operation", operation)
            if e.script is None:
                e.script = script
            raise

    async def discover_sessions(self, *, compute_busy: bool = True) -> list[SessionInfo]:
        """Decode every managed tab title into a SessionInfo.

        Tabs without the session marker are skipped.
        """
        sessions: list[SessionInfo] = []
        for tab in await self.enumerate_tabs():
            decoded = decode_title(tab.title)
            if decoded is None or not decoded.is_session:
                continue
            tty = tab.tty or decoded.tty
            hash_value = decoded.project_hash or NO_PROJECT
            assert decoded.tag is not None
            sessions.append(
                SessionInfo(
                    identifier=listing_identifier(hash_value, decoded.tag),
                    project_hash=hash_value,
                    tag=decoded.tag,
                    title=tab.title,
                    window_identifier=tab.window_id,
                    tab_identifier=tab.tab,
                    tty=tty,
                    is_busy=await self.introspector.is_busy(tty) if compute_busy else False,
                    tty_from_title=decoded.tty,
                    pid_from_title=decoded.pid,
                )
            )
        logger.debug("Discovered %d managed sessions in %s", len(sessions), self.app_name)
        return sessions

    def _resolve_mode(self, params: ExecuteCommandParams) -> ExecutionMode:
        if params.execution_mode is not None:
            return params.execution_mode
        if self.config.default_background_execution:
            return ExecutionMode.BACKGROUND
        return ExecutionMode.FOREGROUND

    def _resolve_timeout(self, params: ExecuteCommandParams, mode: ExecutionMode) -> float:
        if params.timeout is not None:
            return params.timeout
        if mode is ExecutionMode.BACKGROUND:
            return self.config.background_startup_seconds
        return self.config.foreground_completion_seconds

    # =========================================================================
    # Public operations
    # =========================================================================

    async def list_sessions(
        self,
        filter_tag: str | None = None,
        project_path: str | None = None,
    ) -> list[SessionInfo]:
        """Managed sessions, optionally narrowed by tag and/or project."""
        sessions = await self.discover_sessions(compute_busy=True)
        if filter_tag:
            sessions = [s for s in sessions if s.tag == filter_tag]
        if project_path:
            hash_value = project_hash(project_path)
            sessions = [s for s in sessions if s.project_hash == hash_value]
            for session in sessions:
                session.identifier = display_identifier(project_path, session.tag)
        return sessions

    async def execute_command(self, params: ExecuteCommandParams) -> ExecuteCommandResult:
        """Locate or create the session, then run the command in it.

        Raises:
            InvalidTagError: The tag is malformed.
            SessionBusyError: The session is busy and cannot be reused.
            ScriptError: The terminal application rejected a script.
        """
        activate = params.focus_preference.resolve(self.config.default_focus_on_action)
        located = await self.locator.locate_or_create(
            params.project_path, params.tag, activate=activate
        )
        session = located.session
        window_id, tab = session.window_identifier, session.tab_identifier
        command = (params.command or "").strip()

        if not command:
            if activate:
                await self.focus_tab(window_id, tab)
            return ExecuteCommandResult(session_info=session, output="", exit_code=0)

        if not located.created:
            await self._free_busy_session(session)

        if activate:
            await self.focus_tab(window_id, tab)
        if located.needs_clear:
            await self.clear_tab(window_id, tab, activate=activate)

        mode = self._resolve_mode(params)
        timeout = self._resolve_timeout(params, mode)
        lines = (
            self.config.default_lines
            if params.lines_to_capture is None
            else params.lines_to_capture
        )
        tty = session.tty

        async def submit(text: str) -> None:
            await self.submit_text(window_id, tab, text)

        async def stop_timed_out(budget: float) -> int | None:
            return await self.timeout_interrupter.terminate_after_timeout(
                tty, grace=budget * TIMEOUT_GRACE_FRACTION
            )

        logger.info("Executing in %s (%s): %s", session.identifier, mode.value, command)
        outcome = await self.executor.run(
            command,
            tty=tty,
            submit=submit,
            mode=mode,
            timeout=timeout,
            lines=lines,
            on_timeout=stop_timed_out,
        )
        session.is_busy = outcome.timed_out
        return ExecuteCommandResult(
            session_info=session,
            output=outcome.output,
            exit_code=outcome.exit_code,
            pid=outcome.pid,
            was_killed_by_timeout=outcome.timed_out,
        )

    async def _free_busy_session(self, session: SessionInfo) -> None:
        """Fail or interrupt when an existing session is occupied."""
        process = await self.introspector.foreground_process(session.tty)
        if process is None:
            session.is_busy = False
            return

        session.is_busy = True
        if not self.config.reuse_busy_sessions:
            raise SessionBusyError(
                f"Session '{session.identifier}' is busy running {process.command}",
                tty=session.tty,
                process_description=process.describe(),
            )

        logger.info("Session %s is busy, interrupting before reuse", session.identifier)

        async def keystroke() -> None:
            await self.send_interrupt_keystroke(
                session.window_identifier, session.tab_identifier
            )

        result = await self.busy_interrupter.interrupt(
            session.tty, send_keystroke=keystroke, process=process
        )
        if not result.stopped:
            raise SessionBusyError(
                result.describe(),
                tty=session.tty,
                process_description=(
                    result.remaining_process.describe()
                    if result.remaining_process
                    else process.describe()
                ),
            )
        session.is_busy = False

    async def read_session_output(self, params: ReadSessionParams) -> ReadSessionResult:
        """Tail of an existing session's buffer.

        Raises:
            SessionNotFoundError: No session matches.
        """
        session = await self.locator.find(params.project_path, params.tag)
        window_id, tab = session.window_identifier, session.tab_identifier
        if params.focus_preference.resolve(self.config.default_focus_on_action):
            await self.focus_tab(window_id, tab)
        text = await self.read_buffer(window_id, tab)
        lines = (
            self.config.default_lines
            if params.lines_to_read is None
            else params.lines_to_read
        )
        return ReadSessionResult(session_info=session, output=tail_lines(text, lines))

    async def focus_session(self, params: FocusSessionParams) -> FocusSessionResult:
        session = await self.locator.find(params.project_path, params.tag)
        await self.focus_tab(session.window_identifier, session.tab_identifier)
        logger.info("Focused %s", session.identifier)
        return FocusSessionResult(focused_session_info=session)

    async def kill_process_in_session(self, params: KillSessionParams) -> KillSessionResult:
        """Interrupt the session's foreground process with escalation.

        Runs the configured pre-kill script first. The screen is cleared
        whatever the outcome; a failed clear is logged and ignored.
        """
        session = await self.locator.find(params.project_path, params.tag)
        window_id, tab = session.window_identifier, session.tab_identifier
        if params.focus_preference.resolve(self.config.default_focus_on_kill):
            await self.focus_tab(window_id, tab)

        process = await self.introspector.foreground_process(session.tty)
        messages: list[str] = []
        if process is not None and self.config.pre_kill_script_path:
            messages.append(
                await run_pre_kill_script(
                    self.config.pre_kill_script_path, session.tty, process
                )
            )

        async def keystroke() -> None:
            await self.send_interrupt_keystroke(window_id, tab)

        result = await self.kill_interrupter.interrupt(
            session.tty, send_keystroke=keystroke, process=process
        )
        messages.append(result.describe())

        try:
            await self.clear_tab(window_id, tab, activate=False)
        except TerminatorError as e:
            logger.warning("Could not clear %s after kill: %s", session.identifier, e)

        session.is_busy = not result.stopped
        return KillSessionResult(
            killed_session_info=session,
            kill_success=result.stopped,
            message=" ".join(messages),
        )
