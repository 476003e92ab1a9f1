"""Terminal backend abstraction layer.

Protocols for the pieces the orchestration engine talks to: the scripting
bridge, the backend adapters and the raw records a backend reports about
the terminal application. Callers depend on these, never on a concrete
backend, so the active terminal is decided once by name lookup.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from terminator.models import (
        ExecuteCommandParams,
        ExecuteCommandResult,
        FocusSessionParams,
        FocusSessionResult,
        KillSessionParams,
        KillSessionResult,
        ReadSessionParams,
        ReadSessionResult,
        SessionInfo,
        TabRef,
    )


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class TerminalTab:
    """One addressable tab (or iTerm session) as enumerated from the app."""

    window_id: str
    """Backend window identifier."""

    tab: TabRef
    """Tab handle, with the iTerm session id when applicable."""

    title: str = ""
    """Current custom title / session name."""

    tty: str | None = None
    """Device path of the tab's shell, when reported."""


@dataclass
class TerminalWindow:
    """A window and the titles inside it, used for grouping decisions."""

    window_id: str
    """Backend window identifier."""

    name: str = ""
    """Window name, when the backend lets us set one."""

    tab_titles: list[str] = field(default_factory=list)
    """Titles of the tabs/sessions in this window."""


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class ScriptRunner(Protocol):
    """Protocol for executing automation scripts against an application."""

    @abstractmethod
    async def run(self, script: str) -> Any:
        """Run a script and return its typed result.

        Raises:
            ScriptError: Compilation, execution or permission failures.
        """
        ...

    @abstractmethod
    async def ensure_permission(self, app_name: str) -> None:
        """Make sure automation access to ``app_name`` is granted."""
        ...


@runtime_checkable
class TerminalBackend(Protocol):
    """The five public operations every terminal backend provides."""

    @abstractmethod
    async def list_sessions(
        self,
        filter_tag: str | None = None,
        project_path: str | None = None,
    ) -> list[SessionInfo]:
        """Enumerate managed sessions, optionally filtered."""
        ...

    @abstractmethod
    async def execute_command(
        self, params: ExecuteCommandParams
    ) -> ExecuteCommandResult:
        """Locate or create a session and run a command in it."""
        ...

    @abstractmethod
    async def read_session_output(
        self, params: ReadSessionParams
    ) -> ReadSessionResult:
        """Read the tail of an existing session's buffer."""
        ...

    @abstractmethod
    async def focus_session(self, params: FocusSessionParams) -> FocusSessionResult:
        """Bring an existing session to the front."""
        ...

    @abstractmethod
    async def kill_process_in_session(
        self, params: KillSessionParams
    ) -> KillSessionResult:
        """Interrupt whatever runs in an existing session."""
        ...
