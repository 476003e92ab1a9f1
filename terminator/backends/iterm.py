"""iTerm2 backend.

Sessions are addressed by window id plus ``TabRef(tab_id, session_id)``.
New windows opened for a project are named with the project's grouping
marker so later tabs of the same project land in them.
"""

from __future__ import annotations

import logging

from terminator.exceptions import InternalError
from terminator.identity import window_group_title
from terminator.models import TabRef, TerminalApp
from terminator.ports import TerminalTab, TerminalWindow

from . import iterm_scripts as scripts
from .base import BaseTerminalBackend, as_text, expect_list

logger = logging.getLogger(__name__)


class ITermBackend(BaseTerminalBackend):
    """Drives iTerm2 through its AppleScript dictionary."""

    app = TerminalApp.ITERM

    @staticmethod
    def _session_id(tab: TabRef) -> str:
        if not tab.session_id:
            raise InternalError(
                "iTerm tab reference is missing its session id",
                context={"tab": str(tab)},
            )
        return tab.session_id

    def _tab_from_creation(self, value: object, title: str) -> TerminalTab:
        window_id, tab_id, session_id, tty = expect_list(
            value, length=4, what="new iTerm session"
        )
        return TerminalTab(
            window_id=as_text(window_id),
            tab=TabRef(as_text(tab_id), as_text(session_id) or None),
            title=title,
            tty=as_text(tty) or None,
        )

    async def enumerate_tabs(self) -> list[TerminalTab]:
        rows = expect_list(
            await self._run_script(scripts.list_sessions_script(), operation="list sessions")
            or [],
            what="session listing",
        )
        tabs = []
        for row in rows:
            window_id, tab_id, session_id, tty, name = expect_list(
                row, length=5, what="session row"
            )
            tabs.append(
                TerminalTab(
                    window_id=as_text(window_id),
                    tab=TabRef(as_text(tab_id), as_text(session_id)),
                    title=as_text(name),
                    tty=as_text(tty) or None,
                )
            )
        return tabs

    async def list_windows(self) -> list[TerminalWindow]:
        """Window names merged with the session titles inside each window."""
        rows = expect_list(
            await self._run_script(scripts.list_windows_script(), operation="list windows")
            or [],
            what="window listing",
        )
        windows: dict[str, TerminalWindow] = {}
        for row in rows:
            window_id, name = expect_list(row, length=2, what="window row")
            windows[as_text(window_id)] = TerminalWindow(as_text(window_id), as_text(name))
        for tab in await self.enumerate_tabs():
            window = windows.setdefault(tab.window_id, TerminalWindow(tab.window_id))
            window.tab_titles.append(tab.title)
        return list(windows.values())

    async def frontmost_window_id(self) -> str | None:
        value = await self._run_script(
            scripts.frontmost_window_script(), operation="frontmost window"
        )
        return as_text(value) or None

    async def create_window(self, title: str, *, activate: bool) -> TerminalTab:
        logger.debug("Creating iTerm window titled %s", title)
        value = await self._run_script(
            scripts.create_window_script(
                title, self.config.iterm_profile_name, activate=activate
            ),
            operation="create window",
        )
        return self._tab_from_creation(value, title)

    async def create_tab(
        self, window_id: str, title: str, *, activate: bool
    ) -> TerminalTab:
        value = await self._run_script(
            scripts.create_tab_script(
                window_id, title, self.config.iterm_profile_name, activate=activate
            ),
            operation="create tab",
        )
        return self._tab_from_creation(value, title)

    async def set_title(self, window_id: str, tab: TabRef, title: str) -> None:
        await self._run_script(
            scripts.set_session_name_script(self._session_id(tab), title),
            operation="set title",
        )

    async def mark_project_window(
        self, window_id: str, project_hash_value: str, tag: str
    ) -> None:
        await self._run_script(
            scripts.set_window_name_script(
                window_id, window_group_title(project_hash_value, tag)
            ),
            operation="name window",
        )

    async def submit_text(
        self, window_id: str, tab: TabRef, text: str, *, activate: bool = False
    ) -> None:
        await self._run_script(
            scripts.write_text_script(self._session_id(tab), text, activate=activate),
            operation="submit text",
        )

    async def read_buffer(self, window_id: str, tab: TabRef) -> str:
        value = await self._run_script(
            scripts.contents_script(self._session_id(tab)), operation="read contents"
        )
        return as_text(value)

    async def focus_tab(self, window_id: str, tab: TabRef) -> None:
        await self._run_script(
            scripts.focus_script(window_id, tab.tab_id, self._session_id(tab)),
            operation="focus",
        )

    async def clear_tab(self, window_id: str, tab: TabRef, *, activate: bool) -> None:
        await self._run_script(
            scripts.clear_script(self._session_id(tab), activate=activate),
            operation="clear",
        )

    async def send_interrupt_keystroke(self, window_id: str, tab: TabRef) -> None:
        await self._run_script(
            scripts.control_c_script(self._session_id(tab)), operation="send Ctrl-C"
        )
