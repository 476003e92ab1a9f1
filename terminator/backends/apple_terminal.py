"""Apple Terminal backend."""

from __future__ import annotations

import logging

from terminator.models import TabRef, TerminalApp
from terminator.ports import TerminalTab

from . import apple_terminal_scripts as scripts
from .base import BaseTerminalBackend, as_text, expect_list

logger = logging.getLogger(__name__)


class AppleTerminalBackend(BaseTerminalBackend):
    """Drives Terminal.app; tabs are identified by window id and tab index."""

    app = TerminalApp.APPLE_TERMINAL

    def _tab_from_row(self, row: object) -> TerminalTab:
        window_id, tab_index, tty, title = expect_list(row, length=4, what="new tab")
        return TerminalTab(
            window_id=as_text(window_id),
            tab=TabRef(as_text(tab_index)),
            title=as_text(title),
            tty=as_text(tty) or None,
        )

    async def enumerate_tabs(self) -> list[TerminalTab]:
        rows = expect_list(
            await self._run_script(scripts.list_tabs_script(), operation="list tabs") or [],
            what="tab listing",
        )
        tabs = []
        for row in rows:
            window_id, tab_index, title, tty = expect_list(row, length=4, what="tab row")
            tabs.append(
                TerminalTab(
                    window_id=as_text(window_id),
                    tab=TabRef(as_text(tab_index)),
                    title=as_text(title),
                    tty=as_text(tty) or None,
                )
            )
        return tabs

    async def frontmost_window_id(self) -> str | None:
        value = await self._run_script(
            scripts.frontmost_window_script(), operation="frontmost window"
        )
        return as_text(value) or None

    async def create_window(self, title: str, *, activate: bool) -> TerminalTab:
        logger.debug("Creating Terminal window titled %s", title)
        row = await self._run_script(
            scripts.create_window_script(title, activate=activate),
            operation="create window",
        )
        return self._tab_from_row(row)

    async def create_tab(
        self, window_id: str, title: str, *, activate: bool
    ) -> TerminalTab:
        # Cmd-T only reaches Terminal when it is frontmost
        if not activate:
            logger.debug("Terminal tab creation activates the app regardless of focus mode")
        row = await self._run_script(
            scripts.create_tab_script(window_id, title), operation="create tab"
        )
        return self._tab_from_row(row)

    async def set_title(self, window_id: str, tab: TabRef, title: str) -> None:
        await self._run_script(
            scripts.set_title_script(window_id, tab.tab_id, title), operation="set title"
        )

    async def submit_text(
        self, window_id: str, tab: TabRef, text: str, *, activate: bool = False
    ) -> None:
        await self._run_script(
            scripts.submit_text_script(window_id, tab.tab_id, text, activate=activate),
            operation="submit text",
        )

    async def read_buffer(self, window_id: str, tab: TabRef) -> str:
        value = await self._run_script(
            scripts.history_script(window_id, tab.tab_id), operation="read history"
        )
        return as_text(value)

    async def focus_tab(self, window_id: str, tab: TabRef) -> None:
        await self._run_script(
            scripts.focus_script(window_id, tab.tab_id), operation="focus"
        )

    async def clear_tab(self, window_id: str, tab: TabRef, *, activate: bool) -> None:
        await self._run_script(
            scripts.clear_script(window_id, tab.tab_id, activate=activate),
            operation="clear",
        )

    async def send_interrupt_keystroke(self, window_id: str, tab: TabRef) -> None:
        await self._run_script(
            scripts.control_c_script(window_id, tab.tab_id), operation="send Ctrl-C"
        )
