"""Finding an existing session or deciding where a new one goes.

Lookup is an exact match on the decoded (project hash, tag) pair. When
nothing matches and creation is allowed, the grouping policy decides
between a new window and a new tab in an existing one:

========  =====================  ========================  ==================
policy    no windows             project window exists     unrelated window
========  =====================  ========================  ==================
off       new window             new window                new window
project   new window             tab in project window     new window
smart     new window             tab in project window     tab in frontmost
========  =====================  ========================  ==================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import InternalError, SessionNotFoundError
from .identity import (
    NO_PROJECT,
    decode_title,
    display_identifier,
    encode_title,
    project_hash,
    title_project_hash,
    validate_tag,
)
from .models import AppConfig, SessionInfo, WindowGrouping

if TYPE_CHECKING:
    from .backends.base import BaseTerminalBackend
    from .ports import TerminalTab, TerminalWindow

logger = logging.getLogger(__name__)


class PlacementAction(Enum):
    NEW_WINDOW = "new_window"
    NEW_TAB = "new_tab"


@dataclass(frozen=True)
class Placement:
    """Where a new session should be created."""

    action: PlacementAction
    window_id: str | None = None
    reason: str = ""


@dataclass
class LocatedSession:
    """A session resolved for an execute request."""

    session: SessionInfo
    created: bool = False
    new_window: bool = False

    @property
    def needs_clear(self) -> bool:
        """A brand-new window starts clean; everything else gets cleared."""
        return not (self.created and self.new_window)


def find_exact(
    sessions: list[SessionInfo], hash_value: str, tag: str
) -> SessionInfo | None:
    """First session whose decoded (hash, tag) equals the request's."""
    for session in sessions:
        if session.project_hash == hash_value and session.tag == tag:
            return session
    return None


def find_for_lookup(
    sessions: list[SessionInfo], hash_value: str, tag: str
) -> SessionInfo | None:
    """Exact match, then the path-less fallback used by read/focus/kill.

    A request without a project path also accepts a session of any project
    when it is the only one carrying that tag.
    """
    exact = find_exact(sessions, hash_value, tag)
    if exact is not None or hash_value != NO_PROJECT:
        return exact
    tagged = [s for s in sessions if s.tag == tag]
    if len(tagged) == 1:
        logger.debug("Using tag-only match %s for path-less lookup", tagged[0].identifier)
        return tagged[0]
    return None


def window_matches_project(window: TerminalWindow, hash_value: str) -> bool:
    """Whether a window's name or any tab title carries ``hash_value``."""
    if hash_value == NO_PROJECT:
        return False
    if title_project_hash(window.name) == hash_value:
        return True
    return any(title_project_hash(t) == hash_value for t in window.tab_titles)


def choose_placement(
    policy: WindowGrouping,
    windows: list[TerminalWindow],
    hash_value: str,
    frontmost_window_id: str | None,
) -> Placement:
    """Apply the grouping policy to the current window layout."""
    if policy is WindowGrouping.OFF:
        return Placement(PlacementAction.NEW_WINDOW, reason="grouping off")

    for window in windows:
        if window_matches_project(window, hash_value):
            return Placement(
                PlacementAction.NEW_TAB, window.window_id, reason="project window"
            )

    if policy is WindowGrouping.SMART and frontmost_window_id:
        return Placement(
            PlacementAction.NEW_TAB, frontmost_window_id, reason="frontmost window"
        )

    return Placement(PlacementAction.NEW_WINDOW, reason="no suitable window")


class SessionLocator:
    """Resolves (project path, tag) requests against a backend."""

    def __init__(self, backend: BaseTerminalBackend, config: AppConfig) -> None:
        self.backend = backend
        self.config = config

    async def find(self, project_path: str | None, tag: str) -> SessionInfo:
        """Find an existing session; never creates one.

        Raises:
            SessionNotFoundError: No session matches.
        """
        validate_tag(tag)
        hash_value = project_hash(project_path)
        sessions = await self.backend.discover_sessions(compute_busy=False)
        session = find_for_lookup(sessions, hash_value, tag)
        if session is None:
            raise SessionNotFoundError(tag, project_path=project_path)
        if project_path:
            session.identifier = display_identifier(project_path, tag)
        session.is_busy = await self.backend.introspector.is_busy(session.tty)
        return session

    async def locate_or_create(
        self,
        project_path: str | None,
        tag: str,
        *,
        activate: bool,
    ) -> LocatedSession:
        """Exact match, else create according to the grouping policy."""
        validate_tag(tag)
        hash_value = project_hash(project_path)
        sessions = await self.backend.discover_sessions(compute_busy=False)
        existing = find_exact(sessions, hash_value, tag)
        if existing is not None:
            logger.info("Reusing session %s", existing.title)
            if project_path:
                existing.identifier = display_identifier(project_path, tag)
            return LocatedSession(session=existing)

        placement = await self._plan(hash_value)
        logger.info(
            "Creating session for tag '%s': %s (%s)",
            tag,
            placement.action.value,
            placement.reason,
        )
        title = encode_title(hash_value, tag)
        if placement.action is PlacementAction.NEW_TAB and placement.window_id:
            tab = await self.backend.create_tab(placement.window_id, title, activate=activate)
        else:
            tab = await self.backend.create_window(title, activate=activate)

        session = await self._finish_creation(tab, hash_value, project_path, tag)
        new_window = placement.action is PlacementAction.NEW_WINDOW
        if new_window and self.config.window_grouping is not WindowGrouping.OFF:
            await self.backend.mark_project_window(tab.window_id, hash_value, tag)
        return LocatedSession(session=session, created=True, new_window=new_window)

    async def _plan(self, hash_value: str) -> Placement:
        policy = self.config.window_grouping
        if policy is WindowGrouping.OFF:
            return choose_placement(policy, [], hash_value, None)
        windows = await self.backend.list_windows()
        frontmost = None
        if policy is WindowGrouping.SMART and not any(
            window_matches_project(w, hash_value) for w in windows
        ):
            frontmost = await self.backend.frontmost_window_id()
        return choose_placement(policy, windows, hash_value, frontmost)

    async def _finish_creation(
        self,
        tab: TerminalTab,
        hash_value: str,
        project_path: str | None,
        tag: str,
    ) -> SessionInfo:
        if not tab.window_id or not tab.tab.tab_id:
            raise InternalError(
                "Terminal did not report identifiers for the new session",
                context={"window_id": tab.window_id, "tab": str(tab.tab)},
            )
        title = encode_title(hash_value, tag, tty=tab.tty)
        if tab.title != title:
            await self.backend.set_title(tab.window_id, tab.tab, title)
            tab.title = title
        decoded = decode_title(title)
        return SessionInfo(
            identifier=display_identifier(project_path, tag),
            project_hash=hash_value,
            tag=tag,
            title=title,
            window_identifier=tab.window_id,
            tab_identifier=tab.tab,
            tty=tab.tty,
            is_busy=False,
            tty_from_title=decoded.tty if decoded else None,
            pid_from_title=decoded.pid if decoded else None,
        )
