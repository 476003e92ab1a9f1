"""Tests for session lookup and placement of new sessions."""

import pytest

from terminator.exceptions import InternalError, InvalidTagError, SessionNotFoundError
from terminator.identity import (
    NO_PROJECT,
    decode_title,
    encode_title,
    project_hash,
    window_group_title,
)
from terminator.locator import (
    PlacementAction,
    choose_placement,
    find_exact,
    find_for_lookup,
    window_matches_project,
)
from terminator.models import AppConfig, SessionInfo, TabRef, WindowGrouping
from terminator.ports import TerminalTab, TerminalWindow
from terminator.testing import MockTerminalBackend


def _session(hash_value: str, tag: str, window: str = "1") -> SessionInfo:
    return SessionInfo(
        identifier=f"{hash_value[:8]}: {tag}",
        project_hash=hash_value,
        tag=tag,
        title=encode_title(hash_value, tag),
        window_identifier=window,
        tab_identifier=TabRef("1"),
    )


class TestFindExact:
    """Test exact (hash, tag) matching."""

    def test_first_match_in_order(self):
        sessions = [_session("h1", "a", "1"), _session("h1", "a", "2")]
        assert find_exact(sessions, "h1", "a").window_identifier == "1"

    def test_hash_must_match(self):
        assert find_exact([_session("h1", "a")], "h2", "a") is None

    def test_tag_is_case_sensitive(self):
        assert find_exact([_session("h1", "build")], "h1", "Build") is None


class TestFindForLookup:
    """Test the path-less fallback used by read/focus/kill."""

    def test_unique_tag_accepted_without_path(self):
        sessions = [_session("h1", "server")]
        assert find_for_lookup(sessions, NO_PROJECT, "server") is sessions[0]

    def test_ambiguous_tag_rejected(self):
        sessions = [_session("h1", "server"), _session("h2", "server")]
        assert find_for_lookup(sessions, NO_PROJECT, "server") is None

    def test_global_session_preferred(self):
        sessions = [_session("h1", "server"), _session(NO_PROJECT, "server")]
        assert find_for_lookup(sessions, NO_PROJECT, "server") is sessions[1]

    def test_no_fallback_when_path_given(self):
        sessions = [_session("h1", "server")]
        assert find_for_lookup(sessions, "h2", "server") is None


class TestGroupingMatrix:
    """Test placement for each policy against each window layout."""

    HASH = "f" * 64

    def _layouts(self):
        project_window = TerminalWindow(
            "10", tab_titles=[encode_title(self.HASH, "other")]
        )
        unrelated_window = TerminalWindow("20", tab_titles=["zsh"])
        return {
            "none": ([], None),
            "project": ([unrelated_window, project_window], "20"),
            "unrelated": ([unrelated_window], "20"),
        }

    @pytest.mark.parametrize(
        "policy,layout,expected_action,expected_window",
        [
            (WindowGrouping.OFF, "none", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.OFF, "project", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.OFF, "unrelated", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.PROJECT, "none", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.PROJECT, "project", PlacementAction.NEW_TAB, "10"),
            (WindowGrouping.PROJECT, "unrelated", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.SMART, "none", PlacementAction.NEW_WINDOW, None),
            (WindowGrouping.SMART, "project", PlacementAction.NEW_TAB, "10"),
            (WindowGrouping.SMART, "unrelated", PlacementAction.NEW_TAB, "20"),
        ],
    )
    def test_matrix(self, policy, layout, expected_action, expected_window):
        windows, frontmost = self._layouts()[layout]
        placement = choose_placement(policy, windows, self.HASH, frontmost)
        assert placement.action is expected_action
        assert placement.window_id == expected_window

    def test_window_name_marks_project(self):
        window = TerminalWindow("30", name=window_group_title(self.HASH, "build"))
        assert window_matches_project(window, self.HASH)

    def test_pathless_never_matches_project_window(self):
        window = TerminalWindow("30", tab_titles=[encode_title(NO_PROJECT, "x")])
        assert not window_matches_project(window, NO_PROJECT)


class TestSessionLocator:
    """Test lookup and creation against the mock terminal."""

    @pytest.mark.asyncio
    async def test_find_missing_raises(self):
        backend = MockTerminalBackend()
        with pytest.raises(SessionNotFoundError):
            await backend.locator.find(None, "nothing")

    @pytest.mark.asyncio
    async def test_invalid_tag_rejected_before_enumeration(self):
        backend = MockTerminalBackend()
        with pytest.raises(InvalidTagError):
            await backend.locator.locate_or_create(None, "bad tag", activate=False)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_create_encodes_tty_in_title(self, tmp_path):
        backend = MockTerminalBackend()
        located = await backend.locator.locate_or_create(
            str(tmp_path), "build", activate=False
        )
        assert located.created and located.new_window
        assert not located.needs_clear
        decoded = decode_title(located.session.title)
        assert decoded.tty == located.session.tty
        assert decoded.project_hash == project_hash(str(tmp_path))
        tab = backend.all_tabs()[0]
        assert tab.title == located.session.title

    @pytest.mark.asyncio
    async def test_second_call_reuses(self, tmp_path):
        backend = MockTerminalBackend()
        first = await backend.locator.locate_or_create(str(tmp_path), "build", activate=False)
        second = await backend.locator.locate_or_create(str(tmp_path), "build", activate=False)
        assert not second.created
        assert second.needs_clear
        assert second.session.tab_identifier == first.session.tab_identifier
        assert len(backend.all_tabs()) == 1

    @pytest.mark.asyncio
    async def test_smart_grouping_adds_tab_to_project_window(self, tmp_path):
        backend = MockTerminalBackend(AppConfig(window_grouping=WindowGrouping.SMART))
        await backend.locator.locate_or_create(str(tmp_path), "one", activate=False)
        backend.add_window(titles=["zsh"])  # unrelated and frontmost
        second = await backend.locator.locate_or_create(str(tmp_path), "two", activate=False)
        assert second.created and not second.new_window
        assert second.needs_clear
        first_window = next(iter(backend.windows))
        assert second.session.window_identifier == first_window

    @pytest.mark.asyncio
    async def test_new_project_window_is_marked(self, tmp_path):
        backend = MockTerminalBackend(AppConfig(window_grouping=WindowGrouping.PROJECT))
        located = await backend.locator.locate_or_create(str(tmp_path), "one", activate=False)
        window = backend.windows[located.session.window_identifier]
        assert decode_title(window.name).project_hash == project_hash(str(tmp_path))

    @pytest.mark.asyncio
    async def test_grouping_off_never_marks_windows(self, tmp_path):
        backend = MockTerminalBackend(AppConfig(window_grouping=WindowGrouping.OFF))
        await backend.locator.locate_or_create(str(tmp_path), "one", activate=False)
        await backend.locator.locate_or_create(str(tmp_path), "two", activate=False)
        assert "mark_project_window" not in backend.call_names()
        assert len(backend.windows) == 2

    @pytest.mark.asyncio
    async def test_missing_identifiers_is_internal_error(self):
        backend = MockTerminalBackend()

        async def broken_create(title, *, activate):
            return TerminalTab(window_id="", tab=TabRef(""), title=title)

        backend.create_window = broken_create
        with pytest.raises(InternalError):
            await backend.locator.locate_or_create(None, "x", activate=False)

    @pytest.mark.asyncio
    async def test_find_sets_display_identifier_and_busy(self, tmp_path):
        backend = MockTerminalBackend()
        located = await backend.locator.locate_or_create(str(tmp_path), "srv", activate=False)
        backend.processes.start(located.session.tty, "node")
        session = await backend.locator.find(str(tmp_path), "srv")
        assert session.identifier == f"{tmp_path.name}: srv"
        assert session.is_busy
