"""Tests for data models."""

import tempfile
from pathlib import Path

import pytest

from terminator.models import (
    AppConfig,
    ExecuteCommandResult,
    FocusPreference,
    InfoResult,
    KillSessionResult,
    SessionInfo,
    TabRef,
    load_config_from_dict,
    model_to_dict,
)


def _session(**kwargs) -> SessionInfo:
    defaults = dict(
        identifier="app: build",
        project_hash="abc",
        tag="build",
        title="::TERMINATOR_SESSION::PROJECT_HASH=abc::TAG=build::",
        window_identifier="w1",
        tab_identifier=TabRef("t1", "s1"),
        tty="/dev/ttys001",
    )
    defaults.update(kwargs)
    return SessionInfo(**defaults)


class TestTabRef:
    """Test composite tab identifiers."""

    def test_serialize(self):
        assert TabRef("3").serialize() == "3"
        assert TabRef("t1", "s1").serialize() == "t1:s1"

    def test_parse(self):
        assert TabRef.parse("3") == TabRef("3")
        assert TabRef.parse("t1:s1") == TabRef("t1", "s1")

    def test_hashable(self):
        assert len({TabRef("1"), TabRef("1"), TabRef("1", "a")}) == 2


class TestFocusPreference:
    """Test focus resolution against the configured default."""

    @pytest.mark.parametrize(
        "preference,default,expected",
        [
            (FocusPreference.FORCE, False, True),
            (FocusPreference.SUPPRESS, True, False),
            (FocusPreference.AUTO, True, True),
            (FocusPreference.DEFAULT, False, False),
        ],
    )
    def test_resolve(self, preference, default, expected):
        assert preference.resolve(default) is expected


class TestResultShapes:
    """Test JSON shapes of results."""

    def test_session_info(self):
        data = _session(pid_from_title=12).to_dict()
        assert data["session_identifier"] == "app: build"
        assert data["full_tab_title"].startswith("::TERMINATOR_SESSION::")
        assert data["tab_identifier"] == "t1:s1"
        assert data["pid_from_title"] == 12
        assert data["is_busy"] is False

    def test_execute_result(self):
        data = ExecuteCommandResult(
            session_info=_session(), output="ok", exit_code=0
        ).to_dict()
        assert data["output"] == "ok"
        assert data["exit_code"] == 0
        assert data["was_killed_by_timeout"] is False
        assert data["session_info"]["tag"] == "build"

    def test_kill_result(self):
        data = KillSessionResult(_session(), kill_success=False, message="nope").to_dict()
        assert data["kill_success"] is False
        assert data["killed_session_info"]["tty"] == "/dev/ttys001"

    def test_info_omits_missing_error(self):
        data = InfoResult(version="1", active_configuration={}).to_dict()
        assert "error" not in data
        assert data["managed_sessions"] == []
        assert "error_counts" not in data

    def test_info_includes_error_counts(self):
        data = InfoResult(
            version="1", active_configuration={}, error_counts={"SessionBusyError": 2}
        ).to_dict()
        assert data["error_counts"] == {"SessionBusyError": 2}

    def test_model_to_dict_converts_enums(self):
        data = model_to_dict(AppConfig())
        assert data["window_grouping"] == "smart"
        assert data["log_level"] == "info"


class TestAppConfig:
    """Test derived configuration values."""

    def test_log_dir_expands_home(self):
        config = AppConfig(log_dir="~/logs")
        assert config.resolved_log_dir == Path.home() / "logs"
        assert config.command_output_dir == Path.home() / "logs" / "cli_command_outputs"

    def test_system_temp_log_dir(self):
        config = AppConfig(log_dir="SYSTEM_TEMP")
        assert config.resolved_log_dir == Path(tempfile.gettempdir()) / "terminator-mcp"

    def test_as_environment_omits_unset(self):
        env = AppConfig().as_environment()
        assert env["TERMINATOR_APP"] == "Terminal"
        assert env["TERMINATOR_WINDOW_GROUPING"] == "smart"
        assert "TERMINATOR_PRE_KILL_SCRIPT_PATH" not in env

    def test_from_dict(self):
        config = load_config_from_dict(
            {"window_grouping": "project", "sigint_wait_seconds": 1}
        )
        assert config.window_grouping.value == "project"
        assert config.sigint_wait_seconds == 1.0
