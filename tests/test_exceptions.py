"""Tests for the exception hierarchy and exit codes."""

import pytest

from terminator.exceptions import (
    CommandTimeoutError,
    ConfigLoadError,
    ConfigValidationError,
    ErrorStats,
    ExitCode,
    InternalError,
    InvalidTagError,
    PermissionDeniedError,
    ScriptCompilationError,
    ScriptExecutionError,
    SessionBusyError,
    SessionNotFoundError,
    TerminatorError,
    TypeConversionError,
    UnsupportedTerminalError,
    exit_code_for,
)


class TestExitCodes:
    """Every error family maps to its documented exit status."""

    @pytest.mark.parametrize(
        "error,code",
        [
            (TerminatorError("x"), ExitCode.GENERAL_ERROR),
            (ConfigLoadError(), ExitCode.CONFIGURATION_ERROR),
            (ConfigValidationError(), ExitCode.CONFIGURATION_ERROR),
            (UnsupportedTerminalError("Konsole"), ExitCode.CONFIGURATION_ERROR),
            (ScriptCompilationError(), ExitCode.SCRIPT_ERROR),
            (ScriptExecutionError(), ExitCode.SCRIPT_ERROR),
            (TypeConversionError(), ExitCode.SCRIPT_ERROR),
            (PermissionDeniedError(), ExitCode.PERMISSION_DENIED),
            (SessionNotFoundError("t"), ExitCode.SESSION_NOT_FOUND),
            (SessionBusyError(), ExitCode.SESSION_BUSY),
            (InvalidTagError("bad tag"), ExitCode.GENERAL_ERROR),
            (CommandTimeoutError(), ExitCode.TIMEOUT),
            (InternalError(), ExitCode.INTERNAL_ERROR),
        ],
    )
    def test_mapping(self, error, code):
        assert error.exit_code is code
        assert exit_code_for(error) is code

    def test_foreign_exception(self):
        assert exit_code_for(RuntimeError("boom")) is ExitCode.GENERAL_ERROR

    def test_values(self):
        assert [int(c) for c in ExitCode] == list(range(10))


class TestContext:
    """Test message and context rendering."""

    def test_str_includes_context(self):
        error = SessionNotFoundError("build", project_path="/src/app")
        assert str(error) == (
            "No session found for tag 'build' (tag=build, project_path=/src/app)"
        )

    def test_script_errors_keep_script(self):
        error = ScriptExecutionError("failed", error_number=-1728, script="tell app")
        assert error.script == "tell app"
        assert error.context["error_number"] == -1728

    def test_type_conversion_truncates_raw(self):
        error = TypeConversionError(raw="x" * 500)
        assert len(error.context["raw"]) == 200

    def test_cause(self):
        cause = OSError("disk")
        error = InternalError("wrapped", cause=cause)
        assert error.cause is cause

    def test_busy_error_process(self):
        error = SessionBusyError(tty="/dev/ttys001", process_description="npm (PID 1, PGID 1)")
        assert error.process_description.startswith("npm")
        assert error.context["tty"] == "/dev/ttys001"


class TestErrorStats:
    """Test the process-local error tracker."""

    def test_record(self):
        stats = ErrorStats(max_recent=2)
        for error in (ValueError("a"), ValueError("b"), KeyError("c")):
            stats.record(error)
        assert stats.total_count == 3
        assert stats.by_type == {"ValueError": 2, "KeyError": 1}
        assert len(stats.recent_errors) == 2
