"""Tests for the osascript bridge."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from terminator.bridge import (
    ScriptBridge,
    escape_applescript_string,
    parse_applescript_value,
    parse_error_output,
)
from terminator.exceptions import (
    ExitCode,
    PermissionDeniedError,
    ScriptCompilationError,
    ScriptExecutionError,
    TypeConversionError,
)


def _mock_proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class TestEscaping:
    """Test AppleScript string escaping."""

    def test_quotes_and_backslashes(self):
        assert escape_applescript_string('say "hi"') == 'say \\"hi\\"'
        assert escape_applescript_string("a\\b") == "a\\\\b"

    def test_backslash_escaped_before_quote(self):
        assert escape_applescript_string('\\"') == '\\\\\\"'


class TestParseValue:
    """Test parsing of osascript source-form output."""

    def test_scalars(self):
        assert parse_applescript_value('"hello"') == "hello"
        assert parse_applescript_value("42") == 42
        assert parse_applescript_value("-3") == -3
        assert parse_applescript_value("1.5") == 1.5
        assert parse_applescript_value("true") is True
        assert parse_applescript_value("false") is False
        assert parse_applescript_value("missing value") is None

    def test_empty_output(self):
        assert parse_applescript_value("") is None
        assert parse_applescript_value("\n") is None

    def test_string_escapes(self):
        assert parse_applescript_value(r'"a \"quoted\" word"') == 'a "quoted" word'
        assert parse_applescript_value(r'"line\nnext"') == "line\nnext"

    def test_nested_lists(self):
        text = '{{"1001", "1", "title", "/dev/ttys001"}, {"1002", "2", "", missing value}}'
        assert parse_applescript_value(text) == [
            ["1001", "1", "title", "/dev/ttys001"],
            ["1002", "2", "", None],
        ]

    def test_empty_list(self):
        assert parse_applescript_value("{}") == []

    def test_record(self):
        assert parse_applescript_value('{name:"x", |window id|:3}') == {
            "name": "x",
            "window id": 3,
        }

    def test_date(self):
        assert parse_applescript_value('date "Monday, 1 January 2024"') == (
            "Monday, 1 January 2024"
        )

    @pytest.mark.parametrize("text", ['"unterminated', "{1, 2", "@", '"a" "b"'])
    def test_malformed(self, text):
        with pytest.raises(TypeConversionError):
            parse_applescript_value(text)


class TestParseErrorOutput:
    """Test classification of osascript failures."""

    def test_permission_denied(self):
        error = parse_error_output(
            "execution error: Not authorized to send Apple events to Terminal. (-1743)"
        )
        assert isinstance(error, PermissionDeniedError)
        assert error.exit_code is ExitCode.PERMISSION_DENIED

    def test_syntax_error(self):
        error = parse_error_output("0:5: syntax error: Expected end of line. (-2741)")
        assert isinstance(error, ScriptCompilationError)

    def test_execution_error_keeps_number(self):
        error = parse_error_output(
            "1:40: execution error: Terminal got an error: Can't get window id 9. (-1728)"
        )
        assert isinstance(error, ScriptExecutionError)
        assert error.error_number == -1728
        assert "Can't get window id 9." in error.message

    def test_unrecognized_output(self):
        error = parse_error_output("something odd")
        assert isinstance(error, ScriptExecutionError)
        assert error.error_number is None


class TestScriptBridge:
    """Test running scripts through osascript."""

    @pytest.mark.asyncio
    async def test_run_parses_result(self):
        proc = _mock_proc(b'{"a", 1}\n')
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            result = await ScriptBridge().run('return {"a", 1}')
        assert result == ["a", 1]
        assert mock_exec.call_args[0][:5] == ("osascript", "-s", "s", "-e", 'return {"a", 1}')

    @pytest.mark.asyncio
    async def test_failure_raises_classified_error(self):
        proc = _mock_proc(b"", b"execution error: boom (-2700)", returncode=1)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(ScriptExecutionError) as exc_info:
                await ScriptBridge().run("error")
        assert exc_info.value.script == "error"

    @pytest.mark.asyncio
    async def test_permission_denial_short_circuits(self):
        """After -1743 no further osascript processes are started."""
        proc = _mock_proc(b"", b"execution error: Not authorized (-1743)", returncode=1)
        bridge = ScriptBridge()
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            with pytest.raises(PermissionDeniedError):
                await bridge.run("first")
            with pytest.raises(PermissionDeniedError):
                await bridge.run("second")
        assert mock_exec.call_count == 1
        assert bridge.permission_denied

    @pytest.mark.asyncio
    async def test_missing_osascript(self):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError):
            with pytest.raises(ScriptExecutionError, match="not available"):
                await ScriptBridge().run("x")

    @pytest.mark.asyncio
    async def test_timeout_kills_and_reaps_process(self):
        proc = _mock_proc()
        with patch("asyncio.create_subprocess_exec", return_value=proc), patch(
            "asyncio.wait_for", side_effect=asyncio.TimeoutError
        ):
            with pytest.raises(ScriptExecutionError, match="timed out"):
                await ScriptBridge(timeout=1).run("x")
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unparseable_result(self):
        proc = _mock_proc(b"\xab garbage \xbb")
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(TypeConversionError) as exc_info:
                await ScriptBridge().run("x")
        assert exc_info.value.script == "x"


class TestEnsurePermission:
    """Test the once-per-app permission preflight."""

    @pytest.mark.asyncio
    async def test_runs_once_per_app(self):
        bridge = ScriptBridge()
        bridge.run = AsyncMock(return_value=1)
        await bridge.ensure_permission("Terminal")
        await bridge.ensure_permission("Terminal")
        await bridge.ensure_permission("iTerm")
        assert bridge.run.call_count == 2
        script = bridge.run.call_args_list[0].args[0]
        assert 'tell application "Terminal"' in script
        assert "launch" in script

    @pytest.mark.asyncio
    async def test_denial_propagates_with_app(self):
        bridge = ScriptBridge()
        bridge.run = AsyncMock(side_effect=PermissionDeniedError())
        with pytest.raises(PermissionDeniedError) as exc_info:
            await bridge.ensure_permission("iTerm")
        assert exc_info.value.context["app"] == "iTerm"
