"""Tests for escalating interruption of terminal processes."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from terminator.interrupt import (
    InterruptController,
    InterruptOutcome,
    run_pre_kill_script,
)
from terminator.models import AppConfig
from terminator.process import ForegroundProcess
from terminator.testing import MockProcessTable

TTY = "/dev/ttys010"


def _controller(table: MockProcessTable, **kwargs) -> InterruptController:
    kwargs.setdefault("sigint_wait", 0)
    kwargs.setdefault("sigterm_wait", 0)
    kwargs.setdefault("sigkill_wait", 0)
    kwargs.setdefault("keystroke_wait", 0)
    return InterruptController(table, killpg=table.killpg, **kwargs)


class TestEscalation:
    """Test signal escalation order and early stopping."""

    @pytest.mark.asyncio
    async def test_idle_tty_sends_nothing(self):
        table = MockProcessTable()
        result = await _controller(table).interrupt(TTY)
        assert result.outcome is InterruptOutcome.STOPPED
        assert result.initial_process is None
        assert table.signals == []
        assert "No foreground process" in result.describe()

    @pytest.mark.asyncio
    async def test_stops_after_sigint(self):
        table = MockProcessTable()
        table.start(TTY, "npm", stops_on={"SIGINT"})
        result = await _controller(table).interrupt(TTY)
        assert result.stopped
        assert table.signal_names() == ["SIGINT"]
        assert result.signals_sent == ["SIGINT"]

    @pytest.mark.asyncio
    async def test_escalates_to_sigterm(self):
        table = MockProcessTable()
        table.start(TTY, "server", stops_on={"SIGTERM"})
        result = await _controller(table).interrupt(TTY)
        assert result.stopped
        assert table.signal_names() == ["SIGINT", "SIGTERM"]

    @pytest.mark.asyncio
    async def test_escalates_to_sigkill(self):
        table = MockProcessTable()
        table.start(TTY, "stubborn", stops_on=set())
        result = await _controller(table).interrupt(TTY)
        assert result.stopped
        assert table.signal_names() == ["SIGINT", "SIGTERM", "SIGKILL"]
        assert "via SIGINT, SIGTERM, SIGKILL" in result.describe()

    @pytest.mark.asyncio
    async def test_group_is_signalled_by_pgid(self):
        table = MockProcessTable()
        process = table.start(TTY, "npm", pgid=777)
        await _controller(table).interrupt(TTY)
        assert table.signals[0] == (777, "SIGINT")
        assert process.pgid == 777

    @pytest.mark.asyncio
    async def test_keystroke_fallback_without_pgid(self):
        table = MockProcessTable()
        table.start(TTY, "vim", pgid=0, stops_on={"CTRL_C"})

        async def keystroke():
            table.press_ctrl_c(TTY)

        result = await _controller(table).interrupt(TTY, send_keystroke=keystroke)
        assert result.stopped
        assert result.keystroke_sent
        assert table.signals == []
        assert table.keystrokes == [TTY]

    @pytest.mark.asyncio
    async def test_still_busy_without_keystroke(self):
        table = MockProcessTable()
        table.start(TTY, "vim", pgid=0, stops_on=set())
        result = await _controller(table).interrupt(TTY)
        assert result.outcome is InterruptOutcome.STILL_BUSY
        assert result.remaining_process.command == "vim"
        assert "Failed to stop" in result.describe()

    @pytest.mark.asyncio
    async def test_permission_error_still_waits_and_rechecks(self):
        table = MockProcessTable()
        table.start(TTY, "root-owned", stops_on=set())
        killpg = MagicMock(side_effect=PermissionError("not permitted"))
        controller = InterruptController(
            table, sigint_wait=0, sigterm_wait=0, sigkill_wait=0, killpg=killpg
        )
        result = await controller.interrupt(TTY)
        assert result.outcome is InterruptOutcome.STILL_BUSY
        assert killpg.call_count == 3

    @pytest.mark.asyncio
    async def test_waits_follow_configuration(self):
        table = MockProcessTable()
        table.start(TTY, "server", stops_on={"SIGTERM"})
        config = AppConfig(sigint_wait_seconds=1.5, sigterm_wait_seconds=2.5)
        controller = InterruptController.for_kill(config, table, killpg=table.killpg)
        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await controller.interrupt(TTY)
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.5, 2.5]

    @pytest.mark.asyncio
    async def test_busy_reuse_uses_its_own_waits(self):
        config = AppConfig(busy_sigint_wait_seconds=0.3, busy_sigterm_wait_seconds=0.4)
        controller = InterruptController.for_busy_reuse(config, MockProcessTable())
        assert controller.sigint_wait == 0.3
        assert controller.sigterm_wait == 0.4


class TestTerminateAfterTimeout:
    """Test best-effort cleanup after a foreground timeout."""

    @pytest.mark.asyncio
    async def test_idle_returns_none(self):
        table = MockProcessTable()
        assert await _controller(table).terminate_after_timeout(TTY) is None
        assert table.signals == []

    @pytest.mark.asyncio
    async def test_skips_sigint(self):
        table = MockProcessTable()
        process = table.start(TTY, "sleep", stops_on={"SIGTERM"})
        assert await _controller(table).terminate_after_timeout(TTY) == process.pid
        assert table.signal_names() == ["SIGTERM"]

    @pytest.mark.asyncio
    async def test_never_raises(self):
        table = MockProcessTable()
        process = table.start(TTY, "sleep")
        killpg = MagicMock(side_effect=OSError("boom"))
        controller = InterruptController(
            table, sigint_wait=0, sigterm_wait=0, sigkill_wait=0, killpg=killpg
        )
        assert await controller.terminate_after_timeout(TTY) == process.pid

    @pytest.mark.asyncio
    async def test_sigkill_without_trailing_wait(self):
        table = MockProcessTable()
        process = table.start(TTY, "sleep", stops_on=set())
        controller = _controller(table, sigkill_wait=5)
        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            pid = await controller.terminate_after_timeout(TTY, grace=0.05)
        assert pid == process.pid
        assert table.signal_names() == ["SIGTERM", "SIGKILL"]
        assert [c.args[0] for c in sleep.await_args_list] == [0.05]
        assert await table.foreground_process(TTY) is None


class TestPreKillScript:
    """Test the pre-kill hook."""

    @pytest.mark.asyncio
    async def test_passes_tty_and_pgid(self):
        proc = MagicMock()
        proc.returncode = 0
        proc.communicate = AsyncMock(return_value=(b"ok", b""))
        process = ForegroundProcess(pgid=42, pid=43, command="npm")
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            message = await run_pre_kill_script("/opt/hook.sh", TTY, process)
        assert mock_exec.call_args[0][:3] == ("/opt/hook.sh", TTY, "42")
        assert message == "Pre-kill script completed."

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        proc = MagicMock()
        proc.returncode = 3
        proc.communicate = AsyncMock(return_value=(b"", b"bad"))
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            message = await run_pre_kill_script("/opt/hook.sh", TTY, None)
        assert "status 3" in message

    @pytest.mark.asyncio
    async def test_missing_script(self, tmp_path):
        message = await run_pre_kill_script(str(tmp_path / "missing.sh"), TTY, None)
        assert "could not run" in message
