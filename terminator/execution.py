"""Command submission and completion detection.

The command runs inside a terminal we do not own, so there is no child
process to wait on. Instead the command is wrapped so that its combined
output goes to a per-invocation log file and, in foreground mode, a unique
marker line is appended once it exits. Completion is detected by polling
the log file for that marker.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from .exceptions import InternalError, TerminatorError, record_error
from .models import AppConfig, ExecutionMode

logger = logging.getLogger(__name__)

MARKER_PREFIX = "TERMINATOR_CMD_DONE_"
LOG_FILE_PREFIX = "terminator_output_"

# (poll count threshold, interval) pairs; the last interval applies afterwards
POLL_SCHEDULE: tuple[tuple[int, float], ...] = ((10, 0.1), (50, 0.25))
POLL_INTERVAL_MAX = 0.5

SubmitText = Callable[[str], Awaitable[None]]
TimeoutHandler = Callable[[float], Awaitable[int | None]]


@dataclass
class ExecutionOutcome:
    """Result of running one wrapped command."""

    output: str
    exit_code: int | None
    timed_out: bool = False
    pid: int | None = None
    log_path: Path | None = None


def poll_interval(iteration: int) -> float:
    """Adaptive delay: tight for the first polls, relaxed later."""
    for limit, interval in POLL_SCHEDULE:
        if iteration < limit:
            return interval
    return POLL_INTERVAL_MAX


def new_marker() -> str:
    return f"{MARKER_PREFIX}{uuid.uuid4().hex}"


def shell_quote(value: str) -> str:
    """Single-quote ``value`` for POSIX shells."""
    return "'" + value.replace("'", "'\\''") + "'"


def build_log_path(output_dir: Path, tty: str | None) -> Path:
    """Fresh log file path for one invocation."""
    tty_part = os.path.basename(tty) if tty else "notty"
    name = f"{LOG_FILE_PREFIX}{tty_part}_{int(time.time())}_{uuid.uuid4().hex[:8]}.log"
    return output_dir / name


def wrap_foreground(command: str, log_path: Path, marker: str) -> str:
    """Redirect output to the log and append the marker when done."""
    log = shell_quote(str(log_path))
    return f"(( {command} ) > {log} 2>&1; echo {shell_quote(marker)} >> {log})"


def wrap_background(command: str, log_path: Path) -> str:
    """Redirect output to the log and detach from the shell."""
    log = shell_quote(str(log_path))
    return f"(( {command} ) > {log} 2>&1) & disown"


def tail_lines(text: str, count: int) -> str:
    """Last ``count`` lines of ``text`` (trailing blank lines dropped)."""
    lines = text.rstrip("\n").splitlines()
    if count <= 0:
        return ""
    return "\n".join(lines[-count:])


def strip_marker(content: str, marker: str) -> tuple[str, bool]:
    """Split log content at the marker.

    Returns the output before the marker line and whether it was found.
    """
    index = content.find(marker)
    if index < 0:
        return content, False
    return content[:index], True


def read_log(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return ""


def remove_log(path: Path) -> None:
    """Delete a log file, logging instead of raising on failure."""
    try:
        path.unlink()
        logger.debug("Removed command log %s", path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove command log %s: %s", path, e)


class CommandExecutor:
    """Wraps, submits and watches one command."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def _prepare_output_dir(self) -> Path:
        output_dir = self.config.command_output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            record_error(e)
            raise InternalError(
                "Failed to create command output directory",
                context={"path": str(output_dir)},
                cause=e,
            ) from e
        return output_dir

    async def run(
        self,
        command: str,
        *,
        tty: str | None,
        submit: SubmitText,
        mode: ExecutionMode,
        timeout: float,
        lines: int,
        on_timeout: TimeoutHandler | None = None,
    ) -> ExecutionOutcome:
        """Run ``command`` through ``submit`` and wait according to ``mode``.

        Args:
            command: The user's shell command, non-empty.
            tty: Session tty, used only to name the log file.
            submit: Types text into the session.
            mode: Foreground waits for the marker; background samples output.
            timeout: Foreground deadline or background startup wait, seconds.
            lines: Number of trailing output lines to return.
            on_timeout: Best-effort cleanup after a foreground timeout. It
                receives the current poll interval as its time budget and
                returns the pid it stopped if known.
        """
        log_path = build_log_path(self._prepare_output_dir(), tty)
        if mode is ExecutionMode.BACKGROUND:
            return await self._run_background(command, log_path, submit, timeout, lines)
        return await self._run_foreground(
            command, log_path, submit, timeout, lines, on_timeout
        )

    async def _run_background(
        self,
        command: str,
        log_path: Path,
        submit: SubmitText,
        startup: float,
        lines: int,
    ) -> ExecutionOutcome:
        await submit(wrap_background(command, log_path))
        logger.info("Submitted background command, sampling output for %.1fs", startup)
        await asyncio.sleep(max(startup, 0))
        output = tail_lines(read_log(log_path), lines)
        remove_log(log_path)
        return ExecutionOutcome(output=output, exit_code=0)

    async def _run_foreground(
        self,
        command: str,
        log_path: Path,
        submit: SubmitText,
        timeout: float,
        lines: int,
        on_timeout: TimeoutHandler | None,
    ) -> ExecutionOutcome:
        marker = new_marker()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout, 0)

        await submit(wrap_foreground(command, log_path, marker))
        logger.debug("Waiting up to %.1fs for marker in %s", timeout, log_path)

        iteration = 0
        while True:
            content = read_log(log_path)
            output, done = strip_marker(content, marker)
            if done:
                logger.info("Command completed after %d polls", iteration)
                remove_log(log_path)
                return ExecutionOutcome(
                    output=tail_lines(output, lines), exit_code=0
                )

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval(iteration), remaining))
            iteration += 1

        logger.warning(
            "Command timed out after %.1fs; keeping log %s", timeout, log_path
        )
        pid = None
        if on_timeout is not None:
            try:
                pid = await on_timeout(poll_interval(iteration))
            except (TerminatorError, OSError) as e:
                logger.warning("Cleanup after timeout failed: %s", e)

        return ExecutionOutcome(
            output=tail_lines(read_log(log_path), lines),
            exit_code=None,
            timed_out=True,
            pid=pid,
            log_path=log_path,
        )
