"""Escalating interruption of whatever occupies a terminal session.

The command runs in somebody else's terminal, so the only levers are
signals to the tty's foreground process group and a synthetic Ctrl-C
typed into the session. Escalation order is fixed: SIGINT, SIGTERM,
SIGKILL, keystroke. Each stage is followed by its own wait and a fresh
process-table check, and the sequence stops at the first clean check.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from .models import AppConfig
from .process import ForegroundProcess, ProcessIntrospector

logger = logging.getLogger(__name__)

SIGKILL_WAIT = 0.2
KEYSTROKE_WAIT = 0.5
PRE_KILL_SCRIPT_TIMEOUT = 10.0

KeystrokeSender = Callable[[], Awaitable[None]]


class InterruptOutcome(Enum):
    STOPPED = "stopped"
    STILL_BUSY = "still_busy"


@dataclass
class InterruptResult:
    """What an interruption attempt did and how it ended."""

    outcome: InterruptOutcome
    initial_process: ForegroundProcess | None = None
    remaining_process: ForegroundProcess | None = None
    signals_sent: list[str] = field(default_factory=list)
    keystroke_sent: bool = False

    @property
    def stopped(self) -> bool:
        return self.outcome is InterruptOutcome.STOPPED

    def describe(self) -> str:
        """One-line summary suitable for a user-facing message."""
        if self.initial_process is None:
            return "No foreground process was running."
        target = self.initial_process.describe()
        steps = list(self.signals_sent)
        if self.keystroke_sent:
            steps.append("Ctrl-C")
        via = ", ".join(steps) if steps else "no signals"
        if self.stopped:
            return f"Stopped {target} via {via}."
        remaining = (
            self.remaining_process.describe() if self.remaining_process else target
        )
        return f"Failed to stop {remaining} after {via}."


class InterruptController:
    """Runs the escalation protocol against one tty.

    Wait durations are fixed at construction; :meth:`for_kill` and
    :meth:`for_busy_reuse` pick the matching pair from configuration.
    """

    def __init__(
        self,
        introspector: ProcessIntrospector,
        *,
        sigint_wait: float,
        sigterm_wait: float,
        sigkill_wait: float = SIGKILL_WAIT,
        keystroke_wait: float = KEYSTROKE_WAIT,
        killpg: Callable[[int, int], None] = os.killpg,
    ) -> None:
        self.introspector = introspector
        self.sigint_wait = sigint_wait
        self.sigterm_wait = sigterm_wait
        self.sigkill_wait = sigkill_wait
        self.keystroke_wait = keystroke_wait
        self._killpg = killpg

    @classmethod
    def for_kill(
        cls, config: AppConfig, introspector: ProcessIntrospector, **kwargs
    ) -> InterruptController:
        return cls(
            introspector,
            sigint_wait=config.sigint_wait_seconds,
            sigterm_wait=config.sigterm_wait_seconds,
            **kwargs,
        )

    @classmethod
    def for_busy_reuse(
        cls, config: AppConfig, introspector: ProcessIntrospector, **kwargs
    ) -> InterruptController:
        return cls(
            introspector,
            sigint_wait=config.busy_sigint_wait_seconds,
            sigterm_wait=config.busy_sigterm_wait_seconds,
            **kwargs,
        )

    def _stages(self) -> list[tuple[signal.Signals, float]]:
        return [
            (signal.SIGINT, self.sigint_wait),
            (signal.SIGTERM, self.sigterm_wait),
            (signal.SIGKILL, self.sigkill_wait),
        ]

    def _signal_group(self, pgid: int, sig: signal.Signals) -> bool:
        """Send ``sig`` to a process group.

        Returns False when the group no longer exists.
        """
        try:
            self._killpg(pgid, sig)
            logger.debug("Sent %s to PGID %s", sig.name, pgid)
            return True
        except ProcessLookupError:
            logger.debug("PGID %s already gone before %s", pgid, sig.name)
            return False
        except PermissionError as e:
            logger.warning("Not permitted to send %s to PGID %s: %s", sig.name, pgid, e)
            return True

    async def interrupt(
        self,
        tty: str | None,
        *,
        send_keystroke: KeystrokeSender | None = None,
        process: ForegroundProcess | None = None,
    ) -> InterruptResult:
        """Stop the foreground process on ``tty``.

        Args:
            tty: Device path of the session.
            send_keystroke: Coroutine factory typing Ctrl-C into the session,
                used when signals are unavailable or did not work.
            process: Already-known foreground process, saves one ps call.

        Returns:
            InterruptResult ending in STOPPED or STILL_BUSY.
        """
        current = process or await self.introspector.foreground_process(tty)
        result = InterruptResult(
            outcome=InterruptOutcome.STOPPED, initial_process=current
        )
        if current is None:
            logger.debug("Nothing to interrupt on %s", tty)
            return result

        logger.info("Interrupting %s on %s", current.describe(), tty)

        if current.pgid > 0:
            for sig, wait in self._stages():
                result.signals_sent.append(sig.name)
                if self._signal_group(current.pgid, sig):
                    await asyncio.sleep(wait)
                current = await self.introspector.foreground_process(tty)
                if current is None:
                    logger.info("Process on %s stopped after %s", tty, sig.name)
                    return result
                if current.pgid <= 0:
                    break
        else:
            logger.debug("No PGID for process on %s, skipping signals", tty)

        if send_keystroke is not None:
            logger.info("Falling back to Ctrl-C keystroke on %s", tty)
            await send_keystroke()
            result.keystroke_sent = True
            await asyncio.sleep(self.keystroke_wait)
            current = await self.introspector.foreground_process(tty)
            if current is None:
                logger.info("Process on %s stopped after Ctrl-C", tty)
                return result

        result.outcome = InterruptOutcome.STILL_BUSY
        result.remaining_process = current
        logger.warning("Session on %s still busy: %s", tty, current.describe())
        return result

    async def terminate_after_timeout(
        self, tty: str | None, *, grace: float | None = None
    ) -> int | None:
        """Best-effort SIGTERM then SIGKILL for a timed-out command.

        Waits ``grace`` (default ``sigterm_wait``) after SIGTERM only; SIGKILL
        is sent without a trailing wait so the caller's return stays bounded.
        Never raises; failures are logged.

        Returns:
            PID of the process that was targeted, or None if the tty was idle.
        """
        try:
            current = await self.introspector.foreground_process(tty)
        except OSError as e:
            logger.warning("Failed to inspect timed-out process on %s: %s", tty, e)
            return None
        if current is None:
            return None

        target = current
        try:
            if current.pgid > 0 and self._signal_group(current.pgid, signal.SIGTERM):
                await asyncio.sleep(self.sigterm_wait if grace is None else max(grace, 0))
                current = await self.introspector.foreground_process(tty)
            if current is None:
                logger.info("Timed-out process on %s stopped after SIGTERM", tty)
            elif current.pgid > 0:
                self._signal_group(current.pgid, signal.SIGKILL)
                logger.info("Sent SIGKILL to timed-out process on %s", tty)
            else:
                logger.warning("Timed-out process on %s has no PGID to signal", tty)
        except OSError as e:
            logger.warning("Failed to terminate timed-out process on %s: %s", tty, e)
        return target.pid


async def run_pre_kill_script(
    script_path: str,
    tty: str | None,
    process: ForegroundProcess | None,
    *,
    timeout: float = PRE_KILL_SCRIPT_TIMEOUT,
) -> str:
    """Run the configured pre-kill hook with the tty and pgid as arguments.

    Best-effort: failures are logged and summarized in the returned message.
    """
    path = os.path.expanduser(script_path)
    args = [tty or "", str(process.pgid) if process else ""]
    try:
        proc = await asyncio.create_subprocess_exec(
            path,
            *args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Pre-kill script %s timed out after %.1fs", path, timeout)
        return f"Pre-kill script timed out after {timeout:g}s."
    except OSError as e:
        logger.warning("Pre-kill script %s could not run: %s", path, e)
        return f"Pre-kill script could not run: {e}."

    if stdout:
        logger.debug("Pre-kill script output: %s", stdout.decode(errors="replace").strip())
    if proc.returncode != 0:
        logger.warning(
            "Pre-kill script %s exited %s: %s",
            path,
            proc.returncode,
            stderr.decode(errors="replace").strip() if stderr else "",
        )
        return f"Pre-kill script exited with status {proc.returncode}."
    return "Pre-kill script completed."
