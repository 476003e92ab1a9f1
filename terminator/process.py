"""Foreground process lookup for a terminal's tty.

A session counts as busy when some non-shell process owns the foreground
process group of its tty. Every call queries ``ps`` afresh; nothing is
cached because the process under a tty changes between invocations.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SHELL_NAMES = frozenset(
    {"bash", "zsh", "fish", "sh", "tcsh", "csh", "ksh", "dash", "login", "script"}
)

PS_TIMEOUT = 5.0  # Seconds before giving up on ps


@dataclass(frozen=True)
class ForegroundProcess:
    """The process occupying a tty's foreground process group."""

    pgid: int
    pid: int
    command: str

    def describe(self) -> str:
        return f"{self.command} (PID {self.pid}, PGID {self.pgid})"


def tty_name(tty: str) -> str:
    """``/dev/ttys004`` -> ``ttys004``."""
    return os.path.basename(tty.rstrip("/"))


def is_shell(command: str) -> bool:
    """Whether a ps command name is an interactive shell."""
    name = os.path.basename(command.strip()).lstrip("-")
    return name in SHELL_NAMES


def parse_ps_output(output: str) -> ForegroundProcess | None:
    """Pick the foreground non-shell process from ``ps`` output.

    Expects ``pgid pid stat comm`` columns without a header. Lines whose
    stat lacks ``+`` are not in the foreground group. The last qualifying
    line wins, since ps lists children after their parents.
    """
    found: ForegroundProcess | None = None
    for line in output.splitlines():
        parts = line.split(None, 3)
        if len(parts) < 4:
            continue
        pgid_str, pid_str, stat, command = parts
        if "+" not in stat:
            continue
        if is_shell(command):
            continue
        try:
            found = ForegroundProcess(
                pgid=int(pgid_str), pid=int(pid_str), command=command.strip()
            )
        except ValueError:
            logger.debug("Skipping malformed ps line: %r", line)
    return found


class ProcessIntrospector:
    """Queries the OS process table for tty foreground processes."""

    def __init__(self, ps_path: str = "ps") -> None:
        self.ps_path = ps_path

    async def foreground_process(self, tty: str | None) -> ForegroundProcess | None:
        """Return the foreground non-shell process on ``tty``, if any."""
        if not tty:
            return None
        name = tty_name(tty)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ps_path,
                "-t",
                name,
                "-o",
                "pgid=,pid=,stat=,comm=",
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=PS_TIMEOUT
            )
        except FileNotFoundError:
            logger.warning("ps not found at %s; cannot inspect %s", self.ps_path, tty)
            return None
        except asyncio.TimeoutError:
            logger.warning("ps timed out after %.1fs for %s", PS_TIMEOUT, tty)
            return None

        if proc.returncode != 0:
            # ps exits 1 when the tty has no processes at all
            logger.debug(
                "ps -t %s exited %s: %s",
                name,
                proc.returncode,
                stderr.decode(errors="replace").strip() if stderr else "",
            )
            return None

        result = parse_ps_output(stdout.decode(errors="replace"))
        if result:
            logger.debug("Foreground process on %s: %s", tty, result.describe())
        return result

    async def is_busy(self, tty: str | None) -> bool:
        """Whether a non-shell process is in the foreground of ``tty``."""
        return await self.foreground_process(tty) is not None
