"""Terminal backends, selected by application name."""

from __future__ import annotations

from typing import Any

from terminator.models import AppConfig, TerminalApp
from terminator.ports import ScriptRunner

from .apple_terminal import AppleTerminalBackend
from .base import BaseTerminalBackend
from .iterm import ITermBackend

BACKENDS: dict[TerminalApp, type[BaseTerminalBackend]] = {
    TerminalApp.APPLE_TERMINAL: AppleTerminalBackend,
    TerminalApp.ITERM: ITermBackend,
}


def create_backend(
    app: TerminalApp, config: AppConfig, bridge: ScriptRunner, **kwargs: Any
) -> BaseTerminalBackend:
    """Instantiate the backend registered for ``app``."""
    return BACKENDS[app](config, bridge, **kwargs)


__all__ = [
    "AppleTerminalBackend",
    "BaseTerminalBackend",
    "BACKENDS",
    "ITermBackend",
    "create_backend",
]
