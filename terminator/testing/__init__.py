"""Testing utilities for terminator.

This package provides in-memory implementations of the terminal
application, the process table and the scripting bridge for unit testing
without macOS.
"""

from terminator.testing.mock_terminal import (
    MockProcess,
    MockProcessTable,
    MockScriptRunner,
    MockTab,
    MockTerminalBackend,
    MockWindow,
)

__all__ = [
    "MockTerminalBackend",
    "MockProcessTable",
    "MockProcess",
    "MockScriptRunner",
    "MockTab",
    "MockWindow",
]
