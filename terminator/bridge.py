"""AppleScript bridge built on ``osascript``.

Scripts run through ``osascript -s s``, which prints results in AppleScript
source form (``{"a", 1, missing value}``). :func:`parse_applescript_value`
turns that text back into Python values:

- text -> ``str``
- integer / real -> ``int`` / ``float``
- boolean -> ``bool``
- ``missing value`` / ``null`` -> ``None``
- list -> ``list`` (recursively)
- record -> ``dict``

Failures are classified from osascript's stderr. Error -1743 means macOS
refused automation access; once seen, every later call on the same bridge
fails fast with PermissionDeniedError.
"""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
from typing import Any

from .exceptions import (
    PermissionDeniedError,
    ScriptCompilationError,
    ScriptExecutionError,
    TypeConversionError,
    record_error,
)

logger = logging.getLogger(__name__)

PERMISSION_DENIED_ERROR = -1743
DEFAULT_SCRIPT_TIMEOUT = 60.0

_ERROR_PATTERN = re.compile(
    r"(?P<kind>execution error|syntax error):\s*(?P<message>.*?)\s*\((?P<number>-?\d+)\)\s*$",
    re.DOTALL,
)
_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_ ]*")
_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t", "r": "\r"}


def escape_applescript_string(value: str) -> str:
    """Escape text for embedding inside an AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


# =============================================================================
# Result Parsing
# =============================================================================


class _LiteralParser:
    """Recursive-descent parser for AppleScript source-form values."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, reason: str) -> TypeConversionError:
        return TypeConversionError(
            f"Cannot parse script result: {reason}",
            raw=self.text,
            context={"position": self.pos},
        )

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def parse(self) -> Any:
        self.skip_ws()
        if self.pos >= len(self.text):
            return None
        value = self.parse_value()
        self.skip_ws()
        if self.pos != len(self.text):
            raise self.fail("trailing characters")
        return value

    def parse_value(self) -> Any:
        self.skip_ws()
        ch = self.peek()
        if ch == "{":
            return self.parse_collection()
        if ch == '"':
            return self.parse_string()
        if ch == "-" or ch.isdigit():
            return self.parse_number()
        for word, value in (
            ("missing value", None),
            ("null", None),
            ("true", True),
            ("false", False),
        ):
            if self.text.startswith(word, self.pos):
                self.pos += len(word)
                return value
        if self.text.startswith("date ", self.pos):
            self.pos += len("date ")
            self.skip_ws()
            return self.parse_string()
        raise self.fail(f"unexpected {ch!r}")

    def parse_string(self) -> str:
        assert self.peek() == '"'
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text):
                nxt = self.text[self.pos + 1]
                chars.append(_ESCAPES.get(nxt, "\\" + nxt))
                self.pos += 2
                continue
            if ch == '"':
                self.pos += 1
                return "".join(chars)
            chars.append(ch)
            self.pos += 1
        raise self.fail("unterminated string")

    def parse_number(self) -> int | float:
        match = _NUMBER_PATTERN.match(self.text, self.pos)
        if not match:
            raise self.fail("bad number")
        self.pos = match.end()
        token = match.group(0)
        if any(c in token for c in ".eE"):
            return float(token)
        return int(token)

    def parse_record_key(self) -> str | None:
        """Return a record key if one starts here, else None (no consumption)."""
        if self.peek() == "|":
            end = self.text.find("|", self.pos + 1)
            if end < 0:
                raise self.fail("unterminated record key")
            key = self.text[self.pos + 1:end]
            after = end + 1
        else:
            match = _IDENTIFIER_PATTERN.match(self.text, self.pos)
            if not match:
                return None
            key = match.group(0).strip()
            after = match.end()
            if key in ("missing value", "true", "false", "null"):
                return None
        while after < len(self.text) and self.text[after].isspace():
            after += 1
        if after < len(self.text) and self.text[after] == ":":
            self.pos = after + 1
            return key
        return None

    def parse_collection(self) -> list[Any] | dict[str, Any]:
        self.pos += 1  # {
        self.skip_ws()
        if self.peek() == "}":
            self.pos += 1
            return []

        items: list[Any] = []
        record: dict[str, Any] = {}
        while True:
            self.skip_ws()
            key = self.parse_record_key()
            if key is not None:
                record[key] = self.parse_value()
            else:
                items.append(self.parse_value())
            self.skip_ws()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
                continue
            if ch == "}":
                self.pos += 1
                break
            raise self.fail("expected ',' or '}'")

        if record and items:
            raise self.fail("mixed list and record")
        return record if record else items


def parse_applescript_value(text: str) -> Any:
    """Parse ``osascript -s s`` output into Python values."""
    return _LiteralParser(text.strip()).parse()


def parse_error_output(stderr: str, script: str | None = None) -> Exception:
    """Classify osascript stderr into a bridge exception."""
    text = stderr.strip()
    match = _ERROR_PATTERN.search(text)
    if not match:
        return ScriptExecutionError(
            f"osascript failed: {text or 'no error output'}", script=script
        )
    number = int(match.group("number"))
    message = match.group("message").strip()
    if number == PERMISSION_DENIED_ERROR:
        return PermissionDeniedError(script=script, context={"detail": message})
    if match.group("kind") == "syntax error":
        return ScriptCompilationError(
            f"Script failed to compile: {message}",
            script=script,
            context={"error_number": number},
        )
    return ScriptExecutionError(message, error_number=number, script=script)


# =============================================================================
# Bridge
# =============================================================================


class ScriptBridge:
    """Runs AppleScript source through ``osascript``.

    One bridge is created per invocation. It remembers which applications
    passed the permission preflight and whether access was denied.
    """

    def __init__(
        self,
        *,
        osascript_path: str = "osascript",
        timeout: float = DEFAULT_SCRIPT_TIMEOUT,
    ) -> None:
        self.osascript_path = osascript_path
        self.timeout = timeout
        self._permission_denied: PermissionDeniedError | None = None
        self._preflighted: set[str] = set()

    @property
    def permission_denied(self) -> bool:
        return self._permission_denied is not None

    async def run(self, script: str) -> Any:
        """Execute a script and return its parsed result.

        Raises:
            PermissionDeniedError: Automation access is denied (-1743).
            ScriptCompilationError: The script did not compile.
            ScriptExecutionError: The script raised while running.
            TypeConversionError: The result could not be parsed.
        """
        if self._permission_denied is not None:
            raise PermissionDeniedError(
                "Automation permission was denied earlier in this invocation",
                script=script,
            )

        logger.debug("Running AppleScript:\n--BEGIN--\n%s\n--END--", script)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.osascript_path,
                "-s",
                "s",
                "-e",
                script,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            record_error(e)
            raise ScriptExecutionError(
                "osascript is not available on this system",
                script=script,
                cause=e,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            logger.warning("AppleScript timed out after %.1fs", self.timeout)
            raise ScriptExecutionError(
                f"Script timed out after {self.timeout:g}s",
                script=script,
                cause=e,
            ) from e

        if proc.returncode != 0:
            error = parse_error_output(
                stderr.decode(errors="replace") if stderr else "", script
            )
            if isinstance(error, PermissionDeniedError):
                self._permission_denied = error
            logger.error("AppleScript failed: %s", error)
            record_error(error)
            raise error

        output = stdout.decode(errors="replace") if stdout else ""
        try:
            value = parse_applescript_value(output)
        except TypeConversionError as e:
            e.script = script
            record_error(e)
            raise
        logger.debug("AppleScript result: %r", value)
        return value

    async def ensure_permission(self, app_name: str) -> None:
        """Launch ``app_name`` if needed and trigger the automation prompt.

        Runs at most once per application for this bridge. A denial raises
        PermissionDeniedError and poisons later calls.
        """
        if app_name in self._preflighted:
            return
        name = escape_applescript_string(app_name)
        script = (
            f'tell application "{name}"\n'
            "    if not running then launch\n"
            "    count windows\n"
            "end tell"
        )
        logger.debug("Checking automation permission for %s", app_name)
        try:
            await self.run(script)
        except PermissionDeniedError as e:
            e.context.setdefault("app", app_name)
            raise
        self._preflighted.add(app_name)
