"""Session identity encoded in window and tab titles.

The title is the only state that survives between invocations, so it has to
carry everything needed to find a session again::

    ::TERMINATOR_SESSION::PROJECT_HASH=<hex>::TAG=<tag>::TTY_PATH=<tty>::PID=<pid>::

TAG and TTY_PATH are percent-encoded. Anything after the last delimiter is
ignored, since terminals and users may append text to a title.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote

from .exceptions import InvalidTagError

logger = logging.getLogger(__name__)

SESSION_PREFIX = "::TERMINATOR_SESSION::"
DELIMITER = "::"
NO_PROJECT = "NO_PROJECT"

KEY_PROJECT_HASH = "PROJECT_HASH"
KEY_TAG = "TAG"
KEY_TTY_PATH = "TTY_PATH"
KEY_PID = "PID"

TAG_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,40}$")


@dataclass(frozen=True)
class DecodedTitle:
    """Fields recovered from a managed title.

    ``tag`` is None for titles that only carry a project grouping marker
    (iTerm window names); those are not sessions.
    """

    project_hash: str | None = None
    tag: str | None = None
    tty: str | None = None
    pid: int | None = None

    @property
    def is_session(self) -> bool:
        return self.tag is not None


def validate_tag(tag: str) -> str:
    """Return the tag unchanged, or raise InvalidTagError."""
    if not TAG_PATTERN.match(tag or ""):
        raise InvalidTagError(tag or "")
    return tag


def normalize_project_path(project_path: str | Path) -> str:
    """Absolute, resolved form of a project path."""
    return str(Path(project_path).expanduser().resolve())


def project_hash(project_path: str | Path | None) -> str:
    """Stable SHA-256 hex digest of a project path.

    Path-less sessions get the ``NO_PROJECT`` sentinel, never an empty
    string.
    """
    if project_path is None or str(project_path).strip() == "":
        return NO_PROJECT
    normalized = normalize_project_path(project_path)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def display_identifier(project_path: str | Path | None, tag: str) -> str:
    """Human-readable session name such as ``myproj: build``."""
    if project_path is None or str(project_path).strip() == "":
        return f"Global: {tag}"
    name = Path(normalize_project_path(project_path)).name or str(project_path)
    return f"{name}: {tag}"


def encode_title(
    project_hash_value: str,
    tag: str,
    tty: str | None = None,
    pid: int | None = None,
) -> str:
    """Build the managed title for a session."""
    parts = [
        f"{KEY_PROJECT_HASH}={project_hash_value or NO_PROJECT}",
        f"{KEY_TAG}={quote(tag, safe='')}",
    ]
    if tty:
        parts.append(f"{KEY_TTY_PATH}={quote(tty, safe='')}")
    if pid is not None:
        parts.append(f"{KEY_PID}={pid}")
    return SESSION_PREFIX + DELIMITER.join(parts) + DELIMITER


def window_group_title(project_hash_value: str, tag: str) -> str:
    """Window name that marks a window as belonging to a project."""
    return f"{SESSION_PREFIX}{KEY_PROJECT_HASH}={project_hash_value}{DELIMITER} (Tag: {tag})"


def decode_title(title: str | None) -> DecodedTitle | None:
    """Parse a title produced by :func:`encode_title`.

    Returns None when the marker prefix is absent. Unknown keys and parts
    without ``=`` are skipped.
    """
    if not title:
        return None
    start = title.find(SESSION_PREFIX)
    if start < 0:
        return None

    body = title[start + len(SESSION_PREFIX):]
    fields: dict[str, str] = {}
    for part in body.split(DELIMITER):
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            continue
        # First occurrence wins so appended text cannot override a field
        fields.setdefault(key.strip(), value)

    pid: int | None = None
    if KEY_PID in fields:
        try:
            pid = int(fields[KEY_PID])
        except ValueError:
            logger.debug("Ignoring non-numeric PID in title: %r", fields[KEY_PID])

    tag = fields.get(KEY_TAG)
    tty = fields.get(KEY_TTY_PATH)
    return DecodedTitle(
        project_hash=fields.get(KEY_PROJECT_HASH) or None,
        tag=unquote(tag) if tag else None,
        tty=unquote(tty) if tty else None,
        pid=pid,
    )


def title_project_hash(title: str | None) -> str | None:
    """Project hash carried by a title or window name, if any."""
    decoded = decode_title(title)
    return decoded.project_hash if decoded else None
