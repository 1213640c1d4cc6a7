"""
Parser for checklist-style task declarations.

A declaration line looks like::

    * [ ] Task-1: Add login form (Scope: `src/auth/**`, `tests/auth/**`)

In the strict scope format every scope must be wrapped in backticks; the
lenient format also accepts bare comma-separated globs.
"""

import logging
import re
from enum import Enum
from typing import Optional, Union

from .config import STRICT_SCOPE_FORMAT, Settings
from .exceptions import ScopeFormatError
from .models import ParsedTask

logger = logging.getLogger(__name__)

TASK_LINE_PATTERN = re.compile(
    r"^[*-] \[(?P<box>[ xX])\] "
    r"(?P<id>[A-Za-z][A-Za-z0-9_-]*-\d+): "
    r"(?P<title>.+?) "
    r"\(Scope: (?P<scopes>.+)\)$"
)
_QUOTED_SCOPE = re.compile(r"`([^`]+)`")


class ScopeFormat(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def resolve_scope_format(raw: Optional[str]) -> ScopeFormat:
    """Map a configured value to a format; only an exact ``strict`` is strict."""
    if raw == STRICT_SCOPE_FORMAT:
        return ScopeFormat.STRICT
    return ScopeFormat.LENIENT


def get_scope_format(settings: Optional[Settings] = None) -> ScopeFormat:
    """Read the scope format from ``SDD_SCOPE_FORMAT``."""
    settings = settings or Settings()
    return resolve_scope_format(settings.scope_format)


def _coerce_format(mode: Union[ScopeFormat, str, None]) -> ScopeFormat:
    if mode is None:
        return get_scope_format()
    if isinstance(mode, ScopeFormat):
        return mode
    return resolve_scope_format(mode)


def _split_segments(text: str) -> list[str]:
    """Split on commas outside backtick pairs; trim and drop empty segments."""
    segments = []
    current = []
    quoted = False
    for char in text:
        if char == "`":
            quoted = not quoted
        if char == "," and not quoted:
            segments.append("".join(current))
            current = []
            continue
        current.append(char)
    segments.append("".join(current))
    return [segment.strip() for segment in segments if segment.strip()]


def parse_scopes(text: str, mode: Union[ScopeFormat, str, None] = None) -> list[str]:
    """Parse a scope annotation into an ordered list of glob patterns.

    Raises:
        ScopeFormatError: In strict mode, for the first segment that is not a
            single backtick-quoted token.
    """
    scope_format = _coerce_format(mode)
    scopes = []
    for segment in _split_segments(text):
        quoted = _QUOTED_SCOPE.fullmatch(segment)
        if scope_format is ScopeFormat.STRICT and not quoted:
            raise ScopeFormatError(segment)
        scope = quoted.group(1).strip() if quoted else segment
        if scope:
            scopes.append(scope)
    return scopes


def parse_task(line: str, mode: Union[ScopeFormat, str, None] = None) -> Optional[ParsedTask]:
    """Parse one declaration line, or return None when it is not one."""
    match = TASK_LINE_PATTERN.match(line.strip())
    if not match:
        return None

    return ParsedTask(
        id=match.group("id"),
        title=match.group("title").strip(),
        scopes=parse_scopes(match.group("scopes"), mode),
        done=match.group("box").lower() == "x",
    )


def parse_tasks_file(content: str, mode: Union[ScopeFormat, str, None] = None) -> list[ParsedTask]:
    """Collect every declaration in a tasks file, skipping prose and headers."""
    scope_format = _coerce_format(mode)
    tasks = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        task = parse_task(stripped, scope_format)
        if task is not None:
            tasks.append(task)
    logger.debug(f"Parsed {len(tasks)} task declaration(s)")
    return tasks
