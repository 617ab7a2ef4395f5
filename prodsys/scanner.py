"""Level-section scanner for zoom-level project files.

A project file is read as a flat sequence of lines. Headings move the scan
between two states, ``None`` (no level section) and ``N`` (inside the
section of zoom level N), and every checkbox line is emitted tagged with
the state it was found in:

* a heading (``#``...) containing ``Level N`` with N in 0-4 enters level N;
* a ``##``+ heading that does not mention ``Level`` leaves level tracking;
* any other heading leaves the state unchanged.

Unclassified checkboxes are emitted with ``level=None`` so callers can
decide what to do with them. Scanning never raises for malformed markdown.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import List, NamedTuple, Optional, Tuple, Union

from .errors import InvalidEncoding
from .models import TaskRecord, parse_task_line


LEVEL_TOKEN_PATTERN = re.compile(r"\bLevel ([0-4])(?!\d)")
PROJECT_TITLE_PATTERN = re.compile(r"^#\s*Project:\s*(?P<name>\S.*?)\s*$")


class ScanEntry(NamedTuple):
    level: Optional[int]
    completed: bool
    description: str
    line_index: int


def as_text(data: Union[str, bytes, bytearray]) -> str:
    """Return ``data`` as a string, decoding UTF-8 bytes."""
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray)):
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncoding(f"Input is not valid UTF-8 text: {e}") from e
    raise InvalidEncoding(f"Cannot scan object of type {type(data).__name__} as text")


def line_body(line: str) -> str:
    """``line`` without its ``\\n`` or ``\\r\\n`` ending."""
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def split_lines(text: str, keepends: bool = False) -> List[str]:
    """Split on ``\\n`` only.

    Unlike ``str.splitlines`` this keeps form feeds, ``\\x85`` and the
    Unicode line/paragraph separators inside the line they appear in.
    """
    pieces = text.split("\n")
    lines = [piece + "\n" for piece in pieces[:-1]]
    if pieces[-1]:
        lines.append(pieces[-1])
    if keepends:
        return lines
    return [line_body(line) for line in lines]


def is_heading(line: str) -> bool:
    return line.lstrip().startswith("#")


def heading_level(line: str) -> Optional[int]:
    """Zoom level named by a heading line, or None."""
    if not is_heading(line):
        return None
    match = LEVEL_TOKEN_PATTERN.search(line)
    return int(match.group(1)) if match else None


def transition(current: Optional[int], line: str) -> Tuple[Optional[int], bool]:
    """Apply one line to the scan state.

    Returns the new state and whether the line was a heading (headings
    never produce tasks).
    """
    if not is_heading(line):
        return current, False
    level = heading_level(line)
    if level is not None:
        return level, True
    if line.lstrip().startswith("##") and "Level" not in line:
        return None, True
    return current, True


def scan(text: Union[str, bytes, bytearray]) -> List[ScanEntry]:
    """Scan markdown text into checkbox entries in file order."""
    entries: List[ScanEntry] = []
    current: Optional[int] = None
    for index, line in enumerate(split_lines(as_text(text))):
        current, consumed = transition(current, line)
        if consumed:
            continue
        parsed = parse_task_line(line)
        if parsed is None:
            continue
        completed, description = parsed
        entries.append(ScanEntry(current, completed, description, index))
    return entries


def project_name(text: str, source_file: Union[str, PurePath]) -> str:
    """Project title from a ``# Project: <name>`` first line, else the file stem."""
    lines = split_lines(text)
    if lines:
        match = PROJECT_TITLE_PATTERN.match(lines[0].lstrip("\ufeff"))
        if match:
            return match.group("name")
    return PurePath(source_file).stem


def task_records(
    text: Union[str, bytes, bytearray],
    source_file: str,
    *,
    include_unclassified: bool = False,
) -> List[TaskRecord]:
    """Build task records for one file's content."""
    content = as_text(text)
    name = project_name(content, source_file)
    return [
        TaskRecord(
            description=entry.description,
            completed=entry.completed,
            level=entry.level,
            source_file=source_file,
            source_line_index=entry.line_index,
            project_name=name,
        )
        for entry in scan(content)
        if include_unclassified or entry.level is not None
    ]


def section_bounds(lines: List[str], level: int) -> Optional[Tuple[int, int]]:
    """Locate the first section for ``level``.

    Returns ``(heading_index, end_index)`` where ``end_index`` is the next
    heading of any kind after the section heading, or ``len(lines)``.
    """
    current: Optional[int] = None
    start: Optional[int] = None
    for index, line in enumerate(lines):
        current, consumed = transition(current, line)
        if not consumed:
            continue
        if start is not None:
            return start, index
        if current == level and heading_level(line) == level:
            start = index
    if start is None:
        return None
    return start, len(lines)
