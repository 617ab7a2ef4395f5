"""Safe, exact-match mutation of task lines in project files.

Every mutation re-reads the file immediately before rewriting it and looks
the task up by its description, never by a previously parsed line index.
There is no locking: two concurrent writers to the same file can still
lose an update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import SectionNotFound, TaskNotFound
from .models import TASK_LINE_PATTERN, format_task_line, is_valid_level, parse_task_line
from .prodsys_logging import log_operation, log_task_completed, log_task_inserted
from .scanner import line_body, section_bounds, split_lines
from .storage import FileStorage


logger = logging.getLogger("prodsys.mutator")


@dataclass(slots=True)
class MutationResult:
    """Outcome of a successful task mutation."""

    source_file: str
    line_index: int
    line: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_file": self.source_file,
            "line_index": self.line_index,
            "line": self.line,
        }


def _split_ending(line: str) -> tuple[str, str]:
    body = line_body(line)
    return body, line[len(body):]


def _newline_of(lines: List[str]) -> str:
    for line in lines:
        _, ending = _split_ending(line)
        if ending:
            return ending
    return "\n"


def _clean_description(description: str) -> str:
    cleaned = (description or "").strip()
    if not cleaned:
        raise ValueError("Task description cannot be empty")
    if "\n" in cleaned or "\r" in cleaned:
        raise ValueError("Task description must be a single line")
    return cleaned


def _single_line_description(description: str) -> str:
    """Also refuse form feeds, U+2028 and other breaks editors render as new lines."""
    cleaned = _clean_description(description)
    if len(cleaned.splitlines()) > 1:
        raise ValueError("Task description must not contain line or paragraph separators")
    return cleaned


class TaskMutator:
    """Toggle and insert checkbox lines in markdown files."""

    def __init__(self, storage: Optional[FileStorage] = None):
        self.storage = storage or FileStorage()

    def complete_task(self, source_file: Path | str, description: str) -> MutationResult:
        """Mark the first open task whose description equals ``description``.

        Raises :class:`TaskNotFound` when no such open task exists (already
        completed, edited or removed since the caller's view was built).
        Storage errors propagate.
        """
        target = _clean_description(description)
        path = Path(source_file)

        with log_operation("complete_task", source_file=str(path), description=target):
            lines = split_lines(self.storage.read(path), keepends=True)
            result: Optional[MutationResult] = None

            for index, line in enumerate(lines):
                body, ending = _split_ending(line)
                parsed = parse_task_line(body)
                if parsed is None:
                    continue
                completed, found = parsed
                if completed or found != target:
                    continue

                mark = TASK_LINE_PATTERN.match(body).start("mark")
                new_body = body[:mark] + "x" + body[mark + 1:]
                lines[index] = new_body + ending
                self.storage.write(path, "".join(lines))
                result = MutationResult(str(path), index, new_body)
                break

        if result is None:
            logger.info(f"Task '{target}' not found open in {path}")
            raise TaskNotFound(str(path), target)

        log_task_completed(str(path), target, line_index=result.line_index)
        return result

    def insert_task(
        self,
        source_file: Path | str,
        level: int,
        description: str,
        completed: bool = False,
    ) -> MutationResult:
        """Append a task to the end of the file's ``level`` section.

        The new line goes after the section's last non-blank line so blank
        separators before the next heading are kept. Raises
        :class:`SectionNotFound`, leaving the file untouched, when the file
        has no heading for ``level``.
        """
        if not is_valid_level(level):
            raise ValueError(f"Zoom level must be between 0 and 4, got: {level}")
        text_description = _single_line_description(description)
        path = Path(source_file)

        lines = split_lines(self.storage.read(path), keepends=True)
        bodies = [_split_ending(line)[0] for line in lines]
        bounds = section_bounds(bodies, level)
        if bounds is None:
            logger.info(f"No Level {level} section in {path}")
            raise SectionNotFound(str(path), level)
        start, end = bounds

        insert_at = end
        while insert_at - 1 > start and not bodies[insert_at - 1].strip():
            insert_at -= 1

        # shallowest task indent in the section
        indents = [
            match.group("indent")
            for match in (TASK_LINE_PATTERN.match(body) for body in bodies[start + 1:insert_at])
            if match
        ]
        indent = min(indents, key=len) if indents else ""

        newline = _newline_of(lines)
        if insert_at > 0 and not _split_ending(lines[insert_at - 1])[1]:
            lines[insert_at - 1] += newline

        new_body = indent + format_task_line(text_description, completed)
        lines.insert(insert_at, new_body + newline)

        with log_operation("insert_task", source_file=str(path), level=level, line_index=insert_at):
            self.storage.write(path, "".join(lines))

        log_task_inserted(str(path), level, text_description, line_index=insert_at)
        return MutationResult(str(path), insert_at, new_body)


def complete_task(source_file: Path | str, description: str, storage: Optional[FileStorage] = None) -> MutationResult:
    return TaskMutator(storage).complete_task(source_file, description)


def insert_task(
    source_file: Path | str,
    level: int,
    description: str,
    completed: bool = False,
    storage: Optional[FileStorage] = None,
) -> MutationResult:
    return TaskMutator(storage).insert_task(source_file, level, description, completed)
