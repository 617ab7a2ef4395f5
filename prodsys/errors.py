"""Exception types raised by the prodsys core.

Storage failures are not wrapped: a missing file surfaces as
``FileNotFoundError`` and any other I/O failure as ``OSError``.
"""

from __future__ import annotations

from typing import Optional


class ProdsysError(Exception):
    """Base class for all prodsys errors."""


class InvalidTaskLine(ProdsysError, ValueError):
    """A line expected to be a markdown checkbox does not match the pattern."""

    def __init__(self, line: str, reason: Optional[str] = None):
        self.line = line
        message = f"Not a task line: {line!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidEncoding(ProdsysError, ValueError):
    """Scanner input could not be treated as text."""


class TaskNotFound(ProdsysError, LookupError):
    """No open task with the exact description exists in the file."""

    def __init__(self, source_file: str, description: str):
        self.source_file = source_file
        self.description = description
        super().__init__(f"Task '{description}' not found in {source_file}")


class SectionNotFound(ProdsysError, LookupError):
    """The file has no heading for the requested zoom level."""

    def __init__(self, source_file: str, level: int):
        self.source_file = source_file
        self.level = level
        super().__init__(f"Level {level} section not found in project {source_file}")


class WorkspaceNotInitialized(ProdsysError, RuntimeError):
    """The workspace root has no config.yml."""

    def __init__(self, root: str):
        self.root = root
        super().__init__(
            f"Workspace not initialized at {root}. Run init_workspace first."
        )


class AIServiceError(ProdsysError, RuntimeError):
    """The LLM service could not be reached or configured."""
