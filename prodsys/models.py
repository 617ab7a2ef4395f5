"""Data models for the prodsys zoom-level task system.

This module contains the core data structures shared by the scanner,
aggregator, mutator and the AI layer: parsed task lines, per-project
summaries, the zoom level catalogue and LLM responses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidTaskLine


MIN_LEVEL = 0
MAX_LEVEL = 4
LEVELS: Tuple[int, ...] = tuple(range(MIN_LEVEL, MAX_LEVEL + 1))

TASK_LINE_PATTERN = re.compile(r"^(?P<indent>\s*)-\s*\[(?P<mark>[ xX])\]\s*(?P<rest>.*)$")


def parse_task_line(line: str) -> Optional[Tuple[bool, str]]:
    """Return ``(completed, description)`` for a checkbox line, else None."""
    match = TASK_LINE_PATTERN.match(line)
    if not match:
        return None
    description = match.group("rest").strip()
    if not description:
        return None
    return match.group("mark").lower() == "x", description


def format_task_line(description: str, completed: bool = False) -> str:
    """Render a checkbox line for ``description``."""
    checkbox = "[x]" if completed else "[ ]"
    return f"- {checkbox} {description.strip()}"


def completion_rate(completed: int, total: int) -> int:
    """Integer percentage, rounded half up; 0 when there are no tasks."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def is_valid_level(level: Any) -> bool:
    return isinstance(level, int) and not isinstance(level, bool) and MIN_LEVEL <= level <= MAX_LEVEL


@dataclass(slots=True)
class TaskRecord:
    """One checkbox line found in a project file.

    ``source_line_index`` is only meaningful until the file is next written;
    mutations look tasks up by ``source_file`` and ``description``.
    """

    description: str
    completed: bool
    level: Optional[int]
    source_file: str
    source_line_index: int
    project_name: str

    def __post_init__(self) -> None:
        if self.level is not None and not is_valid_level(self.level):
            raise ValueError(f"Zoom level must be between {MIN_LEVEL} and {MAX_LEVEL}, got: {self.level}")
        if not self.description or not self.description.strip():
            raise InvalidTaskLine(self.description, "empty description")

    @classmethod
    def from_line(
        cls,
        line: str,
        *,
        level: Optional[int],
        source_file: str,
        line_index: int,
        project_name: str,
    ) -> "TaskRecord":
        """Strictly build a record from a raw markdown line."""
        parsed = parse_task_line(line)
        if parsed is None:
            raise InvalidTaskLine(line, "expected '- [ ] text' or '- [x] text'")
        completed, description = parsed
        return cls(
            description=description,
            completed=completed,
            level=level,
            source_file=source_file,
            source_line_index=line_index,
            project_name=project_name,
        )

    def to_line(self) -> str:
        return format_task_line(self.description, self.completed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "description": self.description,
            "completed": self.completed,
            "level": self.level,
            "source_file": self.source_file,
            "line_index": self.source_line_index,
            "project": self.project_name,
        }


@dataclass(slots=True)
class ProjectSummary:
    """Completion statistics and level-bucketed tasks for one project.

    Counts cover every checkbox line of the project's files, including
    tasks outside any level section; ``tasks_by_level`` only holds
    classified tasks. Files sharing a project title are merged into one
    summary and keep their provenance through ``source_files`` and each
    task's ``source_file``.
    """

    project_name: str
    total_tasks: int = 0
    completed_tasks: int = 0
    tasks_by_level: Dict[int, List[TaskRecord]] = field(
        default_factory=lambda: {level: [] for level in LEVELS}
    )
    source_files: List[str] = field(default_factory=list)

    @property
    def completion_rate(self) -> int:
        return completion_rate(self.completed_tasks, self.total_tasks)

    @property
    def pending_tasks(self) -> List[TaskRecord]:
        return [task for level in LEVELS for task in self.tasks_by_level[level] if not task.completed]

    def merge(self, other: "ProjectSummary") -> None:
        """Fold another summary for the same project into this one."""
        self.total_tasks += other.total_tasks
        self.completed_tasks += other.completed_tasks
        for level in LEVELS:
            self.tasks_by_level[level].extend(other.tasks_by_level.get(level, []))
        for source in other.source_files:
            if source not in self.source_files:
                self.source_files.append(source)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_name": self.project_name,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "completion_rate": self.completion_rate,
            "tasks_by_level": {
                str(level): [task.to_dict() for task in tasks]
                for level, tasks in self.tasks_by_level.items()
            },
            "source_files": list(self.source_files),
        }


@dataclass(slots=True, frozen=True)
class ZoomLevel:
    """A time horizon tasks are classified into."""

    level: int
    name: str
    description: str
    time_horizon: str
    focus: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "time_horizon": self.time_horizon,
            "focus": list(self.focus),
        }


ZOOM_LEVELS: Dict[int, ZoomLevel] = {
    0: ZoomLevel(0, "Immediate", "Quick actions", "5-15 min",
                 ("Quick, actionable items", "5-15 minute tasks", "Clear next steps")),
    1: ZoomLevel(1, "Daily/Weekly", "Regular tasks", "1-3 hours",
                 ("Daily and weekly priorities", "1-3 hour tasks", "Regular routines")),
    2: ZoomLevel(2, "Projects", "Short-term projects", "days-weeks",
                 ("Active projects", "Multi-day initiatives", "Deliverable outcomes")),
    3: ZoomLevel(3, "Quarterly", "Goals and objectives", "1-3 months",
                 ("Quarterly goals", "Major milestones", "Strategic objectives")),
    4: ZoomLevel(4, "Annual/Life", "Long-term vision", "years",
                 ("Life vision", "Annual themes", "Long-term direction")),
}


CHANGE_TYPES = ("create", "update", "delete")


@dataclass(slots=True)
class FileChange:
    """A file edit proposed by the LLM."""

    file_path: str
    change_type: str
    content: Optional[str] = None
    diff: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "file_path": self.file_path,
            "change_type": self.change_type,
            "content": self.content,
            "diff": self.diff,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileChange":
        """Create from dictionary representation."""
        return cls(
            file_path=str(data.get("file_path", "")),
            change_type=str(data.get("change_type", "")),
            content=data.get("content"),
            diff=data.get("diff"),
        )


@dataclass(slots=True)
class AIResponse:
    """Structured answer returned by the LLM service."""

    analysis: str
    suggestions: List[str] = field(default_factory=list)
    proposed_changes: List[FileChange] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "analysis": self.analysis,
            "suggestions": list(self.suggestions),
            "proposed_changes": [change.to_dict() for change in self.proposed_changes],
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIResponse":
        """Create from dictionary representation, tolerating missing keys."""
        changes = data.get("proposed_changes") or []
        return cls(
            analysis=str(data.get("analysis", "")),
            suggestions=[str(item) for item in data.get("suggestions") or []],
            proposed_changes=[
                FileChange.from_dict(item) for item in changes if isinstance(item, dict)
            ],
            reasoning=str(data.get("reasoning", "")),
        )
