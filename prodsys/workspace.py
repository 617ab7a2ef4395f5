"""Workspace management for the prodsys productivity system.

A workspace is a directory of plain markdown files: ``README.md``,
``plan.md`` and ``reflect.md`` at the root, one file per project under
``projects/`` and optional notes under ``areas/``. This module owns that
layout and routes task reads and writes through the aggregator and the
mutator.
"""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .aggregator import ProjectAggregator
from .config import CONFIG_FILENAME, Config, load_config
from .errors import WorkspaceNotInitialized
from .models import (
    CHANGE_TYPES,
    LEVELS,
    AIResponse,
    FileChange,
    ProjectSummary,
    TaskRecord,
    completion_rate,
)
from .mutator import MutationResult, TaskMutator
from .prodsys_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_workspace_initialized,
    observability_hooks,
)
from .scanner import LEVEL_TOKEN_PATTERN, scan, split_lines
from .storage import FileStorage
from .templates import (
    BOOTSTRAP_PROJECT_FILENAME,
    BOOTSTRAP_PROJECT_TEMPLATE,
    CONFIG_TEMPLATE,
    PLAN_TEMPLATE,
    README_TEMPLATE,
    REFLECT_TEMPLATE,
    current_date,
    current_datetime,
    render_project,
    render_template,
)


logger = logging.getLogger("prodsys.workspace")

DEFAULT_ZOOM_LEVEL = 1
STATUS_PATTERN = re.compile(r"\*\*Status:\*\*\s*(\w+)")
TARGET_LINE_PATTERN = re.compile(r"\*\*Target:\*\*[^\r\n]*")
RECENT_PROGRESS_PATTERN = re.compile(r"^## Recent Progress[ \t]*(?:\r?\n|$)", re.MULTILINE)


def sanitize_filename(name: str) -> str:
    """Lowercase, non-alphanumerics collapsed to single dashes."""
    slug = re.sub(r"[^a-z0-9]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def analyze_project_content(content: str) -> Dict[str, Any]:
    """Status and task counts for one project file.

    The ``**Status:**`` field is overridden by progress: all tasks done
    means ``Completed``, any task done means ``In Progress``.
    """
    entries = scan(content)
    total = len(entries)
    completed = sum(1 for entry in entries if entry.completed)
    pending = [entry.description for entry in entries if not entry.completed]

    match = STATUS_PATTERN.search(content)
    status = match.group(1) if match else "Active"
    if total > 0 and completed == total:
        status = "Completed"
    elif completed > 0:
        status = "In Progress"

    return {
        "status": status,
        "total_tasks": total,
        "completed_tasks": completed,
        "completion_rate": completion_rate(completed, total),
        "pending_tasks": pending,
    }


class Workspace:
    """Manage the markdown files of a productivity workspace."""

    def __init__(self, root: Path | str, storage: Optional[FileStorage] = None):
        self.root = Path(root).resolve()
        self.storage = storage or FileStorage()

        self.readme_path = self.root / "README.md"
        self.plan_path = self.root / "plan.md"
        self.reflect_path = self.root / "reflect.md"
        self.config_path = self.root / CONFIG_FILENAME
        self.projects_dir = self.root / "projects"
        self.areas_dir = self.root / "areas"
        self.system_dir = self.root / "system"
        self.backups_dir = self.root / ".ai-backups"

        self.aggregator = ProjectAggregator(self.storage)
        self.mutator = TaskMutator(self.storage)

    @property
    def is_initialized(self) -> bool:
        return self.config_path.exists()

    def require_initialized(self) -> None:
        if not self.is_initialized:
            raise WorkspaceNotInitialized(str(self.root))

    @property
    def config(self) -> Config:
        """Configuration as currently on disk."""
        return load_config(self.root)

    def relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    def _backup(self, path: Path) -> Optional[Path]:
        if not self.config.system.backup_enabled:
            return None
        return self.storage.create_backup(path)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @log_performance("initialize_workspace")
    def initialize(self) -> Dict[str, Any]:
        """Create the directory layout and starter files.

        Nothing is written when ``config.yml`` already exists.
        """
        if self.is_initialized:
            logger.info(f"Workspace already initialized at {self.root}")
            return {"already_initialized": True, "root": str(self.root), "created_files": []}

        try:
            with log_operation("initialize_workspace", root=str(self.root)):
                self.projects_dir.mkdir(parents=True, exist_ok=True)
                self.areas_dir.mkdir(parents=True, exist_ok=True)

                bootstrap_path = self.projects_dir / BOOTSTRAP_PROJECT_FILENAME
                files = [
                    (self.readme_path, render_template(README_TEMPLATE)),
                    (self.plan_path, render_template(PLAN_TEMPLATE)),
                    (self.reflect_path, render_template(REFLECT_TEMPLATE)),
                    (self.config_path, CONFIG_TEMPLATE),
                    (bootstrap_path, render_template(BOOTSTRAP_PROJECT_TEMPLATE)),
                ]
                for path, content in files:
                    self.storage.write(path, content)
        except OSError as e:
            log_error_with_context(e, {"operation": "initialize_workspace", "root": str(self.root)})
            raise

        created = [self.relative(path) for path, _ in files]
        log_workspace_initialized(str(self.root), len(created))
        return {"already_initialized": False, "root": str(self.root), "created_files": created}

    # ------------------------------------------------------------------
    # Aggregated views
    # ------------------------------------------------------------------

    def project_summaries(self) -> Dict[str, ProjectSummary]:
        """Summaries of every project under ``projects/``."""
        return self.aggregator.aggregate(self.projects_dir)

    @property
    def warnings(self) -> List[str]:
        """Files skipped by the most recent aggregation."""
        return list(self.aggregator.warnings)

    def hierarchy(self) -> Dict[int, List[TaskRecord]]:
        """All classified tasks grouped by zoom level, across projects."""
        levels: Dict[int, List[TaskRecord]] = {level: [] for level in LEVELS}
        for summary in self.project_summaries().values():
            for level in LEVELS:
                levels[level].extend(summary.tasks_by_level[level])
        return levels

    def focus_flow(self, per_project: int = 2, limit: int = 5) -> Dict[str, Any]:
        """Open level-0 tasks to work on next, with per-project context."""
        summaries = self.project_summaries()
        focus: List[TaskRecord] = []
        connections: Dict[str, Dict[str, Any]] = {}
        total = completed = 0

        for name, summary in summaries.items():
            level0 = summary.tasks_by_level[0]
            focus.extend([task for task in level0 if not task.completed][:per_project])
            connections[name] = {
                "total_level0": len(level0),
                "completed": sum(1 for task in level0 if task.completed),
                "file": summary.source_files[0] if summary.source_files else None,
            }
            total += summary.total_tasks
            completed += summary.completed_tasks

        return {
            "level0_tasks": [task.to_dict() for task in focus[:limit]],
            "project_connections": connections,
            "progress": {
                "projects": len(summaries),
                "total_tasks": total,
                "completed_tasks": completed,
                "completion_rate": completion_rate(completed, total),
            },
        }

    # ------------------------------------------------------------------
    # Task mutation
    # ------------------------------------------------------------------

    def project_file(self, source_file: str) -> Path:
        """Resolve a project-relative path, refusing paths outside ``projects/``."""
        if not source_file or not str(source_file).strip():
            raise ValueError("Source file cannot be empty")
        projects_root = self.projects_dir.resolve()
        candidate = (projects_root / source_file).resolve()
        if not candidate.is_relative_to(projects_root):
            raise ValueError(f"Source file must be inside projects/: {source_file}")
        return candidate

    def complete_task(self, source_file: str, description: str) -> MutationResult:
        path = self.project_file(source_file)
        self._backup(path)
        result = self.mutator.complete_task(path, description)
        return MutationResult(self._project_relative(path), result.line_index, result.line)

    def add_task(self, source_file: str, level: int, description: str, completed: bool = False) -> MutationResult:
        path = self.project_file(source_file)
        self._backup(path)
        result = self.mutator.insert_task(path, level, description, completed)
        return MutationResult(self._project_relative(path), result.line_index, result.line)

    def _project_relative(self, path: Path) -> str:
        return path.relative_to(self.projects_dir.resolve()).as_posix()

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------

    def project_files(self) -> List[Path]:
        return self.storage.list_markdown_files(self.projects_dir)

    def create_project(self, name: str, goal: Optional[str] = None, notes: Optional[str] = None) -> Path:
        """Write a new project file with every level section."""
        if not name or not name.strip():
            raise ValueError("Project name cannot be empty")
        slug = sanitize_filename(name)
        if not slug:
            raise ValueError(f"Project name has no usable characters: {name!r}")

        path = self.projects_dir / f"{slug}.md"
        if path.exists():
            raise FileExistsError(f"Project file already exists: {self.relative(path)}")

        try:
            with log_operation("create_project", project=name, path=str(path)):
                self.storage.write(path, render_project(name.strip(), goal, notes))
        except OSError as e:
            log_error_with_context(e, {"operation": "create_project", "project": name})
            raise

        observability_hooks.log_workflow_event("project_created", project=name, path=self.relative(path))
        return path

    def find_project_file(self, name: str) -> Optional[Path]:
        """Exact sanitized-stem match first, then substring match."""
        slug = sanitize_filename(name or "")
        if not slug:
            return None
        files = self.project_files()
        for path in files:
            if path.stem == slug:
                return path
        for path in files:
            if slug in path.stem:
                return path
        return None

    def project_overview(self, path: Path) -> Dict[str, Any]:
        analysis = analyze_project_content(self.storage.read(path))
        return {
            "project": path.stem,
            "file": self._project_relative(path.resolve()),
            "status": analysis["status"],
            "total_tasks": analysis["total_tasks"],
            "completed_tasks": analysis["completed_tasks"],
            "completion_rate": analysis["completion_rate"],
            "next_actions": analysis["pending_tasks"][:3],
        }

    def list_projects(self) -> List[Dict[str, Any]]:
        overviews = []
        for path in self.project_files():
            try:
                overviews.append(self.project_overview(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipped {self.relative(path)}: {e}")
        return overviews

    def project_status(self, name: str) -> Optional[Dict[str, Any]]:
        path = self.find_project_file(name)
        if path is None:
            return None
        return self.project_overview(path)

    def complete_project(self, name: str) -> Optional[Path]:
        """Mark a project completed and stamp the completion date."""
        path = self.find_project_file(name)
        if path is None:
            return None

        content = self.storage.read(path)
        updated = STATUS_PATTERN.sub("**Status:** Completed", content, count=1)
        updated = TARGET_LINE_PATTERN.sub(f"**Completed:** {current_date()}", updated, count=1)

        self._backup(path)
        with log_operation("complete_project", project=name, path=str(path)):
            self.storage.write(path, updated)
        observability_hooks.log_workflow_event("project_completed", project=name, path=self.relative(path))
        return path

    # ------------------------------------------------------------------
    # Progress and reflection
    # ------------------------------------------------------------------

    def record_progress(self, description: str) -> bool:
        """Add a timestamped entry under ``## Recent Progress`` in the README."""
        if not self.readme_path.exists():
            return False

        content = self.storage.read(self.readme_path)
        entry = f"- {current_datetime()}: {description.strip()}"
        match = RECENT_PROGRESS_PATTERN.search(content)
        if match:
            heading = match.group(0)
            if not heading.endswith("\n"):
                heading += "\n"
            updated = content[:match.start()] + heading + entry + "\n" + content[match.end():]
        else:
            separator = "" if content.endswith("\n") or not content else "\n"
            updated = f"{content}{separator}\n## Recent Progress\n{entry}\n"

        self._backup(self.readme_path)
        self.storage.write(self.readme_path, updated)
        return True

    def append_reflection(self, kind: str, response: AIResponse) -> Path:
        """Prepend a dated reflection entry to ``reflect.md``."""
        existing = ""
        if self.reflect_path.exists():
            self._backup(self.reflect_path)
            existing = self.storage.read(self.reflect_path)

        period = "week" if kind == "weekly" else "month"
        insights = "\n".join(f"{i}. {s}" for i, s in enumerate(response.suggestions, 1))
        entry = (
            f"\n## {current_datetime()} - {kind.capitalize()} Reflection\n\n"
            f"### Progress Analysis\n{response.analysis}\n\n"
            f"### Key Insights\n{insights}\n\n"
            f"### Patterns & Observations\n{response.reasoning}\n\n"
            f"### Next Period Focus\n"
            f"Based on this reflection, focus areas for the coming {period}:\n"
            "- Review and act on the insights above\n"
            "- Address any stalled areas identified\n"
            "- Continue building on successful patterns\n\n"
            "---\n\n"
        )
        self.storage.write(self.reflect_path, entry + existing)
        return self.reflect_path

    def current_zoom_level(self) -> int:
        """The level mentioned most often in ``plan.md``.

        Each line counts toward the first level it mentions. Level 0 never
        wins: it and an empty plan fall back to level 1.
        """
        if not self.plan_path.exists():
            return DEFAULT_ZOOM_LEVEL
        counts = [0] * len(LEVELS)
        for line in split_lines(self.storage.read(self.plan_path)):
            match = LEVEL_TOKEN_PATTERN.search(line)
            if match:
                counts[int(match.group(1))] += 1
        best = counts.index(max(counts))
        return best if best > 0 else DEFAULT_ZOOM_LEVEL

    # ------------------------------------------------------------------
    # LLM context
    # ------------------------------------------------------------------

    def gather_context(self, kind: str, *, action: Optional[str] = None, reflection_type: str = "weekly") -> str:
        """Build the delimited workspace dump sent along with a prompt."""
        readme = ("README", self.readme_path)
        plan = ("PLAN", self.plan_path)
        reflect = ("REFLECT", self.reflect_path)

        if kind in ("status", "coordinate"):
            header = "PRODUCTIVITY SYSTEM CONTEXT" if kind == "status" else "TASK RELATIONSHIP ANALYSIS CONTEXT"
            parts = [f"=== {header} ===\n"]
            parts += self._core_blocks([readme, plan, reflect])
            parts += self._file_blocks("PROJECT", self.project_files())
            parts += self._file_blocks("AREA", self.storage.list_markdown_files(self.areas_dir))
        elif kind == "save":
            parts = [f"=== USER ACTION ===\n{action or ''}\n", "=== CURRENT SYSTEM STATE ===\n"]
            parts += self._core_blocks([readme, plan])
            parts += self._file_blocks("PROJECT", self.project_files()[:3])
        elif kind == "zoom":
            parts = ["=== ZOOM CONTEXT ===\n"]
            parts += self._core_blocks([plan, readme])
            parts += self._file_blocks("PROJECT SUMMARY", self.project_files(), max_lines=10)
        elif kind == "reflect":
            parts = [f"=== {reflection_type.upper()} REFLECTION CONTEXT ===\n"]
            parts += self._core_blocks([("CURRENT STATUS", self.readme_path), ("REFLECTION HISTORY", self.reflect_path)])
            parts += self._file_blocks("PROJECT", self.project_files()[:3])
            parts += self._core_blocks([("CURRENT PLAN", self.plan_path)])
        else:
            raise ValueError(f"Unknown context kind: {kind}")

        return "\n".join(parts)

    def _core_blocks(self, files: Iterable[tuple[str, Path]]) -> List[str]:
        parts: List[str] = []
        for name, path in files:
            if path.exists():
                parts += [f"=== {name} ===", self.storage.read(path), ""]
        return parts

    def _file_blocks(self, label: str, paths: Iterable[Path], max_lines: Optional[int] = None) -> List[str]:
        parts: List[str] = []
        for path in paths:
            content = self.storage.read(path)
            if max_lines is not None:
                content = "\n".join(split_lines(content)[:max_lines])
            parts += [f"=== {label}: {self.relative(path)} ===", content, ""]
        return parts

    # ------------------------------------------------------------------
    # Proposed changes
    # ------------------------------------------------------------------

    def validate_changes(self, changes: List[FileChange]) -> Dict[str, Any]:
        errors: List[str] = []
        warnings: List[str] = []

        for change in changes:
            path = change.file_path or ""
            if not path or Path(path).is_absolute():
                errors.append(f"Invalid file path: {path}")
            if ".." in Path(path).parts:
                errors.append(f"Potentially unsafe file path: {path}")
            if change.change_type not in CHANGE_TYPES:
                errors.append(f"Invalid change type: {change.change_type}")
            if change.change_type == "delete" and path.endswith(".md"):
                warnings.append(f"Deleting markdown file: {path}")

        return {"valid": not errors, "errors": errors, "warnings": warnings}

    def apply_changes(self, changes: List[FileChange]) -> Dict[str, Any]:
        """Write validated create/update changes; deletes are only reported.

        Nothing is applied when any change fails validation.
        """
        validation = self.validate_changes(changes)
        result: Dict[str, Any] = {
            "applied": [],
            "skipped": [],
            "failed": [],
            "errors": validation["errors"],
            "warnings": validation["warnings"],
        }
        if not validation["valid"]:
            logger.warning(f"Rejected {len(changes)} proposed changes: {validation['errors']}")
            return result

        for change in changes:
            path = self.root / change.file_path
            try:
                if change.change_type == "create":
                    self.storage.write(path, change.content or "")
                    result["applied"].append({"file_path": change.file_path, "change_type": "create"})
                elif change.change_type == "update":
                    if not path.exists():
                        result["skipped"].append({"file_path": change.file_path, "reason": "file does not exist"})
                        continue
                    self._backup(path)
                    self.storage.write(path, change.content or "")
                    result["applied"].append({"file_path": change.file_path, "change_type": "update"})
                else:
                    result["skipped"].append(
                        {"file_path": change.file_path, "reason": "deletion requested but not executed"}
                    )
            except OSError as e:
                log_error_with_context(e, {"operation": "apply_change", "file_path": change.file_path})
                result["failed"].append({"file_path": change.file_path, "error": str(e)})

        return result

    @log_performance("create_checkpoint")
    def create_checkpoint(self, description: str) -> Path:
        """Snapshot the core and project files under ``.ai-backups/``."""
        checkpoint_id = f"checkpoint_{int(time.time() * 1000)}"
        checkpoint_dir = self.backups_dir / checkpoint_id

        sources = [self.readme_path, self.plan_path, self.reflect_path, self.config_path]
        sources += self.project_files()

        backed_up: List[str] = []
        for source in sources:
            if not source.exists():
                continue
            relative = self.relative(source)
            self.storage.write(checkpoint_dir / relative, self.storage.read(source))
            backed_up.append(relative)

        metadata = {
            "id": checkpoint_id,
            "timestamp": datetime.now().isoformat(),
            "description": description,
            "files_backed_up": backed_up,
        }
        self.storage.write(checkpoint_dir / "checkpoint.json", json.dumps(metadata, indent=2))
        observability_hooks.log_workflow_event("checkpoint_created", checkpoint=checkpoint_id, files=len(backed_up))
        return checkpoint_dir
