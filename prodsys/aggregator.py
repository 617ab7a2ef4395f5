"""Aggregate level-classified tasks across every project file in a tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .errors import InvalidEncoding
from .models import ProjectSummary
from .prodsys_logging import log_aggregation, log_performance
from .scanner import project_name, scan, task_records
from .storage import FileStorage


logger = logging.getLogger("prodsys.aggregator")


class ProjectAggregator:
    """Build per-project summaries from the markdown files under a directory.

    Aggregation is best effort: files that cannot be read are skipped and
    recorded in ``warnings``. Summaries are recomputed on every call.
    """

    def __init__(self, storage: Optional[FileStorage] = None):
        self.storage = storage or FileStorage()
        self.warnings: List[str] = []

    def summarize_file(self, text: str, source_file: str) -> ProjectSummary:
        """Summary for a single file's content."""
        entries = scan(text)
        summary = ProjectSummary(
            project_name=project_name(text, source_file),
            total_tasks=len(entries),
            completed_tasks=sum(1 for entry in entries if entry.completed),
            source_files=[source_file],
        )
        for task in task_records(text, source_file):
            summary.tasks_by_level[task.level].append(task)
        return summary

    @log_performance("aggregate_projects")
    def aggregate(self, directory: Path | str) -> Dict[str, ProjectSummary]:
        """Map project names to summaries, in file enumeration order."""
        root = Path(directory)
        self.warnings = []
        projects: Dict[str, ProjectSummary] = {}

        for path in self.storage.list_markdown_files(root):
            source_file = self._relative(path, root)
            try:
                text = self.storage.read(path)
                summary = self.summarize_file(text, source_file)
            except (OSError, UnicodeDecodeError, InvalidEncoding) as e:
                message = f"Skipped {source_file}: {e}"
                logger.warning(message)
                self.warnings.append(message)
                continue

            existing = projects.get(summary.project_name)
            if existing is None:
                projects[summary.project_name] = summary
            else:
                logger.debug(f"Merging duplicate project title '{summary.project_name}' from {source_file}")
                existing.merge(summary)

        log_aggregation(str(root), len(projects), len(self.warnings))
        return projects

    @staticmethod
    def _relative(path: Path, root: Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()


def aggregate(directory: Path | str, storage: Optional[FileStorage] = None) -> Dict[str, ProjectSummary]:
    """Convenience wrapper around :class:`ProjectAggregator`."""
    return ProjectAggregator(storage).aggregate(directory)
