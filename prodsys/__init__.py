"""prodsys - markdown zoom-level productivity system."""

from .aggregator import ProjectAggregator, aggregate
from .errors import (
    AIServiceError,
    InvalidEncoding,
    InvalidTaskLine,
    ProdsysError,
    SectionNotFound,
    TaskNotFound,
    WorkspaceNotInitialized,
)
from .models import ZOOM_LEVELS, ProjectSummary, TaskRecord, ZoomLevel
from .mutator import MutationResult, TaskMutator, complete_task, insert_task
from .scanner import scan
from .storage import FileStorage
from .workflow import WorkflowManager
from .workspace import Workspace

__all__ = [
    "AIServiceError",
    "FileStorage",
    "InvalidEncoding",
    "InvalidTaskLine",
    "MutationResult",
    "ProdsysError",
    "ProjectAggregator",
    "ProjectSummary",
    "SectionNotFound",
    "TaskMutator",
    "TaskNotFound",
    "TaskRecord",
    "WorkflowManager",
    "Workspace",
    "WorkspaceNotInitialized",
    "ZOOM_LEVELS",
    "ZoomLevel",
    "aggregate",
    "complete_task",
    "insert_task",
    "scan",
]
