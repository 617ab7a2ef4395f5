"""MCP server exposing the prodsys zoom-level productivity tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from prodsys.config import CONFIG_FILENAME, WORKSPACE_ENV
from prodsys.models import ZOOM_LEVELS
from prodsys.prodsys_logging import setup_logging
from prodsys.workflow import WorkflowManager

load_dotenv()

mcp = FastMCP("prodsys")


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    return bases


def _locate_workspace_root() -> Optional[Path]:
    for base in _candidate_bases():
        if (base / CONFIG_FILENAME).is_file() and (base / "projects").is_dir():
            return base
    return None


def _resolve_root(root: Optional[str], *, allow_new: bool = False) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists() and not allow_new:
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(WORKSPACE_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists() and not allow_new:
            raise ValueError(
                f"Environment variable {WORKSPACE_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_workspace_root()
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine workspace root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {WORKSPACE_ENV} environment variable."
    )


def _manager(root: Optional[str], *, allow_new: bool = False) -> WorkflowManager:
    return WorkflowManager(_resolve_root(root, allow_new=allow_new))


@mcp.tool()
def init_workspace(root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 1: Create a productivity workspace (README, plan, reflect, config.yml and projects/).
    Refuses to touch a directory that already has config.yml."""
    return _manager(root, allow_new=True).initialize()


@mcp.tool()
def system_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Analyze focus, progress and stalled areas across all zoom levels.
    Falls back to task statistics when the AI provider is unavailable."""
    return _manager(root).status()


@mcp.tool()
def save_progress(description: str, apply_changes: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Record completed work in README.md and ask the AI which files to update.
    Proposed changes are only written when apply_changes is true, after a checkpoint."""
    return _manager(root).save(description, apply_changes=apply_changes)


@mcp.tool()
def zoom(direction: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Change perspective: 'in', 'out', a level number 0-4 or 'level N'."""
    return _manager(root).zoom(direction)


@mcp.tool()
def reflect(kind: str = "weekly", root: Optional[str] = None) -> Dict[str, Any]:
    """Run a 'weekly' or 'monthly' reflection and prepend it to reflect.md."""
    return _manager(root).reflect(kind)


@mcp.tool()
def coordinate(root: Optional[str] = None) -> Dict[str, Any]:
    """Find dependencies, enablers and blockers between tasks across projects."""
    return _manager(root).coordinate()


@mcp.tool()
def list_projects(root: Optional[str] = None) -> Dict[str, Any]:
    """List project files with status and completion."""
    return _manager(root).list_projects()


@mcp.tool()
def project_status(name: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Status, progress and next three actions for one project."""
    return _manager(root).project_status(name)


@mcp.tool()
def create_project(name: str, goal: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Create projects/<name>.md with a section for every zoom level."""
    return _manager(root).create_project(name, goal=goal)


@mcp.tool()
def complete_project(name: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Mark a project as completed and stamp the completion date."""
    return _manager(root).complete_project(name)


@mcp.tool()
def task_hierarchy(root: Optional[str] = None) -> Dict[str, Any]:
    """All level-classified tasks of every project, grouped by zoom level 0-4."""
    return _manager(root).hierarchy()


@mcp.tool()
def focus_flow(root: Optional[str] = None) -> Dict[str, Any]:
    """Up to five open Level 0 actions (two per project) with per-project progress."""
    return _manager(root).focus_flow()


@mcp.tool()
def complete_task(source_file: str, description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Check off the open task with this exact description.
    source_file is relative to projects/. Returns refresh=true when the task is gone."""
    return _manager(root).complete_task(source_file, description)


@mcp.tool()
def add_task(
    source_file: str,
    level: int,
    description: str,
    completed: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Append a task to the Level N section of a project file (relative to projects/)."""
    return _manager(root).add_task(source_file, level, description, completed)


@mcp.tool()
def get_zoom_levels() -> Dict[str, Any]:
    """Describe the five zoom levels and their time horizons."""
    return {"levels": [level.to_dict() for level in ZOOM_LEVELS.values()]}


@mcp.resource("prodsys://projects")
def resource_projects() -> str:
    """Resource view listing the workspace's projects and their progress."""

    try:
        manager = _manager(None)
    except ValueError:
        return f"No workspace detected. Launch tools with a 'root' argument or set {WORKSPACE_ENV}."

    result = manager.list_projects()
    if "error" in result:
        return result["message"]
    if not result["projects"]:
        return "No projects yet. Create one with create_project."

    lines = ["Projects"]
    for project in result["projects"]:
        lines.append("")
        lines.append(f"- {project['project']}: {project['status']}")
        lines.append(
            f"  Progress: {project['completed_tasks']}/{project['total_tasks']} tasks ({project['completion_rate']}%)"
        )
        lines.append(f"  File: projects/{project['file']}")
    return "\n".join(lines)


if __name__ == "__main__":
    setup_logging(os.getenv("PRODSYS_LOG_LEVEL", "INFO").upper(), os.getenv("PRODSYS_LOG_FILE") or None)
    mcp.run(transport="stdio")
