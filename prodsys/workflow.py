"""Workflow commands for the prodsys productivity system.

Each command returns a JSON-ready dictionary that always carries a
``message`` and guidance for the caller (``next_suggested_step`` and
``workflow_tip``). Failures are logged and reported as ``error`` /
``suggestion`` entries instead of being raised to the MCP client.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .ai import AIService, create_ai_service
from .errors import AIServiceError, SectionNotFound, TaskNotFound, WorkspaceNotInitialized
from .models import LEVELS, ZOOM_LEVELS, AIResponse, completion_rate, is_valid_level
from .prodsys_logging import (
    log_ai_analysis,
    log_error_with_context,
    log_performance,
    observability_hooks,
)
from .prompts import (
    PROJECT_PROMPT,
    REFLECT_PROMPT,
    SAVE_PROMPT,
    STATUS_PROMPT,
    TASK_RELATIONSHIPS_PROMPT,
    ZOOM_PROMPT,
    fill_prompt,
)
from .templates import current_date
from .workspace import Workspace


logger = logging.getLogger("prodsys.workflow")

REFLECTION_TYPES = ("weekly", "monthly")


class WorkflowManager:
    """Run the productivity commands against one workspace."""

    def __init__(self, root: Path | str, ai_service: Optional[AIService] = None):
        self.workspace = Workspace(root)
        self._ai_service = ai_service

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _not_initialized(self) -> Optional[Dict[str, Any]]:
        try:
            self.workspace.require_initialized()
        except WorkspaceNotInitialized as e:
            logger.info(str(e))
            return {
                "error": "Workspace not initialized",
                "suggestion": str(e),
                "next_suggested_step": "init_workspace",
                "workflow_tip": "A workspace needs config.yml and a projects/ directory",
                "message": "Error: Workspace not initialized",
            }
        return None

    def _ai(self) -> AIService:
        if self._ai_service is None:
            self._ai_service = create_ai_service(self.workspace.config)
        return self._ai_service

    def _analyze(self, kind: str, prompt: str, context: str) -> AIResponse:
        """Run one LLM analysis; raises AIServiceError when it is unavailable."""
        try:
            service = self._ai()
        except ValueError as e:
            raise AIServiceError(str(e)) from e
        response = service.analyze(prompt, context)
        log_ai_analysis(kind, service.provider, suggestions=len(response.suggestions))
        return response

    def _ai_unavailable(self, kind: str, error: Exception) -> None:
        logger.warning(f"AI unavailable for {kind}, using basic fallback: {error}")
        log_ai_analysis(kind, self.workspace.config.ai.provider, fallback=True, error=str(error))

    def _failure(self, operation: str, error: Exception, suggestion: str, next_step: str, **context) -> Dict[str, Any]:
        logger.error(f"Failed to {operation.replace('_', ' ')}: {error}")
        log_error_with_context(error, {"operation": operation, **context})
        return {
            "error": f"Failed to {operation.replace('_', ' ')}: {error}",
            "suggestion": suggestion,
            "next_suggested_step": next_step,
            "workflow_tip": "Check the workspace files and try again",
            "message": f"Error: {error}",
        }

    def _basic_status(self) -> Dict[str, Any]:
        summaries = self.workspace.project_summaries()
        total = sum(summary.total_tasks for summary in summaries.values())
        completed = sum(summary.completed_tasks for summary in summaries.values())
        return {
            "active_projects": len(summaries),
            "total_tasks": total,
            "completed_tasks": completed,
            "completion_rate": completion_rate(completed, total),
            "projects": [summary.to_dict() for summary in summaries.values()],
            "warnings": self.workspace.warnings,
        }

    # ------------------------------------------------------------------
    # Workspace setup
    # ------------------------------------------------------------------

    def initialize(self) -> Dict[str, Any]:
        """Create a new workspace."""
        try:
            result = self.workspace.initialize()
        except OSError as e:
            return self._failure(
                "initialize_workspace", e,
                "Check that the workspace directory is writable",
                "init_workspace", root=str(self.workspace.root),
            )

        if result["already_initialized"]:
            return {
                "success": False,
                "already_initialized": True,
                "root": result["root"],
                "next_suggested_step": "system_status",
                "workflow_tip": "Use system_status to check the current state",
                "message": "Workspace already initialized. Use system_status to check current state.",
            }

        return {
            "success": True,
            "root": result["root"],
            "created_files": result["created_files"],
            "next_suggested_step": "system_status",
            "workflow_tip": "Review config.yml and set your API key, then start with the bootstrap project",
            "message": f"Productivity system initialized at {result['root']}",
        }

    # ------------------------------------------------------------------
    # AI-assisted commands
    # ------------------------------------------------------------------

    @log_performance("status_command")
    def status(self) -> Dict[str, Any]:
        """Analyze the whole workspace; falls back to statistics without AI."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready

        try:
            context = self.workspace.gather_context("status")
            try:
                response = self._analyze("status", STATUS_PROMPT, context)
            except AIServiceError as e:
                self._ai_unavailable("status", e)
                return {
                    "ai_available": False,
                    "ai_error": str(e),
                    "basic_status": self._basic_status(),
                    "next_suggested_step": "focus_flow",
                    "workflow_tip": "Configure the AI provider in config.yml for deeper analysis",
                    "message": "AI service unavailable, showing basic statistics",
                }
        except OSError as e:
            return self._failure("get_status", e, "Check that the workspace files are readable", "system_status")

        return {
            "ai_available": True,
            "analysis": response.to_dict(),
            "basic_status": self._basic_status(),
            "next_suggested_step": "focus_flow",
            "workflow_tip": "Pick one of the suggested next steps and use save_progress when done",
            "message": "System status analysis complete",
        }

    @log_performance("save_command")
    def save(self, description: str, apply_changes: bool = False) -> Dict[str, Any]:
        """Record progress and ask the AI which files should change."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        if not description or not description.strip():
            return {
                "error": "Progress description cannot be empty",
                "suggestion": "Describe what you completed, e.g. 'finished the weekly review'",
                "next_suggested_step": "save_progress",
                "message": "Error: Progress description cannot be empty",
            }

        try:
            context = self.workspace.gather_context("save", action=description)
            prompt = fill_prompt(SAVE_PROMPT, userAction=description)
            result: Dict[str, Any] = {"description": description}
            try:
                response = self._analyze("save", prompt, context)
                result["ai_available"] = True
                result["analysis"] = response.to_dict()
                if apply_changes and response.proposed_changes:
                    checkpoint = self.workspace.create_checkpoint(f"Before save: {description}")
                    result["checkpoint"] = self.workspace.relative(checkpoint)
                    result["changes"] = self.workspace.apply_changes(response.proposed_changes)
            except AIServiceError as e:
                self._ai_unavailable("save", e)
                result["ai_available"] = False
                result["ai_error"] = str(e)

            result["progress_recorded"] = self.workspace.record_progress(description)
        except OSError as e:
            return self._failure(
                "save_progress", e, "Check that README.md and the project files are writable",
                "save_progress", description=description,
            )

        observability_hooks.log_workflow_event("progress_saved", description=description)
        result.update({
            "next_suggested_step": "focus_flow",
            "workflow_tip": "Review proposed changes and pass apply_changes=True to write them",
            "message": "Progress saved",
        })
        return result

    def _zoom_target(self, direction: str) -> tuple[int, int]:
        current = self.workspace.current_zoom_level()
        request = (direction or "").strip().lower()
        if request in ("in", "out"):
            target = current - 1 if request == "in" else current + 1
            if not is_valid_level(target):
                raise ValueError(f"Cannot zoom {request} from level {current}")
            return current, target

        if request.startswith("level"):
            request = request[len("level"):].strip()
        if request.isdigit() and is_valid_level(int(request)):
            return current, int(request)
        raise ValueError(f"Invalid zoom direction '{direction}'. Use 'in', 'out', or a level 0-4")

    @log_performance("zoom_command")
    def zoom(self, direction: str) -> Dict[str, Any]:
        """Shift perspective to another zoom level."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready

        try:
            current, target = self._zoom_target(direction)
        except ValueError as e:
            return {
                "error": str(e),
                "suggestion": "Use 'in', 'out', a number 0-4 or 'level N'",
                "next_suggested_step": "get_zoom_levels",
                "message": f"Error: {e}",
            }

        zoom_level = ZOOM_LEVELS[target]
        try:
            tasks = self.workspace.hierarchy()[target]
            result: Dict[str, Any] = {
                "current_level": current,
                "target_level": target,
                "zoom_level": zoom_level.to_dict(),
                "tasks": [task.to_dict() for task in tasks],
            }
            try:
                context = self.workspace.gather_context("zoom")
                prompt = fill_prompt(ZOOM_PROMPT, zoomRequest=f"level {target}")
                result["analysis"] = self._analyze("zoom", prompt, context).to_dict()
                result["ai_available"] = True
            except AIServiceError as e:
                self._ai_unavailable("zoom", e)
                result["ai_available"] = False
                result["focus"] = list(zoom_level.focus)
        except OSError as e:
            return self._failure("zoom", e, "Check that plan.md and the project files are readable", "zoom")

        result.update({
            "next_suggested_step": "add_task" if not tasks else "focus_flow",
            "workflow_tip": f"Level {target} covers {zoom_level.time_horizon} work",
            "message": f"Zoomed to Level {target}: {zoom_level.name}",
        })
        return result

    @log_performance("reflect_command")
    def reflect(self, kind: str = "weekly") -> Dict[str, Any]:
        """Run a weekly or monthly reflection and prepend it to reflect.md."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        if kind not in REFLECTION_TYPES:
            return {
                "error": f"Invalid reflection type '{kind}'",
                "suggestion": "Use 'weekly' or 'monthly'",
                "next_suggested_step": "reflect",
                "message": f"Error: Invalid reflection type '{kind}'",
            }

        try:
            context = self.workspace.gather_context("reflect", reflection_type=kind)
            prompt = fill_prompt(
                REFLECT_PROMPT,
                reflectionType=kind,
                timePeriod="past week" if kind == "weekly" else "past month",
            )
            try:
                response = self._analyze("reflect", prompt, context)
                ai_available = True
            except AIServiceError as e:
                self._ai_unavailable("reflect", e)
                response = self._basic_reflection(kind)
                ai_available = False
            path = self.workspace.append_reflection(kind, response)
        except OSError as e:
            return self._failure("reflect", e, "Check that reflect.md is writable", "reflect", kind=kind)

        observability_hooks.log_workflow_event("reflection_recorded", kind=kind, ai_available=ai_available)
        return {
            "kind": kind,
            "ai_available": ai_available,
            "reflection": response.to_dict(),
            "reflect_file": self.workspace.relative(path),
            "next_suggested_step": "zoom",
            "workflow_tip": "Update plan.md with the insights from this reflection",
            "message": f"{kind.capitalize()} reflection saved to reflect.md",
        }

    def _basic_reflection(self, kind: str) -> AIResponse:
        stats = self._basic_status()
        return AIResponse(
            analysis=(
                f"Basic {kind} reflection completed. {stats['active_projects']} active projects, "
                f"{stats['completed_tasks']}/{stats['total_tasks']} tasks completed."
            ),
            suggestions=[
                "Review completed tasks and celebrate progress",
                "Identify any stalled projects that need attention",
                "Set clear priorities for the next period",
                "Consider what patterns are working well",
            ],
            reasoning=(
                "This was a basic reflection due to AI unavailability. "
                "Consider running again when AI is available for deeper insights."
            ),
        )

    @log_performance("coordinate_command")
    def coordinate(self) -> Dict[str, Any]:
        """Look for dependencies and blockers across projects."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready

        try:
            context = self.workspace.gather_context("coordinate")
            try:
                response = self._analyze("coordinate", TASK_RELATIONSHIPS_PROMPT, context)
            except AIServiceError as e:
                self._ai_unavailable("coordinate", e)
                return {
                    "ai_available": False,
                    "ai_error": str(e),
                    "manual_review": [
                        "Look for tasks that mention other projects or shared resources",
                        "Group similar tasks that could be batched together",
                        "Identify which completed tasks unlock new work",
                        "Check whether any Level 0 tasks are blocking higher-level work",
                    ],
                    "next_suggested_step": "task_hierarchy",
                    "workflow_tip": "Use task_hierarchy to review every level at once",
                    "message": "AI service unavailable, showing manual coordination checklist",
                }
        except OSError as e:
            return self._failure("coordinate", e, "Check that the project files are readable", "coordinate")

        return {
            "ai_available": True,
            "analysis": response.to_dict(),
            "next_suggested_step": "focus_flow",
            "workflow_tip": "Tackle enabling tasks first",
            "message": "Task coordination analysis complete",
        }

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> Dict[str, Any]:
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        try:
            projects = self.workspace.list_projects()
        except OSError as e:
            return self._failure("list_projects", e, "Check that projects/ is readable", "list_projects")
        return {
            "projects": projects,
            "count": len(projects),
            "next_suggested_step": "project_status" if projects else "create_project",
            "workflow_tip": "Create a project with create_project" if not projects else "Use project_status for details",
            "message": f"Found {len(projects)} projects",
        }

    def project_status(self, name: str) -> Dict[str, Any]:
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        try:
            status = self.workspace.project_status(name)
        except OSError as e:
            return self._failure("get_project_status", e, "Check that the project file is readable", "list_projects")
        if status is None:
            return {
                "error": f"Project '{name}' not found",
                "suggestion": "Use list_projects to see the available projects",
                "next_suggested_step": "list_projects",
                "message": f"Error: Project '{name}' not found",
            }
        status.update({
            "next_suggested_step": "complete_task" if status["next_actions"] else "complete_project",
            "workflow_tip": "Work through the next actions in order",
            "message": f"Project {status['project']}: {status['status']}",
        })
        return status

    def create_project(self, name: str, goal: Optional[str] = None) -> Dict[str, Any]:
        """Create a project file, letting the AI draft the goal when available."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready

        notes = None
        suggestions: List[str] = []
        if not goal and name and name.strip():
            prompt = fill_prompt(PROJECT_PROMPT, projectAction="create", projectName=name)
            context = f"Creating new project: {name}\nCurrent date: {current_date()}"
            try:
                response = self._analyze("create_project", prompt, context)
                goal, notes, suggestions = response.analysis, response.reasoning, response.suggestions
            except AIServiceError as e:
                self._ai_unavailable("create_project", e)

        try:
            path = self.workspace.create_project(name, goal=goal, notes=notes)
        except FileExistsError as e:
            return {
                "error": str(e),
                "suggestion": "Choose a different project name or use project_status",
                "next_suggested_step": "project_status",
                "message": f"Error: {e}",
            }
        except (ValueError, OSError) as e:
            return self._failure("create_project", e, "Provide a project name with letters or digits", "create_project")

        return {
            "success": True,
            "project": name,
            "file": self.workspace.relative(path),
            "suggestions": suggestions,
            "next_suggested_step": "add_task",
            "workflow_tip": "Edit the file to replace the placeholder tasks at each level",
            "message": f"Project created: {self.workspace.relative(path)}",
        }

    def complete_project(self, name: str) -> Dict[str, Any]:
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready

        path = self.workspace.find_project_file(name)
        if path is None:
            return {
                "error": f"Project '{name}' not found",
                "suggestion": "Use list_projects to see the available projects",
                "next_suggested_step": "list_projects",
                "message": f"Error: Project '{name}' not found",
            }

        suggestions: List[str] = []
        try:
            prompt = fill_prompt(PROJECT_PROMPT, projectAction="complete", projectName=name)
            try:
                suggestions = self._analyze("complete_project", prompt, self.workspace.storage.read(path)).suggestions
            except AIServiceError as e:
                self._ai_unavailable("complete_project", e)
            self.workspace.complete_project(name)
        except OSError as e:
            return self._failure("complete_project", e, "Check that the project file is writable", "project_status")

        return {
            "success": True,
            "project": name,
            "file": self.workspace.relative(path),
            "suggestions": suggestions,
            "next_suggested_step": "reflect",
            "workflow_tip": "Capture lessons learned with a reflection",
            "message": f"Project '{name}' marked as completed",
        }

    # ------------------------------------------------------------------
    # Task views and mutation
    # ------------------------------------------------------------------

    def hierarchy(self) -> Dict[str, Any]:
        """Classified tasks of every project, grouped by zoom level."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        levels = self.workspace.hierarchy()
        return {
            "levels": {
                str(level): {
                    "zoom_level": ZOOM_LEVELS[level].to_dict(),
                    "tasks": [task.to_dict() for task in levels[level]],
                    "open": sum(1 for task in levels[level] if not task.completed),
                }
                for level in LEVELS
            },
            "warnings": self.workspace.warnings,
            "next_suggested_step": "focus_flow",
            "workflow_tip": "Each level should connect to the one above it",
            "message": f"{sum(len(tasks) for tasks in levels.values())} classified tasks",
        }

    def focus_flow(self) -> Dict[str, Any]:
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        flow = self.workspace.focus_flow()
        flow.update({
            "next_suggested_step": "complete_task" if flow["level0_tasks"] else "add_task",
            "workflow_tip": "Finish one 15 minute action, then call complete_task",
            "message": f"{len(flow['level0_tasks'])} immediate actions ready",
        })
        return flow

    def complete_task(self, source_file: str, description: str) -> Dict[str, Any]:
        """Check off an open task identified by file and exact description."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        try:
            result = self.workspace.complete_task(source_file, description)
        except TaskNotFound:
            return {
                "success": False,
                "error": "Task not found in file",
                "refresh": True,
                "suggestion": "The file changed since it was read; reload the task list",
                "next_suggested_step": "focus_flow",
                "message": f"Error: Task '{description}' not found in {source_file}",
            }
        except FileNotFoundError:
            return {
                "success": False,
                "error": f"Project file not found: {source_file}",
                "suggestion": "Use list_projects to see the available project files",
                "next_suggested_step": "list_projects",
                "message": f"Error: Project file not found: {source_file}",
            }
        except (ValueError, OSError) as e:
            return self._failure("complete_task", e, "Pass a file path relative to projects/", "focus_flow",
                                 source_file=source_file)

        return {
            "success": True,
            "task": result.to_dict(),
            "next_suggested_step": "focus_flow",
            "workflow_tip": "Record bigger wins with save_progress",
            "message": f"Completed task '{description}'",
        }

    def add_task(self, source_file: str, level: int, description: str, completed: bool = False) -> Dict[str, Any]:
        """Append a task to a level section of a project file."""
        not_ready = self._not_initialized()
        if not_ready:
            return not_ready
        try:
            result = self.workspace.add_task(source_file, level, description, completed)
        except SectionNotFound as e:
            return {
                "success": False,
                "error": str(e),
                "suggestion": f"Add a '## Level {level} ...' heading to {source_file} first",
                "next_suggested_step": "project_status",
                "message": f"Error: {e}",
            }
        except FileNotFoundError:
            return {
                "success": False,
                "error": f"Project file not found: {source_file}",
                "suggestion": "Use list_projects to see the available project files",
                "next_suggested_step": "list_projects",
                "message": f"Error: Project file not found: {source_file}",
            }
        except (ValueError, OSError) as e:
            return self._failure("add_task", e, "Use a level between 0 and 4 and a one-line description",
                                 "add_task", source_file=source_file, level=level)

        return {
            "success": True,
            "task": result.to_dict(),
            "level": level,
            "next_suggested_step": "focus_flow" if level == 0 else "task_hierarchy",
            "workflow_tip": "Break larger tasks into Level 0 actions",
            "message": f"Added task to Level {level} of {source_file}",
        }
