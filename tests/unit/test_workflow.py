"""Unit tests for prodsys workflow management.

This module tests the command layer: AI-assisted commands with their
offline fallbacks, project commands and task mutation results.
"""

import pytest

from prodsys.ai import AIService, MockAIService
from prodsys.errors import AIServiceError
from prodsys.models import AIResponse, FileChange
from prodsys.workflow import WorkflowManager


class FailingAIService(AIService):
    provider = "failing"

    def analyze(self, prompt, context):
        raise AIServiceError("service down")


class ProposingAIService(AIService):
    provider = "proposing"

    def __init__(self, changes):
        self.changes = changes
        self.calls = []

    def analyze(self, prompt, context):
        self.calls.append((prompt, context))
        return AIResponse("Updated", ["Next"], list(self.changes), "why")


@pytest.fixture
def manager(tmp_path):
    manager = WorkflowManager(tmp_path, ai_service=MockAIService())
    manager.initialize()
    return manager


@pytest.fixture
def offline(tmp_path):
    manager = WorkflowManager(tmp_path, ai_service=FailingAIService())
    manager.initialize()
    return manager


class TestInitialization:
    """Test cases for workspace initialization commands."""

    def test_initialize(self, tmp_path):
        """Test a fresh workspace."""
        result = WorkflowManager(tmp_path).initialize()
        assert result["success"] is True
        assert "config.yml" in result["created_files"]
        assert result["next_suggested_step"] == "system_status"

    def test_initialize_twice(self, manager):
        """Test that a second initialization is refused."""
        result = manager.initialize()
        assert result["success"] is False
        assert result["already_initialized"] is True

    @pytest.mark.parametrize(
        "command,args",
        [
            ("status", ()),
            ("save", ("x",)),
            ("zoom", ("in",)),
            ("reflect", ()),
            ("coordinate", ()),
            ("list_projects", ()),
            ("hierarchy", ()),
            ("focus_flow", ()),
            ("complete_task", ("a.md", "x")),
            ("add_task", ("a.md", 0, "x")),
        ],
    )
    def test_commands_require_workspace(self, tmp_path, command, args):
        """Test the uninitialized guard."""
        result = getattr(WorkflowManager(tmp_path, ai_service=MockAIService()), command)(*args)
        assert result["error"] == "Workspace not initialized"
        assert result["next_suggested_step"] == "init_workspace"


class TestStatus:
    """Test cases for the status command."""

    def test_status_with_ai(self, manager):
        """Test the AI analysis path."""
        result = manager.status()
        assert result["ai_available"] is True
        assert result["analysis"]["analysis"].startswith("Mock analysis")
        assert result["basic_status"]["active_projects"] == 1
        assert result["basic_status"]["completion_rate"] == 20

    def test_status_fallback(self, offline):
        """Test basic statistics without AI."""
        result = offline.status()
        assert result["ai_available"] is False
        assert result["ai_error"] == "service down"
        assert result["basic_status"]["total_tasks"] == 20

    def test_unknown_provider_falls_back(self, tmp_path):
        """Test that an unsupported provider is treated as unavailable."""
        manager = WorkflowManager(tmp_path)
        manager.initialize()
        manager.workspace.config_path.write_text("ai:\n  provider: carrier-pigeon\n")
        result = manager.status()
        assert result["ai_available"] is False
        assert "carrier-pigeon" in result["ai_error"]


class TestSave:
    """Test cases for the save command."""

    def test_save_records_progress(self, manager):
        """Test the README entry."""
        result = manager.save("Finished weekly review")
        assert result["progress_recorded"] is True
        assert result["ai_available"] is True
        assert "Finished weekly review" in manager.workspace.readme_path.read_text()

    def test_save_offline(self, offline):
        """Test that progress is recorded without AI."""
        result = offline.save("Offline win")
        assert result["ai_available"] is False
        assert result["progress_recorded"] is True

    def test_empty_description(self, manager):
        """Test input validation."""
        assert "error" in manager.save("  ")

    def test_changes_not_applied_by_default(self, tmp_path):
        """Test that proposed changes are only reported."""
        service = ProposingAIService([FileChange("areas/new.md", "create", "hello")])
        manager = WorkflowManager(tmp_path, ai_service=service)
        manager.initialize()

        result = manager.save("Planned")

        assert result["analysis"]["proposed_changes"][0]["file_path"] == "areas/new.md"
        assert not (tmp_path / "areas" / "new.md").exists()
        assert "User Action: Planned" in service.calls[0][0]

    def test_apply_changes_with_checkpoint(self, tmp_path):
        """Test applying changes after a checkpoint."""
        service = ProposingAIService([FileChange("areas/new.md", "create", "hello")])
        manager = WorkflowManager(tmp_path, ai_service=service)
        manager.initialize()

        result = manager.save("Planned", apply_changes=True)

        assert (tmp_path / "areas" / "new.md").read_text() == "hello"
        assert result["checkpoint"].startswith(".ai-backups/checkpoint_")
        assert result["changes"]["applied"] == [{"file_path": "areas/new.md", "change_type": "create"}]


class TestZoom:
    """Test cases for the zoom command."""

    def test_zoom_in(self, manager):
        """Test zooming from the default level."""
        result = manager.zoom("in")
        assert result["current_level"] == 1
        assert result["target_level"] == 0
        assert result["zoom_level"]["name"] == "Immediate"
        assert len(result["tasks"]) == 4
        assert result["ai_available"] is True

    @pytest.mark.parametrize("direction,target", [("out", 2), ("3", 3), ("Level 4", 4), (" level 0 ", 0)])
    def test_zoom_targets(self, manager, direction, target):
        """Test the accepted direction forms."""
        assert manager.zoom(direction)["target_level"] == target

    @pytest.mark.parametrize("direction", ["sideways", "7", "", "level"])
    def test_invalid_direction(self, manager, direction):
        """Test rejected directions."""
        result = manager.zoom(direction)
        assert "error" in result
        assert result["next_suggested_step"] == "get_zoom_levels"

    def test_zoom_out_of_range(self, manager):
        """Test zooming out past level 4."""
        manager.workspace.plan_path.write_text("### Level 4\n### Level 4\n")
        assert "Cannot zoom out" in manager.zoom("out")["error"]

    def test_zoom_offline_focus(self, offline):
        """Test the static focus list without AI."""
        result = offline.zoom("2")
        assert result["ai_available"] is False
        assert result["focus"] == ["Active projects", "Multi-day initiatives", "Deliverable outcomes"]


class TestReflect:
    """Test cases for the reflect command."""

    def test_reflect(self, manager):
        """Test an AI reflection."""
        result = manager.reflect("monthly")
        assert result["ai_available"] is True
        assert result["reflect_file"] == "reflect.md"
        assert "Monthly Reflection" in manager.workspace.reflect_path.read_text()

    def test_reflect_offline(self, offline):
        """Test the basic reflection."""
        result = offline.reflect()
        assert result["ai_available"] is False
        assert result["reflection"]["analysis"].startswith("Basic weekly reflection completed. 1 active projects")
        assert "4/20 tasks completed" in result["reflection"]["analysis"]

    def test_invalid_kind(self, manager):
        """Test reflection type validation."""
        assert "error" in manager.reflect("daily")


class TestCoordinate:
    """Test cases for the coordinate command."""

    def test_coordinate(self, manager):
        """Test the AI path."""
        assert manager.coordinate()["ai_available"] is True

    def test_coordinate_offline(self, offline):
        """Test the manual checklist."""
        result = offline.coordinate()
        assert result["ai_available"] is False
        assert len(result["manual_review"]) == 4


class TestProjects:
    """Test cases for project commands."""

    def test_create_project_with_goal(self, offline):
        """Test that an explicit goal skips the AI."""
        result = offline.create_project("Garden", goal="Grow food")
        assert result["success"] is True
        assert result["file"] == "projects/garden.md"
        assert "Grow food" in (offline.workspace.root / result["file"]).read_text()

    def test_create_project_ai_goal(self, manager):
        """Test the AI-drafted goal."""
        result = manager.create_project("Garden")
        content = (manager.workspace.root / result["file"]).read_text()
        assert "Mock analysis" in content
        assert len(result["suggestions"]) == 3

    def test_create_project_offline_defaults(self, offline):
        """Test the default goal when the AI is unavailable."""
        result = offline.create_project("Garden")
        content = (offline.workspace.root / result["file"]).read_text()
        assert "Define the main goal and purpose of this project." in content

    def test_create_duplicate(self, manager):
        """Test a name clash."""
        manager.create_project("Garden", goal="x")
        result = manager.create_project("garden", goal="y")
        assert "already exists" in result["error"]

    def test_create_invalid_name(self, offline):
        """Test an unusable name."""
        assert "error" in offline.create_project("   ")

    def test_list_and_status(self, manager):
        """Test project listing and lookup."""
        listing = manager.list_projects()
        assert listing["count"] == 1
        status = manager.project_status("productivity")
        assert status["project"] == "build-productivity-system"
        assert status["next_suggested_step"] == "complete_task"
        assert "not found" in manager.project_status("kitchen")["error"]

    def test_complete_project(self, offline):
        """Test completion without AI."""
        result = offline.complete_project("build-productivity-system")
        assert result["success"] is True
        assert result["suggestions"] == []
        content = (offline.workspace.root / result["file"]).read_text()
        assert "**Status:** Completed" in content

    def test_complete_missing_project(self, manager):
        """Test an unknown project."""
        assert "not found" in manager.complete_project("kitchen")["error"]


class TestTaskCommands:
    """Test cases for hierarchy, focus flow and task mutation."""

    def test_hierarchy(self, manager):
        """Test the level map."""
        result = manager.hierarchy()
        assert set(result["levels"]) == {"0", "1", "2", "3", "4"}
        assert result["levels"]["2"]["open"] == 4
        assert len(result["levels"]["2"]["tasks"]) == 5
        assert result["levels"]["4"]["zoom_level"]["time_horizon"] == "years"

    def test_focus_flow(self, manager):
        """Test the next actions."""
        result = manager.focus_flow()
        assert [t["description"] for t in result["level0_tasks"]] == ["Run system init", "Complete first status check"]
        assert result["next_suggested_step"] == "complete_task"

    def test_complete_task(self, manager):
        """Test checking off a task."""
        result = manager.complete_task("build-productivity-system.md", "Run system init")
        assert result["success"] is True
        assert result["task"]["line"] == "- [x] Run system init"

    def test_complete_task_twice(self, manager):
        """Test the refresh hint for a stale task."""
        manager.complete_task("build-productivity-system.md", "Run system init")
        result = manager.complete_task("build-productivity-system.md", "Run system init")
        assert result["success"] is False
        assert result["error"] == "Task not found in file"
        assert result["refresh"] is True

    def test_complete_task_missing_file(self, manager):
        """Test an unknown project file."""
        result = manager.complete_task("ghost.md", "x")
        assert result["success"] is False
        assert "not found" in result["error"]

    def test_complete_task_outside_projects(self, manager):
        """Test path confinement at the command layer."""
        result = manager.complete_task("../README.md", "x")
        assert "inside projects/" in result["error"]

    def test_add_task(self, manager):
        """Test adding a task to a level section."""
        result = manager.add_task("build-productivity-system.md", 1, "Plan sprint")
        assert result["success"] is True
        assert result["next_suggested_step"] == "task_hierarchy"
        tasks = manager.hierarchy()["levels"]["1"]["tasks"]
        assert tasks[-1]["description"] == "Plan sprint"

    def test_add_task_missing_section(self, manager):
        """Test a level without a section."""
        (manager.workspace.projects_dir / "thin.md").write_text("## Level 0\n- [ ] a\n")
        result = manager.add_task("thin.md", 3, "Quarter goal")
        assert result["success"] is False
        assert "Level 3" in result["suggestion"]

    def test_add_task_invalid_level(self, manager):
        """Test level validation."""
        result = manager.add_task("build-productivity-system.md", 9, "x")
        assert "error" in result
