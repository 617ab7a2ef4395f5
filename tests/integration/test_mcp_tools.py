"""
Integration tests for the MCP server tools.

These call the tool functions registered in main.py against a real
temporary workspace, using the offline ``local`` AI provider.
"""

import pytest

import main
from prodsys.config import PROVIDER_ENV, WORKSPACE_ENV


class TestMcpTools:
    """Integration tests for the complete tool workflow."""

    @pytest.fixture(autouse=True)
    def offline_provider(self, monkeypatch):
        monkeypatch.setenv(PROVIDER_ENV, "local")
        monkeypatch.delenv(WORKSPACE_ENV, raising=False)

    @pytest.fixture
    def root(self, tmp_path):
        root = str(tmp_path / "workspace")
        assert main.init_workspace(root=root)["success"] is True
        return root

    def test_init_creates_new_directory(self, tmp_path):
        """Test that init_workspace accepts a directory that does not exist yet."""
        result = main.init_workspace(root=str(tmp_path / "fresh"))
        assert result["success"] is True
        assert (tmp_path / "fresh" / "projects" / "build-productivity-system.md").exists()

    def test_other_tools_need_existing_root(self, tmp_path):
        """Test root validation."""
        with pytest.raises(ValueError):
            main.system_status(root=str(tmp_path / "missing"))

    def test_root_from_environment(self, root, monkeypatch):
        """Test PRODSYS_WORKSPACE."""
        monkeypatch.setenv(WORKSPACE_ENV, root)
        assert main.list_projects()["count"] == 1

    def test_root_detected_from_cwd(self, root, monkeypatch, tmp_path):
        """Test discovery of config.yml and projects/ in a parent directory."""
        nested = tmp_path / "workspace" / "projects"
        monkeypatch.chdir(nested)
        assert main.focus_flow()["level0_tasks"]

    def test_daily_workflow(self, root):
        """Test a full day: focus, add, complete, save, reflect."""
        status = main.system_status(root=root)
        assert status["ai_available"] is True

        created = main.create_project("Launch Site", goal="Publish the website", root=root)
        assert created["file"] == "projects/launch-site.md"

        added = main.add_task("launch-site.md", 0, "Buy domain", root=root)
        assert added["success"] is True

        flow = main.focus_flow(root=root)
        descriptions = [task["description"] for task in flow["level0_tasks"]]
        assert "Buy domain" not in descriptions
        assert flow["project_connections"]["Launch Site"]["total_level0"] == 4

        done = main.complete_task("launch-site.md", "Buy domain", root=root)
        assert done["success"] is True
        again = main.complete_task("launch-site.md", "Buy domain", root=root)
        assert again["refresh"] is True

        level0 = main.task_hierarchy(root=root)["levels"]["0"]["tasks"]
        assert {"description": "Buy domain", "completed": True}.items() <= next(
            t for t in level0 if t["description"] == "Buy domain"
        ).items()

        saved = main.save_progress("Bought the domain", root=root)
        assert saved["progress_recorded"] is True

        reflection = main.reflect("weekly", root=root)
        assert reflection["reflect_file"] == "reflect.md"

    def test_zoom_and_levels(self, root):
        """Test zoom and the level catalogue."""
        levels = main.get_zoom_levels()["levels"]
        assert [level["level"] for level in levels] == [0, 1, 2, 3, 4]
        result = main.zoom("out", root=root)
        assert result["target_level"] == 2
        assert result["zoom_level"]["name"] == "Projects"

    def test_project_tools(self, root):
        """Test project listing, status and completion."""
        assert main.project_status("build", root=root)["total_tasks"] == 20
        assert main.complete_project("build", root=root)["success"] is True
        assert "not found" in main.project_status("nothing", root=root)["error"]
        assert main.coordinate(root=root)["ai_available"] is True

    def test_projects_resource(self, root, monkeypatch):
        """Test the prodsys://projects resource text."""
        monkeypatch.setenv(WORKSPACE_ENV, root)
        text = main.resource_projects()
        assert text.startswith("Projects")
        assert "build-productivity-system: In Progress" in text
        assert "4/20 tasks (20%)" in text

    def test_projects_resource_without_workspace(self, tmp_path, monkeypatch):
        """Test the resource message when no workspace can be found."""
        monkeypatch.chdir(tmp_path)
        assert main.resource_projects().startswith("No workspace detected")
