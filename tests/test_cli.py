"""
Tests for the Night Orders CLI.
"""

import logging

import pytest
from click.testing import CliRunner

from nightorders.cli import cli, load_executor
from nightorders.steps.step_executor import dry_run_executor

MISSION_YAML = """
title: Add dark mode
objectives:
  - Theme toggle
steps:
  - id: 0
    description: Design color scheme
    role: coder
  - id: 1
    description: Create theme store
    role: coder
    depends_on: [0]
  - id: 2
    description: Summarise the work
    role: scribe
    depends_on: [1]
"""

CYCLIC_YAML = """
title: Going in circles
steps:
  - id: 0
    description: chicken
    depends_on: [1]
  - id: 1
    description: egg
    depends_on: [0]
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mission_file(tmp_path):
    path = tmp_path / "mission.yaml"
    path.write_text(MISSION_YAML)
    return str(path)


class TestPlan:
    """nightorders plan"""

    def test_shows_planned_order(self, runner, mission_file):
        result = runner.invoke(cli, ["plan", mission_file])

        assert result.exit_code == 0, result.output
        assert "Add dark mode" in result.output
        assert "Planned order: 0 -> 1 -> 2" in result.output

    def test_reports_unreachable_steps(self, runner, tmp_path):
        path = tmp_path / "cyclic.yaml"
        path.write_text(CYCLIC_YAML)

        result = runner.invoke(cli, ["plan", str(path)])

        assert result.exit_code == 0, result.output
        assert "nothing runnable" in result.output
        assert "Unreachable steps: 0, 1" in result.output

    def test_invalid_file(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("steps: [unclosed\n")

        result = runner.invoke(cli, ["plan", str(path)])

        assert result.exit_code == 1
        assert "invalid YAML" in result.output


class TestRun:
    """nightorders run"""

    def test_dry_run_completes(self, runner, mission_file):
        result = runner.invoke(cli, ["run", mission_file, "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Mission completed" in result.output
        assert "scribe" in result.output

    def test_executor_path(self, runner, mission_file):
        result = runner.invoke(cli, [
            "run", mission_file, "--executor", "nightorders.steps.step_executor:dry_run_executor",
        ])

        assert result.exit_code == 0, result.output

    def test_requires_exactly_one_executor_source(self, runner, mission_file):
        neither = runner.invoke(cli, ["run", mission_file])
        both = runner.invoke(cli, [
            "run", mission_file, "--dry-run", "--executor", "nightorders.steps:dry_run_executor",
        ])

        assert neither.exit_code == 2
        assert both.exit_code == 2

    def test_bad_executor_path(self, runner, mission_file):
        result = runner.invoke(cli, ["run", mission_file, "--executor", "no_such_module_xyz:run"])

        assert result.exit_code == 2
        assert "cannot import" in result.output

    def test_blocked_mission_exits_nonzero(self, runner, tmp_path):
        path = tmp_path / "cyclic.yaml"
        path.write_text(CYCLIC_YAML)

        result = runner.invoke(cli, ["run", str(path), "--dry-run"])

        assert result.exit_code == 1
        assert "Mission blocked" in result.output

    def test_autonomous(self, runner, mission_file):
        result = runner.invoke(cli, [
            "run", mission_file, "--dry-run", "--autonomous", "--interval", "5", "--timeout", "10",
        ])

        assert result.exit_code == 0, result.output
        assert "Mission completed" in result.output

    def test_config_file(self, runner, mission_file, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("orchestration:\n  max_retries: 0\n")

        result = runner.invoke(cli, ["run", mission_file, "--dry-run", "--config", str(config)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestHistory:
    """nightorders history"""

    def test_lists_missions_and_executions(self, runner, mission_file, tmp_path):
        logbook_dir = tmp_path / "logbook"
        run = runner.invoke(cli, ["run", mission_file, "--dry-run", "--logbook-dir", str(logbook_dir)])
        assert run.exit_code == 0, run.output

        listing = runner.invoke(cli, ["history", str(logbook_dir)])
        assert listing.exit_code == 0, listing.output
        assert "Add dark mode" in listing.output

        mission_id = next(p.name for p in logbook_dir.iterdir() if p.is_dir())
        detail = runner.invoke(cli, ["history", str(logbook_dir), mission_id[:6]])
        assert detail.exit_code == 0, detail.output
        assert f"Executions of {mission_id[:8]}" in detail.output

    def test_unknown_mission(self, runner, tmp_path):
        result = runner.invoke(cli, ["history", str(tmp_path), "deadbeef"])

        assert result.exit_code == 1
        assert "No mission matching" in result.output


class TestLoadExecutor:
    """--executor resolution."""

    def test_resolves_attribute(self):
        assert load_executor("nightorders.steps.step_executor:dry_run_executor") is dry_run_executor

    def test_rejects_malformed(self):
        import click

        with pytest.raises(click.BadParameter):
            load_executor("no-colon")
        with pytest.raises(click.BadParameter):
            load_executor("nightorders.steps.step_executor:missing")
        with pytest.raises(click.BadParameter):
            load_executor("nightorders:__version__")
