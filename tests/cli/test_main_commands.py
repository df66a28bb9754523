"""Tests for the mycontext CLI commands (click CliRunner, mocked backends)."""

import json
import logging
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from mycontext.cli.main import cli_entrypoint, main
from mycontext.config import MyContextConfig, SentinelConfig
from mycontext.core.context import PipelineContext
from mycontext.core.errors import WorkflowError

FIRST_COMMAND = "mycontext init . --framework instantdb"


@pytest.fixture
def runner(make_runner):
    return make_runner()


@pytest.fixture
def pipeline(project_root: Path, runner, console) -> PipelineContext:
    config = MyContextConfig(sentinel=SentinelConfig(max_retries=1))
    return PipelineContext.for_testing(
        project_root, responses=["pnpm add zod"], runner=runner, config=config, console=console
    )


def invoke(pipeline: PipelineContext, *args: str, input: str | None = None):
    return CliRunner().invoke(
        main,
        list(args),
        obj={"pipeline": pipeline, "project_root": pipeline.project_root},
        input=input,
    )


def output_of(pipeline: PipelineContext) -> str:
    return pipeline.console.file.getvalue()


class TestWorkflowCommands:
    """mycontext workflow ..."""

    def test_list(self, pipeline) -> None:
        result = invoke(pipeline, "workflow", "list")
        assert result.exit_code == 0
        assert "complete-setup" in output_of(pipeline)
        assert "feature-enhancement" in output_of(pipeline)

    def test_start_auto_runs_until_manual_step(self, pipeline, runner) -> None:
        result = invoke(pipeline, "workflow", "start", "complete-setup", "--auto")

        assert result.exit_code == 0, result.output
        assert runner.commands[0] == FIRST_COMMAND
        assert len(runner.commands) == 7
        assert "Run: mycontext validate" in output_of(pipeline)

    def test_start_manual_runs_nothing(self, pipeline, runner) -> None:
        result = invoke(pipeline, "workflow", "start", "complete-setup", "--manual")
        assert result.exit_code == 0
        assert runner.calls == []
        assert f"Run: {FIRST_COMMAND}" in output_of(pipeline)

    def test_failed_step_exits_non_zero(self, project_root, make_runner, console) -> None:
        runner = make_runner({FIRST_COMMAND: [1]})
        pipeline = PipelineContext.for_testing(
            project_root,
            responses=["SKIP"],
            runner=runner,
            config=MyContextConfig(sentinel=SentinelConfig(max_retries=0)),
            console=console,
        )

        result = invoke(pipeline, "workflow", "start", "complete-setup", "--auto")

        assert result.exit_code == 1
        assert "Step failed" in output_of(pipeline)

    def test_unknown_workflow(self, pipeline) -> None:
        result = invoke(pipeline, "workflow", "start", "nope")
        assert result.exit_code == 1
        assert isinstance(result.exception, WorkflowError)

    def test_status_json(self, pipeline) -> None:
        invoke(pipeline, "workflow", "start", "complete-setup", "--auto")

        result = invoke(pipeline, "workflow", "status", "--json")

        data = json.loads(result.output)
        assert data["workflowId"] == "complete-setup"
        assert len(data["completedSteps"]) == 7
        assert data["currentStepId"] == "validate"

    def test_status_text(self, pipeline) -> None:
        invoke(pipeline, "workflow", "start", "complete-setup", "--auto")
        invoke(pipeline, "workflow", "status")
        assert "7/8 steps done" in output_of(pipeline)

    def test_status_without_workflow(self, pipeline) -> None:
        assert json.loads(invoke(pipeline, "workflow", "status", "--json").output) is None
        invoke(pipeline, "workflow", "status")
        assert "No active workflow" in output_of(pipeline)

    def test_complete_then_continue(self, pipeline) -> None:
        invoke(pipeline, "workflow", "start", "complete-setup", "--auto")

        result = invoke(pipeline, "workflow", "complete")
        assert result.exit_code == 0
        assert "Next: mycontext workflow continue" in output_of(pipeline)

        result = invoke(pipeline, "workflow", "continue")
        assert result.exit_code == 0
        assert "Workflow completed: Complete Project Setup" in output_of(pipeline)

    def test_stop(self, pipeline, project_root) -> None:
        invoke(pipeline, "workflow", "start", "complete-setup", "--manual")
        result = invoke(pipeline, "workflow", "stop")
        assert result.exit_code == 0
        assert not (project_root / ".mycontext" / "workflow-state.json").exists()


class TestGuardCommand:
    """mycontext guard ..."""

    def test_passing_command(self, pipeline, runner) -> None:
        result = invoke(pipeline, "guard", "pnpm", "build")
        assert result.exit_code == 0
        assert runner.commands == ["pnpm build"]

    def test_retries_option_bounds_attempts(self, project_root, make_runner, console) -> None:
        runner = make_runner({"pnpm build": [1]})
        pipeline = PipelineContext.for_testing(project_root, responses=["pnpm add zod"], runner=runner,
                                               console=console)

        result = invoke(pipeline, "guard", "--retries", "1", "pnpm", "build")

        assert result.exit_code == 1
        assert runner.runs("pnpm build") == 2
        assert runner.runs("pnpm add zod") == 1

    def test_arguments_keep_their_quoting(self, pipeline, runner) -> None:
        assert invoke(pipeline, "guard", "echo", "a b").exit_code == 0
        assert runner.commands == ["echo 'a b'"]

    def test_single_argument_is_passed_through(self, pipeline, runner) -> None:
        assert invoke(pipeline, "guard", "pnpm test -- --run").exit_code == 0
        assert runner.commands == ["pnpm test -- --run"]


class TestBrainCommands:
    """mycontext brain ..."""

    def test_narrative_status_and_show(self, pipeline) -> None:
        assert invoke(pipeline, "brain", "narrative", "Building a shop").exit_code == 0
        assert invoke(pipeline, "brain", "status", "implementing").exit_code == 0

        result = invoke(pipeline, "brain", "show", "--json")
        data = json.loads(result.output)
        assert data["narrative"] == "Building a shop"
        assert data["status"] == "implementing"
        assert data["version"] == "1.0.2"

    def test_invalid_status(self, pipeline) -> None:
        assert invoke(pipeline, "brain", "status", "sleeping").exit_code == 2

    def test_show_renders_updates(self, pipeline) -> None:
        pipeline.brain.add_update("Planner", "planner", "thought", "Considering [options]")
        pipeline.brain.update_artifact("prd", "# PRD", ".mycontext/01-prd.md")

        invoke(pipeline, "brain", "show")

        output = output_of(pipeline)
        assert "Brain v1.0.2" in output
        assert "Considering [options]" in output
        assert ".mycontext/01-prd.md" in output

    def test_reset(self, pipeline) -> None:
        pipeline.brain.set_status("error")
        result = invoke(pipeline, "brain", "reset", "--yes")
        assert result.exit_code == 0
        assert pipeline.brain.get_brain().status == "idle"

    def test_reset_requires_confirmation(self, pipeline) -> None:
        pipeline.brain.set_status("error")
        result = invoke(pipeline, "brain", "reset", input="n\n")
        assert result.exit_code == 1
        assert pipeline.brain.get_brain().status == "error"


class TestGenerateCommand:
    """mycontext generate ..."""

    def test_generate_prints_text(self, project_root, console) -> None:
        pipeline = PipelineContext.for_testing(project_root, responses=["A tidy summary"], console=console)
        result = invoke(pipeline, "generate", "Summarize the PRD", "--stats")

        assert result.exit_code == 0
        assert result.output.strip() == "A tidy summary"
        assert "Router performance" in output_of(pipeline)
        assert "text-generation" in output_of(pipeline)


class TestConfigCommands:
    """mycontext config ..."""

    def test_init_writes_once(self, pipeline, project_root) -> None:
        assert invoke(pipeline, "config", "init").exit_code == 0
        assert (project_root / ".mycontext" / "config.yaml").exists()

        result = invoke(pipeline, "config", "init")
        assert result.exit_code == 1
        assert "already exists" in result.output

        assert invoke(pipeline, "config", "init", "--force").exit_code == 0


class TestEntrypoint:
    """cli_entrypoint error handling (real pipeline wiring, no backend calls)."""

    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_domain_errors_exit_one_with_hints(self, project_root, monkeypatch, capsys) -> None:
        monkeypatch.setattr(sys, "argv", ["mycontext", "-C", str(project_root), "workflow", "continue"])

        with pytest.raises(SystemExit) as exc_info:
            cli_entrypoint()

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "MC-1003" in err
        assert "mycontext workflow start" in err

    def test_usage_errors_exit_two(self, project_root, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["mycontext", "-C", str(project_root), "brain", "status", "bogus"])

        with pytest.raises(SystemExit) as exc_info:
            cli_entrypoint()
        assert exc_info.value.code == 2

    def test_success_returns_normally(self, project_root, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["mycontext", "-C", str(project_root), "workflow", "list"])
        cli_entrypoint()
