"""Tests for WorkflowScheduler."""

import json
from pathlib import Path

import pytest
from rich.console import Console

from mycontext.brain.client import BrainClient
from mycontext.config import SentinelConfig, WorkflowConfig
from mycontext.core.errors import ErrorCode, WorkflowError
from mycontext.execution.sentinel import DependencySentinel
from mycontext.models.adapters.mock import MockClient
from mycontext.workflow.engine import WorkflowScheduler
from mycontext.workflow.registry import WorkflowRegistry
from mycontext.workflow.state import WorkflowStateStore
from mycontext.workflow.types import WorkflowDefinition, WorkflowProgress, WorkflowStep


def _step(step_id: str, *deps: str, auto: bool = True) -> WorkflowStep:
    return WorkflowStep(
        id=step_id,
        name=f"Step {step_id.upper()}",
        description=f"Does {step_id}",
        command=f"run {step_id}",
        dependencies=deps,
        auto_continue=auto,
        estimated_minutes=2,
    )


CHAIN = WorkflowDefinition(
    id="chain",
    name="Chain",
    description="A then B then C",
    category="development",
    steps=(_step("a"), _step("b", "a"), _step("c", "b")),
)

GATED = WorkflowDefinition(
    id="gated",
    name="Gated",
    description="Needs a human for B",
    category="development",
    steps=(_step("a"), _step("b", "a", auto=False), _step("c", "b")),
)


@pytest.fixture
def registry() -> WorkflowRegistry:
    registry = WorkflowRegistry()
    registry.register(CHAIN)
    registry.register(GATED)
    return registry


@pytest.fixture
def runner(make_runner):
    return make_runner()


@pytest.fixture
def scheduler(registry, runner, console: Console, brain: BrainClient) -> WorkflowScheduler:
    return WorkflowScheduler(registry, brain=brain, runner=runner, console=console)


def _state(project_root: Path) -> dict | None:
    path = project_root / ".mycontext" / "workflow-state.json"
    return json.loads(path.read_text()) if path.exists() else None


class TestAutoContinue:
    """Unattended chains."""

    @pytest.mark.asyncio
    async def test_runs_chain_in_dependency_order(self, scheduler, runner, project_root, console) -> None:
        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run a", "run b", "run c"]
        assert result.progress.completed_steps == ["a", "b", "c"]
        assert _state(project_root) is None
        assert scheduler.get_status(project_root) is None

        output = console.file.getvalue()
        assert "Starting workflow: Chain" in output
        assert "Step 1/3: Step A" in output
        assert "Auto-executing: run a" in output
        assert "Workflow completed: Chain" in output
        assert "Steps completed: 3/3" in output

    @pytest.mark.asyncio
    async def test_config_default_applies_when_caller_does_not_choose(
        self, registry, runner, console, project_root
    ) -> None:
        scheduler = WorkflowScheduler(
            registry, runner=runner, console=console, config=WorkflowConfig(auto_continue=True)
        )
        assert (await scheduler.start_workflow("chain", project_root)).status == "completed"

    @pytest.mark.asyncio
    async def test_manual_step_halts_chain(self, scheduler, runner, project_root, console) -> None:
        result = await scheduler.start_workflow("gated", project_root, auto_continue=True)

        assert result.status == "awaiting"
        assert result.step.id == "b"
        assert runner.commands == ["run a"]
        assert _state(project_root)["currentStepId"] == "b"
        assert "Run: run b" in console.file.getvalue()

    @pytest.mark.asyncio
    async def test_failure_stops_and_persists(self, registry, make_runner, console, project_root, brain) -> None:
        runner = make_runner({"run b": [1]})
        scheduler = WorkflowScheduler(registry, brain=brain, runner=runner, console=console)

        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "failed"
        assert result.step.id == "b"
        assert result.error == "Command failed with exit code 1"
        assert runner.commands == ["run a", "run b"]
        state = _state(project_root)
        assert state["completedSteps"] == ["a"]
        assert state["currentStepId"] == "b"

        output = console.file.getvalue()
        assert "Step failed" in output
        assert "Manual execution: run b" in output
        assert brain.get_brain().updates[-1].type == "error"

    @pytest.mark.asyncio
    async def test_eta_shown_while_more_than_one_step_remains(self, scheduler, project_root, console) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=True)
        output = console.file.getvalue()
        assert output.count("remaining workflow ETA") == 2


class TestManualFlow:
    """Steps run by the user and reported back."""

    @pytest.mark.asyncio
    async def test_manual_start_waits_on_first_step(self, scheduler, runner, project_root) -> None:
        result = await scheduler.start_workflow("chain", project_root, auto_continue=False)

        assert result.status == "awaiting"
        assert result.step.id == "a"
        assert runner.calls == []
        state = _state(project_root)
        assert state["workflowId"] == "chain"
        assert state["completedSteps"] == []
        assert state["currentStepId"] == "a"

    @pytest.mark.asyncio
    async def test_complete_then_continue_across_processes(
        self, registry, runner, console, project_root
    ) -> None:
        first = WorkflowScheduler(registry, runner=runner, console=console)
        await first.start_workflow("chain", project_root, auto_continue=False)

        second = WorkflowScheduler(registry, runner=runner, console=console)
        progress = second.complete_step(project_root)
        assert progress.completed_steps == ["a"]
        assert "Resumed workflow from saved state" in console.file.getvalue()

        third = WorkflowScheduler(registry, runner=runner, console=console)
        result = await third.continue_workflow(project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run b", "run c"]

    @pytest.mark.asyncio
    async def test_complete_step_validation(self, scheduler, project_root) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=False)

        with pytest.raises(WorkflowError) as exc_info:
            scheduler.complete_step(project_root, "c")
        assert exc_info.value.code == ErrorCode.STEP_NOT_READY

        with pytest.raises(WorkflowError) as exc_info:
            scheduler.complete_step(project_root, "zzz")
        assert exc_info.value.code == ErrorCode.STEP_NOT_FOUND

    @pytest.mark.asyncio
    async def test_complete_step_reports_feedback(self, scheduler, project_root, brain) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=False)
        scheduler.complete_step(project_root)
        assert brain.get_brain().updates[-1].type == "feedback"


class TestResume:
    """Persisted progress across sessions."""

    @pytest.mark.asyncio
    async def test_resume_from_disk_skips_completed(self, registry, runner, console, project_root) -> None:
        store = WorkflowStateStore(project_root)
        store.save(WorkflowProgress(workflow_id="chain", completed_steps=["a"]), fresh=True)

        scheduler = WorkflowScheduler(registry, runner=runner, console=console)
        result = await scheduler.continue_workflow(project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run b", "run c"]

    @pytest.mark.asyncio
    async def test_failed_step_retried_on_continue(self, registry, make_runner, console, project_root) -> None:
        runner = make_runner({"run b": [1, 0]})
        scheduler = WorkflowScheduler(registry, runner=runner, console=console)

        assert (await scheduler.start_workflow("chain", project_root, auto_continue=True)).status == "failed"
        result = await scheduler.continue_workflow(project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run a", "run b", "run b", "run c"]

    @pytest.mark.asyncio
    async def test_continue_without_workflow(self, scheduler, project_root, console) -> None:
        with pytest.raises(WorkflowError) as exc_info:
            await scheduler.continue_workflow(project_root)
        assert exc_info.value.code == ErrorCode.NO_ACTIVE_WORKFLOW
        assert "No active workflow found" in console.file.getvalue()

    @pytest.mark.asyncio
    async def test_start_refuses_when_progress_exists(self, scheduler, project_root, console) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=False)

        with pytest.raises(WorkflowError) as exc_info:
            await scheduler.start_workflow("gated", project_root)
        assert exc_info.value.code == ErrorCode.WORKFLOW_ALREADY_ACTIVE
        assert "Found existing workflow progress" in console.file.getvalue()

    @pytest.mark.asyncio
    async def test_start_again_after_completion(self, scheduler, runner, project_root) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=True)
        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)
        assert result.status == "completed"
        assert len(runner.commands) == 6

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, scheduler, project_root) -> None:
        with pytest.raises(WorkflowError) as exc_info:
            await scheduler.start_workflow("nope", project_root)
        assert exc_info.value.code == ErrorCode.WORKFLOW_NOT_FOUND


class TestStop:
    """stop_workflow()"""

    @pytest.mark.asyncio
    async def test_stop_discards_progress(self, scheduler, project_root, console) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=False)

        assert scheduler.stop_workflow(project_root)
        assert _state(project_root) is None
        assert scheduler.get_status(project_root) is None
        assert "Stopped workflow: chain" in console.file.getvalue()

        assert not scheduler.stop_workflow(project_root)
        assert "No active workflow to stop" in console.file.getvalue()

    @pytest.mark.asyncio
    async def test_stop_from_another_process(self, registry, runner, console, project_root) -> None:
        await WorkflowScheduler(registry, runner=runner, console=console).start_workflow(
            "chain", project_root, auto_continue=False
        )
        assert WorkflowScheduler(registry, runner=runner, console=console).stop_workflow(project_root)


class TestIntegration:
    """Sentinel routing, project flags and brain reporting."""

    @pytest.mark.asyncio
    async def test_steps_go_through_sentinel(self, registry, make_runner, console, project_root) -> None:
        runner = make_runner({"run b": [1, 0]})
        sentinel = DependencySentinel(
            MockClient(responses=["pnpm add zod"]),
            runner=runner,
            config=SentinelConfig(max_retries=1),
            console=console,
        )
        scheduler = WorkflowScheduler(registry, sentinel=sentinel, runner=runner, console=console)

        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run a", "run b", "pnpm add zod", "run b", "run c"]

    @pytest.mark.asyncio
    async def test_exhausted_sentinel_fails_step(self, registry, make_runner, console, project_root) -> None:
        runner = make_runner({"run a": [1]})
        sentinel = DependencySentinel(
            MockClient(responses=["SKIP"]),
            runner=runner,
            config=SentinelConfig(max_retries=0),
            console=console,
        )
        scheduler = WorkflowScheduler(registry, sentinel=sentinel, runner=runner, console=console)

        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "failed"
        assert result.error == "Sentinel could not repair: run a"

    @pytest.mark.asyncio
    async def test_self_heal_off_bypasses_sentinel(self, registry, make_runner, console, project_root) -> None:
        runner = make_runner({"run a": [1]})
        model = MockClient(responses=["pnpm add zod"])
        sentinel = DependencySentinel(model, runner=runner, console=console)
        scheduler = WorkflowScheduler(
            registry, sentinel=sentinel, runner=runner, console=console,
            config=WorkflowConfig(self_heal=False),
        )

        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "failed"
        assert model.call_count == 0

    @pytest.mark.asyncio
    async def test_progress_records_project_flags(self, scheduler, project_root) -> None:
        (project_root / "components.json").write_text("{}")
        result = await scheduler.start_workflow("chain", project_root, auto_continue=False)

        assert result.progress.context.has_shadcn
        assert _state(project_root)["context"]["hasShadcn"] is True

    @pytest.mark.asyncio
    async def test_brain_hears_lifecycle(self, scheduler, project_root, brain) -> None:
        await scheduler.start_workflow("chain", project_root, auto_continue=True)

        updates = brain.get_brain().updates
        assert all(u.agent == "Workflow" and u.role == "orchestrator" for u in updates)
        assert [u.type for u in updates] == ["action", "action", "action", "action", "completion"]
        assert updates[0].message == "Started workflow chain"
        assert updates[1].metadata["step"] == "a"

    def test_registry_passthrough(self, scheduler) -> None:
        scheduler.register_workflow(
            WorkflowDefinition(id="solo", name="Solo", description="", category="setup", steps=(_step("x"),))
        )
        assert [d.id for d in scheduler.list_workflows()] == ["chain", "gated", "solo"]


class TestBrainReporting:
    """Brain trouble never stops a workflow."""

    @pytest.mark.asyncio
    async def test_malformed_brain_does_not_block_steps(self, scheduler, runner, project_root, brain) -> None:
        brain.path.parent.mkdir(parents=True, exist_ok=True)
        brain.path.write_text(json.dumps({"brain": {"version": "1.0.4", "updates": ["oops"]}}))

        result = await scheduler.start_workflow("chain", project_root, auto_continue=True)

        assert result.status == "completed"
        assert runner.commands == ["run a", "run b", "run c"]
        assert brain.get_brain().updates[0].message == "Started workflow chain"
