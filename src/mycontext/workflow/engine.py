"""Workflow scheduler: dependency-ordered, resumable step execution.

The scheduler walks a workflow's steps in declared order and runs the
first step whose dependencies are complete. It supports:
- Auto-continue chains (steps run back to back when caller and step allow it)
- Manual steps (the command is printed; the user reports back)
- Progress persistence after every step (resume across sessions)
- Self-healing execution through the dependency sentinel
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from mycontext.cli.theme import (
    CHARS,
    create_console,
    render_command_hint,
    render_step_banner,
)
from mycontext.config import WorkflowConfig
from mycontext.core.errors import ErrorCode, workflow_error
from mycontext.execution.shell import CommandRunner, ShellRunner
from mycontext.workflow.project import scan_project_context
from mycontext.workflow.registry import WorkflowRegistry
from mycontext.workflow.state import WorkflowStateStore
from mycontext.workflow.types import (
    WorkflowDefinition,
    WorkflowProgress,
    WorkflowResult,
    WorkflowStep,
)

if TYPE_CHECKING:
    from mycontext.brain.client import BrainClient
    from mycontext.execution.sentinel import DependencySentinel

logger = logging.getLogger(__name__)

AGENT_NAME = "Workflow"


def format_duration(seconds: float) -> str:
    """Minutes above one minute, seconds otherwise."""
    if seconds > 60:
        return f"{seconds / 60:.1f}m"
    return f"{seconds:.1f}s"


def get_next_step(definition: WorkflowDefinition, progress: WorkflowProgress) -> WorkflowStep | None:
    """First runnable step in declared order, or None when nothing is left.

    A step is runnable when it is not completed, all its dependencies are
    completed, and its ``required_context`` matches the project flags (or
    the step is optional).
    """
    for step in definition.steps:
        if progress.is_done(step.id):
            continue
        if not all(progress.is_done(dep) for dep in step.dependencies):
            continue
        if step.required_context and not step.optional:
            if not progress.context.matches(step.required_context):
                continue
        return step
    return None


class WorkflowScheduler:
    """Runs registered workflows against project directories.

    One progress record is kept per project, in memory and on disk.

    Example:
        >>> scheduler = WorkflowScheduler(WorkflowRegistry.with_builtins())
        >>> result = await scheduler.start_workflow("complete-setup", Path("my-app"))
        >>> result.status
        'awaiting'
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        *,
        brain: BrainClient | None = None,
        sentinel: DependencySentinel | None = None,
        runner: CommandRunner | None = None,
        config: WorkflowConfig | None = None,
        console: Console | None = None,
    ) -> None:
        self.registry = registry
        self.brain = brain
        self.sentinel = sentinel
        self.runner = runner or ShellRunner()
        self.config = config or WorkflowConfig()
        self.console = console or create_console()
        self._active: dict[str, WorkflowProgress] = {}

    # =========================================================================
    # Registry
    # =========================================================================

    def register_workflow(self, definition: WorkflowDefinition) -> None:
        self.registry.register(definition)

    def list_workflows(self) -> list[WorkflowDefinition]:
        return self.registry.list()

    def get_next_step(self, definition: WorkflowDefinition, progress: WorkflowProgress) -> WorkflowStep | None:
        return get_next_step(definition, progress)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start_workflow(
        self,
        workflow_id: str,
        project_root: Path,
        auto_continue: bool | None = None,
    ) -> WorkflowResult:
        """Start ``workflow_id`` in ``project_root`` and run its first step(s).

        Raises:
            WorkflowError: WORKFLOW_NOT_FOUND or WORKFLOW_ALREADY_ACTIVE
        """
        definition = self.registry.get(workflow_id)
        if definition is None:
            raise workflow_error(ErrorCode.WORKFLOW_NOT_FOUND, workflow=workflow_id)

        store = self._store(project_root)
        existing = store.load()
        if existing is not None and not existing.completed:
            self.console.print(
                f"[mc.warning]{CHARS['hint']} Found existing workflow progress. Use 'workflow continue' "
                "to resume or 'workflow stop' to start fresh.[/]"
            )
            raise workflow_error(
                ErrorCode.WORKFLOW_ALREADY_ACTIVE,
                workflow=existing.workflow_id,
                project=str(project_root),
            )

        total_minutes = definition.estimated_total_minutes
        now = datetime.now()
        progress = WorkflowProgress(
            workflow_id=workflow_id,
            started_at=now,
            estimated_completion=now + timedelta(minutes=total_minutes),
            context=scan_project_context(project_root),
        )
        self._active[self._key(project_root)] = progress
        store.save(progress, fresh=True)

        self.console.print(f"[mc.heading]🚀 Starting workflow: {escape(definition.name)}[/]")
        self.console.print(f"[mc.muted]{escape(definition.description)}[/]")
        self.console.print(f"[mc.muted]Estimated time: {total_minutes} minutes[/]")
        self._report("action", f"Started workflow {definition.id}", {"workflow": definition.id})
        logger.info("Started workflow %s in %s", workflow_id, project_root)

        return await self.execute_next_step(progress, project_root, auto_continue)

    async def execute_next_step(
        self,
        progress: WorkflowProgress,
        project_root: Path,
        auto_continue: bool | None = None,
    ) -> WorkflowResult:
        """Run steps until one needs the user, one fails, or none are left."""
        definition = self.registry.get(progress.workflow_id)
        if definition is None:
            raise workflow_error(ErrorCode.WORKFLOW_NOT_FOUND, workflow=progress.workflow_id)
        if auto_continue is None:
            auto_continue = self.config.auto_continue
        store = self._store(project_root)

        while True:
            step = get_next_step(definition, progress)
            if step is None:
                return self._complete(definition, progress, project_root)

            progress.current_step_id = step.id
            self._show_banner(definition, progress, step)

            if not (auto_continue and step.auto_continue):
                store.save(progress)
                render_command_hint(self.console, step.command)
                return WorkflowResult(status="awaiting", progress=progress, step=step)

            self.console.print(f"[mc.warning]⚡ Auto-executing: {escape(step.command)}[/]", highlight=False)
            started = time.perf_counter()
            error = await self._run_step(step, project_root)
            elapsed = time.perf_counter() - started

            if error is not None:
                store.save(progress)
                self.console.print(f"[mc.error]{CHARS['fail']} Step failed: {escape(error)}[/]", highlight=False)
                self.console.print(
                    f"[mc.warning]{CHARS['hint']} Manual execution: {escape(step.command)}[/]",
                    highlight=False,
                )
                self._report("error", f"Step {step.id} failed: {error}", {"step": step.id})
                logger.warning("Workflow %s stopped at step %s: %s", definition.id, step.id, error)
                return WorkflowResult(status="failed", progress=progress, step=step, error=error)

            progress.mark_completed(step.id)
            store.save(progress)
            self.console.print(f"[mc.success]{CHARS['pass']} Completed in {format_duration(elapsed)}[/]")
            self._report(
                "action",
                f"Completed step {step.id} in {format_duration(elapsed)}",
                {"step": step.id, "duration_s": round(elapsed, 3)},
            )

    async def continue_workflow(
        self,
        project_root: Path,
        auto_continue: bool | None = None,
    ) -> WorkflowResult:
        """Resume the project's workflow from memory or from disk.

        Raises:
            WorkflowError: NO_ACTIVE_WORKFLOW
        """
        progress = self._require_progress(project_root)
        return await self.execute_next_step(progress, project_root, auto_continue)

    def complete_step(self, project_root: Path, step_id: str | None = None) -> WorkflowProgress:
        """Record that the user ran a step by hand.

        Defaults to the current step (or the next runnable one).

        Raises:
            WorkflowError: NO_ACTIVE_WORKFLOW, STEP_NOT_FOUND or STEP_NOT_READY
        """
        progress = self._require_progress(project_root)
        definition = self.registry.get(progress.workflow_id)
        if definition is None:
            raise workflow_error(ErrorCode.WORKFLOW_NOT_FOUND, workflow=progress.workflow_id)

        if step_id is None:
            step_id = progress.current_step_id
        if step_id is None:
            next_step = get_next_step(definition, progress)
            step_id = next_step.id if next_step else None

        step = definition.get_step(step_id) if step_id else None
        if step is None:
            raise workflow_error(
                ErrorCode.STEP_NOT_FOUND,
                step=step_id or "(none)",
                workflow=definition.id,
            )

        missing = [dep for dep in step.dependencies if not progress.is_done(dep)]
        if missing:
            raise workflow_error(ErrorCode.STEP_NOT_READY, step=step.id, missing=", ".join(missing))

        progress.mark_completed(step.id)
        self._store(project_root).save(progress)
        self.console.print(f"[mc.success]{CHARS['pass']} Marked step complete: {escape(step.name)}[/]")
        self._report("feedback", f"Step {step.id} completed manually", {"step": step.id})
        return progress

    def stop_workflow(self, project_root: Path) -> bool:
        """Drop the project's progress. Returns whether anything was active."""
        in_memory = self._active.pop(self._key(project_root), None)
        on_disk = self._store(project_root).load()
        cleared = self._store(project_root).clear()

        stopped = in_memory or on_disk
        if stopped is not None:
            self.console.print(f"[mc.warning]⏹️  Stopped workflow: {escape(stopped.workflow_id)}[/]")
            self._report("action", f"Stopped workflow {stopped.workflow_id}")
            return True
        if cleared:
            logger.info("Removed unreadable workflow state in %s", project_root)
            return True
        self.console.print("[mc.muted]No active workflow to stop[/]")
        return False

    def get_status(self, project_root: Path) -> WorkflowProgress | None:
        """The project's progress (memory first, then disk), or None."""
        progress = self._active.get(self._key(project_root))
        if progress is not None:
            return progress
        return self._store(project_root).load()

    # =========================================================================
    # Internals
    # =========================================================================

    def _key(self, project_root: Path) -> str:
        return str(Path(project_root).resolve())

    def _store(self, project_root: Path) -> WorkflowStateStore:
        return WorkflowStateStore(Path(project_root), Path(self.config.state_file))

    def _require_progress(self, project_root: Path) -> WorkflowProgress:
        key = self._key(project_root)
        progress = self._active.get(key)
        if progress is None:
            progress = self._store(project_root).load()
            if progress is not None and not progress.completed:
                self._active[key] = progress
                self.console.print("[mc.success]📂 Resumed workflow from saved state[/]")
                logger.info("Resumed workflow %s from %s", progress.workflow_id, project_root)

        if progress is None or progress.completed:
            self.console.print(f"[mc.error]{CHARS['fail']} No active workflow found[/]")
            raise workflow_error(ErrorCode.NO_ACTIVE_WORKFLOW, project=str(project_root))
        return progress

    def _show_banner(self, definition: WorkflowDefinition, progress: WorkflowProgress, step: WorkflowStep) -> None:
        remaining = [s for s in definition.steps if not progress.is_done(s.id)]
        eta = None
        if len(remaining) > 1:
            minutes = sum(s.estimated_minutes or self.config.default_step_minutes for s in remaining)
            eta = (datetime.now() + timedelta(minutes=minutes)).strftime("%H:%M")
        render_step_banner(
            self.console,
            len(progress.completed_steps) + 1,
            len(definition.steps),
            step.name,
            step.description,
            step.estimated_minutes or self.config.default_step_minutes,
            eta,
        )

    async def _run_step(self, step: WorkflowStep, project_root: Path) -> str | None:
        """Run the step's command. Returns an error message, or None on success."""
        if self.config.self_heal and self.sentinel is not None:
            if await self.sentinel.guard(step.command, Path(project_root)):
                return None
            return f"Sentinel could not repair: {step.command}"

        result = await self.runner.run(step.command, Path(project_root))
        if result.ok:
            return None
        return f"Command failed with exit code {result.returncode}"

    def _complete(
        self,
        definition: WorkflowDefinition,
        progress: WorkflowProgress,
        project_root: Path,
    ) -> WorkflowResult:
        progress.completed = True
        progress.current_step_id = None
        minutes = round((datetime.now() - progress.started_at).total_seconds() / 60)

        self.console.print(f"[mc.success]🎉 Workflow completed: {escape(definition.name)}[/]")
        self.console.print(f"[mc.muted]Total time: {minutes} minutes[/]")
        self.console.print(
            f"[mc.muted]Steps completed: {len(progress.completed_steps)}/{len(definition.steps)}[/]"
        )
        self._report(
            "completion",
            f"Workflow {definition.id} completed",
            {"workflow": definition.id, "steps": len(progress.completed_steps)},
        )
        logger.info("Workflow %s completed in %s", definition.id, project_root)

        self._active.pop(self._key(project_root), None)
        self._store(project_root).clear()
        return WorkflowResult(status="completed", progress=progress)

    def _report(self, kind: str, message: str, metadata: dict | None = None) -> None:
        if self.brain is not None:
            self.brain.add_update(AGENT_NAME, "orchestrator", kind, message, metadata)
