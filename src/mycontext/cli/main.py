"""Main CLI entry point.

    mycontext workflow start complete-setup --auto
    mycontext workflow continue
    mycontext guard "pnpm build"
    mycontext brain show
    mycontext generate "Summarize the PRD"
"""

import json
import shlex
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.markup import escape

from mycontext.brain.types import BRAIN_STATUSES
from mycontext.cli.async_runner import async_command, run_async
from mycontext.cli.helpers import format_when, load_dotenv
from mycontext.cli.theme import CHARS, UPDATE_STYLES, create_console, render_table
from mycontext.config import load_config, save_default_config
from mycontext.core.context import PipelineContext
from mycontext.core.errors import AIClientError, MyContextError
from mycontext.foundation.logging import configure_logging
from mycontext.workflow.engine import get_next_step

console = create_console()


def cli_entrypoint() -> None:
    """Wrapped entrypoint with global error handling.

    Called from pyproject.toml [project.scripts].
    """
    try:
        exit_code = main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        console.print("\n  [mc.dim]Interrupted[/]")
        sys.exit(130)
    except (MyContextError, AIClientError) as e:
        from mycontext.cli.error_handler import handle_error

        handle_error(e)
    else:
        # ctx.exit(n) surfaces as the return value in non-standalone mode
        if isinstance(exit_code, int) and exit_code:
            sys.exit(exit_code)


def _pipeline(ctx: click.Context) -> PipelineContext:
    """The PipelineContext for this invocation, built on first use."""
    obj = ctx.find_root().ensure_object(dict)
    pipeline = obj.get("pipeline")
    if pipeline is None:
        root = obj["project_root"]
        config = load_config(obj.get("config_path"), project_root=root)
        configure_logging(debug=obj.get("debug", False) or config.debug, project_root=root)
        pipeline = PipelineContext.from_config(config, root, console=console)
        obj["pipeline"] = pipeline
    return pipeline


@click.group()
@click.option("--project", "-C", "project", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Project directory (default: current directory)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Config file to use")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(prog_name="mycontext")
@click.pass_context
def main(
    ctx: click.Context,
    project: Path | None,
    config_path: Path | None,
    debug: bool,
) -> None:
    """MyContext pipeline: workflows, self-healing commands, shared context."""
    obj = ctx.ensure_object(dict)
    root = (project or Path.cwd()).resolve()
    obj.setdefault("project_root", root)
    obj["config_path"] = config_path
    obj["debug"] = debug
    if "pipeline" not in obj:
        load_dotenv(root)


# =============================================================================
# Workflows
# =============================================================================


@main.group()
def workflow() -> None:
    """Run multi-step workflows."""


@workflow.command("list")
@click.pass_context
def workflow_list(ctx: click.Context) -> None:
    """List available workflows."""
    pipeline = _pipeline(ctx)
    rows = [
        {
            "id": d.id,
            "name": d.name,
            "category": d.category,
            "steps": len(d.steps),
            "minutes": d.estimated_total_minutes,
        }
        for d in pipeline.scheduler.list_workflows()
    ]
    render_table(pipeline.console, rows, ["id", "name", "category", "steps", "minutes"], "Workflows")


def _finish(ctx: click.Context, status: str) -> None:
    if status == "failed":
        ctx.exit(1)


@workflow.command("start")
@click.argument("workflow_id")
@click.option("--auto/--manual", "auto", default=None,
              help="Run auto-continue steps unattended (default: from config)")
@click.pass_context
def workflow_start(ctx: click.Context, workflow_id: str, auto: bool | None) -> None:
    """Start WORKFLOW_ID in the project."""
    pipeline = _pipeline(ctx)
    result = run_async(pipeline.scheduler.start_workflow(workflow_id, pipeline.project_root, auto))
    _finish(ctx, result.status)


@workflow.command("continue")
@click.option("--auto/--manual", "auto", default=None,
              help="Run auto-continue steps unattended (default: from config)")
@click.pass_context
def workflow_continue(ctx: click.Context, auto: bool | None) -> None:
    """Resume the project's workflow."""
    pipeline = _pipeline(ctx)
    result = run_async(pipeline.scheduler.continue_workflow(pipeline.project_root, auto))
    _finish(ctx, result.status)


@workflow.command("complete")
@click.argument("step_id", required=False)
@click.pass_context
def workflow_complete(ctx: click.Context, step_id: str | None) -> None:
    """Mark the current step (or STEP_ID) as done after running it by hand."""
    pipeline = _pipeline(ctx)
    pipeline.scheduler.complete_step(pipeline.project_root, step_id)
    pipeline.console.print("  [mc.dim]Next: mycontext workflow continue[/]")


@workflow.command("status")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def workflow_status(ctx: click.Context, json_output: bool) -> None:
    """Show the project's workflow progress."""
    pipeline = _pipeline(ctx)
    out = pipeline.console
    progress = pipeline.scheduler.get_status(pipeline.project_root)

    if json_output:
        click.echo(json.dumps(progress.to_dict() if progress else None, indent=2))
        return
    if progress is None:
        out.print("[mc.muted]No active workflow[/]")
        return

    definition = pipeline.scheduler.registry.get(progress.workflow_id)
    total = len(definition.steps) if definition else "?"
    out.print(f"[mc.heading]{escape(progress.workflow_id)}[/] "
              f"{len(progress.completed_steps)}/{total} steps done")
    out.print(f"  Started: {format_when(progress.started_at)}")
    out.print(f"  ETA: {format_when(progress.estimated_completion)}")

    if definition is None:
        out.print("[mc.warning]  Workflow definition is not registered[/]")
        return
    upcoming = get_next_step(definition, progress)
    for step in definition.steps:
        if progress.is_done(step.id):
            mark = f"[mc.success]{CHARS['pass']}[/]"
        elif step.id == progress.current_step_id or (upcoming and step.id == upcoming.id):
            mark = f"[mc.step]{CHARS['step']}[/]"
        else:
            mark = "[mc.dim]·[/]"
        out.print(f"  {mark} {escape(step.id)} [mc.dim]{escape(step.command)}[/]", highlight=False)


@workflow.command("stop")
@click.pass_context
def workflow_stop(ctx: click.Context) -> None:
    """Stop the project's workflow and discard its progress."""
    pipeline = _pipeline(ctx)
    pipeline.scheduler.stop_workflow(pipeline.project_root)


# =============================================================================
# Sentinel
# =============================================================================


@main.command(context_settings={"ignore_unknown_options": True})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--retries", type=int, default=None, help="Fix attempts (default: from config)")
@click.pass_context
def guard(ctx: click.Context, command: tuple[str, ...], retries: int | None) -> None:
    """Run COMMAND, asking the model for fixes when it fails.

    \b
    Examples:
        mycontext guard pnpm build
        mycontext guard --retries 5 "pnpm test -- --run"
    """
    pipeline = _pipeline(ctx)
    sentinel = pipeline.sentinel
    if retries is not None:
        from mycontext.core.retry import RetryPolicy

        sentinel.policy = RetryPolicy(
            max_retries=retries,
            backoff_seconds=sentinel.policy.backoff_seconds,
        )
    # A single argument is already a shell string; several are quoted back into one
    shell_command = command[0] if len(command) == 1 else shlex.join(command)
    ok = run_async(sentinel.guard(shell_command, pipeline.project_root))
    if not ok:
        ctx.exit(1)


# =============================================================================
# Brain
# =============================================================================


@main.group()
def brain() -> None:
    """Inspect and edit the shared project context."""


@brain.command("show")
@click.option("--updates", "-n", "limit", type=int, default=10, help="Recent updates to show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def brain_show(ctx: click.Context, limit: int, json_output: bool) -> None:
    """Show narrative, status, artifacts and recent updates."""
    pipeline = _pipeline(ctx)
    current = pipeline.brain.get_brain()
    if json_output:
        click.echo(json.dumps(current.to_dict(), indent=2))
        return

    out = pipeline.console
    out.print(f"[mc.heading]Brain v{current.version}[/] [mc.accent]{current.status}[/]")
    out.print(f"  {escape(current.narrative)}")
    if current.checkpoints:
        out.print(f"  [mc.dim]Checkpoints: {escape(', '.join(current.checkpoints))}[/]")

    if current.artifacts:
        rows = [
            {"kind": kind, "path": a.path, "version": a.version,
             "updated": format_when(datetime.fromtimestamp(a.last_updated / 1000))}
            for kind, a in current.artifacts.items()
        ]
        render_table(out, rows, ["kind", "path", "version", "updated"], "Artifacts")

    if limit > 0:
        for update in current.updates[-limit:]:
            icon, style = UPDATE_STYLES.get(update.type, ("·", "mc.dim"))
            when = datetime.fromtimestamp(update.timestamp / 1000).strftime("%H:%M:%S")
            out.print(
                f"  [mc.dim]{when}[/] {icon} [{style}]{escape(f'[{update.agent}]')}[/] {escape(update.message)}",
                highlight=False,
            )


@brain.command("reset")
@click.confirmation_option(prompt="Replace the brain with a fresh one?")
@click.pass_context
def brain_reset(ctx: click.Context) -> None:
    """Reset the brain to its initial state."""
    pipeline = _pipeline(ctx)
    if not pipeline.brain.reset():
        ctx.exit(1)
    pipeline.console.print(f"[mc.success]{CHARS['pass']} Brain reset[/]")


@brain.command("narrative")
@click.argument("text")
@click.pass_context
def brain_narrative(ctx: click.Context, text: str) -> None:
    """Set the project narrative."""
    pipeline = _pipeline(ctx)
    if not pipeline.brain.set_narrative(text):
        ctx.exit(1)


@brain.command("status")
@click.argument("status", type=click.Choice(BRAIN_STATUSES))
@click.pass_context
def brain_status(ctx: click.Context, status: str) -> None:
    """Set the project status."""
    pipeline = _pipeline(ctx)
    if not pipeline.brain.set_status(status):
        ctx.exit(1)


# =============================================================================
# Generation
# =============================================================================


@main.command()
@click.argument("prompt")
@click.option("--stats", is_flag=True, help="Show router performance afterwards")
@click.pass_context
@async_command
async def generate(ctx: click.Context, prompt: str, stats: bool) -> None:
    """Generate text for PROMPT through the client router."""
    pipeline = _pipeline(ctx)
    text = await pipeline.router.generate_text(prompt)
    click.echo(text)
    if stats:
        render_table(
            pipeline.console,
            pipeline.router.stats_rows(),
            ["operation", "count", "success", "avg ms", "range ms"],
            "Router performance",
        )


# =============================================================================
# Config
# =============================================================================


@main.group()
def config() -> None:
    """Manage configuration."""


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write a documented .mycontext/config.yaml."""
    root = ctx.find_root().obj["project_root"]
    target = root / ".mycontext" / "config.yaml"
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists (use --force)")
    path = save_default_config(target)
    console.print(f"[mc.success]{CHARS['pass']} Wrote {escape(str(path))}[/]")


if __name__ == "__main__":
    cli_entrypoint()
