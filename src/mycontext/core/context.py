"""Pipeline context with dependency injection.

PipelineContext holds everything one CLI invocation (or test) needs: the
configuration, the brain client, the client router, the sentinel and the
workflow scheduler. Components receive their collaborators from here
instead of reaching for process-wide singletons.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from mycontext.brain.client import BrainClient
from mycontext.cli.theme import create_console
from mycontext.config import MyContextConfig, get_config
from mycontext.core.retry import RetryPolicy
from mycontext.execution.sentinel import DependencySentinel
from mycontext.execution.shell import CommandRunner, ShellRunner
from mycontext.models.protocol import AIClient
from mycontext.routing.factory import ClientBuilder, ClientFactory
from mycontext.routing.metrics import MetricsRecorder
from mycontext.routing.router import ClientRouter
from mycontext.workflow.engine import WorkflowScheduler
from mycontext.workflow.registry import WorkflowRegistry


@dataclass(slots=True)
class PipelineContext:
    """All pipeline collaborators for one project.

    Usage:
        # Production
        ctx = PipelineContext.from_config(project_root=Path("my-app"))

        # Testing
        ctx = PipelineContext.for_testing(tmp_path, responses=["pnpm add zod"])
    """

    config: MyContextConfig
    """Root configuration."""

    project_root: Path
    """Project directory all documents live under."""

    brain: BrainClient
    router: ClientRouter
    sentinel: DependencySentinel
    scheduler: WorkflowScheduler

    console: Console = field(default=None)
    """Console for user-facing output."""

    def __post_init__(self) -> None:
        if self.console is None:
            self.console = create_console()

    @classmethod
    def from_config(
        cls,
        config: MyContextConfig | None = None,
        project_root: Path | None = None,
        *,
        console: Console | None = None,
        builders: dict[str, ClientBuilder] | None = None,
        runner: CommandRunner | None = None,
    ) -> PipelineContext:
        """Factory for production use.

        Args:
            config: Configuration to use (defaults to get_config())
            project_root: Project directory (defaults to the current one)
            console: Output console (defaults to the themed console)
            builders: Client constructors (defaults to the Anthropic clients)
            runner: Shell runner (defaults to ShellRunner)

        Returns:
            PipelineContext wired from config
        """
        if config is None:
            config = get_config()
        root = (project_root or Path.cwd()).resolve()
        console = console or create_console()
        runner = runner or ShellRunner()

        brain = BrainClient(
            root,
            Path(config.brain.path),
            console=console if config.brain.echo else None,
        )

        factory = ClientFactory(
            config=config.router,
            working_directory=root,
            builders=builders,
            model=config.model,
        )
        router = ClientRouter(
            factory,
            retry_policy=RetryPolicy(
                max_retries=config.router.max_retries,
                backoff_seconds=config.router.backoff_seconds,
            ),
            metrics=MetricsRecorder(capacity=config.router.metrics_capacity),
        )

        sentinel = DependencySentinel(
            router,
            brain=brain,
            runner=runner,
            config=config.sentinel,
            console=console,
        )

        registry = WorkflowRegistry.with_builtins()
        registry.load_directory(
            root / config.workflow.definitions_dir,
            config.workflow.default_step_minutes,
        )
        scheduler = WorkflowScheduler(
            registry,
            brain=brain,
            sentinel=sentinel,
            runner=runner,
            config=config.workflow,
            console=console,
        )

        return cls(
            config=config,
            project_root=root,
            brain=brain,
            router=router,
            sentinel=sentinel,
            scheduler=scheduler,
            console=console,
        )

    @classmethod
    def for_testing(
        cls,
        project_root: Path,
        responses: list[str | BaseException] | None = None,
        *,
        runner: CommandRunner | None = None,
        config: MyContextConfig | None = None,
        console: Console | None = None,
    ) -> PipelineContext:
        """Factory for test use.

        Both client types are served by mock clients answering from
        ``responses``; nothing touches the network.
        """
        from mycontext.models.adapters.mock import MockAgentClient, MockClient

        direct = MockClient(list(responses or []))
        agent = MockAgentClient(list(responses or []))

        def build_direct(_: Path) -> AIClient:
            return direct

        def build_agent(_: Path) -> AIClient:
            return agent

        if console is None:
            console = create_console(file=io.StringIO(), width=120)

        return cls.from_config(
            config or MyContextConfig(),
            project_root,
            console=console,
            builders={"direct-api": build_direct, "agent-sdk": build_agent},
            runner=runner,
        )

    def retarget(self, project_root: Path) -> None:
        """Point the project-scoped collaborators at another directory."""
        self.project_root = project_root.resolve()
        self.brain.retarget(self.project_root)
        self.router.factory.set_working_directory(self.project_root)
