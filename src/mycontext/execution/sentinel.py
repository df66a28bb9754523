"""Dependency sentinel: self-healing command execution.

guard() runs a command; when it fails, the sentinel captures the output,
asks the model for a single corrective shell command, runs it and tries
again, within a bounded retry budget.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from rich.console import Console
from rich.markup import escape

from mycontext.cli.theme import create_console
from mycontext.config import SentinelConfig
from mycontext.core.retry import RetryPolicy
from mycontext.execution.shell import CommandRunner, ShellRunner

if TYPE_CHECKING:
    from mycontext.brain.client import BrainClient

logger = logging.getLogger(__name__)

AGENT_NAME = "Sentinel"
SKIP = "SKIP"

FIX_PROMPT = """You are the Dependency Sentinel, a self-healing build agent.

COMMAND: {command}
WORKING_DIR: {cwd}

ERROR OUTPUT:
```
{output}
```

TASK:
Analyze the error and provide a shell command to fix it.
Common fixes:
- "pnpm add <package>" (if module not found)
- "pnpm add -D @types/<package>" (if type error)
- "mkdir -p <dir>" (if directory missing)

RETURN FORMAT:
Return ONLY the shell command to execute. No markdown, no explanations.
If you cannot determine a fix, return "SKIP".
"""


class TextGenerator(Protocol):
    """The one model capability the sentinel needs (normally the router)."""

    async def generate_text(self, prompt: str) -> str: ...


def clean_fix_command(raw: str) -> str:
    """Strip backticks and surrounding whitespace from a model answer."""
    return raw.replace("`", "").strip()


class DependencySentinel:
    """Self-healing executor for step commands.

    Args:
        model: Asked for corrective commands
        brain: Receives thought/action updates (optional)
        runner: Runs the shell commands
        config: Retry budget and output limits
        console: Progress output
    """

    def __init__(
        self,
        model: TextGenerator,
        brain: BrainClient | None = None,
        runner: CommandRunner | None = None,
        config: SentinelConfig | None = None,
        console: Console | None = None,
    ) -> None:
        self.model = model
        self.brain = brain
        self.runner = runner or ShellRunner()
        self.config = config or SentinelConfig()
        self.console = console or create_console()
        self.policy = RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_seconds=self.config.backoff_seconds,
        )

    async def guard(self, command: str, cwd: Path | None = None) -> bool:
        """Run ``command`` until it succeeds or the retry budget is spent.

        Every non-zero exit is retried; only ``policy.max_retries`` and the
        backoff schedule are used, never ``policy.retry_on``.

        Returns:
            True if the command eventually exited 0. Never raises for a
            failing command.
        """
        max_retries = self.policy.max_retries
        attempts = 0

        while True:
            if attempts > 0:
                self.console.print(
                    f"[mc.warning]🛡️  Sentinel retry [{attempts}/{max_retries}] for: {escape(command)}[/]",
                    highlight=False,
                )
                self._report("thought", f"Retry {attempts}/{max_retries} for command: {command}")
                await self.policy.sleep_before(attempts)

            self.console.print(f"[mc.accent]🛡️  Sentinel running: {escape(command)}[/]", highlight=False)
            result = await self.runner.run(command, cwd)
            if result.ok:
                self.console.print(f"[mc.success]✅ Command passed: {escape(command)}[/]", highlight=False)
                return True

            self.console.print(f"[mc.error]❌ Command failed: {escape(command)}[/]", highlight=False)
            attempts += 1
            if attempts > max_retries:
                self.console.print(
                    f"[mc.error]💀 Sentinel gave up after {max_retries} retries.[/]",
                    highlight=False,
                )
                logger.warning("Sentinel gave up on %r after %d retries", command, max_retries)
                return False

            # Inherited output is not visible to us, so run again to capture it
            captured = await self.runner.run(command, cwd, capture=True)
            fixed = await self._diagnose_and_fix(command, cwd, captured.output)
            if not fixed and self.config.stop_on_skip:
                logger.info("No fix proposed for %r; stopping", command)
                return False

    async def _diagnose_and_fix(self, command: str, cwd: Path | None, output: str) -> bool:
        """Ask for one fix and run it. Returns whether a fix was attempted."""
        self._report("thought", f"Diagnosing failure for: {command}")

        prompt = FIX_PROMPT.format(
            command=command,
            cwd=cwd or Path.cwd(),
            output=output[: self.config.error_excerpt_chars],
        )
        try:
            answer = await self.model.generate_text(prompt)
        except Exception as e:
            logger.warning("Sentinel could not reach the model: %s", e)
            answer = SKIP

        fix = clean_fix_command(answer or "")
        if not fix or fix == SKIP:
            self.console.print("[mc.error]🛡️  Sentinel could not determine a fix.[/]")
            logger.info("No fix for %r", command)
            return False

        self.console.print(f"[mc.accent]🛡️  Sentinel attempting fix: {escape(fix)}[/]", highlight=False)
        self._report("action", f"Executing fix: {fix}")

        result = await self.runner.run(fix, cwd)
        if result.ok:
            self.console.print("[mc.success]✅ Fix executed successfully.[/]")
        else:
            self.console.print("[mc.error]❌ Fix execution failed.[/]")
            logger.warning("Fix %r exited with %d", fix, result.returncode)
        return True

    def _report(self, kind: str, message: str) -> None:
        if self.brain is not None:
            self.brain.add_update(AGENT_NAME, "orchestrator", kind, message)
