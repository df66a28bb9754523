"""Shell command runner.

Commands are opaque strings run through the system shell. Inherited mode
streams output to the user's terminal; capture mode collects it for
diagnosis. Neither mode raises for a failing command.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SPAWN_FAILED = 127
TIMED_OUT = 124


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one command run."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Captured stdout and stderr, joined."""
        return f"{self.stdout}\n{self.stderr}".strip("\n")


@runtime_checkable
class CommandRunner(Protocol):
    """Anything that can run a shell command."""

    async def run(
        self,
        command: str,
        cwd: Path | None = None,
        *,
        capture: bool = False,
        timeout: float | None = None,
    ) -> CommandResult: ...


class ShellRunner:
    """Runs commands with asyncio subprocesses.

    Usage:
        runner = ShellRunner()
        result = await runner.run("pnpm build", cwd=project_root)
    """

    async def run(
        self,
        command: str,
        cwd: Path | None = None,
        *,
        capture: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``command`` and wait for it.

        Args:
            command: Shell command line
            cwd: Working directory (defaults to the current one)
            capture: Collect stdout/stderr instead of inheriting the terminal
            timeout: Seconds before the process is killed

        Returns:
            CommandResult; spawn failures and timeouts are failed results
        """
        pipe = asyncio.subprocess.PIPE if capture else None
        start = time.perf_counter()
        logger.debug("Running %r (cwd=%s, capture=%s)", command[:200], cwd, capture)

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                cwd=cwd,
                stdout=pipe,
                stderr=pipe,
            )
        except OSError as e:
            logger.warning("Could not start %r: %s", command, e)
            return CommandResult(
                command=command,
                returncode=SPAWN_FAILED,
                stderr=str(e),
                duration_s=time.perf_counter() - start,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Command %r timed out after %s seconds", command, timeout)
            return CommandResult(
                command=command,
                returncode=TIMED_OUT,
                stderr=f"Timed out after {timeout} seconds",
                duration_s=time.perf_counter() - start,
            )

        result = CommandResult(
            command=command,
            returncode=proc.returncode if proc.returncode is not None else SPAWN_FAILED,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
            duration_s=time.perf_counter() - start,
        )
        if not result.ok:
            logger.debug("Command %r exited with %d", command, result.returncode)
        return result
