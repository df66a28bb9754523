"""Pytest fixtures for MyContext tests."""

import io
import os
from pathlib import Path

import pytest
from rich.console import Console

from mycontext.brain.client import BrainClient
from mycontext.cli.theme import create_console
from mycontext.config import reset_config
from mycontext.execution.shell import CommandResult
from mycontext.models.adapters.mock import MockAgentClient, MockClient


class FakeRunner:
    """Scripted stand-in for ShellRunner.

    ``script`` maps a command to the exit codes of its successive inherited
    runs; the last code repeats. Capture-mode runs do not advance the
    script and report the most recent exit code.
    """

    def __init__(self, script: dict[str, list[int]] | None = None, default: int = 0):
        self.script = {command: list(codes) for command, codes in (script or {}).items()}
        self.default = default
        self.calls: list[tuple[str, bool]] = []
        self._last: dict[str, int] = {}

    async def run(self, command, cwd=None, *, capture=False, timeout=None) -> CommandResult:
        self.calls.append((command, capture))
        if capture:
            code = self._last.get(command, self.default)
            return CommandResult(
                command=command,
                returncode=code,
                stdout=f"running {command}",
                stderr="Error: Cannot find module 'zod'" if code else "",
            )

        codes = self.script.get(command)
        if codes:
            code = codes.pop(0) if len(codes) > 1 else codes[0]
        else:
            code = self.default
        self._last[command] = code
        return CommandResult(command=command, returncode=code)

    def runs(self, command: str, capture: bool = False) -> int:
        """How many times ``command`` ran in the given mode."""
        return sum(1 for c, cap in self.calls if c == command and cap == capture)

    @property
    def commands(self) -> list[str]:
        """Inherited-mode commands in order."""
        return [c for c, cap in self.calls if not cap]


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep tests away from the real home directory and MYCONTEXT_* settings."""
    for key in list(os.environ):
        if key.startswith("MYCONTEXT_") or key == "ANTHROPIC_API_KEY":
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """An empty project directory."""
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def console() -> Console:
    """Themed console writing to a buffer (read with ``console.file.getvalue()``)."""
    return create_console(file=io.StringIO(), width=120, color_system=None)


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner


@pytest.fixture
def brain(project_root: Path) -> BrainClient:
    """Brain client for the test project (no console echo)."""
    return BrainClient(project_root)


@pytest.fixture
def mock_client() -> MockClient:
    return MockClient()


@pytest.fixture
def mock_agent_client() -> MockAgentClient:
    return MockAgentClient()
