"""Command execution: shell runner and the self-healing sentinel."""

from mycontext.execution.sentinel import DependencySentinel
from mycontext.execution.shell import CommandResult, CommandRunner, ShellRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "DependencySentinel",
    "ShellRunner",
]
