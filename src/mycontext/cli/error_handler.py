"""CLI error handler.

Turns MyContextError and AIClientError into readable output (or JSON for
scripting) with recovery suggestions, then exits non-zero.
"""

import json
import os
import sys
from typing import NoReturn

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from mycontext.cli.theme import create_console
from mycontext.core.errors import AIClientError, ClientErrorCode, MyContextError

_CATEGORY_ICONS = {
    "workflow": "📋",
    "model": "🤖",
    "execution": "🛡️",
    "config": "⚙️",
    "io": "📁",
}

_CLIENT_HINTS: dict[ClientErrorCode, list[str]] = {
    ClientErrorCode.NO_API_KEY: [
        "Set MYCONTEXT_CLAUDE_API_KEY or ANTHROPIC_API_KEY",
        "Add it to .env or .mycontext/.env",
    ],
    ClientErrorCode.AGENT_SDK_REQUIRED: [
        "Set router.preferred_client to 'agent-sdk' or 'auto' in .mycontext/config.yaml",
    ],
    ClientErrorCode.TIMEOUT: [
        "Raise model.request_timeout or router.max_retries",
    ],
    ClientErrorCode.CONTEXT_OVERFLOW: [
        "Shorten the prompt or the attached context",
    ],
}


def _detect_hints(error: AIClientError) -> list[str]:
    hints: list[str] = []
    if error.code == ClientErrorCode.NO_API_KEY and not (
        os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("MYCONTEXT_CLAUDE_API_KEY")
    ):
        hints.append("Detected: no API key in the environment")
    return hints


def handle_error(
    error: Exception,
    json_output: bool = False,
    console: Console | None = None,
) -> NoReturn:
    """Report ``error`` and exit with status 1.

    Args:
        error: MyContextError, AIClientError or any other exception
        json_output: Print the error as JSON on stderr instead
        console: Where human-readable output goes (default: stderr)

    Raises:
        SystemExit: Always exits with code 1
    """
    if isinstance(error, AIClientError):
        payload = error.to_dict()
        # Selection failures wrap the factory's error; its hints are the useful ones
        source = error.cause if isinstance(error.cause, AIClientError) else error
        hints = _detect_hints(source) + _CLIENT_HINTS.get(source.code, [])
        header = error.code.value
        message = str(error)
        icon = _CATEGORY_ICONS["model"]
    elif isinstance(error, MyContextError):
        payload = error.to_dict()
        hints = error.recovery_hints
        header = error.error_id
        message = error.message
        icon = _CATEGORY_ICONS.get(error.category, "❌")
    else:
        payload = {"error": type(error).__name__, "message": str(error)}
        hints = []
        header = type(error).__name__
        message = str(error)
        icon = "❌"

    if json_output:
        print(json.dumps(payload, default=str), file=sys.stderr)
        sys.exit(1)

    console = console or create_console(stderr=True)
    text = Text()
    text.append(f"{icon} ", style="bold")
    text.append(header, style="bold red")
    text.append(f" {message}")
    console.print(text)

    if hints:
        console.print("\n[bold]What you can do:[/]")
        for i, hint in enumerate(hints, 1):
            if hint.startswith("Detected:"):
                console.print(f"  [dim]{escape(hint)}[/]")
            else:
                console.print(f"  {i}. {escape(hint)}")
    sys.exit(1)
