"""CLI theme for MyContext.

Shared styles, icons and rendering helpers used by the CLI, the workflow
scheduler's step banners and the brain's update echo.
"""

import os
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

MYCONTEXT_THEME = Theme({
    "mc.heading": "bold white",
    "mc.step": "bold cyan",
    "mc.command": "bold yellow",
    "mc.success": "bold green",
    "mc.warning": "yellow",
    "mc.error": "bold red",
    "mc.muted": "dim white",
    "mc.dim": "dim",
    "mc.accent": "cyan",

    # Update kinds
    "mc.update.error": "red",
    "mc.update.action": "green",
    "mc.update.thought": "dim",
    "mc.update.completion": "bold green",
    "mc.update.feedback": "cyan",
})

# icon, style per update kind
UPDATE_STYLES: dict[str, tuple[str, str]] = {
    "error": ("❌", "mc.update.error"),
    "action": ("⚡", "mc.update.action"),
    "thought": ("💭", "mc.update.thought"),
    "completion": ("✅", "mc.update.completion"),
    "feedback": ("💬", "mc.update.feedback"),
}

CHARS = {
    "step": "▶",
    "pass": "✓",
    "fail": "✗",
    "clock": "⏱",
    "hint": "※",
    "fix": "⚙",
}


def is_plain_mode() -> bool:
    """Check if plain output mode is enabled."""
    return bool(os.environ.get("MYCONTEXT_PLAIN") or os.environ.get("NO_COLOR"))


def create_console(**kwargs: Any) -> Console:
    """Create a Rich console with the MyContext theme."""
    if is_plain_mode():
        kwargs.setdefault("no_color", True)
    return Console(theme=MYCONTEXT_THEME, **kwargs)


def render_update(console: Console, agent: str, kind: str, message: str) -> None:
    """Echo one brain update."""
    icon, style = UPDATE_STYLES.get(kind, ("·", "mc.dim"))
    console.print(f"{icon} [{style}]{escape(f'[{agent}]')}[/] {escape(message)}", highlight=False)


def render_step_banner(
    console: Console,
    index: int,
    total: int,
    name: str,
    description: str,
    minutes: int,
    eta: str | None = None,
) -> None:
    """Render the header printed before a workflow step."""
    console.print()
    console.print(f"[mc.step]{CHARS['step']} Step {index}/{total}: {escape(name)}[/]")
    console.print(f"  [mc.muted]{escape(description)}[/]")
    timing = f"  {CHARS['clock']} ~{minutes} min"
    if eta:
        timing += f" [mc.dim](remaining workflow ETA {eta})[/]"
    console.print(timing)


def render_command_hint(console: Console, command: str, continue_hint: bool = True) -> None:
    """Show a command the user has to run by hand."""
    console.print(f"  Run: [mc.command]{escape(command)}[/]", highlight=False)
    if continue_hint:
        console.print(
            f"  [mc.dim]{CHARS['hint']} Then: mycontext workflow complete && mycontext workflow continue[/]"
        )


def render_error(
    console: Console,
    message: str,
    details: str | None = None,
    suggestion: str | None = None,
) -> None:
    console.print()
    console.print(f"  [mc.error]{CHARS['fail']} {escape(message)}[/]", highlight=False)
    if details:
        console.print(f"    [mc.muted]{escape(details)}[/]", highlight=False)
    if suggestion:
        console.print(f"    [mc.warning]{CHARS['hint']} {suggestion}[/]")
    console.print()


def render_table(
    console: Console,
    data: list[dict[str, Any]],
    columns: list[str],
    title: str = "",
) -> None:
    """Render data table with MyContext styling."""
    table = Table(
        title=f"[mc.heading]{title}[/]" if title else None,
        border_style="mc.dim",
        header_style="mc.accent",
    )
    for col in columns:
        table.add_column(col)

    for row in data:
        table.add_row(*[str(row.get(col, "")) for col in columns])

    console.print(table)
