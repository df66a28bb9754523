"""Workspace file tools for tool-capable clients.

Read, Write, Edit and Glob, each confined to one working directory.
Paths that resolve outside the workspace, or match a blocked pattern,
raise PathSecurityError.
"""

import fnmatch
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_BLOCKED_PATTERNS = frozenset({
    ".env",
    ".env.*",
    "**/.git/**",
    "**/node_modules/**",
    "*.pem",
    "*.key",
})

_MAX_READ_BYTES = 1_000_000
_MAX_GLOB_RESULTS = 200


class PathSecurityError(PermissionError):
    """Raised when a path access is blocked for security reasons."""


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Tool definition sent to the model (JSON Schema parameters)."""

    name: str
    description: str
    parameters: dict

    def to_anthropic(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


TOOL_SPECS: dict[str, ToolSpec] = {
    "Read": ToolSpec(
        name="Read",
        description="Read a text file from the project.",
        parameters={
            "type": "object",
            "properties": {"path": {"type": "string", "description": "Path relative to the project"}},
            "required": ["path"],
        },
    ),
    "Write": ToolSpec(
        name="Write",
        description="Create or overwrite a file in the project.",
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "content": {"type": "string"},
            },
            "required": ["path", "content"],
        },
    ),
    "Edit": ToolSpec(
        name="Edit",
        description="Replace an exact snippet of a file with new text.",
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "old_content": {"type": "string"},
                "new_content": {"type": "string"},
            },
            "required": ["path", "old_content", "new_content"],
        },
    ),
    "Glob": ToolSpec(
        name="Glob",
        description="List project files matching a glob pattern.",
        parameters={
            "type": "object",
            "properties": {"pattern": {"type": "string", "description": "e.g. components/**/*.tsx"}},
            "required": ["pattern"],
        },
    ),
}


class WorkspaceTools:
    """File tools jailed to ``workspace``.

    Security: every path goes through _safe_path(), which resolves it,
    keeps it inside the workspace and checks it against blocked patterns.
    """

    def __init__(
        self,
        workspace: Path,
        blocked_patterns: frozenset[str] = DEFAULT_BLOCKED_PATTERNS,
    ) -> None:
        self.workspace = workspace.resolve()
        self.blocked_patterns = blocked_patterns
        self._handlers: dict[str, Callable[[dict], Awaitable[str]]] = {
            "Read": self.read_file,
            "Write": self.write_file,
            "Edit": self.edit_file,
            "Glob": self.glob_files,
        }

    def specs(self, names: list[str] | tuple[str, ...]) -> list[ToolSpec]:
        """Definitions for the requested tool names (unknown names are dropped)."""
        return [TOOL_SPECS[name] for name in names if name in TOOL_SPECS]

    async def dispatch(self, name: str, args: dict[str, Any]) -> str:
        """Run one tool call.

        Raises:
            KeyError: Unknown tool name
            PathSecurityError: Path outside the workspace or blocked
            FileNotFoundError, ValueError: Tool-specific failures
        """
        handler = self._handlers[name]
        logger.debug("Tool %s(%s)", name, {k: v for k, v in args.items() if k != "content"})
        return await handler(args)

    def _safe_path(self, user_path: str) -> Path:
        if not user_path or user_path == "/":
            raise PathSecurityError(f"Invalid path: '{user_path}'")

        requested = (self.workspace / user_path).resolve()
        try:
            relative = requested.relative_to(self.workspace)
        except ValueError as err:
            raise PathSecurityError(f"Path escapes workspace: {user_path}") from err

        relative_str = str(relative)
        for pattern in self.blocked_patterns:
            if fnmatch.fnmatch(relative_str, pattern) or fnmatch.fnmatch(requested.name, pattern):
                raise PathSecurityError(f"Access blocked by pattern '{pattern}': {user_path}")
            simple = pattern.removeprefix("**/").removesuffix("/**")
            if simple and f"/{simple}/" in f"/{relative_str}/":
                raise PathSecurityError(f"Access blocked by pattern '{pattern}': {user_path}")
        return requested

    async def read_file(self, args: dict) -> str:
        path = self._safe_path(args["path"])
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {args['path']}")

        size = path.stat().st_size
        if size > _MAX_READ_BYTES:
            return f"File too large ({size:,} bytes)."
        return path.read_text(encoding="utf-8", errors="replace")

    async def write_file(self, args: dict) -> str:
        user_path = args["path"]
        path = self._safe_path(user_path)
        if path.is_dir():
            raise ValueError(f"Cannot write to '{user_path}': path is a directory")

        content = args.get("content", "")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return f"Wrote {user_path} ({len(content):,} bytes)"

    async def edit_file(self, args: dict) -> str:
        user_path = args["path"]
        path = self._safe_path(user_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {user_path}. Use Write to create new files.")

        content = path.read_text(encoding="utf-8")
        old = args["old_content"]
        count = content.count(old)
        if count == 0:
            raise ValueError(f"Content not found in {user_path}")
        if count > 1:
            raise ValueError(f"Content appears {count} times in {user_path}; include more context")

        path.write_text(content.replace(old, args["new_content"], 1), encoding="utf-8")
        return f"Edited {user_path}"

    async def glob_files(self, args: dict) -> str:
        pattern = args["pattern"]
        if pattern.startswith("/") or ".." in Path(pattern).parts:
            raise PathSecurityError(f"Pattern escapes workspace: {pattern}")

        matches = []
        for path in sorted(self.workspace.glob(pattern)):
            if not path.is_file():
                continue
            try:
                self._safe_path(str(path.relative_to(self.workspace)))
            except PathSecurityError:
                continue
            matches.append(str(path.relative_to(self.workspace)))
            if len(matches) >= _MAX_GLOB_RESULTS:
                break
        return "\n".join(matches) if matches else "(no matches)"
