"""Shared CLI helper functions."""

import os
from pathlib import Path

from mycontext.workflow.project import ENV_FILES


def load_dotenv(project_root: Path | None = None) -> None:
    """Load KEY=VALUE lines from the project's env files.

    Existing environment variables win; unreadable files are skipped.
    """
    root = project_root or Path.cwd()
    for name in ENV_FILES:
        env_file = root / name
        if not env_file.is_file():
            continue
        try:
            with open(env_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, _, value = line.partition("=")
                        # Remove quotes if present
                        value = value.strip().strip("'\"")
                        os.environ.setdefault(key.strip(), value)
        except (OSError, UnicodeDecodeError):
            # Can't read it (sandboxed environment, etc.) - continue without it
            continue


def format_when(value) -> str:
    """Short local time for a datetime, "-" for None."""
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")
