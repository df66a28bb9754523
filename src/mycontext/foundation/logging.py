"""Logging setup for the mycontext CLI and library callers.

The console stays quiet (WARNING) unless asked otherwise, while every
session also gets a DEBUG log under ``<project>/.mycontext/logs`` so a
failed workflow step or sentinel run can be inspected afterwards.

Level sources, first match wins:
    ``level`` argument, MYCONTEXT_LOG_LEVEL, MYCONTEXT_DEBUG,
    ``debug`` argument (--debug), ``debug: true`` in a config file.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import yaml

_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(name)s: %(message)s"

# Quieted even in debug mode
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "anthropic",
    "asyncio",
    "urllib3",
)

_MAX_LOG_SESSIONS = 10


def _get_log_directory(project_root: Path | None = None) -> Path:
    """Get or create the persistent log directory (.mycontext/logs/)."""
    base = project_root or Path.cwd()
    log_dir = base / ".mycontext" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _cleanup_old_logs(log_dir: Path, max_sessions: int = _MAX_LOG_SESSIONS) -> None:
    """Remove old session logs, keeping only the most recent N."""
    if not log_dir.exists():
        return

    log_files = sorted(
        log_dir.glob("session_*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_log in log_files[max_sessions:]:
        try:
            old_log.unlink()
        except OSError as e:
            sys.stderr.write(f"Warning: Could not remove old log {old_log}: {e}\n")


def _check_config_debug(project_root: Path | None = None) -> bool:
    """Whether a project or user config file sets ``debug: true``.

    Only the top-level key is read, so logging can come up before the
    full config is loaded and validated.
    """
    for config_path in (
        (project_root or Path.cwd()) / ".mycontext" / "config.yaml",
        Path.home() / ".mycontext" / "config.yaml",
    ):
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError):
            continue
        if isinstance(data, dict) and "debug" in data:
            return data["debug"] is True
    return False


def _resolve_level(level: int | str | None, debug: bool, project_root: Path | None) -> int:
    if level is not None:
        return _parse_level(level)
    if env_level := os.environ.get("MYCONTEXT_LOG_LEVEL"):
        return _parse_level(env_level)
    wants_debug = (
        os.environ.get("MYCONTEXT_DEBUG", "").lower() in ("true", "1", "yes")
        or debug
        or _check_config_debug(project_root)
    )
    return logging.DEBUG if wants_debug else logging.WARNING


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    stream: object = None,
    persist: bool = True,
    project_root: Path | None = None,
) -> None:
    """Configure logging for the MyContext CLI.

    Args:
        debug: Enable DEBUG level with detailed format
        level: Override log level (int or string like "DEBUG", "INFO")
        stream: Output stream (default: stderr)
        persist: Store logs in .mycontext/logs/ with session rotation
        project_root: Project whose .mycontext/ holds config and logs
    """
    resolved_level = _resolve_level(level, debug, project_root)

    console_format = _DEBUG_FORMAT if resolved_level <= logging.DEBUG else _DEFAULT_FORMAT

    root_logger = logging.getLogger()
    # File handler needs DEBUG records; the console handler still filters
    root_logger.setLevel(logging.DEBUG if persist else resolved_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    if persist:
        try:
            log_dir = _get_log_directory(project_root)
            _cleanup_old_logs(log_dir)

            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            log_file = log_dir / f"session_{timestamp}.log"

            file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(_DEBUG_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            sys.stderr.write(f"Warning: Could not enable persistent logging: {e}\n")

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, debug=%s, persist=%s",
        logging.getLevelName(resolved_level),
        debug,
        persist,
    )


def _parse_level(level: int | str) -> int:
    """Parse log level from int or string."""
    if isinstance(level, int):
        return level
    numeric = getattr(logging, level.upper(), None)
    if isinstance(numeric, int):
        return numeric
    try:
        return int(level)
    except ValueError:
        return logging.WARNING
