"""Tests for logging configuration with session rotation."""

import io
import logging
import os
import time
from pathlib import Path

import pytest

from mycontext.foundation.logging import _cleanup_old_logs, _parse_level, configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _console_handler() -> logging.Handler:
    return next(h for h in logging.getLogger().handlers if not isinstance(h, logging.FileHandler))


def test_creates_session_log_file(project_root: Path) -> None:
    """Each session gets a timestamped file under .mycontext/logs/."""
    configure_logging(persist=True, project_root=project_root)

    log_files = list((project_root / ".mycontext" / "logs").glob("session_*.log"))
    assert len(log_files) == 1


def test_file_captures_debug_while_console_stays_quiet(project_root: Path) -> None:
    """The file always records DEBUG; the console honours the level."""
    stream = io.StringIO()
    configure_logging(persist=True, stream=stream, project_root=project_root)

    logger = logging.getLogger("mycontext.test")
    logger.debug("quiet detail")
    logger.warning("loud problem")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = next((project_root / ".mycontext" / "logs").glob("session_*.log")).read_text()
    assert "quiet detail" in content
    assert "loud problem" in content
    assert "quiet detail" not in stream.getvalue()
    assert "mycontext.test: loud problem" in stream.getvalue()


def test_no_persist_writes_no_files(project_root: Path) -> None:
    configure_logging(persist=False, project_root=project_root)
    assert not (project_root / ".mycontext" / "logs").exists()


def test_debug_flag(project_root: Path) -> None:
    configure_logging(debug=True, persist=False, project_root=project_root)
    assert _console_handler().level == logging.DEBUG


def test_env_level_beats_debug_flag(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MYCONTEXT_LOG_LEVEL", "ERROR")
    configure_logging(debug=True, persist=False, project_root=project_root)
    assert _console_handler().level == logging.ERROR


def test_config_file_enables_debug(project_root: Path) -> None:
    config_dir = project_root / ".mycontext"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("debug: true\n")

    configure_logging(persist=False, project_root=project_root)
    assert _console_handler().level == logging.DEBUG


def test_noisy_loggers_are_quieted(project_root: Path) -> None:
    configure_logging(debug=True, persist=False, project_root=project_root)
    assert logging.getLogger("anthropic").level == logging.WARNING


def test_cleanup_keeps_most_recent(tmp_path: Path) -> None:
    """Only the newest sessions survive rotation."""
    now = time.time()
    for i in range(5):
        log = tmp_path / f"session_{i}.log"
        log.write_text(str(i))
        os.utime(log, (now - 100 + i, now - 100 + i))

    _cleanup_old_logs(tmp_path, max_sessions=2)

    assert sorted(p.name for p in tmp_path.glob("session_*.log")) == ["session_3.log", "session_4.log"]


@pytest.mark.parametrize(
    "value,expected",
    [("debug", logging.DEBUG), (logging.INFO, logging.INFO), ("15", 15), ("bogus", logging.WARNING)],
)
def test_parse_level(value, expected) -> None:
    assert _parse_level(value) == expected
