"""Workflow progress persistence.

Progress is stored in ``.mycontext/workflow-state.json`` (one active
workflow per project) and supports:
- Atomic writes under an advisory lock
- Resume across sessions
- Rejection of writes for a run that was stopped or replaced meanwhile
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from mycontext.core.jsonstore import JsonDocument
from mycontext.workflow.types import WorkflowProgress

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path(".mycontext") / "workflow-state.json"
REQUIRED_KEYS = ("workflowId", "completedSteps", "context")


def _run_token(document: dict[str, Any]) -> tuple[Any, Any]:
    """Identity of a stored run: which workflow, started when."""
    return document.get("workflowId"), document.get("startedAt")


class WorkflowStateStore:
    """Load, save and clear a project's workflow progress.

    Example:
        >>> store = WorkflowStateStore(Path("my-app"))
        >>> store.save(progress)
        >>> store.load().completed_steps
        ['init']
    """

    def __init__(self, project_root: Path, relative_path: Path = DEFAULT_STATE_FILE):
        self.project_root = Path(project_root)
        self._document = JsonDocument(self.project_root / relative_path)

    @property
    def path(self) -> Path:
        return self._document.path

    def exists(self) -> bool:
        return self._document.exists()

    def load(self) -> WorkflowProgress | None:
        """Load persisted progress.

        Returns:
            Progress, or None if there is no file or it is invalid (logged).
        """
        try:
            data = self._document.read()
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Failed to load workflow state from %s: %s", self.path, e)
            return None
        if data is None:
            return None

        if not data.get("workflowId") or any(data.get(key) is None for key in REQUIRED_KEYS[1:]):
            logger.warning("Invalid workflow state file %s, ignoring", self.path)
            return None

        try:
            return WorkflowProgress.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid workflow state file %s, ignoring: %s", self.path, e)
            return None

    def save(self, progress: WorkflowProgress, *, fresh: bool = False) -> None:
        """Persist ``progress`` and stamp ``last_saved``.

        Unless ``fresh`` is set, the stored document must still belong to the
        same run (same workflow id and start time).

        Raises:
            StaleWriteError: If the stored progress was stopped or replaced
            OSError: If the file cannot be written
        """
        progress.last_saved = datetime.now()
        data = progress.to_dict()
        if fresh:
            self._document.save(data)
        else:
            self._document.save(
                data,
                token=_run_token,
                expected=_run_token(data),
            )
        logger.debug(
            "Saved workflow state %s (%d steps done)",
            progress.workflow_id,
            len(progress.completed_steps),
        )

    def clear(self) -> bool:
        """Delete persisted progress; True if there was any."""
        try:
            return self._document.delete()
        except OSError as e:
            logger.warning("Failed to clear workflow state %s: %s", self.path, e)
            return False
