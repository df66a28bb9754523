"""Brain client: reads and writes the shared context document.

Reads never raise (a missing or broken document yields the seed brain).
Writes are atomic, run under the document's advisory lock and are
rejected when another writer saved since the brain was read. Write
failures are logged and reported as ``False``.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rich.console import Console

from mycontext.brain.types import (
    BRAIN_ROLES,
    BRAIN_STATUSES,
    SEED_VERSION,
    UPDATE_KINDS,
    Brain,
    BrainArtifact,
    BrainRole,
    BrainStatus,
    BrainUpdate,
    UpdateKind,
    increment_patch,
    now_ms,
)
from mycontext.cli.theme import render_update
from mycontext.core.errors import StaleWriteError
from mycontext.core.jsonstore import JsonDocument

logger = logging.getLogger(__name__)

BRAIN_KEY = "brain"
DEFAULT_RELATIVE_PATH = Path(".mycontext") / "context.json"


def _brain_version(document: dict[str, Any]) -> str:
    brain = document.get(BRAIN_KEY)
    if not isinstance(brain, dict):
        return SEED_VERSION
    return str(brain.get("version", SEED_VERSION))


class BrainClient:
    """Client for one project's brain.

    Args:
        project_root: Project directory holding ``.mycontext/``
        relative_path: Context document path inside the project
        console: Where updates are echoed (None disables the echo)
    """

    def __init__(
        self,
        project_root: Path,
        relative_path: Path = DEFAULT_RELATIVE_PATH,
        console: Console | None = None,
    ) -> None:
        self.relative_path = Path(relative_path)
        self.console = console
        self._document = JsonDocument(Path(project_root) / self.relative_path)

    @property
    def path(self) -> Path:
        return self._document.path

    def retarget(self, project_root: Path) -> None:
        """Point the client at another project directory."""
        self._document = JsonDocument(Path(project_root) / self.relative_path)
        logger.debug("Brain retargeted to %s", self.path)

    # =========================================================================
    # Read / write
    # =========================================================================

    def get_brain(self) -> Brain:
        """Current brain, or a fresh seed if the document is absent or broken."""
        try:
            document = self._document.read()
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("Failed to read brain from %s: %s", self.path, e)
            return Brain.seed()

        return self._parse((document or {}).get(BRAIN_KEY))

    def _parse(self, raw: Any) -> Brain:
        """Brain from its stored form, or a fresh seed when that is malformed."""
        if not isinstance(raw, dict):
            return Brain.seed()
        try:
            return Brain.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Malformed brain in %s: %s", self.path, e)
            return Brain.seed()

    def save_brain(self, brain: Brain) -> bool:
        """Persist ``brain`` with its patch version bumped by one.

        Other top-level keys of the context document are preserved. The
        write is rejected if the stored version differs from ``brain.version``
        (someone saved after ``brain`` was read).

        Returns:
            True if written; ``brain.version`` is updated in place on success.
        """
        new_version = increment_patch(brain.version or SEED_VERSION)
        expected = brain.version or SEED_VERSION

        def merge(document: dict[str, Any]) -> None:
            found = _brain_version(document)
            if found != expected:
                raise StaleWriteError(str(self.path), expected, found)
            data = brain.to_dict()
            data["version"] = new_version
            document[BRAIN_KEY] = data

        try:
            self._document.update(merge)
        except StaleWriteError as e:
            logger.warning("Brain save rejected: %s", e)
            return False
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save brain to %s: %s", self.path, e)
            return False

        brain.version = new_version
        return True

    def _mutate(self, change: Callable[[Brain], Any]) -> bool:
        """Read, change and save the brain under one lock acquisition."""

        def apply(document: dict[str, Any]) -> None:
            brain = self._parse(document.get(BRAIN_KEY))
            # A malformed brain is replaced, but its version keeps counting
            brain.version = _brain_version(document)
            change(brain)
            data = brain.to_dict()
            data["version"] = increment_patch(brain.version or SEED_VERSION)
            document[BRAIN_KEY] = data

        try:
            self._document.update(apply)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save brain to %s: %s", self.path, e)
            return False
        return True

    # =========================================================================
    # Reporting helpers
    # =========================================================================

    def add_update(
        self,
        agent: str,
        role: BrainRole,
        kind: UpdateKind,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> BrainUpdate:
        """Append one event to the log, echo it and save."""
        if role not in BRAIN_ROLES:
            raise ValueError(f"Unknown role '{role}'")
        if kind not in UPDATE_KINDS:
            raise ValueError(f"Unknown update type '{kind}'")

        update = BrainUpdate(
            id=str(uuid.uuid4()),
            timestamp=now_ms(),
            agent=agent,
            role=role,
            type=kind,
            message=message,
            metadata=metadata,
        )
        if self.console is not None:
            render_update(self.console, agent, kind, message)

        self._mutate(lambda brain: brain.updates.append(update))
        return update

    def update_artifact(self, kind: str, content: str, path: str) -> bool:
        """Store an artifact: version 1 on first write, then bumped per write."""

        def change(brain: Brain) -> None:
            existing = brain.artifacts.get(kind)
            if existing is None:
                brain.artifacts[kind] = BrainArtifact(path=path, content=content)
            else:
                existing.content = content
                existing.path = path
                existing.version += 1
                existing.last_updated = now_ms()

        return self._mutate(change)

    def set_narrative(self, narrative: str) -> bool:
        return self._mutate(lambda brain: setattr(brain, "narrative", narrative))

    def set_status(self, status: BrainStatus) -> bool:
        if status not in BRAIN_STATUSES:
            raise ValueError(f"Unknown status '{status}'")
        return self._mutate(lambda brain: setattr(brain, "status", status))

    def add_checkpoint(self, label: str) -> bool:
        return self._mutate(lambda brain: brain.checkpoints.append(label))

    def remember(self, key: str, value: Any) -> bool:
        """Store a free-form value in the brain's memory."""
        return self._mutate(lambda brain: brain.memory.__setitem__(key, value))

    def reset(self) -> bool:
        """Replace the brain with a fresh seed (saved, so its version is 1.0.1)."""

        def replace(document: dict[str, Any]) -> None:
            data = Brain.seed().to_dict()
            data["version"] = increment_patch(SEED_VERSION)
            document[BRAIN_KEY] = data

        try:
            self._document.update(replace)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to reset brain at %s: %s", self.path, e)
            return False
        return True
