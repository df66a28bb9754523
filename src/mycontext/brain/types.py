"""Brain document types.

The brain is the shared context of a project: a narrative, a status, an
append-only event log and versioned artifacts. It lives under the
``brain`` key of ``.mycontext/context.json``.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Literal, get_args

BrainStatus = Literal["idle", "thinking", "implementing", "verifying", "paused", "user_input", "error"]
BrainRole = Literal["orchestrator", "planner", "builder", "reviewer", "user"]
UpdateKind = Literal["thought", "action", "error", "completion", "feedback"]

BRAIN_STATUSES: tuple[str, ...] = get_args(BrainStatus)
BRAIN_ROLES: tuple[str, ...] = get_args(BrainRole)
UPDATE_KINDS: tuple[str, ...] = get_args(UpdateKind)

SEED_VERSION = "1.0.0"
SEED_NARRATIVE = "Waiting for a new challenge..."


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def increment_patch(version: str) -> str:
    """Bump the PATCH component of ``MAJOR.MINOR.PATCH``.

    Versions that do not parse are returned unchanged.

    Example:
        >>> increment_patch("1.0.9")
        '1.0.10'
    """
    parts = version.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return version
    return f"{parts[0]}.{parts[1]}.{int(parts[2]) + 1}"


@dataclass(slots=True)
class BrainUpdate:
    """One entry of the append-only event log."""

    id: str
    timestamp: int
    agent: str
    role: BrainRole
    type: UpdateKind
    message: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "agent": self.agent,
            "role": self.role,
            "type": self.type,
            "message": self.message,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrainUpdate:
        return cls(
            id=str(data.get("id", "")),
            timestamp=int(data.get("timestamp", 0)),
            agent=data.get("agent", ""),
            role=data.get("role", "orchestrator"),
            type=data.get("type", "thought"),
            message=data.get("message", ""),
            metadata=data.get("metadata"),
        )


@dataclass(slots=True)
class BrainArtifact:
    """A versioned document produced by the pipeline (PRD, code, ...)."""

    path: str
    content: str
    version: int = 1
    last_updated: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "content": self.content,
            "version": self.version,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrainArtifact:
        return cls(
            path=data.get("path", ""),
            content=data.get("content", ""),
            version=int(data.get("version", 1)),
            last_updated=int(data.get("lastUpdated", 0)),
        )


@dataclass(slots=True)
class Brain:
    """Shared project context."""

    version: str = SEED_VERSION
    narrative: str = SEED_NARRATIVE
    status: BrainStatus = "idle"
    checkpoints: list[str] = field(default_factory=list)
    updates: list[BrainUpdate] = field(default_factory=list)
    artifacts: dict[str, BrainArtifact] = field(default_factory=dict)
    memory: dict[str, Any] = field(default_factory=dict)

    extra: dict[str, Any] = field(default_factory=dict)
    """Unknown keys, written back untouched."""

    @classmethod
    def seed(cls) -> Brain:
        """A fresh initial brain."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data.update({
            "version": self.version,
            "narrative": self.narrative,
            "status": self.status,
            "checkpoints": list(self.checkpoints),
            "updates": [u.to_dict() for u in self.updates],
            "artifacts": {kind: a.to_dict() for kind, a in self.artifacts.items()},
            "memory": copy.deepcopy(self.memory),
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Brain:
        known = {"version", "narrative", "status", "checkpoints", "updates", "artifacts", "memory"}
        return cls(
            version=str(data.get("version", SEED_VERSION)),
            narrative=data.get("narrative", SEED_NARRATIVE),
            status=data.get("status", "idle"),
            checkpoints=list(data.get("checkpoints") or []),
            updates=[BrainUpdate.from_dict(u) for u in data.get("updates") or []],
            artifacts={
                kind: BrainArtifact.from_dict(a) for kind, a in (data.get("artifacts") or {}).items()
            },
            memory=dict(data.get("memory") or {}),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )
