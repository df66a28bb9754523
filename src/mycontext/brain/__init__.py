"""Shared context store (the project "brain")."""

from mycontext.brain.client import BrainClient
from mycontext.brain.types import (
    Brain,
    BrainArtifact,
    BrainRole,
    BrainStatus,
    BrainUpdate,
    UpdateKind,
    increment_patch,
)

__all__ = [
    "BrainClient",
    "Brain",
    "BrainArtifact",
    "BrainUpdate",
    "BrainRole",
    "BrainStatus",
    "UpdateKind",
    "increment_patch",
]
