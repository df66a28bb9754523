"""Workflow module: dependency-ordered, resumable step execution.

This module provides:
- WorkflowScheduler: runs workflow steps, persists progress, resumes
- WorkflowRegistry: built-in and YAML-defined workflows
- WorkflowStateStore: progress persistence across sessions
- scan_project_context: project flags steps can depend on
"""

from mycontext.workflow.engine import WorkflowScheduler, get_next_step
from mycontext.workflow.project import scan_project_context
from mycontext.workflow.registry import WorkflowRegistry, definition_from_dict
from mycontext.workflow.state import WorkflowStateStore
from mycontext.workflow.types import (
    ProjectFlags,
    WorkflowCategory,
    WorkflowDefinition,
    WorkflowProgress,
    WorkflowResult,
    WorkflowStep,
)

__all__ = [
    # Engine
    "WorkflowScheduler",
    "get_next_step",
    # Registry
    "WorkflowRegistry",
    "definition_from_dict",
    # State
    "WorkflowStateStore",
    "scan_project_context",
    # Types
    "ProjectFlags",
    "WorkflowCategory",
    "WorkflowDefinition",
    "WorkflowProgress",
    "WorkflowResult",
    "WorkflowStep",
]
