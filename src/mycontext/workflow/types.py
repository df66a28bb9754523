"""Workflow types: step and workflow definitions, project flags, progress.

Definitions are immutable once registered. Progress is the only mutable
piece and is what gets persisted to ``.mycontext/workflow-state.json``
(camelCase keys, ISO timestamps).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Literal

WorkflowCategory = Literal["setup", "development", "deployment", "maintenance"]
WORKFLOW_CATEGORIES: tuple[str, ...] = ("setup", "development", "deployment", "maintenance")

DEFAULT_STEP_MINUTES = 5


@dataclass(frozen=True, slots=True)
class WorkflowStep:
    """One shell-level step of a workflow."""

    id: str
    name: str
    description: str

    command: str
    """Opaque shell command line."""

    dependencies: tuple[str, ...] = ()
    """Step ids that must be completed first."""

    auto_continue: bool = True
    """Whether the step may run unattended when the caller asks for it."""

    estimated_minutes: int = DEFAULT_STEP_MINUTES
    estimated_duration_ms: int | None = None

    required_context: dict[str, Any] | None = field(default=None, hash=False)
    """Project flags the step needs (flag name -> value)."""

    optional: bool = False
    """Run even when ``required_context`` does not match."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "command": self.command,
            "dependencies": list(self.dependencies),
            "auto_continue": self.auto_continue,
            "estimated_minutes": self.estimated_minutes,
        }
        if self.estimated_duration_ms is not None:
            data["estimated_duration_ms"] = self.estimated_duration_ms
        if self.required_context:
            data["required_context"] = dict(self.required_context)
        if self.optional:
            data["optional"] = True
        return data


@dataclass(frozen=True, slots=True)
class WorkflowDefinition:
    """A named, ordered set of steps."""

    id: str
    name: str
    description: str
    category: WorkflowCategory
    steps: tuple[WorkflowStep, ...]

    @property
    def estimated_total_minutes(self) -> int:
        return sum(step.estimated_minutes for step in self.steps)

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def validate(self) -> list[str]:
        """Structural problems with this definition (empty when valid)."""
        problems: list[str] = []
        if not self.steps:
            problems.append("workflow has no steps")
        if self.category not in WORKFLOW_CATEGORIES:
            problems.append(f"unknown category '{self.category}'")

        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                problems.append(f"duplicate step id '{step.id}'")
            seen.add(step.id)

        ids = {step.id for step in self.steps}
        for step in self.steps:
            for dep in step.dependencies:
                if dep not in ids:
                    problems.append(f"step '{step.id}' depends on unknown step '{dep}'")
                elif dep == step.id:
                    problems.append(f"step '{step.id}' depends on itself")

        cycle = self._find_cycle()
        if cycle:
            problems.append(f"dependency cycle: {' -> '.join(cycle)}")
        return problems

    def _find_cycle(self) -> list[str] | None:
        """One dependency cycle as a path of step ids (first id repeated at the end)."""
        deps = {step.id: [d for d in step.dependencies if d != step.id] for step in self.steps}
        done: set[str] = set()
        path: list[str] = []

        def visit(step_id: str) -> list[str] | None:
            if step_id in path:
                return path[path.index(step_id):] + [step_id]
            if step_id in done or step_id not in deps:
                return None
            path.append(step_id)
            for dep in deps[step_id]:
                if found := visit(dep):
                    return found
            path.pop()
            done.add(step_id)
            return None

        for step in self.steps:
            if found := visit(step.id):
                return found
        return None


# camelCase keys used in the state file
_FLAG_KEYS = {
    "is_new_project": "isNewProject",
    "has_prd": "hasPRD",
    "has_context_files": "hasContextFiles",
    "has_components": "hasComponents",
    "has_shadcn": "hasShadcn",
    "has_instantdb": "hasInstantDB",
    "ai_provider_configured": "aiProviderConfigured",
    "project_type": "projectType",
    "last_command": "lastCommand",
}


@dataclass(slots=True)
class ProjectFlags:
    """Snapshot of what a project directory already contains."""

    is_new_project: bool = False
    has_prd: bool = False
    has_context_files: bool = False
    has_components: bool = False
    has_shadcn: bool = False
    has_instantdb: bool = False
    ai_provider_configured: bool = False
    project_type: str | None = None
    last_command: str | None = None

    def matches(self, required: dict[str, Any]) -> bool:
        """True when every required flag has the required value."""
        return all(getattr(self, key, None) == value for key, value in required.items())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                data[_FLAG_KEYS[f.name]] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectFlags:
        kwargs = {
            name: data[key]
            for name, key in _FLAG_KEYS.items()
            if key in data
        }
        return cls(**kwargs)


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


@dataclass(slots=True)
class WorkflowProgress:
    """Mutable progress of one workflow run in one project."""

    workflow_id: str
    started_at: datetime = field(default_factory=datetime.now)
    completed_steps: list[str] = field(default_factory=list)
    current_step_id: str | None = None
    estimated_completion: datetime | None = None
    context: ProjectFlags = field(default_factory=ProjectFlags)
    completed: bool = False
    last_saved: datetime | None = None

    def is_done(self, step_id: str) -> bool:
        return step_id in self.completed_steps

    def mark_completed(self, step_id: str) -> None:
        if step_id not in self.completed_steps:
            self.completed_steps.append(step_id)
        if self.current_step_id == step_id:
            self.current_step_id = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk format."""
        data: dict[str, Any] = {
            "workflowId": self.workflow_id,
            "completedSteps": list(self.completed_steps),
            "startedAt": self.started_at.isoformat(),
            "context": self.context.to_dict(),
        }
        if self.current_step_id is not None:
            data["currentStepId"] = self.current_step_id
        if self.estimated_completion is not None:
            data["estimatedCompletion"] = self.estimated_completion.isoformat()
        if self.completed:
            data["completed"] = True
        if self.last_saved is not None:
            data["lastSaved"] = self.last_saved.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowProgress:
        """Restore from the on-disk format.

        Raises:
            KeyError: If workflowId is missing
            ValueError: If a timestamp is not ISO formatted
        """
        return cls(
            workflow_id=data["workflowId"],
            started_at=_parse_time(data.get("startedAt")) or datetime.now(),
            completed_steps=list(data.get("completedSteps", [])),
            current_step_id=data.get("currentStepId"),
            estimated_completion=_parse_time(data.get("estimatedCompletion")),
            context=ProjectFlags.from_dict(data.get("context") or {}),
            completed=bool(data.get("completed", False)),
            last_saved=_parse_time(data.get("lastSaved")),
        )


@dataclass(frozen=True, slots=True)
class WorkflowResult:
    """Outcome of one call into the scheduler."""

    status: Literal["completed", "awaiting", "failed"]
    """completed: no steps left; awaiting: a step waits for the user;
    failed: the current step's command failed."""

    progress: WorkflowProgress

    step: WorkflowStep | None = None
    """The step that is awaiting or failed."""

    error: str | None = None
