"""Workflow registry.

Holds the workflow definitions one scheduler knows about: the built-in
catalogue plus any YAML definitions found in the project's
``.mycontext/workflows/`` directory.

YAML format::

    id: docs-refresh
    name: Refresh Docs
    description: Regenerate the docs site
    category: maintenance
    steps:
      - id: build
        name: Build
        description: Build the site
        command: npm run docs:build
        estimated_minutes: 2
      - id: check
        name: Check links
        description: Validate links
        command: npm run docs:check
        dependencies: [build]
        auto_continue: false
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from mycontext.core.errors import ErrorCode, WorkflowError, workflow_error
from mycontext.workflow.builtin import BUILTIN_WORKFLOWS
from mycontext.workflow.types import DEFAULT_STEP_MINUTES, WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)

_STEP_KEYS = frozenset({
    "id", "name", "description", "command", "dependencies", "auto_continue",
    "estimated_minutes", "estimated_duration_ms", "required_context", "optional",
})


def _invalid(workflow: str, detail: str) -> WorkflowError:
    return workflow_error(ErrorCode.WORKFLOW_DEFINITION_INVALID, workflow=workflow, detail=detail)


def _step_from_dict(
    workflow_id: str,
    data: Any,
    default_minutes: int,
) -> WorkflowStep:
    if not isinstance(data, dict):
        raise _invalid(workflow_id, "each step must be a mapping")
    unknown = set(data) - _STEP_KEYS
    if unknown:
        raise _invalid(workflow_id, f"unknown step keys {sorted(unknown)}")
    for key in ("id", "command"):
        if not data.get(key):
            raise _invalid(workflow_id, f"step is missing '{key}'")

    deps = data.get("dependencies") or []
    if isinstance(deps, str):
        deps = [deps]
    required = data.get("required_context")
    if required is not None and not isinstance(required, dict):
        raise _invalid(workflow_id, f"step '{data['id']}': required_context must be a mapping")

    try:
        minutes = int(data.get("estimated_minutes", default_minutes))
        duration = data.get("estimated_duration_ms")
        duration = int(duration) if duration is not None else None
    except (TypeError, ValueError):
        raise _invalid(workflow_id, f"step '{data['id']}': estimates must be integers") from None

    return WorkflowStep(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        description=str(data.get("description", "")),
        command=str(data["command"]),
        dependencies=tuple(str(d) for d in deps),
        auto_continue=bool(data.get("auto_continue", True)),
        estimated_minutes=minutes,
        estimated_duration_ms=duration,
        required_context=required,
        optional=bool(data.get("optional", False)),
    )


def definition_from_dict(
    data: Any,
    default_minutes: int = DEFAULT_STEP_MINUTES,
) -> WorkflowDefinition:
    """Build and validate a definition from parsed YAML/JSON.

    Raises:
        WorkflowError: WORKFLOW_DEFINITION_INVALID with the reason
    """
    if not isinstance(data, dict):
        raise _invalid("?", "definition must be a mapping")
    workflow_id = data.get("id")
    if not workflow_id:
        raise _invalid("?", "missing 'id'")
    workflow_id = str(workflow_id)

    steps_data = data.get("steps")
    if not isinstance(steps_data, list):
        raise _invalid(workflow_id, "'steps' must be a list")

    definition = WorkflowDefinition(
        id=workflow_id,
        name=str(data.get("name", workflow_id)),
        description=str(data.get("description", "")),
        category=data.get("category", "development"),
        steps=tuple(_step_from_dict(workflow_id, s, default_minutes) for s in steps_data),
    )
    problems = definition.validate()
    if problems:
        raise _invalid(workflow_id, "; ".join(problems))
    return definition


class WorkflowRegistry:
    """Workflow definitions by id. Later registrations overwrite earlier ones."""

    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}

    @classmethod
    def with_builtins(cls) -> WorkflowRegistry:
        registry = cls()
        for definition in BUILTIN_WORKFLOWS:
            registry.register(definition)
        return registry

    def register(self, definition: WorkflowDefinition) -> None:
        if definition.id in self._workflows:
            logger.debug("Replacing workflow definition %s", definition.id)
        self._workflows[definition.id] = definition

    def get(self, workflow_id: str) -> WorkflowDefinition | None:
        return self._workflows.get(workflow_id)

    def list(self) -> list[WorkflowDefinition]:
        return list(self._workflows.values())

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)

    def load_file(self, path: Path, default_minutes: int = DEFAULT_STEP_MINUTES) -> WorkflowDefinition:
        """Load and register one YAML definition.

        Raises:
            WorkflowError: If the file is not a valid definition
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise _invalid(path.stem, str(e)) from e

        definition = definition_from_dict(data, default_minutes)
        self.register(definition)
        logger.info("Loaded workflow %s from %s", definition.id, path)
        return definition

    def load_directory(
        self,
        directory: Path,
        default_minutes: int = DEFAULT_STEP_MINUTES,
    ) -> list[WorkflowDefinition]:
        """Load every ``*.yaml``/``*.yml`` file in ``directory``.

        Invalid files are logged and skipped so one broken definition does
        not hide the rest.
        """
        if not directory.is_dir():
            return []

        loaded: list[WorkflowDefinition] = []
        for path in sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")]):
            try:
                loaded.append(self.load_file(path, default_minutes))
            except WorkflowError as e:
                logger.warning("Skipping %s: %s", path, e.message)
        return loaded
