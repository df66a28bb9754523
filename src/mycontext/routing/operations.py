"""Router operations and their classification.

Every router call is described by exactly one operation variant. The
variants form a closed union; classify_operation() derives the
OperationMetadata the factory uses to pick a client.
"""

import math
from dataclasses import dataclass, field
from typing import Literal

from mycontext.models.protocol import FILE_TOOLS, AgentContext

Complexity = Literal["simple", "moderate", "complex"]

SIMPLE_PROMPT_CHARS = 500
LARGE_PROMPT_CHARS = 1000
LARGE_CODE_CHARS = 2000
STREAMING_DURATION_MS = 5000


@dataclass(frozen=True, slots=True)
class TextGeneration:
    prompt: str
    estimated_duration_ms: int | None = None

    kind = "text-generation"


@dataclass(frozen=True, slots=True)
class ComponentGeneration:
    prompt: str
    context: AgentContext | None = None
    estimated_duration_ms: int | None = None

    kind = "component-generation"


@dataclass(frozen=True, slots=True)
class ComponentRefinement:
    code: str
    prompt: str
    context: AgentContext | None = None
    estimated_duration_ms: int | None = None

    kind = "component-refinement"


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    prompt: str
    context: AgentContext | None = None

    kind = "workflow"


@dataclass(frozen=True, slots=True)
class ToolGeneration:
    prompt: str
    tools: tuple[str, ...] = field(default_factory=tuple)
    context: AgentContext | None = None
    estimated_duration_ms: int | None = None

    kind = "generation-with-tools"


Operation = TextGeneration | ComponentGeneration | ComponentRefinement | WorkflowRun | ToolGeneration


@dataclass(frozen=True, slots=True)
class OperationMetadata:
    """What an operation needs from a client. Derived per call, never stored on disk."""

    complexity: Complexity
    requires_tools: bool
    requires_streaming: bool
    requires_multi_step: bool
    requires_file_access: bool
    requires_validation: bool
    estimated_tokens: int


def _tokens(text: str | None) -> int:
    # Rough approximation: one token per four characters
    return math.ceil(len(text) / 4) if text else 0


def _complexity(op: Operation) -> Complexity:
    if isinstance(op, WorkflowRun | ToolGeneration):
        return "complex"

    if isinstance(op, ComponentGeneration | ComponentRefinement):
        rich = op.context is not None and op.context.has_rich_context
        code = op.code if isinstance(op, ComponentRefinement) else ""
        large = len(op.prompt) > LARGE_PROMPT_CHARS or len(code) > LARGE_CODE_CHARS
        if rich and large:
            return "complex"
        if rich or large:
            return "moderate"

    return "simple" if len(op.prompt) < SIMPLE_PROMPT_CHARS else "moderate"


def classify_operation(op: Operation) -> OperationMetadata:
    """Derive the requirements of one router call.

    Example:
        >>> classify_operation(TextGeneration("hello")).complexity
        'simple'
        >>> classify_operation(WorkflowRun("ship it")).requires_tools
        True
    """
    context = getattr(op, "context", None)
    tools = op.tools if isinstance(op, ToolGeneration) else ()
    working_dir = context is not None and bool(context.working_directory)
    is_workflow = isinstance(op, WorkflowRun)
    duration = getattr(op, "estimated_duration_ms", None)

    tokens = _tokens(op.prompt)
    if isinstance(op, ComponentRefinement):
        tokens += _tokens(op.code)
    if context is not None:
        tokens += _tokens(context.prd) + _tokens(context.types) + _tokens(context.brand)

    return OperationMetadata(
        complexity=_complexity(op),
        requires_tools=bool(tools) or is_workflow or isinstance(op, ToolGeneration) or working_dir,
        requires_streaming=is_workflow or (duration is not None and duration > STREAMING_DURATION_MS),
        requires_multi_step=isinstance(op, WorkflowRun | ToolGeneration),
        requires_file_access=working_dir or any(t in FILE_TOOLS for t in tools),
        requires_validation=isinstance(op, ComponentGeneration | ComponentRefinement | WorkflowRun),
        estimated_tokens=tokens,
    )
