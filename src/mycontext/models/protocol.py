"""Client protocol - backend-agnostic generation interface.

Every backend the router can hand work to implements AIClient. Backends
that can drive tools (file access in a working directory, multi-step
workflows) also implement AgentAIClient.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ClientType = Literal["direct-api", "agent-sdk", "hybrid"]

FILE_TOOLS = frozenset({"Read", "Write", "Edit", "Glob"})


def sanitize_llm_content(text: str | None) -> str | None:
    """Remove control characters from model output.

    Preserves newlines, carriage returns and tabs.
    """
    if text is None:
        return None

    sanitized = "".join(c for c in text if not (ord(c) < 32 and c not in "\n\r\t"))
    if len(sanitized) != len(text):
        logger.debug("Sanitized %d control chars from model output", len(text) - len(sanitized))
    return sanitized


# =============================================================================
# Request types
# =============================================================================


@dataclass(frozen=True, slots=True)
class AIClientOptions:
    """Per-call generation options; unset fields fall back to client defaults."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
    working_directory: str | None = None


@dataclass(frozen=True, slots=True)
class AgentContext:
    """Project context handed to generation calls.

    ``prd``, ``types`` and ``brand`` are the documents produced by earlier
    pipeline steps; empty strings count as absent.
    """

    prd: str | None = None
    types: str | None = None
    brand: str | None = None
    component_list: Any = None
    project_structure: str | None = None
    previous_outputs: dict[str, Any] = field(default_factory=dict)
    user_prompt: str | None = None
    working_directory: str | None = None

    @property
    def has_rich_context(self) -> bool:
        return bool(self.prd or self.types or self.brand)

    def as_prompt_sections(self) -> str:
        """Render the non-empty documents as prompt sections."""
        sections = []
        if self.prd:
            sections.append(f"## Product requirements\n{self.prd}")
        if self.types:
            sections.append(f"## Types\n{self.types}")
        if self.brand:
            sections.append(f"## Brand\n{self.brand}")
        if self.project_structure:
            sections.append(f"## Project structure\n{self.project_structure}")
        return "\n\n".join(sections)


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token usage statistics."""

    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Result of a tool-assisted generation."""

    content: str
    usage: TokenUsage | None = None
    tools_used: tuple[str, ...] = ()
    duration_ms: float | None = None
    context: AgentContext | None = None


@dataclass(frozen=True, slots=True)
class WorkflowRunResult:
    """Result of a multi-step agent workflow."""

    success: bool
    content: str
    steps: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    context: AgentContext | None = None
    duration_ms: float | None = None


# =============================================================================
# Client protocols
# =============================================================================


@runtime_checkable
class AIClient(Protocol):
    """Protocol for generation backends.

    Implementations: AnthropicClient, AnthropicAgentClient, MockClient.
    """

    @property
    def client_type(self) -> ClientType: ...

    @property
    def supports_tools(self) -> bool: ...

    @property
    def supports_streaming(self) -> bool: ...

    def has_api_key(self) -> bool: ...

    async def check_connection(self) -> bool: ...

    async def generate_text(self, prompt: str, options: AIClientOptions | None = None) -> str:
        """Plain text generation."""
        ...

    async def generate_component(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        """Generate component code from a prompt and project context."""
        ...

    async def generate_component_refinement(
        self,
        code: str,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        """Return a revised version of ``code`` following ``prompt``."""
        ...

    async def list_models(self) -> list[str]: ...


@runtime_checkable
class AgentAIClient(AIClient, Protocol):
    """Tool-capable backend."""

    async def run_workflow(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> WorkflowRunResult: ...

    async def generate_with_tools(
        self,
        prompt: str,
        tools: list[str],
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> GenerationResult: ...


def is_tool_capable(client: object) -> bool:
    """Whether ``client`` can serve tool-requiring operations."""
    return (
        getattr(client, "client_type", None) in ("agent-sdk", "hybrid")
        and bool(getattr(client, "supports_tools", False))
    )
