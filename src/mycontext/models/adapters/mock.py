"""Mock clients for testing."""

from dataclasses import dataclass, field

from mycontext.models.protocol import (
    AgentContext,
    AIClientOptions,
    ClientType,
    GenerationResult,
    TokenUsage,
    WorkflowRunResult,
    sanitize_llm_content,
)


@dataclass(slots=True)
class MockClient:
    """Direct-api stand-in.

    Returns predefined responses in order (cycling), or echoes the prompt.
    A response that is an exception instance is raised instead of returned.
    """

    responses: list[str | BaseException] = field(default_factory=list)
    api_key: str | None = "mock-key"
    _call_count: int = field(default=0, init=False)
    _prompts: list[str] = field(default_factory=list, init=False)
    _methods: list[str] = field(default_factory=list, init=False)

    @property
    def client_type(self) -> ClientType:
        return "direct-api"

    @property
    def supports_tools(self) -> bool:
        return False

    @property
    def supports_streaming(self) -> bool:
        return False

    @property
    def call_count(self) -> int:
        """Number of generation calls."""
        return self._call_count

    @property
    def prompts(self) -> list[str]:
        """All prompts received."""
        return self._prompts

    @property
    def methods(self) -> list[str]:
        """Name of the method behind each call, in order."""
        return self._methods

    def has_api_key(self) -> bool:
        return bool(self.api_key)

    async def check_connection(self) -> bool:
        return self.has_api_key()

    def _respond(self, method: str, prompt: str) -> str:
        self._prompts.append(prompt)
        self._methods.append(method)
        self._call_count += 1

        if not self.responses:
            return f"Mock response to: {prompt[:50]}..."

        response = self.responses[(self._call_count - 1) % len(self.responses)]
        if isinstance(response, BaseException):
            raise response
        return sanitize_llm_content(response) or ""

    async def generate_text(self, prompt: str, options: AIClientOptions | None = None) -> str:
        return self._respond("generate_text", prompt)

    async def generate_component(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        return self._respond("generate_component", prompt)

    async def generate_component_refinement(
        self,
        code: str,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        return self._respond("generate_component_refinement", prompt)

    async def list_models(self) -> list[str]:
        return ["mock-model"]

    async def cleanup(self) -> None:
        pass


@dataclass(slots=True)
class MockAgentClient(MockClient):
    """Tool-capable stand-in; records the tools each call asked for."""

    _tool_requests: list[tuple[str, ...]] = field(default_factory=list, init=False)

    @property
    def client_type(self) -> ClientType:
        return "agent-sdk"

    @property
    def supports_tools(self) -> bool:
        return True

    @property
    def supports_streaming(self) -> bool:
        return True

    @property
    def tool_requests(self) -> list[tuple[str, ...]]:
        return self._tool_requests

    async def generate_with_tools(
        self,
        prompt: str,
        tools: list[str],
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> GenerationResult:
        self._tool_requests.append(tuple(tools))
        content = self._respond("generate_with_tools", prompt)
        return GenerationResult(
            content=content,
            usage=TokenUsage(input_tokens=len(prompt.split()), output_tokens=len(content.split())),
            tools_used=tuple(tools),
            context=context,
        )

    async def run_workflow(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> WorkflowRunResult:
        content = self._respond("run_workflow", prompt)
        return WorkflowRunResult(
            success=True,
            content=content,
            steps=("workflow-execution",),
            context=context,
        )
