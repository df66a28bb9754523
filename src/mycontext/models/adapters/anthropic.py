"""Anthropic (Claude) clients.

AnthropicClient is the direct-api backend: one request per call.
AnthropicAgentClient is the agent-sdk backend: it runs a bounded tool loop
over the workspace file tools of its working directory.

Requires: pip install mycontext[anthropic]
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mycontext.core.errors import AIClientError, ClientErrorCode, classify_client_error
from mycontext.models.protocol import (
    FILE_TOOLS,
    AgentContext,
    AIClientOptions,
    ClientType,
    GenerationResult,
    TokenUsage,
    WorkflowRunResult,
    sanitize_llm_content,
)
from mycontext.models.tools import WorkspaceTools

if TYPE_CHECKING:
    from anthropic import AsyncAnthropic

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = ("MYCONTEXT_CLAUDE_API_KEY", "ANTHROPIC_API_KEY")

DEFAULT_SYSTEM_PROMPT = (
    "You are a senior frontend engineer generating production-ready React and "
    "TypeScript code for a Next.js project using shadcn/ui and Tailwind CSS. "
    "Return only the requested code or content without commentary."
)


def resolve_api_key(environ: dict[str, str] | None = None) -> str | None:
    """First non-empty API key among the supported environment variables."""
    environ = os.environ if environ is None else environ
    for var in API_KEY_ENV_VARS:
        if value := environ.get(var):
            return value
    return None


def build_component_prompt(prompt: str, context: AgentContext | None) -> str:
    parts = []
    if context is not None and (sections := context.as_prompt_sections()):
        parts.append(sections)
    parts.append(f"## Task\nGenerate the React component described below.\n\n{prompt}")
    return "\n\n".join(parts)


def build_refinement_prompt(code: str, prompt: str, context: AgentContext | None) -> str:
    parts = []
    if context is not None and (sections := context.as_prompt_sections()):
        parts.append(sections)
    parts.append(f"## Current component\n```tsx\n{code}\n```")
    parts.append(f"## Requested changes\n{prompt}\n\nReturn the complete updated component.")
    return "\n\n".join(parts)


def build_workflow_prompt(prompt: str, context: AgentContext | None) -> str:
    parts = []
    if context is not None:
        if sections := context.as_prompt_sections():
            parts.append(sections)
        if context.previous_outputs:
            outputs = "\n".join(f"- {k}: {v}" for k, v in context.previous_outputs.items())
            parts.append(f"## Previous outputs\n{outputs}")
    parts.append(
        f"## Workflow\n{prompt}\n\n"
        "Use the available file tools to inspect and change the project, "
        "then summarize what you did."
    )
    return "\n\n".join(parts)


@dataclass
class AnthropicClient:
    """Direct Claude API client (single request per call)."""

    model: str = "claude-sonnet-4-20250514"
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4096
    request_timeout: float = 60.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    _client: AsyncAnthropic | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.api_key is None:
            self.api_key = resolve_api_key()

    @property
    def client_type(self) -> ClientType:
        return "direct-api"

    @property
    def supports_tools(self) -> bool:
        return False

    @property
    def supports_streaming(self) -> bool:
        return False

    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key
        self._client = None

    def _get_client(self) -> AsyncAnthropic:
        """Get or create the Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise ImportError(
                    "Anthropic not installed. Run: pip install mycontext[anthropic]"
                ) from e

            self._client = AsyncAnthropic(api_key=self.api_key, timeout=self.request_timeout)
        return self._client

    def _request_kwargs(
        self,
        messages: list[dict],
        options: AIClientOptions | None,
    ) -> dict[str, Any]:
        opts = options or AIClientOptions()
        return {
            "model": opts.model or self.model,
            "max_tokens": opts.max_tokens or self.max_tokens,
            "temperature": self.temperature if opts.temperature is None else opts.temperature,
            "system": opts.system_prompt or self.system_prompt,
            "messages": messages,
        }

    async def _create(self, **kwargs: Any) -> Any:
        client = self._get_client()
        try:
            return await client.messages.create(**kwargs)
        except Exception as e:
            raise classify_client_error(e) from e

    @staticmethod
    def _text_of(response: Any) -> str:
        text = "".join(block.text for block in response.content if block.type == "text")
        return sanitize_llm_content(text) or ""

    async def check_connection(self) -> bool:
        if not self.has_api_key():
            return False
        try:
            await self._create(
                model=self.model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except AIClientError as e:
            logger.debug("Connection check failed: %s", e)
            return False
        return True

    async def generate_text(self, prompt: str, options: AIClientOptions | None = None) -> str:
        kwargs = self._request_kwargs([{"role": "user", "content": prompt}], options)
        return self._text_of(await self._create(**kwargs))

    async def generate_component(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        return await self.generate_text(build_component_prompt(prompt, context), options)

    async def generate_component_refinement(
        self,
        code: str,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        return await self.generate_text(build_refinement_prompt(code, prompt, context), options)

    async def list_models(self) -> list[str]:
        """Commonly used Claude models (no listing call is made)."""
        return [
            "claude-sonnet-4-20250514",
            "claude-opus-4-20250514",
            "claude-3-5-haiku-20241022",
        ]

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


@dataclass
class AnthropicAgentClient(AnthropicClient):
    """Tool-capable Claude client confined to ``working_directory``."""

    working_directory: Path = field(default_factory=Path.cwd)
    max_tool_turns: int = 10
    _tools: WorkspaceTools | None = field(default=None, init=False, repr=False)

    @property
    def client_type(self) -> ClientType:
        return "agent-sdk"

    @property
    def supports_tools(self) -> bool:
        return True

    @property
    def supports_streaming(self) -> bool:
        return True

    def initialize(self) -> None:
        """Prepare the SDK client and the workspace tools.

        Raises:
            AIClientError: AGENT_INIT_FAILED if either cannot be set up
        """
        try:
            self._get_client()
            if not Path(self.working_directory).is_dir():
                raise NotADirectoryError(f"Not a directory: {self.working_directory}")
            self._tools = WorkspaceTools(Path(self.working_directory))
        except (ImportError, OSError) as e:
            raise AIClientError(
                f"Failed to initialize agent client: {e}",
                ClientErrorCode.AGENT_INIT_FAILED,
                retryable=False,
                cause=e,
            ) from e

    @property
    def tools(self) -> WorkspaceTools:
        if self._tools is None:
            self.initialize()
        assert self._tools is not None
        return self._tools

    async def generate_with_tools(
        self,
        prompt: str,
        tools: list[str],
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> GenerationResult:
        """Run the tool loop until the model stops asking for tools.

        Tool failures are reported back to the model as error results.

        Raises:
            AIClientError: TOOL_EXECUTION_FAILED for unknown tool names or when
                the loop exceeds ``max_tool_turns``
        """
        unknown = [name for name in tools if name not in FILE_TOOLS]
        if unknown:
            raise AIClientError(
                f"Unsupported tools: {', '.join(unknown)}",
                ClientErrorCode.TOOL_EXECUTION_FAILED,
                retryable=False,
            )

        start = time.perf_counter()
        specs = [spec.to_anthropic() for spec in self.tools.specs(tools)]
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        tools_used: list[str] = []
        input_tokens = output_tokens = 0
        text_parts: list[str] = []

        for turn in range(1, self.max_tool_turns + 1):
            kwargs = self._request_kwargs(messages, options)
            if specs:
                kwargs["tools"] = specs
            response = await self._create(**kwargs)

            input_tokens += response.usage.input_tokens
            output_tokens += response.usage.output_tokens
            if text := self._text_of(response):
                text_parts.append(text)

            tool_uses = [block for block in response.content if block.type == "tool_use"]
            if response.stop_reason != "tool_use" or not tool_uses:
                break

            messages.append({
                "role": "assistant",
                "content": [block.model_dump() for block in response.content],
            })
            messages.append({
                "role": "user",
                "content": [await self._run_tool(block, tools_used) for block in tool_uses],
            })
            logger.debug("Tool turn %d: %s", turn, [b.name for b in tool_uses])
        else:
            raise AIClientError(
                f"Tool loop exceeded {self.max_tool_turns} turns",
                ClientErrorCode.TOOL_EXECUTION_FAILED,
                retryable=False,
            )

        return GenerationResult(
            content="\n".join(text_parts),
            usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
            tools_used=tuple(tools_used),
            duration_ms=(time.perf_counter() - start) * 1000,
            context=context,
        )

    async def _run_tool(self, block: Any, tools_used: list[str]) -> dict[str, Any]:
        tools_used.append(block.name)
        try:
            output = await self.tools.dispatch(block.name, dict(block.input))
            return {"type": "tool_result", "tool_use_id": block.id, "content": output}
        except (KeyError, OSError, ValueError) as e:
            logger.warning("Tool %s failed: %s", block.name, e)
            return {
                "type": "tool_result",
                "tool_use_id": block.id,
                "content": f"Error: {e}",
                "is_error": True,
            }

    async def run_workflow(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> WorkflowRunResult:
        result = await self.generate_with_tools(
            build_workflow_prompt(prompt, context),
            sorted(FILE_TOOLS),
            context,
            options,
        )
        return WorkflowRunResult(
            success=True,
            content=result.content,
            steps=result.tools_used or ("workflow-execution",),
            context=context,
            duration_ms=result.duration_ms,
        )
