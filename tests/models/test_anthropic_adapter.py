"""Tests for the Anthropic clients against a fake SDK."""

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from mycontext.core.errors import AIClientError, ClientErrorCode
from mycontext.models.adapters.anthropic import (
    DEFAULT_SYSTEM_PROMPT,
    AnthropicAgentClient,
    AnthropicClient,
    build_component_prompt,
    resolve_api_key,
)
from mycontext.models.protocol import AgentContext, AIClientOptions


class Block(SimpleNamespace):
    def model_dump(self) -> dict[str, Any]:
        return dict(vars(self))


def text_response(text: str, stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        content=[Block(type="text", text=text)],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def tool_response(name: str, args: dict, block_id: str = "tu_1") -> SimpleNamespace:
    return SimpleNamespace(
        content=[Block(type="tool_use", id=block_id, name=name, input=args)],
        stop_reason="tool_use",
        usage=SimpleNamespace(input_tokens=7, output_tokens=3),
    )


class FakeMessages:
    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeSDK:
    def __init__(self, responses: list[Any]):
        self.messages = FakeMessages(responses)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _with_sdk(client: AnthropicClient, responses: list[Any]) -> FakeSDK:
    sdk = FakeSDK(responses)
    client._client = sdk
    return sdk


def test_resolve_api_key_order() -> None:
    env = {"ANTHROPIC_API_KEY": "b", "MYCONTEXT_CLAUDE_API_KEY": "a"}
    assert resolve_api_key(env) == "a"
    assert resolve_api_key({"ANTHROPIC_API_KEY": "b"}) == "b"
    assert resolve_api_key({}) is None


def test_key_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    assert not AnthropicClient().has_api_key()
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    assert AnthropicClient().has_api_key()


class TestDirectClient:
    """Single-request generation."""

    @pytest.mark.asyncio
    async def test_generate_text(self) -> None:
        client = AnthropicClient(api_key="k")
        sdk = _with_sdk(client, [text_response("Hello\x07 there")])

        assert await client.generate_text("Hi") == "Hello there"
        call = sdk.messages.calls[0]
        assert call["model"] == "claude-sonnet-4-20250514"
        assert call["system"] == DEFAULT_SYSTEM_PROMPT
        assert call["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_options_override_defaults(self) -> None:
        client = AnthropicClient(api_key="k")
        sdk = _with_sdk(client, [text_response("ok")])

        await client.generate_text("Hi", AIClientOptions(model="m", temperature=0.0, max_tokens=9))

        call = sdk.messages.calls[0]
        assert (call["model"], call["temperature"], call["max_tokens"]) == ("m", 0.0, 9)

    @pytest.mark.asyncio
    async def test_sdk_errors_are_classified(self) -> None:
        client = AnthropicClient(api_key="k")
        _with_sdk(client, [RuntimeError("prompt is too long for the context window")])

        with pytest.raises(AIClientError) as exc_info:
            await client.generate_text("Hi")
        assert exc_info.value.code == ClientErrorCode.CONTEXT_OVERFLOW

    @pytest.mark.asyncio
    async def test_check_connection(self) -> None:
        assert not await AnthropicClient(api_key="").check_connection()

        client = AnthropicClient(api_key="k")
        _with_sdk(client, [RuntimeError("Permission denied")])
        assert not await client.check_connection()

    @pytest.mark.asyncio
    async def test_cleanup_closes_sdk(self) -> None:
        client = AnthropicClient(api_key="k")
        sdk = _with_sdk(client, [text_response("ok")])
        await client.cleanup()
        assert sdk.closed

    def test_component_prompt_includes_context(self) -> None:
        prompt = build_component_prompt("A card", AgentContext(prd="# Shop"))
        assert prompt.startswith("## Product requirements\n# Shop")
        assert prompt.endswith("A card")


class TestAgentClient:
    """Tool loop over the workspace."""

    def _client(self, root: Path, responses: list[Any], **kwargs: Any) -> tuple[AnthropicAgentClient, FakeSDK]:
        client = AnthropicAgentClient(api_key="k", working_directory=root, **kwargs)
        sdk = _with_sdk(client, responses)
        client.initialize()
        return client, sdk

    @pytest.mark.asyncio
    async def test_tool_loop_runs_tools_and_returns_text(self, project_root: Path) -> None:
        client, sdk = self._client(project_root, [
            tool_response("Write", {"path": "notes.md", "content": "hi"}),
            text_response("Created notes.md"),
        ])

        result = await client.generate_with_tools("Write a note", ["Write"])

        assert (project_root / "notes.md").read_text() == "hi"
        assert result.content == "Created notes.md"
        assert result.tools_used == ("Write",)
        assert result.usage.input_tokens == 17
        assert [t["name"] for t in sdk.messages.calls[0]["tools"]] == ["Write"]
        tool_result = sdk.messages.calls[1]["messages"][-1]["content"][0]
        assert tool_result["type"] == "tool_result"
        assert tool_result["tool_use_id"] == "tu_1"

    @pytest.mark.asyncio
    async def test_tool_errors_go_back_to_model(self, project_root: Path) -> None:
        client, sdk = self._client(project_root, [
            tool_response("Read", {"path": "../secret"}),
            text_response("Could not read it"),
        ])

        await client.generate_with_tools("Read secret", ["Read"])

        tool_result = sdk.messages.calls[1]["messages"][-1]["content"][0]
        assert tool_result["is_error"] is True
        assert "escapes workspace" in tool_result["content"]

    @pytest.mark.asyncio
    async def test_tool_loop_is_bounded(self, project_root: Path) -> None:
        client, _ = self._client(project_root, [tool_response("Glob", {"pattern": "*"})], max_tool_turns=2)

        with pytest.raises(AIClientError) as exc_info:
            await client.generate_with_tools("loop forever", ["Glob"])
        assert exc_info.value.code == ClientErrorCode.TOOL_EXECUTION_FAILED

    @pytest.mark.asyncio
    async def test_unsupported_tool_names(self, project_root: Path) -> None:
        client, _ = self._client(project_root, [text_response("x")])
        with pytest.raises(AIClientError) as exc_info:
            await client.generate_with_tools("run", ["Bash"])
        assert exc_info.value.code == ClientErrorCode.TOOL_EXECUTION_FAILED

    @pytest.mark.asyncio
    async def test_run_workflow_offers_all_file_tools(self, project_root: Path) -> None:
        client, sdk = self._client(project_root, [text_response("Nothing to do")])

        result = await client.run_workflow("Tidy up", AgentContext(previous_outputs={"prd": "done"}))

        assert result.success
        assert result.steps == ("workflow-execution",)
        assert sorted(t["name"] for t in sdk.messages.calls[0]["tools"]) == ["Edit", "Glob", "Read", "Write"]
        assert "## Previous outputs\n- prd: done" in sdk.messages.calls[0]["messages"][0]["content"]

    def test_initialize_rejects_missing_directory(self, tmp_path: Path) -> None:
        client = AnthropicAgentClient(api_key="k", working_directory=tmp_path / "missing")
        client._client = FakeSDK([text_response("x")])
        with pytest.raises(AIClientError) as exc_info:
            client.initialize()
        assert exc_info.value.code == ClientErrorCode.AGENT_INIT_FAILED
