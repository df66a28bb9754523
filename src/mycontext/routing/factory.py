"""Client factory: picks a client type for an operation and caches instances."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from mycontext.config import ModelConfig, RouterConfig
from mycontext.core.errors import AIClientError, ClientErrorCode
from mycontext.models.protocol import AIClient
from mycontext.routing.operations import Complexity

logger = logging.getLogger(__name__)

SelectableClient = Literal["direct-api", "agent-sdk"]
ClientBuilder = Callable[[Path], AIClient]


def _anthropic_builders(model: ModelConfig) -> dict[str, ClientBuilder]:
    from mycontext.models.adapters.anthropic import AnthropicAgentClient, AnthropicClient

    def direct(_: Path) -> AIClient:
        return AnthropicClient(
            model=model.default_model,
            temperature=model.temperature,
            max_tokens=model.max_tokens,
            request_timeout=model.request_timeout,
        )

    def agent(working_directory: Path) -> AIClient:
        return AnthropicAgentClient(
            model=model.default_model,
            temperature=model.temperature,
            max_tokens=model.max_tokens,
            request_timeout=model.request_timeout,
            working_directory=working_directory,
            max_tool_turns=model.max_tool_turns,
        )

    return {"direct-api": direct, "agent-sdk": agent}


class ClientFactory:
    """Creates and caches clients per (client type, working directory).

    Args:
        config: Router section of the configuration
        working_directory: Directory tool-capable clients are confined to
        builders: Client constructors by type (defaults to the Anthropic clients)
        model: Model defaults handed to the default builders
    """

    def __init__(
        self,
        config: RouterConfig | None = None,
        working_directory: Path | None = None,
        builders: dict[str, ClientBuilder] | None = None,
        model: ModelConfig | None = None,
    ) -> None:
        self.config = config or RouterConfig()
        self.working_directory = (working_directory or Path.cwd()).resolve()
        self._builders = builders if builders is not None else _anthropic_builders(model or ModelConfig())
        self._cache: dict[tuple[str, str], AIClient] = {}

    def set_working_directory(self, path: Path) -> None:
        self.working_directory = path.resolve()

    def select_client_type(
        self,
        complexity: Complexity | None = None,
        requires_tools: bool = False,
        requires_streaming: bool = False,
    ) -> SelectableClient:
        preferred = self.config.preferred_client
        if preferred == "direct-api":
            if requires_tools:
                logger.warning(
                    "Operation requires tools but preferred_client is direct-api; consider agent-sdk"
                )
            return "direct-api"
        if preferred == "agent-sdk":
            return "agent-sdk"

        if self.config.auto_select_by_complexity:
            if complexity == "complex" or requires_tools or requires_streaming:
                return "agent-sdk"
            if complexity == "simple":
                return "direct-api"
        return "agent-sdk"

    def get_client(
        self,
        complexity: Complexity | None = None,
        requires_tools: bool = False,
        requires_streaming: bool = False,
    ) -> AIClient:
        """Return a cached or freshly built client for the given requirements.

        Raises:
            AIClientError: NO_API_KEY when the client has no credentials,
                AGENT_INIT_FAILED when a tool-capable client cannot start
        """
        client_type = self.select_client_type(complexity, requires_tools, requires_streaming)
        key = (client_type, str(self.working_directory))
        if (cached := self._cache.get(key)) is not None:
            return cached

        client = self._create(client_type)
        self._cache[key] = client
        logger.debug("Created %s client for %s", client_type, self.working_directory)
        return client

    def _create(self, client_type: SelectableClient) -> AIClient:
        builder = self._builders.get(client_type)
        if builder is None:
            raise AIClientError(
                f"No builder registered for client type '{client_type}'",
                ClientErrorCode.CLIENT_SELECTION_FAILED,
                retryable=False,
            )

        client = builder(self.working_directory)
        if not client.has_api_key():
            raise AIClientError(
                "Claude API key not configured. Set MYCONTEXT_CLAUDE_API_KEY or ANTHROPIC_API_KEY",
                ClientErrorCode.NO_API_KEY,
                retryable=False,
            )

        initialize = getattr(client, "initialize", None)
        if client_type == "agent-sdk" and callable(initialize):
            try:
                initialize()
            except AIClientError:
                raise
            except Exception as e:
                raise AIClientError(
                    f"Failed to initialize agent client: {e}",
                    ClientErrorCode.AGENT_INIT_FAILED,
                    retryable=False,
                    cause=e,
                ) from e
        return client

    async def test_connection(self, client_type: SelectableClient = "agent-sdk") -> bool:
        try:
            client = self._create(client_type)
            return await client.check_connection()
        except AIClientError as e:
            logger.debug("Connection test for %s failed: %s", client_type, e)
            return False

    def clear_cache(self) -> None:
        self._cache.clear()

    async def cleanup(self) -> None:
        """Release every cached client, then clear the cache."""
        for (client_type, directory), client in self._cache.items():
            cleanup = getattr(client, "cleanup", None)
            if cleanup is None:
                continue
            try:
                await cleanup()
            except Exception as e:
                logger.error("Failed to clean up %s client for %s: %s", client_type, directory, e)
        self.clear_cache()

    def get_stats(self) -> dict[str, Any]:
        client_types: dict[str, int] = {}
        for client_type, _ in self._cache:
            client_types[client_type] = client_types.get(client_type, 0) + 1
        return {"cached_clients": len(self._cache), "client_types": client_types}
