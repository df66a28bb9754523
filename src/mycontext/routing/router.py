"""Client router.

Classifies each generation request, asks the factory for a suitable
client, invokes it under the retry policy and records one performance
sample per attempt. Errors leave the router as typed AIClientErrors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from mycontext.core.errors import AIClientError, ClientErrorCode, classify_client_error
from mycontext.core.retry import RetryPolicy, run_with_retry
from mycontext.models.protocol import (
    AgentAIClient,
    AgentContext,
    AIClient,
    AIClientOptions,
    GenerationResult,
    WorkflowRunResult,
    is_tool_capable,
)
from mycontext.routing.factory import ClientFactory
from mycontext.routing.metrics import MetricsRecorder, PerformanceStats
from mycontext.routing.operations import (
    ComponentGeneration,
    ComponentRefinement,
    Operation,
    OperationMetadata,
    TextGeneration,
    ToolGeneration,
    WorkflowRun,
    classify_operation,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClientRouter:
    """Routes generation calls to the client best suited for them.

    Example:
        >>> router = ClientRouter(ClientFactory(builders=...))
        >>> text = await router.generate_text("Summarize the PRD")
    """

    def __init__(
        self,
        factory: ClientFactory,
        retry_policy: RetryPolicy | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self.factory = factory
        self.retry_policy = retry_policy or RetryPolicy.none()
        self.metrics = metrics or MetricsRecorder()
        self._history: dict[str, OperationMetadata] = {}

    # =========================================================================
    # Public operations
    # =========================================================================

    async def generate_text(self, prompt: str, options: AIClientOptions | None = None) -> str:
        op = TextGeneration(prompt)
        return await self._route(op, lambda c: c.generate_text(prompt, options))

    async def generate_component(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        op = ComponentGeneration(prompt, context)
        return await self._route(op, lambda c: c.generate_component(prompt, context, options))

    async def refine_component(
        self,
        code: str,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> str:
        op = ComponentRefinement(code, prompt, context)
        return await self._route(
            op, lambda c: c.generate_component_refinement(code, prompt, context, options)
        )

    async def run_workflow(
        self,
        prompt: str,
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> WorkflowRunResult:
        op = WorkflowRun(prompt, context)
        return await self._route(
            op, lambda c: c.run_workflow(prompt, context, options), needs_agent=True
        )

    async def generate_with_tools(
        self,
        prompt: str,
        tools: list[str],
        context: AgentContext | None = None,
        options: AIClientOptions | None = None,
    ) -> GenerationResult:
        op = ToolGeneration(prompt, tuple(tools), context)
        return await self._route(
            op, lambda c: c.generate_with_tools(prompt, list(tools), context, options), needs_agent=True
        )

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_performance_stats(self, kind: str | None = None) -> PerformanceStats:
        """Stats for one operation kind, or across all kinds."""
        return self.metrics.stats(kind)

    @property
    def operation_history(self) -> dict[str, OperationMetadata]:
        """Most recent metadata per operation kind."""
        return dict(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        self.metrics.clear()

    def stats_rows(self) -> list[dict[str, Any]]:
        """One row per operation kind, ready for a table."""
        rows = []
        for kind in self.metrics.kinds():
            stats = self.metrics.stats(kind)
            rows.append({
                "operation": kind,
                "count": stats.count,
                "success": f"{stats.success_rate:.0%}",
                "avg ms": f"{stats.avg_duration_ms:.0f}",
                "range ms": f"{stats.min_duration_ms:.0f}-{stats.max_duration_ms:.0f}",
            })
        return rows

    # =========================================================================
    # Internals
    # =========================================================================

    async def _route(
        self,
        op: Operation,
        call: Callable[[Any], Awaitable[T]],
        *,
        needs_agent: bool = False,
    ) -> T:
        metadata = classify_operation(op)
        self._history[op.kind] = metadata

        client = self._select(metadata)
        if needs_agent and not is_tool_capable(client):
            raise AIClientError(
                f"Operation '{op.kind}' requires an agent-sdk client",
                ClientErrorCode.AGENT_SDK_REQUIRED,
                retryable=False,
            )

        logger.debug(
            "Routing %s (%s, ~%d tokens) to %s",
            op.kind, metadata.complexity, metadata.estimated_tokens, client.client_type,
        )
        return await run_with_retry(
            lambda: self._attempt(op.kind, client, call),
            self.retry_policy,
        )

    def _select(self, metadata: OperationMetadata) -> AIClient | AgentAIClient:
        try:
            return self.factory.get_client(
                metadata.complexity,
                metadata.requires_tools,
                metadata.requires_streaming,
            )
        except Exception as e:
            raise AIClientError(
                f"Failed to get AI client: {e}",
                ClientErrorCode.CLIENT_SELECTION_FAILED,
                retryable=False,
                cause=e,
            ) from e

    async def _attempt(self, kind: str, client: Any, call: Callable[[Any], Awaitable[T]]) -> T:
        start = time.perf_counter()
        try:
            result = await call(client)
        except Exception as e:
            self.metrics.record(kind, (time.perf_counter() - start) * 1000, success=False)
            normalized = classify_client_error(e)
            if normalized is e:
                raise
            raise normalized from e
        self.metrics.record(kind, (time.perf_counter() - start) * 1000, success=True)
        return result
