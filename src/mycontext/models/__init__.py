"""Generation clients and the protocol they implement."""

from mycontext.models.adapters import (
    AnthropicAgentClient,
    AnthropicClient,
    MockAgentClient,
    MockClient,
)
from mycontext.models.protocol import (
    FILE_TOOLS,
    AgentAIClient,
    AgentContext,
    AIClient,
    AIClientOptions,
    GenerationResult,
    TokenUsage,
    WorkflowRunResult,
    is_tool_capable,
)

__all__ = [
    # Protocol
    "AIClient",
    "AgentAIClient",
    "AIClientOptions",
    "AgentContext",
    "GenerationResult",
    "WorkflowRunResult",
    "TokenUsage",
    "FILE_TOOLS",
    "is_tool_capable",
    # Adapters
    "AnthropicClient",
    "AnthropicAgentClient",
    "MockClient",
    "MockAgentClient",
]
