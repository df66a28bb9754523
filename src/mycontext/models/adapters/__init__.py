"""Client adapters for different backends.

- Anthropic (Claude): direct-api and tool-capable agent clients
- Mock (testing)
"""

from mycontext.models.adapters.anthropic import AnthropicAgentClient, AnthropicClient
from mycontext.models.adapters.mock import MockAgentClient, MockClient

__all__ = [
    "AnthropicClient",
    "AnthropicAgentClient",
    "MockClient",
    "MockAgentClient",
]
