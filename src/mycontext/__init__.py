"""MyContext - pipeline core for AI-driven project generation.

Workflow scheduling with resumable progress, routed model calls, self-healing
command execution and a shared project context ("brain").
"""

from mycontext.brain import Brain, BrainClient
from mycontext.config import MyContextConfig, get_config, load_config
from mycontext.core.context import PipelineContext
from mycontext.core.errors import (
    AIClientError,
    ClientErrorCode,
    ErrorCode,
    MyContextError,
    WorkflowError,
)
from mycontext.execution import DependencySentinel, ShellRunner
from mycontext.routing import ClientFactory, ClientRouter
from mycontext.workflow import WorkflowRegistry, WorkflowScheduler

__version__ = "0.1.0"

__all__ = [
    # Context
    "PipelineContext",
    # Config
    "MyContextConfig",
    "get_config",
    "load_config",
    # Errors
    "ErrorCode",
    "MyContextError",
    "WorkflowError",
    "ClientErrorCode",
    "AIClientError",
    # Components
    "Brain",
    "BrainClient",
    "ClientFactory",
    "ClientRouter",
    "DependencySentinel",
    "ShellRunner",
    "WorkflowRegistry",
    "WorkflowScheduler",
]
