"""Client routing: operation classification, client factory, metrics, router."""

from mycontext.routing.factory import ClientFactory
from mycontext.routing.metrics import MetricsRecorder, PerformanceMetric, PerformanceStats
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
from mycontext.routing.router import ClientRouter

__all__ = [
    "ClientFactory",
    "ClientRouter",
    "MetricsRecorder",
    "PerformanceMetric",
    "PerformanceStats",
    "Operation",
    "OperationMetadata",
    "TextGeneration",
    "ComponentGeneration",
    "ComponentRefinement",
    "WorkflowRun",
    "ToolGeneration",
    "classify_operation",
]
