"""Core building blocks: errors, retry policy, locked JSON documents.

PipelineContext lives in mycontext.core.context and is imported from there
(it depends on every other package).
"""

from mycontext.core.errors import (
    AIClientError,
    ClientErrorCode,
    ErrorCode,
    MyContextError,
    StaleWriteError,
    WorkflowError,
    classify_client_error,
)
from mycontext.core.jsonstore import JsonDocument
from mycontext.core.retry import RetryPolicy, run_with_retry

__all__ = [
    # Errors
    "ErrorCode",
    "MyContextError",
    "WorkflowError",
    "StaleWriteError",
    "ClientErrorCode",
    "AIClientError",
    "classify_client_error",
    # Retry
    "RetryPolicy",
    "run_with_retry",
    # Persistence
    "JsonDocument",
]
