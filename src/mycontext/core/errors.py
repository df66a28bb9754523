"""MyContext Error System.

Provides structured error handling with:
- Numeric error codes for programmatic handling
- User-friendly messages
- Recovery hints for humans resuming a pipeline
- A typed client-error taxonomy with retryable flags for the router
"""


from enum import Enum, IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        1xxx - Workflow errors
        2xxx - Model/Router errors
        3xxx - Execution errors
        5xxx - Configuration errors
        7xxx - IO errors
    """

    # 1xxx - Workflow Errors
    WORKFLOW_NOT_FOUND = 1001
    WORKFLOW_ALREADY_ACTIVE = 1002
    NO_ACTIVE_WORKFLOW = 1003
    STEP_NOT_FOUND = 1004
    STEP_NOT_READY = 1005
    WORKFLOW_DEFINITION_INVALID = 1006

    # 2xxx - Model/Router Errors
    ROUTER_CALL_FAILED = 2001

    # 3xxx - Execution Errors
    COMMAND_FAILED = 3001
    SENTINEL_GAVE_UP = 3002

    # 5xxx - Configuration Errors
    CONFIG_INVALID = 5001
    CONFIG_ENV_MISSING = 5002

    # 7xxx - IO Errors
    STATE_WRITE_FAILED = 7001
    STATE_STALE_WRITE = 7002

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            1: "workflow",
            2: "model",
            3: "execution",
            5: "config",
            7: "io",
        }.get(prefix, "unknown")

    @property
    def is_recoverable(self) -> bool:
        """Whether this error type is typically recoverable."""
        non_recoverable = {
            ErrorCode.WORKFLOW_NOT_FOUND,
            ErrorCode.WORKFLOW_DEFINITION_INVALID,
            ErrorCode.CONFIG_INVALID,
        }
        return self not in non_recoverable


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.WORKFLOW_NOT_FOUND: "Workflow '{workflow}' not found.",
    ErrorCode.WORKFLOW_ALREADY_ACTIVE: "Existing workflow '{workflow}' in progress for {project}.",
    ErrorCode.NO_ACTIVE_WORKFLOW: "No active workflow found for {project}.",
    ErrorCode.STEP_NOT_FOUND: "Step '{step}' is not part of workflow '{workflow}'.",
    ErrorCode.STEP_NOT_READY: "Step '{step}' has unmet dependencies: {missing}",
    ErrorCode.WORKFLOW_DEFINITION_INVALID: "Invalid workflow definition '{workflow}': {detail}",

    ErrorCode.ROUTER_CALL_FAILED: "Generation failed: {detail}",

    ErrorCode.COMMAND_FAILED: "Command failed with exit code {exit_code}: {command}",
    ErrorCode.SENTINEL_GAVE_UP: "Sentinel gave up after {retries} retries: {command}",

    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
    ErrorCode.CONFIG_ENV_MISSING: "Environment variable '{var}' not set.",

    ErrorCode.STATE_WRITE_FAILED: "Failed to write state file: {path}",
    ErrorCode.STATE_STALE_WRITE: "State file {path} changed since it was read.",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.WORKFLOW_NOT_FOUND: [
        "Use 'mycontext workflow list' to see available workflows",
    ],
    ErrorCode.WORKFLOW_ALREADY_ACTIVE: [
        "Use 'mycontext workflow continue' to resume",
        "Use 'mycontext workflow stop' to start fresh",
    ],
    ErrorCode.NO_ACTIVE_WORKFLOW: [
        "Start a workflow with: mycontext workflow start <workflow-id>",
    ],
    ErrorCode.STEP_NOT_READY: [
        "Complete the listed dependencies first",
    ],
    ErrorCode.CONFIG_ENV_MISSING: [
        "Set the environment variable: export {var}=<value>",
        "Add it to your .env file",
    ],
    ErrorCode.STATE_STALE_WRITE: [
        "Another mycontext process is working on this project; retry once it finishes",
    ],
}


class MyContextError(Exception):
    """Base error type for all MyContext errors.

    Example:
        >>> err = MyContextError(
        ...     code=ErrorCode.WORKFLOW_NOT_FOUND,
        ...     context={"workflow": "missing"},
        ... )
        >>> print(err)
        [MC-1001] Workflow 'missing' not found.
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def is_recoverable(self) -> bool:
        return self.code.is_recoverable

    @property
    def category(self) -> str:
        return self.code.category

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'MC-1001')."""
        return f"MC-{self.code.value}"

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging/JSON output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


class WorkflowError(MyContextError):
    """Scheduler-level failure (unknown workflow, double start, nothing to resume)."""


class StaleWriteError(MyContextError):
    """A write was based on a read that another writer has since superseded."""

    def __init__(self, path: str, expected: Any, found: Any):
        super().__init__(
            ErrorCode.STATE_STALE_WRITE,
            context={"path": path, "expected": expected, "found": found},
        )


def workflow_error(code: ErrorCode, **context: Any) -> WorkflowError:
    """Create a workflow error with the given context."""
    return WorkflowError(code=code, context=context)


# =============================================================================
# Client error taxonomy (router)
# =============================================================================


class ClientErrorCode(str, Enum):
    """Typed failures surfaced by the client router."""

    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIMEOUT = "TIMEOUT"
    CONTEXT_OVERFLOW = "CONTEXT_OVERFLOW"
    AGENT_SDK_REQUIRED = "AGENT_SDK_REQUIRED"
    CLIENT_SELECTION_FAILED = "CLIENT_SELECTION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # Raised by the factory and tool loop; surfaced to callers wrapped or as-is
    NO_API_KEY = "NO_API_KEY"
    AGENT_INIT_FAILED = "AGENT_INIT_FAILED"
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"

    @property
    def retryable(self) -> bool:
        """Whether a call failing with this code may be retried as-is."""
        return self in _RETRYABLE


_RETRYABLE = frozenset({
    ClientErrorCode.PERMISSION_DENIED,
    ClientErrorCode.TIMEOUT,
    ClientErrorCode.CONTEXT_OVERFLOW,
    ClientErrorCode.TOOL_EXECUTION_FAILED,
})


class AIClientError(Exception):
    """Error raised by backend clients and the router.

    Callers branch on ``code`` and ``retryable``; the router never hides
    one of these behind a degraded result.
    """

    def __init__(
        self,
        message: str,
        code: ClientErrorCode,
        retryable: bool | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.retryable = code.retryable if retryable is None else retryable
        self.cause = cause

    def __repr__(self) -> str:
        return f"AIClientError(code={self.code.value!r}, retryable={self.retryable}, message={str(self)!r})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "retryable": self.retryable,
            "message": str(self),
        }


# Ordered: the first matching marker wins
_MESSAGE_MARKERS: tuple[tuple[tuple[str, ...], ClientErrorCode], ...] = (
    (("permission",), ClientErrorCode.PERMISSION_DENIED),
    (("timeout", "timed out"), ClientErrorCode.TIMEOUT),
    (("context",), ClientErrorCode.CONTEXT_OVERFLOW),
    (("agent sdk", "agent-sdk"), ClientErrorCode.AGENT_SDK_REQUIRED),
    (("client selection",), ClientErrorCode.CLIENT_SELECTION_FAILED),
)


def classify_client_error(exc: BaseException) -> AIClientError:
    """Normalize any exception raised by a backend call into an AIClientError.

    Existing AIClientErrors pass through untouched. Other exceptions are
    classified by inspecting their type name and message for known markers.
    """
    if isinstance(exc, AIClientError):
        return exc

    message = str(exc)
    haystack = f"{type(exc).__name__} {message}".lower()

    if isinstance(exc, TimeoutError):
        return AIClientError(message or "Request timed out", ClientErrorCode.TIMEOUT, cause=exc)

    for markers, code in _MESSAGE_MARKERS:
        if any(marker in haystack for marker in markers):
            return AIClientError(message, code, cause=exc)

    return AIClientError(message or "Unknown error", ClientErrorCode.UNKNOWN_ERROR, cause=exc)
