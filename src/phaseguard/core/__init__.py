"""
phaseguard Core Package.

Core functionality including:
- Session registry with the single-active-run-per-target rule
- Error taxonomy and the retry/backoff classification table
- Phase gate for deliverable/queue hand-offs

The retry loop lives in phaseguard.core.retry and is imported directly, since
it depends on the audit package.
"""

from phaseguard.core.error_policy import (
    ERROR_CATEGORIES,
    ErrorCategory,
    classify_error,
    get_retry_delay,
    handle_tool_error,
    is_retryable,
    log_error,
)
from phaseguard.core.errors import (
    CorruptionError,
    GateFailure,
    PhaseguardError,
    QueueValidationError,
    ToolError,
    ToolResult,
    ValidationError,
)
from phaseguard.core.queue_validation import (
    QueueValidationResult,
    SafeValidationResult,
    safe_validate_queue_and_deliverable,
    validate_queue_and_deliverable,
)
from phaseguard.core.session_store import (
    Session,
    SessionRegistry,
    SessionStatus,
    SessionStore,
)

__all__ = [
    # Error policy
    "ERROR_CATEGORIES",
    "ErrorCategory",
    "classify_error",
    "get_retry_delay",
    "handle_tool_error",
    "is_retryable",
    "log_error",
    # Errors
    "CorruptionError",
    "GateFailure",
    "PhaseguardError",
    "QueueValidationError",
    "ToolError",
    "ToolResult",
    "ValidationError",
    # Phase gate
    "QueueValidationResult",
    "SafeValidationResult",
    "safe_validate_queue_and_deliverable",
    "validate_queue_and_deliverable",
    # Session registry
    "Session",
    "SessionRegistry",
    "SessionStatus",
    "SessionStore",
]
