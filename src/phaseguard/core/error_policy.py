"""
Failure classification and retry backoff for agent invocations.

The policy is a table of ErrorCategory entries evaluated in order. The first
category whose patterns, error codes or exception types match decides whether
the failure is retryable and how long to wait before the next attempt.
Unrecognized failures are never retried.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

import structlog

from phaseguard.config.settings import ErrorRecoveryConfig, get_settings
from phaseguard.core.errors import PhaseguardError, ToolError, ToolResult, ValidationError

logger = structlog.get_logger(__name__)


class DelayKind(str, Enum):
    """Backoff curve applied to a category."""

    NONE = "none"
    TRANSIENT = "transient"
    RATE_LIMIT = "rate_limit"


@dataclass(frozen=True)
class ErrorCategory:
    """One row of the classification table."""

    name: str
    patterns: tuple[str, ...]
    retryable: bool
    delay: DelayKind = DelayKind.NONE
    exception_types: tuple[type[BaseException], ...] = field(default_factory=tuple)

    def matches(self, error: BaseException, haystack: str) -> bool:
        if self.exception_types and isinstance(error, self.exception_types):
            return True
        return any(pattern in haystack for pattern in self.patterns)


# Order matters: credential and validation problems win over transient hints
# that may appear in the same message.
ERROR_CATEGORIES: tuple[ErrorCategory, ...] = (
    ErrorCategory(
        name="authentication",
        patterns=("authentication", "unauthorized", "invalid api key", "invalid x-api-key", "401"),
        retryable=False,
    ),
    ErrorCategory(
        name="permission",
        patterns=("permission denied", "forbidden", "403"),
        retryable=False,
        exception_types=(PermissionError,),
    ),
    ErrorCategory(
        name="validation",
        patterns=("validation", "invalid input", "invalid argument"),
        retryable=False,
        exception_types=(ValidationError,),
    ),
    ErrorCategory(
        name="rate_limit",
        patterns=("rate limit", "rate_limit", "ratelimit", "429", "too many requests"),
        retryable=True,
        delay=DelayKind.RATE_LIMIT,
    ),
    ErrorCategory(
        name="timeout",
        patterns=("timeout", "timed out", "etimedout"),
        retryable=True,
        delay=DelayKind.TRANSIENT,
        exception_types=(TimeoutError, asyncio.TimeoutError),
    ),
    ErrorCategory(
        name="connection",
        patterns=(
            "connection reset",
            "connection refused",
            "connection aborted",
            "econnreset",
            "econnrefused",
            "socket hang up",
            "epipe",
            "network",
        ),
        retryable=True,
        delay=DelayKind.TRANSIENT,
        exception_types=(ConnectionError,),
    ),
    ErrorCategory(
        name="dns",
        patterns=("enotfound", "eai_again", "getaddrinfo", "dns"),
        retryable=True,
        delay=DelayKind.TRANSIENT,
    ),
    ErrorCategory(
        name="server",
        patterns=("502", "503", "504", "overloaded", "service unavailable", "bad gateway"),
        retryable=True,
        delay=DelayKind.TRANSIENT,
    ),
)


def _haystack(error: BaseException) -> str:
    parts = [str(error)]
    for attr in ("code", "errno"):
        value = getattr(error, attr, None)
        if value is not None:
            parts.append(str(value))
    return " ".join(parts).lower()


def classify_error(error: BaseException) -> ErrorCategory | None:
    """Return the first matching category, or None if the error is unknown."""
    haystack = _haystack(error)
    for category in ERROR_CATEGORIES:
        if category.matches(error, haystack):
            return category
    return None


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failed agent invocation should be retried."""
    if isinstance(error, PhaseguardError):
        return error.retryable
    category = classify_error(error)
    return category.retryable if category else False


def get_retry_delay(
    error: BaseException,
    attempt_number: int,
    config: ErrorRecoveryConfig | None = None,
) -> float:
    """
    Compute the delay in seconds before retrying after ``attempt_number`` failed.

    Rate-limited calls back off exponentially from ``rate_limit_base_seconds``
    without an upper bound, so the delay strictly increases with every attempt.
    Other retryable failures back off from ``base_backoff_seconds`` and are
    capped at ``max_backoff_seconds``. Non-retryable failures return 0.

    Args:
        error: The failure that ended the attempt.
        attempt_number: 1-based number of the attempt that failed.
        config: Retry settings (process settings if None).

    Returns:
        Delay in seconds.
    """
    if not is_retryable(error):
        return 0.0

    cfg = config or get_settings().error_recovery
    exponent = max(attempt_number, 1) - 1

    source = error.cause if isinstance(error, ToolError) and error.cause is not None else error
    category = classify_error(source)

    if category is not None and category.delay == DelayKind.RATE_LIMIT:
        delay = cfg.rate_limit_base_seconds * cfg.backoff_multiplier**exponent
    else:
        delay = min(cfg.base_backoff_seconds * cfg.backoff_multiplier**exponent, cfg.max_backoff_seconds)

    return _apply_jitter(delay, cfg.jitter_ratio)


def _apply_jitter(delay: float, ratio: float) -> float:
    # ratio is bounded below (multiplier - 1), so jittered rate-limit delays stay ordered
    if ratio <= 0:
        return delay
    return delay + random.uniform(0, delay * ratio)


def handle_tool_error(tool_name: str, error: BaseException) -> ToolResult:
    """
    Wrap a tool failure into the shape consumed by the retry loop.

    Args:
        tool_name: Name of the tool that failed.
        error: The raised failure.

    Returns:
        Failed ToolResult whose error carries the retryable classification.
    """
    category = classify_error(error)
    wrapped = ToolError(
        message=str(error),
        source_tool=tool_name,
        retryable=is_retryable(error),
        cause=error,
        context={"category": category.name if category else "unknown"},
    )
    logger.warning(
        "tool_error_wrapped",
        tool=tool_name,
        category=wrapped.context["category"],
        retryable=wrapped.retryable,
        message=str(error)[:200],
    )
    return ToolResult(success=False, error=wrapped)


async def log_error(
    error: BaseException,
    context: str,
    output_dir: Path | str,
    log_name: str | None = None,
) -> None:
    """
    Append a timestamped line describing ``error`` to the run's error log.

    Never raises: a broken log file must not abort the run.
    """
    logger.error("run_error", context=context, error=str(error), error_type=type(error).__name__)

    name = log_name or get_settings().output.error_log_name
    timestamp = datetime.now(timezone.utc).isoformat()
    line = f"[{timestamp}] {context}: {error} ({type(error).__name__})\n"
    try:
        log_path = Path(output_dir) / name
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        logger.warning("error_log_write_failed", output_dir=str(output_dir), error=str(e))
