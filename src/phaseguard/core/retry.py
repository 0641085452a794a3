"""
Retry loop for a single agent.

Ties the metrics tracker and the error policy together: every attempt is
recorded, failures are classified, and retryable failures are retried after
the computed backoff until the attempt budget runs out.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from phaseguard.audit.metrics_tracker import AttemptOutcome, MetricsTracker
from phaseguard.config.settings import get_settings
from phaseguard.core.error_policy import get_retry_delay, is_retryable

logger = structlog.get_logger(__name__)


@dataclass
class AgentRunOutcome:
    """Returned by an agent operation that completed."""

    cost_usd: float = 0.0
    checkpoint: str | None = None


async def run_with_retries(
    agent_name: str,
    operation: Callable[[int], Awaitable[AgentRunOutcome]],
    tracker: MetricsTracker,
    max_attempts: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AgentRunOutcome:
    """
    Run ``operation`` until it succeeds or the attempt budget is exhausted.

    Args:
        agent_name: Agent being executed.
        operation: Coroutine function taking the 1-based attempt number.
        tracker: Metrics tracker of the session.
        max_attempts: Attempt budget (from settings if None).
        sleep: Awaitable sleep used between attempts.

    Returns:
        The outcome of the successful attempt.

    Raises:
        Exception: The last failure, once it is non-retryable or the budget is spent.
    """
    budget = max_attempts or get_settings().error_recovery.max_attempts
    attempt = 0

    while True:
        attempt += 1
        await tracker.start_agent(agent_name, attempt)
        started = time.monotonic()

        try:
            result = await operation(attempt)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            duration_ms = (time.monotonic() - started) * 1000
            retry = is_retryable(e) and attempt < budget
            await tracker.end_agent(
                agent_name,
                AttemptOutcome(
                    attempt_number=attempt,
                    duration_ms=duration_ms,
                    cost_usd=getattr(e, "cost_usd", 0.0),
                    success=False,
                    is_final_attempt=not retry,
                    error=str(e),
                ),
            )
            if not retry:
                logger.error("agent_failed", agent=agent_name, attempt=attempt, error=str(e))
                raise

            delay = get_retry_delay(e, attempt)
            logger.warning(
                "agent_retry_scheduled",
                agent=agent_name,
                attempt=attempt,
                max_attempts=budget,
                delay_seconds=round(delay, 2),
                error=str(e)[:200],
            )
            await sleep(delay)
            continue

        duration_ms = (time.monotonic() - started) * 1000
        await tracker.end_agent(
            agent_name,
            AttemptOutcome(
                attempt_number=attempt,
                duration_ms=duration_ms,
                cost_usd=result.cost_usd,
                success=True,
                is_final_attempt=True,
                checkpoint=result.checkpoint,
            ),
        )
        return result
