"""
Output formatting utilities for phaseguard.

This module provides formatting helpers for timestamps, durations and costs
shown by the monitor and written to persisted documents.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp, tolerating a trailing 'Z'.

    Args:
        value: Timestamp string.

    Returns:
        Timezone-aware datetime, or None if missing or unparseable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_duration(duration_ms: float) -> str:
    """
    Format a duration in milliseconds to a human-readable string.

    Args:
        duration_ms: Duration in milliseconds.

    Returns:
        String such as "850ms", "12.4s", "3m 5s" or "1h 2m".
    """
    if duration_ms < 1000:
        return f"{int(duration_ms)}ms"

    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_cost(cost_usd: float) -> str:
    """Format a USD cost with four decimals."""
    return f"${cost_usd:.4f}"
