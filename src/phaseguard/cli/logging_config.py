"""
Logging configuration for the phaseguard CLI.

By default structlog is configured to stay quiet (warnings and errors only)
so monitor output is not interleaved with debug noise.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_cli_logging(verbose: bool = False) -> None:
    """
    Configure logging for CLI usage.

    Args:
        verbose: If True, show all debug/info logs. If False, show only warnings/errors.
    """
    log_level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("phaseguard").setLevel(log_level)

    if verbose:
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.UnicodeDecoder(),
                structlog.dev.ConsoleRenderer(colors=True),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
    else:
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_log_level,
                structlog.processors.UnicodeDecoder(),
                _quiet_renderer,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )


def _quiet_renderer(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> str:
    """Render warnings and errors as a single short line."""
    level = event_dict.get("level", method_name)
    event = event_dict.get("event", "")
    return f"[{str(level).upper()}] {event}"
