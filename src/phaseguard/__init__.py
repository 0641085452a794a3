"""
phaseguard: run-state and phase-gating backbone for multi-agent security assessments.

This package tracks assessment sessions, records per-agent attempt telemetry,
classifies failures for retry decisions, and verifies that each pipeline phase
hands off a consistent deliverable/queue pair before the next phase starts.
"""

from importlib.metadata import version

__version__ = version("phaseguard")
__all__ = ["__version__"]
