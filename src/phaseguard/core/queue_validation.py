"""
Phase hand-off gate.

A vulnerability-analysis phase produces two artifacts: a narrative
deliverable for human review and a JSON exploitation queue consumed by the
next phase. Both must exist, and the queue must hold a ``vulnerabilities``
list, before the pipeline may advance.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from phaseguard.config.settings import get_settings
from phaseguard.core.errors import GateFailure, QueueValidationError

logger = structlog.get_logger(__name__)

QUEUE_FIELD = "vulnerabilities"


def deliverable_filename(phase: str) -> str:
    return f"{phase}_analysis_deliverable.md"


def queue_filename(phase: str) -> str:
    return f"{phase}_exploitation_queue.json"


def deliverables_dir(work_dir: Path | str) -> Path:
    """Directory inside ``work_dir`` that holds phase artifacts."""
    return Path(work_dir) / get_settings().output.deliverables_subdir


@dataclass
class QueueValidationResult:
    """Payload of a successful hand-off check."""

    should_exploit: bool
    vulnerability_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldExploit": self.should_exploit,
            "vulnerabilityCount": self.vulnerability_count,
        }


@dataclass
class SafeValidationResult:
    """Discriminated result of the non-raising gate."""

    success: bool
    data: QueueValidationResult | None = None
    error: QueueValidationError | None = None


async def validate_queue_and_deliverable(phase: str, work_dir: Path | str) -> QueueValidationResult:
    """
    Verify the deliverable/queue pair of ``phase`` inside ``work_dir``.

    Args:
        phase: Phase or vulnerability category identifier (e.g. "injection").
        work_dir: Working directory of the run.

    Returns:
        Whether the next phase has anything to exploit, and how much.

    Raises:
        QueueValidationError: If either artifact is missing, the queue is not
            JSON, or it lacks a ``vulnerabilities`` list.
    """
    directory = deliverables_dir(work_dir)
    deliverable_path = directory / deliverable_filename(phase)
    queue_path = directory / queue_filename(phase)

    deliverable_exists = deliverable_path.is_file()
    queue_exists = queue_path.is_file()
    paths = {"deliverable": str(deliverable_path), "queue": str(queue_path)}

    if not deliverable_exists and not queue_exists:
        raise QueueValidationError(
            f"Neither deliverable nor queue file exists for phase '{phase}'",
            phase=phase,
            reason=GateFailure.NO_FILES,
            context=paths,
        )
    if not queue_exists:
        raise QueueValidationError(
            f"Deliverable exists but queue file missing for phase '{phase}': {queue_path.name}",
            phase=phase,
            reason=GateFailure.MISSING_QUEUE,
            context=paths,
        )
    if not deliverable_exists:
        raise QueueValidationError(
            f"Queue exists but deliverable file missing for phase '{phase}': {deliverable_path.name}",
            phase=phase,
            reason=GateFailure.MISSING_DELIVERABLE,
            context=paths,
        )

    try:
        with open(queue_path, encoding="utf-8") as f:
            queue = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise QueueValidationError(
            f"Invalid JSON structure in {queue_path.name}: {e}",
            phase=phase,
            reason=GateFailure.INVALID_JSON,
            context=paths,
        ) from e

    entries = queue.get(QUEUE_FIELD) if isinstance(queue, dict) else None
    if not isinstance(entries, list):
        raise QueueValidationError(
            f"Missing or invalid '{QUEUE_FIELD}' array in {queue_path.name}",
            phase=phase,
            reason=GateFailure.INVALID_STRUCTURE,
            context=paths,
        )

    result = QueueValidationResult(
        should_exploit=len(entries) > 0,
        vulnerability_count=len(entries),
    )
    logger.info(
        "phase_gate_passed",
        phase=phase,
        vulnerability_count=result.vulnerability_count,
        should_exploit=result.should_exploit,
    )
    return result


async def safe_validate_queue_and_deliverable(phase: str, work_dir: Path | str) -> SafeValidationResult:
    """Same check as validate_queue_and_deliverable, returning failures instead of raising."""
    try:
        data = await validate_queue_and_deliverable(phase, work_dir)
    except QueueValidationError as e:
        logger.warning("phase_gate_failed", phase=phase, reason=e.reason.value, message=e.message)
        return SafeValidationResult(success=False, error=e)
    return SafeValidationResult(success=True, data=data)
