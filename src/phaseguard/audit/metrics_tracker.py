"""
Attempt-level metrics tracking for agents.

The tracker keeps the per-session metrics document in memory and persists the
whole document after every mutation, so a monitor reading the file sees each
attempt start and finish as it happens. Reading is forgiving (an unreadable
document starts over empty); writing is not (failures raise CorruptionError).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path

import structlog

from phaseguard.audit.models import (
    AgentMetrics,
    AgentStatus,
    AttemptRecord,
    CurrentAttempt,
    RunMetrics,
    SessionDocument,
    SessionInfo,
    SessionMetadata,
    phase_for_agent,
)
from phaseguard.audit.utils import generate_session_json_path, read_session_document
from phaseguard.core.errors import CorruptionError
from phaseguard.core.session_store import SessionStatus
from phaseguard.utils.files import write_json_atomic
from phaseguard.utils.formatting import utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class AttemptOutcome:
    """What the orchestrator reports when an attempt ends."""

    attempt_number: int
    duration_ms: float
    cost_usd: float
    success: bool
    is_final_attempt: bool
    error: str | None = None
    checkpoint: str | None = None


class MetricsTracker:
    """
    Records agent attempts into a session's metrics document.

    Callers must serialize start_agent/end_agent for any given agent; the
    tracker takes no lock.
    """

    def __init__(self, metadata: SessionMetadata, path: Path | None = None) -> None:
        """
        Initialize the tracker.

        Args:
            metadata: Session identity and output location.
            path: Explicit document path (derived from metadata if None).
        """
        self._metadata = metadata
        self._path = path or generate_session_json_path(metadata)
        self._document: SessionDocument | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _empty_document(self) -> SessionDocument:
        return SessionDocument(
            session=SessionInfo(
                id=self._metadata.id,
                web_url=self._metadata.web_url,
                repo_path=self._metadata.repo_path,
            )
        )

    async def _load(self) -> SessionDocument:
        document = await read_session_document(self._path)
        if document is None:
            if self._path.exists():
                logger.warning("metrics_document_reset", path=str(self._path))
            document = self._empty_document()
        return document

    async def _ensure_loaded(self) -> SessionDocument:
        if self._document is None:
            self._document = await self._load()
        return self._document

    async def _draft(self) -> SessionDocument:
        """Working copy of the document; committed only once it is persisted."""
        return copy.deepcopy(await self._ensure_loaded())

    async def _save(self, document: SessionDocument) -> None:
        document.metrics.recompute_phases()
        try:
            write_json_atomic(self._path, document.to_dict())
        except OSError as e:
            raise CorruptionError(
                f"Failed to write metrics document: {e}",
                context={"path": str(self._path), "session_id": self._metadata.id},
            ) from e
        self._document = document

    async def initialize(self) -> None:
        """Load the metrics document, creating an empty one if absent or unreadable."""
        document = await read_session_document(self._path)
        if document is None:
            await self._save(await self._load())
        else:
            self._document = document
        logger.debug("metrics_tracker_initialized", session_id=self._metadata.id, path=str(self._path))

    def _agent(self, document: SessionDocument, agent_name: str) -> AgentMetrics:
        agents = document.metrics.agents
        if agent_name not in agents:
            agents[agent_name] = AgentMetrics()
        return agents[agent_name]

    async def start_agent(self, agent_name: str, attempt_number: int) -> None:
        """Mark an attempt of ``agent_name`` as in flight and persist immediately."""
        document = await self._draft()
        agent = self._agent(document, agent_name)
        agent.current_attempt = CurrentAttempt(attempt_number=attempt_number)
        if agent.status == AgentStatus.FAILED:
            agent.status = AgentStatus.IN_PROGRESS
        await self._save(document)

        logger.info(
            "agent_attempt_started",
            agent=agent_name,
            phase=phase_for_agent(agent_name),
            attempt=attempt_number,
        )

    async def end_agent(self, agent_name: str, outcome: AttemptOutcome) -> None:
        """
        Record the end of an attempt.

        A successful attempt marks the agent successful and sets its final
        duration. A failed final attempt marks it failed; a failed non-final
        attempt leaves it in progress. Cost and duration always accrue to the
        run totals.
        """
        document = await self._draft()
        agent = self._agent(document, agent_name)

        agent.attempts.append(
            AttemptRecord(
                attempt_number=outcome.attempt_number,
                duration_ms=outcome.duration_ms,
                cost_usd=outcome.cost_usd,
                success=outcome.success,
                error=outcome.error,
            )
        )
        agent.current_attempt = None
        agent.total_cost_usd += outcome.cost_usd

        if outcome.success:
            agent.status = AgentStatus.SUCCESS
            agent.final_duration_ms = outcome.duration_ms
        elif outcome.is_final_attempt:
            agent.status = AgentStatus.FAILED
        else:
            agent.status = AgentStatus.IN_PROGRESS

        if outcome.checkpoint is not None:
            agent.checkpoint = outcome.checkpoint

        metrics = document.metrics
        metrics.total_cost_usd += outcome.cost_usd
        metrics.total_duration_ms += outcome.duration_ms

        await self._save(document)

        log = logger.info if outcome.success else logger.warning
        log(
            "agent_attempt_finished",
            agent=agent_name,
            attempt=outcome.attempt_number,
            success=outcome.success,
            final=outcome.is_final_attempt,
            status=agent.status.value,
            duration_ms=outcome.duration_ms,
            cost_usd=outcome.cost_usd,
        )

    async def checkpoint(self, agent_name: str, token: str) -> None:
        """Store an opaque resumption token for ``agent_name``."""
        document = await self._draft()
        self._agent(document, agent_name).checkpoint = token
        await self._save(document)
        logger.debug("agent_checkpoint_recorded", agent=agent_name)

    async def complete_session(self, status: SessionStatus | str) -> None:
        """Record the terminal status of the session."""
        status = SessionStatus(status)
        document = await self._draft()
        document.session.status = status.value
        if status != SessionStatus.IN_PROGRESS:
            document.session.completed_at = utc_now_iso()
        await self._save(document)
        logger.info(
            "session_metrics_completed",
            session_id=self._metadata.id,
            status=status.value,
            total_cost_usd=round(document.metrics.total_cost_usd, 6),
        )

    async def get_metrics(self) -> RunMetrics:
        """Return a copy of the current run metrics."""
        document = await self._ensure_loaded()
        return copy.deepcopy(document.metrics)
