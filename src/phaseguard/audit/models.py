"""
Data models for the per-session metrics document.

Each entity of the document is an explicit dataclass with ``to_dict`` and
``from_dict``. The serialized shape uses snake_case metric keys and the
camelCase session block read by the monitor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from phaseguard.utils.formatting import utc_now_iso

METRICS_SCHEMA_VERSION = 1


class AgentStatus(str, Enum):
    """Execution state of an agent."""

    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    FAILED = "failed"


# Fixed, linear pipeline. Agents outside the table are grouped under "other".
PHASE_AGENTS: dict[str, tuple[str, ...]] = {
    "pre-reconnaissance": ("pre-recon",),
    "reconnaissance": ("recon",),
    "vulnerability-analysis": (
        "injection-vuln",
        "xss-vuln",
        "auth-vuln",
        "ssrf-vuln",
        "authz-vuln",
    ),
    "exploitation": (
        "injection-exploit",
        "xss-exploit",
        "auth-exploit",
        "ssrf-exploit",
        "authz-exploit",
    ),
    "reporting": ("report",),
}

AGENT_PHASES: dict[str, str] = {
    agent: phase for phase, agents in PHASE_AGENTS.items() for agent in agents
}

OTHER_PHASE = "other"


def phase_for_agent(agent_name: str) -> str:
    """Return the pipeline phase an agent belongs to."""
    return AGENT_PHASES.get(agent_name, OTHER_PHASE)


def _number(data: dict[str, Any], key: str, default: float) -> float:
    """
    Read a numeric field of a persisted entry.

    Raises:
        ValueError: If the value is not an int or float (bools are rejected).
    """
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class AttemptRecord:
    """One finished execution try of an agent. Immutable once appended."""

    attempt_number: int
    duration_ms: float
    cost_usd: float
    success: bool
    timestamp: str = field(default_factory=utc_now_iso)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "attempt_number": self.attempt_number,
            "duration_ms": self.duration_ms,
            "cost_usd": self.cost_usd,
            "success": self.success,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttemptRecord":
        return cls(
            attempt_number=int(data["attempt_number"]),
            duration_ms=_number(data, "duration_ms", 0),
            cost_usd=_number(data, "cost_usd", 0.0),
            success=bool(data["success"]),
            timestamp=data.get("timestamp", ""),
            error=data.get("error"),
        )


@dataclass
class CurrentAttempt:
    """The attempt an agent is executing right now."""

    attempt_number: int
    started_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"attempt_number": self.attempt_number, "started_at": self.started_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentAttempt":
        return cls(attempt_number=int(data["attempt_number"]), started_at=str(data["started_at"]))


@dataclass
class AgentMetrics:
    """Attempt history and totals for one agent."""

    status: AgentStatus = AgentStatus.IN_PROGRESS
    attempts: list[AttemptRecord] = field(default_factory=list)
    final_duration_ms: float = 0
    total_cost_usd: float = 0.0
    checkpoint: str | None = None
    current_attempt: CurrentAttempt | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status.value,
            "attempts": [a.to_dict() for a in self.attempts],
            "final_duration_ms": self.final_duration_ms,
            "total_cost_usd": self.total_cost_usd,
        }
        if self.checkpoint is not None:
            data["checkpoint"] = self.checkpoint
        if self.current_attempt is not None:
            data["current_attempt"] = self.current_attempt.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentMetrics":
        current = data.get("current_attempt")
        return cls(
            status=AgentStatus(data.get("status", AgentStatus.IN_PROGRESS.value)),
            attempts=[AttemptRecord.from_dict(a) for a in data.get("attempts", [])],
            final_duration_ms=_number(data, "final_duration_ms", 0),
            total_cost_usd=_number(data, "total_cost_usd", 0.0),
            checkpoint=data.get("checkpoint"),
            current_attempt=CurrentAttempt.from_dict(current) if current else None,
        )


@dataclass
class PhaseMetrics:
    """Aggregated totals for one pipeline phase."""

    duration_ms: float = 0
    duration_percentage: float = 0.0
    cost_usd: float = 0.0
    agent_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_ms": self.duration_ms,
            "duration_percentage": self.duration_percentage,
            "cost_usd": self.cost_usd,
            "agent_count": self.agent_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PhaseMetrics":
        return cls(
            duration_ms=_number(data, "duration_ms", 0),
            duration_percentage=_number(data, "duration_percentage", 0.0),
            cost_usd=_number(data, "cost_usd", 0.0),
            agent_count=int(_number(data, "agent_count", 0)),
        )


@dataclass
class RunMetrics:
    """Run-level totals plus per-phase and per-agent breakdowns."""

    total_duration_ms: float = 0
    total_cost_usd: float = 0.0
    phases: dict[str, PhaseMetrics] = field(default_factory=dict)
    agents: dict[str, AgentMetrics] = field(default_factory=dict)

    def recompute_phases(self) -> None:
        """
        Rebuild phase aggregates from agent entries.

        Phase duration counts successful agents' final durations only, while
        phase cost counts every attempt. Percentages are relative to the run
        total, which includes failed attempts.
        """
        phases: dict[str, PhaseMetrics] = {}
        for name, agent in self.agents.items():
            phase = phases.setdefault(phase_for_agent(name), PhaseMetrics())
            phase.agent_count += 1
            phase.cost_usd += agent.total_cost_usd
            if agent.status == AgentStatus.SUCCESS:
                phase.duration_ms += agent.final_duration_ms

        for phase in phases.values():
            if self.total_duration_ms > 0:
                phase.duration_percentage = phase.duration_ms / self.total_duration_ms * 100
            else:
                phase.duration_percentage = 0.0

        self.phases = phases

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_duration_ms": self.total_duration_ms,
            "total_cost_usd": self.total_cost_usd,
            "phases": {name: p.to_dict() for name, p in self.phases.items()},
            "agents": {name: a.to_dict() for name, a in self.agents.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunMetrics":
        return cls(
            total_duration_ms=_number(data, "total_duration_ms", 0),
            total_cost_usd=_number(data, "total_cost_usd", 0.0),
            phases={k: PhaseMetrics.from_dict(v) for k, v in data.get("phases", {}).items()},
            agents={k: AgentMetrics.from_dict(v) for k, v in data.get("agents", {}).items()},
        )


@dataclass
class SessionInfo:
    """Session block of the metrics document."""

    id: str
    web_url: str
    repo_path: str | None = None
    status: str = "in-progress"
    created_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "webUrl": self.web_url}
        if self.repo_path is not None:
            data["repoPath"] = self.repo_path
        data["status"] = self.status
        data["createdAt"] = self.created_at
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionInfo":
        return cls(
            id=str(data["id"]),
            web_url=str(data["webUrl"]),
            repo_path=data.get("repoPath"),
            status=str(data.get("status", "in-progress")),
            created_at=str(data.get("createdAt", "")),
            completed_at=data.get("completedAt"),
        )


@dataclass
class SessionDocument:
    """The complete per-session metrics document."""

    session: SessionInfo
    metrics: RunMetrics = field(default_factory=RunMetrics)
    schema_version: int = METRICS_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "session": self.session.to_dict(),
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionDocument":
        """
        Create from the persisted shape.

        Raises:
            ValueError: On a schema-version mismatch or a malformed document.
        """
        if not isinstance(data, dict):
            raise ValueError("metrics document must be a JSON object")
        version = data.get("schema_version", METRICS_SCHEMA_VERSION)
        if version != METRICS_SCHEMA_VERSION:
            raise ValueError(f"unsupported metrics schema version: {version}")
        try:
            return cls(
                session=SessionInfo.from_dict(data["session"]),
                metrics=RunMetrics.from_dict(data.get("metrics", {})),
                schema_version=version,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed metrics document: {e}") from e


@dataclass
class SessionMetadata:
    """What the orchestrator knows about a run when it sets up telemetry."""

    id: str
    web_url: str
    repo_path: str | None = None
    output_path: str | None = None
