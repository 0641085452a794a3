"""
phaseguard Audit Package.

Per-session metrics documents: models, path conventions and the attempt
tracker.
"""

from phaseguard.audit.metrics_tracker import AttemptOutcome, MetricsTracker
from phaseguard.audit.models import (
    AgentMetrics,
    AgentStatus,
    AttemptRecord,
    PhaseMetrics,
    RunMetrics,
    SessionDocument,
    SessionMetadata,
    phase_for_agent,
)
from phaseguard.audit.utils import (
    generate_session_json_path,
    initialize_audit_structure,
    read_session_document,
)

__all__ = [
    "AttemptOutcome",
    "MetricsTracker",
    "AgentMetrics",
    "AgentStatus",
    "AttemptRecord",
    "PhaseMetrics",
    "RunMetrics",
    "SessionDocument",
    "SessionMetadata",
    "phase_for_agent",
    "generate_session_json_path",
    "initialize_audit_structure",
    "read_session_document",
]
