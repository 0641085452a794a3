"""
Session monitor for phaseguard.

Reads the session registry and a session's metrics document and renders
either a single snapshot or a live view that re-renders whenever the metrics
file changes. The monitor never writes.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.table import Table

from phaseguard.audit.models import AgentStatus, SessionDocument, SessionMetadata
from phaseguard.audit.utils import generate_session_json_path, read_session_document
from phaseguard.core.session_store import Session, SessionStatus
from phaseguard.utils.formatting import format_cost, format_duration, parse_timestamp

STATUS_STYLES = {
    SessionStatus.COMPLETED.value: "green",
    SessionStatus.FAILED.value: "red",
    SessionStatus.IN_PROGRESS.value: "yellow",
}

AGENT_LABELS = {
    AgentStatus.SUCCESS: "[green]OK[/green]",
    AgentStatus.FAILED: "[red]FAIL[/red]",
    AgentStatus.IN_PROGRESS: "[yellow]RUN[/yellow]",
}


@dataclass
class MonitorOptions:
    """Resolved monitor command options."""

    session_id: str | None = None
    repo_path: str | None = None
    latest: bool = False
    as_json: bool = False
    follow: bool = True
    interval_ms: int = 1500
    clear: bool = True


def format_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "yellow")
    return f"[{style}]{status}[/{style}]"


def session_json_path(session: Session) -> Path:
    """Metrics document path for a registry entry."""
    return generate_session_json_path(
        SessionMetadata(
            id=session.id,
            web_url=session.web_url,
            repo_path=session.repo_path,
            output_path=session.output_path,
        )
    )


def _agent_duration(status: AgentStatus, final_ms: float, started_at: str | None) -> str:
    if status == AgentStatus.SUCCESS:
        return format_duration(final_ms)
    started = parse_timestamp(started_at)
    if started is None:
        return ""
    elapsed = (datetime.now(timezone.utc) - started).total_seconds() * 1000
    return format_duration(max(elapsed, 0))


def render_snapshot(
    console: Console,
    session: Session,
    document: SessionDocument | None,
    json_path: Path,
    last_updated: datetime | None = None,
    clear: bool = False,
) -> None:
    """Print a human-readable view of one session."""
    if clear:
        console.clear()

    console.print("[bold cyan]phaseguard monitor[/bold cyan]")
    console.print(f"[dim]Session: {session.id}[/dim]")
    console.print(f"[dim]Web URL: {rich_escape(session.web_url)}[/dim]")
    console.print(f"[dim]Repo: {rich_escape(session.repo_path)}[/dim]")
    if session.output_path:
        console.print(f"[dim]Output: {rich_escape(session.output_path)}[/dim]")
    if last_updated:
        console.print(f"[dim]Last update: {last_updated.isoformat()}[/dim]")
    console.print()

    if document is None:
        console.print("[yellow]Metrics file not available yet.[/yellow]")
        console.print(f"[dim]Waiting for: {rich_escape(str(json_path))}[/dim]")
        return

    info = document.session
    metrics = document.metrics
    console.print(f"Status: {format_status(info.status)}")
    console.print(f"Started: {info.created_at}")
    if info.completed_at:
        console.print(f"Completed: {info.completed_at}")

    console.print()
    console.print("Totals:")
    console.print(
        f"[dim]  Duration: {format_duration(metrics.total_duration_ms)} | "
        f"Cost: {format_cost(metrics.total_cost_usd)}[/dim]"
    )

    if metrics.phases:
        console.print()
        phases = Table(title="Phases", title_justify="left", box=None, padding=(0, 2))
        phases.add_column("Phase")
        phases.add_column("Duration", justify="right")
        phases.add_column("Share", justify="right")
        phases.add_column("Cost", justify="right")
        for name, phase in metrics.phases.items():
            phases.add_row(
                name,
                format_duration(phase.duration_ms),
                f"{phase.duration_percentage:.1f}%",
                format_cost(phase.cost_usd),
            )
        console.print(phases)

    if not metrics.agents:
        console.print()
        console.print("[dim]No agent metrics recorded yet.[/dim]")
        return

    console.print()
    agents = Table(title="Agents", title_justify="left", box=None, padding=(0, 2))
    agents.add_column("Status")
    agents.add_column("Agent")
    agents.add_column("Attempts", justify="right")
    agents.add_column("Duration", justify="right")
    agents.add_column("Cost", justify="right")
    for name in sorted(metrics.agents):
        agent = metrics.agents[name]
        in_flight = agent.current_attempt
        attempts = len(agent.attempts) + (1 if in_flight else 0)
        agents.add_row(
            AGENT_LABELS[agent.status],
            name,
            str(attempts),
            _agent_duration(agent.status, agent.final_duration_ms, in_flight.started_at if in_flight else None),
            format_cost(agent.total_cost_usd),
        )
    console.print(agents)


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class SnapshotWatcher:
    """
    Decides when follow mode should re-render.

    A render is due when the metrics file appears with a newer mtime than the
    last render, or once when the file goes missing.
    """

    MISSING = -1.0

    def __init__(self, path: Path) -> None:
        self._path = path
        self._last_mtime: float = 0.0

    def poll(self) -> bool:
        mtime = _mtime(self._path)
        if mtime is None:
            if self._last_mtime != self.MISSING:
                self._last_mtime = self.MISSING
                return True
            return False
        if mtime <= self._last_mtime:
            return False
        self._last_mtime = mtime
        return True


class SessionMonitor:
    """Renders snapshots of one session to a console."""

    def __init__(self, session: Session, options: MonitorOptions, console: Console) -> None:
        self.session = session
        self.options = options
        self.console = console
        self.json_path = session_json_path(session)

    async def render(self) -> None:
        document = await read_session_document(self.json_path)
        mtime = _mtime(self.json_path)
        last_updated = datetime.fromtimestamp(mtime, tz=timezone.utc) if mtime is not None else None

        if self.options.as_json:
            # Follow-mode JSON: one compact line per change, nothing while unavailable
            if document is not None:
                self.console.out(json.dumps(document.to_dict()), highlight=False)
            return

        render_snapshot(
            self.console,
            self.session,
            document,
            self.json_path,
            last_updated=last_updated,
            clear=self.options.clear,
        )

    async def snapshot_json(self) -> str | None:
        document = await read_session_document(self.json_path)
        if document is None:
            return None
        return json.dumps(document.to_dict(), indent=2)

    async def follow(self) -> None:
        """Poll until cancelled, re-rendering whenever the metrics file changes."""
        watcher = SnapshotWatcher(self.json_path)
        watcher.poll()
        await self.render()
        interval = self.options.interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            if watcher.poll():
                await self.render()
