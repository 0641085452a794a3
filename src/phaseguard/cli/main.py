"""
CLI interface for phaseguard.

Operator-facing commands for inspecting assessment sessions:
- monitor / status: snapshot or live view of one session's metrics
- sessions: list the session registry
- gate: check a phase's deliverable/queue hand-off
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape as rich_escape

from phaseguard import __version__
from phaseguard.cli.logging_config import configure_cli_logging
from phaseguard.cli.monitor import MonitorOptions, SessionMonitor, format_status
from phaseguard.config.settings import get_settings
from phaseguard.core.errors import ValidationError
from phaseguard.core.queue_validation import safe_validate_queue_and_deliverable
from phaseguard.core.session_store import SessionStore

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="phaseguard",
    help="phaseguard - session tracking and phase gating for security assessments",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console(highlight=False, soft_wrap=True)

MIN_INTERVAL_MS = 250


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]phaseguard[/bold blue] version {__version__}")
        raise typer.Exit()


def usage_error(message: str, command: str) -> typer.Exit:
    """Print an argument error with a usage hint and return the exit to raise."""
    console.print(f"[red]Error: {rich_escape(message)}[/red]")
    console.print(f"[dim]Run 'phaseguard {command} --help' for usage.[/dim]")
    return typer.Exit(2)


def monitor(
    session_arg: Annotated[
        Optional[str],
        typer.Argument(metavar="[SESSION_ID]", help="Session id (prefix allowed)"),
    ] = None,
    session_id: Annotated[
        Optional[str],
        typer.Option("--session", "--id", help="Monitor a specific session id (prefix allowed)"),
    ] = None,
    repo: Annotated[
        Optional[str],
        typer.Option("--repo", help="Monitor the latest session for a repo path"),
    ] = None,
    latest: Annotated[
        bool,
        typer.Option("--latest", help="Monitor the most recent session"),
    ] = False,
    follow: Annotated[
        bool,
        typer.Option("--follow", help="Follow updates (default unless --json)"),
    ] = False,
    once: Annotated[
        bool,
        typer.Option("--once", help="Print a single snapshot and exit"),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Emit JSON (single snapshot unless --follow)"),
    ] = False,
    interval: Annotated[
        Optional[int],
        typer.Option("--interval", help="Refresh interval in milliseconds (>= 250)"),
    ] = None,
    no_clear: Annotated[
        bool,
        typer.Option("--no-clear", help="Do not clear the screen between updates"),
    ] = False,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", help="Directory holding the session registry"),
    ] = None,
) -> None:
    """
    Show metrics of a session, once or continuously.

    Without a selector the newest in-progress session is shown, falling back
    to the newest session.
    """
    settings = get_settings()

    if session_arg and session_id and session_arg != session_id:
        raise usage_error("Session id given both as argument and --session", "monitor")
    if follow and once:
        raise usage_error("--follow and --once are mutually exclusive", "monitor")
    interval_ms = interval if interval is not None else settings.monitor.interval_ms
    if interval_ms < MIN_INTERVAL_MS:
        raise usage_error(f"Interval must be a number of milliseconds >= {MIN_INTERVAL_MS}", "monitor")

    # JSON defaults to a single snapshot; following JSON never clears
    should_follow = follow or (not once and not as_json)
    options = MonitorOptions(
        session_id=session_id or session_arg,
        repo_path=repo,
        latest=latest,
        as_json=as_json,
        follow=should_follow,
        interval_ms=interval_ms,
        clear=settings.monitor.clear_screen and not no_clear and not (as_json and should_follow),
    )

    store = SessionStore(base_dir=store_dir)
    sessions = asyncio.run(store.list_sessions())
    if not sessions:
        console.print("[yellow]No sessions found. Run a scan first.[/yellow]")
        return

    try:
        target = asyncio.run(
            store.resolve_session(
                session_id=options.session_id,
                repo_path=options.repo_path,
                latest=options.latest,
            )
        )
    except ValidationError as e:
        console.print(f"[red]Error: {rich_escape(e.message)}[/red]")
        raise typer.Exit(1)

    session_monitor = SessionMonitor(target, options, console)

    if options.as_json and not options.follow:
        data = asyncio.run(session_monitor.snapshot_json())
        if data is None:
            console.print("[yellow]Metrics file not available yet.[/yellow]")
            return
        typer.echo(data)
        return

    if not options.follow:
        asyncio.run(session_monitor.render())
        return

    try:
        asyncio.run(session_monitor.follow())
    except KeyboardInterrupt:
        console.file.write("\n")
        console.file.flush()
        raise typer.Exit(0)


app.command("monitor")(monitor)
app.command("status", help="Alias of monitor.")(monitor)


@app.command()
def sessions(
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the registry document as JSON"),
    ] = False,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", help="Directory holding the session registry"),
    ] = None,
) -> None:
    """List locally stored sessions, newest first."""
    store = SessionStore(base_dir=store_dir)
    registry = asyncio.run(store.load())

    if as_json:
        typer.echo(json.dumps(registry.to_dict(), indent=2))
        return

    if not registry.sessions:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    ordered = sorted(registry.sessions, key=lambda s: s.started_at, reverse=True)
    console.print("[bold cyan]phaseguard sessions[/bold cyan]")
    console.print(f"[dim]Count: {len(ordered)}[/dim]")
    console.print()
    for session in ordered:
        console.print(
            f"{session.id[:8]}  {format_status(session.status.value)}  "
            f"{rich_escape(session.web_url)}  {rich_escape(session.repo_path)}"
        )


@app.command()
def gate(
    phase: Annotated[
        str,
        typer.Argument(help="Phase identifier, e.g. injection, xss, auth, ssrf, authz"),
    ],
    work_dir: Annotated[
        Path,
        typer.Argument(help="Working directory of the run"),
    ],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON"),
    ] = False,
) -> None:
    """Check that a phase produced both its deliverable and a valid queue."""
    result = asyncio.run(safe_validate_queue_and_deliverable(phase, work_dir))

    if as_json:
        if result.success and result.data is not None:
            payload = {"success": True, **result.data.to_dict()}
        else:
            payload = {"success": False, "error": result.error.to_dict() if result.error else None}
        typer.echo(json.dumps(payload))
    elif result.success and result.data is not None:
        verdict = "exploit" if result.data.should_exploit else "skip exploitation"
        console.print(
            f"[green]Phase '{rich_escape(phase)}' hand-off OK[/green]: "
            f"{result.data.vulnerability_count} vulnerabilities queued ({verdict})"
        )
    elif result.error is not None:
        console.print(f"[red]Error: {rich_escape(result.error.message)}[/red]")

    if not result.success:
        raise typer.Exit(1)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logging"),
    ] = False,
) -> None:
    """
    phaseguard - session tracking and phase gating for security assessments.
    """
    configure_cli_logging(verbose=verbose)


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
