"""
Path conventions and readers for per-session audit output.

Layout of a session directory:

    <output base>/<host>_<session id>/
        session.json     metrics document
        error.log        human-readable error log
        agents/          per-agent logs written by the orchestrator
        prompts/         prompt snapshots written by the orchestrator
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from phaseguard.audit.models import SessionDocument, SessionMetadata
from phaseguard.config.settings import get_settings
from phaseguard.utils.files import read_json, sanitize_target_for_path

logger = structlog.get_logger(__name__)

AUDIT_SUBDIRS = ("agents", "prompts")


def generate_session_dir(metadata: SessionMetadata) -> Path:
    """Directory holding all audit output of one session."""
    settings = get_settings()
    base = Path(metadata.output_path) if metadata.output_path else settings.output.base_dir
    return base / f"{sanitize_target_for_path(metadata.web_url)}_{metadata.id}"


def generate_session_json_path(metadata: SessionMetadata) -> Path:
    """Path of the metrics document of one session."""
    return generate_session_dir(metadata) / get_settings().output.session_filename


async def initialize_audit_structure(metadata: SessionMetadata) -> Path:
    """
    Create the session directory and its subdirectories.

    Returns:
        The session directory.
    """
    session_dir = generate_session_dir(metadata)
    session_dir.mkdir(parents=True, exist_ok=True)
    for name in AUDIT_SUBDIRS:
        (session_dir / name).mkdir(exist_ok=True)
    logger.debug("audit_structure_initialized", session_id=metadata.id, dir=str(session_dir))
    return session_dir


async def read_session_document(path: Path) -> SessionDocument | None:
    """
    Read a metrics document.

    Returns None if the file is missing, mid-write, or not a valid document.
    """
    try:
        return SessionDocument.from_dict(read_json(path))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError, ValueError) as e:
        logger.debug("session_document_unreadable", path=str(path), error=str(e))
        return None
