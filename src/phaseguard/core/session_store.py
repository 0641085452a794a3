"""
Session registry for phaseguard.

The registry is a single JSON document listing every assessment session.
It enforces that at most one session per target repository path is in
progress at any time. The document is read-modify-written in full on every
mutation; the last writer wins and no file lock is taken, so two processes
creating a session for the same repository at the same moment can both pass
the duplicate check.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from phaseguard.config.settings import get_settings
from phaseguard.core.errors import ValidationError
from phaseguard.utils.files import read_json, write_json_atomic
from phaseguard.utils.formatting import utc_now_iso

logger = structlog.get_logger(__name__)

REGISTRY_SCHEMA_VERSION = 1


class SessionStatus(str, Enum):
    """Lifecycle states of a session."""

    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Session:
    """One end-to-end assessment of one target."""

    id: str
    web_url: str
    repo_path: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: str = field(default_factory=utc_now_iso)
    output_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted camelCase shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "webUrl": self.web_url,
            "repoPath": self.repo_path,
            "status": self.status.value,
            "startedAt": self.started_at,
        }
        if self.output_path:
            data["outputPath"] = self.output_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        """
        Create from the persisted shape.

        Raises:
            KeyError, ValueError, TypeError: If required fields are missing or invalid.
        """
        return cls(
            id=str(data["id"]),
            web_url=str(data["webUrl"]),
            repo_path=str(data["repoPath"]),
            status=SessionStatus(data["status"]),
            started_at=str(data["startedAt"]),
            output_path=data.get("outputPath"),
        )


@dataclass
class SessionRegistry:
    """The persisted registry document."""

    sessions: list[Session] = field(default_factory=list)
    schema_version: int = REGISTRY_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionRegistry":
        """
        Create from the persisted shape.

        Raises:
            ValueError: On a schema-version mismatch or a malformed document.
        """
        if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
            raise ValueError("registry document must contain a 'sessions' list")
        version = data.get("schema_version", REGISTRY_SCHEMA_VERSION)
        if version != REGISTRY_SCHEMA_VERSION:
            raise ValueError(f"unsupported registry schema version: {version}")
        try:
            sessions = [Session.from_dict(item) for item in data["sessions"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"malformed session entry: {e}") from e
        return cls(sessions=sessions, schema_version=version)


def _newest_first(sessions: list[Session]) -> list[Session]:
    return sorted(sessions, key=lambda s: s.started_at, reverse=True)


def normalize_repo_path(repo_path: str) -> str:
    """Absolute, symlink-free form of a repository path used for comparisons."""
    return str(Path(repo_path).expanduser().resolve())


class SessionStore:
    """
    File-backed registry of assessment sessions.

    The store is bound to an explicit directory rather than the process
    working directory, so several stores can coexist in one process.
    """

    def __init__(self, base_dir: Path | str | None = None, filename: str | None = None) -> None:
        """
        Initialize the session store.

        Args:
            base_dir: Directory holding the registry (from settings if None).
            filename: Registry file name (from settings if None).
        """
        settings = get_settings()
        path = settings.get_store_path(base_dir)
        self._path = path.with_name(filename) if filename else path

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> SessionRegistry:
        """
        Load the registry document.

        A missing, unparseable or structurally invalid file yields an empty
        registry: a broken history file never blocks new work.
        """
        if not self._path.exists():
            return SessionRegistry()
        try:
            return SessionRegistry.from_dict(read_json(self._path))
        except (OSError, json.JSONDecodeError, ValueError) as e:
            logger.warning("session_store_unreadable", path=str(self._path), error=str(e))
            return SessionRegistry()

    async def _save(self, registry: SessionRegistry) -> None:
        write_json_atomic(self._path, registry.to_dict())

    async def create_session(
        self,
        web_url: str,
        repo_path: str,
        output_path: str | None = None,
    ) -> Session:
        """
        Register a new in-progress session.

        Args:
            web_url: Target web URL.
            repo_path: Target repository path (uniqueness key).
            output_path: Optional per-session output directory.

        Returns:
            The created session.

        Raises:
            ValidationError: If a session for ``repo_path`` is already in progress.
        """
        registry = await self.load()
        key = normalize_repo_path(repo_path)

        existing = next(
            (
                s for s in registry.sessions
                if normalize_repo_path(s.repo_path) == key and s.status == SessionStatus.IN_PROGRESS
            ),
            None,
        )
        if existing is not None:
            raise ValidationError(
                f"Session already in progress for {repo_path}",
                context={"session_id": existing.id},
            )

        session = Session(
            id=str(uuid.uuid4()),
            web_url=web_url,
            repo_path=repo_path,
            output_path=output_path,
        )
        registry.sessions.append(session)
        await self._save(registry)

        logger.info("session_created", session_id=session.id, repo_path=repo_path, web_url=web_url)
        return session

    async def update_session_status(self, session_id: str, status: SessionStatus | str) -> None:
        """Set the status of a session. Unknown ids are ignored."""
        status = SessionStatus(status)
        registry = await self.load()
        for session in registry.sessions:
            if session.id == session_id:
                session.status = status
                await self._save(registry)
                logger.info("session_status_updated", session_id=session_id, status=status.value)
                return
        logger.debug("session_status_update_ignored", session_id=session_id)

    async def list_sessions(self) -> list[Session]:
        """Return all sessions. Callers sort as needed."""
        registry = await self.load()
        return registry.sessions

    async def get_session(self, session_id: str) -> Session | None:
        """Return the session with exactly this id, if any."""
        registry = await self.load()
        return next((s for s in registry.sessions if s.id == session_id), None)

    async def resolve_session(
        self,
        session_id: str | None = None,
        repo_path: str | None = None,
        latest: bool = False,
    ) -> Session | None:
        """
        Pick the session a monitor should show.

        Selection order: explicit id (exact or unique prefix), repository
        path (newest session for it), newest session when ``latest`` is set,
        otherwise the newest in-progress session, falling back to the newest
        session overall.

        Returns:
            The selected session, or None if the registry is empty.

        Raises:
            ValidationError: If an id or repository path matches nothing, or an
                id prefix is ambiguous.
        """
        sessions = await self.list_sessions()
        if not sessions:
            return None

        if session_id:
            matches = [s for s in sessions if s.id == session_id or s.id.startswith(session_id)]
            exact = [s for s in matches if s.id == session_id]
            if exact:
                return exact[0]
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                ids = ", ".join(s.id[:8] for s in matches)
                raise ValidationError(f'Multiple sessions match "{session_id}": {ids}')
            raise ValidationError(f'No session found with id "{session_id}"')

        if repo_path:
            resolved = normalize_repo_path(repo_path)
            matches = [s for s in sessions if normalize_repo_path(s.repo_path) == resolved]
            if not matches:
                raise ValidationError(f'No sessions found for repo path "{resolved}"')
            return _newest_first(matches)[0]

        if latest:
            return _newest_first(sessions)[0]

        in_progress = [s for s in sessions if s.status == SessionStatus.IN_PROGRESS]
        if in_progress:
            return _newest_first(in_progress)[0]
        return _newest_first(sessions)[0]
