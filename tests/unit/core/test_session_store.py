"""
Unit tests for the session registry (core/session_store.py).
"""

import json

import pytest

from phaseguard.core.errors import ValidationError
from phaseguard.core.session_store import (
    REGISTRY_SCHEMA_VERSION,
    Session,
    SessionStatus,
    SessionStore,
)


class TestCreateSession:
    """Tests for session creation and the single-active-run rule."""

    @pytest.mark.asyncio
    async def test_creates_and_lists_session_with_output_path(self, store, repo_path, tmp_path):
        """A new session is in progress and keeps its output path."""
        output_path = str(tmp_path / "audit-logs")

        session = await store.create_session("https://example.com", repo_path, output_path)
        sessions = await store.list_sessions()

        assert len(sessions) == 1
        assert sessions[0].id == session.id
        assert sessions[0].status == SessionStatus.IN_PROGRESS
        assert sessions[0].output_path == output_path

    @pytest.mark.asyncio
    async def test_persists_camel_case_document(self, store, repo_path):
        """The registry file uses the documented field names."""
        session = await store.create_session("https://example.com", repo_path)

        data = json.loads(store.path.read_text())
        assert data["schema_version"] == REGISTRY_SCHEMA_VERSION
        entry = data["sessions"][0]
        assert entry["id"] == session.id
        assert entry["webUrl"] == "https://example.com"
        assert entry["repoPath"] == repo_path
        assert entry["status"] == "in-progress"
        assert "startedAt" in entry
        assert "outputPath" not in entry

    @pytest.mark.asyncio
    async def test_rejects_duplicate_in_progress_session(self, store, repo_path):
        """A second in-progress session for the same repo is refused."""
        first = await store.create_session("https://example.com", repo_path)

        with pytest.raises(ValidationError, match="Session already in progress") as exc_info:
            await store.create_session("https://example.com", repo_path)

        assert exc_info.value.context["session_id"] == first.id
        assert exc_info.value.retryable is False
        assert len(await store.list_sessions()) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", [SessionStatus.COMPLETED, SessionStatus.FAILED])
    async def test_allows_new_session_after_terminal_status(self, store, repo_path, terminal):
        """Once the prior run finished, the repo can be assessed again."""
        first = await store.create_session("https://example.com", repo_path)
        await store.update_session_status(first.id, terminal)

        second = await store.create_session("https://example.com", repo_path)

        assert second.id != first.id
        assert len(await store.list_sessions()) == 2

    @pytest.mark.asyncio
    async def test_different_repos_are_independent(self, store, tmp_path):
        """In-progress sessions for different repos can coexist."""
        await store.create_session("https://a.example.com", str(tmp_path / "a"))
        await store.create_session("https://b.example.com", str(tmp_path / "b"))

        assert len(await store.list_sessions()) == 2

    @pytest.mark.asyncio
    async def test_relative_and_absolute_paths_are_the_same_repo(self, store, repo_path, monkeypatch, tmp_path):
        """Test: ./repo and its absolute form cannot both be in progress."""
        monkeypatch.chdir(tmp_path)
        await store.create_session("https://example.com", repo_path)

        with pytest.raises(ValidationError, match="Session already in progress"):
            await store.create_session("https://example.com", "./repo/")

    @pytest.mark.asyncio
    async def test_resolve_matches_relative_repo_path(self, store, repo_path, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        session = await store.create_session("https://example.com", "repo")

        assert (await store.resolve_session(repo_path=repo_path)).id == session.id


class TestStorePath:
    """Tests for registry location."""

    def test_defaults_to_configured_store_dir(self, tmp_path):
        assert SessionStore().path == tmp_path / ".phaseguard-store.json"

    def test_explicit_dir_and_filename(self, tmp_path):
        store = SessionStore(base_dir=tmp_path / "custom", filename="runs.json")

        assert store.path == tmp_path / "custom" / "runs.json"

    def test_store_dir_from_environment(self, tmp_path, monkeypatch):
        from phaseguard.config.settings import reset_settings

        monkeypatch.setenv("PHASEGUARD_STORE__BASE_DIR", str(tmp_path / "env-store"))
        reset_settings()

        assert SessionStore().path.parent == tmp_path / "env-store"


class TestUpdateStatus:
    """Tests for status updates."""

    @pytest.mark.asyncio
    async def test_updates_status_in_store(self, store, repo_path):
        session = await store.create_session("https://example.com", repo_path)

        await store.update_session_status(session.id, "completed")

        sessions = await store.list_sessions()
        assert sessions[0].status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_id_is_a_no_op(self, store, repo_path):
        await store.create_session("https://example.com", repo_path)
        before = store.path.read_text()

        await store.update_session_status("does-not-exist", SessionStatus.FAILED)

        assert store.path.read_text() == before


class TestLoad:
    """Tests for corruption handling."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, store):
        registry = await store.load()
        assert registry.sessions == []

    @pytest.mark.asyncio
    async def test_corrupted_file_returns_empty_store(self, store):
        store.path.write_text("{bad json")

        registry = await store.load()

        assert registry.sessions == []

    @pytest.mark.asyncio
    async def test_wrong_shape_returns_empty_store(self, store):
        store.path.write_text(json.dumps({"sessions": [{"id": "x"}]}))

        registry = await store.load()

        assert registry.sessions == []

    @pytest.mark.asyncio
    async def test_schema_version_mismatch_returns_empty_store(self, store):
        store.path.write_text(json.dumps({"schema_version": 99, "sessions": []}))

        registry = await store.load()

        assert registry.sessions == []

    @pytest.mark.asyncio
    async def test_document_without_version_is_accepted(self, store):
        """Files written before versioning are still readable."""
        store.path.write_text(json.dumps({
            "sessions": [{
                "id": "abc",
                "webUrl": "https://example.com",
                "repoPath": "/repo",
                "status": "completed",
                "startedAt": "2025-01-01T00:00:00+00:00",
            }]
        }))

        registry = await store.load()

        assert [s.id for s in registry.sessions] == ["abc"]

    @pytest.mark.asyncio
    async def test_creating_after_corruption_recovers(self, store, repo_path):
        store.path.write_text("not json at all")

        session = await store.create_session("https://example.com", repo_path)

        assert [s.id for s in await store.list_sessions()] == [session.id]

    @pytest.mark.asyncio
    async def test_stores_with_different_dirs_are_isolated(self, tmp_path, repo_path):
        one = SessionStore(base_dir=tmp_path / "one")
        two = SessionStore(base_dir=tmp_path / "two")

        await one.create_session("https://example.com", repo_path)
        await two.create_session("https://example.com", repo_path)

        assert len(await one.list_sessions()) == 1
        assert len(await two.list_sessions()) == 1


def _session(session_id: str, repo: str, started_at: str, status=SessionStatus.COMPLETED) -> Session:
    return Session(
        id=session_id,
        web_url="https://example.com",
        repo_path=repo,
        status=status,
        started_at=started_at,
    )


class TestResolveSession:
    """Tests for monitor session selection."""

    @pytest.fixture
    def populated(self, store, tmp_path):
        from phaseguard.core.session_store import SessionRegistry

        registry = SessionRegistry(sessions=[
            _session("aaaa1111-0000", str(tmp_path / "r1"), "2025-01-01T10:00:00+00:00"),
            _session("aaaa2222-0000", str(tmp_path / "r1"), "2025-01-02T10:00:00+00:00"),
            _session("bbbb1111-0000", str(tmp_path / "r2"), "2025-01-03T10:00:00+00:00"),
            _session(
                "cccc1111-0000", str(tmp_path / "r3"), "2025-01-01T09:00:00+00:00",
                status=SessionStatus.IN_PROGRESS,
            ),
        ])
        store.path.write_text(json.dumps(registry.to_dict()))
        return store

    @pytest.mark.asyncio
    async def test_empty_registry_returns_none(self, store):
        assert await store.resolve_session() is None

    @pytest.mark.asyncio
    async def test_unique_prefix(self, populated):
        session = await populated.resolve_session(session_id="bbbb")
        assert session.id == "bbbb1111-0000"

    @pytest.mark.asyncio
    async def test_ambiguous_prefix_raises(self, populated):
        with pytest.raises(ValidationError, match="Multiple sessions match"):
            await populated.resolve_session(session_id="aaaa")

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self, populated):
        with pytest.raises(ValidationError, match="No session found"):
            await populated.resolve_session(session_id="zzzz")

    @pytest.mark.asyncio
    async def test_repo_path_picks_newest(self, populated, tmp_path):
        session = await populated.resolve_session(repo_path=str(tmp_path / "r1"))
        assert session.id == "aaaa2222-0000"

    @pytest.mark.asyncio
    async def test_unknown_repo_raises(self, populated, tmp_path):
        with pytest.raises(ValidationError, match="No sessions found for repo path"):
            await populated.resolve_session(repo_path=str(tmp_path / "nope"))

    @pytest.mark.asyncio
    async def test_latest(self, populated):
        session = await populated.resolve_session(latest=True)
        assert session.id == "bbbb1111-0000"

    @pytest.mark.asyncio
    async def test_default_prefers_in_progress(self, populated):
        session = await populated.resolve_session()
        assert session.id == "cccc1111-0000"
