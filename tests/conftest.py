"""
Pytest fixtures and configuration for the phaseguard test suite.
"""

import json
import uuid
from pathlib import Path

import pytest

# ============================================================================
# Settings isolation
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every store and output directory at the test's temp dir."""
    from phaseguard.config.settings import reset_settings

    for key in ("PHASEGUARD_STORE__BASE_DIR", "PHASEGUARD_OUTPUT__BASE_DIR"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PHASEGUARD_STORE__BASE_DIR", str(tmp_path))
    monkeypatch.setenv("PHASEGUARD_OUTPUT__BASE_DIR", str(tmp_path / "audit-logs"))
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()

# ============================================================================
# Core Fixtures
# ============================================================================

@pytest.fixture
def repo_path(tmp_path):
    """A target repository directory."""
    repo = tmp_path / "repo"
    repo.mkdir()
    return str(repo)

@pytest.fixture
def store(tmp_path):
    """Session store bound to the temp dir."""
    from phaseguard.core.session_store import SessionStore

    return SessionStore(base_dir=tmp_path)

@pytest.fixture
def session_metadata(tmp_path):
    """Metadata for a session writing under tmp_path/audit-logs."""
    from phaseguard.audit.models import SessionMetadata

    return SessionMetadata(
        id=f"session-{uuid.uuid4().hex[:8]}",
        web_url="https://example.com",
        repo_path=str(tmp_path / "repo"),
        output_path=str(tmp_path / "audit-logs"),
    )

# ============================================================================
# Phase artifact helpers
# ============================================================================

@pytest.fixture
def deliverables(tmp_path):
    """Create the deliverables directory and return writer helpers."""
    directory = tmp_path / "deliverables"
    directory.mkdir()

    class Writer:
        path = directory

        @staticmethod
        def deliverable(phase: str) -> Path:
            target = directory / f"{phase}_analysis_deliverable.md"
            target.write_text("# deliverable\n", encoding="utf-8")
            return target

        @staticmethod
        def queue(phase: str, payload=None, raw: str | None = None) -> Path:
            target = directory / f"{phase}_exploitation_queue.json"
            text = raw if raw is not None else json.dumps(payload)
            target.write_text(text, encoding="utf-8")
            return target

    return Writer

# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")
