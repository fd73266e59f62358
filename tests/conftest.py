# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.main import create_app


@pytest.fixture(autouse=True)
def audit_log_path(tmp_path, monkeypatch):
    """Send audit events of every test to a throwaway file."""
    path = tmp_path / "audit.jsonl"
    monkeypatch.setattr(settings, "AUDIT_LOG_PATH", str(path))
    monkeypatch.setattr(settings, "AUDIT_LOG_ENABLED", True)
    return path


@pytest.fixture
def app():
    """Fresh application with its own seeded store and empty download registry."""
    return create_app()


@pytest.fixture
def client(app):
    return TestClient(app)
