"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and swaps the Supabase client for the
in-memory FakeSupabase so no test touches a real database.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fakes import FakeSupabase  # noqa: E402

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    import repositories.client

    db = FakeSupabase()
    monkeypatch.setattr(repositories.client, "_client", db)
    monkeypatch.delenv("PURCHASE_MAX_ATTEMPTS", raising=False)
    return db


@pytest.fixture
def api_client(monkeypatch):
    from fastapi.testclient import TestClient

    from api.main import app

    monkeypatch.setenv("ADMIN_API_TOKEN", ADMIN_TOKEN)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
