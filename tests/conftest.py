"""
Test fixtures for the learning tracker.

Provides app (relational mode on a file-based SQLite database), local_app
(key-value mode on an in-memory store), logged-in student and teacher
clients, bare facades over either backend, and a fake Redis client.
Gemini is never called: GOOGLE_API_KEY is cleared for every test and the
`gemini` fixture swaps in a mock model.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(autouse=True)
def no_gemini(monkeypatch):
    """Keep real API keys out of tests and start with a closed circuit."""
    from ai_resilience import get_circuit_breaker

    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    get_circuit_breaker().reset()
    yield
    get_circuit_breaker().reset()


@pytest.fixture
def gemini(monkeypatch):
    """Mock Gemini model; set .generate_content.return_value / .side_effect per test."""
    model = MagicMock()
    model.generate_content.return_value = MagicMock(text="잘하고 있어요! 🎉", candidates=[])
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
    monkeypatch.setattr("ai_resilience.api_key", lambda: "test-key")
    monkeypatch.setattr("ai_resilience._client", lambda name, key: model)
    return model


@pytest.fixture
def app(tmp_path):
    """App in relational mode backed by a temp SQLite file."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "LOCAL_STORE_URL": "memory://",
        "SECRET_KEY": "test-secret-key",
    })
    with app.app_context():
        from database import ensure_schema
        ensure_schema()
    return app


@pytest.fixture
def local_app():
    """App in key-value mode (no DATABASE_URL)."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "DATABASE": "",
        "LOCAL_STORE_URL": "memory://",
        "SECRET_KEY": "test-secret-key",
    })
    return app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _login(app, user_id, name, role):
    client = app.test_client()
    resp = client.post("/api/login", json={"id": user_id, "name": name, "role": role})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def student_client(app):
    return _login(app, "st1", "김학생", "STUDENT")


@pytest.fixture
def teacher_client(app):
    return _login(app, "t1", "정선생", "TEACHER")


@pytest.fixture
def local_student_client(local_app):
    return _login(local_app, "st1", "김학생", "STUDENT")


@pytest.fixture
def local_teacher_client(local_app):
    return _login(local_app, "t1", "정선생", "TEACHER")


# ── Bare backends (no Flask) ───────────────────────────────


@pytest.fixture
def sqlite_conn(tmp_path):
    from database import SCHEMA

    conn = sqlite3.connect(str(tmp_path / "backend.db"))
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def relational_backend(sqlite_conn):
    from relational_backend import RelationalBackend
    return RelationalBackend(connect=lambda: sqlite_conn)


@pytest.fixture
def local_backend():
    from kv_store import InMemoryStore
    from local_backend import LocalBackend
    return LocalBackend(InMemoryStore())


@pytest.fixture(params=["local", "relational"])
def facade(request):
    """StorageFacade over each backend in turn."""
    from storage import StorageFacade
    return StorageFacade(request.getfixturevalue(f"{request.param}_backend"))


class FakeRedis:
    """Just enough of redis.Redis for RedisStore."""

    def __init__(self):
        self.data: dict[str, bytes] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value.encode() if isinstance(value, str) else value
        return True

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


class DownRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ConnectionError("Connection refused")
        return fail


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def down_redis():
    return DownRedis()
