"""
Shared test fixtures.

Provides:
  • a FastAPI TestClient wired to a temporary SQLite database (via the
    app lifespan) with rate limiting disabled
  • helpers that register real accounts and return Bearer headers
  • a ``database`` fixture for calling ``app.db`` directly from async tests

API tests and direct-DB tests use separate fixtures: the TestClient runs
the app on its own event loop.
"""

from __future__ import annotations

from collections.abc import Callable
from itertools import count

import pytest
from fastapi.testclient import TestClient

from app import db
from app.main import app
from tests.mocks.models import TURF_PAYLOAD


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path):
    """
    Internal fixture that points the DB at a temp file and disables rate
    limiting so that the app lifespan runs cleanly in isolation.
    """
    # ── Temp database ─────────────────────────────────────────────────
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "test.db"))

    # ── Disable rate limiting in tests ────────────────────────────────
    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(_test_env) -> TestClient:
    """
    FastAPI TestClient against a temp DB.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    Requests are anonymous unless Bearer headers are passed.
    """
    app.dependency_overrides.clear()

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture()
def register(client: TestClient) -> Callable[..., dict]:
    """
    Factory: register a fresh account and return its auth response body
    plus ready-made ``headers``.
    """
    seq = count(1)

    def _register(role: str = "user", name: str | None = None) -> dict:
        n = next(seq)
        resp = client.post(
            "/api/auth/register",
            json={
                "name": name or f"{role.title()} {n}",
                "email": f"{role}{n}@example.com",
                "password": "secret123",
                "role": role,
            },
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data

    return _register


@pytest.fixture()
def owner(register) -> dict:
    return register("owner")


@pytest.fixture()
def player(register) -> dict:
    return register("user")


@pytest.fixture()
def turf(client: TestClient, owner: dict) -> dict:
    """A turf owned by ``owner`` (weekday 800/h, weekend 1000/h)."""
    resp = client.post("/api/turfs", json=TURF_PAYLOAD, headers=owner["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture()
async def database(_test_env):
    """Open the temp DB on the test's own event loop."""
    await db.init_db()
    yield db
    await db.close_db()
