"""
tests/conftest.py -- Shared test fixtures for UserGate.

This module provides:
  - user_store:     isolated named shared-memory SQLite UserStore per test
  - session_store:  fresh MemorySessionStore per test
  - client:         TestClient over the real app with a patched lifespan
  - register():     helper that registers a user and returns (body, token)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any api/core import so get_settings() can
auto-generate SECRET_KEY instead of raising ValueError. The login rate limit
is raised so the suite never trips it.
"""

from __future__ import annotations

import asyncio
import os
import secrets
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import MemorySessionStore
from auth.store import UserStore
from auth.tokens import TokenCarrier

TEST_SIGNING_KEY = secrets.token_hex(32)
COOKIE_NAME = "session_token"

# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield store
    store.close()


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore(ttl=3600)


# ---------------------------------------------------------------------------
# App fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, session_store: MemorySessionStore):
    """Return a lifespan that wires test stores and the test key into app.state.

    The purge_task is a long-sleeping coroutine so shutdown's .cancel() has a
    real asyncio.Task to act on.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.signing_key = TEST_SIGNING_KEY
        app.state.carrier = TokenCarrier(cookie_name=COOKIE_NAME, secure=False, max_age=3600)
        app.state.user_store = user_store
        app.state.session_store = session_store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def client(user_store: UserStore, session_store: MemorySessionStore) -> Generator[TestClient, None, None]:
    """TestClient against the real app, real handlers, isolated stores.

    Tests authenticate with explicit Authorization headers. The client's
    cookie jar is cleared after every helper call so a test only carries a
    session when it asks to.
    """
    app.router.lifespan_context = _patch_lifespan(user_store, session_store)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def new_user_payload(name: str = "alice", **overrides) -> dict:
    payload = {
        "email": f"{name}@x.com",
        "password": "secret123",
        "passwordConfirm": "secret123",
        "userName": name,
        "firstName": name.capitalize(),
        "lastName": "Tester",
    }
    payload.update(overrides)
    return payload


def token_from(resp) -> str:
    """Pull the issued token out of the Authorization response header."""
    scheme, _, token = resp.headers["authorization"].partition(" ")
    assert scheme == "Bearer"
    return token


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, name: str = "alice", **overrides) -> tuple[dict, str]:
    """Register a user; return (response body, session token). Leaves no cookie behind."""
    resp = client.post("/v1/users", json=new_user_payload(name, **overrides))
    assert resp.status_code == 201, resp.text
    client.cookies.clear()
    return resp.json(), token_from(resp)
