"""
tests/conftest.py -- Shared test fixtures for ModelGate.

This module provides:
  - settings:        a Settings object with fixed, distinct test secrets
  - engine:          a fresh in-memory SQLite engine with the schema created
  - codec / hasher:  TokenCodec and a fast (rounds=4) PasswordHasher
  - FakePeer:        records calls and returns canned responses
  - api_client:      TestClient on the real app with a patched lifespan
  - make_user / login helpers for API tests

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. The named URI
format (file:name?mode=memory&cache=shared&uri=true) shares one in-memory
instance across all connections in the same process. Each api_client gets a
unique name so tests never see each other's rows.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates signing secrets instead of raising at import time.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate the signing secrets instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_state
from auth.hashing import PasswordHasher
from auth.tokens import TokenCodec
from core.config import Settings
from db.engine import create_db_engine, init_schema
from peer.client import PeerError

ACCESS_SECRET = "a" * 48
REFRESH_SECRET = "r" * 48

_db_counter = itertools.count()

# One hasher for the whole session: the dummy digest is computed once.
_HASHER = PasswordHasher(rounds=4)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "debug": True,
        "access_token_secret": ACCESS_SECRET,
        "refresh_token_secret": REFRESH_SECRET,
        "database_url": "sqlite://",
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Fake analysis peer
# ---------------------------------------------------------------------------


class FakePeer:
    """AnalysisBackend double. Records (operation, payload); optionally fails."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.fail = False
        self.response: dict[str, Any] = {"ok": True}
        self.on_call = None  # optional callable(operation, payload) run before responding

    def _respond(self, operation: str, payload: dict) -> dict:
        self.calls.append((operation, payload))
        if self.on_call is not None:
            self.on_call(operation, payload)
        if self.fail:
            raise PeerError("peer down")
        return dict(self.response)

    def get_user_token(self, payload: dict) -> dict:
        return self._respond("get_user_token", payload)

    def send_query(self, payload: dict) -> dict:
        return self._respond("send_query", payload)

    def start_simulation(self, payload: dict) -> dict:
        return self._respond("start_simulation", payload)

    def take_simulation_step(self, payload: dict) -> dict:
        return self._respond("take_simulation_step", payload)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec(settings)


@pytest.fixture
def hasher() -> PasswordHasher:
    return _HASHER


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, engine, peer: FakePeer):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine, fast hasher and fake peer into app.state through
    the same build_state() the real lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_state(app, settings, engine, peer, hasher=_HASHER)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, FakePeer], None, None]:
    """Yield (client, peer) backed by an isolated shared-memory database."""
    db_url = f"sqlite:///file:test_api_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    eng = create_db_engine(db_url)
    init_schema(eng)
    peer = FakePeer()

    app.router.lifespan_context = _patch_lifespan(make_settings(database_url=db_url), eng, peer)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, peer

    limiter.enabled = True
    eng.dispose()


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(client: TestClient, username: str, password: str = "Secret1", email: str | None = None) -> dict:
    resp = client.post(
        "/api/v1/users",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def login(client: TestClient, username: str, password: str = "Secret1") -> dict:
    resp = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def signup_and_login(client: TestClient, username: str) -> tuple[int, dict[str, str]]:
    """Create a user, log in, and return (user_id, Authorization headers)."""
    user = signup(client, username)
    tokens = login(client, username)
    return user["id"], auth_header(tokens["access_token"])
