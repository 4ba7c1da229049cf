"""
tests/conftest.py -- Shared test fixtures for LedgerAPI integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + records
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus a bearer token for a pre-created account
  - register / login / auth_headers helper fixtures for tests that need
    more than one account

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/ or core/ import so
get_settings() auto-generates SECRET_KEY in dev mode rather than raising
ValueError. LOGIN_RATE_LIMIT is raised for the same reason: the limiter's
counters are process-wide and many tests log in from the same client address.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app, configure_state
from auth.models import Account
from auth.passwords import PasswordHasher
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import Settings
from ledger.store import RecordStore

# bcrypt's minimum work factor keeps the suite fast; production uses 10.
TEST_BCRYPT_ROUNDS = 4
TEST_PASSWORD = "testpass123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, RecordStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Both stores point at the same named database, mirroring production where
    accounts and records share DATABASE_URL.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_ledger_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(url), RecordStore(url)


def _patch_lifespan(settings: Settings, account_store: AccountStore, record_store: RecordStore):
    """Return an async context manager that replaces the real lifespan.

    Uses configure_state() -- the same wiring production uses -- with the
    test stores and test settings.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        configure_state(app, settings, account_store, record_store)
        yield

    return test_lifespan


def make_test_settings(**overrides) -> Settings:
    values = {"debug": True, "bcrypt_rounds": TEST_BCRYPT_ROUNDS, "secret_key": "s" * 48}
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _register(client: TestClient, email: str, password: str = TEST_PASSWORD, name: str = "Test Account") -> int:
    """Create an account through the API and return its id."""
    resp = client.post("/api/v1/accounts", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _login(client: TestClient, email: str, password: str = TEST_PASSWORD) -> str:
    """Log in through the API and return the bearer token."""
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register():
    return _register


@pytest.fixture
def login():
    return _login


@pytest.fixture
def auth_headers():
    return bearer


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def test_settings() -> Settings:
    return make_test_settings()


@pytest.fixture(scope="module")
def api_client(request, test_settings: Settings) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, account_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    The account is created before the client starts and its token is
    signed with the same secret the app verifies with.
    """
    account_store, record_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])

    hasher = PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)
    account_id = account_store.create_account(
        Account(name="Fixture Account", email="fixture@example.com", password_hash=hasher.hash(TEST_PASSWORD))
    )
    token = TokenService(test_settings.secret_key, ttl_seconds=3600).issue(account_id)

    app.router.lifespan_context = _patch_lifespan(test_settings, account_store, record_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, account_id

    account_store.close()
    record_store.close()
