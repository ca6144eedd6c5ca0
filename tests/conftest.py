"""
tests/conftest.py -- Shared test fixtures for SecretKeeper tests.

This module provides:
  - FakeClock: a settable clock injected into TokenIssuer so expiry is testable
  - memory_db_url(): a unique named shared-memory SQLite URL
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient over the real app with isolated in-memory stores

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any core/auth/api import so get_settings()
auto-generates SECRET_KEY and ENCRYPTION_KEY instead of raising ValueError.
LOGIN_RATE_LIMIT is raised so the auth tests never trip the limiter.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gate import AuthGate
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.crypto import FieldCipher
from vault.store import VaultStore

TEST_ENCRYPTION_KEY = "test-encryption-key-0123456789abcdef"
TEST_SECRET_KEY = "test-signing-key-0123456789abcdef0123"


class FakeClock:
    """Settable clock injected into TokenIssuer. Starts on a whole second."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def memory_db_url(prefix: str) -> str:
    """Return a unique named shared-memory SQLite URL."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(TEST_SECRET_KEY, default_ttl=timedelta(hours=1), clock=clock)


@pytest.fixture
def cipher() -> FieldCipher:
    return FieldCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(memory_db_url("users"))
    yield store
    store.close()


@pytest.fixture
def vault(cipher: FieldCipher) -> Generator[VaultStore, None, None]:
    store = VaultStore(memory_db_url("vault"), cipher)
    yield store
    store.close()


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(issuer: TokenIssuer, user_store: UserStore, vault: VaultStore):
    """Return an async context manager that replaces the real lifespan.

    Same object graph as api/main.py, but with the test clock in the issuer
    and isolated in-memory stores.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.issuer = issuer
        app.state.sessions = InMemorySessionStore(max_entries=100)
        app.state.gate = AuthGate(app.state.sessions, issuer)
        app.state.user_store = user_store
        app.state.vault = vault
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, FakeClock], None, None]:
    """Yield (client, clock) for API integration tests.

    One client per test module. base_url uses localhost because
    TrustedHostMiddleware rejects TestClient's default "testserver" host.
    """
    clock = FakeClock()
    issuer = TokenIssuer(TEST_SECRET_KEY, default_ttl=timedelta(hours=1), clock=clock)
    user_store = UserStore(memory_db_url("api_users"))
    vault = VaultStore(memory_db_url("api_vault"), FieldCipher(TEST_ENCRYPTION_KEY))

    app.router.lifespan_context = _patch_lifespan(issuer, user_store, vault)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, clock

    vault.close()
    user_store.close()
