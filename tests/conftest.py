"""
tests/conftest.py -- Shared test fixtures for SessionGate unit and integration tests.

This module provides:
  - FakeClock / clock: a controllable time source for expiry scenarios
  - token_config, user_store, token_store, service: in-memory AuthService wiring
  - _make_test_stores(): isolated shared-memory SQLite stores for the API
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin account and its access token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and LOGIN_RATE_LIMIT must be set before any api/auth/core import:
get_settings() is cached at first call, and api.main reads it at import time.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate JWT_SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
# The whole session shares one in-memory rate-limit counter per IP.
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.memory import InMemoryRefreshTokenStore, InMemoryUserStore
from auth.models import User
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from core.config import TokenConfig, get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

ADMIN_NAME = "testadmin"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "testpass123"

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to.

    Starts on a whole second: JWT timestamps are integer seconds, so a
    fractional start would make exp land slightly before now + ttl.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# In-memory service wiring (unit tests)
# ---------------------------------------------------------------------------


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret_key=TEST_SECRET, access_ttl_seconds=900, refresh_ttl_seconds=3600)


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def token_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture
def service(user_store, token_store, token_config, clock) -> AuthService:
    return AuthService(user_store, token_store, token_config, clock=clock)


@pytest.fixture
def alice(user_store) -> User:
    """A saved user with role "user" and password "alicepw1"."""
    user = User(name="alice", email="alice@example.com", hashed_password=hash_password("alicepw1"))
    user.id = user_store.create_user(user)
    return user


# ---------------------------------------------------------------------------
# Store helpers (integration tests)
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, RefreshTokenStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Both stores share one engine so that rotation and user lookups see the
    same database, exactly as in the real lifespan.

    Args:
        db_suffix: Unique string appended to the DB name so parallel test
                   modules don't share state (the test module name).
    """
    engine = create_store_engine(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")
    return UserStore(engine=engine), RefreshTokenStore(engine=engine)


def _patch_lifespan(user_store: UserStore, token_store: RefreshTokenStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the production database.

    The janitor_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.user_store = user_store
        app.state.token_store = token_store
        app.state.auth_service = AuthService(user_store, token_store, TokenConfig.from_settings(settings))
        app.state.gate = app.state.auth_service.gate
        app.state.janitor_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.janitor_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    The admin user is created before the client starts; token is an access
    token for it, ready for Authorization headers.
    """
    user_store, token_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])

    admin = User(
        name=ADMIN_NAME,
        email=ADMIN_EMAIL,
        hashed_password=hash_password(ADMIN_PASSWORD),
        role="admin",
    )
    uid = user_store.create_user(admin)

    app.router.lifespan_context = _patch_lifespan(user_store, token_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        token = app.state.auth_service.codec.issue(uid, ADMIN_NAME, ADMIN_EMAIL, "admin")
        yield client, token, uid

    user_store.close()
