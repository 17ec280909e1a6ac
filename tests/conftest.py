"""
tests/conftest.py -- Shared test fixtures for the Social App auth service.

This module provides:
  - FakeClock: a controllable clock injected into TokenIssuer and AuthService
  - SyncDispatcher: runs notification jobs inline and records failures
  - RecordingNotifier: captures welcome / reset emails instead of sending them
  - store / service fixtures for direct unit tests on plain :memory: SQLite
  - _make_test_store() / _patch_lifespan(): isolated stores wired into app.state
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before api.main is imported so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"

# Lowest cost bcrypt accepts. Keeps the suite fast; production uses 12.
TEST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class SyncDispatcher:
    """Runs each job immediately on the calling thread.

    Mirrors NotificationDispatcher's contract that submit() never raises:
    job exceptions are kept in .errors for assertions.
    """

    def __init__(self) -> None:
        self.jobs: list[tuple[Callable[..., object], tuple]] = []
        self.errors: list[Exception] = []

    def submit(self, fn: Callable[..., object], *args: object) -> None:
        self.jobs.append((fn, args))
        try:
            fn(*args)
        except Exception as exc:
            self.errors.append(exc)


class RecordingNotifier:
    def __init__(self) -> None:
        self.welcomes: list[tuple[str, str]] = []
        self.resets: list[tuple[str, str]] = []

    def send_welcome(self, email: str, username: str) -> None:
        self.welcomes.append((email, username))

    def send_password_reset(self, email: str, token: str) -> None:
        self.resets.append((email, token))


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher() -> SyncDispatcher:
    return SyncDispatcher()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, clock=clock)


@pytest.fixture
def service(
    store: UserStore,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    notifier: RecordingNotifier,
    dispatcher: SyncDispatcher,
    clock: FakeClock,
) -> AuthService:
    """AuthService over an in-memory store, sharing one FakeClock with its issuer."""
    return AuthService(
        store=store,
        hasher=hasher,
        issuer=issuer,
        notifier=notifier,
        dispatcher=dispatcher,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Integration helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. the test module name).
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, auth_service: AuthService, dispatcher: SyncDispatcher):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test collaborators into app.state so TestClient routes see
    the isolated store and a recording notifier instead of real SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = auth_service
        app.state.dispatcher = dispatcher
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, RecordingNotifier], None, None]:
    """Yield (client, user_store, notifier) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and middleware but use an isolated in-memory
    store. The notifier captures reset tokens so the confirm route can be
    driven end to end.
    """
    user_store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    notifier = RecordingNotifier()
    dispatcher = SyncDispatcher()
    auth_service = AuthService(
        store=user_store,
        hasher=PasswordHasher(rounds=TEST_ROUNDS),
        issuer=TokenIssuer(TEST_SECRET),
        notifier=notifier,
        dispatcher=dispatcher,
    )

    app.router.lifespan_context = _patch_lifespan(user_store, auth_service, dispatcher)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, notifier

    user_store.close()
