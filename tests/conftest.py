"""
tests/conftest.py -- Shared fakes and fixtures for SessionGate tests.

This module provides:
  - Harness / harness: a SessionWorkflowEngine wired to mock collaborators
    (AsyncMock authenticator and license checker, MagicMock UI sinks), a real
    SessionTimer and an in-memory NavigationStore.
  - make_sandbox_store(): isolated named shared-memory SQLite store for the
    sandbox API, seeded with an admin and an auditor account.
  - sandbox_app / sandbox_client: the FastAPI sandbox and a TestClient for it.

Named shared-memory SQLite URIs (not plain :memory:) are required because
FastAPI runs sync dependencies in a thread pool; plain :memory: DBs are
per-connection and would show each worker thread a blank schema.

SANDBOX_DEBUG must be set before anything calls get_sandbox_settings() so the
signing key is auto-generated instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

# CRITICAL: set before any sandbox/core import touches the settings cache.
os.environ.setdefault("SANDBOX_DEBUG", "true")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.config import Settings
from core.models import TokenGrant, UserProfile
from sandbox.main import create_app, seed_user
from sandbox.store import UserStore
from state.store import NavigationStore
from workflow.engine import SessionWorkflowEngine
from workflow.timer import SessionTimer

# Short enough to keep the suite fast, long enough to assert "not yet".
REDIRECT_DELAY = 0.05

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-pass-123"
AUDITOR_USERNAME = "auditor"
AUDITOR_PASSWORD = "auditor-pass-123"

# ---------------------------------------------------------------------------
# Engine harness
# ---------------------------------------------------------------------------


def make_grant(token: str = "tok-1") -> TokenGrant:
    return TokenGrant(token=token, expires=datetime.now(timezone.utc) + timedelta(minutes=30))


def make_profile(user_id: int = 7, username: str = "alice") -> UserProfile:
    return UserProfile(id=user_id, username=username, is_superuser=True, is_system_auditor=False)


def make_settings(**overrides) -> Settings:
    values = {"logout_redirect_delay": REDIRECT_DELAY, "session_timeout": 60.0}
    values.update(overrides)
    return Settings(**values)


@dataclass
class Harness:
    engine: SessionWorkflowEngine
    authenticator: MagicMock
    license_checker: MagicMock
    timer: SessionTimer
    store: NavigationStore
    navigator: MagicMock
    alerts: MagicMock
    form: MagicMock
    settings: Settings

    def navigated_to(self) -> list[str]:
        return [c.args[0] for c in self.navigator.navigate.call_args_list]


def build_harness(
    profile: UserProfile | None = None,
    session_timeout: float = 60.0,
    store: NavigationStore | None = None,
) -> Harness:
    authenticator = MagicMock()
    authenticator.retrieve_token = AsyncMock(return_value=make_grant())
    authenticator.get_user = AsyncMock(return_value=profile or make_profile())
    authenticator.logout = AsyncMock(return_value=None)
    authenticator.set_token = MagicMock()

    license_checker = MagicMock()
    license_checker.get_config = AsyncMock(return_value=None)
    license_checker.test = MagicMock()

    settings = make_settings(session_timeout=session_timeout)
    timer = SessionTimer(settings.session_timeout)
    store = store or NavigationStore(":memory:")
    navigator = MagicMock()
    alerts = MagicMock()
    form = MagicMock()

    engine = SessionWorkflowEngine(
        authenticator,
        license_checker,
        timer,
        store,
        navigator,
        alerts,
        form=form,
        settings=settings,
    )
    return Harness(engine, authenticator, license_checker, timer, store, navigator, alerts, form, settings)


@pytest.fixture
def harness() -> Generator[Harness, None, None]:
    h = build_harness()
    yield h
    h.timer.clear()
    h.store.close()


# ---------------------------------------------------------------------------
# Sandbox API
# ---------------------------------------------------------------------------


def make_sandbox_store(db_suffix: str) -> tuple[UserStore, dict[str, int]]:
    """Create an isolated sandbox store and seed the two standard accounts."""
    store = UserStore(db_url=f"sqlite:///file:sandbox_{db_suffix}?mode=memory&cache=shared&uri=true")
    ids = {
        ADMIN_USERNAME: seed_user(store, ADMIN_USERNAME, ADMIN_PASSWORD, is_superuser=True),
        AUDITOR_USERNAME: seed_user(store, AUDITOR_USERNAME, AUDITOR_PASSWORD, is_system_auditor=True),
    }
    return store, ids


@pytest.fixture(scope="module")
def sandbox_app(request) -> Generator[tuple[FastAPI, dict[str, int]], None, None]:
    """Yield (app, user_ids) backed by a store unique to the requesting module."""
    store, ids = make_sandbox_store(request.module.__name__.replace(".", "_"))
    app = create_app(user_store=store)
    yield app, ids
    store.close()


@pytest.fixture(scope="module")
def sandbox_client(sandbox_app) -> Generator[TestClient, None, None]:
    app, _ids = sandbox_app
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
