"""
sandbox/main.py -- FastAPI application factory for the sandbox API.

The sandbox serves the handful of endpoints the login workflow needs so the
whole flow can run locally or in tests without a real server. It is not a
production identity provider.

Run with:  uvicorn asgi:app --reload

create_app() wires state directly onto app.state instead of doing it in the
lifespan hook, so in-process transports that skip lifespan events (e.g.
httpx.ASGITransport) still see a fully initialized app. The lifespan only
handles shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from sqlalchemy.exc import IntegrityError

from core.config import get_sandbox_settings
from sandbox.models import User
from sandbox.routes import router
from sandbox.store import UserStore
from sandbox.tokens import hash_password

logger = logging.getLogger("sessiongate.sandbox")

DEFAULT_LICENSE_INFO: dict[str, Any] = {
    "license_type": "open",
    "valid_key": True,
    "subscription_name": "Sandbox",
}


def seed_user(
    store: UserStore,
    username: str,
    password: str,
    is_superuser: bool = False,
    is_system_auditor: bool = False,
) -> int:
    """Create a user unless one with that username already exists. Returns its id."""
    existing = store.get_by_username(username)
    if existing is not None:
        return existing.id
    try:
        return store.create_user(
            User(
                username=username,
                hashed_password=hash_password(password),
                is_superuser=is_superuser,
                is_system_auditor=is_system_auditor,
            )
        )
    except IntegrityError:
        # Created concurrently by another worker.
        return store.get_by_username(username).id


def create_app(
    user_store: Optional[UserStore] = None,
    license_info: Optional[dict[str, Any]] = None,
) -> FastAPI:
    settings = get_sandbox_settings()
    store = user_store or UserStore()

    if settings.admin_username and settings.admin_password:
        seed_user(store, settings.admin_username, settings.admin_password, is_superuser=True)
        logger.info("Seeded sandbox admin account")
    if not store.has_users():
        logger.warning("Sandbox has no users. Set SANDBOX_ADMIN_USERNAME and SANDBOX_ADMIN_PASSWORD to seed one.")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Sandbox API starting (version %s)", settings.product_version)
        yield
        app.state.user_store.close()
        logger.info("Sandbox API shutdown complete")

    app = FastAPI(
        title="SessionGate Sandbox API",
        description="Token auth, profile and license endpoints for exercising the login workflow.",
        version=settings.product_version,
        lifespan=lifespan,
    )
    app.state.user_store = store
    app.state.license_info = dict(DEFAULT_LICENSE_INFO if license_info is None else license_info)
    app.include_router(router)
    return app
