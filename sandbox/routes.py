"""
sandbox/routes.py -- Token auth, profile and config endpoints.

Routes (all under /api/v2):
  GET    /ping/        -- liveness + product version (public)
  POST   /authtoken/   -- username/password -> token (public)
  DELETE /authtoken/   -- revoke the presented token (requires auth)
  GET    /me/          -- current user, DRF list envelope (requires auth)
  GET    /config/      -- product version and license info (requires auth)

Security:
  authenticate_user() provides timing equalization -- use it, never inline.
  Wrong username and wrong password produce the same non_field_errors body.
  Cache-Control: no-store on token responses.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from core.config import get_sandbox_settings
from sandbox.dependencies import get_current_user
from sandbox.models import User
from sandbox.schemas import ConfigResponse, MeResponse, MeUser, PingResponse, TokenRequest, TokenResponse
from sandbox.store import UserStore
from sandbox.tokens import authenticate_user, create_access_token

logger = logging.getLogger("sessiongate.sandbox.routes")

router = APIRouter(prefix="/api/v2")

_REQUIRED = "This field is required."
_BAD_CREDENTIALS = "Unable to login with provided credentials."


def _error(status_code: int, errors: dict[str, list[str]]) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=errors)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/ping/", response_model=PingResponse)
async def ping() -> PingResponse:
    return PingResponse(status="ok", version=get_sandbox_settings().product_version)


@router.post("/authtoken/", response_model=TokenResponse, status_code=201)
async def create_token(request: Request, body: TokenRequest) -> JSONResponse:
    """Issue a token for a valid username/password pair.

    Missing fields get per-field messages; bad credentials get a single
    non_field_errors message so username existence is not revealed.
    """
    missing: dict[str, list[str]] = {}
    if not body.username:
        missing["username"] = [_REQUIRED]
    if not body.password:
        missing["password"] = [_REQUIRED]
    if missing:
        return _error(400, missing)

    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        logger.info("Token refused: bad credentials")
        return _error(400, {"non_field_errors": [_BAD_CREDENTIALS]})

    token, expires = create_access_token(user.id, user.username)
    user_store.update_last_login(user.id)
    logger.info("Token issued for user id %d", user.id)
    resp = JSONResponse(
        status_code=201,
        content=TokenResponse(token=token, expires=expires).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.delete("/authtoken/", status_code=204)
async def revoke_token(request: Request, current_user: User = Depends(get_current_user)) -> Response:
    """Revoke the token used to make this request."""
    claims = request.state.token_claims
    expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    request.app.state.user_store.revoke_token(claims["jti"], expires)
    logger.info("Token revoked for user id %d", current_user.id)
    return Response(status_code=204)


@router.get("/me/", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(
        count=1,
        results=[
            MeUser(
                id=current_user.id,
                username=current_user.username,
                is_superuser=current_user.is_superuser,
                is_system_auditor=current_user.is_system_auditor,
            )
        ],
    )


@router.get("/config/", response_model=ConfigResponse)
async def config(request: Request, current_user: User = Depends(get_current_user)) -> ConfigResponse:
    return ConfigResponse(
        version=get_sandbox_settings().product_version,
        license_info=dict(request.app.state.license_info),
    )
