"""
sandbox/dependencies.py -- FastAPI Depends() helpers for token authentication.

Accepted header forms (checked in order):
  1. Authorization: Token <token>   -- what the login client sends.
  2. Authorization: Bearer <token>  -- generic API clients.

A token is accepted only when it verifies, its jti has not been revoked, and
its user still exists and is active. On success the decoded claims are kept
on request.state.token_claims so DELETE /authtoken/ can revoke the same jti.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from sandbox.models import User
from sandbox.tokens import decode_access_token

_NOT_AUTHENTICATED = "Authentication credentials were not provided."
_INVALID_TOKEN = "Invalid token."


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    for scheme in ("Token ", "Bearer "):
        if header.startswith(scheme):
            return header[len(scheme) :].strip() or None
    return None


def get_current_user(request: Request) -> User:
    """Require a valid token. Raises HTTP 401 otherwise."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail=_NOT_AUTHENTICATED)

    claims = decode_access_token(token)
    if claims is None:
        raise HTTPException(status_code=401, detail=_INVALID_TOKEN)

    user_store = request.app.state.user_store
    if user_store.is_revoked(claims["jti"]):
        raise HTTPException(status_code=401, detail=_INVALID_TOKEN)

    user = user_store.get_by_id(claims["user_id"])
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail=_INVALID_TOKEN)

    request.state.token_claims = claims
    return user
