"""
sandbox/tokens.py -- Token issuing and password hashing for the sandbox API.

Security design decisions:
  Tokens: python-jose with HS256, signed with SANDBOX_SECRET_KEY. Each token
       carries user_id, username, expiry and a random jti; the jti is what
       DELETE /api/v2/authtoken/ revokes. Verification returns None on any
       failure -- the route layer turns that into a 401.

  Passwords: bcrypt directly (no passlib wrapper). _DUMMY_HASH lets
       authenticate_user() run bcrypt even for unknown usernames so response
       time does not reveal whether a username exists.

Settings are read through get_sandbox_settings() at call time, never at import.

Layer rule: no imports from workflow/, client/, or state/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_sandbox_settings

if TYPE_CHECKING:
    from sandbox.models import User
    from sandbox.store import UserStore

logger = logging.getLogger("sessiongate.sandbox.tokens")

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("sessiongate_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists. Returns the User on
    success, None on any failure (unknown user, wrong password, inactive).
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, expire_seconds: int = 0) -> tuple[str, datetime]:
    """Encode a signed token and return (token, expires_at).

    expire_seconds of 0 uses SANDBOX_TOKEN_EXPIRE_SECONDS.
    """
    settings = get_sandbox_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    expires = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "jti": secrets.token_hex(16),
        "exp": expires,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM), expires


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a token. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, get_sandbox_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "jti" not in payload:
        return None
    return payload
