"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for SessionGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() or
get_sandbox_settings() instead.

Two settings classes:
  Settings         -- the login workflow client (engine, HTTP adapters, CLI).
                      Env prefix SESSIONGATE_ (e.g. SESSIONGATE_API_BASE_URL).
  SandboxSettings  -- the local reference API in sandbox/. Env prefix SANDBOX_.
                      Owns the token signing key, so it carries the SECRET_KEY
                      policy: dev mode generates one with a warning, production
                      refuses to start without one.

Both are lru_cache singletons. In tests call get_settings.cache_clear() (or
the sandbox equivalent) after changing the environment.

Layer rule: core/ is the kernel. This module may not import from workflow/,
client/, state/, or sandbox/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessiongate.config")

_DEFAULT_STATE_DB = Path.home() / ".sessiongate" / "navigation.db"


class Settings(BaseSettings):
    """Client-side settings for the login workflow.

    All fields have defaults so Settings() can be built in tests without any
    environment. Routes are app-internal paths and must be relative.
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    api_base_url: str = "http://localhost:8043"
    request_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    # Seconds of client-side inactivity before the session is considered
    # expired.
    session_timeout: float = 1800.0
    # Delay between a post-login failure alert and the forced logout redirect.
    logout_redirect_delay: float = 1.0

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    default_route: str = "/home"
    logout_route: str = "/logout"

    # ------------------------------------------------------------------
    # Persisted navigation state
    # ------------------------------------------------------------------

    state_db_path: str = str(_DEFAULT_STATE_DB)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("request_timeout", "session_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be greater than zero")
        return value

    @field_validator("logout_redirect_delay")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("logout_redirect_delay must not be negative")
        return value

    @field_validator("default_route", "logout_route")
    @classmethod
    def _relative_route(cls, value: str) -> str:
        if not value.startswith("/") or value.startswith("//"):
            raise ValueError(f"route must be a relative path, got {value!r}")
        return value

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SandboxSettings(BaseSettings):
    """Settings for the sandbox reference API.

    Environment variable name mapping: SANDBOX_ + uppercased field name.
    E.g. `secret_key` reads from SANDBOX_SECRET_KEY.
    """

    model_config = SettingsConfigDict(
        env_prefix="SANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    token_expire_seconds: int = 1800
    product_version: str = "3.0.0"
    # Optional superuser created at startup when both are set.
    admin_username: str = ""
    admin_password: str = ""

    @model_validator(mode="after")
    def validate_secret_key(self) -> "SandboxSettings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SANDBOX_SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SANDBOX_SECRET_KEY is required in production mode. "
                    "Set SANDBOX_SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set SANDBOX_DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SANDBOX_SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("SANDBOX_TOKEN_EXPIRE_SECONDS must be greater than zero.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the client Settings singleton."""
    return Settings()


@lru_cache
def get_sandbox_settings() -> SandboxSettings:
    """Return the sandbox Settings singleton.

    Instantiated on first use, not at import time, so importing sandbox/
    modules never fails before the environment is prepared.
    """
    return SandboxSettings()
