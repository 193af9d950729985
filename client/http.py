"""
client/http.py -- httpx adapters for the Authenticator and LicenseChecker contracts.

Talks to the token-auth REST API the login UI sits in front of:

  POST   /api/v2/authtoken/   {username, password} -> {token, expires}
  DELETE /api/v2/authtoken/   invalidate the current token
  GET    /api/v2/me/          {"results": [{id, username, is_superuser, is_system_auditor}]}
  GET    /api/v2/config/      {version, license_info}

One ApiClient (one httpx.AsyncClient, one token) is shared by both adapters
so connection pooling and the auth header stay consistent.

Error mapping:
  token request  4xx/5xx      -> AuthError(decoded body or None, status)
                 transport    -> AuthError(None)
  GET /me/       non-2xx      -> HttpError(status)
                 transport    -> HttpError(0)
  GET /config/   any failure  -> LicenseError(message, status)

Tokens and passwords are never logged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from core.config import Settings, get_settings
from core.errors import AuthError, HttpError, LicenseError
from core.models import TokenGrant, UserProfile

if TYPE_CHECKING:
    from workflow.collaborators import SessionTimer

logger = logging.getLogger("sessiongate.http")

TOKEN_PATH = "/api/v2/authtoken/"
ME_PATH = "/api/v2/me/"
CONFIG_PATH = "/api/v2/config/"


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class TokenPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str
    expires: Optional[datetime] = None


class MeEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    username: str
    is_superuser: bool = False
    is_system_auditor: bool = False


class MePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[MeEntry]


class ConfigPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str = ""
    license_info: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Shared client
# ---------------------------------------------------------------------------


class ApiClient:
    """httpx.AsyncClient plus the active token.

    transport is injectable so tests can route requests to an in-process
    ASGI app (httpx.ASGITransport) or a MockTransport.

    When a session timer is attached, every successful authenticated call
    slides its deadline forward.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timer: Optional[SessionTimer] = None,
    ) -> None:
        cfg = settings or get_settings()
        self.http = httpx.AsyncClient(
            base_url=cfg.api_base_url,
            timeout=cfg.request_timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self.timer = timer
        self.token: Optional[str] = None
        self.token_expires: Optional[datetime] = None

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Token {self.token}"}

    def touch(self) -> None:
        if self.timer is not None:
            self.timer.touch()

    def clear_token(self) -> None:
        self.token = None
        self.token_expires = None

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _json_or_none(resp: httpx.Response) -> Optional[dict]:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


# ---------------------------------------------------------------------------
# Authenticator
# ---------------------------------------------------------------------------


class HttpAuthenticator:
    def __init__(self, api: ApiClient) -> None:
        self._api = api
        self._issued: Optional[str] = None
        self.current_user: Optional[UserProfile] = None

    async def retrieve_token(self, username: str, password: str) -> TokenGrant:
        try:
            resp = await self._api.http.post(TOKEN_PATH, json={"username": username, "password": password})
        except httpx.HTTPError as exc:
            logger.warning("Token request failed: %s", exc.__class__.__name__)
            raise AuthError(None) from exc

        if resp.status_code >= 400:
            raise AuthError(_json_or_none(resp), status=resp.status_code)

        try:
            payload = TokenPayload.model_validate(resp.json())
        except ValueError as exc:
            logger.warning("Token response could not be parsed (status %d)", resp.status_code)
            raise AuthError(None, status=resp.status_code) from exc

        self._issued = payload.token
        return TokenGrant(token=payload.token, expires=payload.expires)

    def set_token(self, expires: Optional[datetime]) -> None:
        """Activate the token issued by the last retrieve_token() call."""
        if self._issued is None:
            raise AuthError(None)
        self._api.token = self._issued
        self._api.token_expires = expires
        self._issued = None

    async def get_user(self) -> UserProfile:
        try:
            resp = await self._api.http.get(ME_PATH, headers=self._api.auth_headers())
        except httpx.HTTPError as exc:
            raise HttpError(0, f"user request failed: {exc.__class__.__name__}") from exc
        if not resp.is_success:
            raise HttpError(resp.status_code)

        try:
            payload = MePayload.model_validate(resp.json())
        except ValueError as exc:
            raise HttpError(0, "malformed user response") from exc
        if not payload.results:
            raise HttpError(0, "user response contained no user")

        entry = payload.results[0]
        self.current_user = UserProfile(
            id=entry.id,
            username=entry.username,
            is_superuser=entry.is_superuser,
            is_system_auditor=entry.is_system_auditor,
        )
        self._api.touch()
        return self.current_user

    async def logout(self) -> None:
        """Invalidate the token server-side. The local token is always dropped."""
        headers = self._api.auth_headers()
        self._issued = None
        self._api.clear_token()
        self.current_user = None
        if not headers:
            return
        try:
            resp = await self._api.http.delete(TOKEN_PATH, headers=headers)
        except httpx.HTTPError as exc:
            raise HttpError(0, f"logout request failed: {exc.__class__.__name__}") from exc
        # 401 means the token is already gone -- that is what we wanted.
        if not resp.is_success and resp.status_code != 401:
            raise HttpError(resp.status_code)


# ---------------------------------------------------------------------------
# License checker
# ---------------------------------------------------------------------------


class HttpLicenseChecker:
    def __init__(self, api: ApiClient) -> None:
        self._api = api
        self._config: Optional[ConfigPayload] = None
        self.license: Optional[dict[str, Any]] = None

    async def get_config(self) -> None:
        try:
            resp = await self._api.http.get(CONFIG_PATH, headers=self._api.auth_headers())
        except httpx.HTTPError as exc:
            raise LicenseError(f"config request failed: {exc.__class__.__name__}") from exc
        if not resp.is_success:
            raise LicenseError(f"config request returned {resp.status_code}", status=resp.status_code)
        try:
            self._config = ConfigPayload.model_validate(resp.json())
        except ValueError as exc:
            raise LicenseError("malformed config response") from exc
        self._api.touch()

    def test(self) -> None:
        """Record the fetched license in memory, stamped with the product version.

        tested starts False; feature code flips it once it has checked the
        license against what it needs.
        """
        if self._config is None:
            raise LicenseError("license configuration has not been loaded")
        license_info = dict(self._config.license_info)
        license_info["version"] = self._config.version
        license_info["tested"] = False
        self.license = license_info
