"""
core/errors.py -- Exception taxonomy for the login workflow.

Collaborator errors (raised by Authenticator / LicenseChecker implementations):
  AuthError     -- token exchange refused; may carry a DRF-style error payload.
  HttpError     -- an authenticated GET failed; carries the HTTP status
                   (0 when no response was received at all).
  LicenseError  -- license config could not be fetched or validated.

Workflow errors (raised or recorded by the engine):
  ValidationError      -- empty username/password; recovered locally.
  CredentialError      -- wraps AuthError; recovered locally.
  PostAuthError        -- user or license stage failed; always escalates.
  SessionExpiredError  -- emitted by the session timer, never by a call.
"""

from __future__ import annotations

from typing import Any

from core.models import Stage

NON_FIELD_ERRORS = "non_field_errors"


class SessionGateError(Exception):
    """Base class for every error this project raises."""


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class AuthError(SessionGateError):
    """The Authenticator refused to issue a token.

    payload is the decoded error body, e.g. {"password": ["This field is
    required."]} or {"non_field_errors": ["Unable to login ..."]}. None when
    the server sent nothing usable (transport failure, non-JSON body).
    """

    def __init__(self, payload: dict[str, Any] | None = None, status: int = 0) -> None:
        self.payload = payload if isinstance(payload, dict) else None
        self.status = status
        super().__init__(f"token request rejected (status {status})")

    @property
    def non_field_errors(self) -> list[str]:
        if self.payload is None:
            return []
        return _as_messages(self.payload.get(NON_FIELD_ERRORS))

    @property
    def field_errors(self) -> dict[str, str]:
        """First message per offending field, non_field_errors excluded."""
        if self.payload is None:
            return {}
        errors: dict[str, str] = {}
        for key, value in self.payload.items():
            if key == NON_FIELD_ERRORS:
                continue
            messages = _as_messages(value)
            if messages:
                errors[key] = messages[0]
        return errors

    @property
    def is_field_specific(self) -> bool:
        # An empty non_field_errors list means "no generic message", not a
        # separate kind of error.
        return bool(self.field_errors) and not self.non_field_errors


class HttpError(SessionGateError):
    def __init__(self, status: int, detail: str = "") -> None:
        self.status = status
        self.detail = detail
        if status:
            message = f"HTTP {status}" + (f": {detail}" if detail else "")
        else:
            message = detail or "no response from server"
        super().__init__(message)


class LicenseError(SessionGateError):
    def __init__(self, message: str, status: int = 0) -> None:
        self.status = status
        super().__init__(message)


# ---------------------------------------------------------------------------
# Workflow errors
# ---------------------------------------------------------------------------


class ValidationError(SessionGateError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__("missing required field(s): " + ", ".join(missing))


class CredentialError(SessionGateError):
    def __init__(self, cause: AuthError) -> None:
        self.cause = cause
        self.field_errors = cause.field_errors if cause.is_field_specific else {}
        super().__init__(str(cause))


class PostAuthError(SessionGateError):
    def __init__(self, stage: Stage, reason: str, status: int = 0) -> None:
        self.stage = stage
        self.reason = reason
        self.status = status
        super().__init__(f"{stage.value} stage failed: {reason}")


class SessionExpiredError(SessionGateError):
    def __init__(self, generation: int) -> None:
        self.generation = generation
        super().__init__(f"session generation {generation} expired")


def _as_messages(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
