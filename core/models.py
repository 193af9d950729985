"""
core/models.py -- Domain dataclasses for the login workflow.

Pattern: Data class (pure data containers, close to zero logic). The engine in
workflow/ owns and mutates these; collaborators only produce or consume them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional


class WorkflowState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    TOKEN_ACQUIRED = "token_acquired"
    FETCHING_USER = "fetching_user"
    USER_READY = "user_ready"
    FETCHING_LICENSE = "fetching_license"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    EXPIRED = "expired"


# A login attempt is in flight in any of these states. submit() is refused
# while the engine sits in one of them.
BUSY_STATES = frozenset(
    {
        WorkflowState.SUBMITTING,
        WorkflowState.TOKEN_ACQUIRED,
        WorkflowState.FETCHING_USER,
        WorkflowState.USER_READY,
        WorkflowState.FETCHING_LICENSE,
    }
)


class Stage(str, Enum):
    VALIDATION = "validation"
    TOKEN = "token"
    USER = "user"
    LICENSE = "license"


@dataclass
class SessionAttempt:
    """One login submission.

    username/password are wiped by the engine once the attempt resolves, so a
    finished attempt only carries its outcome flags.
    """

    username: str
    password: str
    attempt_failed: bool = False
    field_errors: dict[str, str] = field(default_factory=dict)

    def forget_credentials(self) -> None:
        self.username = ""
        self.password = ""


@dataclass(frozen=True)
class TokenGrant:
    token: str
    expires: Optional[datetime] = None


@dataclass(frozen=True)
class UserProfile:
    id: int
    username: str
    is_superuser: bool = False
    is_system_auditor: bool = False


@dataclass
class SessionContext:
    """Authenticated session owned by the engine.

    Exists from token acquisition until logout, failure, or expiry. The
    generation number ties timer handles and delayed actions to one login cycle.
    """

    token: str
    token_expiry: Optional[datetime]
    generation: int
    user_id: Optional[int] = None
    is_superuser: bool = False
    is_system_auditor: bool = False
    timer_handle: Any = None

    def apply_profile(self, profile: UserProfile) -> None:
        self.user_id = profile.id
        self.is_superuser = profile.is_superuser
        self.is_system_auditor = profile.is_system_auditor


@dataclass
class NavigationIntent:
    pre_auth_url: Optional[str] = None
    last_path: Optional[str] = None
    last_user_id: Optional[str] = None


@dataclass(frozen=True)
class FailureInfo:
    stage: Stage
    reason: str


OutcomeStatus = Literal["authenticated", "rejected", "invalid", "credentials", "failed"]


@dataclass(frozen=True)
class LoginOutcome:
    """Result contract for a single submit() call.

    status:
      authenticated -- all stages passed; destination is set.
      rejected      -- another attempt was already in flight; nothing happened.
      invalid       -- empty username or password; no network call was made.
      credentials   -- the token exchange was refused.
      failed        -- a post-token stage failed; the session was torn down.
    """

    status: OutcomeStatus
    attempt: Optional[SessionAttempt] = None
    destination: Optional[str] = None
    failure: Optional[FailureInfo] = None

    @property
    def ok(self) -> bool:
        return self.status == "authenticated"
