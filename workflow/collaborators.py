"""
workflow/collaborators.py -- Call contracts the engine depends on.

The engine only ever talks to these Protocols. Concrete implementations live
elsewhere: client/http.py (Authenticator, LicenseChecker), state/store.py
(NavigationStateStore), workflow/timer.py (SessionTimer), client/terminal.py
(AlertSink, Navigator, LoginForm for the CLI). Tests use fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from core.errors import SessionExpiredError
from core.models import SessionContext, TokenGrant, UserProfile


class Authenticator(Protocol):
    async def retrieve_token(self, username: str, password: str) -> TokenGrant:
        """Exchange credentials for a token. Raises AuthError when refused."""
        ...

    def set_token(self, expires: Optional[datetime]) -> None: ...

    async def get_user(self) -> UserProfile:
        """Fetch the authenticated user's profile. Raises HttpError."""
        ...

    async def logout(self) -> None: ...


class LicenseChecker(Protocol):
    async def get_config(self) -> None: ...

    def test(self) -> None:
        """Validate the fetched license in memory. Synchronous."""
        ...


class SessionTimer(Protocol):
    def start(self, context: SessionContext) -> Any: ...

    def subscribe(self, callback: Callable[[SessionExpiredError], None]) -> None: ...

    def touch(self) -> None: ...

    def clear(self) -> None: ...


class NavigationStateStore(Protocol):
    def get_pre_auth_url(self) -> Optional[str]: ...

    def set_pre_auth_url(self, url: str) -> None: ...

    def clear_pre_auth_url(self) -> None: ...

    def get_last_path(self) -> Optional[str]: ...

    def get_last_user_id(self) -> Optional[str]: ...

    def record_last_path(self, path: str, user_id: str) -> None: ...

    def get_session_expired(self) -> bool: ...

    def set_session_expired(self, expired: bool) -> None: ...


class AlertSink(Protocol):
    def show(
        self,
        title: str,
        message: str,
        severity: str,
        on_dismiss: Optional[Callable[[], None]] = None,
    ) -> None: ...


class Navigator(Protocol):
    def navigate(self, path: str) -> None: ...


class LoginForm(Protocol):
    def set_busy(self, busy: bool) -> None: ...

    def clear_inputs(self) -> None: ...

    def focus_username(self) -> None: ...

    def clear_api_errors(self) -> None: ...


class NullLoginForm:
    """LoginForm that does nothing. Used when no UI is attached."""

    def set_busy(self, busy: bool) -> None:
        pass

    def clear_inputs(self) -> None:
        pass

    def focus_username(self) -> None:
        pass

    def clear_api_errors(self) -> None:
        pass
