"""
workflow/failures.py -- Single funnel for login stage failures.

Two classes of failure, handled very differently:

  Pre-token (ValidationError, CredentialError): no session exists yet, so
      nothing is invalidated. The busy indicator stops, the attempt's inputs
      are reset and the username field regains focus. Field-specific
      rejections keep the inputs and only record the per-field messages.

  Post-token (PostAuthError): a token was issued, so the session is torn down.
      The busy indicator stops, the token is invalidated through the
      Authenticator, a stage-specific alert is shown, and a forced navigation
      to the logout route is scheduled after a short delay so the alert is
      visible before the UI state is flushed.

The delayed redirect belongs to one login generation. Any new submit cancels
it through cancel_pending_redirect(), so a stale redirect can never land in
the middle of a fresh login.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.errors import CredentialError, PostAuthError, ValidationError
from core.models import SessionAttempt, Stage
from workflow.collaborators import AlertSink, Authenticator, LoginForm, Navigator, NullLoginForm

logger = logging.getLogger("sessiongate.failures")

ALERT_TITLE = "Error"
ALERT_SEVERITY = "alert-danger"

_STAGE_SUBJECT: dict[Stage, str] = {
    Stage.USER: "user information",
    Stage.LICENSE: "license information",
}


def post_auth_message(error: PostAuthError) -> str:
    """Alert text for a post-token failure."""
    subject = _STAGE_SUBJECT.get(error.stage, error.stage.value)
    if error.status:
        return f"Failed to access {subject}. GET returned status: {error.status}"
    return f"Failed to access {subject}. {error.reason}"


class FailureRouter:
    def __init__(
        self,
        authenticator: Authenticator,
        alerts: AlertSink,
        navigator: Navigator,
        form: Optional[LoginForm] = None,
        logout_route: str = "/logout",
        redirect_delay: float = 1.0,
    ) -> None:
        self._authenticator = authenticator
        self._alerts = alerts
        self._navigator = navigator
        self._form = form or NullLoginForm()
        self.logout_route = logout_route
        self.redirect_delay = redirect_delay
        self._pending: Optional[asyncio.TimerHandle] = None
        self._pending_generation: Optional[int] = None

    @property
    def redirect_pending(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Pre-token
    # ------------------------------------------------------------------

    def validation_failed(self, attempt: SessionAttempt, error: ValidationError) -> None:
        attempt.attempt_failed = True
        attempt.forget_credentials()
        self._form.clear_inputs()
        self._form.focus_username()
        logger.info("Login attempt refused locally: %s", error)

    def credentials_rejected(self, attempt: SessionAttempt, error: CredentialError) -> None:
        self._form.set_busy(False)
        if error.field_errors:
            attempt.field_errors = dict(error.field_errors)
            logger.info("Login rejected with field errors: %s", ", ".join(sorted(error.field_errors)))
            return
        attempt.attempt_failed = True
        self._form.clear_inputs()
        self._form.focus_username()
        logger.info("Login rejected (status %d)", error.cause.status)

    # ------------------------------------------------------------------
    # Post-token
    # ------------------------------------------------------------------

    async def post_auth_failed(self, error: PostAuthError, generation: int) -> None:
        self._form.set_busy(False)
        logger.warning("Post-login %s stage failed: %s", error.stage.value, error.reason)
        try:
            await self._authenticator.logout()
        except Exception as exc:
            # The alert and redirect must still happen; the logout route
            # retries the invalidation.
            logger.warning("Forced logout after %s failure did not complete: %s", error.stage.value, exc)
        self._alerts.show(ALERT_TITLE, post_auth_message(error), ALERT_SEVERITY)
        self._schedule_logout_redirect(generation)

    def cancel_pending_redirect(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            logger.debug("Cancelled pending logout redirect for generation %s", self._pending_generation)
        self._pending = None
        self._pending_generation = None

    def _schedule_logout_redirect(self, generation: int) -> None:
        self.cancel_pending_redirect()
        loop = asyncio.get_running_loop()
        self._pending_generation = generation
        self._pending = loop.call_later(self.redirect_delay, self._redirect_to_logout, generation)

    def _redirect_to_logout(self, generation: int) -> None:
        if generation != self._pending_generation:
            return
        self._pending = None
        self._pending_generation = None
        self._navigator.navigate(self.logout_route)
