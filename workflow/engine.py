"""
workflow/engine.py -- The session workflow engine.

Turns a submitted username/password into an authenticated, license-validated
session. Stages run as plain awaited coroutines, strictly in order:

    IDLE -> SUBMITTING -> TOKEN_ACQUIRED -> FETCHING_USER -> USER_READY
         -> FETCHING_LICENSE -> AUTHENTICATED

Any stage can fail. Pre-token failures return the engine to IDLE; post-token
failures tear the session down through the FailureRouter and park the engine
in FAILED. The session timer can move AUTHENTICATED to EXPIRED at any time.

Invariants:
  - At most one attempt is in flight. The busy state is entered before the
    first await, so a second submit() in the same loop always sees it.
  - self._context is set only between token acquisition and the next
    failure, logout, or expiry.
  - An issued token is always invalidated through the Authenticator: on
    post-auth failure, on logout (also after expiry), and before a new
    attempt requests its own token.
  - The persisted navigation intent is read once per login cycle and the
    destination is computed once per successful login.
  - Credentials never outlive submit(): the attempt is wiped on every exit.

Usage:
    engine = SessionWorkflowEngine(authenticator, license_checker, timer,
                                   store, navigator, alerts)
    outcome = await engine.submit("admin", "secret")
    if outcome.ok:
        print(outcome.destination)
"""

from __future__ import annotations

import logging
from typing import Optional

from core.config import Settings, get_settings
from core.errors import (
    AuthError,
    CredentialError,
    HttpError,
    PostAuthError,
    SessionExpiredError,
    ValidationError,
)
from core.models import (
    BUSY_STATES,
    FailureInfo,
    LoginOutcome,
    NavigationIntent,
    SessionAttempt,
    SessionContext,
    Stage,
    WorkflowState,
)
from workflow.collaborators import (
    AlertSink,
    Authenticator,
    LicenseChecker,
    LoginForm,
    NavigationStateStore,
    Navigator,
    NullLoginForm,
    SessionTimer,
)
from workflow.failures import FailureRouter
from workflow.navigation import capture_intent, resolve_destination

logger = logging.getLogger("sessiongate.engine")


class SessionWorkflowEngine:
    def __init__(
        self,
        authenticator: Authenticator,
        license_checker: LicenseChecker,
        timer: SessionTimer,
        store: NavigationStateStore,
        navigator: Navigator,
        alerts: AlertSink,
        form: Optional[LoginForm] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._authenticator = authenticator
        self._license = license_checker
        self._timer = timer
        self._store = store
        self._navigator = navigator
        self._form = form or NullLoginForm()
        self._router = FailureRouter(
            authenticator,
            alerts,
            navigator,
            form=self._form,
            logout_route=self._settings.logout_route,
            redirect_delay=self._settings.logout_redirect_delay,
        )

        self._state = WorkflowState.IDLE
        self._generation = 0
        self._context: Optional[SessionContext] = None
        # True from set_token() until the Authenticator has been asked to
        # invalidate the token. Outlives the context on expiry.
        self._token_live = False
        self._attempt: Optional[SessionAttempt] = None
        self._failure: Optional[FailureInfo] = None
        self._destination: Optional[str] = None
        # Set when the previous session ended by timeout; the login prompt
        # uses it to explain why the user is back here.
        self._session_expired = store.get_session_expired()

        timer.subscribe(self.handle_session_expired)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    @property
    def attempt(self) -> Optional[SessionAttempt]:
        return self._attempt

    @property
    def failure(self) -> Optional[FailureInfo]:
        return self._failure

    @property
    def session_expired(self) -> bool:
        return self._session_expired

    @property
    def busy(self) -> bool:
        return self._state in BUSY_STATES

    @property
    def redirect_pending(self) -> bool:
        return self._router.redirect_pending

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def submit(self, username: str, password: str) -> LoginOutcome:
        """Run one login attempt through every stage and report the outcome."""
        if self.busy:
            logger.warning("Login attempt ignored: another attempt is in flight (%s)", self._state.value)
            return LoginOutcome(status="rejected")

        self._router.cancel_pending_redirect()
        self._discard_context()
        self._generation += 1
        generation = self._generation
        self._failure = None
        self._destination = None
        self._form.clear_api_errors()

        attempt = SessionAttempt(username=username or "", password=password or "")
        self._attempt = attempt

        missing = [name for name, value in (("username", username), ("password", password)) if not value]
        if missing:
            return self._reject_invalid(attempt, ValidationError(missing))

        self._state = WorkflowState.SUBMITTING
        self._form.set_busy(True)
        logger.info("Login attempt started (generation %d)", generation)
        try:
            await self._end_previous_session()
            return await self._run_stages(attempt, generation)
        finally:
            attempt.forget_credentials()

    def resolve_destination(self) -> Optional[str]:
        """Return the destination chosen for the current login.

        Computed once, on entering AUTHENTICATED; repeated calls return the
        same value. None outside AUTHENTICATED.
        """
        if self._state != WorkflowState.AUTHENTICATED:
            return None
        return self._destination

    async def _run_stages(self, attempt: SessionAttempt, generation: int) -> LoginOutcome:
        intent = capture_intent(self._store)

        # Stage: token
        try:
            grant = await self._authenticator.retrieve_token(attempt.username, attempt.password)
            self._authenticator.set_token(grant.expires)
            self._token_live = True
        except AuthError as exc:
            return self._reject_credentials(attempt, CredentialError(exc))
        except Exception as exc:
            logger.warning("Token request failed unexpectedly: %s", exc)
            return self._reject_credentials(attempt, CredentialError(AuthError(None)))

        context = SessionContext(token=grant.token, token_expiry=grant.expires, generation=generation)
        self._context = context
        self._state = WorkflowState.TOKEN_ACQUIRED
        logger.debug("Token acquired (generation %d)", generation)

        # Stage: user
        self._state = WorkflowState.FETCHING_USER
        try:
            profile = await self._authenticator.get_user()
            context.apply_profile(profile)
            self._state = WorkflowState.USER_READY
            self._timer.start(context)
        except HttpError as exc:
            return await self._fail_post_auth(attempt, PostAuthError(Stage.USER, str(exc), exc.status), generation)
        except Exception as exc:
            return await self._fail_post_auth(attempt, PostAuthError(Stage.USER, _describe(exc)), generation)

        # Stage: license
        self._state = WorkflowState.FETCHING_LICENSE
        try:
            await self._license.get_config()
            self._license.test()
        except Exception as exc:
            status = getattr(exc, "status", 0) or 0
            return await self._fail_post_auth(attempt, PostAuthError(Stage.LICENSE, _describe(exc), status), generation)

        self._state = WorkflowState.AUTHENTICATED
        # No-op while the timer is running; restarts it if it fired during
        # the license stage, when the expiry signal is ignored.
        self._timer.start(context)
        self._form.set_busy(False)
        self._session_expired = False
        self._store.set_session_expired(False)
        destination = self._consume_intent(intent, context.user_id)
        logger.info("Login complete for user %s (generation %d)", context.user_id, generation)
        self._navigator.navigate(destination)
        return LoginOutcome(status="authenticated", attempt=attempt, destination=destination)

    def _consume_intent(self, intent: NavigationIntent, user_id: Optional[int]) -> str:
        destination = resolve_destination(intent, user_id, self._settings.default_route)
        if intent.pre_auth_url:
            self._store.clear_pre_auth_url()
        intent.pre_auth_url = None
        intent.last_path = None
        intent.last_user_id = None
        self._destination = destination
        return destination

    # ------------------------------------------------------------------
    # Failure paths
    # ------------------------------------------------------------------

    def _reject_invalid(self, attempt: SessionAttempt, error: ValidationError) -> LoginOutcome:
        self._router.validation_failed(attempt, error)
        self._state = WorkflowState.IDLE
        return LoginOutcome(status="invalid", attempt=attempt)

    def _reject_credentials(self, attempt: SessionAttempt, error: CredentialError) -> LoginOutcome:
        self._router.credentials_rejected(attempt, error)
        self._state = WorkflowState.IDLE
        return LoginOutcome(status="credentials", attempt=attempt)

    async def _fail_post_auth(self, attempt: SessionAttempt, error: PostAuthError, generation: int) -> LoginOutcome:
        # The engine stays in its busy state while the router logs out, so
        # no new attempt can start until teardown has finished.
        await self._router.post_auth_failed(error, generation)
        self._token_live = False
        self._discard_context()
        self._failure = FailureInfo(error.stage, error.reason)
        self._state = WorkflowState.FAILED
        return LoginOutcome(status="failed", attempt=attempt, failure=self._failure)

    # ------------------------------------------------------------------
    # Logout / expiry
    # ------------------------------------------------------------------

    async def logout(self) -> None:
        """End the current session. Ignored while an attempt is in flight."""
        if self.busy:
            logger.warning("Logout ignored: a login attempt is in flight (%s)", self._state.value)
            return
        self._router.cancel_pending_redirect()
        self._discard_context()
        self._generation += 1
        self._state = WorkflowState.IDLE
        self._destination = None
        if self._token_live:
            await self._invalidate_token()
            logger.info("Logged out")

    def handle_session_expired(self, error: SessionExpiredError) -> None:
        """Expiry signal from the session timer."""
        context = self._context
        if self._state != WorkflowState.AUTHENTICATED or context is None or context.generation != error.generation:
            logger.debug("Ignoring stale expiry for generation %d", error.generation)
            return
        self._context = None
        self._destination = None
        self._state = WorkflowState.EXPIRED
        self._session_expired = True
        self._store.set_session_expired(True)
        logger.info("Session expired (generation %d)", error.generation)

    async def _invalidate_token(self) -> None:
        if not self._token_live:
            return
        self._token_live = False
        await self._authenticator.logout()

    async def _end_previous_session(self) -> None:
        # A token left over from an earlier login (re-login, or expiry
        # without logout) is revoked before a new one is requested.
        try:
            await self._invalidate_token()
        except Exception as exc:
            logger.warning("Previous session token could not be invalidated: %s", exc)

    def _discard_context(self) -> None:
        if self._context is not None:
            self._timer.clear()
            self._context = None


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__
