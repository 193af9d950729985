"""Tests for post-token failure handling (workflow/failures.py + engine).

A failure after the token was issued must, in order: stop the busy indicator,
invalidate the token, show a stage-specific alert, and navigate to the logout
route only after the configured delay. A fresh submit in between cancels that
pending redirect.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

from core.errors import HttpError, LicenseError, PostAuthError
from core.models import Stage, WorkflowState
from tests.conftest import REDIRECT_DELAY, Harness
from workflow.failures import ALERT_SEVERITY, ALERT_TITLE, FailureRouter, post_auth_message

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _wait_for_redirect() -> None:
    await asyncio.sleep(REDIRECT_DELAY * 3)


# ---------------------------------------------------------------------------
# post_auth_message
# ---------------------------------------------------------------------------


class TestPostAuthMessage:
    def test_user_stage_with_status(self) -> None:
        error = PostAuthError(Stage.USER, "HTTP 500", status=500)
        assert post_auth_message(error) == "Failed to access user information. GET returned status: 500"

    def test_license_stage_with_status(self) -> None:
        error = PostAuthError(Stage.LICENSE, "HTTP 503", status=503)
        assert post_auth_message(error) == "Failed to access license information. GET returned status: 503"

    def test_without_status_uses_reason(self) -> None:
        error = PostAuthError(Stage.USER, "no response from server")
        assert post_auth_message(error) == "Failed to access user information. no response from server"


# ---------------------------------------------------------------------------
# User stage failure
# ---------------------------------------------------------------------------


class TestUserStageFailure:
    async def test_full_teardown_sequence(self, harness: Harness) -> None:
        events: list[str] = []
        harness.authenticator.get_user.side_effect = HttpError(500)
        harness.authenticator.logout.side_effect = lambda: events.append("logout")
        harness.alerts.show.side_effect = lambda *a, **kw: events.append("alert")

        outcome = await harness.engine.submit("alice", "secret")

        assert outcome.status == "failed"
        assert outcome.failure.stage == Stage.USER
        assert events == ["logout", "alert"]
        harness.alerts.show.assert_called_once_with(
            ALERT_TITLE,
            "Failed to access user information. GET returned status: 500",
            ALERT_SEVERITY,
        )
        assert harness.engine.state == WorkflowState.FAILED
        assert harness.engine.context is None
        assert harness.engine.busy is False
        assert harness.form.set_busy.call_args_list[-1].args == (False,)

    async def test_logout_redirect_is_delayed(self, harness: Harness) -> None:
        harness.authenticator.get_user.side_effect = HttpError(500)

        await harness.engine.submit("alice", "secret")

        assert harness.navigated_to() == []
        assert harness.engine.redirect_pending is True

        await _wait_for_redirect()

        assert harness.navigated_to() == ["/logout"]
        assert harness.engine.redirect_pending is False

    async def test_no_timer_left_running(self, harness: Harness) -> None:
        harness.authenticator.get_user.side_effect = HttpError(0)
        await harness.engine.submit("alice", "secret")
        assert harness.timer.current is None

    async def test_unexpected_exception_is_user_failure(self, harness: Harness) -> None:
        harness.authenticator.get_user.side_effect = KeyError("results")
        outcome = await harness.engine.submit("alice", "secret")
        assert outcome.failure.stage == Stage.USER
        harness.authenticator.logout.assert_awaited_once()
        harness.license_checker.get_config.assert_not_awaited()


# ---------------------------------------------------------------------------
# License stage failure
# ---------------------------------------------------------------------------


class TestLicenseStageFailure:
    async def test_config_fetch_failure(self, harness: Harness) -> None:
        harness.license_checker.get_config.side_effect = LicenseError("HTTP 503", status=503)

        outcome = await harness.engine.submit("alice", "secret")

        assert outcome.status == "failed"
        assert outcome.failure.stage == Stage.LICENSE
        harness.authenticator.logout.assert_awaited_once()
        message = harness.alerts.show.call_args.args[1]
        assert message == "Failed to access license information. GET returned status: 503"
        assert harness.engine.context is None
        assert harness.timer.current is None

    async def test_license_test_failure(self, harness: Harness) -> None:
        harness.license_checker.test.side_effect = LicenseError("license configuration not loaded")

        outcome = await harness.engine.submit("alice", "secret")

        assert outcome.failure.stage == Stage.LICENSE
        message = harness.alerts.show.call_args.args[1]
        assert message == "Failed to access license information. license configuration not loaded"
        await _wait_for_redirect()
        assert harness.navigated_to() == ["/logout"]


# ---------------------------------------------------------------------------
# Robustness
# ---------------------------------------------------------------------------


class TestFailureRobustness:
    async def test_logout_error_does_not_block_alert_or_redirect(self, harness: Harness) -> None:
        harness.authenticator.get_user.side_effect = HttpError(500)
        harness.authenticator.logout.side_effect = HttpError(0, "connection refused")

        outcome = await harness.engine.submit("alice", "secret")

        assert outcome.status == "failed"
        harness.alerts.show.assert_called_once()
        await _wait_for_redirect()
        assert harness.navigated_to() == ["/logout"]

    async def test_new_submit_cancels_pending_redirect(self, harness: Harness) -> None:
        harness.authenticator.get_user.side_effect = HttpError(500)
        await harness.engine.submit("alice", "secret")
        assert harness.engine.redirect_pending is True

        harness.authenticator.get_user.side_effect = None
        outcome = await harness.engine.submit("alice", "secret")
        assert outcome.ok

        await _wait_for_redirect()
        assert "/logout" not in harness.navigated_to()
        assert harness.engine.state == WorkflowState.AUTHENTICATED

    async def test_can_retry_after_failure(self, harness: Harness) -> None:
        harness.license_checker.get_config.side_effect = LicenseError("down", status=502)
        await harness.engine.submit("alice", "secret")
        assert harness.engine.state == WorkflowState.FAILED

        harness.license_checker.get_config.side_effect = None
        outcome = await harness.engine.submit("alice", "secret")
        assert outcome.ok
        assert harness.engine.failure is None


# ---------------------------------------------------------------------------
# FailureRouter in isolation
# ---------------------------------------------------------------------------


class TestFailureRouter:
    async def test_stale_redirect_is_dropped(self) -> None:
        authenticator = MagicMock()
        authenticator.logout = AsyncMock()
        navigator = MagicMock()
        router = FailureRouter(authenticator, MagicMock(), navigator, redirect_delay=REDIRECT_DELAY)

        await router.post_auth_failed(PostAuthError(Stage.USER, "HTTP 500", 500), generation=1)
        await router.post_auth_failed(PostAuthError(Stage.USER, "HTTP 500", 500), generation=2)
        await _wait_for_redirect()

        navigator.navigate.assert_called_once_with("/logout")

    async def test_custom_logout_route(self) -> None:
        authenticator = MagicMock()
        authenticator.logout = AsyncMock()
        navigator = MagicMock()
        router = FailureRouter(
            authenticator, MagicMock(), navigator, logout_route="/signout", redirect_delay=0
        )

        await router.post_auth_failed(PostAuthError(Stage.LICENSE, "down"), generation=1)
        await asyncio.sleep(0.01)

        navigator.navigate.assert_called_once_with("/signout")
