"""
workflow/navigation.py -- Post-login destination resolution.

Priority order:
  1. pre_auth_url  -- the protected deep link that sent the user to login.
  2. last_path     -- the previous session's final path, but only when that
                      session belonged to the same user (no cross-user leakage
                      of navigation history).
  3. default route.

Every candidate must be a relative, server-local path [open redirect guard].
A candidate that is absolute or protocol-relative is skipped, not rewritten.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.models import NavigationIntent
from workflow.collaborators import NavigationStateStore

logger = logging.getLogger("sessiongate.navigation")


def is_safe_path(path: Optional[str]) -> bool:
    """Return True for paths that start with "/" but not "//"."""
    return bool(path) and path.startswith("/") and not path.startswith("//")


def capture_intent(store: NavigationStateStore) -> NavigationIntent:
    """Snapshot the persisted navigation state at the start of a login cycle."""
    return NavigationIntent(
        pre_auth_url=store.get_pre_auth_url(),
        last_path=store.get_last_path(),
        last_user_id=store.get_last_user_id(),
    )


def resolve_destination(intent: NavigationIntent, user_id: Optional[int], default_route: str) -> str:
    """Pick the post-login destination for the just-authenticated user.

    Pure function: clearing the consumed pre_auth_url is the caller's job.
    """
    if intent.pre_auth_url:
        if is_safe_path(intent.pre_auth_url):
            return intent.pre_auth_url
        logger.warning("Ignoring non-relative pre-auth URL")

    if intent.last_path and _same_user(intent.last_user_id, user_id):
        if is_safe_path(intent.last_path):
            return intent.last_path
        logger.warning("Ignoring non-relative last path")

    return default_route


def _same_user(last_user_id: Optional[str], user_id: Optional[int]) -> bool:
    # Persisted ids come back as strings; profile ids are ints.
    if last_user_id is None or user_id is None:
        return False
    return str(last_user_id) == str(user_id)
