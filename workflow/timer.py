"""
workflow/timer.py -- Client-side session expiry timer.

The server keeps its own session clock; this one lets the UI assert expiry
without a round trip. Every authenticated API call slides the deadline forward
via touch(), so the timeout measures inactivity rather than session age.

start() is idempotent per context generation: calling it twice for the same
login returns the same handle, and starting a new generation cancels the old
handle first. There is never more than one live expiry signal.

Expiry is delivered to subscribers as a SessionExpiredError instance. It is
never raised into a caller's stack.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from core.errors import SessionExpiredError
from core.models import SessionContext

logger = logging.getLogger("sessiongate.timer")

ExpiryCallback = Callable[[SessionExpiredError], None]


class TimerHandle:
    """One scheduled expiry for one login generation."""

    def __init__(self, generation: int, deadline: float) -> None:
        self.generation = generation
        self.deadline = deadline
        self.cancelled = False
        self.fired = False
        self._scheduled: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None

    def __repr__(self) -> str:
        state = "active" if self.active else ("fired" if self.fired else "cancelled")
        return f"<TimerHandle generation={self.generation} {state}>"


class SessionTimer:
    def __init__(self, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be greater than zero")
        self.timeout = timeout
        self._current: Optional[TimerHandle] = None
        self._subscribers: list[ExpiryCallback] = []
        self._expired = False

    @property
    def current(self) -> Optional[TimerHandle]:
        return self._current

    def subscribe(self, callback: ExpiryCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def start(self, context: SessionContext) -> TimerHandle:
        """Start (or return the already running) timer for context's generation.

        Must be called from inside a running event loop.
        """
        current = self._current
        if current is not None and current.active and current.generation == context.generation:
            logger.debug("Timer already running for generation %d", context.generation)
            context.timer_handle = current
            return current

        self.clear()
        loop = asyncio.get_running_loop()
        handle = TimerHandle(context.generation, loop.time() + self.timeout)
        handle._scheduled = loop.call_later(self.timeout, self._fire, handle)
        self._current = handle
        self._expired = False
        context.timer_handle = handle
        logger.debug("Session timer started for generation %d (%.0fs)", context.generation, self.timeout)
        return handle

    def touch(self) -> None:
        """Push the deadline of the running timer out by one full timeout."""
        handle = self._current
        if handle is None or not handle.active:
            return
        loop = asyncio.get_running_loop()
        if handle._scheduled is not None:
            handle._scheduled.cancel()
        handle.deadline = loop.time() + self.timeout
        handle._scheduled = loop.call_later(self.timeout, self._fire, handle)

    def is_expired(self) -> bool:
        return self._expired

    def clear(self) -> None:
        """Cancel the running timer, if any. Does not signal expiry."""
        if self._current is not None:
            self._current.cancel()
            self._current = None

    def _fire(self, handle: TimerHandle) -> None:
        if handle is not self._current or not handle.active:
            return
        handle.fired = True
        handle._scheduled = None
        self._current = None
        self._expired = True
        logger.info("Session generation %d expired after %.0fs of inactivity", handle.generation, self.timeout)
        error = SessionExpiredError(handle.generation)
        for callback in list(self._subscribers):
            try:
                callback(error)
            except Exception:
                logger.exception("Session expiry subscriber %r failed", callback)
