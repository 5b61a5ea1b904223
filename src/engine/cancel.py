"""
Deadline Governor — Run-scoped cancellation and an optional time budget.

A CancelToken is created fresh for every sync run. The DeadlineGovernor
arms a timer that cancels the token once the budget elapses; a budget of
zero means the run is unbounded and the token is never cancelled by time.

Cancellation is cooperative: it is observed when a task waits for an
admission token and when the collector waits for a record. It never
interrupts a transfer that is already running.

## Usage

    token = CancelToken()
    with DeadlineGovernor(settings.sync_timeout, token) as governor:
        ...
        if governor.fired:
            logger.warning("Sync deadline exceeded")
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class CancelToken:
    """One-shot, idempotent cancellation signal."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    def cancel(self) -> None:
        """Signal cancellation. Safe to call any number of times."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or `timeout` elapses. Returns is_cancelled()."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """
        Run `callback` once when the token is cancelled.

        Runs immediately (on the caller's thread) if already cancelled.
        Callbacks must not block.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()


class DeadlineGovernor:
    """
    Cancels a token once a wall-clock budget elapses.

    `seconds == 0` disables the timer entirely.
    """

    def __init__(self, seconds: float, token: CancelToken):
        if seconds < 0:
            raise ValueError("Deadline must be >= 0 seconds")
        self.seconds = seconds
        self.token = token
        self._timer: Optional[threading.Timer] = None
        self._fired = threading.Event()

    @property
    def enabled(self) -> bool:
        return self.seconds > 0

    @property
    def fired(self) -> bool:
        """True if the budget elapsed and the token was cancelled by it."""
        return self._fired.is_set()

    def start(self) -> "DeadlineGovernor":
        if not self.enabled:
            logger.debug("No sync deadline configured")
            return self
        if self._timer is not None:
            return self

        self._timer = threading.Timer(self.seconds, self._expire)
        self._timer.name = "sync-deadline"
        self._timer.daemon = True
        self._timer.start()
        logger.debug(f"Sync deadline armed: {self.seconds}s")
        return self

    def stop(self) -> None:
        """Release the timer. Does not cancel the token."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._fired.set()
        logger.warning(f"Sync deadline of {self.seconds}s exceeded, cancelling run")
        self.token.cancel()

    def __enter__(self) -> "DeadlineGovernor":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
