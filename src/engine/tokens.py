"""
Admission Tokens — Counting semaphore that races against cancellation.

Exactly `capacity` tokens exist for the lifetime of the pool. A caller
blocks until a token is free or its CancelToken fires, whichever comes
first. The same class caps concurrent transfers (process limit) and
concurrent registry queries (query limit).
"""

from __future__ import annotations

import threading
import weakref
from typing import Optional

from .cancel import CancelToken


class AdmissionTokens:
    """Fixed pool of admission tokens."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Token capacity must be >= 1")
        self.capacity = capacity
        self._available = capacity
        self._peak_held = 0
        self._cond = threading.Condition()
        self._watched: "weakref.WeakSet[CancelToken]" = weakref.WeakSet()

    @property
    def available(self) -> int:
        with self._cond:
            return self._available

    @property
    def held(self) -> int:
        with self._cond:
            return self.capacity - self._available

    @property
    def peak_held(self) -> int:
        """Highest number of tokens held at once since creation."""
        with self._cond:
            return self._peak_held

    def acquire(self, cancel: Optional[CancelToken] = None) -> bool:
        """
        Take one token, blocking until one is free.

        Returns False without taking a token if `cancel` fires first
        (or had already fired).
        """
        if cancel is not None:
            self._watch(cancel)

        with self._cond:
            while True:
                if cancel is not None and cancel.is_cancelled():
                    return False
                if self._available > 0:
                    self._available -= 1
                    held = self.capacity - self._available
                    if held > self._peak_held:
                        self._peak_held = held
                    return True
                self._cond.wait()

    def release(self) -> None:
        with self._cond:
            if self._available >= self.capacity:
                raise RuntimeError("Released more admission tokens than were acquired")
            self._available += 1
            self._cond.notify_all()

    def _watch(self, cancel: CancelToken) -> None:
        with self._cond:
            if cancel in self._watched:
                return
            self._watched.add(cancel)
        cancel.add_callback(self._wake_all)

    def _wake_all(self) -> None:
        with self._cond:
            self._cond.notify_all()
