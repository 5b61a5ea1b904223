"""
Result Collector — Single consumer that turns completion records into one
changelog commit.

Workers hand identifiers over a bounded intake; the collector appends them
to its batch in arrival order. When the intake is closed (or, with
`accept_late=False`, when the run is cancelled) the collector finalizes:
a non-empty batch is committed exactly once, an empty batch is not.

## Late records

By default a cancelled run keeps draining until the orchestrator closes
the intake, which it only does after every task is terminal. Transfers
that were already admitted when the deadline fired therefore still land
in the changelog. With `accept_late=False` the collector finalizes as
soon as it sees the cancellation and later records are dropped.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ..observability.metrics import MetricsRegistry, metrics as default_metrics
from ..registry.base import ChangelogCommitter
from .cancel import CancelToken
from .errors import CommitError, IntakeClosedError

logger = logging.getLogger(__name__)

DEFAULT_INTAKE_CAPACITY = 20


class ResultCollector:
    """Owns the changelog batch and is the only caller of the committer."""

    def __init__(
        self,
        committer: ChangelogCommitter,
        cancel: CancelToken,
        capacity: int = DEFAULT_INTAKE_CAPACITY,
        accept_late: bool = True,
        registry: Optional[MetricsRegistry] = None,
    ):
        if capacity < 1:
            raise ValueError("Intake capacity must be >= 1")
        self.committer = committer
        self.cancel = cancel
        self.capacity = capacity
        self.accept_late = accept_late
        self.metrics = registry or default_metrics

        self._intake: Deque[str] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._finalized = False
        self._batch: List[str] = []
        self._dropped: List[str] = []
        self._committed = False
        self._commit_error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

        cancel.add_callback(self._on_cancel)

    # ─── Producer side ──────────────────────────────────────

    def submit(self, image: str) -> None:
        """
        Hand over one completion record. Blocks while the intake is full.

        Raises IntakeClosedError if the intake was already closed.
        """
        with self._cond:
            while True:
                if self._closed:
                    raise IntakeClosedError(f"Intake closed, cannot accept {image}")
                if self._finalized:
                    self._dropped.append(image)
                    logger.warning(f"Dropping late completion record for {image}")
                    return
                if len(self._intake) < self.capacity:
                    self._intake.append(image)
                    self._cond.notify_all()
                    return
                self._cond.wait()

    def close(self) -> None:
        """Signal that no further records will be submitted."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    # ─── Consumer side ──────────────────────────────────────

    def start(self) -> "ResultCollector":
        self._thread = threading.Thread(
            target=self.run, name="changelog-collector", daemon=True
        )
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Drain the intake until closed (or cancelled), then commit."""
        while True:
            with self._cond:
                while not self._intake and not self._should_stop():
                    self._cond.wait()

                if self._intake:
                    self._batch.append(self._intake.popleft())
                    self._cond.notify_all()
                    continue

                # Empty and stopping
                self._finalized = True
                self._cond.notify_all()
                break

        self._finalize()

    def _should_stop(self) -> bool:
        if self._closed:
            return True
        return not self.accept_late and self.cancel.is_cancelled()

    def _on_cancel(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _finalize(self) -> None:
        batch = list(self._batch)
        self.metrics.set_gauge("changelog_batch_size", len(batch))

        if not batch:
            logger.info("No images mirrored, skipping changelog commit")
            return

        logger.info(f"Committing changelog for {len(batch)} image(s)")
        try:
            self.committer.commit(batch)
        except Exception as e:
            logger.error(f"Changelog commit failed: {e}")
            self.metrics.increment("changelog_commits_total", labels={"outcome": "failed"})
            self._commit_error = e
            return

        self._committed = True
        self.metrics.increment("changelog_commits_total", labels={"outcome": "ok"})

    # ─── Results ────────────────────────────────────────────

    @property
    def batch(self) -> List[str]:
        """Records accepted so far, in arrival order."""
        with self._cond:
            return list(self._batch)

    @property
    def dropped(self) -> List[str]:
        with self._cond:
            return list(self._dropped)

    @property
    def committed(self) -> bool:
        return self._committed

    def raise_for_commit(self) -> None:
        """Re-raise a commit failure on the caller's thread."""
        if self._commit_error is None:
            return
        if isinstance(self._commit_error, CommitError):
            raise self._commit_error
        raise CommitError(str(self._commit_error)) from self._commit_error
