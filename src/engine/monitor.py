"""
Periodic Monitor — Log how far the target registry lags behind the source.

Read-only: every interval it lists both registries, diffs them and logs
the counts. It never transfers or commits anything.

## Usage

    monitor = PeriodicMonitor(source, target, interval=5, mode=Iterations(3))
    monitor.run()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Union

from ..observability.metrics import MetricsRegistry, metrics as default_metrics
from ..registry.base import RegistryLister
from .diff import diff_images
from .errors import ListingError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


@dataclass(frozen=True)
class Forever:
    """Monitor until stopped."""


@dataclass(frozen=True)
class Iterations:
    """Monitor exactly `count` times, then return."""

    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("Iteration count must be >= 0")


MonitorMode = Union[Forever, Iterations]


def mode_from_count(count: int) -> MonitorMode:
    """Map the configured count onto a mode; -1 means forever."""
    if count == -1:
        return Forever()
    return Iterations(count)


class Snapshot(NamedTuple):
    source: int
    target: int
    waiting: int


class PeriodicMonitor:
    """Recomputes the sync plan size on a fixed interval."""

    def __init__(
        self,
        source: RegistryLister,
        target: RegistryLister,
        interval: float = DEFAULT_INTERVAL,
        mode: MonitorMode = Forever(),
        stop_on_error: bool = False,
        registry: Optional[MetricsRegistry] = None,
    ):
        if interval <= 0:
            raise ValueError("Monitor interval must be > 0")
        self.source = source
        self.target = target
        self.interval = interval
        self.mode = mode
        self.stop_on_error = stop_on_error
        self.metrics = registry or default_metrics
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop the loop after the current wait or iteration."""
        self._stop.set()

    def run(self) -> List[Snapshot]:
        """
        Run the monitor loop.

        Returns the snapshots taken, one per successful iteration. Failed
        iterations are logged and skipped unless `stop_on_error` is set.
        """
        snapshots: List[Snapshot] = []
        completed = 0

        if isinstance(self.mode, Forever):
            logger.info(f"Monitor started (every {self.interval}s, until stopped)")
        else:
            logger.info(f"Monitor started (every {self.interval}s, {self.mode.count} time(s))")

        while not self._done(completed):
            # Like a ticker: the first check happens one interval in
            if self._stop.wait(timeout=self.interval):
                break

            completed += 1
            try:
                snapshot = self.check()
            except ListingError as e:
                self.metrics.increment("listing_errors_total", labels={"registry": e.registry})
                if self.stop_on_error:
                    raise
                logger.error(f"Monitor iteration {completed} failed: {e}")
                continue
            snapshots.append(snapshot)

        logger.info(f"Monitor stopped after {completed} iteration(s)")
        return snapshots

    def check(self) -> Snapshot:
        """List both registries once and log the counts."""
        source_images = self._list(self.source)
        target_images = self._list(self.target)
        waiting = diff_images(source_images, target_images)

        snapshot = Snapshot(len(source_images), len(target_images), len(waiting))
        self.metrics.set_gauge("monitor_waiting_images", snapshot.waiting)
        logger.info(
            f"{self.source.name} images: {snapshot.source} | "
            f"{self.target.name} images: {snapshot.target} | "
            f"Waiting process: {snapshot.waiting}"
        )
        return snapshot

    def _done(self, completed: int) -> bool:
        if self._stop.is_set():
            return True
        if isinstance(self.mode, Iterations):
            return completed >= self.mode.count
        return False

    def _list(self, lister: RegistryLister):
        try:
            return lister.list_images()
        except ListingError:
            raise
        except Exception as e:
            raise ListingError(lister.name, str(e)) from e
