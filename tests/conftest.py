"""
Shared fixtures for sync engine tests.

Provides in-memory registry listers, a controllable transfer executor and
a recording committer, so the engine can run without a network, a docker
daemon or a git remote.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional, Set

import pytest

from src.config.settings import SyncSettings
from src.engine.errors import CommitError, ListingError, TransferError
from src.observability.metrics import MetricsRegistry
from src.registry.base import ChangelogCommitter, ImageTransfer, RegistryLister


class FakeLister(RegistryLister):
    """Returns a fixed image set, or raises if `error` is set."""

    def __init__(self, name: str, images: Iterable[str] = (), error: Optional[str] = None):
        self._name = name
        self.images = list(images)
        self.error = error
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def list_images(self) -> Set[str]:
        self.calls += 1
        if self.error:
            raise ListingError(self._name, self.error)
        return set(self.images)


class FakeTransfer(ImageTransfer):
    """
    Records transfers and tracks how many run at once.

    `fail` lists images that raise TransferError. `gate`, when set, makes
    every transfer wait on it before returning. `delay` sleeps inside the
    transfer body.
    """

    def __init__(
        self,
        fail: Iterable[str] = (),
        gate: Optional[threading.Event] = None,
        delay: float = 0.0,
        on_start: Optional[Callable[[str], None]] = None,
    ):
        self.fail = set(fail)
        self.gate = gate
        self.delay = delay
        self.on_start = on_start
        self.started: List[str] = []
        self.finished: List[str] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
        self.started_event = threading.Event()

    def transfer(self, image: str) -> None:
        with self._lock:
            self.started.append(image)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started_event.set()
        if self.on_start:
            self.on_start(image)
        try:
            if self.gate is not None:
                self.gate.wait(timeout=5)
            if self.delay:
                threading.Event().wait(self.delay)
            if image in self.fail:
                raise TransferError(image, "simulated push failure")
        finally:
            with self._lock:
                self.active -= 1
                self.finished.append(image)


class RecordingCommitter(ChangelogCommitter):
    """Remembers every batch it was asked to commit."""

    def __init__(self, error: Optional[str] = None):
        self.batches: List[List[str]] = []
        self.error = error

    def commit(self, batch: List[str]) -> None:
        self.batches.append(list(batch))
        if self.error:
            raise CommitError(self.error)


@pytest.fixture
def registry() -> MetricsRegistry:
    """Isolated metrics registry."""
    return MetricsRegistry(prefix="test")


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(
        namespace="google_containers",
        docker_user="gcrxio",
        docker_password="secret",
        github_token="ghp_test",
        github_repo="gcrxio/gcr.io",
        process_limit=2,
        sync_timeout=0,
    )


@pytest.fixture
def committer() -> RecordingCommitter:
    return RecordingCommitter()
