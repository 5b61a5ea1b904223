"""
Collaborator Interfaces — What the sync engine consumes.

The engine never talks to a registry, the docker daemon, or git directly.
It goes through these three interfaces, which keeps it testable with
in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Set


class RegistryLister(ABC):
    """Enumerates the images of one registry namespace."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short label for logs (e.g. 'gcr', 'dockerhub')."""
        pass

    @abstractmethod
    def list_images(self) -> Set[str]:
        """
        Return every image identifier ("name:tag") in the namespace.

        Raises ListingError if the registry cannot be enumerated.
        """
        pass


class ImageTransfer(ABC):
    """Copies one image from the source registry to the target."""

    @abstractmethod
    def transfer(self, image: str) -> None:
        """
        Mirror `image`. Returns normally on success.

        Raises TransferError (or any exception) on failure; the pool
        treats every exception as a failed transfer.
        """
        pass


class ChangelogCommitter(ABC):
    """Records a batch of mirrored images in source control."""

    @abstractmethod
    def commit(self, batch: List[str]) -> None:
        """
        Commit `batch` (arrival order) as one changelog update.

        Called at most once per run, never with an empty batch.
        Raises CommitError on failure.
        """
        pass
