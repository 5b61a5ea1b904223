"""
Docker Transfer — Pull from gcr.io, retag for Docker Hub, push, clean up.

One transfer is a single attempt; there is no retry here. Any docker
error, or an error line in the push stream, becomes a TransferError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import docker
from docker.errors import DockerException

from ..engine.errors import TransferError
from .base import ImageTransfer
from .dockerhub import target_repository
from .gcr import source_reference

logger = logging.getLogger(__name__)

# Docker Engine API version the mirror is tested against
DOCKER_API_VERSION = "1.39"


def split_identifier(image: str) -> Tuple[str, str]:
    """'pause:3.1' -> ('pause', '3.1'). A missing tag means 'latest'."""
    name, sep, tag = image.rpartition(":")
    if not sep or "/" in tag:
        return image, "latest"
    return name, tag


class DockerTransfer(ImageTransfer):
    """Mirrors images through the local docker daemon."""

    def __init__(
        self,
        namespace: str,
        user: str,
        password: str,
        client: Optional[Any] = None,
        cleanup: bool = True,
    ):
        self.namespace = namespace
        self.user = user
        self.password = password
        self.cleanup = cleanup
        self._client = client

    @property
    def client(self):
        if self._client is None:
            logger.info("Init docker client")
            self._client = docker.from_env(version=DOCKER_API_VERSION)
        return self._client

    @property
    def auth_config(self) -> Dict[str, str]:
        return {"username": self.user, "password": self.password}

    def transfer(self, image: str) -> None:
        name, tag = split_identifier(image)
        source = source_reference(self.namespace, name)
        target = target_repository(self.user, self.namespace, name)

        try:
            logger.debug(f"Pulling {source}:{tag}")
            pulled = self.client.images.pull(source, tag=tag)

            logger.debug(f"Tagging {source}:{tag} as {target}:{tag}")
            if not pulled.tag(target, tag=tag):
                raise TransferError(image, f"Failed to tag as {target}:{tag}")

            logger.debug(f"Pushing {target}:{tag}")
            stream = self.client.images.push(
                target, tag=tag, stream=True, decode=True, auth_config=self.auth_config
            )
            for line in stream:
                if "error" in line:
                    detail = line.get("errorDetail", {}).get("message") or line["error"]
                    raise TransferError(image, f"Push failed: {detail}")
        except DockerException as e:
            raise TransferError(image, str(e)) from e
        finally:
            if self.cleanup:
                self._remove(f"{source}:{tag}", f"{target}:{tag}")

    def _remove(self, *references: str) -> None:
        for ref in references:
            try:
                self.client.images.remove(ref, force=True)
            except DockerException as e:
                logger.debug(f"Could not remove local image {ref}: {e}")
