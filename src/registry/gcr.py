"""
GCR Lister — Enumerate every image tag in a gcr.io namespace.

Uses the registry v2 tags API:

    GET https://gcr.io/v2/<namespace>/tags/list          -> {"child": [...]}
    GET https://gcr.io/v2/<namespace>/<name>/tags/list   -> {"tags": [...]}

Identifiers are returned as "<name>:<tag>".
"""

from __future__ import annotations

import logging
from typing import List, Set

import requests

from ..engine.errors import ListingError
from ..engine.tokens import AdmissionTokens
from .base import RegistryLister
from .http import get_json, query_all

logger = logging.getLogger(__name__)

GCR_IMAGES_URL = "https://gcr.io/v2/{namespace}/tags/list"
GCR_IMAGE_TAGS_URL = "https://gcr.io/v2/{namespace}/{name}/tags/list"
GCR_REGISTRY_TPL = "gcr.io/{namespace}/{image}"


class GcrLister(RegistryLister):
    """Lists images in one Google Container Registry namespace."""

    def __init__(self, namespace: str, session: requests.Session, tokens: AdmissionTokens):
        self.namespace = namespace
        self.session = session
        self.tokens = tokens

    @property
    def name(self) -> str:
        return "gcr"

    def list_images(self) -> Set[str]:
        names = self.list_repositories()
        logger.debug(f"[gcr] {len(names)} repositories in {self.namespace}")

        per_repo = query_all(names, self._image_tags, self.tokens)
        images = {image for tagged in per_repo for image in tagged}
        logger.debug(f"[gcr] {len(images)} images in {self.namespace}")
        return images

    def list_repositories(self) -> List[str]:
        data = get_json(self.session, GCR_IMAGES_URL.format(namespace=self.namespace), self.name)
        if not isinstance(data, dict):
            raise ListingError(self.name, f"Unexpected repository index for {self.namespace}")
        return list(data.get("child") or [])

    def _image_tags(self, repo: str) -> List[str]:
        url = GCR_IMAGE_TAGS_URL.format(namespace=self.namespace, name=repo)
        data = get_json(self.session, url, self.name)
        if not isinstance(data, dict):
            raise ListingError(self.name, f"Unexpected tag list for {repo}")
        return [f"{repo}:{tag}" for tag in data.get("tags") or []]


def source_reference(namespace: str, image: str) -> str:
    """Full pull reference for an identifier, e.g. gcr.io/google_containers/pause:3.1."""
    return GCR_REGISTRY_TPL.format(namespace=namespace, image=image)
