"""
Docker Hub Lister — Enumerate images already mirrored into a Docker Hub account.

Mirrored repositories are named "<namespace>_<name>" under the account, so
`gcr.io/google_containers/pause:3.1` lives at
`<user>/google_containers_pause:3.1`. Only repositories with the namespace
prefix count; the prefix is stripped so identifiers compare directly
against the GCR listing ("pause:3.1").

Both endpoints are paginated and followed through their "next" links.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Set

import requests

from ..engine.errors import ListingError
from ..engine.tokens import AdmissionTokens
from .base import RegistryLister
from .http import get_json, query_all

logger = logging.getLogger(__name__)

DOCKER_HUB_REPOS_URL = "https://hub.docker.com/v2/repositories/{user}/?page_size=100"
DOCKER_HUB_TAGS_URL = "https://hub.docker.com/v2/repositories/{user}/{repo}/tags/?page_size=100"

# Safety net against a registry that keeps returning a "next" link
MAX_PAGES = 1000


class DockerHubLister(RegistryLister):
    """Lists mirrored images for one namespace in a Docker Hub account."""

    def __init__(
        self,
        user: str,
        namespace: str,
        session: requests.Session,
        tokens: AdmissionTokens,
    ):
        self.user = user
        self.namespace = namespace
        self.session = session
        self.tokens = tokens

    @property
    def name(self) -> str:
        return "dockerhub"

    @property
    def prefix(self) -> str:
        return f"{self.namespace}_"

    def list_images(self) -> Set[str]:
        repos = self.list_repositories()
        logger.debug(f"[dockerhub] {len(repos)} mirrored repositories for {self.user}")

        per_repo = query_all(repos, self._repo_tags, self.tokens)
        return {image for tagged in per_repo for image in tagged}

    def list_repositories(self) -> List[str]:
        repos = []
        for entry in self._paginate(DOCKER_HUB_REPOS_URL.format(user=self.user)):
            name = entry.get("name") or ""
            if name.startswith(self.prefix):
                repos.append(name)
        return repos

    def _repo_tags(self, repo: str) -> List[str]:
        image = repo[len(self.prefix):]
        url = DOCKER_HUB_TAGS_URL.format(user=self.user, repo=repo)
        return [f"{image}:{entry['name']}" for entry in self._paginate(url) if entry.get("name")]

    def _paginate(self, url: Optional[str]) -> Iterator[dict]:
        pages = 0
        while url:
            pages += 1
            if pages > MAX_PAGES:
                raise ListingError(self.name, f"Too many pages at {url}")
            data = get_json(self.session, url, self.name)
            if not isinstance(data, dict):
                raise ListingError(self.name, f"Unexpected payload from {url}")
            yield from data.get("results") or []
            url = data.get("next")


def target_repository(user: str, namespace: str, image: str) -> str:
    """Full push reference for an identifier, e.g. gcrxio/google_containers_pause:3.1."""
    return f"{user}/{namespace}_{image}"
