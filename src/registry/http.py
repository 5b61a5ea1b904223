"""
HTTP Session — Shared requests session and query fan-out for registry
listing APIs.

Listing a namespace takes one request for the repository index plus one
per repository for its tags. The per-repository lookups run concurrently,
capped by the query admission tokens.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter

from ..engine.errors import ListingError
from ..engine.tokens import AdmissionTokens

logger = logging.getLogger(__name__)

USER_AGENT = "gcrsync/1.0"

T = TypeVar("T")


class TimeoutSession(requests.Session):
    """requests.Session that applies a default timeout to every request."""

    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def build_session(
    timeout: float = 10.0,
    proxy: Optional[str] = None,
    pool_size: int = 50,
) -> requests.Session:
    """
    Create the session used by both listers.

    `pool_size` should match the query limit so concurrent lookups do not
    queue on the connection pool.
    """
    session = TimeoutSession(timeout)
    session.headers["User-Agent"] = USER_AGENT

    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    if proxy:
        logger.info(f"Using HTTP proxy {proxy}")
        session.proxies = {"http": proxy, "https": proxy}

    return session


def get_json(session: requests.Session, url: str, registry: str) -> Any:
    """GET `url` and decode JSON, raising ListingError on any failure."""
    logger.debug(f"GET {url}")
    try:
        resp = session.get(url)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        raise ListingError(registry, f"GET {url} failed: {e}") from e
    except ValueError as e:
        raise ListingError(registry, f"GET {url} returned invalid JSON") from e


def query_all(
    items: Iterable[str],
    lookup: Callable[[str], T],
    tokens: AdmissionTokens,
) -> List[T]:
    """
    Run `lookup` for every item, at most `tokens.capacity` at a time.

    Results keep the order of `items`. The first exception is re-raised
    once all lookups have finished.
    """
    items = list(items)
    if not items:
        return []

    def _guarded(item: str) -> T:
        tokens.acquire()
        try:
            return lookup(item)
        finally:
            tokens.release()

    with ThreadPoolExecutor(
        max_workers=min(tokens.capacity, len(items)), thread_name_prefix="query"
    ) as executor:
        futures = [executor.submit(_guarded, item) for item in items]
    return [f.result() for f in futures]
