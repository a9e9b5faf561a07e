"""
Cache-first asset fetching for the upload page.

install() stores a fixed list of assets in a cache named by a version
string and removes caches left over from older versions; fetch() answers
from the cache when it can and from the network otherwise.
"""
import logging
from typing import Iterable, Optional
from urllib.parse import urljoin

import requests

from .storage import Cache, CachedResponse, CacheStorage

logger = logging.getLogger(__name__)

# Bump the version suffix whenever ASSETS change
CACHE_NAME = "evg-arthur-v4"
ASSETS = (
    "./",
    "./index.html",
    "https://fonts.googleapis.com/css2?family=Cinzel:wght@400;500;600;700;800&family=Inter:wght@300;400;500;600;700&family=Patrick+Hand&display=swap",
    "https://cdn.jsdelivr.net/npm/chart.js",
    "https://cdn.jsdelivr.net/npm/canvas-confetti@1.9.2/dist/confetti.browser.min.js",
)
FETCH_TIMEOUT_SECONDS = 30
DECODED_BODY_HEADERS = ("content-encoding", "content-length", "transfer-encoding")


class OfflineAssetCache:
    def __init__(
        self,
        storage: CacheStorage,
        base_url: str,
        cache_name: str = CACHE_NAME,
        assets: Iterable[str] = ASSETS,
        session: Optional[requests.Session] = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self.storage = storage
        self.base_url = base_url
        self.cache_name = cache_name
        self.assets = tuple(assets)
        self.session = session or requests.Session()
        self.timeout = timeout

    def resolve(self, url: str) -> str:
        return urljoin(self.base_url, url)

    def asset_urls(self) -> list[str]:
        return [self.resolve(a) for a in self.assets]

    def install(self) -> Cache:
        """Populate the current cache, then delete every other cache.

        Raises:
            InstallError: any asset failed; existing caches are left as they were
        """
        cache = self.storage.open(self.cache_name)
        cache.add_all(self.asset_urls(), self._network)
        logger.info("Cached %d assets in %s", len(self.assets), self.cache_name)

        for name in self.storage.keys():
            if name != self.cache_name:
                logger.info("Deleting stale cache %s", name)
                self.storage.delete(name)
        return cache

    def fetch(self, url: str, method: str = "GET") -> CachedResponse:
        """Cache-first: a stored response is returned as-is, otherwise the network one (not stored)."""
        absolute = self.resolve(url)
        if method.upper() == "GET":
            cached = self._match(absolute)
            if cached is not None:
                return cached
        return self._network(absolute, method)

    def _match(self, url: str) -> Optional[CachedResponse]:
        # the current version wins over any cache install() has not removed yet
        if self.storage.has(self.cache_name):
            cached = self.storage.open(self.cache_name).match(url)
            if cached is not None:
                return cached
        return self.storage.match(url)

    def _network(self, url: str, method: str = "GET") -> CachedResponse:
        resp = self.session.request(method, url, timeout=self.timeout)
        # requests has already decoded the body, so its transfer headers no longer apply
        headers = {k: v for k, v in resp.headers.items() if k.lower() not in DECODED_BODY_HEADERS}
        return CachedResponse(
            url=url,
            status=resp.status_code,
            headers=headers,
            body=resp.content,
        )
