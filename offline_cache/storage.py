"""
On-disk cache storage for page assets.

A storage root holds one directory per named cache. Each entry is a body
file plus a JSON metadata file, both named by the SHA-256 of the URL.
"""
import hashlib
import json
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional


class InstallError(Exception):
    """An asset could not be fetched, so nothing was stored."""


@dataclass
class CachedResponse:
    """A stored (or freshly fetched) response.

    Attributes:
        url: Absolute request URL
        status: HTTP status code
        headers: Response headers
        body: Raw response body
    """

    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _entry_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class Cache:
    """A single named cache backed by one directory."""

    def __init__(self, name: str, path: Path):
        self.name = name
        self.path = path

    def _paths(self, url: str) -> tuple[Path, Path]:
        key = _entry_key(url)
        return self.path / f"{key}.body", self.path / f"{key}.json"

    def match(self, url: str) -> Optional[CachedResponse]:
        body_path, meta_path = self._paths(url)
        if not (meta_path.exists() and body_path.exists()):
            return None
        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        return CachedResponse(
            url=meta["url"],
            status=meta["status"],
            headers=meta.get("headers", {}),
            body=body_path.read_bytes(),
        )

    def put(self, response: CachedResponse) -> None:
        body_path, meta_path = self._paths(response.url)
        meta = {
            "url": response.url,
            "status": response.status,
            "headers": response.headers,
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }
        # body first: an entry only counts once its metadata exists
        _atomic_write(body_path, response.body)
        _atomic_write(meta_path, json.dumps(meta).encode("utf-8"))

    def delete(self, url: str) -> bool:
        body_path, meta_path = self._paths(url)
        existed = meta_path.exists()
        meta_path.unlink(missing_ok=True)
        body_path.unlink(missing_ok=True)
        return existed

    def keys(self) -> list[str]:
        urls = []
        for meta_path in sorted(self.path.glob("*.json")):
            urls.append(json.loads(meta_path.read_text(encoding="utf-8"))["url"])
        return urls

    def add_all(self, urls: Iterable[str], fetch: Callable[[str], CachedResponse]) -> list[CachedResponse]:
        """Fetch every URL, then store them all; store nothing if any fails.

        Raises:
            InstallError: a fetch raised or returned a non-2xx status
        """
        fetched = []
        for url in urls:
            try:
                response = fetch(url)
            except Exception as e:
                raise InstallError(f"Failed to fetch {url}: {e}") from e
            if not response.ok:
                raise InstallError(f"Failed to fetch {url}: HTTP {response.status}")
            fetched.append(response)

        for response in fetched:
            self.put(response)
        return fetched


class CacheStorage:
    """All named caches under one root directory."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _cache_dir(self, name: str) -> Path:
        if not name or "/" in name or name.startswith("."):
            raise ValueError(f"Invalid cache name: {name!r}")
        return self.root / name

    def open(self, name: str) -> Cache:
        path = self._cache_dir(name)
        path.mkdir(parents=True, exist_ok=True)
        return Cache(name, path)

    def has(self, name: str) -> bool:
        return self._cache_dir(name).is_dir()

    def keys(self) -> list[str]:
        return sorted(
            d.name for d in self.root.iterdir()
            if d.is_dir() and not d.name.startswith(".")
        )

    def delete(self, name: str) -> bool:
        path = self._cache_dir(name)
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        return True

    def match(self, url: str) -> Optional[CachedResponse]:
        """Look the URL up in every cache, in name order."""
        for name in self.keys():
            response = Cache(name, self.root / name).match(url)
            if response is not None:
                return response
        return None
