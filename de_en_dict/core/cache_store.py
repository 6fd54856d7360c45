"""Keyed persistent cache store.

The store holds named partitions ("caches"), each mapping resource URLs to a
stored response body plus a few headers. Partitions live in subdirectories of
the store root; every entry is a body file and a JSON metadata file named
after the SHA-256 of its URL.
"""

import hashlib
import json
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

import structlog

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024


def _key(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class CachedResponse:
    """A response body stored in a cache partition."""

    def __init__(self, url: str, path: Path, headers: Dict[str, str], stored_at: float) -> None:
        self.url = url
        self.path = path
        self.headers = headers
        self.stored_at = stored_at

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("content-length")
        return int(value) if value and value.isdigit() else None

    def read(self) -> bytes:
        return self.path.read_bytes()

    def text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding)

    def iter_bytes(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        with open(self.path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                yield chunk


class Cache:
    """One named partition of the store, keyed by URL."""

    def __init__(self, name: str, directory: Path) -> None:
        self.name = name
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _paths(self, url: str):
        key = _key(url)
        return self.directory / f"{key}.body", self.directory / f"{key}.json"

    def match(self, url: str) -> Optional[CachedResponse]:
        """Return the stored response for a URL, or None."""
        body_path, meta_path = self._paths(url)
        if not body_path.exists() or not meta_path.exists():
            return None
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache metadata", cache=self.name, url=url, error=str(e))
            return None
        return CachedResponse(url, body_path, meta.get("headers", {}), meta.get("stored_at", 0.0))

    def put(self, url: str, body: bytes, headers: Optional[Dict[str, str]] = None) -> None:
        """Store (or overwrite) the response for a URL."""
        self.put_chunks(url, [body], headers)

    def put_chunks(
        self, url: str, chunks: Iterable[bytes], headers: Optional[Dict[str, str]] = None
    ) -> None:
        """Store a response body given as chunks; the entry is replaced atomically."""
        body_path, meta_path = self._paths(url)
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            size = 0
            try:
                with os.fdopen(fd, "wb") as f:
                    for chunk in chunks:
                        f.write(chunk)
                        size += len(chunk)
                headers["content-length"] = str(size)
                meta = {"url": url, "headers": headers, "stored_at": time.time()}
                meta_tmp = meta_path.with_suffix(".json.tmp")
                meta_tmp.write_text(json.dumps(meta), encoding="utf-8")
                os.replace(tmp_name, body_path)
                os.replace(meta_tmp, meta_path)
            finally:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
        logger.debug("Cache store", cache=self.name, url=url, bytes=size)

    def delete(self, url: str) -> bool:
        """Remove the response for a URL; returns True if something was removed."""
        body_path, meta_path = self._paths(url)
        removed = False
        with self._lock:
            for path in (meta_path, body_path):
                if path.exists():
                    path.unlink()
                    removed = True
        return removed

    def keys(self) -> List[str]:
        """URLs stored in this partition."""
        urls = []
        for meta_path in sorted(self.directory.glob("*.json")):
            try:
                urls.append(json.loads(meta_path.read_text(encoding="utf-8"))["url"])
            except (OSError, ValueError, KeyError):
                continue
        return urls


class CacheStorage:
    """Collection of named cache partitions under one root directory.

    Partitions are opened once and the same handle is returned on every later
    ``open()`` for the lifetime of the storage object.
    """

    def __init__(self, root: str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._caches: Dict[str, Cache] = {}
        self._lock = threading.Lock()

    def _directory(self, name: str) -> Path:
        return self.root / _key(name)[:32]

    def open(self, name: str) -> Cache:
        """Open a partition, creating it if needed."""
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                directory = self._directory(name)
                directory.mkdir(parents=True, exist_ok=True)
                (directory / "NAME").write_text(name, encoding="utf-8")
                cache = Cache(name, directory)
                self._caches[name] = cache
            return cache

    def keys(self) -> List[str]:
        """Names of all partitions in the store."""
        names = []
        for name_file in sorted(self.root.glob("*/NAME")):
            try:
                names.append(name_file.read_text(encoding="utf-8"))
            except OSError:
                continue
        return names

    def delete(self, name: str) -> bool:
        """Delete a partition and everything in it."""
        with self._lock:
            self._caches.pop(name, None)
            directory = self._directory(name)
            if not directory.exists():
                return False
            shutil.rmtree(directory)
        return True

    def prune(self, keep: Iterable[str]) -> List[str]:
        """Delete every partition whose name is not in ``keep``."""
        keep = set(keep)
        deleted = [name for name in self.keys() if name not in keep]
        for name in deleted:
            self.delete(name)
        if deleted:
            logger.info("Cleaned caches", deleted=deleted)
        return deleted
