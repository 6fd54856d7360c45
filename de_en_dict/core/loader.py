"""Dictionary acquisition: cache-first load, version check, background refresh."""

import codecs
import threading
import zlib
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import structlog

from ..config import Settings
from ..exceptions import DictionaryLoadError
from .cache_store import Cache
from .dictionary import DictionaryHandle, DictionarySnapshot, DictionaryStats
from .progress import ProgressCallback, ProgressReporter

logger = structlog.get_logger(__name__)

UpdateCallback = Callable[[str, DictionaryStats], None]

UPDATE_LOADING = "loading"
UPDATE_DONE = "done"
UPDATE_ERROR = "error"

_LOAD_ERRORS = (DictionaryLoadError, httpx.HTTPError, OSError)


def _gunzip_utf8(chunks: Iterable[bytes]) -> Iterable[str]:
    """Decompress a gzip byte stream and decode it as UTF-8, chunk by chunk."""
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        for chunk in chunks:
            data = decompressor.decompress(chunk)
            # concatenated gzip members
            while decompressor.eof and decompressor.unused_data:
                rest = decompressor.unused_data
                decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
                data += decompressor.decompress(rest)
            if data:
                yield decoder.decode(data)
        yield decoder.decode(decompressor.flush(), final=True)
    except (zlib.error, UnicodeDecodeError) as e:
        raise DictionaryLoadError(f"Failed to decompress dictionary: {e}") from e
    if not decompressor.eof:
        raise DictionaryLoadError("Dictionary data is truncated")


class DictionaryLoader:
    """Produces the dictionary snapshot, preferring the cached copy.

    When the dictionary is cached it is served immediately and a version check
    runs on a timer; if the remote version marker changed, the dictionary is
    fetched again and swapped into the handle as a whole.
    """

    def __init__(
        self,
        settings: Settings,
        cache: Cache,
        client: httpx.Client,
        handle: DictionaryHandle,
        on_progress: Optional[ProgressCallback] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.client = client
        self.handle = handle
        self.on_progress = on_progress
        self.on_update = on_update
        self._timers: List[threading.Timer] = []
        self._closed = False
        self._lock = threading.Lock()

    def check_for_update(self) -> bool:
        """
        Determine whether the remote dictionary changed since the last check.

        Fetches the small version marker and compares it byte for byte with the
        cached copy, then stores the fresh copy for the next comparison.
        Failures are not fatal: they count as "no update known".
        """
        url = self.settings.dict_version_url
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            logger.info("Failed to check dict version information", url=url, error=str(e))
            return False
        if not response.is_success:
            logger.info("Failed to get dict version information", url=url, status_code=response.status_code)
            return False

        fresh = response.content
        cached = self.cache.match(url)
        if cached is None:
            logger.debug("The dict version information is not in our cache")
            needs_update = True
        else:
            try:
                needs_update = cached.read() != fresh
            except OSError as e:
                logger.warning("Failed to read cached dict version information", error=str(e))
                needs_update = True
            if needs_update:
                logger.debug("The dict version information has changed")
            else:
                logger.debug("The dict version information has not changed")

        try:
            self.cache.put(url, fresh, {"content-type": response.headers.get("content-type", "text/plain")})
        except OSError as e:
            logger.warning("Failed to store dict version information", error=str(e))
        return needs_update

    def load(self) -> Optional[DictionarySnapshot]:
        """
        Load the dictionary into the handle.

        Returns:
            The loaded snapshot, or None if neither the cache nor the network
            produced a usable dictionary
        """
        url = self.settings.dict_url
        cached = self.cache.match(url)
        if cached is not None:
            logger.info("The dictionary is in the cache, using it and checking for an update in the background")
            try:
                snapshot = self._decode(cached.iter_bytes(), cached.content_length, report=True)
            except _LOAD_ERRORS as e:
                logger.warning("Cached dictionary is unusable, fetching it again", error=str(e))
                self.cache.delete(url)
            else:
                self.handle.swap(snapshot)
                self._schedule(self.background_update)
                return snapshot

        logger.info("The dictionary is not in the cache, fetching it now")
        # only to record the current version marker for the next session
        self._schedule(self.check_for_update)
        try:
            snapshot, body, headers = self._fetch(report=True)
        except _LOAD_ERRORS as e:
            logger.error("Failed to load dictionary", url=url, error=str(e))
            return None
        self.handle.swap(snapshot)
        self._persist(body, headers)
        return snapshot

    def background_update(self) -> bool:
        """
        Refetch the dictionary if the version marker changed.

        Returns:
            True if a new dictionary was swapped in
        """
        if not self.check_for_update():
            logger.debug("Dictionary doesn't appear to need an update")
            return False

        logger.info("Dictionary needs update, starting background update")
        old_stats = self.handle.current().stats
        self._notify(UPDATE_LOADING, old_stats)
        try:
            snapshot, body, headers = self._fetch(report=False)
        except _LOAD_ERRORS as e:
            logger.warning("Failed to get dictionary update", error=str(e))
            self._notify(UPDATE_ERROR, old_stats)
            return False
        self.handle.swap(snapshot)
        self._persist(body, headers)
        self._notify(UPDATE_DONE, snapshot.stats)
        return True

    def close(self) -> None:
        """Cancel pending background work."""
        with self._lock:
            self._closed = True
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()

    def _fetch(self, report: bool) -> Tuple[DictionarySnapshot, List[bytes], Dict[str, str]]:
        url = self.settings.dict_url
        body: List[bytes] = []

        def recording(chunks: Iterable[bytes]) -> Iterable[bytes]:
            for chunk in chunks:
                body.append(chunk)
                yield chunk

        with self.client.stream("GET", url) as response:
            logger.debug("Dictionary response", url=url, status_code=response.status_code)
            if not response.is_success:
                raise DictionaryLoadError(f"{url} {response.status_code} {response.reason_phrase}")
            raw_length = response.headers.get("content-length")
            total = int(raw_length) if raw_length and raw_length.isdigit() else None
            snapshot = self._decode(recording(response.iter_raw()), total, report)
            headers = {"content-type": response.headers.get("content-type", "application/gzip")}
        return snapshot, body, headers

    def _persist(self, body: List[bytes], headers: Dict[str, str]) -> None:
        # only called once the body decoded without error
        try:
            self.cache.put_chunks(self.settings.dict_url, body, headers)
        except OSError as e:
            logger.warning("Failed to store dictionary in cache", error=str(e))

    def _decode(self, chunks: Iterable[bytes], total: Optional[int], report: bool) -> DictionarySnapshot:
        reporter = ProgressReporter(
            self.on_progress if report and total else None,
            interval_ms=self.settings.progress_report_interval_ms,
            initial_delay_ms=self.settings.progress_initial_report_ms,
            report_zero=True,
        )
        received = 0

        def counted() -> Iterable[bytes]:
            nonlocal received
            for chunk in chunks:
                received += len(chunk)
                yield chunk
                reporter.update(received, total or 0)

        reporter.start()
        text = "".join(_gunzip_utf8(counted()))
        reporter.finish()
        if total is not None and received != total:
            logger.warning("Dictionary size mismatch", expected_bytes=total, received_bytes=received)
        logger.debug("Decompressed dictionary", characters=len(text))
        return DictionarySnapshot.from_text(text, self.settings.stats_scan_lines)

    def _notify(self, status: str, stats: DictionaryStats) -> None:
        if not self.on_update:
            return
        try:
            self.on_update(status, stats)
        except Exception as e:
            logger.error("Update callback failed", status=status, error=str(e))

    def _schedule(self, task: Callable[[], object]) -> None:
        def run() -> None:
            try:
                task()
            except Exception as e:
                logger.error("Background dictionary task failed", task=task.__name__, error=str(e))

        with self._lock:
            if self._closed:
                return
            timer = threading.Timer(self.settings.update_check_delay, run)
            timer.daemon = True
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
            timer.start()
