"""Controller context: the state machine that drives the worker."""

import asyncio
import itertools
import platform
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

from .. import __version__
from ..config import Settings
from ..core.dictionary import DictionaryStats
from ..core.lru import LRUCache
from ..core.pattern import clean_search_term
from ..exceptions import (
    ControllerError,
    ControllerNotReadyError,
    MessageDecodeError,
    RequestTimeoutError,
    SearchInProgressError,
    SearchTermRejectedError,
)
from .messages import (
    DictProgressMessage,
    DictUpdateMessage,
    RandomLineMessage,
    RandomRequestMessage,
    ResultsMessage,
    SearchProgressMessage,
    SearchRequestMessage,
    StatusRequestMessage,
    WorkerStatusMessage,
    decode_worker_message,
    encode_message,
)
from .states import MainState, WorkerState

logger = structlog.get_logger(__name__)

SendFunction = Callable[[Dict[str, Any]], None]
Subscriber = Callable[[BaseModel], None]

SEARCH = "search"
RANDOM = "random"

UPDATE_TEXTS = {
    "loading": "Updating the dictionary in the background",
    "done": "Dictionary updated",
    "error": "Background dictionary update failed",
}


class SearchOutcome(NamedTuple):
    """A finished search as seen by the controller's callers."""

    query: str
    pattern: str
    matches: List[str]
    suggestions: List[str]
    cache_hit: bool


class ControllerStatus(BaseModel):
    """Point-in-time view of the controller."""

    state: MainState
    stats: DictionaryStats
    load_progress: Optional[float] = None
    search_progress: Optional[float] = None
    update_status: Optional[str] = None
    update_text: Optional[str] = None
    location: str = ""
    pending_query: Optional[str] = None
    cached_queries: int = 0
    diagnostic: Optional[str] = Field(None, description="Environment and error log, only in the Error state")


class _PendingRequest(NamedTuple):
    request_id: int
    kind: str
    query: str
    future: "asyncio.Future[Any]"
    timeout: asyncio.TimerHandle


def _consume_result(future: "asyncio.Future[Any]") -> None:
    # searches started by navigation have no awaiting caller
    if not future.cancelled() and future.exception() is not None:
        logger.info("Navigation search failed", error=str(future.exception()))


def environment_identifier() -> str:
    """Describe the running interpreter and platform for diagnostics."""
    return (
        f"de_en_dict/{__version__} {platform.python_implementation()}/"
        f"{platform.python_version()} ({platform.platform()})"
    )


class MainController:
    """Drives the worker through the request/response protocol.

    All methods must be called on the controller's event loop. Worker messages
    arrive through ``receive``; each request gets a future that resolves when
    the matching reply arrives or fails when the request times out. Only one
    request is outstanding at a time.
    """

    def __init__(
        self,
        settings: Settings,
        send: SendFunction,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            settings: Application settings
            send: Delivers an encoded message to the worker context
            loop: Event loop to run on; defaults to the running loop at ``start()``
        """
        self.settings = settings
        self._send_raw = send
        self.loop = loop
        self.state = MainState.INIT
        self.stats = DictionaryStats()
        self.location = ""
        self.navigation_installed = False
        self.results_cache: LRUCache[str, Tuple[str, List[str], List[str]]] = LRUCache(
            settings.result_cache_size
        )
        self.load_progress: Optional[float] = None
        self.search_progress: Optional[float] = None
        self.update_status: Optional[str] = None
        self.error_log: List[Tuple[datetime, str, str]] = []
        self._pending: Optional[_PendingRequest] = None
        self._request_ids = itertools.count(1)
        self._status_attempts = 0
        self._status_timer: Optional[asyncio.TimerHandle] = None
        self._subscribers: List[Subscriber] = []
        self._handlers = {
            WorkerStatusMessage: self._on_worker_status,
            DictProgressMessage: self._on_dict_progress,
            SearchProgressMessage: self._on_search_progress,
            DictUpdateMessage: self._on_dict_update,
            ResultsMessage: self._on_results,
            RandomLineMessage: self._on_random_line,
        }

    # Lifecycle

    def start(self) -> None:
        """Start asking the worker for its status."""
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        self.state = MainState.INIT
        self._status_attempts = 0
        self._request_status()

    def close(self) -> None:
        """Cancel timers and fail whatever request is still outstanding."""
        if self._status_timer is not None:
            self._status_timer.cancel()
            self._status_timer = None
        self._fail_pending(ControllerNotReadyError(self.state.value, "controller stopped"))

    def subscribe(self, callback: Subscriber) -> None:
        """Receive every worker message the controller accepts."""
        self._subscribers.append(callback)

    def _request_status(self) -> None:
        self._status_timer = None
        if self.state != MainState.INIT:
            return
        if self._status_attempts >= self.settings.status_retries:
            self._enter_error("status", f"worker did not answer {self._status_attempts} status requests")
            return
        self._status_attempts += 1
        logger.debug("Requesting worker status", attempt=self._status_attempts)
        self._send(StatusRequestMessage())
        self._status_timer = self.loop.call_later(self.settings.status_retry_backoff, self._request_status)

    def _send(self, message: BaseModel) -> None:
        self._send_raw(encode_message(message))

    # Requests

    def navigate(self, term: str) -> Optional["asyncio.Future[SearchOutcome]"]:
        """
        Move to a new location and run the search it implies.

        Before the dictionary is ready only the location is recorded; it is
        searched as soon as the worker reports ``Ready``. Afterwards the
        location changes only when the search is accepted.

        Raises:
            SearchTermRejectedError: If the cleaned term is a single character
            ControllerNotReadyError: If the controller is in its error state
        """
        term = clean_search_term(term)
        if not self.navigation_installed:
            self.location = term
            return None
        future = self.request_search(term)
        if future is not None:
            self.location = term
        return future

    def _search_location(self) -> Optional["asyncio.Future[SearchOutcome]"]:
        try:
            future = self.request_search(self.location)
        except ControllerError as e:
            logger.info("Ignoring location search", location=self.location, error=str(e))
            return None
        if future is not None:
            future.add_done_callback(_consume_result)
        return future

    def request_search(self, term: str) -> Optional["asyncio.Future[SearchOutcome]"]:
        """
        Start a search.

        Returns:
            A future resolving to a SearchOutcome, or None if another request
            is still outstanding

        Raises:
            SearchTermRejectedError: If the cleaned term is a single character
            ControllerNotReadyError: If the dictionary is not loaded or the
                controller is in its error state
        """
        term = clean_search_term(term)
        if len(term) == 1:
            raise SearchTermRejectedError(f"Search term too short: {term!r}")
        if self.state == MainState.SEARCHING:
            logger.info("Search ignored, another request is outstanding", query=term)
            return None
        self._check_ready()

        future: "asyncio.Future[SearchOutcome]" = self.loop.create_future()
        if not term:
            future.set_result(SearchOutcome(term, "", [], [], False))
            return future
        cached = self.results_cache.get(term)
        if cached is not None:
            pattern, matches, suggestions = cached
            logger.debug("Search served from cache", query=term, matches=len(matches))
            future.set_result(SearchOutcome(term, pattern, list(matches), list(suggestions), True))
            return future

        self._start_request(SEARCH, term, SearchRequestMessage(query=term), self.settings.search_timeout, future)
        return future

    def request_random(self) -> Optional["asyncio.Future[str]"]:
        """Ask the worker for a random dictionary line; None while busy."""
        if self.state == MainState.SEARCHING:
            logger.info("Random entry ignored, another request is outstanding")
            return None
        self._check_ready()
        future: "asyncio.Future[str]" = self.loop.create_future()
        self._start_request(RANDOM, "", RandomRequestMessage(), self.settings.random_timeout, future)
        return future

    async def search(self, term: str) -> SearchOutcome:
        """Search for a term typed by a user; an accepted term becomes the new location."""
        if not self.navigation_installed:
            self._check_ready()
        future = self.navigate(term)
        if future is None:
            raise SearchInProgressError("Another search is in progress")
        return await future

    async def random_entry(self) -> str:
        future = self.request_random()
        if future is None:
            raise SearchInProgressError("Another search is in progress")
        return await future

    def _check_ready(self) -> None:
        if self.state != MainState.READY:
            raise ControllerNotReadyError(self.state.value, self.diagnostic())

    def _start_request(
        self, kind: str, query: str, message: BaseModel, timeout: float, future: "asyncio.Future[Any]"
    ) -> None:
        request_id = next(self._request_ids)
        handle = self.loop.call_later(timeout, self._on_timeout, request_id)
        self._pending = _PendingRequest(request_id, kind, query, future, handle)
        self.state = MainState.SEARCHING
        self.search_progress = None
        logger.debug("Request sent to worker", kind=kind, query=query, request_id=request_id)
        self._send(message)

    def _on_timeout(self, request_id: int) -> None:
        pending = self._pending
        if pending is None or pending.request_id != request_id:
            return
        logger.error("Worker request timed out", kind=pending.kind, query=pending.query)
        self._enter_error(pending.kind, f"{pending.kind} request timed out")

    def _finish_request(self) -> Optional[_PendingRequest]:
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.timeout.cancel()
        self.state = MainState.READY
        self.search_progress = None
        return pending

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, None
        if pending is None:
            return
        pending.timeout.cancel()
        if not pending.future.done():
            pending.future.set_exception(error)

    # Worker messages

    def receive(self, data: Any) -> None:
        """Handle one encoded worker message; never raises."""
        try:
            message = decode_worker_message(data)
        except MessageDecodeError as e:
            logger.error("Dropping undecodable worker message", error=str(e))
            return
        if self._handlers[type(message)](message):
            self._publish(message)
        else:
            logger.debug("Dropping worker message", message_type=message.type, state=self.state.value)

    def _publish(self, message: BaseModel) -> None:
        for callback in list(self._subscribers):
            try:
                callback(message)
            except Exception as e:
                logger.error("Subscriber failed", message_type=message.type, error=str(e))

    def _on_worker_status(self, message: WorkerStatusMessage) -> bool:
        if self.state == MainState.ERROR:
            return False
        if message.state == WorkerState.ERROR:
            self.stats = message.stats
            self._enter_error("worker", message.error or "worker reported an error")
            return True

        if self.state == MainState.INIT:
            if self._status_timer is not None:
                self._status_timer.cancel()
                self._status_timer = None
            self.state = MainState.AWAITING_DICT
            logger.info("Worker answered, waiting for the dictionary", worker_state=message.state.value)

        if self.state == MainState.AWAITING_DICT:
            self.stats = message.stats
            if message.state == WorkerState.READY:
                self._enter_ready()
            return True
        if self.state == MainState.SEARCHING and message.state != WorkerState.READY:
            # the worker refused the request
            self._enter_error("worker", f"worker is {message.state.value} while searching")
            return True
        if message.state != WorkerState.READY:
            return False
        self.stats = message.stats
        return True

    def _enter_ready(self) -> None:
        self.state = MainState.READY
        self.load_progress = None
        logger.info("Dictionary ready", lines=self.stats.lines, entries=self.stats.entries)
        if not self.navigation_installed:
            self.navigation_installed = True
            self._search_location()

    def _on_dict_progress(self, message: DictProgressMessage) -> bool:
        if self.state not in (MainState.INIT, MainState.AWAITING_DICT):
            return False
        self.load_progress = message.percent
        return True

    def _on_search_progress(self, message: SearchProgressMessage) -> bool:
        if self.state != MainState.SEARCHING:
            return False
        self.search_progress = message.percent
        return True

    def _on_dict_update(self, message: DictUpdateMessage) -> bool:
        self.stats = message.stats
        self.update_status = message.status
        if message.status == "done":
            # cached results refer to the previous dictionary
            self.results_cache.clear()
        logger.info("Background dictionary update", status=message.status, lines=message.stats.lines)
        return True

    def _on_results(self, message: ResultsMessage) -> bool:
        pending = self._pending
        if self.state != MainState.SEARCHING or pending is None or pending.kind != SEARCH:
            return False
        if pending.query != message.query:
            logger.info("Dropping stale search results", query=message.query, pending=pending.query)
            return False
        self._finish_request()
        self.results_cache.set(message.query, (message.pattern, message.matches, message.suggestions))
        if not pending.future.done():
            pending.future.set_result(
                SearchOutcome(
                    message.query, message.pattern, list(message.matches), list(message.suggestions), False
                )
            )
        return True

    def _on_random_line(self, message: RandomLineMessage) -> bool:
        pending = self._pending
        if self.state != MainState.SEARCHING or pending is None or pending.kind != RANDOM:
            return False
        self._finish_request()
        if not pending.future.done():
            pending.future.set_result(message.line)
        return True

    # Errors and status

    def _enter_error(self, context: str, error: str) -> None:
        self.error_log.append((datetime.now(timezone.utc), context, error))
        self.state = MainState.ERROR
        if self._status_timer is not None:
            self._status_timer.cancel()
            self._status_timer = None
        logger.error("Controller entered error state", context=context, error=error)
        if context in (SEARCH, RANDOM):
            failure: Exception = RequestTimeoutError(error)
        else:
            failure = ControllerNotReadyError(self.state.value, error)
        self._fail_pending(failure)

    def diagnostic(self) -> Optional[str]:
        """Environment identifier plus the error log, while in the Error state."""
        if self.state != MainState.ERROR:
            return None
        entries = [f"[{when.isoformat()}] {context}: {error}" for when, context, error in self.error_log]
        return "\n".join([environment_identifier()] + entries)

    def status(self) -> ControllerStatus:
        return ControllerStatus(
            state=self.state,
            stats=self.stats,
            load_progress=self.load_progress,
            search_progress=self.search_progress,
            update_status=self.update_status,
            update_text=UPDATE_TEXTS.get(self.update_status) if self.update_status else None,
            location=self.location,
            pending_query=self._pending.query if self._pending else None,
            cached_queries=len(self.results_cache),
            diagnostic=self.diagnostic(),
        )
