"""Worker context: loads the dictionary and runs searches off the controller's loop."""

import queue
import threading
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel

from ..config import Settings
from ..core.dictionary import DictionaryHandle, DictionaryStats
from ..core.engine import SearchEngine
from ..core.loader import DictionaryLoader, UpdateCallback
from ..core.pattern import clean_search_term
from ..core.progress import ProgressCallback
from ..exceptions import MessageDecodeError
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
    decode_main_message,
    encode_message,
)
from .states import WorkerState

logger = structlog.get_logger(__name__)

PostFunction = Callable[[Dict[str, Any]], None]
LoaderFactory = Callable[[DictionaryHandle, ProgressCallback, UpdateCallback], DictionaryLoader]

_STOP = object()


class DictWorker:
    """Owns the dictionary and answers controller requests.

    Two threads run here: one loads the dictionary, the other serves the
    inbox. Requests are handled one at a time in arrival order; searches read
    the current snapshot once, so a background swap never splits a search.
    """

    def __init__(self, settings: Settings, post: PostFunction, loader_factory: LoaderFactory) -> None:
        """
        Initialize the worker.

        Args:
            settings: Application settings
            post: Delivers an encoded message to the controller context
            loader_factory: Builds the DictionaryLoader for this worker's handle
        """
        self.settings = settings
        self._post_raw = post
        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self.handle = DictionaryHandle()
        self.engine = SearchEngine(
            check_interval_lines=settings.progress_check_interval_lines,
            initial_report_ms=settings.progress_initial_report_ms,
            report_interval_ms=settings.progress_report_interval_ms,
            suggestion_threshold=settings.suggestion_threshold,
        )
        self.state = WorkerState.LOADING_DICT
        self.error: Optional[str] = None
        self.loader = loader_factory(self.handle, self._on_load_progress, self._on_update)
        self._threads: List[threading.Thread] = []
        self._handlers = {
            StatusRequestMessage: self._handle_status_request,
            SearchRequestMessage: self._handle_search,
            RandomRequestMessage: self._handle_random,
        }

    def start(self) -> None:
        """Start the message loop and the dictionary load."""
        self._threads = [
            threading.Thread(target=self._run, name="dict-worker", daemon=True),
            threading.Thread(target=self._load, name="dict-loader", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the message loop and cancel background loader work."""
        self.loader.close()
        self.inbox.put(_STOP)
        for thread in self._threads:
            if thread.name == "dict-worker":
                thread.join(timeout)

    def submit(self, data: Dict[str, Any]) -> None:
        """Queue an encoded controller message for this worker."""
        self.inbox.put(data)

    def handle_message(self, data: Any) -> None:
        """Decode and handle one controller message; never raises."""
        try:
            message = decode_main_message(data)
        except MessageDecodeError as e:
            logger.error("Dropping undecodable controller message", error=str(e))
            return
        try:
            self._handlers[type(message)](message)
        except Exception as e:
            logger.exception("Worker failed to handle message", message_type=message.type)
            self.state = WorkerState.ERROR
            self.error = f"{type(e).__name__}: {e}"
            self._post(self._status())

    def _run(self) -> None:
        while True:
            data = self.inbox.get()
            if data is _STOP:
                break
            self.handle_message(data)

    def _load(self) -> None:
        try:
            snapshot = self.loader.load()
        except Exception as e:
            logger.exception("Dictionary load crashed")
            snapshot = None
            self.error = f"{type(e).__name__}: {e}"
        if snapshot is None:
            self.state = WorkerState.ERROR
            self.error = self.error or "Failed to load the dictionary"
        else:
            self.state = WorkerState.READY
            logger.info("Dictionary loaded", lines=snapshot.stats.lines, entries=snapshot.stats.entries)
        self._post(self._status())

    def _status(self) -> WorkerStatusMessage:
        return WorkerStatusMessage(state=self.state, stats=self.handle.current().stats, error=self.error)

    def _post(self, message: BaseModel) -> None:
        try:
            self._post_raw(encode_message(message))
        except Exception as e:
            logger.warning("Failed to post message to controller", message_type=message.type, error=str(e))

    def _handle_status_request(self, message: StatusRequestMessage) -> None:
        self._post(self._status())

    def _handle_search(self, message: SearchRequestMessage) -> None:
        if self.state != WorkerState.READY:
            self._post(self._status())
            return
        snapshot = self.handle.current()
        term = clean_search_term(message.query)
        result = self.engine.search(
            snapshot.lines,
            term,
            progress=lambda percent: self._post(SearchProgressMessage(percent=min(percent, 100.0))),
        )
        suggestions: List[str] = []
        if term and not result.matches:
            suggestions = self.engine.suggest(snapshot.headwords, term, self.settings.max_suggestions)
        self._post(
            ResultsMessage(
                query=message.query,
                pattern=result.pattern,
                matches=result.matches,
                suggestions=suggestions,
            )
        )

    def _handle_random(self, message: RandomRequestMessage) -> None:
        line = self.engine.random_line(self.handle.current().lines) if self.state == WorkerState.READY else None
        if line is None:
            self._post(self._status())
            return
        self._post(RandomLineMessage(line=line))

    def _on_load_progress(self, percent: float) -> None:
        self._post(DictProgressMessage(percent=min(percent, 100.0)))

    def _on_update(self, status: str, stats: DictionaryStats) -> None:
        self._post(DictUpdateMessage(status=status, stats=stats))
