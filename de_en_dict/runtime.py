"""Wires the cache store, HTTP client, worker and controller together."""

import asyncio
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel

from .config import Settings
from .core.cache_store import CacheStorage
from .core.dictionary import DictionaryHandle
from .core.loader import DictionaryLoader, UpdateCallback
from .core.progress import ProgressCallback
from .protocol.controller import MainController
from .protocol.worker import DictWorker

logger = structlog.get_logger(__name__)


class DictionaryRuntime:
    """Owns one worker/controller pair and the resources they share.

    The cache store and HTTP client live as long as the runtime; ``reload()``
    replaces only the worker and the controller, which is the way out of the
    controller's error state.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> None:
        """
        Initialize the runtime.

        Args:
            settings: Application settings
            transport: Optional httpx transport, e.g. a mock transport in tests
        """
        self.settings = settings
        self.transport = transport
        self.storage: Optional[CacheStorage] = None
        self.client: Optional[httpx.Client] = None
        self.worker: Optional[DictWorker] = None
        self.controller: Optional[MainController] = None
        self.reloads = 0

    def _open_resources(self) -> None:
        if self.storage is None:
            self.storage = CacheStorage(self.settings.cache_dir)
            self.storage.prune(keep=[self.settings.dict_cache_name, self.settings.asset_cache_name])
            self.storage.open(self.settings.asset_cache_name)
        if self.client is None:
            self.client = httpx.Client(
                timeout=self.settings.http_timeout,
                transport=self.transport,
                follow_redirects=True,
            )

    def _make_loader(
        self, handle: DictionaryHandle, on_progress: ProgressCallback, on_update: UpdateCallback
    ) -> DictionaryLoader:
        return DictionaryLoader(
            self.settings,
            self.storage.open(self.settings.dict_cache_name),
            self.client,
            handle,
            on_progress=on_progress,
            on_update=on_update,
        )

    async def start(self) -> MainController:
        """Start a fresh worker and controller."""
        self._open_resources()
        loop = asyncio.get_running_loop()
        controller = MainController(self.settings, send=lambda data: worker.submit(data), loop=loop)
        worker = DictWorker(
            self.settings,
            post=lambda data: loop.call_soon_threadsafe(controller.receive, data),
            loader_factory=self._make_loader,
        )
        controller.subscribe(self._log_notification)
        self.worker, self.controller = worker, controller
        worker.start()
        controller.start()
        logger.info("Dictionary runtime started", dict_url=self.settings.dict_url)
        return controller

    async def stop(self) -> None:
        """Stop the worker and controller; shared resources stay open."""
        controller, worker = self.controller, self.worker
        self.controller = self.worker = None
        if controller is not None:
            controller.close()
        if worker is not None:
            await asyncio.to_thread(worker.stop)

    async def reload(self) -> MainController:
        """Replace the worker and controller, e.g. to recover from an error."""
        logger.info("Reloading dictionary runtime")
        await self.stop()
        self.reloads += 1
        return await self.start()

    async def close(self) -> None:
        """Stop everything and release the HTTP client."""
        await self.stop()
        if self.client is not None:
            self.client.close()
            self.client = None

    @staticmethod
    def _log_notification(message: BaseModel) -> None:
        logger.debug("Worker notification", message_type=message.type)
