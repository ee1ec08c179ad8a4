"""
Worker lifecycle: install -> activate -> control.
"""
import asyncio
import logging
from enum import Enum
from typing import List

from ..core.config import CacheConfig
from ..core.exceptions import LifecycleError, NetworkFailure, StaticSeedFailure, StorageFailure
from .cache_store import CacheStoreManager
from .origin_client import OriginClient
from .request_classifier import RequestDescriptor

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"


class LifecycleManager:
    """Drives one worker version through its states.

    A new version gets a new manager; there is no way back to ``installing``.
    """

    def __init__(self, config: CacheConfig, store: CacheStoreManager, origin: OriginClient):
        self.config = config
        self.store = store
        self.origin = origin
        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False
        self.controlling = False

    @property
    def is_waiting(self) -> bool:
        return self.state == WorkerState.INSTALLED

    async def install(self) -> bool:
        """Pre-populate the static partition. Returns whether seeding succeeded."""
        self._require(WorkerState.PARSED, "install")
        logger.info("Service worker installing...")
        self.state = WorkerState.INSTALLING

        seeded = False
        try:
            await self.seed_static_cache()
            seeded = True
            logger.info("Static files cached successfully")
        except (StaticSeedFailure, StorageFailure) as exc:
            logger.error("Error caching static files: %s", exc)

        self.state = WorkerState.INSTALLED
        if seeded:
            self.skip_waiting()
        return seeded

    async def seed_static_cache(self) -> None:
        """Fetch the whole manifest, then write it in one batch.

        Any failed or non-OK fetch raises ``StaticSeedFailure`` before
        anything is written.
        """
        handle = await self.store.open(self.config.static_cache)
        requests = [RequestDescriptor.get(url) for url in self.config.static_manifest]
        logger.info("Caching %d static files", len(requests))
        responses = await asyncio.gather(*(self._fetch_for_seed(r) for r in requests), return_exceptions=True)
        for response in responses:
            if isinstance(response, Exception):
                raise response
        await self.store.put_all(handle, list(zip(requests, responses)))

    async def _fetch_for_seed(self, request: RequestDescriptor):
        try:
            response = await self.origin.fetch(request)
        except NetworkFailure as exc:
            raise StaticSeedFailure(exc.message, url=request.url) from exc
        if not response.is_success:
            raise StaticSeedFailure("Bad response", url=request.url, status_code=response.status_code)
        return response

    def skip_waiting(self) -> None:
        self.skip_waiting_requested = True

    async def activate(self) -> List[str]:
        """Drop partitions from other versions and take control. Returns deleted names."""
        self._require(WorkerState.INSTALLED, "activate")
        logger.info("Service worker activating...")
        self.state = WorkerState.ACTIVATING
        try:
            deleted = await self.store.delete_all(self.config.current_caches)
        except StorageFailure as exc:
            logger.error("Error deleting old caches: %s", exc)
            deleted = []
        # Current partitions exist before the first intercepted request
        for name in (self.config.static_cache, self.config.dynamic_cache):
            try:
                await self.store.open(name)
            except StorageFailure as exc:
                logger.error("Error opening cache %s: %s", name, exc)
        self.claim()
        self.state = WorkerState.ACTIVE
        logger.info("Service worker activated")
        return deleted

    def claim(self) -> None:
        """Start controlling already-open pages without a reload."""
        self.controlling = True

    def _require(self, expected: WorkerState, action: str) -> None:
        if self.state != expected:
            raise LifecycleError(f"Cannot {action} from state {self.state.value}", state=self.state.value)
