"""
Fetch strategies for intercepted requests.

Static assets (and anything unclassified) are served cache-first: once cached they
never pay network latency again, which matters on rural links. API calls are
network-first and degrade through the dynamic cache, then canned offline data.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from ..core.config import CacheConfig
from ..core.exceptions import NetworkFailure, StorageFailure
from .cache_store import CacheHandle, CacheStoreManager
from .offline_fallback import OfflineFallbackProvider, offline_response
from .origin_client import OriginClient
from .request_classifier import RequestClassifier, RequestDescriptor, RequestLabel

logger = logging.getLogger(__name__)

OFFLINE_PAGE_PATH = "/index.html"


class ResponseSource(str, Enum):
    CACHE = "cache"
    NETWORK = "network"
    OFFLINE_PAGE = "offline-page"
    FALLBACK = "fallback"
    OFFLINE = "offline"


@dataclass
class StrategyResult:
    response: httpx.Response
    source: ResponseSource
    label: RequestLabel


class FetchStrategyEngine:
    def __init__(
        self,
        config: CacheConfig,
        store: CacheStoreManager,
        origin: OriginClient,
        classifier: Optional[RequestClassifier] = None,
        fallback: Optional[OfflineFallbackProvider] = None,
    ):
        self.config = config
        self.store = store
        self.origin = origin
        self.classifier = classifier or RequestClassifier(config.static_manifest)
        self.fallback = fallback or OfflineFallbackProvider()

    async def handle(self, request: RequestDescriptor) -> Optional[StrategyResult]:
        """Serve ``request`` according to its label.

        Returns ``None`` for non-GET requests: the caller passes them through
        untouched, with no cache read or write.
        """
        if not request.is_get:
            return None

        label = self.classifier.classify(request.url)
        if label == RequestLabel.API_CALL:
            return await self.network_first(request)
        partition = self.config.static_cache if label == RequestLabel.STATIC_ASSET else self.config.dynamic_cache
        return await self.cache_first(request, partition, label)

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    async def cache_first(
        self,
        request: RequestDescriptor,
        partition: str,
        label: RequestLabel = RequestLabel.OTHER,
    ) -> StrategyResult:
        handle = CacheHandle(partition)
        cached = await self._lookup(handle, request)
        if cached is not None:
            logger.debug("Serving from cache: %s", request.url)
            return StrategyResult(cached, ResponseSource.CACHE, label)

        try:
            response = await self.origin.fetch(request)
        except NetworkFailure as exc:
            logger.error("Error serving from cache: %s", exc)
            return await self._offline_result(request, label)

        if response.is_success:
            await self._store(handle, request, response)
        return StrategyResult(response, ResponseSource.NETWORK, label)

    async def network_first(self, request: RequestDescriptor) -> StrategyResult:
        label = RequestLabel.API_CALL
        handle = CacheHandle(self.config.dynamic_cache)
        try:
            response = await self.origin.fetch(request)
        except NetworkFailure:
            logger.info("Network failed, trying cache: %s", request.url)
        else:
            if response.is_success:
                await self._store(handle, request, response)
            return StrategyResult(response, ResponseSource.NETWORK, label)

        cached = await self._lookup(handle, request)
        if cached is not None:
            return StrategyResult(cached, ResponseSource.CACHE, label)
        return StrategyResult(self.fallback.provide(request), ResponseSource.FALLBACK, label)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _lookup(self, handle: CacheHandle, request: RequestDescriptor) -> Optional[httpx.Response]:
        try:
            return await self.store.match(handle, request)
        except StorageFailure as exc:
            logger.warning("Cache lookup failed, treating as miss: %s", exc)
            return None

    async def _store(self, handle: CacheHandle, request: RequestDescriptor, response: httpx.Response) -> None:
        try:
            await self.store.put(handle, request, response)
        except StorageFailure as exc:
            logger.warning("Caching skipped for %s: %s", request.url, exc)

    async def _offline_result(self, request: RequestDescriptor, label: RequestLabel) -> StrategyResult:
        if request.is_navigation:
            page = await self._offline_page()
            if page is not None:
                return StrategyResult(page, ResponseSource.OFFLINE_PAGE, label)
        return StrategyResult(offline_response(request), ResponseSource.OFFLINE, label)

    async def _offline_page(self) -> Optional[httpx.Response]:
        page_request = RequestDescriptor.get(self.config.resolve(OFFLINE_PAGE_PATH))
        try:
            return await self.store.match_any(page_request)
        except StorageFailure as exc:
            logger.warning("Offline page lookup failed: %s", exc)
            return None
