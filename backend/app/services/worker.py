"""
Service worker event dispatcher.
Wires the cache store, strategies, lifecycle, sync and notifications behind one
``dispatch(event, data)`` entry point, the way a browser delivers worker events.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import CacheConfig, Settings
from .background_sync import BackgroundSyncCoordinator, Transmit
from .cache_store import CacheStoreManager
from .fetch_strategy import FetchStrategyEngine, StrategyResult
from .lifecycle import LifecycleManager
from .notifications import NotificationCenter
from .offline_fallback import OfflineFallbackProvider
from .origin_client import OriginClient
from .request_classifier import RequestClassifier, RequestDescriptor

logger = logging.getLogger(__name__)

SKIP_WAITING_MESSAGE = "SKIP_WAITING"


class WorkerEvent(str, Enum):
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    SYNC = "sync"
    PERIODIC_SYNC = "periodicsync"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"
    MESSAGE = "message"


class ServiceWorker:
    def __init__(
        self,
        config: CacheConfig,
        store: CacheStoreManager,
        origin: OriginClient,
        notifications: NotificationCenter,
        transmit: Optional[Transmit] = None,
    ):
        self.config = config
        self.store = store
        self.origin = origin
        self.notifications = notifications
        self.classifier = RequestClassifier(config.static_manifest)
        self.fallback = OfflineFallbackProvider()
        self.engine = FetchStrategyEngine(config, store, origin, self.classifier, self.fallback)
        self.lifecycle = LifecycleManager(config, store, origin)
        self.sync = BackgroundSyncCoordinator(config, store, transmit)

        self._handlers: Dict[WorkerEvent, Callable[[Any], Awaitable[Any]]] = {
            WorkerEvent.INSTALL: self.on_install,
            WorkerEvent.ACTIVATE: self.on_activate,
            WorkerEvent.FETCH: self.on_fetch,
            WorkerEvent.SYNC: self.on_sync,
            WorkerEvent.PERIODIC_SYNC: self.on_periodic_sync,
            WorkerEvent.PUSH: self.on_push,
            WorkerEvent.NOTIFICATION_CLICK: self.on_notification_click,
            WorkerEvent.MESSAGE: self.on_message,
        }

    async def dispatch(self, event: WorkerEvent, data: Any = None) -> Any:
        handler = self._handlers[WorkerEvent(event)]
        return await handler(data)

    async def start(self) -> None:
        """Install and activate. Nothing else controls pages in this process, so no waiting phase."""
        await self.dispatch(WorkerEvent.INSTALL)
        await self.dispatch(WorkerEvent.ACTIVATE)

    async def aclose(self) -> None:
        await self.origin.aclose()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def on_install(self, data=None) -> bool:
        return await self.lifecycle.install()

    async def on_activate(self, data=None):
        return await self.lifecycle.activate()

    async def on_fetch(self, request: RequestDescriptor) -> Optional[StrategyResult]:
        """``None`` means the request was not intercepted and should go straight to the origin."""
        if not self.lifecycle.controlling:
            return None
        return await self.engine.handle(request)

    async def on_sync(self, tag: str):
        return await self.sync.handle_sync(tag)

    async def on_periodic_sync(self, tag: str):
        return await self.sync.handle_periodic_sync(tag)

    async def on_push(self, payload: Optional[Dict[str, Any]]):
        return self.notifications.show(payload)

    async def on_notification_click(self, data: Dict[str, Any]) -> Optional[str]:
        return self.notifications.click(data["notification_id"], data.get("action"))

    async def on_message(self, data: Optional[Dict[str, Any]]) -> bool:
        """Handle a page control message. Returns whether it was understood."""
        if not data or data.get("type") != SKIP_WAITING_MESSAGE:
            logger.debug("Ignoring worker message: %r", data)
            return False
        self.lifecycle.skip_waiting()
        if self.lifecycle.is_waiting:
            await self.lifecycle.activate()
        return True


def build_worker(
    settings: Settings,
    session_factory: Optional[Callable[[], Session]] = None,
    transport=None,
    transmit: Optional[Transmit] = None,
) -> ServiceWorker:
    """Assemble a worker for the current deployment from settings."""
    config = CacheConfig.from_settings(settings)
    return ServiceWorker(
        config=config,
        store=CacheStoreManager(session_factory=session_factory, quota_bytes=settings.CACHE_QUOTA_BYTES),
        origin=OriginClient(timeout=settings.ORIGIN_TIMEOUT, transport=transport),
        notifications=NotificationCenter(
            icon=settings.NOTIFICATION_ICON,
            badge=settings.NOTIFICATION_BADGE,
            app_root_url=settings.APP_ROOT_URL,
        ),
        transmit=transmit,
    )
