"""
Background Sync Service.
Replays cached API state toward the origin when connectivity comes back
(``background-sync``) or on the host's periodic schedule (``content-sync``).
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.config import CacheConfig
from ..core.exceptions import SyncStepFailure
from .cache_store import CacheHandle, CacheStoreManager
from .request_classifier import RequestDescriptor

logger = logging.getLogger(__name__)

SYNC_TAG = "background-sync"
PERIODIC_SYNC_TAG = "content-sync"

Transmit = Callable[[str, Any], Awaitable[None]]


class SyncStatus(str, Enum):
    SYNCED = "synced"
    SKIPPED = "skipped"  # nothing cached for this endpoint
    FAILED = "failed"


@dataclass(frozen=True)
class SyncStep:
    name: str
    path: str


# Run in this order, each independently of the others
SYNC_STEPS = (
    SyncStep("health-records", "/api/health-records"),
    SyncStep("pharmacy", "/api/pharmacy"),
    SyncStep("symptoms", "/api/symptoms"),
)


@dataclass
class SyncStepResult:
    step: str
    url: str
    status: SyncStatus
    error_message: Optional[str] = None


@dataclass
class SyncReport:
    tag: str
    steps: List[SyncStepResult] = field(default_factory=list)

    def count(self, status: SyncStatus) -> int:
        return sum(1 for s in self.steps if s.status == status)

    def as_dict(self) -> Dict:
        return {
            "tag": self.tag,
            "synced": self.count(SyncStatus.SYNCED),
            "skipped": self.count(SyncStatus.SKIPPED),
            "failed": self.count(SyncStatus.FAILED),
            "total": len(self.steps),
            "steps": [
                {"step": s.step, "url": s.url, "status": s.status.value, "error": s.error_message}
                for s in self.steps
            ],
        }


async def log_transmit(step: str, data: Any) -> None:
    """Default transmit boundary: the origin has no upload endpoint yet, so just log."""
    logger.info("Syncing %s: %s", step, data)


class BackgroundSyncCoordinator:
    """
    Reads the known API entries out of the dynamic cache and hands them to ``transmit``.

    There is no separate outbox: whatever is still cached is what gets replayed.
    Entries are never deleted here; only cache versioning removes them.
    """

    def __init__(
        self,
        config: CacheConfig,
        store: CacheStoreManager,
        transmit: Optional[Transmit] = None,
        steps=SYNC_STEPS,
    ):
        self.config = config
        self.store = store
        self.transmit = transmit or log_transmit
        self.steps = tuple(steps)

    async def handle_sync(self, tag: str) -> Optional[SyncReport]:
        if tag != SYNC_TAG:
            logger.debug("Ignoring sync tag %r", tag)
            return None
        return await self.do_background_sync(tag)

    async def handle_periodic_sync(self, tag: str) -> Optional[SyncReport]:
        if tag != PERIODIC_SYNC_TAG:
            logger.debug("Ignoring periodic sync tag %r", tag)
            return None
        return await self.do_background_sync(tag)

    async def do_background_sync(self, tag: str = SYNC_TAG) -> SyncReport:
        logger.info("Performing background sync (%s)...", tag)
        report = SyncReport(tag=tag)
        for step in self.steps:
            url = self.config.resolve(step.path)
            try:
                status = await self._sync_step(step, url)
                report.steps.append(SyncStepResult(step.name, url, status))
            except SyncStepFailure as exc:
                logger.error("Error syncing %s: %s", step.name, exc)
                report.steps.append(SyncStepResult(step.name, url, SyncStatus.FAILED, exc.message))

        logger.info(
            "Background sync completed: %d synced, %d skipped, %d failed",
            report.count(SyncStatus.SYNCED),
            report.count(SyncStatus.SKIPPED),
            report.count(SyncStatus.FAILED),
        )
        return report

    async def _sync_step(self, step: SyncStep, url: str) -> SyncStatus:
        try:
            cached = await self.store.match(CacheHandle(self.config.dynamic_cache), RequestDescriptor.get(url))
            if cached is None:
                return SyncStatus.SKIPPED
            await self.transmit(step.name, cached.json())
            return SyncStatus.SYNCED
        except Exception as exc:
            raise SyncStepFailure(str(exc), step=step.name) from exc
