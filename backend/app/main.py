"""
RuralCare Offline Gateway
Offline-first caching layer between the telemedicine pages and the origin server.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api import proxy, worker as worker_api
from .core.access_log_middleware import AccessLogMiddleware
from .core.config import settings
from .core.logging_config import setup_logging
from .models import base as db_base
from .models import cache  # noqa: F401  registers cache tables
from .services.background_sync import PERIODIC_SYNC_TAG
from .services.worker import ServiceWorker, WorkerEvent, build_worker

logger = logging.getLogger(__name__)


async def periodic_sync_loop(worker: ServiceWorker, interval_seconds: int) -> None:
    """Host-side scheduler delivering ``content-sync`` triggers."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await worker.dispatch(WorkerEvent.PERIODIC_SYNC, PERIODIC_SYNC_TAG)
        except Exception as exc:
            logger.error("Periodic sync failed: %s", exc)


def create_app(
    worker: Optional[ServiceWorker] = None,
    periodic_sync_interval: Optional[int] = None,
) -> FastAPI:
    interval = settings.PERIODIC_SYNC_INTERVAL_SECONDS if periodic_sync_interval is None else periodic_sync_interval

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
        if worker is None:
            db_base.Base.metadata.create_all(bind=db_base.engine)
            app.state.worker = build_worker(settings)
        else:
            app.state.worker = worker

        await app.state.worker.start()

        sync_task = None
        if interval > 0:
            sync_task = asyncio.create_task(periodic_sync_loop(app.state.worker, interval))
        try:
            yield
        finally:
            if sync_task is not None:
                sync_task.cancel()
                try:
                    await sync_task
                except asyncio.CancelledError:
                    pass
            await app.state.worker.aclose()

    app = FastAPI(
        title="RuralCare Offline Gateway",
        description=(
            "Offline-first caching gateway for the RuralCare telemedicine front end. "
            "Cache-first static assets, network-first API calls with offline fallbacks, "
            "and background sync for poor rural connectivity."
        ),
        version=settings.VERSION,
        docs_url="/_worker/docs",
        openapi_url="/_worker/openapi.json",
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(AccessLogMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": settings.APP_NAME, "version": settings.VERSION}

    app.include_router(worker_api.router)
    # Catch-all last so it never shadows the routes above
    app.include_router(proxy.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
