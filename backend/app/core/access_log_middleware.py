"""
Access log for intercepted requests.
Records where each response came from (cache, network, fallback...) so offline
behaviour in the field can be reconstructed from the logs.
"""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

# Control endpoints are not page traffic
SKIPPED_PATH_PREFIXES = (
    "/_worker",
    "/health",
)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status, response source and duration of page requests."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(prefix) for prefix in SKIPPED_PATH_PREFIXES):
            return response

        served_from = response.headers.get("X-Served-From", "unknown")
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else None

        logger.info(
            "%s %s -> %d [%s] %.1fms client=%s",
            request.method, path, response.status_code, served_from, elapsed_ms, client,
        )
        return response
