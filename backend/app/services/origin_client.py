"""
Origin fetch boundary.
Issues the requests the gateway forwards to the origin (and to third-party CDNs in the manifest).
"""
import logging
from typing import Optional

import httpx

from ..core.exceptions import NetworkFailure
from .request_classifier import RequestDescriptor

logger = logging.getLogger(__name__)

# Never forwarded upstream: they describe the page->gateway hop, not the origin one.
HOP_BY_HOP_HEADERS = frozenset({
    "host",
    "connection",
    "keep-alive",
    "content-length",
    "transfer-encoding",
    "accept-encoding",
    "upgrade",
})


class OriginClient:
    """Async HTTP client for the origin server.

    Non-OK statuses are returned as responses; only transport-level problems
    (DNS, refused connection, timeout) raise ``NetworkFailure``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch(self, request: RequestDescriptor) -> httpx.Response:
        headers = [(k, v) for k, v in request.headers if k.lower() not in HOP_BY_HOP_HEADERS]
        try:
            return await self._client.request(
                request.method,
                request.url,
                headers=headers,
                content=request.body or None,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Network request failed for %s %s: %s", request.method, request.url, exc)
            raise NetworkFailure(f"Network request failed: {exc}", url=request.url) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
