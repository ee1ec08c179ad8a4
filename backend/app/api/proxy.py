"""
Catch-all interception: every page request goes through the worker's fetch event.
Requests the worker does not handle are passed straight through to the origin.
"""
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from ..core.exceptions import NetworkFailure
from ..services.cache_store import UNSTORED_HEADERS
from ..services.request_classifier import RequestDescriptor, RequestMode
from ..services.worker import ServiceWorker, WorkerEvent
from .worker import get_worker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

SERVED_FROM_HEADER = "X-Served-From"
PASSTHROUGH = "passthrough"


def describe_request(request: Request, origin: str, body: bytes = b"") -> RequestDescriptor:
    # raw_path keeps percent-escapes such as %2F that url.path decodes away
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    url = origin.rstrip("/") + path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return RequestDescriptor(
        method=request.method,
        url=url,
        mode=RequestMode.from_header(request.headers.get("sec-fetch-mode", "")),
        headers=tuple(request.headers.items()),
        body=body,
    )


def to_page_response(response: httpx.Response, served_from: str) -> Response:
    page_response = Response(content=response.content, status_code=response.status_code)
    # One header line per value: Set-Cookie must not be comma-joined
    for k, v in response.headers.multi_items():
        if k.lower() not in UNSTORED_HEADERS:
            page_response.headers.append(k, v)
    page_response.headers[SERVED_FROM_HEADER] = served_from
    return page_response


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    include_in_schema=False,
)
async def intercept(path: str, request: Request, worker: ServiceWorker = Depends(get_worker)):
    body = b"" if request.method == "GET" else await request.body()
    descriptor = describe_request(request, worker.config.origin, body)

    result = await worker.dispatch(WorkerEvent.FETCH, descriptor)
    if result is not None:
        return to_page_response(result.response, result.source.value)

    try:
        response = await worker.origin.fetch(descriptor)
    except NetworkFailure as exc:
        logger.warning("Passthrough failed for %s %s: %s", descriptor.method, descriptor.url, exc)
        raise HTTPException(status_code=502, detail="Origin unreachable")
    return to_page_response(response, PASSTHROUGH)
