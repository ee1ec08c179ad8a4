"""
Canned responses for when both the origin and the cache come up empty.
The pages always get a parseable body back, never a missing response.
"""
import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx

from .request_classifier import RequestDescriptor

logger = logging.getLogger(__name__)

OFFLINE_TEXT = "Offline - Content not available"

PHARMACY_PAYLOAD = {
    "medicines": [
        {
            "id": 1,
            "name": "Paracetamol 500mg",
            "pharmacy": "Rural Health Pharmacy",
            "availability": "available",
            "price": "₹25",
            "distance": "2.5 km",
        },
        {
            "id": 2,
            "name": "Amoxicillin 250mg",
            "pharmacy": "Village Medical Store",
            "availability": "low-stock",
            "price": "₹45",
            "distance": "1.8 km",
        },
    ]
}

HEALTH_RECORDS_PAYLOAD = {"records": []}

SYMPTOMS_PAYLOAD = {
    "analysis": {
        "possibleConditions": ["General Malaise"],
        "recommendedActions": [
            "Monitor symptoms",
            "Consult healthcare provider if symptoms persist",
        ],
    }
}

UNAVAILABLE_PAYLOAD = {
    "error": "Offline",
    "message": "Service temporarily unavailable",
}

# Checked in order against the URL path
FALLBACK_PAYLOADS = (
    ("pharmacy", PHARMACY_PAYLOAD),
    ("health-records", HEALTH_RECORDS_PAYLOAD),
    ("symptoms", SYMPTOMS_PAYLOAD),
)


def offline_response(request: Optional[RequestDescriptor] = None) -> httpx.Response:
    """Synthetic 503 for non-API requests that could not be served at all."""
    return httpx.Response(
        503,
        text=OFFLINE_TEXT,
        headers={"Content-Type": "text/plain"},
        request=httpx.Request(request.method, request.url) if request else None,
    )


class OfflineFallbackProvider:
    """Maps an API request to a canned JSON body by URL path substring."""

    def payload_for(self, url: str):
        path = urlsplit(url).path
        for keyword, payload in FALLBACK_PAYLOADS:
            if keyword in path:
                return 200, payload
        return 503, UNAVAILABLE_PAYLOAD

    def provide(self, request: RequestDescriptor) -> httpx.Response:
        status_code, payload = self.payload_for(request.url)
        logger.info("Serving offline data for %s (status=%d)", request.url, status_code)
        return httpx.Response(
            status_code,
            json=payload,
            request=httpx.Request(request.method, request.url),
        )
