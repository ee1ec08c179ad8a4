"""
Request descriptors and URL classification.
Decides which caching policy an intercepted request gets.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Tuple
from urllib.parse import urlsplit

STATIC_EXTENSIONS = (
    ".css", ".js", ".html",
    ".png", ".jpg", ".jpeg", ".gif", ".svg",
    ".woff", ".woff2", ".ttf",
)
API_PATH_PREFIX = "/api/"
API_KEYWORDS = ("pharmacy", "health-records", "symptoms", "consultation")


class RequestMode(str, Enum):
    NAVIGATE = "navigate"
    SAME_ORIGIN = "same-origin"
    NO_CORS = "no-cors"
    CORS = "cors"

    @classmethod
    def from_header(cls, value: str) -> "RequestMode":
        """Map a ``Sec-Fetch-Mode`` header value; unknown or missing means sub-resource."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.NO_CORS


class RequestLabel(str, Enum):
    STATIC_ASSET = "static-asset"
    API_CALL = "api-call"
    OTHER = "other"


@dataclass(frozen=True)
class RequestDescriptor:
    """An intercepted request. Cache identity is method + URL only."""
    method: str
    url: str
    mode: RequestMode = RequestMode.NO_CORS
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""

    @classmethod
    def get(cls, url: str, mode: RequestMode = RequestMode.NO_CORS, headers=()) -> "RequestDescriptor":
        return cls(method="GET", url=url, mode=mode, headers=tuple(headers))

    @property
    def is_get(self) -> bool:
        return self.method.upper() == "GET"

    @property
    def is_navigation(self) -> bool:
        return self.mode == RequestMode.NAVIGATE

    @property
    def cache_key(self) -> Tuple[str, str]:
        return (self.method.upper(), self.url)


class RequestClassifier:
    """Pure URL -> label mapping.

    Static checks run first, so a script served under ``/api/`` is treated
    as a static asset and cached cache-first.
    """

    def __init__(self, static_manifest: Iterable[str] = ()):
        self._manifest = frozenset(static_manifest)

    def is_static_asset(self, url: str) -> bool:
        if url in self._manifest:
            return True
        path = urlsplit(url).path.lower()
        return path.endswith(STATIC_EXTENSIONS)

    def is_api_call(self, url: str) -> bool:
        return API_PATH_PREFIX in url or any(keyword in url for keyword in API_KEYWORDS)

    def classify(self, url: str) -> RequestLabel:
        if self.is_static_asset(url):
            return RequestLabel.STATIC_ASSET
        if self.is_api_call(url):
            return RequestLabel.API_CALL
        return RequestLabel.OTHER
