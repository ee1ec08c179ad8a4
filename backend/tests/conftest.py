"""Shared fixtures: per-test SQLite cache database and a scriptable fake origin."""
from typing import Dict, Set, Tuple

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import CacheConfig
from app.models.base import Base
import app.models.cache  # noqa: F401  registers cache tables
from app.services.cache_store import CacheStoreManager
from app.services.origin_client import OriginClient

ORIGIN = "http://origin.test"
STATIC_CACHE = "ruralcare-static-v1"
DYNAMIC_CACHE = "ruralcare-dynamic-v1"


class FakeOrigin:
    """Handler for ``httpx.MockTransport``.

    Unknown URLs answer 404; ``offline`` or ``failing`` URLs raise a connect error.
    """

    def __init__(self):
        self.routes: Dict[str, Tuple[int, dict]] = {}
        self.calls = []
        self.offline = False
        self.failing: Set[str] = set()

    def add(self, url: str, status: int = 200, **kwargs) -> None:
        self.routes[url] = (status, kwargs)

    def calls_to(self, url: str) -> int:
        return sum(1 for _, called in self.calls if called == url)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append((request.method, url))
        if self.offline or url in self.failing:
            raise httpx.ConnectError("Network is unreachable", request=request)
        if url in self.routes:
            status, kwargs = self.routes[url]
            return httpx.Response(status, **kwargs)
        return httpx.Response(404, text="Not Found")


@pytest.fixture()
def session_factory(tmp_path):
    """Isolated on-disk SQLite database (threadpool-safe, unlike :memory:)."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cache.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def fake_origin():
    return FakeOrigin()


@pytest.fixture()
def cache_config():
    return CacheConfig(
        static_cache=STATIC_CACHE,
        dynamic_cache=DYNAMIC_CACHE,
        origin=ORIGIN,
        static_manifest=(
            f"{ORIGIN}/",
            f"{ORIGIN}/index.html",
            f"{ORIGIN}/styles.css",
            f"{ORIGIN}/app.js",
        ),
    )


@pytest.fixture()
def store(session_factory):
    return CacheStoreManager(session_factory=session_factory)


@pytest.fixture()
def origin_client(fake_origin):
    return OriginClient(transport=httpx.MockTransport(fake_origin))


@pytest.fixture()
def seeded_origin(fake_origin, cache_config):
    """Fake origin serving the whole static manifest."""
    for url in cache_config.static_manifest:
        if url.endswith(".css"):
            fake_origin.add(url, text="body { margin: 0; }", headers={"Content-Type": "text/css"})
        elif url.endswith(".js"):
            fake_origin.add(url, text="console.log('app');", headers={"Content-Type": "application/javascript"})
        else:
            fake_origin.add(url, text="<html>RuralCare</html>", headers={"Content-Type": "text/html"})
    return fake_origin
