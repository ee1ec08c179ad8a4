from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple
from urllib.parse import urljoin

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "RuralCare Offline Gateway"
    VERSION: str = "1.0.0"

    # Cache partitions: "<prefix>-static-<version>" / "<prefix>-dynamic-<version>".
    # Bump CACHE_VERSION whenever STATIC_FILES changes.
    CACHE_PREFIX: str = "ruralcare"
    CACHE_VERSION: str = "v1.0.0"
    CACHE_QUOTA_BYTES: Optional[int] = 50 * 1024 * 1024  # 50MB, None = unlimited

    DATABASE_URL: str = "sqlite:///./ruralcare_cache.db"

    # Origin server the pages talk to
    ORIGIN_URL: str = "http://localhost:8080"
    ORIGIN_TIMEOUT: Optional[float] = None  # no timeout: a hung origin delays the page

    # App shell pre-cached on install (relative entries resolve against ORIGIN_URL)
    STATIC_FILES: List[str] = [
        "/",
        "/index.html",
        "/styles.css",
        "/app.js",
        "/translations.js",
        "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.0.0/css/all.min.css",
        "https://fonts.googleapis.com/css2?family=Poppins:wght@300;400;500;600;700&display=swap",
    ]

    # Host-side periodic "content-sync" trigger, 0 disables it
    PERIODIC_SYNC_INTERVAL_SECONDS: int = 300

    # Push notifications
    NOTIFICATION_ICON: str = "/icon-192x192.png"
    NOTIFICATION_BADGE: str = "/badge-72x72.png"
    APP_ROOT_URL: str = "/"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"


settings = Settings()


@dataclass(frozen=True)
class CacheConfig:
    """Partition names and manifest for one deployed worker version."""
    static_cache: str
    dynamic_cache: str
    origin: str
    static_manifest: Tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, s: Settings) -> "CacheConfig":
        origin = s.ORIGIN_URL.rstrip("/")
        return cls(
            static_cache=f"{s.CACHE_PREFIX}-static-{s.CACHE_VERSION}",
            dynamic_cache=f"{s.CACHE_PREFIX}-dynamic-{s.CACHE_VERSION}",
            origin=origin,
            static_manifest=tuple(urljoin(origin + "/", f) for f in s.STATIC_FILES),
        )

    @property
    def current_caches(self) -> FrozenSet[str]:
        return frozenset((self.static_cache, self.dynamic_cache))

    def resolve(self, path: str) -> str:
        """Absolute URL for an origin-relative path."""
        return urljoin(self.origin + "/", path)
