"""
Persistent cache partitions.
Named caches of GET responses that survive gateway restarts, stored through SQLAlchemy.
Every call runs in the threadpool so the event loop keeps serving other requests.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.exceptions import StorageFailure
from ..models import base as db_base
from ..models.base import generate_uuid
from ..models.cache import CacheEntry, CachePartition
from .request_classifier import RequestDescriptor

logger = logging.getLogger(__name__)

# Bodies are stored decoded, so transfer/encoding headers would be wrong on replay.
UNSTORED_HEADERS = frozenset({
    "content-encoding",
    "content-length",
    "transfer-encoding",
    "connection",
    "keep-alive",
})


@dataclass(frozen=True)
class CacheHandle:
    name: str


def storable_headers(headers: httpx.Headers) -> List[List[str]]:
    return [[k, v] for k, v in headers.multi_items() if k.lower() not in UNSTORED_HEADERS]


def _to_response(entry: CacheEntry) -> httpx.Response:
    return httpx.Response(
        status_code=entry.status_code,
        headers=[(k, v) for k, v in entry.headers or []],
        content=entry.body or b"",
        request=httpx.Request(entry.method, entry.url),
    )


def _dialect_insert(db: Session, table):
    """``INSERT ... ON CONFLICT`` for the backends that support it."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table)
    if dialect == "postgresql":
        return postgresql.insert(table)
    raise StorageFailure(f"Unsupported cache database: {dialect}")


def _ensure_partition(db: Session, name: str) -> None:
    """Create ``name`` unless it exists; concurrent creators do not conflict."""
    now = datetime.utcnow()
    stmt = (
        _dialect_insert(db, CachePartition.__table__)
        .values(name=name, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["name"])
    )
    db.execute(stmt)


def _upsert_entry(db: Session, name: str, request: RequestDescriptor, response: httpx.Response) -> None:
    """Insert or replace one entry: concurrent writers to the same identity, last write wins."""
    method, url = request.cache_key
    body = response.content
    now = datetime.utcnow()
    stmt = _dialect_insert(db, CacheEntry.__table__).values(
        id=generate_uuid(),
        partition_name=name,
        method=method,
        url=url,
        status_code=response.status_code,
        headers=storable_headers(response.headers),
        body=body,
        size_bytes=len(body),
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["partition_name", "method", "url"],
        set_={
            "status_code": stmt.excluded.status_code,
            "headers": stmt.excluded.headers,
            "body": stmt.excluded.body,
            "size_bytes": stmt.excluded.size_bytes,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)


class CacheStoreManager:
    """Open, read, write and prune cache partitions.

    ``quota_bytes`` caps the summed body size across all partitions; a write
    that would exceed it raises ``StorageFailure`` and leaves the store untouched.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        quota_bytes: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.quota_bytes = quota_bytes

    def _session(self) -> Session:
        factory = self._session_factory or db_base.SessionLocal
        return factory()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def open(self, name: str) -> CacheHandle:
        """Return a handle to ``name``, creating the partition if needed."""
        await run_in_threadpool(self._open_sync, name)
        return CacheHandle(name)

    async def keys(self) -> List[str]:
        return await run_in_threadpool(self._keys_sync)

    async def match(self, handle: CacheHandle, request: RequestDescriptor) -> Optional[httpx.Response]:
        if not request.is_get:
            return None
        return await run_in_threadpool(self._match_sync, handle.name, request)

    async def match_any(self, request: RequestDescriptor) -> Optional[httpx.Response]:
        """Look ``request`` up in every partition, oldest partition first."""
        if not request.is_get:
            return None
        return await run_in_threadpool(self._match_sync, None, request)

    async def put(self, handle: CacheHandle, request: RequestDescriptor, response: httpx.Response) -> None:
        await self.put_all(handle, [(request, response)])

    async def put_all(
        self,
        handle: CacheHandle,
        entries: Sequence[Tuple[RequestDescriptor, httpx.Response]],
    ) -> None:
        """Store every entry in one transaction: either all land or none do."""
        get_entries = [(req, resp) for req, resp in entries if req.is_get]
        if len(get_entries) != len(entries):
            logger.debug("Skipping %d non-GET entries for %s", len(entries) - len(get_entries), handle.name)
        # Same identity twice in one batch: last one wins
        rows = list({req.cache_key: (req, resp) for req, resp in get_entries}.values())
        if rows:
            await run_in_threadpool(self._put_all_sync, handle.name, rows)

    async def delete(self, name: str) -> bool:
        return await run_in_threadpool(self._delete_sync, name)

    async def delete_all(self, except_names: Iterable[str]) -> List[str]:
        """Delete every partition not in ``except_names``; return the deleted names."""
        keep = frozenset(except_names)
        deleted = []
        for name in await self.keys():
            if name in keep:
                continue
            logger.info("Deleting old cache: %s", name)
            if await self.delete(name):
                deleted.append(name)
        return deleted

    # ------------------------------------------------------------------
    # Internal helpers (threadpool side)
    # ------------------------------------------------------------------

    def _open_sync(self, name: str) -> None:
        db = self._session()
        try:
            _ensure_partition(db, name)
            db.commit()
        except StorageFailure:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageFailure(f"Could not open cache: {exc}", partition=name) from exc
        finally:
            db.close()

    def _keys_sync(self) -> List[str]:
        db = self._session()
        try:
            rows = db.query(CachePartition).order_by(CachePartition.created_at, CachePartition.name).all()
            return [p.name for p in rows]
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not list caches: {exc}") from exc
        finally:
            db.close()

    def _match_sync(self, name: Optional[str], request: RequestDescriptor) -> Optional[httpx.Response]:
        method, url = request.cache_key
        db = self._session()
        try:
            q = db.query(CacheEntry).filter(CacheEntry.method == method, CacheEntry.url == url)
            if name is not None:
                q = q.filter(CacheEntry.partition_name == name)
            else:
                q = q.join(CachePartition).order_by(CachePartition.created_at)
            entry = q.first()
            return _to_response(entry) if entry else None
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Cache lookup failed: {exc}", partition=name) from exc
        finally:
            db.close()

    def _put_all_sync(self, name: str, rows: Sequence[Tuple[RequestDescriptor, httpx.Response]]) -> None:
        db = self._session()
        try:
            _ensure_partition(db, name)

            incoming = 0
            replaced = 0
            for request, response in rows:
                method, url = request.cache_key
                existing_size = (
                    db.query(CacheEntry.size_bytes)
                    .filter(
                        CacheEntry.partition_name == name,
                        CacheEntry.method == method,
                        CacheEntry.url == url,
                    )
                    .scalar()
                )
                replaced += existing_size or 0
                incoming += len(response.content)

            if self.quota_bytes is not None:
                used = db.query(func.coalesce(func.sum(CacheEntry.size_bytes), 0)).scalar()
                if used - replaced + incoming > self.quota_bytes:
                    raise StorageFailure(
                        "Cache quota exceeded",
                        partition=name,
                        context={"used": used, "incoming": incoming, "quota": self.quota_bytes},
                    )

            for request, response in rows:
                _upsert_entry(db, name, request, response)
            db.commit()
        except StorageFailure:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageFailure(f"Cache write failed: {exc}", partition=name) from exc
        finally:
            db.close()

    def _delete_sync(self, name: str) -> bool:
        db = self._session()
        try:
            partition = db.get(CachePartition, name)
            if partition is None:
                return False
            db.delete(partition)
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageFailure(f"Could not delete cache: {exc}", partition=name) from exc
        finally:
            db.close()
