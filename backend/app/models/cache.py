from sqlalchemy import Column, String, Integer, LargeBinary, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class CachePartition(Base, TimestampMixin):
    """A named, versioned cache (e.g. ``ruralcare-static-v1.0.0``)."""
    __tablename__ = "cache_partitions"

    name = Column(String(200), primary_key=True)

    entries = relationship("CacheEntry", back_populates="partition", cascade="all, delete-orphan")


class CacheEntry(Base, TimestampMixin):
    """One stored response, keyed by request method + URL within a partition."""
    __tablename__ = "cache_entries"
    __table_args__ = (
        UniqueConstraint("partition_name", "method", "url", name="uq_cache_entry_identity"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    partition_name = Column(String(200), ForeignKey("cache_partitions.name"), nullable=False, index=True)
    method = Column(String(10), nullable=False, default="GET")
    url = Column(String(2048), nullable=False)

    status_code = Column(Integer, nullable=False)
    headers = Column(JSON, nullable=False, default=list)  # [[name, value], ...], order preserved
    body = Column(LargeBinary, nullable=False, default=b"")
    size_bytes = Column(Integer, nullable=False, default=0)

    partition = relationship("CachePartition", back_populates="entries")
