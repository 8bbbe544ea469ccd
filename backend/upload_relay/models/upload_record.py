"""
UploadRecord model: the upload ledger.

One row per completed upload request. A row covers either a single
object (single_url) or an ordered batch (multiple_urls), never both.
The pathway tells which mechanism produced it.

Lifecycle:
1. Direct proxy upload stores bytes -> row with pathway="direct_proxy"
   (backend="s3" or backend="local")
2. Client confirms a pre-signed upload -> row with pathway="presigned"
Rows are never updated or deleted by this service.
"""
import enum
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import Column, String, Enum, DateTime, JSON, Index

from upload_relay.models.base import Base, generate_uuid


class UploadPathway(str, enum.Enum):
    """Mechanism that produced an upload record."""
    DIRECT_PROXY = "direct_proxy"  # Bytes streamed through this server
    PRESIGNED = "presigned"        # Client PUT directly to storage


class StorageBackend(str, enum.Enum):
    """Where the recorded objects live."""
    S3 = "s3"
    LOCAL = "local"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadRecord(Base):
    """
    Confirmed upload metadata.

    Attributes:
        id: Unique identifier (UUID)
        single_url: Public URL of a single uploaded object
        multiple_urls: Ordered public URLs of a batch upload
        pathway: direct_proxy or presigned
        backend: s3 or local (presigned records are always s3)
        created_at: Assigned by the ledger at commit time
    """
    __tablename__ = "upload_records"

    id = Column(String, primary_key=True, default=generate_uuid)

    # Exactly one of these is populated
    single_url = Column(String, nullable=True)
    multiple_urls = Column(JSON, nullable=False, default=list)

    pathway = Column(Enum(UploadPathway), nullable=False)
    backend = Column(Enum(StorageBackend), nullable=False, default=StorageBackend.S3)

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    __table_args__ = (
        Index('ix_upload_records_pathway_created', 'pathway', 'created_at'),
        Index('ix_upload_records_backend_created', 'backend', 'created_at'),
    )

    @classmethod
    def for_single(
        cls,
        url: str,
        pathway: UploadPathway,
        backend: StorageBackend = StorageBackend.S3
    ) -> "UploadRecord":
        """Build an unsaved record for one object."""
        return cls(single_url=url, multiple_urls=[], pathway=pathway, backend=backend)

    @classmethod
    def for_batch(
        cls,
        urls: List[str],
        pathway: UploadPathway,
        backend: StorageBackend = StorageBackend.S3
    ) -> "UploadRecord":
        """Build an unsaved record covering an ordered batch of objects."""
        return cls(single_url=None, multiple_urls=list(urls), pathway=pathway, backend=backend)

    @property
    def is_batch(self) -> bool:
        return self.single_url is None

    @property
    def urls(self) -> List[str]:
        """All URLs covered by this record, in order."""
        if self.single_url is not None:
            return [self.single_url]
        return list(self.multiple_urls or [])

    def __repr__(self):
        pathway: Optional[str] = self.pathway.value if self.pathway else None
        return (
            f"<UploadRecord(id={self.id}, pathway={pathway}, "
            f"urls={len(self.urls)})>"
        )
