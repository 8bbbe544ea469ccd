"""
Repository for the upload ledger.

The ledger is append-only: records are inserted once and never updated
or deleted here. Concurrent appends need no coordination.
"""
import logging
import time
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional

from upload_relay.exceptions import InvalidInput, PersistenceError
from upload_relay.models.upload_record import (
    StorageBackend,
    UploadPathway,
    UploadRecord,
    utcnow,
)
from upload_relay.utils.logging import log_upload_recorded
from upload_relay.utils.metrics import uploads_recorded_total

logger = logging.getLogger(__name__)


class UploadLedger:
    """Repository for upload record database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _check_shape(record: UploadRecord) -> None:
        """Exactly one of single_url / multiple_urls must be populated."""
        has_single = record.single_url is not None
        has_multiple = bool(record.multiple_urls)
        if has_single and has_multiple:
            raise InvalidInput("Upload record cannot have both a single URL and a URL list")
        if not has_single and not has_multiple:
            raise InvalidInput("Upload record must reference at least one URL")

    async def append(self, record: UploadRecord) -> UploadRecord:
        """
        Insert a new upload record and commit it.

        created_at is always stamped here; any value already set on the
        record is overwritten.

        Args:
            record: Unsaved record (see UploadRecord.for_single / for_batch)

        Returns:
            The stored record with id and created_at populated

        Raises:
            InvalidInput: the record has neither or both URL shapes
            PersistenceError: the insert or commit failed; the session
                is rolled back and nothing is stored
        """
        self._check_shape(record)
        record.created_at = utcnow()

        start_time = time.perf_counter()
        try:
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to write upload record: {e}")
            raise PersistenceError("Error saving upload record", details={"error": str(e)}) from e
        duration_ms = (time.perf_counter() - start_time) * 1000

        pathway = record.pathway.value
        uploads_recorded_total.labels(pathway=pathway).inc()
        log_upload_recorded(
            logger,
            record.id,
            pathway,
            len(record.urls),
            duration_ms=duration_ms,
            backend=record.backend.value,
        )
        return record

    async def get(self, record_id: str) -> Optional[UploadRecord]:
        """Fetch one record by ID."""
        result = await self.db.execute(
            select(UploadRecord).where(UploadRecord.id == record_id)
        )
        return result.scalar_one_or_none()

    async def list_records(
        self,
        pathway: Optional[UploadPathway] = None,
        backend: Optional[StorageBackend] = None,
        limit: Optional[int] = None
    ) -> List[UploadRecord]:
        """
        List records, newest first.

        Args:
            pathway: Optional filter by pathway
            backend: Optional filter by storage backend
            limit: Optional maximum number of records

        Returns:
            List of UploadRecord instances
        """
        query = select(UploadRecord).order_by(UploadRecord.created_at.desc())
        if pathway is not None:
            query = query.where(UploadRecord.pathway == pathway)
        if backend is not None:
            query = query.where(UploadRecord.backend == backend)
        if limit is not None:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list upload records: {e}")
            raise PersistenceError("Error fetching upload records", details={"error": str(e)}) from e
        return list(result.scalars().all())
