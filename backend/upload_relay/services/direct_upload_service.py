"""
Direct proxy uploads.

The server receives multipart file bytes, writes them itself and
records a direct_proxy ledger entry. Unlike the pre-signed path, the
record is written only after storage accepted the bytes.

DirectUploadService writes to the S3 bucket; LocalUploadService writes
to the local upload directory. Validation and recording are shared.
"""
import logging
from typing import List, Optional, Sequence
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from upload_relay.config import settings
from upload_relay.exceptions import InvalidInput, StorageUnavailable
from upload_relay.models.upload_record import StorageBackend, UploadRecord, UploadPathway
from upload_relay.repositories.upload_ledger import UploadLedger
from upload_relay.storage.local_store import LocalStore, get_local_store
from upload_relay.storage.presign import generate_object_key
from upload_relay.storage.s3_client import S3Client, get_s3_client
from upload_relay.utils.logging import log_storage_failure
from upload_relay.utils.metrics import storage_errors_total

logger = logging.getLogger(__name__)


def _file_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    stream = file.file
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


class DirectUploadService:
    """Streams uploaded files to S3 and records them."""

    backend = StorageBackend.S3

    def __init__(self, db: AsyncSession, client: Optional[S3Client] = None):
        self.ledger = UploadLedger(db)
        self._client = client or get_s3_client()

    @staticmethod
    def validate_file(file: UploadFile) -> None:
        """
        Check content type and size against configured limits.

        Raises:
            InvalidInput: unnamed, disallowed type or oversized file
        """
        if not file.filename:
            raise InvalidInput("No file uploaded")

        content_type = (file.content_type or "").lower()
        allowed = [t.lower() for t in settings.allowed_content_types]
        if allowed and content_type not in allowed:
            raise InvalidInput(
                f"Invalid file type: {file.content_type}. "
                f"Allowed types: {', '.join(settings.allowed_content_types)}",
                details={"filename": file.filename},
            )

        if _file_size(file) > settings.max_upload_bytes:
            max_mb = settings.max_upload_bytes // (1024 * 1024)
            raise InvalidInput(
                f"File size too large. Maximum size is {max_mb}MB.",
                details={"filename": file.filename},
            )

    async def _store(self, file: UploadFile) -> str:
        """Write one validated file to storage and return its public URL."""
        if not self._client.is_configured:
            raise StorageUnavailable("Storage service not configured")

        object_key = generate_object_key(file.filename)
        await file.seek(0)
        stored = await run_in_threadpool(
            self._client.upload_fileobj, object_key, file.file, file.content_type
        )
        if not stored:
            storage_errors_total.labels(operation="put").inc()
            log_storage_failure(logger, "put", "upload to storage failed", key=object_key)
            raise StorageUnavailable(
                "Error uploading file to storage", details={"filename": file.filename}
            )
        return self._client.public_url_for(object_key)

    async def upload_single(self, file: Optional[UploadFile]) -> UploadRecord:
        """
        Store one file and append a single-URL record.

        Raises:
            InvalidInput: no file or file rejected by validation
            StorageUnavailable: storage write failed
            PersistenceError: ledger write failed
        """
        if file is None:
            raise InvalidInput("No file uploaded")
        self.validate_file(file)

        file_url = await self._store(file)
        record = UploadRecord.for_single(file_url, UploadPathway.DIRECT_PROXY, self.backend)
        return await self.ledger.append(record)

    async def upload_multiple(self, files: Sequence[UploadFile]) -> UploadRecord:
        """
        Store several files and append ONE record covering all of them.

        Every file is validated before any byte is sent. If a write
        fails midway, already stored objects are left in place and no
        record is written.
        """
        if not files:
            raise InvalidInput("No files uploaded")
        if len(files) > settings.max_files_per_request:
            raise InvalidInput(
                f"Too many files. Maximum is {settings.max_files_per_request} files at once."
            )
        for file in files:
            self.validate_file(file)

        file_urls: List[str] = []
        for file in files:
            file_urls.append(await self._store(file))

        record = UploadRecord.for_batch(file_urls, UploadPathway.DIRECT_PROXY, self.backend)
        return await self.ledger.append(record)


class LocalUploadService(DirectUploadService):
    """Writes uploaded files to the local upload directory."""

    backend = StorageBackend.LOCAL

    def __init__(self, db: AsyncSession, store: Optional[LocalStore] = None):
        self.ledger = UploadLedger(db)
        self._store_dir = store or get_local_store()

    async def _store(self, file: UploadFile) -> str:
        # Same naming scheme as S3 keys, without the key prefix
        name = generate_object_key(file.filename, prefix="")
        await file.seek(0)
        try:
            return await run_in_threadpool(self._store_dir.save, name, file.file)
        except OSError as e:
            storage_errors_total.labels(operation="put").inc()
            log_storage_failure(logger, "put", str(e), key=name)
            raise StorageUnavailable(
                "Error uploading file locally", details={"filename": file.filename}
            ) from e
