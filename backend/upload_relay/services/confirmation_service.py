"""
Confirmation of pre-signed uploads.

Second half of the handshake: the client claims that one or more
direct PUTs succeeded and the claim is committed to the ledger.

Trust boundary: by default the handler does NOT check that an object
exists at the URL, that the URL came from an issued credential, or that
the credential was still valid. A confirmed record means "the client
says the upload succeeded", nothing more. Confirming the same URL twice
writes two records.

With settings.verify_uploads_on_confirm enabled, every URL must map to
a key in the configured bucket and the object must answer a HEAD
request before anything is written.
"""
import logging
from typing import List, Optional, Sequence
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from upload_relay.config import settings
from upload_relay.exceptions import InvalidInput, StorageUnavailable, UploadNotFound
from upload_relay.models.upload_record import UploadRecord, UploadPathway
from upload_relay.repositories.upload_ledger import UploadLedger
from upload_relay.storage.s3_client import S3Client, get_s3_client
from upload_relay.utils.logging import log_storage_failure
from upload_relay.utils.metrics import storage_errors_total

logger = logging.getLogger(__name__)


class ConfirmationHandler:
    """Commits client-reported pre-signed uploads to the ledger."""

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[S3Client] = None,
        verify: Optional[bool] = None
    ):
        self.ledger = UploadLedger(db)
        self._client = client
        self.verify = settings.verify_uploads_on_confirm if verify is None else verify

    @property
    def client(self) -> S3Client:
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    async def _verify_uploaded(self, file_urls: Sequence[str]) -> None:
        """
        HEAD every object; raise UploadNotFound on the first miss.

        A HEAD that fails for any reason other than "not found" is a
        storage failure and raises StorageUnavailable instead.
        """
        if not self.client.is_configured:
            raise StorageUnavailable("Storage service not configured")

        for file_url in file_urls:
            object_key = self.client.key_from_public_url(file_url)
            if object_key is None:
                raise UploadNotFound(
                    "File URL does not belong to the upload bucket",
                    details={"fileUrl": file_url},
                )
            try:
                exists = await run_in_threadpool(self.client.check_object_exists, object_key)
            except (ClientError, BotoCoreError) as e:
                storage_errors_total.labels(operation="head").inc()
                log_storage_failure(logger, "head", str(e), key=object_key)
                raise StorageUnavailable(
                    "Could not verify upload in storage",
                    details={"fileUrl": file_url},
                ) from e
            if not exists:
                logger.warning(f"Confirmation rejected, object missing: {object_key}")
                raise UploadNotFound(
                    "Uploaded file not found in storage",
                    details={"fileUrl": file_url},
                )

    async def confirm_single(self, file_url: str) -> UploadRecord:
        """
        Record one pre-signed upload.

        Args:
            file_url: Public URL returned at issuance

        Returns:
            The stored record (single_url set, pathway=presigned)

        Raises:
            InvalidInput: file_url is empty
            UploadNotFound: verification enabled and object missing
            StorageUnavailable: verification enabled and storage failed
            PersistenceError: ledger write failed
        """
        if not file_url or not file_url.strip():
            raise InvalidInput("fileUrl is required")

        if self.verify:
            await self._verify_uploaded([file_url])

        record = UploadRecord.for_single(file_url, UploadPathway.PRESIGNED)
        return await self.ledger.append(record)

    async def confirm_batch(self, file_urls: List[str]) -> UploadRecord:
        """
        Record a batch of pre-signed uploads as ONE ledger entry.

        The record keeps the URLs in the given order. Callers needing
        per-file records must confirm files individually.

        Raises:
            InvalidInput: empty list or an empty URL in the list
            UploadNotFound: verification enabled and an object is missing
            StorageUnavailable: verification enabled and storage failed
            PersistenceError: ledger write failed
        """
        if not file_urls:
            raise InvalidInput("fileUrls must contain at least one URL")
        for index, file_url in enumerate(file_urls):
            if not file_url or not file_url.strip():
                raise InvalidInput(f"fileUrls[{index}] is empty", details={"index": index})

        if self.verify:
            await self._verify_uploaded(file_urls)

        record = UploadRecord.for_batch(file_urls, UploadPathway.PRESIGNED)
        return await self.ledger.append(record)
