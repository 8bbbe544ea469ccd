"""
Presigned URL issuance.

Handles the first half of the pre-signed upload handshake:
turning upload requests into signed PUT credentials.

Flow:
1. Client requests credentials with filename and filetype
2. Backend generates a unique object key and a presigned PUT URL
3. Client uploads directly to storage using the presigned URL
4. Client calls the confirm endpoint with the returned fileUrl

Issuance has no side effects: nothing is written to the ledger or
to storage until the client confirms.
"""
import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from upload_relay.config import settings
from upload_relay.exceptions import InvalidInput, SigningUnavailable
from upload_relay.storage.s3_client import S3Client, get_s3_client
from upload_relay.utils.logging import log_credentials_issued, log_storage_failure
from upload_relay.utils.metrics import credentials_issued_total, storage_errors_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadRequest:
    """One file the client intends to send. Not persisted."""
    logical_name: str
    declared_content_kind: Optional[str] = None


@dataclass(frozen=True)
class IssuedCredential:
    """
    Signed write authorization for one storage key.

    presigned_url is the sole capability to write the object and
    must never be logged.
    """
    storage_key: str
    presigned_url: str
    public_url: str
    expires_at: datetime
    expires_in: int
    logical_name: str
    content_type: Optional[str] = None


def sanitize_filename(filename: str) -> str:
    """Remove path traversal and characters unsafe in object keys."""
    safe = filename.replace("../", "").replace("..\\", "")
    safe = safe.replace("/", "_").replace("\\", "_")
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
    return safe[:200]


def generate_object_key(logical_name: str, prefix: Optional[str] = None) -> str:
    """
    Generate a unique object key for an upload.

    Pattern: {prefix}{epoch_ms}-{nonce}-{sanitized name}

    The timestamp keeps keys roughly ordered. The random nonce keeps
    same-millisecond requests for the same name from colliding.
    """
    if prefix is None:
        prefix = settings.upload_key_prefix
    timestamp_ms = int(time.time() * 1000)
    nonce = uuid.uuid4().hex[:12]
    return f"{prefix}{timestamp_ms}-{nonce}-{sanitize_filename(logical_name)}"


class CredentialIssuer:
    """
    Issues pre-signed upload credentials.

    Responsibilities:
    - Validate upload requests
    - Generate unique object keys
    - Sign PUT authorizations with a fixed TTL
    - Compute the public URL each object will have
    """

    def __init__(self, client: Optional[S3Client] = None):
        self._client = client or get_s3_client()

    @staticmethod
    def validate_request(request: UploadRequest) -> None:
        """Raise InvalidInput unless the request names a file."""
        if not request.logical_name or not request.logical_name.strip():
            raise InvalidInput("filename is required")

    def _sign(self, request: UploadRequest) -> IssuedCredential:
        """Sign one already-validated request."""
        if not self._client.is_configured:
            logger.error("Storage not configured, cannot generate presigned URL")
            raise SigningUnavailable("Storage service not configured")

        content_type = request.declared_content_kind or None
        expiration = settings.presign_expiration
        object_key = generate_object_key(request.logical_name)

        presigned_url = self._client.generate_presigned_upload_url(
            object_key, content_type, expiration
        )
        if not presigned_url:
            storage_errors_total.labels(operation="sign").inc()
            log_storage_failure(logger, "sign", "presigned URL generation failed", key=object_key)
            raise SigningUnavailable(
                "Failed to generate upload URL",
                details={"key": object_key},
            )

        return IssuedCredential(
            storage_key=object_key,
            presigned_url=presigned_url,
            public_url=self._client.public_url_for(object_key),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expiration),
            expires_in=expiration,
            logical_name=request.logical_name,
            content_type=content_type,
        )

    async def issue_single(self, request: UploadRequest) -> IssuedCredential:
        """
        Issue a credential for one file.

        Raises:
            InvalidInput: logical_name is empty (no signing call is made)
            SigningUnavailable: storage could not sign the request
        """
        self.validate_request(request)
        credential = self._sign(request)
        credentials_issued_total.inc()

        log_credentials_issued(logger, [credential.storage_key], credential.expires_in)
        return credential

    async def issue_batch(self, requests: Sequence[UploadRequest]) -> List[IssuedCredential]:
        """
        Issue credentials for several files, in request order.

        All requests are validated before anything is signed, and a
        signing failure on any item aborts the whole batch: callers get
        either a complete credential set or an error.

        Raises:
            InvalidInput: empty batch, oversized batch or an invalid item
            SigningUnavailable: storage could not sign one of the items
        """
        if not requests:
            raise InvalidInput("At least one file is required")
        if len(requests) > settings.max_files_per_request:
            raise InvalidInput(
                f"Too many files. Maximum is {settings.max_files_per_request} files at once.",
                details={"count": len(requests)},
            )

        for index, request in enumerate(requests):
            try:
                self.validate_request(request)
            except InvalidInput as e:
                raise InvalidInput(
                    f"files[{index}]: {e.message}", details={"index": index}
                ) from e

        credentials = [self._sign(request) for request in requests]
        credentials_issued_total.inc(len(credentials))

        log_credentials_issued(
            logger,
            [credential.storage_key for credential in credentials],
            settings.presign_expiration,
        )
        return credentials
