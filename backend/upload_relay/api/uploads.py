"""
Upload endpoints.

Pre-signed flow (backend never sees the bytes):
1. POST /uploads/s3/presigned/single|multiple - Get presigned PUT URL(s)
2. Client PUTs each file directly to storage
3. POST /uploads/s3/presigned/single|multiple/confirm - Record the upload

Direct proxy flow:
- POST /uploads/s3/single|multiple - Multipart upload through the server to S3
- POST /uploads/local/single|multiple - Multipart upload to local disk,
  served back under settings.local_public_path

Ledger:
- GET /uploads/s3/files - List uploads stored in S3
- GET /uploads/local/files - List uploads stored on local disk

Presigned URLs expire after settings.presign_expiration seconds.
Confirmation trusts the client unless verify_uploads_on_confirm is set.
"""
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from upload_relay.database import get_db
from upload_relay.models.upload_record import StorageBackend, UploadPathway
from upload_relay.repositories.upload_ledger import UploadLedger
from upload_relay.schemas.upload import (
    ConfirmMultipleRequest,
    ConfirmSingleRequest,
    FileDescriptor,
    MultipleFilesData,
    PresignedUpload,
    PresignMultipleRequest,
    PresignMultipleResponse,
    PresignSingleResponse,
    SingleFileData,
    UploadMultipleResponse,
    UploadRecordListResponse,
    UploadRecordResponse,
    UploadSingleResponse,
)
from upload_relay.services.confirmation_service import ConfirmationHandler
from upload_relay.services.direct_upload_service import DirectUploadService, LocalUploadService
from upload_relay.storage.presign import CredentialIssuer, IssuedCredential, UploadRequest
from upload_relay.storage.local_store import LocalStore, get_local_store
from upload_relay.storage.s3_client import S3Client, get_s3_client

router = APIRouter()


def get_storage_client() -> S3Client:
    """Dependency returning the shared storage client."""
    return get_s3_client()


def get_local_file_store() -> LocalStore:
    """Dependency returning the shared local disk store."""
    return get_local_store()


def _to_upload_request(descriptor: FileDescriptor) -> UploadRequest:
    return UploadRequest(
        logical_name=descriptor.filename,
        declared_content_kind=descriptor.filetype,
    )


def _to_presigned_upload(
    credential: IssuedCredential,
    include_filename: bool = False
) -> PresignedUpload:
    return PresignedUpload(
        presigned_url=credential.presigned_url,
        file_url=credential.public_url,
        key=credential.storage_key,
        content_type=credential.content_type,
        expires_in=credential.expires_in,
        filename=credential.logical_name if include_filename else None,
    )


def _record_list(records) -> UploadRecordListResponse:
    return UploadRecordListResponse(
        count=len(records),
        data=[UploadRecordResponse.model_validate(record) for record in records],
    )


# ============================================================================
# Pre-signed issuance
# ============================================================================

@router.post(
    "/s3/presigned/single",
    response_model=PresignSingleResponse,
    response_model_exclude_none=True
)
async def generate_presigned_url_single(
    request: FileDescriptor,
    client: S3Client = Depends(get_storage_client)
):
    """
    Generate a presigned PUT URL for one file.

    If filetype is given, it is bound into the signature and the
    client must send the same Content-Type header with the PUT.
    """
    credential = await CredentialIssuer(client).issue_single(_to_upload_request(request))
    return PresignSingleResponse(data=_to_presigned_upload(credential))


@router.post(
    "/s3/presigned/multiple",
    response_model=PresignMultipleResponse,
    response_model_exclude_none=True
)
async def generate_presigned_url_multiple(
    request: PresignMultipleRequest,
    client: S3Client = Depends(get_storage_client)
):
    """
    Generate presigned PUT URLs for several files.

    Either every file gets a credential or the request fails.
    """
    credentials = await CredentialIssuer(client).issue_batch(
        [_to_upload_request(descriptor) for descriptor in request.files]
    )
    return PresignMultipleResponse(
        data=[_to_presigned_upload(c, include_filename=True) for c in credentials]
    )


# ============================================================================
# Confirmation
# ============================================================================

@router.post(
    "/s3/presigned/single/confirm",
    response_model=UploadSingleResponse,
    status_code=status.HTTP_201_CREATED
)
async def confirm_presigned_upload_single(
    request: ConfirmSingleRequest,
    db: AsyncSession = Depends(get_db),
    client: S3Client = Depends(get_storage_client)
):
    """
    Record that a presigned upload completed.

    Not idempotent: confirming the same URL twice creates two records.
    """
    record = await ConfirmationHandler(db, client).confirm_single(request.file_url)
    return UploadSingleResponse(
        message="File upload confirmed successfully",
        data=SingleFileData(file=record.single_url),
    )


@router.post(
    "/s3/presigned/multiple/confirm",
    response_model=UploadMultipleResponse,
    status_code=status.HTTP_201_CREATED
)
async def confirm_presigned_upload_multiple(
    request: ConfirmMultipleRequest,
    db: AsyncSession = Depends(get_db),
    client: S3Client = Depends(get_storage_client)
):
    """Record a batch of presigned uploads as a single ledger entry."""
    record = await ConfirmationHandler(db, client).confirm_batch(request.file_urls)
    return UploadMultipleResponse(
        message=f"{len(record.multiple_urls)} files upload confirmed successfully",
        data=MultipleFilesData(files=record.multiple_urls),
    )


# ============================================================================
# Direct proxy
# ============================================================================

@router.post(
    "/s3/single",
    response_model=UploadSingleResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_single_to_s3(
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    client: S3Client = Depends(get_storage_client)
):
    """Upload one file through the server to storage."""
    record = await DirectUploadService(db, client).upload_single(file)
    return UploadSingleResponse(
        message="File uploaded to S3 successfully",
        data=SingleFileData(file=record.single_url),
    )


@router.post(
    "/s3/multiple",
    response_model=UploadMultipleResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_multiple_to_s3(
    files: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    client: S3Client = Depends(get_storage_client)
):
    """Upload several files through the server; one ledger entry covers all."""
    record = await DirectUploadService(db, client).upload_multiple(files or [])
    return UploadMultipleResponse(
        message=f"{len(record.multiple_urls)} files uploaded to S3 successfully",
        data=MultipleFilesData(files=record.multiple_urls),
    )


# ============================================================================
# Ledger
# ============================================================================

@router.get("/s3/files", response_model=UploadRecordListResponse)
async def get_all_s3_files(
    pathway: Optional[UploadPathway] = Query(None, description="Filter by pathway"),
    db: AsyncSession = Depends(get_db)
):
    """List uploads stored in S3, newest first."""
    records = await UploadLedger(db).list_records(pathway=pathway, backend=StorageBackend.S3)
    return _record_list(records)


# ============================================================================
# Local disk
# ============================================================================

@router.post(
    "/local/single",
    response_model=UploadSingleResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_single_local(
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    store: LocalStore = Depends(get_local_file_store)
):
    """Upload one file to the local upload directory."""
    record = await LocalUploadService(db, store).upload_single(file)
    return UploadSingleResponse(
        message="File uploaded locally successfully",
        data=SingleFileData(file=record.single_url),
    )


@router.post(
    "/local/multiple",
    response_model=UploadMultipleResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_multiple_local(
    files: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    store: LocalStore = Depends(get_local_file_store)
):
    """Upload several files to local disk; one ledger entry covers all."""
    record = await LocalUploadService(db, store).upload_multiple(files or [])
    return UploadMultipleResponse(
        message=f"{len(record.multiple_urls)} files uploaded locally successfully",
        data=MultipleFilesData(files=record.multiple_urls),
    )


@router.get("/local/files", response_model=UploadRecordListResponse)
async def get_all_local_files(db: AsyncSession = Depends(get_db)):
    """List uploads stored on local disk, newest first."""
    records = await UploadLedger(db).list_records(backend=StorageBackend.LOCAL)
    return _record_list(records)
