"""
Storage module: S3-compatible object storage and local disk.

Pre-signed uploads go directly from the client to the bucket; the
backend only signs credentials and records confirmations.
"""
from upload_relay.storage.s3_client import get_s3_client, S3Client
from upload_relay.storage.local_store import get_local_store, LocalStore
from upload_relay.storage.presign import (
    CredentialIssuer,
    IssuedCredential,
    UploadRequest,
    generate_object_key,
)

__all__ = [
    "get_s3_client",
    "S3Client",
    "get_local_store",
    "LocalStore",
    "CredentialIssuer",
    "IssuedCredential",
    "UploadRequest",
    "generate_object_key",
]
