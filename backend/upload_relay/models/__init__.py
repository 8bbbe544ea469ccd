"""
Database models package.
"""
from upload_relay.models.base import Base
from upload_relay.models.upload_record import UploadRecord, UploadPathway, StorageBackend

__all__ = [
    "Base",
    "UploadRecord",
    "UploadPathway",
    "StorageBackend",
]
