"""
Pydantic schemas for API request/response validation.
"""
from upload_relay.schemas.upload import (
    FileDescriptor,
    PresignMultipleRequest,
    PresignedUpload,
    PresignSingleResponse,
    PresignMultipleResponse,
    ConfirmSingleRequest,
    ConfirmMultipleRequest,
    UploadSingleResponse,
    UploadMultipleResponse,
    UploadRecordResponse,
    UploadRecordListResponse,
    ErrorResponse,
)

__all__ = [
    "FileDescriptor",
    "PresignMultipleRequest",
    "PresignedUpload",
    "PresignSingleResponse",
    "PresignMultipleResponse",
    "ConfirmSingleRequest",
    "ConfirmMultipleRequest",
    "UploadSingleResponse",
    "UploadMultipleResponse",
    "UploadRecordResponse",
    "UploadRecordListResponse",
    "ErrorResponse",
]
