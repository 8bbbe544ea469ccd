"""
Pydantic schemas for upload endpoints.

Wire format is camelCase (fileUrl, presignedUrl, ...); Python
attributes are snake_case via aliases.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from upload_relay.models.upload_record import StorageBackend, UploadPathway


class CamelModel(BaseModel):
    """Base for schemas with camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Pre-signed issuance
# ============================================================================

class FileDescriptor(CamelModel):
    """A file the client intends to upload."""
    filename: str = Field(..., description="Logical file name")
    filetype: Optional[str] = Field(
        None,
        description="MIME type; when given it is bound into the signature"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"filename": "a.png", "filetype": "image/png"}
        }
    )


class PresignMultipleRequest(CamelModel):
    """Request schema for batch credential issuance."""
    files: List[FileDescriptor] = Field(..., description="Files to issue credentials for")


class PresignedUpload(CamelModel):
    """One issued credential as returned to the client."""
    presigned_url: str = Field(..., alias="presignedUrl", description="Signed PUT URL")
    file_url: str = Field(..., alias="fileUrl", description="Public URL after upload")
    key: str = Field(..., description="Object key in storage bucket")
    content_type: Optional[str] = Field(
        None,
        alias="contentType",
        description="Content-Type header the PUT must send, if any"
    )
    expires_in: int = Field(..., alias="expiresIn", description="Seconds until the URL expires")
    filename: Optional[str] = Field(None, description="Echoed logical name (batch only)")


class PresignSingleResponse(CamelModel):
    success: bool = True
    data: PresignedUpload


class PresignMultipleResponse(CamelModel):
    success: bool = True
    data: List[PresignedUpload]


# ============================================================================
# Confirmation
# ============================================================================

class ConfirmSingleRequest(CamelModel):
    """Request schema for single upload confirmation."""
    file_url: str = Field(..., alias="fileUrl", description="fileUrl returned at issuance")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"fileUrl": "https://bucket.s3.us-east-1.amazonaws.com/uploads/123-a.png"}
        }
    )


class ConfirmMultipleRequest(CamelModel):
    """Request schema for batch upload confirmation."""
    file_urls: List[str] = Field(..., alias="fileUrls", description="fileUrls returned at issuance")


# ============================================================================
# Upload results
# ============================================================================

class SingleFileData(BaseModel):
    file: str


class MultipleFilesData(BaseModel):
    files: List[str]


class UploadSingleResponse(BaseModel):
    success: bool = True
    message: str
    data: SingleFileData


class UploadMultipleResponse(BaseModel):
    success: bool = True
    message: str
    data: MultipleFilesData


class UploadRecordResponse(CamelModel):
    """Public shape of a ledger record."""
    id: str
    file: Optional[str] = Field(None, validation_alias="single_url")
    files: List[str] = Field(default_factory=list, validation_alias="multiple_urls")
    pathway: UploadPathway
    backend: StorageBackend
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class UploadRecordListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[UploadRecordResponse]


class ErrorResponse(BaseModel):
    """Envelope for every error response."""
    success: bool = False
    message: str
    error: Optional[str] = None
