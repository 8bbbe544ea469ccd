"""
Business logic services.
"""
from upload_relay.services.confirmation_service import ConfirmationHandler
from upload_relay.services.direct_upload_service import DirectUploadService, LocalUploadService

__all__ = [
    "ConfirmationHandler",
    "DirectUploadService",
    "LocalUploadService",
]
