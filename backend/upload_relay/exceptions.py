"""
Exception hierarchy for the upload relay.

Every error is per-request: handlers raise these and the FastAPI
exception handler in upload_relay.main turns them into the
{success: false, message, error} envelope.
"""
from typing import Any, Dict, Optional


class UploadRelayError(Exception):
    """Base exception for all upload relay errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInput(UploadRelayError):
    """Missing or empty required field. Never retried."""
    status_code = 400


class UploadNotFound(UploadRelayError):
    """Confirmed object is not present in storage (verified confirmation only)."""
    status_code = 404


class SigningUnavailable(UploadRelayError):
    """Storage signing capability failed or is not configured."""
    status_code = 503


class StorageUnavailable(UploadRelayError):
    """Direct proxy write to storage failed."""
    status_code = 502


class PersistenceError(UploadRelayError):
    """Ledger write failed."""
    status_code = 500
