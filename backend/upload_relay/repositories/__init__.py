"""
Repository layer for database operations.
Provides higher-level abstractions over the upload ledger.
"""
from upload_relay.repositories.upload_ledger import UploadLedger

__all__ = ["UploadLedger"]
