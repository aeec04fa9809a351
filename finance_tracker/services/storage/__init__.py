"""
Storage Services Package

Provides the abstract record-store interface the reconciliation engine
depends on, plus in-memory and Google Sheets implementations.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordStore,
    StorageConnectionError,
    StorageError,
)
from finance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStore",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
