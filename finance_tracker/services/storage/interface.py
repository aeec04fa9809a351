"""
Abstract Storage Interface

DESIGN DECISION: The reconciliation engine only needs four operations
per record kind: load all, load one, save, delete. We define exactly
that as an abstract interface. This allows us to:
1. Keep persistence an external collaborator
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

Every call either succeeds or fails as a whole; the engine never relies
on partial writes.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from finance_tracker.models.audit import AuditEvent


RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordStore(ABC, Generic[RecordT]):
    """
    Abstract interface for one kind of record (investments, loans, ...).

    Records are pydantic models carrying an `id: UUID` field.
    """

    @abstractmethod
    async def load_all(self) -> list[RecordT]:
        """
        Load every stored record of this kind.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def load_by_id(self, record_id: UUID) -> Optional[RecordT]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def save(self, record: RecordT) -> RecordT:
        """
        Insert the record, or replace the stored record with the same ID.

        Returns:
            The record as stored

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete(self, record_id: UUID) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one refresh run, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
