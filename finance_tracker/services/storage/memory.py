"""
In-Memory Storage Implementation

Used by the tests and by the operator console when no Google Sheets
backend is configured. Records are deep-copied on the way in and out,
so callers can never mutate stored state without calling save().
"""

from typing import Optional
from uuid import UUID

from finance_tracker.models.audit import AuditEvent
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    RecordStore,
    RecordT,
)


class InMemoryRecordStore(RecordStore[RecordT]):
    """Dict-backed record store keyed by record ID."""

    def __init__(self, records: Optional[list[RecordT]] = None):
        self._records: dict[UUID, RecordT] = {}
        self.save_count = 0
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    async def load_all(self) -> list[RecordT]:
        return [record.model_copy(deep=True) for record in self._records.values()]

    async def load_by_id(self, record_id: UUID) -> Optional[RecordT]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def save(self, record: RecordT) -> RecordT:
        self._records[record.id] = record.model_copy(deep=True)
        self.save_count += 1
        return record

    async def delete(self, record_id: UUID) -> bool:
        return self._records.pop(record_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
