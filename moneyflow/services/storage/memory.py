"""
In-memory storage implementations.

Used by tests and by callers that already hold their records in memory.
"""

from typing import Iterable, Optional
from uuid import UUID

from moneyflow.models.audit import AuditEvent
from moneyflow.models.ledger import LedgerRecord
from moneyflow.services.storage.interface import (
    AuditSinkInterface,
    LedgerSourceInterface,
    NotFoundError,
)


class InMemoryLedgerSource(LedgerSourceInterface):
    """Serves ledger records from a list held in memory."""

    def __init__(self, records: Optional[Iterable[LedgerRecord]] = None):
        self._records: list[LedgerRecord] = list(records or [])

    def add(self, record: LedgerRecord) -> None:
        self._records.append(record)

    async def list_person_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for record in self._records:
            if record.person_id:
                seen.setdefault(record.person_id, None)
        return list(seen)

    async def list_records(self, person_id: str) -> list[LedgerRecord]:
        records = [r for r in self._records if r.person_id == person_id]
        if not records:
            raise NotFoundError(f"No ledger records for person {person_id}")
        # Hand out copies so callers can't mutate what we store
        return [r.model_copy(deep=True) for r in records]


class InMemoryAuditSink(AuditSinkInterface):
    """Keeps audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]
