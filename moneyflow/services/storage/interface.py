"""
Abstract Storage Interface

DESIGN DECISION: The reconciliation engine never talks to storage.
Whatever owns the database implements these interfaces, and the
people service reads through them before handing plain lists to
the engine. This allows us to:
1. Keep the engine a pure function of its inputs
2. Use in-memory storage for testing
3. Swap the backend without touching allocation logic
"""

from abc import ABC, abstractmethod
from uuid import UUID

from moneyflow.models.audit import AuditEvent
from moneyflow.models.ledger import LedgerRecord


class LedgerSourceInterface(ABC):
    """
    Read-only access to a person's lend and repay history.

    Implementations return already-fetched records; the engine
    copies them into working entries and never writes back.
    """

    @abstractmethod
    async def list_person_ids(self) -> list[str]:
        """
        List every person that has ledger records.

        Returns:
            Person IDs in a stable order
        """
        pass

    @abstractmethod
    async def list_records(self, person_id: str) -> list[LedgerRecord]:
        """
        Fetch all debt and repayment records for one person.

        Args:
            person_id: The person whose history to load

        Returns:
            Records in storage order (void rows may be included)

        Raises:
            NotFoundError: If the person doesn't exist
            StorageError: If the read fails
        """
        pass


class AuditSinkInterface(ABC):
    """
    Abstract interface for audit log persistence.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one reconciliation run).

        Returns:
            List of related events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
