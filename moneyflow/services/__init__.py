"""Services package."""

from moneyflow.services.storage import (
    AuditSinkInterface,
    ConnectionError,
    InMemoryAuditSink,
    InMemoryLedgerSource,
    LedgerSourceInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditSinkInterface",
    "ConnectionError",
    "InMemoryAuditSink",
    "InMemoryLedgerSource",
    "LedgerSourceInterface",
    "NotFoundError",
    "StorageError",
]
