"""
Storage Services Package

Provides abstract interfaces for reading ledger records and persisting
audit events, plus in-memory implementations.
"""

from moneyflow.services.storage.interface import (
    AuditSinkInterface,
    ConnectionError,
    LedgerSourceInterface,
    NotFoundError,
    StorageError,
)
from moneyflow.services.storage.memory import (
    InMemoryAuditSink,
    InMemoryLedgerSource,
)

__all__ = [
    # Interfaces
    "AuditSinkInterface",
    "LedgerSourceInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditSink",
    "InMemoryLedgerSource",
]
