"""
Data Models Package

This package contains all Pydantic models used by the reconciliation engine.
All data flowing through the system must conform to these schemas.
"""

from moneyflow.models.ledger import (
    AllocationHint,
    AllocationLink,
    AllocationPhase,
    DebtEntry,
    DebtStatus,
    EntryKind,
    InvariantViolation,
    LedgerEntry,
    LedgerRecord,
    LifetimeTotals,
    PeriodSummary,
    PersonDebtOverview,
    ReconciliationResult,
    RepaymentContribution,
    RepaymentEntry,
    RepaymentPreview,
    RepaymentPreviewLine,
    hints_from_metadata,
    parse_allocation_hints,
    split_ledger_records,
)
from moneyflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AllocationHint",
    "AllocationLink",
    "AllocationPhase",
    "DebtEntry",
    "DebtStatus",
    "EntryKind",
    "InvariantViolation",
    "LedgerEntry",
    "LedgerRecord",
    "LifetimeTotals",
    "PeriodSummary",
    "PersonDebtOverview",
    "ReconciliationResult",
    "RepaymentContribution",
    "RepaymentEntry",
    "RepaymentPreview",
    "RepaymentPreviewLine",
    "hints_from_metadata",
    "parse_allocation_hints",
    "split_ledger_records",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
