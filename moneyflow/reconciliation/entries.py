"""
Entry normalisation and ordering.

Turns raw ledger records into allocation-ready working entries. Every
entry is a fresh object: the allocator mutates `remaining` and `links`
on these copies, never on the caller's records.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, TypeVar

from moneyflow.models.ledger import (
    DebtEntry,
    LedgerEntry,
    LedgerRecord,
    RepaymentEntry,
)
from moneyflow.reconciliation.amounts import PERCENT_THRESHOLD, resolve_amounts
from moneyflow.reconciliation.periods import resolve_period_key, resolve_period_tag

# Entries without a timestamp sort after every dated entry
_UNDATED = datetime.max.replace(tzinfo=timezone.utc)

EntryT = TypeVar("EntryT", bound=LedgerEntry)


def _entry_fields(
    record: LedgerRecord,
    position: int,
    unknown_period_key: str,
    percent_threshold: Decimal,
) -> dict:
    gross, net = resolve_amounts(
        record.amount,
        record.cashback_share_percent,
        record.cashback_share_fixed,
        record.final_price,
        percent_threshold,
    )
    period_tag = resolve_period_tag(record.tag)
    return {
        "id": record.id,
        "person_id": record.person_id,
        "occurred_at": record.occurred_at,
        "period_tag": period_tag,
        "period_key": resolve_period_key(period_tag, record.occurred_at, unknown_period_key),
        "gross_amount": gross,
        "net_amount": net,
        "remaining": net,
        "position": position,
    }


def chronological(entries: Iterable[EntryT]) -> list[EntryT]:
    """Oldest first; equal timestamps keep input order."""
    return sorted(
        entries,
        key=lambda e: (e.occurred_at or _UNDATED, e.position),
    )


def build_debt_entries(
    records: Iterable[LedgerRecord],
    unknown_period_key: str = "unknown",
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> list[DebtEntry]:
    """Normalise debt records and sort them oldest first."""
    entries = [
        DebtEntry(**_entry_fields(record, i, unknown_period_key, percent_threshold))
        for i, record in enumerate(records)
    ]
    return chronological(entries)


def build_repayment_entries(
    records: Iterable[LedgerRecord],
    unknown_period_key: str = "unknown",
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> list[RepaymentEntry]:
    """Normalise repayment records, carrying their hints, and sort them oldest first."""
    entries = [
        RepaymentEntry(
            **_entry_fields(record, i, unknown_period_key, percent_threshold),
            allocation_hints=list(record.allocation_hints),
        )
        for i, record in enumerate(records)
    ]
    return chronological(entries)
