"""
People Debt Orchestrator

This module ties storage, the reconciliation engine and auditing
together to build the per-person debt overview (the people list badges).

DESIGN DECISION: Records are grouped by person ONCE, up front.
Each person is then reconciled independently with their own working
set, so the engine never needs a lookup table spanning people.
"""

from decimal import Decimal
from typing import Iterable, Optional

from moneyflow.audit import AuditLogger
from moneyflow.config import ReconciliationSettings, get_settings
from moneyflow.models.audit import AuditEventBuilder
from moneyflow.models.ledger import (
    LedgerRecord,
    PersonDebtOverview,
    ReconciliationResult,
    split_ledger_records,
)
from moneyflow.reconciliation import ReconciliationEngine
from moneyflow.services.storage import LedgerSourceInterface, StorageError


def group_records_by_person(
    records: Iterable[LedgerRecord],
) -> dict[str, list[LedgerRecord]]:
    """
    Bucket records by person, keeping first-seen person order.

    Records without a person are skipped; they can't be owed by anyone.
    """
    grouped: dict[str, list[LedgerRecord]] = {}
    for record in records:
        if not record.person_id:
            continue
        grouped.setdefault(record.person_id, []).append(record)
    return grouped


def _sort_key(overview: PersonDebtOverview) -> tuple:
    # Biggest current-cycle debt first (the badge value), then total, then id
    return (
        -overview.current_period_outstanding,
        -overview.total_outstanding,
        overview.person_id,
    )


class PeopleDebtService:
    """
    Builds debt overviews for many people.

    Flow per person:
    1. Split records into debts and repayments (void rows dropped)
    2. Reconcile with a fresh engine run
    3. Reduce the result to headline numbers
    """

    def __init__(
        self,
        engine: Optional[ReconciliationEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ReconciliationSettings] = None,
    ):
        self._settings = settings or get_settings().reconciliation
        self._audit = audit_logger or AuditLogger()
        self._engine = engine or ReconciliationEngine(
            settings=self._settings,
            audit_logger=self._audit,
        )

    def reconcile_person(
        self,
        records: list[LedgerRecord],
        current_period_key: Optional[str] = None,
        summary_limit: Optional[int] = None,
    ) -> ReconciliationResult:
        """Reconcile one person's mixed debt/repayment records."""
        debts, repayments = split_ledger_records(records)
        return self._engine.reconcile(
            debts,
            repayments,
            current_period_key=current_period_key,
            summary_limit=summary_limit,
        )

    def build_overview(
        self,
        person_id: str,
        records: list[LedgerRecord],
        current_period_key: Optional[str] = None,
        summary_limit: Optional[int] = None,
    ) -> PersonDebtOverview:
        result = self.reconcile_person(records, current_period_key, summary_limit)

        self._audit.log(AuditEventBuilder.person_reconciled(
            person_id=person_id,
            current_period_outstanding=result.current_period_outstanding,
            prior_periods_outstanding=result.prior_periods_outstanding,
            correlation_id=result.correlation_id,
        ))

        return PersonDebtOverview(
            person_id=person_id,
            balance=result.total_outstanding - result.unallocated_repayment,
            current_period_outstanding=result.current_period_outstanding,
            outstanding_debt=result.prior_periods_outstanding,
            total_outstanding=result.total_outstanding,
            monthly_debts=result.period_summaries,
            lifetime_totals=result.lifetime_totals,
            links=result.links,
        )

    def build_overviews(
        self,
        records: Iterable[LedgerRecord],
        current_period_key: Optional[str] = None,
        summary_limit: Optional[int] = None,
    ) -> list[PersonDebtOverview]:
        """
        Reconcile every person found in `records`.

        Returns overviews sorted by current-period debt, largest first.
        """
        overviews = [
            self.build_overview(person_id, person_records, current_period_key, summary_limit)
            for person_id, person_records in group_records_by_person(records).items()
        ]
        return sorted(overviews, key=_sort_key)

    async def load_overviews(
        self,
        source: LedgerSourceInterface,
        person_ids: Optional[list[str]] = None,
        current_period_key: Optional[str] = None,
        summary_limit: Optional[int] = None,
    ) -> list[PersonDebtOverview]:
        """
        Read records through `source` and build overviews.

        Args:
            source: Where ledger records come from
            person_ids: People to include (default: everyone the source knows)
            current_period_key: The period treated as "current"
            summary_limit: How many period summaries per person

        Raises:
            StorageError: If the source fails; the failure is audited first
        """
        if person_ids is None:
            person_ids = await source.list_person_ids()

        overviews = []
        for person_id in person_ids:
            try:
                records = await source.list_records(person_id)
            except StorageError as e:
                self._audit.log(AuditEventBuilder.source_read_failed(
                    person_id=person_id,
                    error_message=str(e),
                ))
                raise
            overviews.append(
                self.build_overview(person_id, records, current_period_key, summary_limit)
            )
        return sorted(overviews, key=_sort_key)


def total_balance(overviews: Iterable[PersonDebtOverview]) -> Decimal:
    """Sum of every person's balance, as shown in the people list footer."""
    return sum((o.balance for o in overviews), Decimal("0"))
