"""
Debt Reconciliation Engine

DESIGN DECISION: Reconciliation is a pure batch computation.
It takes fully fetched debt and repayment records and returns a new
result; it reads no storage and writes none. Each run builds its own
working entries, so runs for different people share nothing.

Pipeline (one direction, no stage re-enters an earlier one):
1. Boundary check - reject anything that is not a list of records
2. Normalise - records -> working entries, oldest first
3. Allocate - targeted hints, period affinity, FIFO
4. Aggregate - per-period summaries, current/prior split, truncation
5. Verify - conservation invariants, audited if they ever fail
"""

from decimal import Decimal
from typing import Any, Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from moneyflow.audit import AuditLogger, create_correlation_id
from moneyflow.config import ReconciliationSettings, get_settings
from moneyflow.models.audit import AuditEventBuilder
from moneyflow.models.ledger import (
    InvariantViolation,
    LedgerRecord,
    ReconciliationResult,
)
from moneyflow.models.money import ZERO
from moneyflow.reconciliation.aggregator import (
    aggregate_by_period,
    lifetime_totals,
    sort_and_truncate,
    split_outstanding,
)
from moneyflow.reconciliation.allocator import DebtAllocator
from moneyflow.reconciliation.entries import (
    build_debt_entries,
    build_repayment_entries,
)

RecordInput = Union[LedgerRecord, dict[str, Any]]


class ReconciliationInputError(ValueError):
    """The input collections could not be turned into ledger records."""
    pass


class ReconciliationEngine:
    """
    Reconciles one person's debts against their repayments.

    GUARANTEES:
    - The caller's records are never mutated
    - Same inputs always give the same links and summaries
    - No amount is created or lost by allocation
    """

    def __init__(
        self,
        settings: Optional[ReconciliationSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().reconciliation
        self._audit = audit_logger or AuditLogger()

    def reconcile(
        self,
        debts: Sequence[RecordInput],
        repayments: Sequence[RecordInput],
        current_period_key: Optional[str] = None,
        summary_limit: Optional[int] = None,
    ) -> ReconciliationResult:
        """
        Run the full reconciliation.

        Args:
            debts: Debt records (LedgerRecord or plain dicts)
            repayments: Repayment records, optionally carrying allocation hints
            current_period_key: The period treated as "current", e.g. 2025-03
            summary_limit: How many period summaries to return (default from settings)

        Returns:
            ReconciliationResult with bounded summaries and the full link trail

        Raises:
            ReconciliationInputError: If either collection is missing or malformed
        """
        correlation_id = create_correlation_id()
        # Parse-time warnings from the models carry the run's correlation id
        with structlog.contextvars.bound_contextvars(correlation_id=str(correlation_id)):
            return self._run(
                correlation_id, debts, repayments, current_period_key, summary_limit
            )

    def _run(
        self,
        correlation_id: UUID,
        debts: Sequence[RecordInput],
        repayments: Sequence[RecordInput],
        current_period_key: Optional[str],
        summary_limit: Optional[int],
    ) -> ReconciliationResult:
        settings = self._settings
        limit = summary_limit if summary_limit is not None else settings.summary_limit

        debt_records = self._parse_collection("debts", debts, correlation_id)
        repayment_records = self._parse_collection("repayments", repayments, correlation_id)

        person_id = next(
            (r.person_id for r in [*debt_records, *repayment_records] if r.person_id),
            None,
        )
        self._audit.log(AuditEventBuilder.reconciliation_started(
            debt_count=len(debt_records),
            repayment_count=len(repayment_records),
            correlation_id=correlation_id,
            person_id=person_id,
        ))

        debt_entries = build_debt_entries(
            debt_records,
            settings.unknown_period_key,
            settings.percent_threshold,
        )
        repayment_entries = build_repayment_entries(
            repayment_records,
            settings.unknown_period_key,
            settings.percent_threshold,
        )

        allocator = DebtAllocator(
            epsilon=settings.epsilon,
            audit_logger=self._audit,
            correlation_id=correlation_id,
        )
        links = allocator.allocate(debt_entries, repayment_entries)

        summaries = aggregate_by_period(
            debt_entries,
            settings.unknown_period_key,
            settings.unknown_period_label,
        )
        current, prior = split_outstanding(summaries, current_period_key)

        result = ReconciliationResult(
            correlation_id=correlation_id,
            period_summaries=sort_and_truncate(summaries, limit),
            period_count=len(summaries),
            current_period_key=current_period_key,
            current_period_outstanding=current,
            prior_periods_outstanding=prior,
            lifetime_totals=lifetime_totals(summaries),
            links=links,
            debts=debt_entries,
            repayments=repayment_entries,
            unallocated_repayment=sum(
                (r.remaining for r in repayment_entries), ZERO
            ),
        )

        for violation in verify_invariants(result, settings.epsilon):
            self._audit.log(AuditEventBuilder.invariant_violated(
                invariant=violation.invariant,
                message=violation.message,
                correlation_id=correlation_id,
                entity_id=violation.entity_id,
            ))

        self._audit.log(AuditEventBuilder.reconciliation_completed(
            link_count=len(links),
            total_allocated=sum((link.amount for link in links), ZERO),
            total_outstanding=result.total_outstanding,
            unallocated_repayment=result.unallocated_repayment,
            correlation_id=correlation_id,
            person_id=person_id,
        ))

        return result

    def _parse_collection(
        self,
        name: str,
        items: Any,
        correlation_id: UUID,
    ) -> list[LedgerRecord]:
        """Reject non-list input up front, before any entry is built."""
        if not isinstance(items, (list, tuple)):
            reason = f"{name} must be a list, got {type(items).__name__}"
            self._audit.log(AuditEventBuilder.input_rejected(reason, correlation_id))
            raise ReconciliationInputError(reason)

        records = []
        for index, item in enumerate(items):
            if isinstance(item, LedgerRecord):
                # Copy so hint parsing or later callers can't share state with us
                records.append(item.model_copy(deep=True))
                continue
            try:
                records.append(LedgerRecord.model_validate(item))
            except ValidationError as e:
                reason = f"{name}[{index}] is not a valid ledger record: {e.error_count()} errors"
                self._audit.log(AuditEventBuilder.input_rejected(reason, correlation_id))
                raise ReconciliationInputError(reason) from e
        return records


def verify_invariants(
    result: ReconciliationResult,
    epsilon: Decimal = Decimal("0.01"),
) -> list[InvariantViolation]:
    """
    Check the conservation invariants of a finished run.

    1. Each debt: remaining = net - allocated, and remaining >= 0
    2. Each repayment: allocated <= net
    3. Globally: total net debt - total links = total remaining

    Returns an empty list when everything holds.
    """
    violations = []

    for debt in result.debts:
        drift = debt.net_amount - debt.allocated - debt.remaining
        if abs(drift) > epsilon:
            violations.append(InvariantViolation(
                invariant="debt_balance",
                entity_id=debt.id,
                message=f"Debt {debt.id} remaining does not match its links",
                discrepancy=drift,
            ))
        if debt.remaining < -epsilon:
            violations.append(InvariantViolation(
                invariant="non_negative",
                entity_id=debt.id,
                message=f"Debt {debt.id} has negative remaining",
                discrepancy=debt.remaining,
            ))

    for repayment in result.repayments:
        overdraw = repayment.allocated - repayment.net_amount
        if overdraw > epsilon:
            violations.append(InvariantViolation(
                invariant="repayment_budget",
                entity_id=repayment.id,
                message=f"Repayment {repayment.id} allocated more than it holds",
                discrepancy=overdraw,
            ))
        if repayment.remaining < -epsilon:
            violations.append(InvariantViolation(
                invariant="non_negative",
                entity_id=repayment.id,
                message=f"Repayment {repayment.id} has negative remaining",
                discrepancy=repayment.remaining,
            ))

    total_net = sum((d.net_amount for d in result.debts), ZERO)
    total_linked = sum((link.amount for link in result.links), ZERO)
    total_remaining = sum((d.remaining for d in result.debts), ZERO)
    drift = total_net - total_linked - total_remaining
    if abs(drift) > epsilon:
        violations.append(InvariantViolation(
            invariant="global_conservation",
            message="Net debt minus allocations does not equal outstanding debt",
            discrepancy=drift,
        ))

    return violations
