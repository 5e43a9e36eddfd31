"""
Three-phase debt allocation.

Repayments are matched to debts in three passes, each seeing the
balances left by the one before:

PHASE 1 - TARGETED:
- Explicit operator hints on a repayment ("60 of this goes to debt X")
- Hints to unknown or already settled debts are skipped, not errors

PHASE 2 - PERIOD AFFINITY:
- A repayment tagged for a billing period settles that period's debts,
  oldest first, before anything else

PHASE 3 - FIFO:
- Untagged repayments with money left pay the oldest outstanding debts
- Tagged repayments never reach this phase; leftover stays unallocated

Every allocation is min(what the repayment has, what the debt needs),
so neither side can go below zero.
"""

from collections import deque
from decimal import Decimal
from typing import Optional
from uuid import UUID

from moneyflow.audit import AuditLogger
from moneyflow.models.audit import AuditEventBuilder
from moneyflow.models.ledger import (
    AllocationLink,
    AllocationPhase,
    DebtEntry,
    RepaymentEntry,
)
from moneyflow.models.money import DEFAULT_EPSILON, ZERO


class DebtAllocator:
    """
    Consumes repayments against debts for one person.

    Entries are mutated in place: `remaining` goes down and links are
    appended to both sides. Pass working copies, never persisted objects.
    """

    def __init__(
        self,
        epsilon: Decimal = DEFAULT_EPSILON,
        audit_logger: Optional[AuditLogger] = None,
        correlation_id: Optional[UUID] = None,
    ):
        self._epsilon = epsilon
        self._audit = audit_logger
        self._correlation_id = correlation_id
        self._links: list[AllocationLink] = []

    def allocate(
        self,
        debts: list[DebtEntry],
        repayments: list[RepaymentEntry],
    ) -> list[AllocationLink]:
        """
        Run all three phases.

        Args:
            debts: Debts sorted oldest first
            repayments: Repayments sorted oldest first

        Returns:
            Every link created, in creation order
        """
        self._links = []
        self._apply_hints(debts, repayments)
        self._apply_period_affinity(debts, repayments)
        self._report_unmatched_tagged(repayments)
        self._apply_fifo(debts, repayments)
        return list(self._links)

    def _link(
        self,
        repayment: RepaymentEntry,
        debt: DebtEntry,
        amount: Decimal,
        phase: AllocationPhase,
    ) -> None:
        link = AllocationLink(
            repayment_id=repayment.id,
            debt_id=debt.id,
            amount=amount,
            phase=phase,
        )
        debt.record(link)
        repayment.record(link)
        self._links.append(link)

    def _apply_hints(
        self,
        debts: list[DebtEntry],
        repayments: list[RepaymentEntry],
    ) -> None:
        """Phase 1: honour explicit operator hints, in the order given."""
        debts_by_id = {debt.id: debt for debt in debts}

        for repayment in repayments:
            for hint in repayment.allocation_hints:
                debt = debts_by_id.get(hint.target_debt_id)
                if debt is None:
                    self._skip_hint(repayment, hint.target_debt_id, "unknown_debt")
                    continue
                if debt.remaining <= ZERO:
                    self._skip_hint(repayment, hint.target_debt_id, "debt_settled")
                    continue
                if repayment.remaining <= ZERO:
                    self._skip_hint(repayment, hint.target_debt_id, "repayment_exhausted")
                    continue

                amount = min(hint.intended_amount, repayment.remaining, debt.remaining)
                self._link(repayment, debt, amount, AllocationPhase.TARGETED)

    def _apply_period_affinity(
        self,
        debts: list[DebtEntry],
        repayments: list[RepaymentEntry],
    ) -> None:
        """Phase 2: tagged repayments settle debts carrying the same tag."""
        for repayment in repayments:
            if not repayment.period_tag or repayment.remaining <= self._epsilon:
                continue

            for debt in debts:
                if repayment.remaining <= self._epsilon:
                    break
                if debt.period_tag != repayment.period_tag:
                    continue
                if debt.remaining <= self._epsilon:
                    continue

                amount = min(repayment.remaining, debt.remaining)
                self._link(repayment, debt, amount, AllocationPhase.PERIOD)

    def _apply_fifo(
        self,
        debts: list[DebtEntry],
        repayments: list[RepaymentEntry],
    ) -> None:
        """Phase 3: untagged money pays the oldest debts first."""
        queue = deque(
            r for r in repayments
            if not r.period_tag and r.remaining > self._epsilon
        )

        for debt in debts:
            while debt.remaining > self._epsilon and queue:
                head = queue[0]
                amount = min(head.remaining, debt.remaining)
                self._link(head, debt, amount, AllocationPhase.FIFO)
                if head.remaining < self._epsilon:
                    queue.popleft()

    def _report_unmatched_tagged(self, repayments: list[RepaymentEntry]) -> None:
        if self._audit is None:
            return
        for repayment in repayments:
            if repayment.period_tag and repayment.remaining > self._epsilon:
                self._audit.log(AuditEventBuilder.tagged_repayment_unmatched(
                    repayment_id=repayment.id,
                    period_tag=repayment.period_tag,
                    leftover=repayment.remaining,
                    correlation_id=self._correlation_id,
                ))

    def _skip_hint(
        self,
        repayment: RepaymentEntry,
        target_debt_id: str,
        reason: str,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEventBuilder.hint_skipped(
            repayment_id=repayment.id,
            target_debt_id=target_debt_id,
            reason=reason,
            correlation_id=self._correlation_id,
        ))
