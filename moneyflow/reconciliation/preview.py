"""
Repayment preview.

Before a new repayment is saved, the operator sees which outstanding
debts it would settle and can pin amounts to specific debts. Pinned
amounts are applied first; whatever is left goes oldest debt first.
"""

from decimal import Decimal
from typing import Any, Optional

from moneyflow.models.ledger import (
    DebtEntry,
    RepaymentPreview,
    RepaymentPreviewLine,
)
from moneyflow.models.money import DEFAULT_EPSILON, ZERO, coerce_decimal
from moneyflow.reconciliation.entries import chronological


def preview_repayment(
    debts: list[DebtEntry],
    amount: Any,
    overrides: Optional[dict[str, Any]] = None,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> RepaymentPreview:
    """
    Preview how a repayment of `amount` would be applied.

    Args:
        debts: Outstanding debts (their `remaining` is what is owed)
        amount: The repayment amount; sign is ignored, junk counts as zero
        overrides: Amounts pinned to debt IDs by the operator
        epsilon: Balances below this count as fully paid

    Returns:
        RepaymentPreview listing every debt that receives money or was pinned.
        The debts passed in are not modified.
    """
    budget = abs(coerce_decimal(amount) or ZERO)
    pinned = {
        debt_id: max(coerce_decimal(value) or ZERO, ZERO)
        for debt_id, value in (overrides or {}).items()
    }

    ordered = chronological(debts)
    allocations: dict[str, Decimal] = {}

    # Pinned amounts first, in debt order, never beyond what the debt owes
    for debt in ordered:
        if debt.id not in pinned:
            continue
        share = min(pinned[debt.id], max(debt.remaining, ZERO), budget)
        allocations[debt.id] = share
        budget -= share

    for debt in ordered:
        if debt.id in pinned:
            continue
        if budget <= ZERO:
            break
        owed = max(debt.remaining, ZERO)
        if owed <= ZERO:
            continue
        share = min(owed, budget)
        allocations[debt.id] = share
        budget -= share

    lines = []
    for debt in ordered:
        if debt.id not in allocations:
            continue
        share = allocations[debt.id]
        is_manual = debt.id in pinned
        if share <= ZERO and not is_manual:
            continue
        left = debt.remaining - share
        lines.append(RepaymentPreviewLine(
            debt_id=debt.id,
            period_tag=debt.period_tag,
            allocated_amount=share,
            remaining_after_allocation=left,
            is_fully_paid=left < epsilon,
            is_manual=is_manual,
        ))

    return RepaymentPreview(
        lines=lines,
        total_allocated=sum(allocations.values(), ZERO),
        remaining_repayment=budget,
    )
