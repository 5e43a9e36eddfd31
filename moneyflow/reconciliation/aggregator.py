"""
Period aggregation of allocated debts.

After allocation every debt knows what it still owes. This module rolls
those balances up per billing period, splits the outstanding total into
"this period" and "earlier periods", and trims the list for display.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from moneyflow.models.ledger import (
    DebtEntry,
    LifetimeTotals,
    PeriodSummary,
    RepaymentContribution,
)
from moneyflow.models.money import ZERO
from moneyflow.reconciliation.periods import format_cycle_range, resolve_period_tag

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def aggregate_by_period(
    debts: list[DebtEntry],
    unknown_period_key: str = "unknown",
    unknown_period_label: str = "Debt",
) -> list[PeriodSummary]:
    """
    Group debts by period key and total them.

    Links from member debts are merged per repayment, summing amounts,
    in the order repayments were first seen. Groups come back in the
    order their first debt appears.
    """
    groups: dict[str, dict] = {}

    for debt in debts:
        key = debt.period_key
        group = groups.get(key)
        if group is None:
            group = {
                "outstanding": ZERO,
                "net": ZERO,
                "deduction": ZERO,
                "latest": None,
                "debt_ids": [],
                "contributions": {},
            }
            groups[key] = group

        group["outstanding"] += debt.remaining
        group["net"] += debt.net_amount
        group["deduction"] += debt.deduction
        group["debt_ids"].append(debt.id)

        if debt.occurred_at and (group["latest"] is None or debt.occurred_at > group["latest"]):
            group["latest"] = debt.occurred_at

        contributions = group["contributions"]
        for link in debt.links:
            contributions[link.repayment_id] = (
                contributions.get(link.repayment_id, ZERO) + link.amount
            )

    summaries = []
    for key, group in groups.items():
        summaries.append(PeriodSummary(
            period_key=key,
            label=unknown_period_label if key == unknown_period_key else key,
            cycle_range=format_cycle_range(key),
            outstanding_amount=group["outstanding"],
            total_net_debt=group["net"],
            total_deduction=group["deduction"],
            occurred_at=group["latest"],
            debt_ids=group["debt_ids"],
            links=[
                RepaymentContribution(repayment_id=repayment_id, amount=amount)
                for repayment_id, amount in group["contributions"].items()
            ],
        ))
    return summaries


def split_outstanding(
    summaries: list[PeriodSummary],
    current_period_key: Optional[str],
) -> tuple[Decimal, Decimal]:
    """
    Split outstanding debt into (current period, prior periods).

    The current key goes through the same tag normalisation as entries,
    so "MAR25" matches a 2025-03 period. With no current key everything
    is prior.
    """
    current_key = resolve_period_tag(current_period_key)
    current = ZERO
    prior = ZERO
    for summary in summaries:
        if current_key is not None and summary.period_key == current_key:
            current += summary.outstanding_amount
        else:
            prior += summary.outstanding_amount
    return current, prior


def sort_and_truncate(
    summaries: list[PeriodSummary],
    limit: int = 5,
) -> list[PeriodSummary]:
    """
    Most recent period first, at most `limit` of them.

    Undated periods go last; ties fall back to the period key, newest first.
    """
    ordered = sorted(
        summaries,
        key=lambda s: (s.occurred_at or _NEVER, s.period_key),
        reverse=True,
    )
    return ordered[:max(limit, 0)]


def lifetime_totals(summaries: list[PeriodSummary]) -> LifetimeTotals:
    """Totals over every period, before truncation."""
    return LifetimeTotals(
        net_debt=sum((s.total_net_debt for s in summaries), ZERO),
        deduction=sum((s.total_deduction for s in summaries), ZERO),
        outstanding=sum((s.outstanding_amount for s in summaries), ZERO),
    )
