"""
Net amount calculation.

A lender often keeps part of a card's cashback, so the person only owes
the gross amount minus that share. The same reduction applies to
repayments so both sides of the ledger are compared in net terms.
"""

from decimal import Decimal
from typing import Any, Optional

from moneyflow.models.money import ZERO, coerce_decimal

PERCENT_THRESHOLD = Decimal("1")
HUNDRED = Decimal("100")


def normalize_rate(
    rate: Any,
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> Decimal:
    """
    Read a deduction rate as a fraction.

    Callers store either 0.05 or 5 to mean 5%, so anything above the
    threshold is divided by 100. A rate of exactly 1 stays 100%.
    Unreadable input contributes nothing.
    """
    value = coerce_decimal(rate)
    if value is None:
        return ZERO
    if value > percent_threshold:
        return value / HUNDRED
    return value


def calculate_deduction(
    gross: Any,
    rate: Any = None,
    fixed: Any = None,
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> Decimal:
    """Deduction kept by the lender, clamped to [0, |gross|]."""
    gross_value = abs(coerce_decimal(gross) or ZERO)
    fixed_value = coerce_decimal(fixed) or ZERO
    raw = gross_value * normalize_rate(rate, percent_threshold) + fixed_value
    return min(max(raw, ZERO), gross_value)


def calculate_net_amount(
    gross: Any,
    rate: Any = None,
    fixed: Any = None,
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> Decimal:
    """
    net = |gross| - clamp(|gross| * rate + fixed, 0, |gross|)

    Never negative and never above the gross amount.
    """
    gross_value = abs(coerce_decimal(gross) or ZERO)
    return gross_value - calculate_deduction(gross_value, rate, fixed, percent_threshold)


def resolve_amounts(
    amount: Any,
    rate: Any = None,
    fixed: Any = None,
    final_price: Optional[Any] = None,
    percent_threshold: Decimal = PERCENT_THRESHOLD,
) -> tuple[Decimal, Decimal]:
    """
    Work out (gross, net) for one ledger row.

    A stored final price wins over the computed net. It is capped at the
    gross amount; when no gross was recorded the final price stands in for it.
    """
    gross = abs(coerce_decimal(amount) or ZERO)

    stored = coerce_decimal(final_price)
    if stored is not None:
        net = abs(stored)
        if gross == ZERO:
            return net, net
        return gross, min(net, gross)

    return gross, calculate_net_amount(gross, rate, fixed, percent_threshold)
