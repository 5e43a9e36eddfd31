"""Debt reconciliation package."""

from moneyflow.reconciliation.amounts import (
    calculate_deduction,
    calculate_net_amount,
    normalize_rate,
    resolve_amounts,
)
from moneyflow.reconciliation.engine import (
    ReconciliationEngine,
    ReconciliationInputError,
    verify_invariants,
)
from moneyflow.reconciliation.preview import preview_repayment

__all__ = [
    "ReconciliationEngine",
    "ReconciliationInputError",
    "calculate_deduction",
    "calculate_net_amount",
    "normalize_rate",
    "preview_repayment",
    "resolve_amounts",
    "verify_invariants",
]
