"""
Moneyflow - Debt Reconciliation Package

Reconciles a person's lend (debt) and repay (repayment) history into an
auditable allocation trail and per-period outstanding balances.

DESIGN PRINCIPLES:
1. Money is never created or destroyed by the algorithm
2. Same inputs, same links
3. Bad numbers degrade to zero, they never raise
4. Every run is auditable
5. Storage stays outside the engine
"""

__version__ = "1.0.0"
__author__ = "Moneyflow Team"
