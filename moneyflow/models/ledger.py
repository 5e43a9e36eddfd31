"""
Core Data Models for Debt Reconciliation

These models define the schemas for everything flowing through the
reconciliation engine:
1. LedgerRecord - a raw row as read from storage (lenient, never fails on amounts)
2. DebtEntry / RepaymentEntry - mutable working copies used by the allocator
3. AllocationLink - the immutable audit record of one allocation
4. PeriodSummary / ReconciliationResult - what callers get back

DESIGN DECISION: Raw input is parsed leniently at this boundary.
Malformed allocation hints are dropped HERE, never inside the allocator.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from moneyflow.models.money import (
    DEFAULT_EPSILON,
    ZERO,
    coerce_datetime,
    coerce_decimal,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class EntryKind(str, Enum):
    """Which side of the ledger a record sits on."""
    DEBT = "debt"
    REPAYMENT = "repayment"


class AllocationPhase(str, Enum):
    """The allocator phase that produced a link."""
    TARGETED = "targeted"   # explicit operator hint
    PERIOD = "period"       # same period tag
    FIFO = "fifo"           # oldest debt first


class DebtStatus(str, Enum):
    """
    Settlement state of a debt.

    Transitions only move forward within a run:
    UNALLOCATED -> PARTIALLY_ALLOCATED -> SETTLED
    """
    UNALLOCATED = "unallocated"
    PARTIALLY_ALLOCATED = "partially_allocated"
    SETTLED = "settled"


# Legacy transaction types map onto the two ledger sides
_KIND_BY_TYPE = {
    "debt": EntryKind.DEBT,
    "expense": EntryKind.DEBT,
    "repayment": EntryKind.REPAYMENT,
    "income": EntryKind.REPAYMENT,
}

VOID_STATUS = "void"


# =============================================================================
# ALLOCATION HINTS
# =============================================================================

class AllocationHint(BaseModel):
    """
    An operator instruction attached to a repayment:
    "put this much of me on that debt".
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    target_debt_id: str = Field(
        ...,
        min_length=1,
        description="ID of the debt the operator wants paid"
    )
    intended_amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount the operator wants applied to that debt"
    )

    @field_validator('target_debt_id', mode='before')
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        if isinstance(v, (int, UUID)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('intended_amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        coerced = coerce_decimal(v)
        # Leave unreadable values alone so validation rejects them
        return v if coerced is None else coerced


def parse_allocation_hints(raw: Any) -> list[AllocationHint]:
    """
    Parse a list of raw hint objects, dropping malformed ones.

    Each item may use either {target_debt_id, intended_amount} or the
    persisted bulk-allocation shape {id, amount}.
    """
    if not isinstance(raw, (list, tuple)):
        return []

    hints = []
    for item in raw:
        if isinstance(item, AllocationHint):
            hints.append(item)
            continue
        if not isinstance(item, dict):
            logger.debug("allocation_hint_malformed", reason="not_an_object")
            continue
        candidate = {
            "target_debt_id": item.get("target_debt_id", item.get("id")),
            "intended_amount": item.get("intended_amount", item.get("amount")),
        }
        try:
            hints.append(AllocationHint.model_validate(candidate))
        except ValidationError as e:
            logger.debug(
                "allocation_hint_malformed",
                reason="invalid_fields",
                error_count=e.error_count(),
            )
    return hints


def hints_from_metadata(metadata: Optional[dict[str, Any]]) -> list[AllocationHint]:
    """
    Pull allocation hints out of record metadata.

    Prefers an explicit "allocation_hints" list, then falls back to a
    previously persisted "bulk_allocation.debts" list.
    """
    if not metadata:
        return []

    if "allocation_hints" in metadata:
        return parse_allocation_hints(metadata["allocation_hints"])

    bulk = metadata.get("bulk_allocation")
    if isinstance(bulk, dict):
        return parse_allocation_hints(bulk.get("debts"))

    return []


# =============================================================================
# RAW INPUT
# =============================================================================

class LedgerRecord(BaseModel):
    """
    A lend or repay transaction as it comes out of storage.

    Every numeric field is optional and lenient: unreadable amounts,
    rates and dates become None instead of failing validation.
    Only a missing id is fatal.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque transaction identifier"
    )
    person_id: Optional[str] = Field(
        default=None,
        description="The person who owes or repays"
    )
    type: Optional[str] = Field(
        default=None,
        description="Transaction type (debt, repayment, or legacy expense/income)"
    )
    status: Optional[str] = Field(
        default=None,
        description="Transaction status; void rows are ignored"
    )
    occurred_at: Optional[datetime] = None
    tag: Optional[str] = Field(
        default=None,
        description="Billing-cycle label, e.g. 2025-03 or MAR25"
    )

    # Amounts
    amount: Optional[Decimal] = Field(
        default=None,
        description="Gross amount as recorded (sign is ignored)"
    )
    cashback_share_percent: Optional[Decimal] = Field(
        default=None,
        description="Proportional deduction, 0.05 or 5 both mean 5%"
    )
    cashback_share_fixed: Optional[Decimal] = Field(
        default=None,
        description="Fixed deduction"
    )
    final_price: Optional[Decimal] = Field(
        default=None,
        description="Stored net amount; overrides the computed one when present"
    )

    metadata: Optional[dict[str, Any]] = None
    allocation_hints: list[AllocationHint] = Field(default_factory=list)

    @field_validator('id', 'person_id', mode='before')
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if isinstance(v, (int, UUID)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('type', 'status', mode='before')
    @classmethod
    def lowercase_codes(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip().lower()
        return text or None

    @field_validator('tag', mode='before')
    @classmethod
    def blank_tag_is_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator('occurred_at', mode='before')
    @classmethod
    def lenient_timestamp(cls, v: Any) -> Optional[datetime]:
        return coerce_datetime(v)

    @field_validator(
        'amount',
        'cashback_share_percent',
        'cashback_share_fixed',
        'final_price',
        mode='before',
    )
    @classmethod
    def lenient_amount(cls, v: Any) -> Optional[Decimal]:
        return coerce_decimal(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def decode_metadata(cls, v: Any) -> Optional[dict[str, Any]]:
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                logger.warning("metadata_unparseable", length=len(v))
                return None
        return v if isinstance(v, dict) else None

    @field_validator('allocation_hints', mode='before')
    @classmethod
    def drop_malformed_hints(cls, v: Any) -> list[AllocationHint]:
        return parse_allocation_hints(v)

    @model_validator(mode='after')
    def hints_from_metadata_fallback(self) -> 'LedgerRecord':
        """Use hints stored in metadata when none were given explicitly."""
        if not self.allocation_hints and self.metadata:
            self.allocation_hints = hints_from_metadata(self.metadata)
        return self

    @property
    def is_void(self) -> bool:
        return self.status == VOID_STATUS

    def resolve_kind(self) -> Optional[EntryKind]:
        """Map the transaction type onto the debt or repayment side."""
        if self.type is None:
            return None
        return _KIND_BY_TYPE.get(self.type)


def split_ledger_records(
    records: list[LedgerRecord],
) -> tuple[list[LedgerRecord], list[LedgerRecord]]:
    """
    Partition records into (debts, repayments).

    Void rows and rows that are neither debt nor repayment are dropped.
    Input order is preserved within each side.
    """
    debts = []
    repayments = []
    for record in records:
        if record.is_void:
            continue
        kind = record.resolve_kind()
        if kind == EntryKind.DEBT:
            debts.append(record)
        elif kind == EntryKind.REPAYMENT:
            repayments.append(record)
    return debts, repayments


# =============================================================================
# WORKING ENTRIES
# =============================================================================

class AllocationLink(BaseModel):
    """One repayment amount applied to one debt. Immutable."""
    model_config = ConfigDict(frozen=True)

    repayment_id: str
    debt_id: str
    amount: Decimal = Field(..., gt=0)
    phase: AllocationPhase


class LedgerEntry(BaseModel):
    """
    Allocation-ready working copy of a ledger record.

    `remaining` is mutated by the allocator and only ever decreases.
    Entries live for a single reconciliation run.
    """

    id: str
    person_id: Optional[str] = None
    occurred_at: Optional[datetime] = None
    period_tag: Optional[str] = None
    period_key: str
    gross_amount: Decimal = Field(..., ge=0)
    net_amount: Decimal = Field(..., ge=0)
    remaining: Decimal
    links: list[AllocationLink] = Field(default_factory=list)
    position: int = Field(
        default=0,
        ge=0,
        description="Index in the caller's input list, used to break date ties"
    )

    @property
    def deduction(self) -> Decimal:
        return self.gross_amount - self.net_amount

    @property
    def allocated(self) -> Decimal:
        return sum((link.amount for link in self.links), ZERO)

    def record(self, link: AllocationLink) -> None:
        """Apply a link to this entry's balance."""
        self.remaining -= link.amount
        self.links.append(link)


class DebtEntry(LedgerEntry):
    """A lend event: money the person owes."""

    def settlement_status(self, epsilon: Decimal = DEFAULT_EPSILON) -> DebtStatus:
        if self.remaining < epsilon:
            return DebtStatus.SETTLED
        if self.links:
            return DebtStatus.PARTIALLY_ALLOCATED
        return DebtStatus.UNALLOCATED


class RepaymentEntry(LedgerEntry):
    """A repay event: money the person paid back."""

    allocation_hints: list[AllocationHint] = Field(default_factory=list)


# =============================================================================
# RESULTS
# =============================================================================

class RepaymentContribution(BaseModel):
    """How much one repayment contributed to a period."""

    repayment_id: str
    amount: Decimal


class PeriodSummary(BaseModel):
    """
    Post-allocation view of one billing period.

    total_repaid is derived from the other two totals, never stored.
    """

    period_key: str
    label: str
    cycle_range: Optional[str] = Field(
        default=None,
        description="Statement window for month keys, e.g. 25.02 - 24.03"
    )
    outstanding_amount: Decimal
    total_net_debt: Decimal
    total_deduction: Decimal
    occurred_at: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the latest debt in the period"
    )
    debt_ids: list[str] = Field(default_factory=list)
    links: list[RepaymentContribution] = Field(default_factory=list)

    @property
    def total_repaid(self) -> Decimal:
        return max(ZERO, self.total_net_debt - self.outstanding_amount)

    @property
    def is_settled(self) -> bool:
        return self.outstanding_amount < DEFAULT_EPSILON


class LifetimeTotals(BaseModel):
    """Unbounded totals across every period."""

    net_debt: Decimal = ZERO
    deduction: Decimal = ZERO
    outstanding: Decimal = ZERO

    @property
    def repaid(self) -> Decimal:
        return max(ZERO, self.net_debt - self.outstanding)


class InvariantViolation(BaseModel):
    """A conservation check that did not hold after a run."""

    invariant: str = Field(
        ...,
        pattern="^(debt_balance|repayment_budget|global_conservation|non_negative)$"
    )
    entity_id: Optional[str] = None
    message: str
    discrepancy: Decimal = ZERO


class ReconciliationResult(BaseModel):
    """Everything one reconciliation run produces."""

    correlation_id: UUID
    period_summaries: list[PeriodSummary] = Field(
        default_factory=list,
        description="Most recent periods first, bounded by the summary limit"
    )
    period_count: int = Field(
        default=0,
        ge=0,
        description="Number of periods before truncation"
    )
    current_period_key: Optional[str] = None
    current_period_outstanding: Decimal = ZERO
    prior_periods_outstanding: Decimal = ZERO
    lifetime_totals: LifetimeTotals = Field(default_factory=LifetimeTotals)
    links: list[AllocationLink] = Field(
        default_factory=list,
        description="Full allocation trail in creation order"
    )
    debts: list[DebtEntry] = Field(default_factory=list)
    repayments: list[RepaymentEntry] = Field(default_factory=list)
    unallocated_repayment: Decimal = Field(
        default=ZERO,
        description="Repayment money no debt could absorb"
    )

    @property
    def total_outstanding(self) -> Decimal:
        return self.current_period_outstanding + self.prior_periods_outstanding


class PersonDebtOverview(BaseModel):
    """Headline numbers for one person, as shown on the people list."""

    person_id: str
    balance: Decimal = Field(
        ...,
        description="Outstanding debt minus repayment credit not yet applied"
    )
    current_period_outstanding: Decimal
    outstanding_debt: Decimal = Field(
        ...,
        description="Outstanding debt from periods before the current one"
    )
    total_outstanding: Decimal
    monthly_debts: list[PeriodSummary] = Field(default_factory=list)
    lifetime_totals: LifetimeTotals
    links: list[AllocationLink] = Field(default_factory=list)


class RepaymentPreviewLine(BaseModel):
    """One debt touched by a previewed repayment."""

    debt_id: str
    period_tag: Optional[str] = None
    allocated_amount: Decimal
    remaining_after_allocation: Decimal
    is_fully_paid: bool
    is_manual: bool = False


class RepaymentPreview(BaseModel):
    """What a single new repayment would settle, before it is saved."""

    lines: list[RepaymentPreviewLine] = Field(default_factory=list)
    total_allocated: Decimal = ZERO
    remaining_repayment: Decimal = ZERO
