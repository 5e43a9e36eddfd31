"""Integration tests for the reconciliation engine."""

from decimal import Decimal

import pytest

from moneyflow.audit import AuditLogger
from moneyflow.config import ReconciliationSettings
from moneyflow.models.audit import AuditEventType
from moneyflow.models.ledger import LedgerRecord
from moneyflow.reconciliation import (
    ReconciliationEngine,
    ReconciliationInputError,
    verify_invariants,
)
from moneyflow.services.storage import InMemoryAuditSink


@pytest.fixture
def sink():
    return InMemoryAuditSink()


@pytest.fixture
def engine(sink):
    return ReconciliationEngine(
        settings=ReconciliationSettings(),
        audit_logger=AuditLogger(sink=sink),
    )


def debt(id, amount, date, tag=None, **extra):
    return {"id": id, "person_id": "p1", "type": "debt", "amount": amount,
            "occurred_at": date, "tag": tag, **extra}


def repayment(id, amount, date, tag=None, **extra):
    return {"id": id, "person_id": "p1", "type": "repayment", "amount": amount,
            "occurred_at": date, "tag": tag, **extra}


class TestScenarios:
    """End-to-end runs over small ledgers."""

    def test_fifo_with_overpayment(self, engine):
        """Test the oldest debt is settled first and the rest spills over."""
        result = engine.reconcile(
            [debt("A", 100, "2025-01-03"), debt("B", 50, "2025-01-10")],
            [repayment("R", 120, "2025-01-20")],
        )
        remaining = {d.id: d.remaining for d in result.debts}
        assert remaining == {"A": Decimal("0"), "B": Decimal("30")}
        assert [l.amount for l in result.links] == [Decimal("100"), Decimal("20")]
        assert result.unallocated_repayment == Decimal("0")

    def test_tag_precedence(self, engine):
        """Test a tagged repayment skips the older, differently tagged debt."""
        result = engine.reconcile(
            [
                debt("A", 80, "2025-01-05", tag="2025-01"),
                debt("B", 80, "2025-02-05", tag="2025-02"),
            ],
            [repayment("R", 50, "2025-02-20", tag="2025-02")],
            current_period_key="2025-02",
        )
        remaining = {d.id: d.remaining for d in result.debts}
        assert remaining == {"A": Decimal("80"), "B": Decimal("30")}
        assert result.current_period_outstanding == Decimal("30")
        assert result.prior_periods_outstanding == Decimal("80")

    def test_hint_then_fifo(self, engine):
        """Test a hinted repayment goes first and FIFO takes what is left."""
        result = engine.reconcile(
            [debt("A", 100, "2025-01-01")],
            [
                repayment("R", 60, "2025-01-05", allocation_hints=[
                    {"target_debt_id": "A", "intended_amount": 60},
                ]),
                repayment("S", 60, "2025-01-06"),
            ],
        )
        assert result.debts[0].remaining == Decimal("0")
        leftovers = {r.id: r.remaining for r in result.repayments}
        assert leftovers == {"R": Decimal("0"), "S": Decimal("20")}
        assert result.unallocated_repayment == Decimal("20")

    def test_net_amount_drives_allocation(self, engine):
        """Test a 5% share is deducted before allocation."""
        result = engine.reconcile(
            [debt("A", 1000, "2025-03-01", cashback_share_percent=5)],
            [repayment("R", 950, "2025-03-10")],
        )
        assert result.debts[0].net_amount == Decimal("950")
        assert result.debts[0].remaining == Decimal("0")
        assert result.lifetime_totals.deduction == Decimal("50")

    def test_empty_inputs(self, engine):
        """Test empty lists give an empty, consistent result."""
        result = engine.reconcile([], [])
        assert result.period_summaries == []
        assert result.total_outstanding == Decimal("0")
        assert result.links == []

    def test_repayments_without_debts_stay_unallocated(self, engine):
        """Test money with nothing to pay is reported, not lost."""
        result = engine.reconcile([], [repayment("R", 40, "2025-01-01")])
        assert result.unallocated_repayment == Decimal("40")


class TestConservation:
    """Tests for the conservation and non-negativity guarantees."""

    @pytest.fixture
    def busy_result(self, engine):
        return engine.reconcile(
            [
                debt("A", 100, "2025-01-02", tag="2025-01"),
                debt("B", "75.50", "2025-01-15"),
                debt("C", 40, "2025-02-01", tag="FEB25", cashback_share_fixed=4),
                debt("D", 10, None),
            ],
            [
                repayment("R1", 30, "2025-01-20", allocation_hints=[
                    {"target_debt_id": "C", "intended_amount": 10},
                ]),
                repayment("R2", 120, "2025-01-25", tag="2025-01"),
                repayment("R3", "55.25", "2025-02-10"),
                repayment("R4", 5, None),
            ],
        )

    def test_no_negative_balances(self, busy_result):
        """Test remaining never drops below zero on either side."""
        assert all(d.remaining >= 0 for d in busy_result.debts)
        assert all(r.remaining >= 0 for r in busy_result.repayments)

    def test_global_conservation(self, busy_result):
        """Test net debt minus links equals outstanding."""
        total_net = sum(d.net_amount for d in busy_result.debts)
        total_links = sum(l.amount for l in busy_result.links)
        assert total_net - total_links == busy_result.total_outstanding

    def test_repayment_conservation(self, busy_result):
        """Test every repayment's links plus its leftover equal its amount."""
        for r in busy_result.repayments:
            assert r.allocated + r.remaining == r.net_amount

    def test_verify_invariants_clean(self, busy_result):
        """Test a normal run has no violations."""
        assert verify_invariants(busy_result) == []

    def test_verify_invariants_detects_tampering(self, busy_result):
        """Test a balance that disagrees with its links is flagged."""
        busy_result.debts[0].remaining += Decimal("5")
        kinds = {v.invariant for v in verify_invariants(busy_result)}
        assert "debt_balance" in kinds
        assert "global_conservation" in kinds

    def test_same_input_same_output(self, engine):
        """Test two runs produce the same links and summaries."""
        debts = [debt("A", 100, "2025-01-02"), debt("B", 60, "2025-02-02", tag="2025-02")]
        repayments = [repayment("R1", 70, "2025-02-10"), repayment("R2", 20, "2025-02-11", tag="2025-02")]
        first = engine.reconcile(debts, repayments)
        second = engine.reconcile(debts, repayments)
        assert first.links == second.links
        assert first.period_summaries == second.period_summaries


class TestInputBoundary:
    """Tests for rejecting malformed input."""

    @pytest.mark.parametrize("bad", [None, "debts", 42, {"id": "A"}])
    def test_non_list_rejected(self, engine, sink, bad):
        """Test a collection that isn't a list fails up front."""
        with pytest.raises(ReconciliationInputError):
            engine.reconcile(bad, [])
        assert sink.events[-1].event_type == AuditEventType.INPUT_REJECTED

    def test_record_without_id_rejected(self, engine):
        """Test a record missing its id fails the whole run."""
        with pytest.raises(ReconciliationInputError, match=r"repayments\[1\]"):
            engine.reconcile([], [repayment("R", 10, None), {"amount": 5}])

    def test_input_error_is_value_error(self, engine):
        """Test callers catching ValueError still see input errors."""
        with pytest.raises(ValueError):
            engine.reconcile([], None)

    def test_junk_fields_do_not_fail(self, engine):
        """Test unreadable amounts and dates contribute nothing."""
        result = engine.reconcile(
            [debt("A", "abc", "yesterday"), debt("B", 25, "2025-01-01")],
            [repayment("R", None, "2025-01-02")],
        )
        assert result.total_outstanding == Decimal("25")

    def test_caller_records_not_mutated(self, engine):
        """Test reconciling leaves LedgerRecord inputs untouched."""
        debts = [LedgerRecord(id="A", type="debt", amount=100, occurred_at="2025-01-01")]
        repayments = [LedgerRecord(
            id="R", type="repayment", amount=100, occurred_at="2025-01-02",
            allocation_hints=[{"target_debt_id": "A", "intended_amount": 100}],
        )]
        before = [r.model_dump() for r in debts + repayments]

        result = engine.reconcile(debts, repayments)

        assert result.debts[0].remaining == Decimal("0")
        assert [r.model_dump() for r in debts + repayments] == before


class TestSummaries:
    """Tests for the period view of a run."""

    def _monthly(self, months):
        return [debt(f"D{m}", 10 * m, f"2025-{m:02d}-10") for m in months]

    def test_default_limit_is_five(self, engine):
        """Test only the five most recent periods are returned."""
        result = engine.reconcile(self._monthly(range(1, 8)), [])
        assert [s.period_key for s in result.period_summaries] == [
            "2025-07", "2025-06", "2025-05", "2025-04", "2025-03",
        ]
        assert result.period_count == 7

    def test_explicit_limit(self, engine):
        """Test a caller-provided limit wins over settings."""
        result = engine.reconcile(self._monthly(range(1, 8)), [], summary_limit=2)
        assert len(result.period_summaries) == 2

    def test_limit_does_not_affect_totals(self, engine):
        """Test outstanding and lifetime totals cover every period."""
        result = engine.reconcile(self._monthly(range(1, 8)), [], summary_limit=1)
        assert result.total_outstanding == Decimal("280")
        assert result.lifetime_totals.net_debt == Decimal("280")

    def test_settings_limit(self, sink):
        """Test summary_limit from settings is the default."""
        engine = ReconciliationEngine(
            settings=ReconciliationSettings(summary_limit=3),
            audit_logger=AuditLogger(sink=sink),
        )
        result = engine.reconcile(self._monthly(range(1, 8)), [])
        assert len(result.period_summaries) == 3

    def test_current_key_spellings(self, engine):
        """Test MAR25 selects the 2025-03 period as current."""
        result = engine.reconcile(self._monthly(range(1, 5)), [], current_period_key="MAR25")
        assert result.current_period_outstanding == Decimal("30")
        assert result.prior_periods_outstanding == Decimal("70")

    def test_no_current_key_means_all_prior(self, engine):
        """Test without a current period everything is prior."""
        result = engine.reconcile(self._monthly(range(1, 3)), [])
        assert result.current_period_outstanding == Decimal("0")
        assert result.prior_periods_outstanding == Decimal("30")

    def test_unknown_period_labelled(self, engine):
        """Test debts without tag or date land in the labelled unknown period."""
        result = engine.reconcile([debt("A", 10, None)], [])
        summary = result.period_summaries[0]
        assert summary.period_key == "unknown"
        assert summary.label == "Debt"
        assert summary.cycle_range is None


class TestAuditTrail:
    """Tests for audit events emitted by a run."""

    def test_run_is_bracketed(self, engine, sink):
        """Test started and completed events share a correlation id."""
        result = engine.reconcile([debt("A", 10, "2025-01-01")], [])
        events = sink.get_events_by_correlation_id(result.correlation_id)
        types = [e.event_type for e in events]
        assert types[0] == AuditEventType.RECONCILIATION_STARTED
        assert types[-1] == AuditEventType.RECONCILIATION_COMPLETED
        assert events[0].entity_id == "p1"

    def test_clean_run_has_no_violations(self, engine, sink):
        """Test no invariant events on a normal run."""
        engine.reconcile([debt("A", 10, "2025-01-01")], [repayment("R", 4, "2025-01-02")])
        assert not any(
            e.event_type == AuditEventType.INVARIANT_VIOLATED for e in sink.events
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
