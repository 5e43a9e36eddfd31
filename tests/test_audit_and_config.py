"""Tests for the audit logger and settings."""

from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from moneyflow.audit import AuditLogger, create_correlation_id
from moneyflow.config import (
    ReconciliationSettings,
    get_settings,
    validate_all_settings,
)
from moneyflow.models.audit import AuditEventBuilder
from moneyflow.services.storage import InMemoryAuditSink


class FailingSink(InMemoryAuditSink):
    def append_event(self, event):
        raise RuntimeError("disk full")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_without_sink(self):
        """Test local-only logging reports success."""
        event = AuditEventBuilder.input_rejected("debts must be a list", uuid4())
        assert AuditLogger().log(event) is True

    def test_sink_receives_events(self):
        """Test events are persisted to the sink."""
        sink = InMemoryAuditSink()
        correlation_id = create_correlation_id()
        event = AuditEventBuilder.person_reconciled(
            person_id="p1",
            current_period_outstanding=Decimal("10"),
            prior_periods_outstanding=Decimal("5"),
            correlation_id=correlation_id,
        )
        assert AuditLogger(sink=sink).log(event) is True
        assert sink.get_events_by_correlation_id(correlation_id) == [event]

    def test_sink_failure_is_not_raised(self):
        """Test a broken sink returns False instead of raising."""
        event = AuditEventBuilder.source_read_failed("p1", "timeout")
        assert AuditLogger(sink=FailingSink()).log(event) is False

    def test_correlation_ids_are_unique(self):
        """Test each run gets its own correlation id."""
        assert create_correlation_id() != create_correlation_id()


class TestSettings:
    """Tests for reconciliation settings."""

    def test_defaults(self, monkeypatch):
        """Test the documented defaults."""
        for name in ("EPSILON", "SUMMARY_LIMIT", "UNKNOWN_PERIOD_KEY"):
            monkeypatch.delenv(f"MONEYFLOW_RECON_{name}", raising=False)
        settings = ReconciliationSettings()
        assert settings.epsilon == Decimal("0.01")
        assert settings.summary_limit == 5
        assert settings.unknown_period_key == "unknown"
        assert settings.unknown_period_label == "Debt"

    def test_environment_override(self, monkeypatch):
        """Test values are read from MONEYFLOW_RECON_ variables."""
        monkeypatch.setenv("MONEYFLOW_RECON_SUMMARY_LIMIT", "12")
        monkeypatch.setenv("MONEYFLOW_RECON_EPSILON", "0.001")
        settings = ReconciliationSettings()
        assert settings.summary_limit == 12
        assert settings.epsilon == Decimal("0.001")

    @pytest.mark.parametrize("field,value", [
        ("epsilon", Decimal("0")),
        ("summary_limit", 0),
        ("unknown_period_key", "   "),
    ])
    def test_invalid_values_rejected(self, field, value):
        """Test out-of-range settings fail validation."""
        with pytest.raises(ValidationError):
            ReconciliationSettings(**{field: value})

    def test_validate_all_settings(self):
        """Test the startup check reports every section."""
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["reconciliation"] is True
        assert results["app"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
