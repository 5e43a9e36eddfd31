"""
Audit Models for Moneyflow

Every reconciliation run is logged for audit purposes.
This provides:
1. Traceability of which repayment paid which debt, and why
2. Visibility into operator hints that could not be honoured
3. Loud signals if a conservation check ever fails

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of a reconciliation run has its own event type.
    """
    # Reconciliation lifecycle
    RECONCILIATION_STARTED = "reconciliation_started"
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    INPUT_REJECTED = "input_rejected"

    # Allocation
    ALLOCATION_HINT_SKIPPED = "allocation_hint_skipped"
    TAGGED_REPAYMENT_UNMATCHED = "tagged_repayment_unmatched"

    # Integrity
    INVARIANT_VIOLATED = "invariant_violated"

    # People overview
    PERSON_RECONCILED = "person_reconciled"
    SOURCE_READ_FAILED = "source_read_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt', 'repayment', 'person')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every event of one reconciliation run"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.reconciliation_started(3, 2, correlation_id)
        event = AuditEventBuilder.hint_skipped("r1", "d9", "unknown_debt", correlation_id)
    """

    @staticmethod
    def reconciliation_started(
        debt_count: int,
        repayment_count: int,
        correlation_id: UUID,
        person_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_STARTED,
            entity_type="person" if person_id else None,
            entity_id=person_id,
            correlation_id=correlation_id,
            description=(
                f"Reconciling {debt_count} debts against {repayment_count} repayments"
            ),
            details={
                "debt_count": debt_count,
                "repayment_count": repayment_count,
            },
        )

    @staticmethod
    def input_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Reconciliation input rejected",
            error_message=reason,
        )

    @staticmethod
    def hint_skipped(
        repayment_id: str,
        target_debt_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_HINT_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="repayment",
            entity_id=repayment_id,
            correlation_id=correlation_id,
            description=f"Allocation hint to debt {target_debt_id} skipped: {reason}",
            details={
                "target_debt_id": target_debt_id,
                "reason": reason,
            },
        )

    @staticmethod
    def tagged_repayment_unmatched(
        repayment_id: str,
        period_tag: str,
        leftover: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAGGED_REPAYMENT_UNMATCHED,
            severity=AuditSeverity.WARNING,
            entity_type="repayment",
            entity_id=repayment_id,
            correlation_id=correlation_id,
            description=(
                f"Repayment tagged {period_tag} has {leftover} left with no "
                f"outstanding debt in that period"
            ),
            details={
                "period_tag": period_tag,
                "leftover": str(leftover),
            },
        )

    @staticmethod
    def reconciliation_completed(
        link_count: int,
        total_allocated: Decimal,
        total_outstanding: Decimal,
        unallocated_repayment: Decimal,
        correlation_id: UUID,
        person_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            entity_type="person" if person_id else None,
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Reconciliation produced {link_count} allocation links",
            details={
                "link_count": link_count,
                "total_allocated": str(total_allocated),
                "total_outstanding": str(total_outstanding),
                "unallocated_repayment": str(unallocated_repayment),
            },
        )

    @staticmethod
    def invariant_violated(
        invariant: str,
        message: str,
        correlation_id: UUID,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVARIANT_VIOLATED,
            severity=AuditSeverity.CRITICAL,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Invariant violated: {invariant}",
            error_message=message,
            details={
                "invariant": invariant,
            },
        )

    @staticmethod
    def person_reconciled(
        person_id: str,
        current_period_outstanding: Decimal,
        prior_periods_outstanding: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_RECONCILED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Debt overview built for person {person_id}",
            details={
                "current_period_outstanding": str(current_period_outstanding),
                "prior_periods_outstanding": str(prior_periods_outstanding),
            },
        )

    @staticmethod
    def source_read_failed(
        person_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_READ_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Could not read ledger records for person {person_id}",
            error_message=error_message,
        )
