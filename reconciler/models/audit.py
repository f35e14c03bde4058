"""
Audit Models for the Period Reconciler

Every recompute, skipped reference and storage failure is recorded as an
audit event so a period's numbers can be traced back to the run that
produced them.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reconciliation runs
    RECONCILIATION_STARTED = "reconciliation_started"
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    RECONCILIATION_DEBOUNCED = "reconciliation_debounced"

    # Data problems
    VALIDATION_FAILED = "validation_failed"
    REFERENCE_MISSING = "reference_missing"

    # Writes
    SPLITS_REDISTRIBUTED = "splits_redistributed"
    PERIODS_WRITTEN = "periods_written"
    SUMMARY_RECOMPUTED = "summary_recomputed"
    STORAGE_WRITE_FAILED = "storage_write_failed"

    # System events
    SYSTEM_ERROR = "system_error"


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

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'obligation', 'transaction', 'summary')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

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

    error_code: Optional[str] = None
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
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.reconciliation_started("obligation", "bill_1", cid)
        event = AuditEventBuilder.reference_missing("transaction", "txn_9", cid)
    """

    @staticmethod
    def reconciliation_started(
        entity_type: str,
        entity_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_STARTED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Reconciliation started for {entity_type} {entity_id}",
        )

    @staticmethod
    def reconciliation_completed(
        entity_type: str,
        entity_id: str,
        periods_updated: int,
        error_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=(
                f"Reconciliation of {entity_type} {entity_id} updated "
                f"{periods_updated} periods with {error_count} errors"
            ),
            details={
                "periods_updated": periods_updated,
                "error_count": error_count,
            },
        )

    @staticmethod
    def reconciliation_debounced(
        key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_DEBOUNCED,
            severity=AuditSeverity.DEBUG,
            entity_type="debounce_key",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Recompute of {key} skipped inside debounce window",
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        entity_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Validation failed for {entity_type} {entity_id} with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def reference_missing(
        entity_type: str,
        entity_id: str,
        correlation_id: UUID,
        referenced_by: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFERENCE_MISSING,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Referenced {entity_type} {entity_id} not found; skipped",
            details={"referenced_by": referenced_by} if referenced_by else {},
        )

    @staticmethod
    def splits_redistributed(
        transaction_id: str,
        original_total: str,
        transaction_amount: str,
        split_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLITS_REDISTRIBUTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=(
                f"Splits totalling {original_total} redistributed to "
                f"{transaction_amount} across {split_count} splits"
            ),
            details={
                "original_total": original_total,
                "transaction_amount": transaction_amount,
                "split_count": split_count,
            },
        )

    @staticmethod
    def periods_written(
        obligation_id: str,
        period_ids: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIODS_WRITTEN,
            entity_type="obligation",
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"{len(period_ids)} obligation periods written in one batch",
            details={"period_ids": period_ids},
        )

    @staticmethod
    def summary_recomputed(
        summary_id: str,
        net_cash_flow: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_RECOMPUTED,
            entity_type="summary",
            entity_id=summary_id,
            correlation_id=correlation_id,
            description=f"Summary {summary_id} recomputed",
            details={"net_cash_flow": net_cash_flow},
        )

    @staticmethod
    def storage_write_failed(
        entity_type: str,
        entity_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage write failed for {entity_type} {entity_id}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
