"""
Audit Logger

DESIGN DECISION: Every reconciliation run is logged. This provides:
1. Traceability from a period's numbers back to the run that wrote them
2. A record of references that were skipped instead of failing the batch
3. Debugging capability for split repairs

The audit logger:
- Is async so it can sit on the same path as storage writes
- Gracefully handles failures (a broken audit store never fails a recompute)
- Supports correlation IDs to tie together the events of one run
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from reconciler.config import get_settings
from reconciler.models.audit import AuditEvent, AuditEventBuilder
from reconciler.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """Route structlog through stdlib logging with JSON output."""
    level = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("reconciler.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Never let the audit trail break a recompute
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_reconciliation_started(
        self,
        entity_type: str,
        entity_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_started(
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_reconciliation_completed(
        self,
        entity_type: str,
        entity_id: str,
        periods_updated: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_completed(
            entity_type=entity_type,
            entity_id=entity_id,
            periods_updated=periods_updated,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_debounced(self, key: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.reconciliation_debounced(key, correlation_id))

    async def log_validation_failed(
        self,
        entity_type: str,
        entity_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_reference_missing(
        self,
        entity_type: str,
        entity_id: str,
        correlation_id: UUID,
        referenced_by: Optional[str] = None,
    ) -> None:
        """Log a missing record that was skipped."""
        await self.log(AuditEventBuilder.reference_missing(
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            referenced_by=referenced_by,
        ))

    async def log_splits_redistributed(
        self,
        transaction_id: str,
        original_total: str,
        transaction_amount: str,
        split_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.splits_redistributed(
            transaction_id=transaction_id,
            original_total=original_total,
            transaction_amount=transaction_amount,
            split_count=split_count,
            correlation_id=correlation_id,
        ))

    async def log_periods_written(
        self,
        obligation_id: str,
        period_ids: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.periods_written(
            obligation_id=obligation_id,
            period_ids=period_ids,
            correlation_id=correlation_id,
        ))

    async def log_summary_recomputed(
        self,
        summary_id: str,
        net_cash_flow: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_recomputed(
            summary_id=summary_id,
            net_cash_flow=net_cash_flow,
            correlation_id=correlation_id,
        ))

    async def log_storage_write_failed(
        self,
        entity_type: str,
        entity_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_write_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a reconciliation run and pass it through
    every step of that run.
    """
    return uuid4()
