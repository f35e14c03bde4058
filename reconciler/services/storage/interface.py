"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the reconciliation logic decoupled from any database
2. Use in-memory storage for testing
3. Add caching layers transparently

The interface is intentionally small - just the reads and writes the
reconciliation flow needs. Implementations must make ``batch_write``
atomic: either every period in the batch is stored or none is.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, Union
from uuid import UUID

from reconciler.models.audit import AuditEvent
from reconciler.models.budget import BudgetPeriod
from reconciler.models.enums import PeriodType
from reconciler.models.obligation import Obligation, ObligationPeriod
from reconciler.models.period import SourcePeriod
from reconciler.models.summary import PeriodSummary
from reconciler.models.transaction import Split, Transaction

PeriodRecord = Union[ObligationPeriod, BudgetPeriod]


class PeriodStorageInterface(ABC):
    """
    Abstract interface for period views and summaries.
    """

    @abstractmethod
    async def get_source_period(self, period_id: str) -> Optional[SourcePeriod]:
        """Return the source period, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_source_periods(
        self,
        period_type: Optional[PeriodType] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[SourcePeriod]:
        """
        List source periods, optionally of one type and overlapping a range.

        Returns:
            Periods ordered by start date
        """
        pass

    @abstractmethod
    async def save_source_periods(self, periods: list[SourcePeriod]) -> int:
        """Insert or replace source periods. Returns the number stored."""
        pass

    @abstractmethod
    async def get_obligation_period(self, period_id: str) -> Optional[ObligationPeriod]:
        pass

    @abstractmethod
    async def list_obligation_periods(
        self,
        owner_id: str,
        period_type: Optional[PeriodType] = None,
        source_period_id: Optional[str] = None,
    ) -> list[ObligationPeriod]:
        """
        List an owner's obligation periods.

        Args:
            owner_id: Owner (user) whose periods to list
            period_type: Filter by period type
            source_period_id: Filter by source period

        Returns:
            Matching periods ordered by id
        """
        pass

    @abstractmethod
    async def list_periods_for_obligation(self, obligation_id: str) -> list[ObligationPeriod]:
        """All period views (every type) of one obligation."""
        pass

    @abstractmethod
    async def list_budget_periods(
        self,
        owner_id: str,
        source_period_id: Optional[str] = None,
    ) -> list[BudgetPeriod]:
        pass

    @abstractmethod
    async def save_obligation_period(self, period: ObligationPeriod) -> bool:
        """
        Insert or replace a single obligation period.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def batch_write(self, periods: list[PeriodRecord]) -> int:
        """
        Atomically insert or replace a batch of period views.

        Returns:
            Number of periods written

        Raises:
            StorageUnavailableError: If the backend is temporarily unavailable
            StorageError: If the batch was rejected (nothing is written)
        """
        pass

    @abstractmethod
    async def get_summary(self, summary_id: str) -> Optional[PeriodSummary]:
        pass

    @abstractmethod
    async def save_summary(self, summary: PeriodSummary) -> bool:
        """Replace the stored summary with the same id."""
        pass


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.
    """

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        List an owner's transactions inside an inclusive date range.

        Returns:
            Transactions ordered by (date, id)
        """
        pass

    @abstractmethod
    async def update_splits(self, transaction_id: str, splits: list[Split]) -> bool:
        """
        Replace a transaction's splits.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass


class ObligationStorageInterface(ABC):
    """
    Abstract interface for obligation blueprints.
    """

    @abstractmethod
    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        pass

    @abstractmethod
    async def list_obligations(self, owner_id: str, active_only: bool = True) -> list[Obligation]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one reconciliation run, in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageUnavailableError(StorageError):
    """Backend temporarily unavailable; the operation may be retried."""
    pass
