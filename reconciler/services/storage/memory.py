"""
In-Memory Storage

Dictionary-backed implementations of every storage interface. Used by the
test-suite and by ``create_engine_components`` when no backend is supplied.

Records are copied on the way in and on the way out so callers can never
mutate stored state by holding on to a returned model.
"""

import asyncio
from datetime import date
from typing import Optional
from uuid import UUID

from reconciler.models.audit import AuditEvent
from reconciler.models.budget import BudgetPeriod
from reconciler.models.enums import PeriodType
from reconciler.models.obligation import Obligation, ObligationPeriod
from reconciler.models.period import SourcePeriod
from reconciler.models.summary import PeriodSummary
from reconciler.models.transaction import Split, Transaction
from reconciler.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ObligationStorageInterface,
    PeriodRecord,
    PeriodStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


def _overlaps(period: SourcePeriod, date_from: Optional[date], date_to: Optional[date]) -> bool:
    if date_from and period.end_date < date_from:
        return False
    if date_to and period.start_date > date_to:
        return False
    return True


class InMemoryPeriodStorage(PeriodStorageInterface):
    """Source periods, obligation/budget period views and summaries."""

    def __init__(self):
        self._source_periods: dict[str, SourcePeriod] = {}
        self._obligation_periods: dict[str, ObligationPeriod] = {}
        self._budget_periods: dict[str, BudgetPeriod] = {}
        self._summaries: dict[str, PeriodSummary] = {}
        self._lock = asyncio.Lock()
        self.batch_count = 0

    async def get_source_period(self, period_id: str) -> Optional[SourcePeriod]:
        return self._source_periods.get(period_id)

    async def list_source_periods(
        self,
        period_type: Optional[PeriodType] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[SourcePeriod]:
        periods = [
            p for p in self._source_periods.values()
            if (period_type is None or p.period_type == period_type)
            and _overlaps(p, date_from, date_to)
        ]
        return sorted(periods, key=lambda p: (p.start_date, p.period_type.value))

    async def save_source_periods(self, periods: list[SourcePeriod]) -> int:
        async with self._lock:
            for period in periods:
                self._source_periods[period.id] = period
        return len(periods)

    async def get_obligation_period(self, period_id: str) -> Optional[ObligationPeriod]:
        period = self._obligation_periods.get(period_id)
        return period.model_copy(deep=True) if period else None

    async def list_obligation_periods(
        self,
        owner_id: str,
        period_type: Optional[PeriodType] = None,
        source_period_id: Optional[str] = None,
    ) -> list[ObligationPeriod]:
        periods = [
            p.model_copy(deep=True) for p in self._obligation_periods.values()
            if p.owner_id == owner_id
            and (period_type is None or p.period_type == period_type)
            and (source_period_id is None or p.source_period_id == source_period_id)
        ]
        return sorted(periods, key=lambda p: p.id)

    async def list_periods_for_obligation(self, obligation_id: str) -> list[ObligationPeriod]:
        periods = [
            p.model_copy(deep=True) for p in self._obligation_periods.values()
            if p.obligation_id == obligation_id
        ]
        return sorted(periods, key=lambda p: p.id)

    async def list_budget_periods(
        self,
        owner_id: str,
        source_period_id: Optional[str] = None,
    ) -> list[BudgetPeriod]:
        periods = [
            p.model_copy(deep=True) for p in self._budget_periods.values()
            if p.owner_id == owner_id
            and (source_period_id is None or p.source_period_id == source_period_id)
        ]
        return sorted(periods, key=lambda p: p.id)

    async def save_obligation_period(self, period: ObligationPeriod) -> bool:
        async with self._lock:
            self._obligation_periods[period.id] = period.model_copy(deep=True)
        return True

    async def batch_write(self, periods: list[PeriodRecord]) -> int:
        ids = [p.id for p in periods]
        if len(ids) != len(set(ids)):
            raise DuplicateError("Batch contains the same period more than once")

        async with self._lock:
            staged_obligations = dict(self._obligation_periods)
            staged_budgets = dict(self._budget_periods)
            for period in periods:
                if isinstance(period, ObligationPeriod):
                    staged_obligations[period.id] = period.model_copy(deep=True)
                elif isinstance(period, BudgetPeriod):
                    staged_budgets[period.id] = period.model_copy(deep=True)
                else:
                    raise StorageError(f"Unsupported record in batch: {type(period).__name__}")
            self._obligation_periods = staged_obligations
            self._budget_periods = staged_budgets
            self.batch_count += 1
        return len(periods)

    async def get_summary(self, summary_id: str) -> Optional[PeriodSummary]:
        summary = self._summaries.get(summary_id)
        return summary.model_copy(deep=True) if summary else None

    async def save_summary(self, summary: PeriodSummary) -> bool:
        async with self._lock:
            self._summaries[summary.id] = summary.model_copy(deep=True)
        return True


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions keyed by id."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {}
        for transaction in transactions or []:
            self.add(transaction)

    def add(self, transaction: Transaction) -> None:
        self._transactions[transaction.id] = transaction.model_copy(deep=True)

    def remove(self, transaction_id: str) -> None:
        self._transactions.pop(transaction_id, None)

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def list_transactions(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        transactions = [
            t.model_copy(deep=True) for t in self._transactions.values()
            if t.owner_id == owner_id
            and (date_from is None or t.transaction_date >= date_from)
            and (date_to is None or t.transaction_date <= date_to)
        ]
        return sorted(transactions, key=lambda t: (t.transaction_date, t.id))

    async def update_splits(self, transaction_id: str, splits: list[Split]) -> bool:
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        self._transactions[transaction_id] = transaction.model_copy(
            update={"splits": [s.model_copy() for s in splits]}
        )
        return True


class InMemoryObligationStorage(ObligationStorageInterface):
    """Obligation blueprints keyed by id."""

    def __init__(self, obligations: Optional[list[Obligation]] = None):
        self._obligations: dict[str, Obligation] = {}
        for obligation in obligations or []:
            self.add(obligation)

    def add(self, obligation: Obligation) -> None:
        self._obligations[obligation.id] = obligation.model_copy(deep=True)

    def remove(self, obligation_id: str) -> None:
        self._obligations.pop(obligation_id, None)

    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        obligation = self._obligations.get(obligation_id)
        return obligation.model_copy(deep=True) if obligation else None

    async def list_obligations(self, owner_id: str, active_only: bool = True) -> list[Obligation]:
        obligations = [
            o.model_copy(deep=True) for o in self._obligations.values()
            if o.owner_id == owner_id and (o.is_active or not active_only)
        ]
        return sorted(obligations, key=lambda o: o.id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
