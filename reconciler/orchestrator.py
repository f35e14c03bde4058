"""
Main Orchestrator for the Period Reconciler

This module ties the pure calculation modules to storage and defines the
flows that keep period views current:
1. Reconcile (owner or obligation -> match -> batch write -> summaries)
2. Change events (obligation / period / transaction triggers -> reconcile)
3. Split repair (transaction splits -> redistribute -> write back)
4. Period generation (source periods, obligation and budget period views)

DESIGN DECISION: Every trigger funnels into the same idempotent recompute.
There is no per-trigger partial update: a changed transaction recomputes
every obligation it touches, and each obligation recomputes all of its
period views (monthly, bi-monthly, weekly) in one atomic batch so the three
views never disagree. Summaries are recomputed afterwards from what was
stored, never from in-flight state.

Error policy:
- Validation failure of one period -> that period is skipped, labeled in
  ``errors``, and the rest of the batch continues
- Missing reference (transaction, obligation, source period) -> audited and
  skipped
- Transient storage failure -> retried with tenacity, then recorded
- Misconfiguration -> raised
"""

import time
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reconciler.audit import AuditLogger, create_correlation_id
from reconciler.config import EngineSettings, StorageSettings, get_settings
from reconciler.models.budget import Budget, BudgetPeriod
from reconciler.models.enums import ChangeEntity, ChangeKind, MatchedBy, PeriodType
from reconciler.models.obligation import Obligation, ObligationPeriod
from reconciler.models.summary import Owner, PeriodSummary
from reconciler.models.transaction import Transaction
from reconciler.occurrences import (
    build_obligation_period,
    find_matching_occurrence_index,
    reconcile_occurrences,
    refresh_obligation_details,
    reschedule_obligation_period,
)
from reconciler.periods import (
    build_budget_period,
    generate_periods,
    period_for_date,
    periods_for_date,
)
from reconciler.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryObligationStorage,
    InMemoryPeriodStorage,
    InMemoryTransactionStorage,
    ObligationStorageInterface,
    PeriodRecord,
    PeriodStorageInterface,
    StorageError,
    StorageUnavailableError,
    TransactionStorageInterface,
)
from reconciler.splits import validate_splits
from reconciler.summaries import aggregate_summary, calculate_budget_spent
from reconciler.validation import ReconciliationValidationError, ReconciliationValidator

logger = structlog.get_logger(__name__)


# =============================================================================
# FLOW MODELS
# =============================================================================

class ChangeEvent(BaseModel):
    """
    A create, update or delete of a record that feeds reconciliation.

    ``before`` and ``after`` are the record's stored fields, when known.
    """

    entity_type: ChangeEntity
    change: ChangeKind
    entity_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None


class ReconcileOutcome(BaseModel):
    """What one reconciliation run did, including every per-item failure."""

    correlation_id: UUID
    scope: str
    skipped: bool = Field(default=False, description="True when debounced")
    obligations_processed: int = 0
    periods_updated: int = 0
    transactions_processed: int = 0
    transactions_matched: int = 0
    splits_repaired: int = 0
    summaries_recomputed: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def merge(self, other: "ReconcileOutcome") -> None:
        self.obligations_processed += other.obligations_processed
        self.periods_updated += other.periods_updated
        self.transactions_processed += other.transactions_processed
        self.transactions_matched += other.transactions_matched
        self.splits_repaired += other.splits_repaired
        self.summaries_recomputed += other.summaries_recomputed
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


class Debouncer:
    """
    Skips a key that already ran inside the window.

    An optimisation only: correctness never depends on it, because every
    recompute is idempotent.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._last_run: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_run)

    def should_run(self, key: str) -> bool:
        if self._window <= 0:
            return True
        now = self._clock()
        # Only keys still inside the window are kept.
        self._last_run = {
            k: last for k, last in self._last_run.items() if now - last < self._window
        }
        if key in self._last_run:
            return False
        self._last_run[key] = now
        return True


def _obligation_ids_from_payload(payload: Optional[dict[str, Any]]) -> set[str]:
    if not payload:
        return set()
    ids = set()
    if payload.get("obligation_id"):
        ids.add(payload["obligation_id"])
    for split in payload.get("splits") or []:
        if split.get("obligation_id"):
            ids.add(split["obligation_id"])
    return ids


# =============================================================================
# RECONCILIATION FLOW
# =============================================================================

class ReconciliationFlow:
    """
    Orchestrates recomputation of period views and summaries.

    Flow for one obligation:
    1. Load the obligation and all its period views
    2. Resolve linked transactions (missing ones are skipped)
    3. Rebuild each period's occurrences with the matcher
    4. Write every view in one atomic batch (retried on transient errors)
    5. Recompute the summaries of every source period touched
    """

    def __init__(
        self,
        period_storage: PeriodStorageInterface,
        transaction_storage: TransactionStorageInterface,
        obligation_storage: ObligationStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        engine_settings: Optional[EngineSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        settings = get_settings()
        self._periods = period_storage
        self._transactions = transaction_storage
        self._obligations = obligation_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._engine = engine_settings or settings.engine
        self._storage_settings = storage_settings or settings.storage
        self._validator = ReconciliationValidator(self._engine)
        self._debouncer = Debouncer(self._engine.debounce_seconds, clock)
        self._today = today

    # -------------------------------------------------------------------------
    # Storage helpers
    # -------------------------------------------------------------------------

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._storage_settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._storage_settings.retry_wait_min_seconds,
                max=self._storage_settings.retry_wait_max_seconds,
            ),
            retry=retry_if_exception_type(StorageUnavailableError),
            reraise=True,
        )

    async def _commit_batch(self, periods: list[PeriodRecord]) -> int:
        async for attempt in self._retrying():
            with attempt:
                written = await self._periods.batch_write(periods)
        return written

    async def _store_summary(self, summary: PeriodSummary) -> bool:
        async for attempt in self._retrying():
            with attempt:
                saved = await self._periods.save_summary(summary)
        return saved

    async def _write_periods(
        self,
        entity_id: str,
        periods: list[PeriodRecord],
        outcome: ReconcileOutcome,
    ) -> bool:
        if not periods:
            return True
        try:
            outcome.periods_updated += await self._commit_batch(periods)
        except StorageError as e:
            outcome.errors.append(f"batch write for {entity_id} failed: {e}")
            await self._audit_logger.log_storage_write_failed(
                entity_type="period_batch",
                entity_id=entity_id,
                error_message=str(e),
                correlation_id=outcome.correlation_id,
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Obligations
    # -------------------------------------------------------------------------

    async def _resolve_transactions(
        self,
        obligation: Obligation,
        periods: list[ObligationPeriod],
        outcome: ReconcileOutcome,
    ) -> list[Transaction]:
        """Transactions listed on the obligation plus any split-linked to it."""
        resolved: dict[str, Transaction] = {}

        for transaction_id in obligation.transaction_ids:
            transaction = await self._transactions.get_transaction(transaction_id)
            if transaction is None:
                outcome.warnings.append(f"transaction {transaction_id}: not found, skipped")
                await self._audit_logger.log_reference_missing(
                    entity_type="transaction",
                    entity_id=transaction_id,
                    correlation_id=outcome.correlation_id,
                    referenced_by=obligation.id,
                )
                continue
            resolved[transaction.id] = transaction

        if periods:
            in_range = await self._transactions.list_transactions(
                obligation.owner_id,
                date_from=min(p.period_start for p in periods),
                date_to=max(p.period_end for p in periods),
            )
            for transaction in in_range:
                if obligation.id in transaction.obligation_ids():
                    resolved.setdefault(transaction.id, transaction)

        return sorted(resolved.values(), key=lambda t: (t.transaction_date, t.id))

    def _reconcile_view(
        self,
        period: ObligationPeriod,
        obligation: Obligation,
        transactions: list[Transaction],
        as_of: date,
    ) -> ObligationPeriod:
        """
        Reconcile one stored view against the obligation as it is now.

        A view left without any payment is re-projected at the obligation's
        current amount and frequency. A view holding payments keeps its
        schedule so payment history survives obligation edits.
        """
        kept = reconcile_occurrences(
            refresh_obligation_details(period, obligation),
            obligation,
            transactions,
            as_of=as_of,
            settings=self._engine,
        )
        if kept.occurrences_paid:
            return kept
        return reconcile_occurrences(
            reschedule_obligation_period(period, obligation),
            obligation,
            transactions,
            as_of=as_of,
            settings=self._engine,
        )

    async def _reconcile_loaded_obligation(
        self,
        obligation: Obligation,
        outcome: ReconcileOutcome,
        as_of: date,
    ) -> set[tuple[PeriodType, str]]:
        """Recompute and write every view of one obligation; return touched source periods."""
        periods = await self._periods.list_periods_for_obligation(obligation.id)
        transactions = await self._resolve_transactions(obligation, periods, outcome)
        outcome.obligations_processed += 1
        outcome.transactions_processed += len(transactions)

        updated = []
        for period in periods:
            try:
                reconciled = self._reconcile_view(period, obligation, transactions, as_of)
            except ReconciliationValidationError as e:
                outcome.errors.append(e.label)
                await self._audit_logger.log_validation_failed(
                    entity_type="obligation_period",
                    entity_id=period.id,
                    issues=[i.model_dump() for i in e.issues],
                    correlation_id=outcome.correlation_id,
                )
                continue
            updated.append(reconciled)

        # Each view type partitions the same transactions; count distinct ids once.
        outcome.transactions_matched += len(
            {tid for p in updated for tid in p.transaction_ids}
        )

        if await self._write_periods(obligation.id, updated, outcome) and updated:
            await self._audit_logger.log_periods_written(
                obligation_id=obligation.id,
                period_ids=[p.id for p in updated],
                correlation_id=outcome.correlation_id,
            )
        return {(p.period_type, p.source_period_id) for p in updated}

    async def reconcile_obligation(
        self,
        obligation_id: str,
        correlation_id: Optional[UUID] = None,
        as_of: Optional[date] = None,
        recompute_summaries: bool = True,
    ) -> ReconcileOutcome:
        """Recompute all period views of one obligation, then its owner's summaries."""
        outcome = ReconcileOutcome(
            correlation_id=correlation_id or create_correlation_id(),
            scope=f"obligation:{obligation_id}",
        )
        if not self._debouncer.should_run(outcome.scope):
            outcome.skipped = True
            await self._audit_logger.log_debounced(outcome.scope, outcome.correlation_id)
            return outcome

        as_of = as_of or self._today()
        obligation = await self._obligations.get_obligation(obligation_id)
        if obligation is None:
            outcome.errors.append(f"obligation {obligation_id}: not found")
            await self._audit_logger.log_reference_missing(
                entity_type="obligation",
                entity_id=obligation_id,
                correlation_id=outcome.correlation_id,
            )
            return outcome

        await self._audit_logger.log_reconciliation_started(
            "obligation", obligation_id, outcome.correlation_id
        )
        touched = await self._reconcile_loaded_obligation(obligation, outcome, as_of)
        if recompute_summaries:
            await self._recompute_summaries(obligation.owner_id, touched, outcome, as_of)

        await self._audit_logger.log_reconciliation_completed(
            entity_type="obligation",
            entity_id=obligation_id,
            periods_updated=outcome.periods_updated,
            error_count=len(outcome.errors),
            correlation_id=outcome.correlation_id,
        )
        return outcome

    # -------------------------------------------------------------------------
    # Owner-wide entry point
    # -------------------------------------------------------------------------

    async def reconcile(
        self,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
        as_of: Optional[date] = None,
    ) -> ReconcileOutcome:
        """
        Recompute everything one owner has: obligation periods, budget spend
        and summaries. Safe to call any number of times.
        """
        outcome = ReconcileOutcome(
            correlation_id=correlation_id or create_correlation_id(),
            scope=f"owner:{owner_id}",
        )
        if not self._debouncer.should_run(outcome.scope):
            outcome.skipped = True
            await self._audit_logger.log_debounced(outcome.scope, outcome.correlation_id)
            return outcome

        as_of = as_of or self._today()
        await self._audit_logger.log_reconciliation_started("owner", owner_id, outcome.correlation_id)

        touched: set[tuple[PeriodType, str]] = set()
        for obligation in await self._obligations.list_obligations(owner_id, active_only=False):
            touched |= await self._reconcile_loaded_obligation(obligation, outcome, as_of)

        touched |= await self._refresh_budget_periods(owner_id, outcome)

        # Views of deleted obligations included so their summaries are rebuilt without them.
        for period in await self._periods.list_obligation_periods(owner_id):
            touched.add((period.period_type, period.source_period_id))

        await self._recompute_summaries(owner_id, touched, outcome, as_of)
        await self._audit_logger.log_reconciliation_completed(
            entity_type="owner",
            entity_id=owner_id,
            periods_updated=outcome.periods_updated,
            error_count=len(outcome.errors),
            correlation_id=outcome.correlation_id,
        )
        return outcome

    # -------------------------------------------------------------------------
    # Budgets and summaries
    # -------------------------------------------------------------------------

    async def _refresh_budget_periods(
        self,
        owner_id: str,
        outcome: ReconcileOutcome,
        only_containing: Optional[date] = None,
    ) -> set[tuple[PeriodType, str]]:
        budget_periods = await self._periods.list_budget_periods(owner_id)
        if only_containing is not None:
            budget_periods = [
                p for p in budget_periods
                if p.period_start <= only_containing <= p.period_end
            ]
        if not budget_periods:
            return set()

        transactions = await self._transactions.list_transactions(
            owner_id,
            date_from=min(p.period_start for p in budget_periods),
            date_to=max(p.period_end for p in budget_periods),
        )
        refreshed = [
            p.model_copy(update={"total_spent": calculate_budget_spent(p, transactions)})
            for p in budget_periods
        ]
        await self._write_periods(f"budgets:{owner_id}", refreshed, outcome)
        return {(p.period_type, p.source_period_id) for p in refreshed}

    async def _live_obligation_periods(
        self,
        periods: list[ObligationPeriod],
        correlation_id: UUID,
        outcome: Optional[ReconcileOutcome] = None,
    ) -> list[ObligationPeriod]:
        """Drop views of deleted obligations, auditing each one."""
        existing = {}
        for obligation_id in sorted({p.obligation_id for p in periods}):
            existing[obligation_id] = await self._obligations.get_obligation(obligation_id) is not None

        live = []
        for period in periods:
            if existing[period.obligation_id]:
                live.append(period)
                continue
            logger.warning(
                "orphaned_period_omitted",
                period_id=period.id,
                obligation_id=period.obligation_id,
            )
            if outcome is not None:
                outcome.warnings.append(
                    f"obligation_period {period.id}: obligation {period.obligation_id} not found, omitted"
                )
            await self._audit_logger.log_reference_missing(
                entity_type="obligation",
                entity_id=period.obligation_id,
                correlation_id=correlation_id,
                referenced_by=period.id,
            )
        return live

    async def recompute_summary(
        self,
        owner_id: str,
        source_period_id: str,
        correlation_id: Optional[UUID] = None,
        as_of: Optional[date] = None,
        outcome: Optional[ReconcileOutcome] = None,
    ) -> Optional[PeriodSummary]:
        """
        Rebuild and store one summary; None if the source period is unknown.

        Views whose obligation no longer exists are audited and left out.
        """
        correlation_id = correlation_id or create_correlation_id()
        source_period = await self._periods.get_source_period(source_period_id)
        if source_period is None:
            await self._audit_logger.log_reference_missing(
                entity_type="source_period",
                entity_id=source_period_id,
                correlation_id=correlation_id,
                referenced_by=owner_id,
            )
            return None

        obligation_periods = await self._live_obligation_periods(
            await self._periods.list_obligation_periods(owner_id, source_period_id=source_period_id),
            correlation_id,
            outcome,
        )
        budget_periods = await self._periods.list_budget_periods(
            owner_id, source_period_id=source_period_id
        )
        summary = aggregate_summary(
            Owner(id=owner_id),
            source_period,
            [*obligation_periods, *budget_periods],
            as_of=as_of or self._today(),
            settings=self._engine,
        )
        summary.computed_at = datetime.utcnow()
        await self._store_summary(summary)
        await self._audit_logger.log_summary_recomputed(
            summary_id=summary.id,
            net_cash_flow=str(summary.net_cash_flow),
            correlation_id=correlation_id,
        )
        return summary

    async def _recompute_summaries(
        self,
        owner_id: str,
        touched: Iterable[tuple[PeriodType, str]],
        outcome: ReconcileOutcome,
        as_of: date,
    ) -> None:
        for _, source_period_id in sorted(touched, key=lambda k: (k[0].value, k[1])):
            try:
                summary = await self.recompute_summary(
                    owner_id, source_period_id, outcome.correlation_id, as_of, outcome
                )
            except StorageError as e:
                outcome.errors.append(f"summary {source_period_id} failed: {e}")
                await self._audit_logger.log_error(
                    error_type="summary_write_failed",
                    error_message=str(e),
                    details={"owner_id": owner_id, "source_period_id": source_period_id},
                    correlation_id=outcome.correlation_id,
                )
                continue
            if summary is None:
                outcome.errors.append(f"source period {source_period_id}: not found")
            else:
                outcome.summaries_recomputed += 1

    # -------------------------------------------------------------------------
    # Transactions and splits
    # -------------------------------------------------------------------------

    def _align_split_periods(self, transaction: Transaction) -> Transaction:
        """Point every split at the three source periods containing the transaction date."""
        views = periods_for_date(transaction.transaction_date)
        splits = [
            split.model_copy(update={
                "monthly_period_id": views[PeriodType.MONTHLY].id,
                "weekly_period_id": views[PeriodType.WEEKLY].id,
                "bi_monthly_period_id": views[PeriodType.BI_MONTHLY].id,
            })
            for split in transaction.splits
        ]
        return transaction.model_copy(update={"splits": splits})

    async def redistribute_transaction_splits(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
        outcome: Optional[ReconcileOutcome] = None,
    ) -> Optional[Transaction]:
        """
        Repair a transaction's splits and align them to source periods.

        Returns the stored transaction, or None if it does not exist. A
        transaction failing validation (e.g. repeated split ids) is returned
        untouched and the failure is audited.
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction = await self._transactions.get_transaction(transaction_id)
        if transaction is None:
            await self._audit_logger.log_reference_missing(
                entity_type="transaction",
                entity_id=transaction_id,
                correlation_id=correlation_id,
            )
            return None

        validation = self._validator.validate_transaction(transaction)
        if outcome is not None:
            outcome.warnings.extend(validation.warnings)
        if validation.has_errors:
            if outcome is not None:
                outcome.errors.append(validation.label)
            await self._audit_logger.log_validation_failed(
                entity_type="transaction",
                entity_id=transaction.id,
                issues=[i.model_dump() for i in validation.issues],
                correlation_id=correlation_id,
            )
            return transaction

        result = validate_splits(transaction.amount, transaction.splits, self._engine)
        if result.was_modified:
            if outcome is not None:
                outcome.splits_repaired += 1
            await self._audit_logger.log_splits_redistributed(
                transaction_id=transaction.id,
                original_total=str(result.original_total),
                transaction_amount=str(result.transaction_amount),
                split_count=len(result.redistributed_splits),
                correlation_id=correlation_id,
            )

        aligned = self._align_split_periods(
            transaction.model_copy(update={"splits": result.redistributed_splits})
        )
        if aligned.splits != transaction.splits:
            await self._transactions.update_splits(transaction.id, aligned.splits)
        return aligned

    async def assign_split_to_obligation(
        self,
        transaction_id: str,
        split_id: str,
        obligation_id: str,
        correlation_id: Optional[UUID] = None,
        as_of: Optional[date] = None,
    ) -> ReconcileOutcome:
        """
        Link a split to an obligation on a user's behalf, then reconcile.

        The split is marked as user-matched. A warning is recorded when no
        occurrence is due within the match tolerance of the transaction.
        """
        outcome = ReconcileOutcome(
            correlation_id=correlation_id or create_correlation_id(),
            scope=f"assign:{transaction_id}:{split_id}",
        )
        transaction = await self._transactions.get_transaction(transaction_id)
        obligation = await self._obligations.get_obligation(obligation_id)
        if transaction is None or obligation is None:
            missing = "transaction" if transaction is None else "obligation"
            missing_id = transaction_id if transaction is None else obligation_id
            outcome.errors.append(f"{missing} {missing_id}: not found")
            await self._audit_logger.log_reference_missing(
                entity_type=missing,
                entity_id=missing_id,
                correlation_id=outcome.correlation_id,
            )
            return outcome
        if transaction.owner_id != obligation.owner_id:
            outcome.errors.append(
                f"transaction {transaction_id}: owner does not match obligation {obligation_id}"
            )
            return outcome

        previous = set()
        splits = []
        for split in transaction.splits:
            if split.split_id == split_id:
                if split.obligation_id:
                    previous.add(split.obligation_id)
                split = split.model_copy(update={
                    "obligation_id": obligation_id,
                    "matched_by": MatchedBy.USER,
                })
            splits.append(split)
        if split_id not in {s.split_id for s in splits}:
            outcome.errors.append(f"split {split_id}: not found on transaction {transaction_id}")
            return outcome
        await self._transactions.update_splits(transaction_id, splits)

        containing = [
            p for p in await self._periods.list_periods_for_obligation(obligation_id)
            if p.period_start <= transaction.transaction_date <= p.period_end
        ]
        occurrences = [o for p in containing for o in p.occurrences]
        if find_matching_occurrence_index(
            transaction.transaction_date,
            occurrences,
            tolerance_days=self._engine.match_tolerance_days,
            unpaid_only=False,
        ) is None:
            outcome.warnings.append(
                f"no occurrence of {obligation_id} due within "
                f"{self._engine.match_tolerance_days} days of {transaction.transaction_date}"
            )

        for affected in sorted(previous | {obligation_id}):
            outcome.merge(await self.reconcile_obligation(
                affected, outcome.correlation_id, as_of=as_of
            ))
        return outcome

    # -------------------------------------------------------------------------
    # Change events
    # -------------------------------------------------------------------------

    async def _obligations_linking(self, owner_id: str, transaction_id: str) -> set[str]:
        return {
            o.id for o in await self._obligations.list_obligations(owner_id, active_only=False)
            if transaction_id in o.transaction_ids
        }

    async def handle_event(self, event: ChangeEvent) -> ReconcileOutcome:
        """
        Single entry point for record changes.

        Creates, updates and deletes all collapse into recomputes of the
        affected obligations (and, for transactions, budgets and summaries).
        """
        correlation_id = create_correlation_id()
        log = logger.bind(
            entity_type=event.entity_type.value,
            entity_id=event.entity_id,
            change=event.change.value,
        )
        log.info("change_event_received")

        if event.entity_type == ChangeEntity.OBLIGATION:
            if event.change == ChangeKind.DELETED:
                return await self.reconcile(event.owner_id, correlation_id)
            return await self.reconcile_obligation(event.entity_id, correlation_id)

        if event.entity_type == ChangeEntity.OBLIGATION_PERIOD:
            obligation_ids = sorted(
                _obligation_ids_from_payload(event.after) | _obligation_ids_from_payload(event.before)
            )
            if not obligation_ids:
                period = await self._periods.get_obligation_period(event.entity_id)
                obligation_ids = [period.obligation_id] if period else []
            outcome = ReconcileOutcome(correlation_id=correlation_id, scope=f"period:{event.entity_id}")
            if not obligation_ids:
                outcome.errors.append(f"obligation_period {event.entity_id}: no obligation reference")
            for obligation_id in obligation_ids:
                outcome.merge(await self.reconcile_obligation(obligation_id, correlation_id))
            return outcome

        return await self._handle_transaction_event(event, correlation_id)

    async def _handle_transaction_event(
        self,
        event: ChangeEvent,
        correlation_id: UUID,
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(correlation_id=correlation_id, scope=f"transaction:{event.entity_id}")
        affected = _obligation_ids_from_payload(event.before) | _obligation_ids_from_payload(event.after)
        affected |= await self._obligations_linking(event.owner_id, event.entity_id)

        # Dates before and after the change: a moved transaction touches both.
        dates: set[date] = set()
        for payload in (event.before, event.after):
            if payload and payload.get("transaction_date"):
                dates.add(date.fromisoformat(str(payload["transaction_date"])))

        if event.change != ChangeKind.DELETED:
            transaction = await self.redistribute_transaction_splits(
                event.entity_id, correlation_id, outcome
            )
            if transaction is None:
                outcome.errors.append(f"transaction {event.entity_id}: not found")
            else:
                dates.add(transaction.transaction_date)
                affected |= transaction.obligation_ids()

        for obligation_id in sorted(affected):
            outcome.merge(await self.reconcile_obligation(
                obligation_id, correlation_id, recompute_summaries=False
            ))

        touched: set[tuple[PeriodType, str]] = set()
        for day in sorted(dates):
            touched |= await self._refresh_budget_periods(
                event.owner_id, outcome, only_containing=day
            )
            touched |= {(t, p.id) for t, p in periods_for_date(day).items()}
        for obligation_id in affected:
            for period in await self._periods.list_periods_for_obligation(obligation_id):
                if not dates or any(period.period_start <= d <= period.period_end for d in dates):
                    touched.add((period.period_type, period.source_period_id))

        known = {p.id for p in await self._periods.list_source_periods()}
        await self._recompute_summaries(
            event.owner_id,
            {key for key in touched if key[1] in known},
            outcome,
            self._today(),
        )
        return outcome

    # -------------------------------------------------------------------------
    # Period generation
    # -------------------------------------------------------------------------

    async def ensure_source_periods(self, start: date, end: date) -> int:
        """
        Generate and store the periods of every type covering [start, end].

        The range is widened to whole natural periods so stored periods are
        never clipped and one id always means the same days.
        """
        periods = []
        for period_type in PeriodType:
            first = period_for_date(period_type, start)
            last = period_for_date(period_type, end)
            periods.extend(generate_periods(period_type, first.start_date, last.end_date))
        return await self._periods.save_source_periods(periods)

    async def generate_obligation_periods(
        self,
        obligation_id: str,
        start: date,
        end: date,
        correlation_id: Optional[UUID] = None,
    ) -> ReconcileOutcome:
        """
        Create an obligation's views for every stored source period in
        [start, end], then reconcile them.
        """
        outcome = ReconcileOutcome(
            correlation_id=correlation_id or create_correlation_id(),
            scope=f"generate:{obligation_id}",
        )
        obligation = await self._obligations.get_obligation(obligation_id)
        if obligation is None:
            outcome.errors.append(f"obligation {obligation_id}: not found")
            await self._audit_logger.log_reference_missing(
                entity_type="obligation",
                entity_id=obligation_id,
                correlation_id=outcome.correlation_id,
            )
            return outcome

        source_periods = await self._periods.list_source_periods(date_from=start, date_to=end)
        existing = {p.id for p in await self._periods.list_periods_for_obligation(obligation_id)}
        fresh = [
            build_obligation_period(obligation, source_period)
            for source_period in source_periods
            if f"{obligation.id}_{source_period.id}" not in existing
        ]
        if await self._write_periods(obligation_id, fresh, outcome):
            outcome.merge(await self.reconcile_obligation(obligation_id, outcome.correlation_id))
        return outcome

    async def generate_budget_periods(
        self,
        budget: Budget,
        start: date,
        end: date,
        correlation_id: Optional[UUID] = None,
    ) -> list[BudgetPeriod]:
        """Create a budget's pro-rated views for every stored source period in [start, end]."""
        outcome = ReconcileOutcome(
            correlation_id=correlation_id or create_correlation_id(),
            scope=f"budget:{budget.id}",
        )
        source_periods = await self._periods.list_source_periods(date_from=start, date_to=end)
        budget_periods = [build_budget_period(budget, p) for p in source_periods]
        await self._write_periods(budget.id, budget_periods, outcome)
        if outcome.errors:
            raise StorageError("; ".join(outcome.errors))
        return budget_periods


def create_engine_components(
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[ReconciliationFlow, InMemoryPeriodStorage, InMemoryTransactionStorage, InMemoryObligationStorage]:
    """
    Factory function wiring a ReconciliationFlow to in-memory storage.

    Args:
        audit_storage: Where audit events are persisted. Defaults to an
                      in-memory audit log.

    Returns:
        (flow, period_storage, transaction_storage, obligation_storage)
    """
    period_storage = InMemoryPeriodStorage()
    transaction_storage = InMemoryTransactionStorage()
    obligation_storage = InMemoryObligationStorage()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    flow = ReconciliationFlow(
        period_storage=period_storage,
        transaction_storage=transaction_storage,
        obligation_storage=obligation_storage,
        audit_logger=audit_logger,
    )
    return flow, period_storage, transaction_storage, obligation_storage
