"""
Occurrence Matcher

Rebuilds an obligation period's payment state from its transactions.

DESIGN DECISION: Matching is rebuilt from scratch on every call. All
occurrences are reset to unpaid, then the in-period transactions are
replayed in (date, id) order:
- A period with one occurrence: the first transaction pays it.
- A period with several: each transaction pays the nearest unpaid
  occurrence by due-date distance; ties go to the earlier occurrence.
- Transactions with no unpaid occurrence left are recorded as unmatched.

Because the replay order depends only on the inputs and nothing reads the
clock except status (which takes an explicit as-of date), running the
matcher twice on the same inputs yields identical periods.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.enums import MatchedBy
from reconciler.models.obligation import Obligation, ObligationPeriod, Occurrence
from reconciler.models.transaction import Transaction
from reconciler.occurrences.classifier import classify
from reconciler.status.calculator import derive_status
from reconciler.validation.validator import ReconciliationValidator

logger = structlog.get_logger(__name__)


def find_matching_occurrence_index(
    transaction_date: date,
    occurrences: list[Occurrence],
    tolerance_days: Optional[int] = None,
    unpaid_only: bool = True,
) -> Optional[int]:
    """
    Position in ``occurrences`` of the occurrence closest to ``transaction_date``.

    Ties go to the earliest position. Returns None when there is no
    candidate, or when the closest one is further than ``tolerance_days``.
    """
    best_position = None
    best_distance = None
    for position, occurrence in enumerate(occurrences):
        if unpaid_only and occurrence.is_paid:
            continue
        distance = abs((transaction_date - occurrence.due_date).days)
        if best_distance is None or distance < best_distance:
            best_position, best_distance = position, distance

    if best_position is None:
        return None
    if tolerance_days is not None and best_distance > tolerance_days:
        return None
    return best_position


def _transactions_in_period(
    period: ObligationPeriod,
    obligation: Obligation,
    transactions: Iterable[Transaction],
) -> list[Transaction]:
    seen = set()
    selected = []
    for transaction in transactions:
        if transaction.id in seen:
            continue
        seen.add(transaction.id)
        if transaction.owner_id != obligation.owner_id:
            logger.warning(
                "transaction_owner_mismatch",
                transaction_id=transaction.id,
                obligation_id=obligation.id,
            )
            continue
        if period.period_start <= transaction.transaction_date <= period.period_end:
            selected.append(transaction)
    return sorted(selected, key=lambda t: (t.transaction_date, t.id))


def _payment_amount(transaction: Transaction, obligation_id: str) -> tuple[Decimal, Optional[str], MatchedBy]:
    """Absolute amount paid toward the obligation, the split used, and who linked it."""
    split = transaction.split_for_obligation(obligation_id)
    if split is None:
        return abs(transaction.amount), None, MatchedBy.SYSTEM
    return abs(split.amount), split.split_id, split.matched_by or MatchedBy.SYSTEM


def reconcile_occurrences(
    period: ObligationPeriod,
    obligation: Obligation,
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> ObligationPeriod:
    """
    Return a copy of ``period`` with occurrences, totals and status rebuilt.

    Raises:
        ReconciliationValidationError: if the period does not belong to the
            obligation or its occurrences are malformed.
    """
    settings = settings or get_engine_settings()
    ReconciliationValidator(settings).require_valid_period(period, obligation)

    occurrences = [o.reset() for o in sorted(period.occurrences, key=lambda o: o.index)]
    unmatched = []

    for transaction in _transactions_in_period(period, obligation, transactions):
        if len(occurrences) == 1:
            position = None if occurrences[0].is_paid else 0
        else:
            position = find_matching_occurrence_index(transaction.transaction_date, occurrences)

        if position is None:
            unmatched.append(transaction.id)
            continue

        amount, split_id, matched_by = _payment_amount(transaction, obligation.id)
        occurrence = occurrences[position]
        occurrences[position] = occurrence.model_copy(update={
            "is_paid": True,
            "transaction_id": transaction.id,
            "split_id": split_id,
            "amount_paid": amount,
            "payment_date": transaction.transaction_date,
            "payment_type": classify(transaction, occurrence, actual_amount=amount, settings=settings),
            "is_auto_matched": matched_by == MatchedBy.SYSTEM,
            "matched_by": matched_by,
        })

    reconciled = period.model_copy(
        update={"occurrences": occurrences, "unmatched_transaction_ids": unmatched},
        deep=True,
    )
    reconciled.recalculate_totals()
    reconciled.status = derive_status(reconciled, as_of=as_of, settings=settings)

    logger.debug(
        "occurrences_reconciled",
        period_id=period.id,
        occurrences=reconciled.occurrences_in_period,
        paid=reconciled.occurrences_paid,
        unmatched=len(unmatched),
        status=reconciled.status.value,
    )
    return reconciled
