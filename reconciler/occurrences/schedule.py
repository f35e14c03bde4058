"""
Occurrence schedule.

Projects an obligation's frequency onto a period to find the due dates that
fall inside it. Dates are always computed as ``anchor + n * step`` from the
obligation's anchor date, so month-end anchors never drift (31 Jan, 28 Feb,
31 Mar rather than 31 Jan, 28 Feb, 28 Mar).
"""

from datetime import date, timedelta

import structlog
from dateutil.relativedelta import relativedelta

from reconciler.models.enums import Frequency
from reconciler.models.obligation import Obligation, ObligationPeriod, Occurrence
from reconciler.models.period import SourcePeriod

logger = structlog.get_logger(__name__)

FREQUENCY_STEPS = {
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.BIWEEKLY: relativedelta(weeks=2),
    Frequency.SEMI_MONTHLY: relativedelta(days=15),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.ANNUALLY: relativedelta(years=1),
}


def adjust_for_weekend(day: date) -> date:
    """Move Saturday and Sunday due dates to the following Monday."""
    if day.weekday() == 5:
        return day + timedelta(days=2)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


def _step_for(frequency: Frequency) -> relativedelta:
    step = FREQUENCY_STEPS.get(frequency)
    if step is None:
        logger.warning("unknown_frequency_defaulting_to_monthly", frequency=frequency.value)
        step = FREQUENCY_STEPS[Frequency.MONTHLY]
    return step


def calculate_occurrence_dates(
    anchor: date,
    frequency: Frequency,
    start: date,
    end: date,
) -> list[date]:
    """Every ``anchor + n * step`` (n may be negative) inside [start, end]."""
    if anchor is None or end < start:
        return []
    step = _step_for(frequency)

    n = 0
    while anchor + step * n > start:
        n -= 1
    while anchor + step * n < start:
        n += 1

    dates = []
    current = anchor + step * n
    while current <= end:
        dates.append(current)
        n += 1
        current = anchor + step * n
    return dates


def _scheduled_occurrences(
    obligation: Obligation,
    obligation_period_id: str,
    start: date,
    end: date,
) -> list[Occurrence]:
    due_dates = calculate_occurrence_dates(obligation.anchor_date, obligation.frequency, start, end)
    return [
        Occurrence(
            id=f"{obligation_period_id}_occ_{index}",
            index=index,
            due_date=due_date,
            draw_date=adjust_for_weekend(due_date),
            amount_due=obligation.amount,
        )
        for index, due_date in enumerate(due_dates)
    ]


def calculate_occurrences_in_period(
    obligation: Obligation,
    period: SourcePeriod,
) -> list[Occurrence]:
    """Unpaid occurrences of ``obligation`` due inside ``period``."""
    return _scheduled_occurrences(
        obligation, f"{obligation.id}_{period.id}", period.start_date, period.end_date
    )


def build_obligation_period(
    obligation: Obligation,
    period: SourcePeriod,
) -> ObligationPeriod:
    """Fresh ObligationPeriod with the scheduled occurrences and no payments."""
    obligation_period = ObligationPeriod(
        id=f"{obligation.id}_{period.id}",
        obligation_id=obligation.id,
        owner_id=obligation.owner_id,
        group_id=obligation.group_id,
        kind=obligation.kind,
        source_period_id=period.id,
        period_type=period.period_type,
        period_start=period.start_date,
        period_end=period.end_date,
        description=obligation.description,
        merchant=obligation.merchant,
        category=obligation.category,
        frequency=obligation.frequency,
        amount_per_occurrence=obligation.amount,
        occurrences=calculate_occurrences_in_period(obligation, period),
        is_active=obligation.is_active,
    )
    return obligation_period.recalculate_totals()


def _details_of(obligation: Obligation) -> dict:
    return {
        "description": obligation.description,
        "merchant": obligation.merchant,
        "category": obligation.category,
        "is_active": obligation.is_active,
    }


def refresh_obligation_details(
    period: ObligationPeriod,
    obligation: Obligation,
) -> ObligationPeriod:
    """Copy of ``period`` with names and flags taken from the obligation; schedule untouched."""
    return period.model_copy(update=_details_of(obligation), deep=True)


def reschedule_obligation_period(
    period: ObligationPeriod,
    obligation: Obligation,
) -> ObligationPeriod:
    """
    Copy of a stored ``period`` re-projected from the obligation as it is now.

    Occurrences are rebuilt over the period's own dates at the current
    amount and frequency, with payment data cleared. Identity and ownership
    are left alone so reference checks still see what was stored.
    """
    update = _details_of(obligation)
    update.update({
        "frequency": obligation.frequency,
        "amount_per_occurrence": obligation.amount,
        "occurrences": _scheduled_occurrences(
            obligation, period.id, period.period_start, period.period_end
        ),
    })
    rescheduled = period.model_copy(update=update, deep=True)
    return rescheduled.recalculate_totals()
