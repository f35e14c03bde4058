"""
Source Period Generation

Builds the shared calendar of SourcePeriods every other view hangs off.

DESIGN DECISION: Each date belongs to exactly one natural period per type:
- MONTHLY: first to last calendar day (id 2025M01)
- BI_MONTHLY: days 1-15 (2025BM01A) and 16 to month end (2025BM01B)
- WEEKLY: Sunday to Saturday (2025W01). A week is numbered in the year its
  Saturday falls in, so week 1 is always the week containing 1 January.

A requested range is covered by the natural periods that intersect it,
with the first and last clipped to the range. Clipped periods keep their
natural id and are flagged in metadata.
"""

import calendar
from datetime import date, timedelta
from typing import Union

import structlog

from reconciler.models.enums import PeriodType
from reconciler.models.period import PeriodMetadata, SourcePeriod

logger = structlog.get_logger(__name__)

SUNDAY = 6  # date.weekday() value
SATURDAY = 5


class CalendarError(ValueError):
    """Calendar inputs are missing or inconsistent."""
    pass


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _coerce_type(period_type: Union[PeriodType, str]) -> PeriodType:
    try:
        return PeriodType(period_type)
    except ValueError:
        raise CalendarError(f"Unknown period type: {period_type!r}")


def _week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() - SUNDAY) % 7)


def _first_saturday(year: int) -> date:
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(SATURDAY - jan1.weekday()) % 7)


def _monthly_period(day: date) -> SourcePeriod:
    return SourcePeriod(
        id=f"{day.year}M{day.month:02d}",
        period_type=PeriodType.MONTHLY,
        start_date=date(day.year, day.month, 1),
        end_date=date(day.year, day.month, days_in_month(day.year, day.month)),
        year=day.year,
        metadata=PeriodMetadata(month=day.month),
    )


def _bi_monthly_period(day: date) -> SourcePeriod:
    if day.day <= 15:
        half, start_day, end_day = 1, 1, 15
    else:
        half, start_day, end_day = 2, 16, days_in_month(day.year, day.month)
    return SourcePeriod(
        id=f"{day.year}BM{day.month:02d}{'A' if half == 1 else 'B'}",
        period_type=PeriodType.BI_MONTHLY,
        start_date=date(day.year, day.month, start_day),
        end_date=date(day.year, day.month, end_day),
        year=day.year,
        metadata=PeriodMetadata(month=day.month, bi_monthly_half=half),
    )


def _weekly_period(day: date) -> SourcePeriod:
    start = _week_start(day)
    end = start + timedelta(days=6)
    week_number = (end - _first_saturday(end.year)).days // 7 + 1
    return SourcePeriod(
        id=f"{end.year}W{week_number:02d}",
        period_type=PeriodType.WEEKLY,
        start_date=start,
        end_date=end,
        year=end.year,
        metadata=PeriodMetadata(month=start.month, week_number=week_number),
    )


_BUILDERS = {
    PeriodType.MONTHLY: _monthly_period,
    PeriodType.BI_MONTHLY: _bi_monthly_period,
    PeriodType.WEEKLY: _weekly_period,
}


def period_for_date(period_type: Union[PeriodType, str], day: date) -> SourcePeriod:
    """The natural (unclipped) period of ``period_type`` containing ``day``."""
    if day is None:
        raise CalendarError("A date is required to locate a period")
    return _BUILDERS[_coerce_type(period_type)](day)


def periods_for_date(day: date) -> dict[PeriodType, SourcePeriod]:
    """The monthly, bi-monthly and weekly periods containing ``day``."""
    return {period_type: period_for_date(period_type, day) for period_type in PeriodType}


def generate_periods(
    period_type: Union[PeriodType, str],
    start: date,
    end: date,
) -> list[SourcePeriod]:
    """
    Generate the periods of one type covering [start, end] exactly.

    Raises:
        CalendarError: if a bound is missing, start is after end, or the
            period type is unknown.
    """
    if start is None or end is None:
        raise CalendarError("Both start and end dates are required")
    if start > end:
        raise CalendarError(f"Start {start} is after end {end}")
    period_type = _coerce_type(period_type)
    build = _BUILDERS[period_type]

    periods = []
    cursor = start
    while cursor <= end:
        natural = build(cursor)
        clipped_start = max(natural.start_date, start)
        clipped_end = min(natural.end_date, end)
        if (clipped_start, clipped_end) != (natural.start_date, natural.end_date):
            natural = natural.model_copy(update={
                "start_date": clipped_start,
                "end_date": clipped_end,
                "metadata": natural.metadata.model_copy(update={"is_clipped": True}),
            })
        periods.append(natural)
        cursor = clipped_end + timedelta(days=1)

    logger.debug(
        "periods_generated",
        period_type=period_type.value,
        start=start.isoformat(),
        end=end.isoformat(),
        count=len(periods),
    )
    return periods


def generate_year(period_type: Union[PeriodType, str], year: int) -> list[SourcePeriod]:
    """All periods of one type for a calendar year, clipped to 1 Jan - 31 Dec."""
    return generate_periods(period_type, date(year, 1, 1), date(year, 12, 31))


def assert_contiguous(periods: list[SourcePeriod]) -> None:
    """
    Raise CalendarError if the periods (of one type) gap or overlap.
    """
    ordered = sorted(periods, key=lambda p: p.start_date)
    for previous, current in zip(ordered, ordered[1:]):
        if current.period_type != previous.period_type:
            raise CalendarError("Cannot check contiguity across period types")
        expected = previous.end_date + timedelta(days=1)
        if current.start_date > expected:
            raise CalendarError(f"Gap between {previous.id} and {current.id}")
        if current.start_date < expected:
            raise CalendarError(f"{previous.id} overlaps {current.id}")
