"""Calendar periods: generation and budget allocation."""

from reconciler.periods.allocation import (
    build_budget_period,
    calculate_period_allocated_amount,
    daily_rate,
)
from reconciler.periods.generator import (
    CalendarError,
    assert_contiguous,
    days_in_month,
    generate_periods,
    generate_year,
    period_for_date,
    periods_for_date,
)

__all__ = [
    "CalendarError",
    "assert_contiguous",
    "build_budget_period",
    "calculate_period_allocated_amount",
    "daily_rate",
    "days_in_month",
    "generate_periods",
    "generate_year",
    "period_for_date",
    "periods_for_date",
]
