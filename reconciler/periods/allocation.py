"""
Budget allocation across period types.

A budget is defined for one period type but is viewed through all three.
When the types differ, the allocation is pro-rated day by day using the
daily rate of the budget's own period that each day falls in.
"""

from datetime import date, timedelta
from decimal import Decimal

from reconciler.models.budget import Budget, BudgetPeriod
from reconciler.models.enums import PeriodType
from reconciler.models.money import to_money
from reconciler.models.period import SourcePeriod
from reconciler.periods.generator import days_in_month


def daily_rate(amount: Decimal, budget_period_type: PeriodType, day: date) -> Decimal:
    """Unrounded share of ``amount`` that falls on ``day``."""
    if budget_period_type == PeriodType.WEEKLY:
        return amount / 7
    month_days = days_in_month(day.year, day.month)
    if budget_period_type == PeriodType.MONTHLY:
        return amount / month_days
    # Bi-monthly: the second half is whatever is left after day 15
    half_days = 15 if day.day <= 15 else month_days - 15
    return amount / half_days


def calculate_period_allocated_amount(
    amount: Decimal,
    budget_period_type: PeriodType,
    target: SourcePeriod,
) -> Decimal:
    """Allocation of a budget of ``amount`` per ``budget_period_type`` to ``target``."""
    amount = Decimal(amount)
    if budget_period_type == target.period_type and not target.metadata.is_clipped:
        return to_money(amount)

    total = Decimal("0")
    day = target.start_date
    while day <= target.end_date:
        total += daily_rate(amount, budget_period_type, day)
        day += timedelta(days=1)
    return to_money(total)


def build_budget_period(budget: Budget, source_period: SourcePeriod) -> BudgetPeriod:
    """Fresh, unspent BudgetPeriod for ``budget`` inside ``source_period``."""
    return BudgetPeriod(
        id=f"{budget.id}_{source_period.id}",
        budget_id=budget.id,
        owner_id=budget.owner_id,
        group_id=budget.group_id,
        name=budget.name,
        source_period_id=source_period.id,
        period_type=source_period.period_type,
        period_start=source_period.start_date,
        period_end=source_period.end_date,
        allocated_amount=calculate_period_allocated_amount(
            budget.amount, budget.period_type, source_period
        ),
    )
