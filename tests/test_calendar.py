"""
Tests for source period generation and budget allocation.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from reconciler.models import Budget, PeriodType
from reconciler.periods import (
    CalendarError,
    assert_contiguous,
    build_budget_period,
    calculate_period_allocated_amount,
    generate_periods,
    generate_year,
    period_for_date,
    periods_for_date,
)


class TestNaturalPeriods:
    """Tests for locating the period that contains a date."""

    def test_monthly_leap_february(self):
        period = period_for_date(PeriodType.MONTHLY, date(2024, 2, 10))
        assert period.id == "2024M02"
        assert period.start_date == date(2024, 2, 1)
        assert period.end_date == date(2024, 2, 29)
        assert period.metadata.month == 2

    def test_bi_monthly_halves(self):
        first = period_for_date(PeriodType.BI_MONTHLY, date(2025, 1, 15))
        second = period_for_date(PeriodType.BI_MONTHLY, date(2025, 1, 16))
        assert first.id == "2025BM01A"
        assert (first.start_date, first.end_date) == (date(2025, 1, 1), date(2025, 1, 15))
        assert second.id == "2025BM01B"
        assert (second.start_date, second.end_date) == (date(2025, 1, 16), date(2025, 1, 31))
        assert second.metadata.bi_monthly_half == 2

    @pytest.mark.parametrize("year,month,second_half_days", [
        (2025, 2, 13),
        (2024, 2, 14),
        (2025, 4, 15),
        (2025, 1, 16),
    ])
    def test_second_half_length(self, year, month, second_half_days):
        period = period_for_date(PeriodType.BI_MONTHLY, date(year, month, 20))
        assert period.day_count == second_half_days

    def test_weekly_runs_sunday_to_saturday(self):
        period = period_for_date(PeriodType.WEEKLY, date(2025, 1, 8))
        assert period.start_date.weekday() == 6
        assert period.end_date.weekday() == 5
        assert period.day_count == 7

    def test_week_one_contains_first_of_january(self):
        period = period_for_date(PeriodType.WEEKLY, date(2025, 1, 1))
        assert period.id == "2025W01"
        assert period.start_date == date(2024, 12, 29)
        assert period.end_date == date(2025, 1, 4)
        assert period.year == 2025

    def test_year_end_week_belongs_to_next_year(self):
        period = period_for_date(PeriodType.WEEKLY, date(2025, 12, 31))
        assert period.id == "2026W01"

    def test_fifty_three_week_year(self):
        period = period_for_date(PeriodType.WEEKLY, date(2022, 12, 31))
        assert period.id == "2022W53"
        assert period.metadata.week_number == 53

    def test_periods_for_date_returns_all_types(self):
        views = periods_for_date(date(2025, 1, 10))
        assert views[PeriodType.MONTHLY].id == "2025M01"
        assert views[PeriodType.BI_MONTHLY].id == "2025BM01A"
        assert views[PeriodType.WEEKLY].id == "2025W02"

    def test_string_period_type_accepted(self):
        assert period_for_date("monthly", date(2025, 3, 3)).id == "2025M03"


class TestGeneratePeriods:
    """Tests for covering a date range."""

    @pytest.mark.parametrize("period_type", list(PeriodType))
    def test_range_is_covered_exactly(self, period_type):
        start, end = date(2024, 11, 20), date(2025, 3, 7)
        periods = generate_periods(period_type, start, end)
        assert periods[0].start_date == start
        assert periods[-1].end_date == end
        assert sum(p.day_count for p in periods) == (end - start).days + 1
        assert_contiguous(periods)

    def test_edges_are_clipped_and_flagged(self):
        periods = generate_periods(PeriodType.WEEKLY, date(2025, 1, 1), date(2025, 1, 31))
        assert [p.id for p in periods] == ["2025W01", "2025W02", "2025W03", "2025W04", "2025W05"]
        assert periods[0].start_date == date(2025, 1, 1)
        assert periods[0].metadata.is_clipped is True
        assert periods[1].metadata.is_clipped is False
        assert periods[-1].end_date == date(2025, 1, 31)
        assert periods[-1].metadata.is_clipped is True

    @pytest.mark.parametrize("year,days", [(2023, 365), (2024, 366), (2100, 365)])
    def test_bi_monthly_halves_sum_to_month(self, year, days):
        monthly = generate_year(PeriodType.MONTHLY, year)
        halves = generate_year(PeriodType.BI_MONTHLY, year)
        assert len(monthly) == 12
        assert len(halves) == 24
        for index, month in enumerate(monthly):
            first, second = halves[2 * index], halves[2 * index + 1]
            assert first.day_count + second.day_count == month.day_count
        assert sum(p.day_count for p in monthly) == days
        assert_contiguous(monthly)
        assert_contiguous(halves)

    @pytest.mark.parametrize("year,days", [(2023, 365), (2024, 366), (2100, 365)])
    def test_weekly_year_is_contiguous(self, year, days):
        weeks = generate_year(PeriodType.WEEKLY, year)
        assert_contiguous(weeks)
        assert weeks[0].start_date == date(year, 1, 1)
        assert weeks[-1].end_date == date(year, 12, 31)
        assert sum(p.day_count for p in weeks) == days

    def test_single_day_range(self):
        periods = generate_periods(PeriodType.MONTHLY, date(2025, 5, 9), date(2025, 5, 9))
        assert len(periods) == 1
        assert periods[0].day_count == 1

    def test_start_after_end_rejected(self):
        with pytest.raises(CalendarError):
            generate_periods(PeriodType.MONTHLY, date(2025, 2, 1), date(2025, 1, 1))

    def test_missing_bound_rejected(self):
        with pytest.raises(CalendarError):
            generate_periods(PeriodType.MONTHLY, None, date(2025, 1, 1))

    def test_unknown_type_rejected(self):
        with pytest.raises(CalendarError):
            generate_periods("quarterly", date(2025, 1, 1), date(2025, 3, 31))

    def test_assert_contiguous_detects_gap(self):
        periods = generate_periods(PeriodType.MONTHLY, date(2025, 1, 1), date(2025, 4, 30))
        with pytest.raises(CalendarError):
            assert_contiguous([periods[0], periods[2]])

    def test_assert_contiguous_detects_overlap(self):
        january = period_for_date(PeriodType.MONTHLY, date(2025, 1, 1))
        shifted = january.model_copy(update={
            "id": "shifted",
            "start_date": january.end_date - timedelta(days=1),
            "end_date": january.end_date + timedelta(days=5),
        })
        with pytest.raises(CalendarError):
            assert_contiguous([january, shifted])


class TestAllocation:
    """Tests for pro-rating budgets across period types."""

    def test_same_type_is_unchanged(self, january):
        assert calculate_period_allocated_amount(
            Decimal("310"), PeriodType.MONTHLY, january
        ) == Decimal("310.00")

    def test_monthly_budget_in_week(self):
        week = period_for_date(PeriodType.WEEKLY, date(2025, 1, 8))
        assert calculate_period_allocated_amount(
            Decimal("310"), PeriodType.MONTHLY, week
        ) == Decimal("70.00")

    def test_week_spanning_two_months(self):
        week = period_for_date(PeriodType.WEEKLY, date(2025, 1, 30))
        assert (week.start_date, week.end_date) == (date(2025, 1, 26), date(2025, 2, 1))
        # six January days at 10.00 plus one February day at 310 / 28
        assert calculate_period_allocated_amount(
            Decimal("310"), PeriodType.MONTHLY, week
        ) == Decimal("71.07")

    def test_weekly_budget_in_month(self, january):
        assert calculate_period_allocated_amount(
            Decimal("70"), PeriodType.WEEKLY, january
        ) == Decimal("310.00")

    def test_bi_monthly_budget_in_month(self, january):
        assert calculate_period_allocated_amount(
            Decimal("150"), PeriodType.BI_MONTHLY, january
        ) == Decimal("300.00")

    def test_clipped_period_is_pro_rated(self):
        clipped = generate_periods(PeriodType.MONTHLY, date(2025, 1, 1), date(2025, 1, 10))[0]
        assert calculate_period_allocated_amount(
            Decimal("310"), PeriodType.MONTHLY, clipped
        ) == Decimal("100.00")

    def test_build_budget_period(self, january):
        budget = Budget(id="groceries", owner_id="user_1", name="Groceries", amount=Decimal("310"))
        period = build_budget_period(budget, january)
        assert period.id == "groceries_2025M01"
        assert period.allocated_amount == Decimal("310.00")
        assert period.total_spent == Decimal("0.00")
        assert period.source_period_id == "2025M01"
