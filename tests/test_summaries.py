"""
Tests for period summary aggregation.
"""

from datetime import date
from decimal import Decimal

import pytest

from reconciler.models import (
    Budget,
    IncomeType,
    Owner,
    OwnerKind,
    PeriodStatus,
    PeriodType,
    Split,
    Transaction,
)
from reconciler.occurrences import build_obligation_period, reconcile_occurrences
from reconciler.periods import build_budget_period, period_for_date
from reconciler.summaries import (
    aggregate_summary,
    calculate_budget_spent,
    classify_income,
    summarize_budgets,
)

AS_OF = date(2025, 1, 20)


@pytest.fixture
def groceries_period(january):
    budget = Budget(id="groceries", owner_id="user_1", name="Groceries", amount=Decimal("400"))
    return build_budget_period(budget, january)


@pytest.fixture
def paid_rent(rent, january, make_transaction):
    payment = make_transaction("t_rent", date(2025, 1, 1), Decimal("-2000"), "rent")
    return reconcile_occurrences(build_obligation_period(rent, january), rent, [payment], as_of=AS_OF)


@pytest.fixture
def received_salary(salary, january, make_transaction):
    deposit = make_transaction("t_pay", date(2025, 1, 15), Decimal("3000"), "salary")
    return reconcile_occurrences(
        build_obligation_period(salary, january), salary, [deposit], as_of=AS_OF
    )


class TestClassifyIncome:
    """Tests for income categorisation."""

    @pytest.mark.parametrize("category,expected", [
        ("Payroll", IncomeType.SALARY),
        ("INCOME_WAGES", IncomeType.SALARY),
        ("Contract work", IncomeType.FREELANCE),
        ("Dividend", IncomeType.INVESTMENT),
        ("Gift", IncomeType.OTHER),
        (None, IncomeType.OTHER),
    ])
    def test_keywords(self, category, expected):
        assert classify_income(category) == expected


class TestBudgetSpending:
    """Tests for budget spend and budget summaries."""

    def test_refunds_reduce_spending(self, groceries_period):
        transactions = [
            Transaction(
                id="t1", owner_id="user_1", transaction_date=date(2025, 1, 5), amount=Decimal("120"),
                splits=[Split(split_id="a", budget_id="groceries", amount=Decimal("120"))],
            ),
            Transaction(
                id="t2", owner_id="user_1", transaction_date=date(2025, 1, 8), amount=Decimal("-20"),
                splits=[Split(split_id="b", budget_id="groceries", amount=Decimal("-20"))],
            ),
            Transaction(
                id="t3", owner_id="user_1", transaction_date=date(2025, 2, 1), amount=Decimal("50"),
                splits=[Split(split_id="c", budget_id="groceries", amount=Decimal("50"))],
            ),
            Transaction(
                id="t4", owner_id="user_2", transaction_date=date(2025, 1, 9), amount=Decimal("70"),
                splits=[Split(split_id="d", budget_id="groceries", amount=Decimal("70"))],
            ),
        ]
        assert calculate_budget_spent(groceries_period, transactions) == Decimal("100.00")

    def test_zero_allocation_overspent(self, groceries_period):
        period = groceries_period.model_copy(update={
            "allocated_amount": Decimal("0.00"),
            "total_spent": Decimal("75.00"),
        })
        summary = summarize_budgets([period])
        assert summary.progress_percentage == 0
        assert summary.over_budget_count == 1
        assert summary.entries[0].progress_percentage == 0
        assert summary.entries[0].is_over_budget is True


class TestAggregateSummary:
    """Tests for the combined per-owner summary."""

    def test_totals(self, january, paid_rent, received_salary, groceries_period):
        spent = groceries_period.model_copy(update={"total_spent": Decimal("300.00")})
        summary = aggregate_summary(
            Owner(id="user_1"), january, [paid_rent, received_salary, spent], as_of=AS_OF
        )

        assert summary.id == "user_1_monthly_2025M01"
        assert summary.outflows.total_amount_paid == Decimal("2000.00")
        assert summary.outflows.status_counts[PeriodStatus.PAID.value] == 1
        assert summary.inflows.total_received == Decimal("3000.00")
        assert summary.inflows.entries[0].income_type == IncomeType.SALARY
        assert summary.budgets.total_allocated == Decimal("400.00")
        assert summary.budgets.total_remaining == Decimal("100.00")

        assert summary.total_income == Decimal("3000.00")
        assert summary.total_expenses == Decimal("2300.00")
        assert summary.net_cash_flow == Decimal("700.00")
        assert summary.savings_rate == Decimal("0.2333")
        assert summary.computed_at is None

    def test_statuses_rederived_for_as_of(self, rent, january):
        unpaid = build_obligation_period(rent, january)
        early = aggregate_summary(Owner(id="user_1"), january, [unpaid], as_of=date(2024, 12, 30))
        late = aggregate_summary(Owner(id="user_1"), january, [unpaid], as_of=date(2025, 1, 5))
        assert early.outflows.entries[0].status == PeriodStatus.DUE_SOON
        assert late.outflows.entries[0].status == PeriodStatus.OVERDUE
        assert late.outflows.status_counts["overdue"] == 1

    def test_not_due_periods_counted_separately(self, rent):
        second_half = period_for_date(PeriodType.BI_MONTHLY, date(2025, 1, 20))
        summary = aggregate_summary(
            Owner(id="user_1"), second_half, [build_obligation_period(rent, second_half)], as_of=AS_OF
        )
        assert summary.outflows.total_count == 1
        assert summary.outflows.due_period_count == 0
        assert summary.outflows.status_counts["not_due"] == 1

    def test_no_income_savings_rate_zero(self, january, paid_rent):
        summary = aggregate_summary(Owner(id="user_1"), january, [paid_rent], as_of=AS_OF)
        assert summary.net_cash_flow == Decimal("-2000.00")
        assert summary.savings_rate == Decimal("0")

    def test_foreign_periods_ignored(self, january, paid_rent):
        other_owner = paid_rent.model_copy(update={"id": "other", "owner_id": "user_2"})
        summary = aggregate_summary(Owner(id="user_1"), january, [paid_rent, other_owner], as_of=AS_OF)
        assert summary.outflows.total_count == 1

    def test_group_owner_matches_group_id(self, january, paid_rent):
        shared = paid_rent.model_copy(update={"group_id": "household"})
        summary = aggregate_summary(
            Owner(id="household", kind=OwnerKind.GROUP), january, [shared, paid_rent], as_of=AS_OF
        )
        assert summary.outflows.total_count == 1
        assert summary.id == "household_monthly_2025M01"

    def test_entries_sorted_by_id(self, january, paid_rent):
        second = paid_rent.model_copy(update={"id": "a_first", "obligation_id": "a"})
        summary = aggregate_summary(Owner(id="user_1"), january, [paid_rent, second], as_of=AS_OF)
        assert [e.obligation_period_id for e in summary.outflows.entries] == ["a_first", "rent_2025M01"]
