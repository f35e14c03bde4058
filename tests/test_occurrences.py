"""
Tests for occurrence scheduling, payment classification and matching.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from reconciler.config import EngineSettings
from reconciler.models import (
    Frequency,
    Obligation,
    PaymentType,
    PeriodStatus,
    PeriodType,
    Split,
    Transaction,
)
from reconciler.occurrences import (
    adjust_for_weekend,
    build_obligation_period,
    calculate_occurrence_dates,
    classify_payment,
    find_matching_occurrence_index,
    reconcile_occurrences,
)
from reconciler.periods import period_for_date
from reconciler.validation import ReconciliationValidationError


class TestSchedule:
    """Tests for projecting due dates into a period."""

    def test_month_end_anchor_does_not_drift(self):
        anchor = date(2025, 1, 31)
        assert calculate_occurrence_dates(
            anchor, Frequency.MONTHLY, date(2025, 2, 1), date(2025, 2, 28)
        ) == [date(2025, 2, 28)]
        assert calculate_occurrence_dates(
            anchor, Frequency.MONTHLY, date(2025, 3, 1), date(2025, 3, 31)
        ) == [date(2025, 3, 31)]

    def test_weekly_occurrences_in_month(self):
        dates = calculate_occurrence_dates(
            date(2025, 1, 3), Frequency.WEEKLY, date(2025, 1, 1), date(2025, 1, 31)
        )
        assert dates == [date(2025, 1, d) for d in (3, 10, 17, 24, 31)]

    def test_anchor_after_period_projects_backwards(self):
        assert calculate_occurrence_dates(
            date(2025, 3, 15), Frequency.MONTHLY, date(2025, 1, 1), date(2025, 1, 31)
        ) == [date(2025, 1, 15)]

    def test_unknown_frequency_falls_back_to_monthly(self):
        assert calculate_occurrence_dates(
            date(2025, 1, 5), Frequency.UNKNOWN, date(2025, 2, 1), date(2025, 2, 28)
        ) == [date(2025, 2, 5)]

    def test_no_anchor_yields_nothing(self):
        assert calculate_occurrence_dates(
            None, Frequency.MONTHLY, date(2025, 1, 1), date(2025, 1, 31)
        ) == []

    @pytest.mark.parametrize("day,expected", [
        (date(2025, 1, 4), date(2025, 1, 6)),
        (date(2025, 1, 5), date(2025, 1, 6)),
        (date(2025, 1, 6), date(2025, 1, 6)),
    ])
    def test_adjust_for_weekend(self, day, expected):
        assert adjust_for_weekend(day) == expected

    def test_build_obligation_period(self, rent, january):
        period = build_obligation_period(rent, january)
        assert period.id == "rent_2025M01"
        assert period.source_period_id == "2025M01"
        assert [o.id for o in period.occurrences] == ["rent_2025M01_occ_0"]
        assert period.occurrences[0].draw_date == date(2025, 1, 1)
        assert period.total_amount_due == Decimal("2000.00")
        assert period.status == PeriodStatus.PENDING

    def test_period_without_occurrences(self, rent):
        second_half = period_for_date(PeriodType.BI_MONTHLY, date(2025, 1, 20))
        period = build_obligation_period(rent, second_half)
        assert period.occurrences == []
        assert period.is_due_period is False
        assert period.total_amount_due == Decimal("0.00")


class TestClassifier:
    """Tests for payment timing classification."""

    DUE = date(2025, 1, 15)
    EXPECTED = Decimal("100.00")

    @pytest.mark.parametrize("paid_on,expected", [
        (date(2025, 1, 15), PaymentType.REGULAR),
        (date(2025, 1, 10), PaymentType.REGULAR),
        (date(2025, 1, 8), PaymentType.REGULAR),
        (date(2025, 1, 7), PaymentType.ADVANCE),
        (date(2025, 1, 20), PaymentType.CATCH_UP),
    ])
    def test_timing(self, paid_on, expected):
        assert classify_payment(paid_on, self.DUE, self.EXPECTED, self.EXPECTED) == expected

    def test_amount_rule_beats_timing(self):
        two_days_early = date(2025, 1, 13)
        assert classify_payment(
            two_days_early, self.DUE, self.EXPECTED, Decimal("110.00")
        ) == PaymentType.EXTRA_PRINCIPAL

    def test_just_under_extra_principal(self):
        assert classify_payment(
            self.DUE, self.DUE, self.EXPECTED, Decimal("109.99")
        ) == PaymentType.REGULAR

    def test_negative_amount_uses_magnitude(self):
        assert classify_payment(
            self.DUE, self.DUE, self.EXPECTED, Decimal("-120.00")
        ) == PaymentType.EXTRA_PRINCIPAL

    def test_threshold_is_configurable(self):
        settings = EngineSettings(advance_threshold_days=3)
        assert classify_payment(
            date(2025, 1, 11), self.DUE, self.EXPECTED, self.EXPECTED, settings
        ) == PaymentType.ADVANCE


class TestFindMatchingOccurrence:
    """Tests for nearest-occurrence lookup."""

    def test_nearest_wins(self, loan_period):
        assert find_matching_occurrence_index(date(2025, 1, 15), loan_period.occurrences) == 1

    def test_tie_goes_to_earlier(self, loan_period):
        assert find_matching_occurrence_index(date(2025, 1, 10), loan_period.occurrences) == 0

    def test_tolerance(self, loan_period):
        assert find_matching_occurrence_index(
            date(2025, 1, 10), loan_period.occurrences, tolerance_days=3
        ) is None
        assert find_matching_occurrence_index(
            date(2025, 1, 5), loan_period.occurrences, tolerance_days=3
        ) == 0

    def test_empty(self):
        assert find_matching_occurrence_index(date(2025, 1, 5), []) is None


class TestReconcileOccurrences:
    """Tests for rebuilding an obligation period from transactions."""

    AS_OF = date(2025, 1, 10)

    def test_one_of_two_paid(self, loan_period, biweekly_loan, make_transaction):
        payment = make_transaction("t1", date(2025, 1, 3), Decimal("2000"), "loan")
        period = reconcile_occurrences(loan_period, biweekly_loan, [payment], as_of=self.AS_OF)

        assert period.occurrences_paid == 1
        assert period.total_amount_paid == Decimal("2000.00")
        assert period.is_partially_paid is True
        assert period.is_fully_paid is False
        assert period.status == PeriodStatus.PARTIAL
        assert period.occurrences[0].payment_type == PaymentType.REGULAR
        assert period.transaction_ids == ["t1"]

    def test_negative_raw_amount_paid_as_positive(self, make_transaction):
        mortgage = Obligation(
            id="mortgage", owner_id="user_1", amount=Decimal("2500"), first_date=date(2025, 1, 1)
        )
        source = period_for_date(PeriodType.MONTHLY, date(2025, 1, 1))
        payment = make_transaction("t1", date(2025, 1, 1), Decimal("-2500"), "mortgage")

        period = reconcile_occurrences(
            build_obligation_period(mortgage, source), mortgage, [payment], as_of=self.AS_OF
        )
        assert period.occurrences[0].amount_paid == Decimal("2500.00")
        assert period.total_amount_paid == Decimal("2500.00")
        assert period.total_amount_unpaid == Decimal("0.00")
        assert period.status == PeriodStatus.PAID

    def test_each_transaction_pays_nearest_unpaid(self, loan_period, biweekly_loan, make_transaction):
        transactions = [
            make_transaction("t1", date(2025, 1, 16), Decimal("2000"), "loan"),
            make_transaction("t2", date(2025, 1, 17), Decimal("2000"), "loan"),
        ]
        period = reconcile_occurrences(loan_period, biweekly_loan, transactions, as_of=self.AS_OF)
        # t1 takes the 17th; t2 then falls back to the only unpaid occurrence
        assert period.occurrences[1].transaction_id == "t1"
        assert period.occurrences[0].transaction_id == "t2"
        assert period.occurrences[0].payment_type == PaymentType.CATCH_UP
        assert period.is_fully_paid is True

    def test_single_occurrence_extra_payments_unmatched(self, rent, january, make_transaction):
        transactions = [
            make_transaction("t2", date(2025, 1, 9), Decimal("2000"), "rent"),
            make_transaction("t1", date(2025, 1, 2), Decimal("2000"), "rent"),
        ]
        period = reconcile_occurrences(
            build_obligation_period(rent, january), rent, transactions, as_of=self.AS_OF
        )
        assert period.occurrences[0].transaction_id == "t1"
        assert period.unmatched_transaction_ids == ["t2"]
        assert period.total_amount_paid == Decimal("2000.00")

    def test_overpayment_kept_separately(self, rent, january, make_transaction):
        payment = make_transaction("t1", date(2025, 1, 1), Decimal("2300"), "rent")
        period = reconcile_occurrences(
            build_obligation_period(rent, january), rent, [payment], as_of=self.AS_OF
        )
        assert period.total_amount_paid == Decimal("2000.00")
        assert period.total_amount_overpaid == Decimal("300.00")
        assert period.total_amount_unpaid == Decimal("0.00")
        assert period.occurrences[0].payment_type == PaymentType.EXTRA_PRINCIPAL

    def test_short_payment_is_partial(self, rent, january, make_transaction):
        payment = make_transaction("t1", date(2025, 1, 1), Decimal("1200"), "rent")
        period = reconcile_occurrences(
            build_obligation_period(rent, january), rent, [payment], as_of=self.AS_OF
        )
        assert period.total_amount_unpaid == Decimal("800.00")
        assert period.dollar_progress_percentage == 60
        assert period.status == PeriodStatus.PARTIAL

    def test_split_amount_is_what_counts(self, rent, january):
        payment = Transaction(
            id="t1",
            owner_id="user_1",
            transaction_date=date(2025, 1, 1),
            amount=Decimal("2100"),
            splits=[
                Split(split_id="s_rent", obligation_id="rent", amount=Decimal("2000")),
                Split(split_id="s_fee", budget_id="fees", amount=Decimal("100")),
            ],
        )
        period = reconcile_occurrences(
            build_obligation_period(rent, january), rent, [payment], as_of=self.AS_OF
        )
        assert period.occurrences[0].amount_paid == Decimal("2000.00")
        assert period.occurrences[0].split_id == "s_rent"
        assert period.occurrences[0].payment_type == PaymentType.REGULAR

    def test_out_of_period_and_foreign_transactions_ignored(self, rent, january, make_transaction):
        transactions = [
            make_transaction("t_dec", date(2024, 12, 31), Decimal("2000"), "rent"),
            make_transaction("t_other", date(2025, 1, 1), Decimal("2000"), "rent", owner_id="user_2"),
        ]
        period = reconcile_occurrences(
            build_obligation_period(rent, january), rent, transactions, as_of=self.AS_OF
        )
        assert period.occurrences_paid == 0
        assert period.unmatched_transaction_ids == []
        assert period.status == PeriodStatus.OVERDUE

    def test_stale_payment_cleared_when_transaction_removed(self, rent, january, make_transaction):
        payment = make_transaction("t1", date(2025, 1, 1), Decimal("2000"), "rent")
        paid = reconcile_occurrences(
            build_obligation_period(rent, january), rent, [payment], as_of=self.AS_OF
        )
        cleared = reconcile_occurrences(paid, rent, [], as_of=self.AS_OF)
        assert cleared.occurrences_paid == 0
        assert cleared.occurrences[0].transaction_id is None
        assert cleared.transaction_ids == []

    def test_idempotent_and_order_independent(self, biweekly_loan, make_transaction):
        source = period_for_date(PeriodType.MONTHLY, date(2025, 1, 1))
        period = build_obligation_period(biweekly_loan, source)
        transactions = [
            make_transaction(f"t{i}", date(2025, 1, day), Decimal("2000"), "loan")
            for i, day in enumerate((2, 16, 18, 30))
        ]
        first = reconcile_occurrences(period, biweekly_loan, transactions, as_of=self.AS_OF)
        again = reconcile_occurrences(first, biweekly_loan, transactions, as_of=self.AS_OF)
        shuffled = list(transactions)
        random.Random(7).shuffle(shuffled)
        reordered = reconcile_occurrences(period, biweekly_loan, shuffled, as_of=self.AS_OF)

        assert first.model_dump() == again.model_dump()
        assert first.model_dump() == reordered.model_dump()

    def test_amount_conservation(self, biweekly_loan, make_transaction):
        source = period_for_date(PeriodType.MONTHLY, date(2025, 1, 1))
        period = build_obligation_period(biweekly_loan, source)
        transactions = [
            make_transaction("t1", date(2025, 1, 3), Decimal("2000"), "loan"),
            make_transaction("t2", date(2025, 1, 17), Decimal("900"), "loan"),
        ]
        result = reconcile_occurrences(period, biweekly_loan, transactions, as_of=self.AS_OF)
        assert result.total_amount_due == result.total_amount_paid + result.total_amount_unpaid
        assert result.occurrences_in_period == result.occurrences_paid + result.occurrences_unpaid

    def test_period_of_another_obligation_rejected(self, rent, january, biweekly_loan):
        period = build_obligation_period(rent, january)
        with pytest.raises(ReconciliationValidationError) as exc_info:
            reconcile_occurrences(period, biweekly_loan, [], as_of=self.AS_OF)
        assert "obligation_id mismatch" in exc_info.value.label
