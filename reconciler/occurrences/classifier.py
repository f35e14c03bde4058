"""
Payment timing classifier.

Rules are applied in priority order:
1. Paid at least ``extra_principal_ratio`` times the expected amount -> EXTRA_PRINCIPAL
2. More than ``advance_threshold_days`` before due -> ADVANCE
3. Before due -> REGULAR
4. After due -> CATCH_UP
5. On the due date -> REGULAR

The result is advisory and never feeds back into totals or paid status.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.enums import PaymentType
from reconciler.models.obligation import Occurrence
from reconciler.models.transaction import Transaction


def classify_payment(
    transaction_date: date,
    due_date: date,
    expected_amount: Decimal,
    actual_amount: Decimal,
    settings: Optional[EngineSettings] = None,
) -> PaymentType:
    settings = settings or get_engine_settings()

    actual_amount = abs(actual_amount)
    if actual_amount > 0 and actual_amount >= abs(expected_amount) * settings.extra_principal_ratio:
        return PaymentType.EXTRA_PRINCIPAL

    days_from_due = (transaction_date - due_date).days
    if days_from_due < -settings.advance_threshold_days:
        return PaymentType.ADVANCE
    if days_from_due < 0:
        return PaymentType.REGULAR
    if days_from_due > 0:
        return PaymentType.CATCH_UP
    return PaymentType.REGULAR


def classify(
    transaction: Transaction,
    occurrence: Occurrence,
    actual_amount: Optional[Decimal] = None,
    settings: Optional[EngineSettings] = None,
) -> PaymentType:
    """Classify ``transaction`` as a payment of ``occurrence``.

    ``actual_amount`` defaults to the transaction's absolute amount; the
    matcher passes the amount of the split linked to the obligation.
    """
    if actual_amount is None:
        actual_amount = transaction.absolute_amount
    return classify_payment(
        transaction.transaction_date,
        occurrence.due_date,
        occurrence.amount_due,
        actual_amount,
        settings=settings,
    )
