"""
Period Status Calculator

Derives the status of an obligation period from its occurrence records.

DESIGN DECISION: Status is a pure function of (occurrences, as-of date).
It is recomputed on every reconciliation and never stored as history, so
a period moves PENDING -> DUE_SOON -> OVERDUE purely by the passage of time.

State machine:
- no occurrences                             -> PENDING
- nothing paid, past the earliest due date   -> OVERDUE
- nothing paid, due inside the lead window   -> DUE_SOON
- nothing paid otherwise                     -> PENDING
- some but not all occurrences paid          -> PARTIAL
- all paid, total paid >= total due          -> PAID (PAID_EARLY if every
                                                payment preceded its due date)
- all paid but short of the total due        -> PARTIAL
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.enums import Frequency, PeriodStatus
from reconciler.models.money import ZERO
from reconciler.models.obligation import ObligationPeriod

FREQUENCY_UNITS = {
    Frequency.WEEKLY: "weeks",
    Frequency.BIWEEKLY: "bi-weekly periods",
    Frequency.SEMI_MONTHLY: "semi-monthly periods",
    Frequency.MONTHLY: "months",
    Frequency.ANNUALLY: "annual periods",
}


class PaymentBreakdown(BaseModel):
    """Amounts paid in one period grouped by timing classification."""

    regular: Decimal = ZERO
    catch_up: Decimal = ZERO
    advance: Decimal = ZERO
    extra_principal: Decimal = ZERO
    unclassified: Decimal = ZERO
    counts: dict[str, int] = Field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return self.regular + self.catch_up + self.advance + self.extra_principal + self.unclassified


def derive_status(
    period: ObligationPeriod,
    as_of: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> PeriodStatus:
    """Current status of ``period`` as seen on ``as_of`` (default: today)."""
    settings = settings or get_engine_settings()
    as_of = as_of or date.today()

    occurrences = sorted(period.occurrences, key=lambda o: o.index)
    if not occurrences:
        return PeriodStatus.PENDING

    paid = [o for o in occurrences if o.is_paid]
    if not paid:
        due_date = min(o.due_date for o in occurrences)
        if as_of > due_date:
            return PeriodStatus.OVERDUE
        if (due_date - as_of).days <= settings.due_soon_window_days:
            return PeriodStatus.DUE_SOON
        return PeriodStatus.PENDING

    if len(paid) < len(occurrences):
        return PeriodStatus.PARTIAL

    total_due = sum((o.amount_due for o in occurrences), ZERO)
    total_paid = sum((o.applied_amount for o in occurrences), ZERO)
    if total_paid + settings.amount_tolerance < total_due:
        return PeriodStatus.PARTIAL

    if all(o.payment_date is not None and o.payment_date < o.due_date for o in paid):
        return PeriodStatus.PAID_EARLY
    return PeriodStatus.PAID


def describe_occurrences(period: ObligationPeriod) -> Optional[str]:
    """Human-readable progress such as '2 of 4 weeks paid'; None without occurrences."""
    if not period.occurrences:
        return None
    paid = sum(1 for o in period.occurrences if o.is_paid)
    unit = FREQUENCY_UNITS.get(period.frequency, "occurrences")
    return f"{paid} of {len(period.occurrences)} {unit} paid"


def payment_breakdown(period: ObligationPeriod) -> PaymentBreakdown:
    breakdown = PaymentBreakdown()
    counts: dict[str, int] = {}
    for occurrence in period.occurrences:
        if not occurrence.is_paid:
            continue
        key = occurrence.payment_type.value if occurrence.payment_type else "unclassified"
        current = getattr(breakdown, key)
        setattr(breakdown, key, current + occurrence.amount_paid)
        counts[key] = counts.get(key, 0) + 1
    breakdown.counts = counts
    return breakdown
