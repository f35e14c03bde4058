"""
Obligation Models

An Obligation is the blueprint of a recurring bill or income stream. An
ObligationPeriod is its view inside one SourcePeriod: the occurrences due
in that period and how much of each has been paid.

DESIGN DECISION: Occurrences are a single list of records. There are no
parallel per-field arrays to keep in sync; every payment attribute lives on
the occurrence it belongs to.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from reconciler.models.enums import (
    Frequency,
    MatchedBy,
    ObligationKind,
    PaymentType,
    PeriodStatus,
    PeriodType,
)
from reconciler.models.money import ZERO, coerce_money, percentage


# =============================================================================
# BLUEPRINT
# =============================================================================

class Obligation(BaseModel):
    """A recurring bill (outflow) or income stream (inflow)."""

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1, description="Exactly one owner")
    group_id: Optional[str] = None
    kind: ObligationKind = ObligationKind.BILL
    description: str = Field(default="", max_length=500)
    merchant: Optional[str] = None
    category: Optional[str] = None

    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Expected amount per occurrence"
    )
    frequency: Frequency = Frequency.MONTHLY

    first_date: Optional[date] = None
    last_date: Optional[date] = None
    predicted_next_date: Optional[date] = None

    transaction_ids: list[str] = Field(
        default_factory=list,
        description="Historical transactions linked to this obligation"
    )
    is_active: bool = True

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v):
        return abs(coerce_money(v))

    @model_validator(mode='after')
    def validate_anchor(self):
        if self.first_date and self.last_date and self.last_date < self.first_date:
            raise ValueError("last_date cannot be before first_date")
        return self

    @property
    def anchor_date(self) -> Optional[date]:
        """Date occurrence schedules are projected from."""
        return self.predicted_next_date or self.last_date or self.first_date

    @property
    def is_inflow(self) -> bool:
        return self.kind == ObligationKind.INCOME


# =============================================================================
# PERIOD VIEW
# =============================================================================

class Occurrence(BaseModel):
    """One expected payment inside an obligation period."""

    id: str = Field(..., description="{obligation_period_id}_occ_{index}")
    index: int = Field(..., ge=0)
    due_date: date
    draw_date: date = Field(..., description="Due date moved off weekends")
    amount_due: Decimal = Field(..., ge=0, decimal_places=2)

    is_paid: bool = False
    transaction_id: Optional[str] = None
    split_id: Optional[str] = None
    amount_paid: Decimal = Field(default=ZERO, ge=0, decimal_places=2)
    payment_date: Optional[date] = None
    payment_type: Optional[PaymentType] = None
    is_auto_matched: bool = False
    matched_by: Optional[MatchedBy] = None

    @field_validator('amount_due', 'amount_paid', mode='before')
    @classmethod
    def round_amounts(cls, v):
        return coerce_money(v)

    @property
    def applied_amount(self) -> Decimal:
        """Portion of the payment that counts toward this occurrence."""
        if not self.is_paid:
            return ZERO
        return min(self.amount_paid, self.amount_due)

    @property
    def overpaid_amount(self) -> Decimal:
        if not self.is_paid:
            return ZERO
        return max(self.amount_paid - self.amount_due, ZERO)

    def reset(self) -> "Occurrence":
        """Copy of this occurrence with all payment data cleared."""
        return Occurrence(
            id=self.id,
            index=self.index,
            due_date=self.due_date,
            draw_date=self.draw_date,
            amount_due=self.amount_due,
        )


class ObligationPeriod(BaseModel):
    """
    An obligation's view inside one SourcePeriod.

    Totals, counts and flags are derived from ``occurrences`` by
    ``recalculate_totals``; they are never edited on their own.
    """

    id: str = Field(..., description="{obligation_id}_{source_period_id}")
    obligation_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    kind: ObligationKind = ObligationKind.BILL

    source_period_id: str = Field(..., min_length=1)
    period_type: PeriodType
    period_start: date
    period_end: date

    description: str = ""
    merchant: Optional[str] = None
    category: Optional[str] = None
    frequency: Frequency = Frequency.MONTHLY
    amount_per_occurrence: Decimal = Field(..., ge=0, decimal_places=2)

    occurrences: list[Occurrence] = Field(default_factory=list)

    # Totals
    total_amount_due: Decimal = ZERO
    total_amount_paid: Decimal = ZERO
    total_amount_unpaid: Decimal = ZERO
    total_amount_overpaid: Decimal = ZERO

    # Counts
    occurrences_in_period: int = 0
    occurrences_paid: int = 0
    occurrences_unpaid: int = 0

    # Flags
    is_active: bool = True
    is_due_period: bool = False
    is_fully_paid: bool = False
    is_partially_paid: bool = False

    payment_progress_percentage: int = 0
    dollar_progress_percentage: int = 0
    first_due_date: Optional[date] = None
    last_due_date: Optional[date] = None
    next_unpaid_due_date: Optional[date] = None

    transaction_ids: list[str] = Field(
        default_factory=list,
        description="Transactions matched to an occurrence"
    )
    unmatched_transaction_ids: list[str] = Field(
        default_factory=list,
        description="In-period transactions left over once every occurrence was paid"
    )
    status: PeriodStatus = PeriodStatus.PENDING

    @field_validator('amount_per_occurrence', mode='before')
    @classmethod
    def round_amount(cls, v):
        return coerce_money(v)

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.period_end < self.period_start:
            raise ValueError("Period end cannot be before period start")
        return self

    @property
    def is_inflow(self) -> bool:
        return self.kind == ObligationKind.INCOME

    def recalculate_totals(self) -> "ObligationPeriod":
        """Rebuild every derived field from the occurrence records."""
        occurrences = sorted(self.occurrences, key=lambda o: o.index)
        paid = [o for o in occurrences if o.is_paid]
        unpaid = [o for o in occurrences if not o.is_paid]

        total_due = sum((o.amount_due for o in occurrences), ZERO)
        total_paid = sum((o.applied_amount for o in paid), ZERO)

        self.occurrences = occurrences
        self.occurrences_in_period = len(occurrences)
        self.occurrences_paid = len(paid)
        self.occurrences_unpaid = len(unpaid)

        self.total_amount_due = total_due
        self.total_amount_paid = total_paid
        self.total_amount_unpaid = total_due - total_paid
        self.total_amount_overpaid = sum((o.overpaid_amount for o in paid), ZERO)

        count = len(occurrences)
        self.is_due_period = count > 0
        self.is_fully_paid = count > 0 and len(paid) == count
        self.is_partially_paid = 0 < len(paid) < count

        self.payment_progress_percentage = percentage(Decimal(len(paid)), Decimal(count))
        self.dollar_progress_percentage = percentage(total_paid, total_due)

        self.first_due_date = occurrences[0].due_date if occurrences else None
        self.last_due_date = occurrences[-1].due_date if occurrences else None
        self.next_unpaid_due_date = unpaid[0].due_date if unpaid else None
        self.transaction_ids = [o.transaction_id for o in paid if o.transaction_id]
        return self
