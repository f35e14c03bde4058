"""
Transaction and Split Models

A transaction carries its raw bank sign (inflows may be negative). Splits
divide the amount among budgets and obligations; the split list must always
sum to the transaction amount.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from reconciler.models.enums import MatchedBy, PeriodType
from reconciler.models.money import coerce_money


class Split(BaseModel):
    """A portion of a transaction assigned to one budget or obligation."""

    split_id: str = Field(..., min_length=1)
    budget_id: str = Field(
        default="unassigned",
        description="Budget this portion counts against"
    )
    obligation_id: Optional[str] = Field(
        default=None,
        description="Obligation this portion pays, if any"
    )
    amount: Decimal = Field(..., decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = None
    is_default: bool = False

    # Period views this split currently counts toward
    monthly_period_id: Optional[str] = None
    weekly_period_id: Optional[str] = None
    bi_monthly_period_id: Optional[str] = None

    matched_by: Optional[MatchedBy] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v):
        return coerce_money(v)

    def period_id_for(self, period_type: PeriodType) -> Optional[str]:
        return {
            PeriodType.MONTHLY: self.monthly_period_id,
            PeriodType.WEEKLY: self.weekly_period_id,
            PeriodType.BI_MONTHLY: self.bi_monthly_period_id,
        }[period_type]


class Transaction(BaseModel):
    """A bank transaction owned by one user."""

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    transaction_date: date
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Raw signed amount as reported by the bank"
    )
    description: str = Field(default="", max_length=500)
    merchant_name: Optional[str] = None
    category: Optional[str] = None
    splits: list[Split] = Field(default_factory=list)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v):
        return coerce_money(v)

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def splits_total(self) -> Decimal:
        return sum((s.amount for s in self.splits), Decimal("0.00"))

    def split_for_obligation(self, obligation_id: str) -> Optional[Split]:
        """First split linked to the given obligation."""
        for split in self.splits:
            if split.obligation_id == obligation_id:
                return split
        return None

    def obligation_ids(self) -> set[str]:
        return {s.obligation_id for s in self.splits if s.obligation_id}
