"""
Budget Models

A Budget is a spending limit defined for one period type. A BudgetPeriod is
its allocation inside a SourcePeriod, pro-rated when the period types differ.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from reconciler.models.enums import PeriodType
from reconciler.models.money import ZERO, coerce_money, percentage


class Budget(BaseModel):
    """Budget blueprint."""

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    period_type: PeriodType = PeriodType.MONTHLY
    categories: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v):
        return coerce_money(v)


class BudgetPeriod(BaseModel):
    """A budget's allocation and spending inside one SourcePeriod."""

    id: str = Field(..., description="{budget_id}_{source_period_id}")
    budget_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    name: str = ""

    source_period_id: str = Field(..., min_length=1)
    period_type: PeriodType
    period_start: date
    period_end: date

    allocated_amount: Decimal = Field(default=ZERO, ge=0, decimal_places=2)
    modified_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2,
        description="User override of the pro-rated allocation"
    )
    total_spent: Decimal = Field(default=ZERO, decimal_places=2)

    checklist_total: int = Field(default=0, ge=0)
    checklist_completed: int = Field(default=0, ge=0)
    is_active: bool = True

    @field_validator('allocated_amount', 'total_spent', mode='before')
    @classmethod
    def round_amounts(cls, v):
        return coerce_money(v)

    @field_validator('modified_amount', mode='before')
    @classmethod
    def round_optional(cls, v):
        return None if v is None else coerce_money(v)

    @property
    def effective_allocated(self) -> Decimal:
        if self.modified_amount is not None:
            return self.modified_amount
        return self.allocated_amount

    @property
    def total_remaining(self) -> Decimal:
        return self.effective_allocated - self.total_spent

    @property
    def progress_percentage(self) -> int:
        """Spent as a percentage of allocation; 0 when nothing is allocated."""
        return percentage(self.total_spent, self.effective_allocated)

    @property
    def is_over_budget(self) -> bool:
        return self.total_spent > self.effective_allocated

    @property
    def overage_amount(self) -> Decimal:
        return max(self.total_spent - self.effective_allocated, ZERO)

    @property
    def checklist_progress_percentage(self) -> int:
        return percentage(Decimal(self.checklist_completed), Decimal(self.checklist_total))
