"""
Period Summary Models

One PeriodSummary per (owner, period type, source period). It is replaced
wholesale on every recompute, so none of these models carry history.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from reconciler.models.enums import (
    IncomeType,
    OwnerKind,
    PeriodStatus,
    PeriodType,
)
from reconciler.models.money import ZERO


class Owner(BaseModel):
    """The user or group a summary belongs to."""

    id: str = Field(..., min_length=1)
    kind: OwnerKind = OwnerKind.USER


# =============================================================================
# ENTRIES
# =============================================================================

class OutflowEntry(BaseModel):
    """One bill line in a summary."""

    obligation_period_id: str
    obligation_id: str
    description: str = ""
    merchant: Optional[str] = None
    total_amount_due: Decimal = ZERO
    total_amount_paid: Decimal = ZERO
    total_amount_unpaid: Decimal = ZERO
    occurrences_in_period: int = 0
    occurrences_paid: int = 0
    is_due_period: bool = False
    is_fully_paid: bool = False
    status: PeriodStatus = PeriodStatus.PENDING
    next_unpaid_due_date: Optional[date] = None
    progress_percentage: int = 0


class InflowEntry(BaseModel):
    """One income line in a summary."""

    obligation_period_id: str
    obligation_id: str
    description: str = ""
    income_type: IncomeType = IncomeType.OTHER
    total_expected: Decimal = ZERO
    total_received: Decimal = ZERO
    total_pending: Decimal = ZERO
    occurrences_in_period: int = 0
    occurrences_received: int = 0
    is_receipt_period: bool = False
    is_fully_received: bool = False
    status: PeriodStatus = PeriodStatus.PENDING
    progress_percentage: int = 0


class BudgetEntry(BaseModel):
    """One budget line in a summary."""

    budget_period_id: str
    budget_id: str
    name: str = ""
    total_allocated: Decimal = ZERO
    total_spent: Decimal = ZERO
    total_remaining: Decimal = ZERO
    progress_percentage: int = 0
    is_over_budget: bool = False
    overage_amount: Decimal = ZERO
    checklist_progress_percentage: int = 0


# =============================================================================
# RESOURCE SUMMARIES
# =============================================================================

class OutflowSummary(BaseModel):
    total_count: int = 0
    due_period_count: int = 0
    fully_paid_count: int = 0
    unpaid_count: int = 0
    total_amount_due: Decimal = ZERO
    total_amount_paid: Decimal = ZERO
    total_amount_unpaid: Decimal = ZERO
    progress_percentage: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    entries: list[OutflowEntry] = Field(default_factory=list)


class InflowSummary(BaseModel):
    total_count: int = 0
    receipt_period_count: int = 0
    fully_received_count: int = 0
    pending_count: int = 0
    total_expected: Decimal = ZERO
    total_received: Decimal = ZERO
    total_pending: Decimal = ZERO
    progress_percentage: int = 0
    entries: list[InflowEntry] = Field(default_factory=list)


class BudgetSummary(BaseModel):
    total_count: int = 0
    over_budget_count: int = 0
    under_budget_count: int = 0
    total_allocated: Decimal = ZERO
    total_spent: Decimal = ZERO
    total_remaining: Decimal = ZERO
    progress_percentage: int = 0
    entries: list[BudgetEntry] = Field(default_factory=list)


class PeriodSummary(BaseModel):
    """
    Aggregate view of every resource for one owner in one source period.

    The id is deterministic so a recompute overwrites the previous summary.
    """

    id: str = Field(..., description="{owner_id}_{period_type}_{source_period_id}")
    owner: Owner
    source_period_id: str
    period_type: PeriodType
    period_start: date
    period_end: date

    outflows: OutflowSummary = Field(default_factory=OutflowSummary)
    inflows: InflowSummary = Field(default_factory=InflowSummary)
    budgets: BudgetSummary = Field(default_factory=BudgetSummary)

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_cash_flow: Decimal = ZERO
    savings_rate: Decimal = Field(
        default=Decimal("0"),
        description="net_cash_flow / total_income; 0 when there is no income"
    )

    computed_at: Optional[datetime] = Field(
        default=None,
        description="Stamped by the storage write, not by aggregation"
    )

    @staticmethod
    def make_id(owner_id: str, period_type: PeriodType, source_period_id: str) -> str:
        return f"{owner_id}_{period_type.value}_{source_period_id}"
