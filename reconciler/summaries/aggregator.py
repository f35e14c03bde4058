"""
Period Summary Aggregator

Rolls every obligation period and budget period of one owner in one source
period up into a single PeriodSummary.

DESIGN DECISION: The summary is rebuilt from the period views each time and
replaces the stored one wholesale. Statuses are re-derived here from the
occurrence records rather than trusted from storage, so a summary read on
a later day reflects time passing (e.g. PENDING becoming OVERDUE).
"""

from datetime import date
from decimal import Decimal
from operator import attrgetter
from typing import Iterable, Optional, Union

import structlog

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.budget import BudgetPeriod
from reconciler.models.enums import IncomeType, OwnerKind, PeriodStatus
from reconciler.models.money import ZERO, percentage, ratio
from reconciler.models.obligation import ObligationPeriod
from reconciler.models.period import SourcePeriod
from reconciler.models.summary import (
    BudgetEntry,
    BudgetSummary,
    InflowEntry,
    InflowSummary,
    OutflowEntry,
    OutflowSummary,
    Owner,
    PeriodSummary,
)
from reconciler.models.transaction import Transaction
from reconciler.status.calculator import derive_status

logger = structlog.get_logger(__name__)

NOT_DUE = "not_due"

INCOME_KEYWORDS = [
    (IncomeType.SALARY, ("WAGES", "SALARY", "PAYROLL")),
    (IncomeType.FREELANCE, ("FREELANCE", "CONTRACT")),
    (IncomeType.INVESTMENT, ("INVESTMENT", "DIVIDEND", "INTEREST")),
]

AnyPeriod = Union[ObligationPeriod, BudgetPeriod]


def progress_percentage(paid: Decimal, due: Decimal) -> int:
    """round(paid / due * 100), or 0 when nothing is due."""
    return percentage(paid, due)


def classify_income(category: Optional[str]) -> IncomeType:
    text = (category or "").upper()
    for income_type, keywords in INCOME_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return income_type
    return IncomeType.OTHER


def summarize_outflows(
    periods: list[ObligationPeriod],
    as_of: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> OutflowSummary:
    summary = OutflowSummary(
        status_counts={**{s.value: 0 for s in PeriodStatus}, NOT_DUE: 0},
    )

    for period in periods:
        status = derive_status(period, as_of=as_of, settings=settings)
        summary.total_count += 1
        summary.total_amount_due += period.total_amount_due
        summary.total_amount_paid += period.total_amount_paid
        summary.total_amount_unpaid += period.total_amount_unpaid

        if period.is_due_period:
            summary.due_period_count += 1
            summary.status_counts[status.value] += 1
        else:
            summary.status_counts[NOT_DUE] += 1
        if period.is_fully_paid:
            summary.fully_paid_count += 1
        if period.total_amount_unpaid > 0:
            summary.unpaid_count += 1

        summary.entries.append(OutflowEntry(
            obligation_period_id=period.id,
            obligation_id=period.obligation_id,
            description=period.description,
            merchant=period.merchant,
            total_amount_due=period.total_amount_due,
            total_amount_paid=period.total_amount_paid,
            total_amount_unpaid=period.total_amount_unpaid,
            occurrences_in_period=period.occurrences_in_period,
            occurrences_paid=period.occurrences_paid,
            is_due_period=period.is_due_period,
            is_fully_paid=period.is_fully_paid,
            status=status,
            next_unpaid_due_date=period.next_unpaid_due_date,
            progress_percentage=progress_percentage(period.total_amount_paid, period.total_amount_due),
        ))

    summary.progress_percentage = progress_percentage(summary.total_amount_paid, summary.total_amount_due)
    return summary


def summarize_inflows(
    periods: list[ObligationPeriod],
    as_of: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> InflowSummary:
    summary = InflowSummary()

    for period in periods:
        pending = period.total_amount_due - period.total_amount_paid
        summary.total_count += 1
        summary.total_expected += period.total_amount_due
        summary.total_received += period.total_amount_paid
        summary.total_pending += pending

        if period.is_due_period:
            summary.receipt_period_count += 1
        if period.is_fully_paid:
            summary.fully_received_count += 1
        if pending > 0:
            summary.pending_count += 1

        summary.entries.append(InflowEntry(
            obligation_period_id=period.id,
            obligation_id=period.obligation_id,
            description=period.description,
            income_type=classify_income(period.category),
            total_expected=period.total_amount_due,
            total_received=period.total_amount_paid,
            total_pending=pending,
            occurrences_in_period=period.occurrences_in_period,
            occurrences_received=period.occurrences_paid,
            is_receipt_period=period.is_due_period,
            is_fully_received=period.is_fully_paid,
            status=derive_status(period, as_of=as_of, settings=settings),
            progress_percentage=progress_percentage(period.total_amount_paid, period.total_amount_due),
        ))

    summary.progress_percentage = progress_percentage(summary.total_received, summary.total_expected)
    return summary


def summarize_budgets(periods: list[BudgetPeriod]) -> BudgetSummary:
    summary = BudgetSummary()

    for period in periods:
        summary.total_count += 1
        summary.total_allocated += period.effective_allocated
        summary.total_spent += period.total_spent
        summary.total_remaining += period.total_remaining
        if period.is_over_budget:
            summary.over_budget_count += 1
        else:
            summary.under_budget_count += 1

        summary.entries.append(BudgetEntry(
            budget_period_id=period.id,
            budget_id=period.budget_id,
            name=period.name,
            total_allocated=period.effective_allocated,
            total_spent=period.total_spent,
            total_remaining=period.total_remaining,
            progress_percentage=period.progress_percentage,
            is_over_budget=period.is_over_budget,
            overage_amount=period.overage_amount,
            checklist_progress_percentage=period.checklist_progress_percentage,
        ))

    summary.progress_percentage = progress_percentage(summary.total_spent, summary.total_allocated)
    return summary


def calculate_budget_spent(
    budget_period: BudgetPeriod,
    transactions: Iterable[Transaction],
) -> Decimal:
    """
    Signed sum of splits assigned to the budget inside the period.

    Refunds (negative splits) reduce spending.
    """
    spent = ZERO
    for transaction in transactions:
        if transaction.owner_id != budget_period.owner_id:
            continue
        if not (budget_period.period_start <= transaction.transaction_date <= budget_period.period_end):
            continue
        for split in transaction.splits:
            if split.budget_id == budget_period.budget_id:
                spent += split.amount
    return spent


def _belongs_to(period: AnyPeriod, owner: Owner) -> bool:
    if owner.kind == OwnerKind.GROUP:
        return period.group_id == owner.id
    return period.owner_id == owner.id


def aggregate_summary(
    owner: Owner,
    source_period: SourcePeriod,
    periods: Iterable[AnyPeriod],
    as_of: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> PeriodSummary:
    """
    Build the summary for ``owner`` in ``source_period``.

    Periods of another owner or source period are ignored with a warning.
    """
    settings = settings or get_engine_settings()
    outflows, inflows, budgets = [], [], []

    for period in periods:
        if period.source_period_id != source_period.id or not _belongs_to(period, owner):
            logger.warning(
                "summary_period_ignored",
                period_id=period.id,
                owner_id=owner.id,
                source_period_id=source_period.id,
            )
            continue
        if isinstance(period, BudgetPeriod):
            budgets.append(period)
        elif period.is_inflow:
            inflows.append(period)
        else:
            outflows.append(period)

    key = attrgetter("id")
    outflow_summary = summarize_outflows(sorted(outflows, key=key), as_of=as_of, settings=settings)
    inflow_summary = summarize_inflows(sorted(inflows, key=key), as_of=as_of, settings=settings)
    budget_summary = summarize_budgets(sorted(budgets, key=key))

    total_income = inflow_summary.total_received
    total_expenses = outflow_summary.total_amount_paid + budget_summary.total_spent
    net_cash_flow = total_income - total_expenses

    return PeriodSummary(
        id=PeriodSummary.make_id(owner.id, source_period.period_type, source_period.id),
        owner=owner,
        source_period_id=source_period.id,
        period_type=source_period.period_type,
        period_start=source_period.start_date,
        period_end=source_period.end_date,
        outflows=outflow_summary,
        inflows=inflow_summary,
        budgets=budget_summary,
        total_income=total_income,
        total_expenses=total_expenses,
        net_cash_flow=net_cash_flow,
        savings_rate=ratio(net_cash_flow, total_income) if total_income > 0 else Decimal("0"),
    )
