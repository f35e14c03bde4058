"""Per-owner period summaries."""

from reconciler.summaries.aggregator import (
    aggregate_summary,
    calculate_budget_spent,
    classify_income,
    progress_percentage,
    summarize_budgets,
    summarize_inflows,
    summarize_outflows,
)

__all__ = [
    "aggregate_summary",
    "calculate_budget_spent",
    "classify_income",
    "progress_percentage",
    "summarize_budgets",
    "summarize_inflows",
    "summarize_outflows",
]
