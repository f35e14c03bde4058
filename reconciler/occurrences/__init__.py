"""Occurrence scheduling, matching and payment classification."""

from reconciler.occurrences.classifier import classify, classify_payment
from reconciler.occurrences.matcher import (
    find_matching_occurrence_index,
    reconcile_occurrences,
)
from reconciler.occurrences.schedule import (
    adjust_for_weekend,
    build_obligation_period,
    calculate_occurrence_dates,
    calculate_occurrences_in_period,
    refresh_obligation_details,
    reschedule_obligation_period,
)

__all__ = [
    "adjust_for_weekend",
    "build_obligation_period",
    "calculate_occurrence_dates",
    "calculate_occurrences_in_period",
    "classify",
    "classify_payment",
    "find_matching_occurrence_index",
    "reconcile_occurrences",
    "refresh_obligation_details",
    "reschedule_obligation_period",
]
