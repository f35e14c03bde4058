"""Transaction split repair."""

from reconciler.splits.redistributor import (
    SplitValidationResult,
    redistribute_splits,
    splits_are_valid,
    validate_splits,
)

__all__ = [
    "SplitValidationResult",
    "redistribute_splits",
    "splits_are_valid",
    "validate_splits",
]
