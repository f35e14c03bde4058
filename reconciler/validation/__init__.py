"""Validation package."""

from reconciler.validation.validator import (
    ReconciliationValidationError,
    ReconciliationValidator,
)

__all__ = ["ReconciliationValidationError", "ReconciliationValidator"]
