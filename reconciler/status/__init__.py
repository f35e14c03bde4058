"""Status derivation for obligation periods."""

from reconciler.status.calculator import (
    PaymentBreakdown,
    derive_status,
    describe_occurrences,
    payment_breakdown,
)

__all__ = [
    "PaymentBreakdown",
    "derive_status",
    "describe_occurrences",
    "payment_breakdown",
]
