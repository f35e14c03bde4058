"""
Split Redistributor

Keeps a transaction's splits summing exactly to the transaction amount.

DESIGN DECISION: Arithmetic is done in integer cents so the final sum is
exact. Every path ends in the same post-condition:
- the splits sum to the transaction amount
- while the amount is non-zero, no split is below one cent

Repairs, in order:
1. Already valid (within tolerance, no sub-cent split) -> unchanged
2. A lone split off by more than the adjustment ratio -> set to the amount
3. Splits total too much -> scale down proportionally, then fix residual
   cents starting from the last split
4. Splits total too little -> drop sub-cent splits; fold a sub-cent
   remainder into the largest split, otherwise add an unallocated split

Negative amounts are repaired on absolute values and re-signed.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.money import CENT, ZERO, from_cents, to_cents, to_money
from reconciler.models.transaction import Split

logger = structlog.get_logger(__name__)

UNALLOCATED_DESCRIPTION = "Unallocated"
UNALLOCATED_CATEGORY = "Uncategorized"


class SplitValidationResult(BaseModel):
    """Outcome of checking (and if needed repairing) a split list."""

    is_valid: bool = Field(..., description="True when the input needed no repair")
    redistributed_splits: list[Split] = Field(default_factory=list)
    original_total: Decimal = ZERO
    transaction_amount: Decimal = ZERO
    error: Optional[str] = None

    @property
    def was_modified(self) -> bool:
        return not self.is_valid


def _unallocated_split(amount: Decimal, siblings: list[Split], settings: EngineSettings) -> Split:
    """Catch-all split; its id is derived from the splits it joins so repairs repeat exactly."""
    taken = {s.split_id for s in siblings}
    position = len(siblings)
    while f"unallocated_{position}" in taken:
        position += 1
    return Split(
        split_id=f"unallocated_{position}",
        budget_id=settings.unassigned_budget_id,
        amount=amount,
        description=UNALLOCATED_DESCRIPTION,
        category=UNALLOCATED_CATEGORY,
    )


def _with_amount(split: Split, amount: Decimal) -> Split:
    return split.model_copy(update={"amount": to_money(amount)})


def splits_are_valid(
    amount: Decimal,
    splits: list[Split],
    settings: Optional[EngineSettings] = None,
) -> bool:
    """True when the splits already satisfy the sum and minimum-split rules."""
    settings = settings or get_engine_settings()
    if not splits:
        return False
    total = sum((s.amount for s in splits), ZERO)
    if abs(total - amount) > settings.amount_tolerance:
        return False
    if amount != 0:
        sign = 1 if amount > 0 else -1
        if any(s.amount * sign < CENT for s in splits):
            return False
    return True


def _scale_proportionally(target_cents: int, splits: list[Split]) -> list[Split]:
    """
    Scale positive splits to exactly ``target_cents``.

    With fewer cents than splits, only the largest ``target_cents`` splits
    survive so every split can hold at least one cent.
    """
    if target_cents <= 0:
        return [_with_amount(s, ZERO) for s in splits]

    if len(splits) > target_cents:
        ranked = sorted(range(len(splits)), key=lambda i: (-splits[i].amount, i))
        keep = sorted(ranked[:target_cents])
        splits = [splits[i] for i in keep]

    weights = [max(to_cents(s.amount), 0) for s in splits]
    weight_total = sum(weights)
    if weight_total == 0:
        weights = [1] * len(splits)
        weight_total = len(splits)

    cents = [
        int((Decimal(target_cents) * w / weight_total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        for w in weights
    ]
    cents = [max(c, 1) for c in cents]

    residual = target_cents - sum(cents)
    position = len(cents) - 1
    while residual != 0:
        if residual > 0:
            cents[position] += 1
            residual -= 1
        elif cents[position] > 1:
            cents[position] -= 1
            residual += 1
        position = position - 1 if position > 0 else len(cents) - 1

    return [_with_amount(s, from_cents(c)) for s, c in zip(splits, cents)]


def _fill_underage(amount: Decimal, splits: list[Split], settings: EngineSettings) -> list[Split]:
    valid = [s for s in splits if s.amount >= CENT]
    remainder = amount - sum((s.amount for s in valid), ZERO)

    if remainder < CENT and valid:
        largest = max(range(len(valid)), key=lambda i: (valid[i].amount, -i))
        valid[largest] = _with_amount(valid[largest], valid[largest].amount + remainder)
        return valid

    return valid + [_unallocated_split(remainder, valid, settings)]


def _redistribute_positive(amount: Decimal, splits: list[Split], settings: EngineSettings) -> list[Split]:
    if not splits:
        return [_unallocated_split(amount, [], settings)]

    total = sum((s.amount for s in splits), ZERO)

    if len(splits) == 1 and amount > 0:
        if abs(total - amount) / amount > settings.single_split_adjustment_ratio:
            return [_with_amount(splits[0], amount)]

    if total > amount:
        return _scale_proportionally(to_cents(amount), splits)
    return _fill_underage(amount, splits, settings)


def redistribute_splits(
    amount: Decimal,
    splits: list[Split],
    settings: Optional[EngineSettings] = None,
) -> list[Split]:
    """
    Return splits that sum exactly to ``amount``.

    Valid input is returned unchanged (as copies). Never raises for
    arithmetic edge cases: empty input yields a single unallocated split.
    """
    settings = settings or get_engine_settings()
    amount = to_money(amount)
    splits = [s.model_copy() for s in splits]

    if splits_are_valid(amount, splits, settings):
        return splits

    if amount == 0:
        if not splits:
            return [_unallocated_split(ZERO, [], settings)]
        return [_with_amount(s, ZERO) for s in splits]

    sign = 1 if amount > 0 else -1
    positive = [_with_amount(s, s.amount * sign) for s in splits]
    repaired = _redistribute_positive(amount * sign, positive, settings)

    if not splits_are_valid(amount * sign, repaired, settings):
        logger.warning("split_repair_fallback", amount=str(amount), split_count=len(repaired))
        repaired = _scale_proportionally(to_cents(amount * sign), repaired)

    return [_with_amount(s, s.amount * sign) for s in repaired]


def validate_splits(
    amount: Decimal,
    splits: list[Split],
    settings: Optional[EngineSettings] = None,
) -> SplitValidationResult:
    """Check ``splits`` against ``amount`` and repair them if needed."""
    settings = settings or get_engine_settings()
    amount = to_money(amount)
    original_total = sum((s.amount for s in splits), ZERO)

    if splits_are_valid(amount, splits, settings):
        return SplitValidationResult(
            is_valid=True,
            redistributed_splits=[s.model_copy() for s in splits],
            original_total=original_total,
            transaction_amount=amount,
        )

    if not splits:
        error = "No splits provided"
    elif abs(original_total - amount) > settings.amount_tolerance:
        error = f"Splits total {original_total} does not match transaction amount {amount}"
    else:
        error = "Split below the one cent minimum"

    return SplitValidationResult(
        is_valid=False,
        redistributed_splits=redistribute_splits(amount, splits, settings),
        original_total=original_total,
        transaction_amount=amount,
        error=error,
    )
