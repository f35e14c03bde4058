"""
Calendar Period Models

A SourcePeriod is a fixed, shared calendar interval. Every obligation period,
budget period and summary hangs off exactly one SourcePeriod.

DESIGN DECISION: SourcePeriods are immutable once generated. Boundaries are
stored as inclusive dates; the instant properties expose the same interval
as UTC datetimes (first day 00:00:00 to last day 23:59:59.999999).
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from reconciler.models.enums import PeriodType


class PeriodMetadata(BaseModel):
    """Type-specific indexing of a period within its year."""

    model_config = ConfigDict(frozen=True)

    month: Optional[int] = Field(default=None, ge=1, le=12)
    week_number: Optional[int] = Field(default=None, ge=1, le=54)
    bi_monthly_half: Optional[int] = Field(default=None, ge=1, le=2)
    week_start_day: int = Field(
        default=0,
        ge=0,
        le=6,
        description="0 = Sunday"
    )
    is_clipped: bool = Field(
        default=False,
        description="True when the period was cut short by the requested range"
    )


class SourcePeriod(BaseModel):
    """A calendar interval of one PeriodType."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="e.g. 2025M01, 2025BM01A, 2025W01")
    period_type: PeriodType
    start_date: date
    end_date: date
    year: int = Field(..., ge=1900, le=9999)
    metadata: PeriodMetadata = Field(default_factory=PeriodMetadata)

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.end_date < self.start_date:
            raise ValueError("Period end date cannot be before start date")
        return self

    @property
    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def start_instant(self) -> datetime:
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def end_instant(self) -> datetime:
        return datetime.combine(self.end_date, time.max, tzinfo=timezone.utc)

    def contains(self, day: date) -> bool:
        """Inclusive containment check."""
        return self.start_date <= day <= self.end_date

    def is_current(self, today: Optional[date] = None) -> bool:
        return self.contains(today or date.today())
