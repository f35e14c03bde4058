"""
Validation Result Models

Validation never fixes data. It reports issues; callers decide whether an
error-level issue aborts the unit of work.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'mismatch', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Shape validation (required fields, sane values)
    Stage 2: Reference validation (ids agree with each other)
    """

    subject_type: str = Field(..., description="e.g. 'obligation_period'")
    subject_id: str = Field(..., description="ID of the record validated")
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    shape_valid: bool = Field(..., description="Did shape validation pass?")
    reference_valid: bool = Field(..., description="Did reference validation pass?")
    is_valid: bool = Field(..., description="Overall validation result")

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def label(self) -> str:
        """Short failure label, e.g. 'obligation_period abc: obligation_id mismatch'."""
        errors = [i for i in self.issues if i.severity == "error"]
        if not errors:
            return f"{self.subject_type} {self.subject_id}: valid"
        details = ", ".join(f"{i.field} {i.issue_type}" for i in errors)
        return f"{self.subject_type} {self.subject_id}: {details}"
