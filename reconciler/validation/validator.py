"""
Two-Stage Validation

DESIGN DECISION: Records are checked in two distinct stages before they are
reconciled:

STAGE 1 - SHAPE VALIDATION:
- Required values present
- Occurrences sit inside their period
- Split lists are usable

STAGE 2 - REFERENCE VALIDATION:
- A period belongs to the obligation it is reconciled against
- Owners agree between the period and its obligation

Stage 2 only runs when stage 1 passes. An error-level issue aborts that unit
of work only; the caller records the failure label and moves on.

IMPORTANT: Validation NEVER silently fixes issues. Split repair is the
redistributor's job and is audited separately.
"""

from typing import Optional

from reconciler.config import EngineSettings, get_engine_settings
from reconciler.models.obligation import Obligation, ObligationPeriod
from reconciler.models.transaction import Transaction
from reconciler.models.validation import ValidationIssue, ValidationResult


class ReconciliationValidationError(ValueError):
    """Raised when a unit of work fails validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        self.issues = result.issues
        super().__init__(result.label)

    @property
    def label(self) -> str:
        return self.result.label


class ReconciliationValidator:
    """
    Validates obligations, obligation periods and transactions.

    Stateless apart from the engine thresholds it reads.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self._settings = settings or get_engine_settings()

    # -------------------------------------------------------------------------
    # Obligation periods
    # -------------------------------------------------------------------------

    def _validate_period_shape(
        self,
        period: ObligationPeriod,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: occurrences must be unique and inside the period bounds.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        seen = set()
        for occurrence in period.occurrences:
            if occurrence.id in seen:
                issues.append(ValidationIssue(
                    field="occurrences",
                    issue_type="duplicate",
                    message=f"Occurrence {occurrence.id} appears more than once",
                    severity="error",
                ))
            seen.add(occurrence.id)

            if not (period.period_start <= occurrence.due_date <= period.period_end):
                issues.append(ValidationIssue(
                    field="occurrences",
                    issue_type="out_of_range",
                    message=(
                        f"Occurrence {occurrence.id} due {occurrence.due_date} falls outside "
                        f"{period.period_start}..{period.period_end}"
                    ),
                    severity="error",
                    suggested_fix="Regenerate the period from its obligation",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_period_references(
        self,
        period: ObligationPeriod,
        obligation: Obligation,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: the period must belong to this obligation and owner.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if period.obligation_id != obligation.id:
            issues.append(ValidationIssue(
                field="obligation_id",
                issue_type="mismatch",
                message=(
                    f"Period {period.id} belongs to obligation {period.obligation_id}, "
                    f"not {obligation.id}"
                ),
                severity="error",
            ))

        if period.owner_id != obligation.owner_id:
            issues.append(ValidationIssue(
                field="owner_id",
                issue_type="mismatch",
                message=(
                    f"Period owner {period.owner_id} differs from obligation owner "
                    f"{obligation.owner_id}"
                ),
                severity="error",
            ))

        if period.kind != obligation.kind:
            issues.append(ValidationIssue(
                field="kind",
                issue_type="mismatch",
                message=f"Period is {period.kind.value} but obligation is {obligation.kind.value}",
                severity="warning",
            ))

        if not obligation.is_active:
            issues.append(ValidationIssue(
                field="is_active",
                issue_type="inactive",
                message=f"Obligation {obligation.id} is inactive",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate_obligation_period(
        self,
        period: ObligationPeriod,
        obligation: Obligation,
    ) -> ValidationResult:
        """Run both stages for a period about to be reconciled."""
        all_issues = []

        shape_valid, shape_issues = self._validate_period_shape(period)
        all_issues.extend(shape_issues)

        reference_valid = False
        if shape_valid:
            reference_valid, reference_issues = self._validate_period_references(period, obligation)
            all_issues.extend(reference_issues)

        return ValidationResult(
            subject_type="obligation_period",
            subject_id=period.id,
            shape_valid=shape_valid,
            reference_valid=reference_valid,
            is_valid=shape_valid and reference_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    def require_valid_period(self, period: ObligationPeriod, obligation: Obligation) -> ValidationResult:
        """validate_obligation_period, raising ReconciliationValidationError on errors."""
        result = self.validate_obligation_period(period, obligation)
        if result.has_errors:
            raise ReconciliationValidationError(result)
        return result

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def validate_transaction(self, transaction: Transaction) -> ValidationResult:
        """
        Check a transaction's split list.

        Problems here are warnings: the redistributor repairs them.
        """
        issues = []
        tolerance = self._settings.amount_tolerance

        if not transaction.splits:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="missing",
                message=f"Transaction {transaction.id} has no splits",
                severity="warning",
                suggested_fix="An unallocated split will be created",
            ))
        else:
            difference = abs(transaction.splits_total - transaction.amount)
            if difference > tolerance:
                issues.append(ValidationIssue(
                    field="splits",
                    issue_type="sum_mismatch",
                    message=(
                        f"Splits total {transaction.splits_total} but transaction "
                        f"amount is {transaction.amount}"
                    ),
                    severity="warning",
                    suggested_fix="Splits will be redistributed",
                ))

            split_ids = [s.split_id for s in transaction.splits]
            if len(split_ids) != len(set(split_ids)):
                issues.append(ValidationIssue(
                    field="splits",
                    issue_type="duplicate",
                    message=f"Transaction {transaction.id} repeats a split id",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            subject_type="transaction",
            subject_id=transaction.id,
            shape_valid=is_valid,
            reference_valid=True,
            is_valid=is_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )

    def get_summary(self, result: ValidationResult) -> str:
        """One line per issue, errors first, for logs and failure lists."""
        if not result.issues:
            return f"{result.subject_type} {result.subject_id}: all checks passed"
        order = {"error": 0, "warning": 1, "info": 2}
        lines = [
            f"[{issue.severity}] {issue.field}: {issue.message}"
            for issue in sorted(result.issues, key=lambda i: order[i.severity])
        ]
        return "\n".join(lines)
