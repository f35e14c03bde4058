"""
Data Models Package

This package contains all Pydantic models used by the Period Reconciler.
All data flowing through the engine must conform to these schemas.
"""

from reconciler.models.enums import (
    ChangeEntity,
    ChangeKind,
    Frequency,
    IncomeType,
    MatchedBy,
    ObligationKind,
    OwnerKind,
    PaymentType,
    PeriodStatus,
    PeriodType,
)
from reconciler.models.period import PeriodMetadata, SourcePeriod
from reconciler.models.transaction import Split, Transaction
from reconciler.models.obligation import Obligation, ObligationPeriod, Occurrence
from reconciler.models.budget import Budget, BudgetPeriod
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
from reconciler.models.validation import ValidationIssue, ValidationResult
from reconciler.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Vocabulary
    "ChangeEntity",
    "ChangeKind",
    "Frequency",
    "IncomeType",
    "MatchedBy",
    "ObligationKind",
    "OwnerKind",
    "PaymentType",
    "PeriodStatus",
    "PeriodType",
    # Calendar
    "PeriodMetadata",
    "SourcePeriod",
    # Transactions
    "Split",
    "Transaction",
    # Obligations
    "Obligation",
    "ObligationPeriod",
    "Occurrence",
    # Budgets
    "Budget",
    "BudgetPeriod",
    # Summaries
    "BudgetEntry",
    "BudgetSummary",
    "InflowEntry",
    "InflowSummary",
    "OutflowEntry",
    "OutflowSummary",
    "Owner",
    "PeriodSummary",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
