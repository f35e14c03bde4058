"""
Canonical Vocabulary

DESIGN DECISION: Every closed set of values the engine uses is defined once,
here. Status strings, payment classifications and period types are never
redeclared in other modules; they import from this one.
"""

from enum import Enum

class PeriodType(str, Enum):
    """Calendar granularity of a SourcePeriod."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    BI_MONTHLY = "bi_monthly"

class PaymentType(str, Enum):
    """
    Timing classification of a matched payment.

    Advisory only: it never changes totals or paid status.
    """
    REGULAR = "regular"
    CATCH_UP = "catch_up"
    ADVANCE = "advance"
    EXTRA_PRINCIPAL = "extra_principal"

class PeriodStatus(str, Enum):
    """Derived status of an obligation period."""
    PENDING = "pending"
    DUE_SOON = "due_soon"
    PARTIAL = "partial"
    PAID = "paid"
    PAID_EARLY = "paid_early"
    OVERDUE = "overdue"

class ObligationKind(str, Enum):
    """Direction of money for a recurring obligation."""
    BILL = "bill"        # outflow
    INCOME = "income"    # inflow

class Frequency(str, Enum):
    """How often an obligation recurs."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMI_MONTHLY = "semi_monthly"
    MONTHLY = "monthly"
    ANNUALLY = "annually"
    UNKNOWN = "unknown"

class MatchedBy(str, Enum):
    """Who linked a transaction to an occurrence."""
    SYSTEM = "system"
    USER = "user"

class OwnerKind(str, Enum):
    """Owner of periods and summaries."""
    USER = "user"
    GROUP = "group"

class IncomeType(str, Enum):
    """Coarse income classification for summary entries."""
    SALARY = "salary"
    FREELANCE = "freelance"
    INVESTMENT = "investment"
    OTHER = "other"

class ChangeEntity(str, Enum):
    """Record types whose changes trigger a recompute."""
    OBLIGATION = "obligation"
    OBLIGATION_PERIOD = "obligation_period"
    TRANSACTION = "transaction"

class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
