"""
Shared fixtures for the Period Reconciler test-suite.

Test strategy:
1. Unit tests for the pure calculation modules (calendar, matcher, splits)
2. Flow tests for the orchestrator against in-memory storage
3. No real storage backends in tests
"""

from datetime import date
from decimal import Decimal

import pytest

from reconciler.config import EngineSettings, StorageSettings, get_engine_settings, get_settings
from reconciler.models.enums import Frequency, ObligationKind, PeriodType
from reconciler.models.obligation import Obligation, ObligationPeriod
from reconciler.models.period import SourcePeriod
from reconciler.models.transaction import Split, Transaction
from reconciler.occurrences import build_obligation_period
from reconciler.periods import generate_periods, period_for_date


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    get_engine_settings.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine_settings.cache_clear()


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def fast_storage_settings() -> StorageSettings:
    """Retry policy with no backoff so retry tests run instantly."""
    return StorageSettings(retry_attempts=3, retry_wait_min_seconds=0, retry_wait_max_seconds=0)


@pytest.fixture
def january() -> SourcePeriod:
    return period_for_date(PeriodType.MONTHLY, date(2025, 1, 15))


@pytest.fixture
def rent() -> Obligation:
    return Obligation(
        id="rent",
        owner_id="user_1",
        description="Apartment rent",
        merchant="Landlord LLC",
        category="Housing",
        amount=Decimal("2000.00"),
        frequency=Frequency.MONTHLY,
        first_date=date(2025, 1, 1),
    )


@pytest.fixture
def salary() -> Obligation:
    return Obligation(
        id="salary",
        owner_id="user_1",
        kind=ObligationKind.INCOME,
        description="Acme payroll",
        category="Payroll",
        amount=Decimal("3000.00"),
        frequency=Frequency.MONTHLY,
        first_date=date(2025, 1, 15),
    )


@pytest.fixture
def biweekly_loan() -> Obligation:
    """$2000 every two weeks from Friday 3 January 2025."""
    return Obligation(
        id="loan",
        owner_id="user_1",
        description="Car loan",
        amount=Decimal("2000.00"),
        frequency=Frequency.BIWEEKLY,
        first_date=date(2025, 1, 3),
    )


@pytest.fixture
def loan_period(biweekly_loan) -> ObligationPeriod:
    """January clipped to the 20th: occurrences due 3 and 17 January."""
    source = generate_periods(PeriodType.MONTHLY, date(2025, 1, 1), date(2025, 1, 20))[0]
    return build_obligation_period(biweekly_loan, source)


@pytest.fixture
def make_transaction():
    """Factory for transactions, optionally split toward one obligation."""

    def _make(
        transaction_id: str,
        day: date,
        amount,
        obligation_id: str = None,
        owner_id: str = "user_1",
    ) -> Transaction:
        splits = []
        if obligation_id:
            splits.append(Split(
                split_id=f"{transaction_id}_split",
                obligation_id=obligation_id,
                amount=amount,
            ))
        return Transaction(
            id=transaction_id,
            owner_id=owner_id,
            transaction_date=day,
            amount=amount,
            description=f"Payment {transaction_id}",
            splits=splits,
        )

    return _make
