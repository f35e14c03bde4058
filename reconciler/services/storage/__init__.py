"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for the
records the reconciliation flow reads and writes. Real backends implement
the same interfaces.
"""

from reconciler.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ObligationStorageInterface,
    PeriodRecord,
    PeriodStorageInterface,
    StorageError,
    StorageUnavailableError,
    TransactionStorageInterface,
)
from reconciler.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryObligationStorage,
    InMemoryPeriodStorage,
    InMemoryTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ObligationStorageInterface",
    "PeriodRecord",
    "PeriodStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "StorageUnavailableError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryObligationStorage",
    "InMemoryPeriodStorage",
    "InMemoryTransactionStorage",
]
