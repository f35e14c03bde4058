"""Services package."""

from reconciler.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryObligationStorage,
    InMemoryPeriodStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    ObligationStorageInterface,
    PeriodStorageInterface,
    StorageError,
    StorageUnavailableError,
    TransactionStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryObligationStorage",
    "InMemoryPeriodStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "ObligationStorageInterface",
    "PeriodStorageInterface",
    "StorageError",
    "StorageUnavailableError",
    "TransactionStorageInterface",
]
