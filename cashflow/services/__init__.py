"""Services package."""

from cashflow.services.storage import (
    AuditStorageInterface,
    Collection,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryPlannerStorage,
    NotFoundError,
    PlannerStorageInterface,
    StorageConnectionError,
    StorageError,
    WriteBatch,
)

__all__ = [
    "AuditStorageInterface",
    "Collection",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryPlannerStorage",
    "NotFoundError",
    "PlannerStorageInterface",
    "StorageConnectionError",
    "StorageError",
    "WriteBatch",
]
