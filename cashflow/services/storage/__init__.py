"""
Storage Services Package

Provides the abstract storage interfaces, the WriteBatch the planner stages
its writes into, and an in-memory implementation. Any backend that can
commit a batch atomically can be swapped in behind the interface.
"""

from cashflow.services.storage.batch import (
    Collection,
    StagedWrite,
    WriteBatch,
    WriteOp,
)
from cashflow.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PlannerStorageInterface,
    StorageConnectionError,
    StorageError,
)
from cashflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPlannerStorage,
)

__all__ = [
    # Batching
    "Collection",
    "StagedWrite",
    "WriteBatch",
    "WriteOp",
    # Interfaces
    "AuditStorageInterface",
    "PlannerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPlannerStorage",
]
