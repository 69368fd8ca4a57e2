"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Plug in any document store or database that can commit atomically
2. Use in-memory storage for testing
3. Keep the planner logic decoupled from persistence mechanics

The interface is intentionally small - reads scoped to one owner, plus a
single atomic commit of a staged WriteBatch. There is no per-record write
method, so a flow cannot half-apply its changes.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from cashflow.models.audit import AuditEvent
from cashflow.models.client import Client
from cashflow.models.common import TransactionType
from cashflow.models.project import Project
from cashflow.models.recurring import RecurringMaster
from cashflow.models.transaction import Transaction
from cashflow.services.storage.batch import WriteBatch


class PlannerStorageInterface(ABC):
    """
    Abstract interface for planner storage operations.

    Any storage implementation must implement these methods. All reads are
    scoped to one owner.
    """

    @abstractmethod
    async def query_transactions(
        self,
        owner_id: str,
        *,
        project_id: Optional[str] = None,
        recurring_master_id: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        is_settled: Optional[bool] = None,
        is_estimate: Optional[bool] = None,
    ) -> list[Transaction]:
        """
        List transactions matching every given filter.

        Args:
            owner_id: Owner scope
            project_id: Only transactions linked to this project
            recurring_master_id: Only instances of this recurring master
            transaction_type: Only income or only expense
            is_settled: Only settled (True) or unsettled (False)
            is_estimate: Only estimates (True) or firm records (False)

        Returns:
            Matching transactions ordered by transaction date

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, owner_id: str, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_project(self, owner_id: str, project_id: str) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_client(self, owner_id: str, client_id: str) -> Optional[Client]:
        pass

    @abstractmethod
    async def list_clients(self, owner_id: str) -> list[Client]:
        """Clients of the owner, in sort order."""
        pass

    @abstractmethod
    async def get_recurring_master(
        self,
        owner_id: str,
        master_id: str,
    ) -> Optional[RecurringMaster]:
        pass

    @abstractmethod
    async def list_recurring_masters(
        self,
        owner_id: str,
        active_only: bool = False,
    ) -> list[RecurringMaster]:
        pass

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> int:
        """
        Apply every staged write as one unit.

        Either all writes are applied or none are. A batch bound to an owner
        may only touch records of that owner.

        Args:
            batch: The staged writes

        Returns:
            Number of writes applied

        Raises:
            NotFoundError: If an update or delete targets a missing record,
                or a record of another owner
            DuplicateError: If a create reuses an existing identity
            StorageConnectionError: If the backend cannot be reached
            StorageError: For any other failure
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one project move).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'project', 'transaction')
            entity_id: The entity's ID
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
