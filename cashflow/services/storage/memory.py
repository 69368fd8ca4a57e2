"""
In-Memory Storage Implementation

Dict-backed reference backend. Used by the test suite and as the default
backend of the application components.

Commits are applied to a working copy first and swapped in only when every
staged write succeeded, so a failed commit leaves the store untouched.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from pydantic import BaseModel, ValidationError

from cashflow.models.audit import AuditEvent
from cashflow.models.client import Client
from cashflow.models.common import TransactionType
from cashflow.models.project import Project
from cashflow.models.recurring import RecurringMaster
from cashflow.models.transaction import Transaction
from cashflow.services.storage.batch import (
    Collection,
    StagedWrite,
    WriteBatch,
    WriteOp,
    new_record_id,
)
from cashflow.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PlannerStorageInterface,
    StorageError,
)


MODEL_TYPES: dict[Collection, type[BaseModel]] = {
    Collection.TRANSACTIONS: Transaction,
    Collection.RECURRING_MASTERS: RecurringMaster,
    Collection.PROJECTS: Project,
    Collection.CLIENTS: Client,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPlannerStorage(PlannerStorageInterface):
    """
    Planner storage held in process memory.

    Records are kept as validated pydantic models; reads return copies so
    callers cannot mutate stored state behind the store's back.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._records: dict[Collection, dict[str, BaseModel]] = {
            collection: {} for collection in Collection
        }
        self.commit_count = 0

    def put(self, collection: Collection, record: BaseModel) -> BaseModel:
        """
        Insert or replace a record directly, outside any batch.

        Meant for seeding fixtures. Assigns an id when the record has none.
        """
        record_id = getattr(record, "id", None) or new_record_id()
        stored = record.model_copy(update={"id": record_id})
        self._records[collection][record_id] = stored
        return stored.model_copy()

    def _owned(self, collection: Collection, owner_id: str) -> list[BaseModel]:
        return [
            r for r in self._records[collection].values()
            if getattr(r, "owner_id", None) == owner_id
        ]

    def _get(self, collection: Collection, owner_id: str, record_id: str) -> Optional[BaseModel]:
        record = self._records[collection].get(record_id)
        if record is None or getattr(record, "owner_id", None) != owner_id:
            return None
        return record.model_copy()

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
        results = []
        for tx in self._owned(Collection.TRANSACTIONS, owner_id):
            if project_id is not None and tx.project_id != project_id:
                continue
            if recurring_master_id is not None and tx.recurring_master_id != recurring_master_id:
                continue
            if transaction_type is not None and tx.type != transaction_type:
                continue
            if is_settled is not None and tx.is_settled != is_settled:
                continue
            if is_estimate is not None and tx.is_estimate != is_estimate:
                continue
            results.append(tx.model_copy())

        results.sort(key=lambda t: (t.transaction_date is None, t.transaction_date or date.min))
        return results

    async def get_transaction(self, owner_id: str, transaction_id: str) -> Optional[Transaction]:
        return self._get(Collection.TRANSACTIONS, owner_id, transaction_id)

    async def get_project(self, owner_id: str, project_id: str) -> Optional[Project]:
        return self._get(Collection.PROJECTS, owner_id, project_id)

    async def get_client(self, owner_id: str, client_id: str) -> Optional[Client]:
        return self._get(Collection.CLIENTS, owner_id, client_id)

    async def list_clients(self, owner_id: str) -> list[Client]:
        clients = [c.model_copy() for c in self._owned(Collection.CLIENTS, owner_id)]
        clients.sort(key=lambda c: (c.sort_order is None, c.sort_order or 0, c.name))
        return clients

    async def get_recurring_master(
        self,
        owner_id: str,
        master_id: str,
    ) -> Optional[RecurringMaster]:
        return self._get(Collection.RECURRING_MASTERS, owner_id, master_id)

    async def list_recurring_masters(
        self,
        owner_id: str,
        active_only: bool = False,
    ) -> list[RecurringMaster]:
        return [
            m.model_copy() for m in self._owned(Collection.RECURRING_MASTERS, owner_id)
            if m.is_active or not active_only
        ]

    def _apply(
        self,
        working: dict[Collection, dict[str, BaseModel]],
        write: StagedWrite,
        now: datetime,
        owner_id: Optional[str],
    ) -> None:
        records = working[write.collection]
        model_type = MODEL_TYPES[write.collection]

        if owner_id is not None and write.data.get("owner_id", owner_id) != owner_id:
            raise StorageError(
                f"{write.op.value} on {write.collection.value} record {write.record_id} "
                f"names another owner"
            )

        if write.op == WriteOp.CREATE:
            if write.record_id in records:
                raise DuplicateError(
                    f"{write.collection.value} record already exists: {write.record_id}"
                )
            data = {**write.data, "id": write.record_id}
            if "created_at" in model_type.model_fields:
                data["created_at"] = now
            if "updated_at" in model_type.model_fields:
                data["updated_at"] = now
            records[write.record_id] = model_type.model_validate(data)
            return

        existing = records.get(write.record_id)
        if existing is None or (owner_id is not None and existing.owner_id != owner_id):
            raise NotFoundError(f"{write.collection.value} record not found: {write.record_id}")

        if write.op == WriteOp.DELETE:
            del records[write.record_id]
            return

        data = {**existing.model_dump(), **write.data}
        if "updated_at" in model_type.model_fields:
            data["updated_at"] = now
        records[write.record_id] = model_type.model_validate(data)

    async def commit(self, batch: WriteBatch) -> int:
        working = {
            collection: dict(records) for collection, records in self._records.items()
        }
        now = self._clock()

        for write in batch:
            try:
                self._apply(working, write, now, batch.owner_id)
            except ValidationError as e:
                raise StorageError(
                    f"Invalid {write.op.value} on {write.collection.value} "
                    f"record {write.record_id}: {e}"
                )

        self._records = working
        self.commit_count += 1
        return len(batch)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in process memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
