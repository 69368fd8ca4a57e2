"""
Write Batch

DESIGN DECISION: The engine never writes. It stages every create, update
and delete it wants into a WriteBatch, and the storage backend commits the
whole batch as one unit. The batch is a plain value: it holds no
connection and no lock, so discarding it is the same as cancelling.
"""

from enum import Enum
from typing import Any, Iterator, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class Collection(str, Enum):
    """Record collections known to the planner storage."""
    TRANSACTIONS = "transactions"
    RECURRING_MASTERS = "recurring_masters"
    PROJECTS = "projects"
    CLIENTS = "clients"


class WriteOp(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class StagedWrite(BaseModel):
    """One proposed write, keyed by record identity."""

    op: WriteOp
    collection: Collection
    record_id: str
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Full record for create, changed fields for update"
    )


def new_record_id() -> str:
    return str(uuid4())


class WriteBatch:
    """
    Ordered list of staged writes, committed atomically by storage.

    A batch bound to an owner may only touch that owner's records; the
    backend rejects the whole commit otherwise. An unbound batch is for
    seeding and maintenance.

    Usage:
        batch = WriteBatch(owner_id)
        master_id = batch.create(Collection.RECURRING_MASTERS, master)
        batch.update(Collection.TRANSACTIONS, tx.id, {"is_detached": True})
        await storage.commit(batch)
    """

    def __init__(self, owner_id: Optional[str] = None):
        self.owner_id = owner_id
        self._writes: list[StagedWrite] = []

    def create(self, collection: Collection, record: BaseModel) -> str:
        """
        Stage a new record and return the identity assigned to it.

        A record that already carries an id keeps it.
        """
        record_id: Optional[str] = getattr(record, "id", None) or new_record_id()
        data = record.model_dump()
        data["id"] = record_id
        self._writes.append(StagedWrite(
            op=WriteOp.CREATE,
            collection=collection,
            record_id=record_id,
            data=data,
        ))
        return record_id

    def update(self, collection: Collection, record_id: str, changes: dict[str, Any]) -> None:
        """Stage field-level changes to an existing record."""
        if not changes:
            return
        self._writes.append(StagedWrite(
            op=WriteOp.UPDATE,
            collection=collection,
            record_id=record_id,
            data=dict(changes),
        ))

    def delete(self, collection: Collection, record_id: str) -> None:
        self._writes.append(StagedWrite(
            op=WriteOp.DELETE,
            collection=collection,
            record_id=record_id,
        ))

    @property
    def writes(self) -> list[StagedWrite]:
        return list(self._writes)

    def writes_for(self, collection: Collection, op: Optional[WriteOp] = None) -> list[StagedWrite]:
        return [
            w for w in self._writes
            if w.collection == collection and (op is None or w.op == op)
        ]

    @property
    def is_empty(self) -> bool:
        return not self._writes

    def __len__(self) -> int:
        return len(self._writes)

    def __iter__(self) -> Iterator[StagedWrite]:
        return iter(self._writes)
