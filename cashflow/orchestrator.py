"""
Main Orchestrator for the Cash-Flow Planner

This module ties the engine to storage and defines the end-to-end flows
for:
1. Recurring transactions (create series, edit one / edit future,
   delete series, auto-extend)
2. Projects (create with expected income, edit, move on the calendar,
   change status, delete)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every flow stages its writes into ONE WriteBatch and commits once
- Settled transactions are never rewritten by a flow
- Detached instances are never rewritten by a series-wide edit
- Every commit is audited, including the failed ones

Commits are retried on connection errors only; any other error
propagates to the caller (except in move_project, which reports it).
"""

from enum import Enum
from typing import Any, Optional, Sequence
from uuid import UUID

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cashflow.audit import AuditLogger, configure_logging, create_correlation_id
from cashflow.config import EngineSettings, StorageSettings, get_settings
from cashflow.engine.dates import DateLike
from cashflow.engine.recalculation import (
    day_difference,
    recalculate_settlement,
    shift_dates,
)
from cashflow.engine.recurrence import (
    generate_extension_transactions,
    generate_transactions_from_master,
    needs_auto_extension,
)
from cashflow.engine.settlement import settlement_date_for_client
from cashflow.models.client import Client, find_client
from cashflow.models.common import TransactionType
from cashflow.models.project import Project, ProjectStatus
from cashflow.models.recurring import RecurringMaster
from cashflow.models.results import MoveProjectResult
from cashflow.models.transaction import Transaction
from cashflow.services.storage import (
    AuditStorageInterface,
    Collection,
    InMemoryAuditStorage,
    InMemoryPlannerStorage,
    NotFoundError,
    PlannerStorageInterface,
    StorageConnectionError,
    WriteBatch,
)


logger = structlog.get_logger(__name__)


class UpdateMode(str, Enum):
    """How an edit to one recurring instance is applied."""
    SINGLE = "single"    # this instance only; it becomes detached
    FUTURE = "future"    # the master and every later editable instance


class NotRecurringTransactionError(ValueError):
    """A series operation was requested for a one-off transaction."""
    pass


# Transaction field -> recurring master field, for "edit future"
MASTER_FIELD_MAP = {
    "amount": "base_amount",
    "client_id": "client_id",
    "memo": "memo",
    "type": "type",
}

# Fields no edit may change
PROTECTED_FIELDS = frozenset({
    "id",
    "owner_id",
    "recurring_master_id",
    "recurring_instance_date",
    "created_at",
    "updated_at",
})

# Per-instance dates cannot be copied onto a whole series
SERIES_EXCLUDED_FIELDS = frozenset({
    "transaction_date",
    "settlement_date",
    "is_settled",
    "is_detached",
})

PROJECT_SYNC_FIELDS = frozenset({"end_date", "estimated_amount", "title"})

MOVE_FAILED = "Failed to move the project"


class _BatchFlow:
    """Shared commit handling for the flows."""

    def __init__(
        self,
        storage: PlannerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        engine_settings: Optional[EngineSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
    ):
        settings = None
        if engine_settings is None or storage_settings is None:
            settings = get_settings()
        self._storage = storage
        self._audit_logger = audit_logger
        self._engine = engine_settings or settings.engine
        retry_policy = storage_settings or settings.storage

        self._commit_with_retry = retry(
            stop=stop_after_attempt(retry_policy.commit_retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=retry_policy.commit_retry_min_wait_seconds,
                max=retry_policy.commit_retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(StorageConnectionError),
            reraise=True,
        )(self._storage.commit)

    async def _commit(
        self,
        batch: WriteBatch,
        owner_id: str,
        operation: str,
        correlation_id: UUID,
    ) -> int:
        """Commit a batch, auditing a failure before re-raising it."""
        try:
            return await self._commit_with_retry(batch)
        except Exception as e:
            logger.error(
                "batch_commit_failed",
                owner_id=owner_id,
                operation=operation,
                error=str(e),
                staged_writes=len(batch),
            )
            if self._audit_logger:
                await self._audit_logger.log_commit_failed(
                    owner_id=owner_id,
                    operation=operation,
                    error_message=str(e),
                    staged_writes=len(batch),
                    correlation_id=correlation_id,
                )
            raise


class RecurringTransactionFlow(_BatchFlow):
    """
    Orchestrates recurring transaction series.

    Flow:
    1. Create → master + one bounded window of instances, one commit
    2. Edit  → single (detach one) or future (master + later instances)
    3. Delete → master + unsettled instances; settled history stays
    4. Auto-extend → roll open-ended series forward before they run out
    """

    async def create_recurring_with_transactions(
        self,
        owner_id: str,
        master_input: RecurringMaster,
        clients: Sequence[Client],
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Create a recurring master and its first window of instances.

        Returns:
            The new master's id
        """
        correlation_id = correlation_id or create_correlation_id()

        batch = WriteBatch(owner_id)
        master = master_input.model_copy(update={"owner_id": owner_id})
        master_id = batch.create(Collection.RECURRING_MASTERS, master)
        master = master.model_copy(update={"id": master_id})

        instances = generate_transactions_from_master(
            master,
            clients,
            owner_id,
            max_months=self._engine.occurrence_window_months,
            tax_rate=self._engine.tax_rate,
        )
        for tx in instances:
            batch.create(Collection.TRANSACTIONS, tx)

        await self._commit(batch, owner_id, "create_recurring", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_recurring_created(
                owner_id=owner_id,
                master_id=master_id,
                title=master.title,
                instance_count=len(instances),
                correlation_id=correlation_id,
            )
        return master_id

    async def update_recurring_transaction(
        self,
        owner_id: str,
        transaction: Transaction,
        changes: dict[str, Any],
        mode: UpdateMode,
        clients: Sequence[Client],
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Apply an edit to a recurring instance.

        SINGLE updates only this instance and marks it detached, so later
        series edits and recalculations leave it alone.

        FUTURE updates the master (amount, client, memo, type) and every
        unsettled, non-detached instance scheduled on or after this one.
        When the client changes, their settlement dates are recomputed.

        Returns:
            Number of transactions updated

        Raises:
            NotRecurringTransactionError: If the transaction has no master
            ValueError: If changes touch protected fields, or FUTURE mode
                is asked to copy per-instance fields onto the series
        """
        if not transaction.recurring_master_id:
            raise NotRecurringTransactionError(
                "This is a one-off transaction; it has no recurring series to update"
            )
        mode = UpdateMode(mode)
        correlation_id = correlation_id or create_correlation_id()

        protected = PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise ValueError(f"Fields cannot be edited: {sorted(protected)}")

        batch = WriteBatch(owner_id)
        master_id = transaction.recurring_master_id

        if mode == UpdateMode.SINGLE:
            batch.update(Collection.TRANSACTIONS, transaction.id, {**changes, "is_detached": True})
            await self._commit(batch, owner_id, "update_recurring_single", correlation_id)
            if self._audit_logger:
                await self._audit_logger.log_instance_detached(
                    owner_id=owner_id,
                    transaction_id=transaction.id,
                    master_id=master_id,
                    fields=sorted(changes),
                    correlation_id=correlation_id,
                )
            return 1

        per_instance = SERIES_EXCLUDED_FIELDS.intersection(changes)
        if per_instance:
            raise ValueError(
                f"Fields cannot be applied to a whole series: {sorted(per_instance)}"
            )

        master_changes = {
            MASTER_FIELD_MAP[field]: value
            for field, value in changes.items()
            if field in MASTER_FIELD_MAP
        }
        batch.update(Collection.RECURRING_MASTERS, master_id, master_changes)

        new_client = None
        if "client_id" in changes:
            new_client = find_client(changes["client_id"], clients)

        siblings = await self._storage.query_transactions(
            owner_id,
            recurring_master_id=master_id,
            is_settled=False,
        )
        edited_from = transaction.recurring_instance_date
        updated = 0
        for sibling in siblings:
            if sibling.recurring_instance_date is None or edited_from is None:
                continue
            if sibling.recurring_instance_date < edited_from:
                continue
            if sibling.is_detached:
                continue

            sibling_changes = dict(changes)
            if new_client and sibling.transaction_date:
                sibling_changes["settlement_date"] = settlement_date_for_client(
                    sibling.transaction_date, new_client
                )
            batch.update(Collection.TRANSACTIONS, sibling.id, sibling_changes)
            updated += 1

        await self._commit(batch, owner_id, "update_recurring_future", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_series_updated(
                owner_id=owner_id,
                master_id=master_id,
                updated_count=updated,
                fields=sorted(changes),
                correlation_id=correlation_id,
            )
        return updated

    async def delete_recurring_with_transactions(
        self,
        owner_id: str,
        master_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a master and its unsettled instances.

        Returns:
            Number of instances deleted

        Raises:
            NotFoundError: If the master does not exist
        """
        correlation_id = correlation_id or create_correlation_id()

        instances = await self._storage.query_transactions(
            owner_id,
            recurring_master_id=master_id,
            is_settled=False,
        )

        batch = WriteBatch(owner_id)
        batch.delete(Collection.RECURRING_MASTERS, master_id)
        for tx in instances:
            batch.delete(Collection.TRANSACTIONS, tx.id)

        await self._commit(batch, owner_id, "delete_recurring", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_recurring_deleted(
                owner_id=owner_id,
                master_id=master_id,
                deleted_count=len(instances),
                correlation_id=correlation_id,
            )
        return len(instances)

    async def auto_extend_recurring_transactions(
        self,
        owner_id: str,
        masters: Sequence[RecurringMaster],
        transactions: Sequence[Transaction],
        clients: Sequence[Client],
        now: DateLike,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Extend every open-ended master whose horizon is running out.

        Commits only when at least one transaction was generated.

        Returns:
            Number of transactions created
        """
        correlation_id = correlation_id or create_correlation_id()

        batch = WriteBatch(owner_id)
        extended: list[str] = []
        created = 0

        for master in masters:
            if not needs_auto_extension(
                master,
                transactions,
                self._engine.extension_threshold_months,
                now=now,
            ):
                continue

            drafts = generate_extension_transactions(
                master,
                transactions,
                clients,
                owner_id,
                extension_months=self._engine.extension_months,
                tax_rate=self._engine.tax_rate,
            )
            for tx in drafts:
                batch.create(Collection.TRANSACTIONS, tx)
            if drafts:
                extended.append(master.id)
                created += len(drafts)

        if created == 0:
            return 0

        await self._commit(batch, owner_id, "auto_extend", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_auto_extension(
                owner_id=owner_id,
                created_count=created,
                master_ids=extended,
                correlation_id=correlation_id,
            )
        return created


class ProjectFlow(_BatchFlow):
    """
    Orchestrates projects and the expected income linked to them.

    The project's end (delivery) date is the accrual date of its income;
    the client's payment terms turn it into the settlement date.
    """

    async def create_project(
        self,
        owner_id: str,
        project_input: Project,
        client: Client,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Create a project together with its expected income transaction.

        Returns:
            The new project's id

        Raises:
            ValueError: If the project has no end date
        """
        if project_input.end_date is None:
            raise ValueError("A project needs an end date to schedule its income")
        correlation_id = correlation_id or create_correlation_id()

        batch = WriteBatch(owner_id)
        project = project_input.model_copy(update={
            "owner_id": owner_id,
            "client_id": project_input.client_id or client.id,
        })
        project_id = batch.create(Collection.PROJECTS, project)

        income = Transaction(
            owner_id=owner_id,
            type=TransactionType.INCOME,
            amount=project.estimated_amount,
            tax_rate=self._engine.tax_rate,
            transaction_date=project.end_date,
            settlement_date=settlement_date_for_client(project.end_date, client),
            is_settled=False,
            client_id=client.id,
            memo=project.income_memo,
            project_id=project_id,
            is_estimate=True,
        )
        income_id = batch.create(Collection.TRANSACTIONS, income)

        await self._commit(batch, owner_id, "create_project", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_project_created(
                owner_id=owner_id,
                project_id=project_id,
                transaction_id=income_id,
                title=project.title,
                correlation_id=correlation_id,
            )
        return project_id

    async def update_project(
        self,
        owner_id: str,
        project: Project,
        changes: dict[str, Any],
        clients: Sequence[Client],
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Update a project and mirror the change onto its unsettled income.

        Amount and title are copied to the linked transactions. An end date
        change moves their accrual date and, when the client is known,
        recomputes their settlement date.

        Returns:
            Number of linked transactions updated
        """
        protected = PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise ValueError(f"Fields cannot be edited: {sorted(protected)}")
        correlation_id = correlation_id or create_correlation_id()

        updated_project = Project.model_validate({**project.model_dump(), **changes})

        batch = WriteBatch(owner_id)
        batch.update(Collection.PROJECTS, project.id, changes)

        linked_updates = 0
        if PROJECT_SYNC_FIELDS.intersection(changes):
            tx_changes: dict[str, Any] = {}
            if "estimated_amount" in changes:
                tx_changes["amount"] = updated_project.estimated_amount
            if "title" in changes:
                tx_changes["memo"] = updated_project.income_memo
            if "end_date" in changes:
                tx_changes["transaction_date"] = updated_project.end_date
                client = find_client(updated_project.client_id, clients)
                if client and updated_project.end_date:
                    tx_changes["settlement_date"] = settlement_date_for_client(
                        updated_project.end_date, client
                    )

            linked = await self._storage.query_transactions(
                owner_id,
                project_id=project.id,
                is_settled=False,
            )
            for tx in linked:
                batch.update(Collection.TRANSACTIONS, tx.id, tx_changes)
                linked_updates += 1

        await self._commit(batch, owner_id, "update_project", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_project_updated(
                owner_id=owner_id,
                project_id=project.id,
                fields=sorted(changes),
                linked_updates=linked_updates,
                correlation_id=correlation_id,
            )
        return linked_updates

    async def move_project(
        self,
        owner_id: str,
        project: Project,
        new_start_date: DateLike,
        clients: Sequence[Client],
        correlation_id: Optional[UUID] = None,
    ) -> MoveProjectResult:
        """
        Shift a project on the calendar and move its expected payments.

        Both project dates move by the same number of days. Linked income
        is recalculated into the same batch, so the project and its
        payments are committed together or not at all.
        """
        if not project.start_date or not project.end_date:
            return MoveProjectResult(success=False, message="Project dates are not set")

        days = day_difference(project.start_date, new_start_date)
        if days == 0:
            return MoveProjectResult(success=True, message="No change")

        correlation_id = correlation_id or create_correlation_id()
        new_start, new_end = shift_dates(project.start_date, project.end_date, days)

        batch = WriteBatch(owner_id)
        batch.update(Collection.PROJECTS, project.id, {
            "start_date": new_start,
            "end_date": new_end,
        })
        moved = project.model_copy(update={"start_date": new_start, "end_date": new_end})

        recalc = await recalculate_settlement(
            self._storage,
            owner_id,
            moved,
            new_end,
            clients,
            batch=batch,
        )
        if not recalc.success:
            return MoveProjectResult(success=False, message=MOVE_FAILED, warnings=recalc.warnings)

        try:
            await self._commit(batch, owner_id, "move_project", correlation_id)
        except Exception:
            return MoveProjectResult(success=False, message=MOVE_FAILED)

        if recalc.updated_count > 0:
            message = "Project dates and expected payments updated"
        elif recalc.skipped_count > 0:
            message = "Project dates updated (payment dates were not changed)"
        else:
            message = "Project dates updated"

        if self._audit_logger:
            await self._audit_logger.log_project_moved(
                owner_id=owner_id,
                project_id=project.id,
                days=days,
                updated_count=recalc.updated_count,
                skipped_count=recalc.skipped_count,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_settlement_recalculated(
                owner_id=owner_id,
                project_id=project.id,
                updated_count=recalc.updated_count,
                skipped_count=recalc.skipped_count,
                correlation_id=correlation_id,
            )
            for skipped in recalc.skipped:
                await self._audit_logger.log_transaction_skipped(
                    owner_id=owner_id,
                    transaction_id=skipped.transaction_id,
                    reason=skipped.reason.value,
                    correlation_id=correlation_id,
                )

        return MoveProjectResult(
            success=True,
            message=message,
            warnings=recalc.warnings,
            new_start_date=new_start,
            new_end_date=new_end,
        )

    async def update_project_status(
        self,
        owner_id: str,
        project_id: str,
        status: ProjectStatus,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Change a project's status and re-flag its income.

        Confirmed and completed projects turn their estimates firm. Any
        other status turns unsettled firm income back into estimates.

        Returns:
            Number of linked transactions re-flagged
        """
        status = ProjectStatus(status)
        correlation_id = correlation_id or create_correlation_id()

        batch = WriteBatch(owner_id)
        batch.update(Collection.PROJECTS, project_id, {"status": status})

        if status.is_firm:
            affected = await self._storage.query_transactions(
                owner_id,
                project_id=project_id,
                is_estimate=True,
            )
            flag = False
        else:
            affected = await self._storage.query_transactions(
                owner_id,
                project_id=project_id,
                is_estimate=False,
                is_settled=False,
            )
            flag = True

        for tx in affected:
            batch.update(Collection.TRANSACTIONS, tx.id, {"is_estimate": flag})

        await self._commit(batch, owner_id, "update_project_status", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_project_status_changed(
                owner_id=owner_id,
                project_id=project_id,
                status=status.value,
                affected_count=len(affected),
                correlation_id=correlation_id,
            )
        return len(affected)

    async def delete_project(
        self,
        owner_id: str,
        project_id: str,
        delete_related_transactions: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a project, optionally with every transaction linked to it.

        Returns:
            Number of transactions deleted
        """
        correlation_id = correlation_id or create_correlation_id()

        batch = WriteBatch(owner_id)
        batch.delete(Collection.PROJECTS, project_id)

        related: list[Transaction] = []
        if delete_related_transactions:
            related = await self._storage.query_transactions(owner_id, project_id=project_id)
            for tx in related:
                batch.delete(Collection.TRANSACTIONS, tx.id)

        await self._commit(batch, owner_id, "delete_project", correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_project_deleted(
                owner_id=owner_id,
                project_id=project_id,
                deleted_transactions=len(related),
                correlation_id=correlation_id,
            )
        return len(related)

    async def load_project(self, owner_id: str, project_id: str) -> Project:
        """
        Fetch a project or fail.

        Raises:
            NotFoundError: If the project does not exist
        """
        project = await self._storage.get_project(owner_id, project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project


def create_app_components(
    storage: Optional[PlannerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[RecurringTransactionFlow, ProjectFlow]:
    """
    Factory function to create all application components.

    Args:
        storage: Planner storage backend. Defaults to in-memory storage.
        audit_storage: Audit log backend. Defaults to in-memory storage.

    Returns:
        (recurring_flow, project_flow)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    storage = storage or InMemoryPlannerStorage()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    recurring_flow = RecurringTransactionFlow(
        storage,
        audit_logger=audit_logger,
        engine_settings=settings.engine,
        storage_settings=settings.storage,
    )
    project_flow = ProjectFlow(
        storage,
        audit_logger=audit_logger,
        engine_settings=settings.engine,
        storage_settings=settings.storage,
    )
    return recurring_flow, project_flow
