"""
Settlement Recalculation Engine

When a project's delivery date moves, the expected payments linked to it
move too. This module finds the project's income transactions, decides
which of them automation may touch, and stages the new dates.

Guards, applied in order (first match wins):
1. settled   - reconciled against the bank, immutable
2. detached  - edited by hand, exempt from automation
3. no client - the project has no client, terms unknown
4. client not found - the client id does not resolve

A guarded transaction is reported as skipped with a warning; it is never
an error. Any failure raised by storage is caught, logged and reported
as success=False.
"""

from datetime import date
from typing import Optional, Sequence

import structlog

from cashflow.engine.dates import DateLike, add_days, days_between, to_date
from cashflow.engine.settlement import settlement_date_for_client
from cashflow.models.client import Client, find_client
from cashflow.models.common import TransactionType
from cashflow.models.project import Project
from cashflow.models.results import RecalculationResult, SkipReason, StagedUpdate
from cashflow.services.storage import (
    Collection,
    PlannerStorageInterface,
    WriteBatch,
)


logger = structlog.get_logger(__name__)


NO_LINKED_TRANSACTIONS = "No linked transactions found for this project"
COMMIT_FAILED = "Settlement dates could not be saved; nothing was changed"
QUERY_FAILED = "Linked transactions could not be loaded; nothing was changed"


def day_difference(old_date: DateLike, new_date: DateLike) -> int:
    """Whole days from old_date to new_date (negative when moved earlier)."""
    return days_between(to_date(old_date), to_date(new_date))


def shift_dates(
    start_date: Optional[date],
    end_date: Optional[date],
    days: int,
) -> tuple[Optional[date], Optional[date]]:
    """Move a date range by a number of days, keeping its length."""
    new_start = add_days(start_date, days) if start_date else None
    new_end = add_days(end_date, days) if end_date else None
    return new_start, new_end


async def recalculate_settlement(
    storage: PlannerStorageInterface,
    owner_id: str,
    project: Project,
    new_end_date: DateLike,
    clients: Sequence[Client],
    batch: Optional[WriteBatch] = None,
) -> RecalculationResult:
    """
    Re-derive settlement dates of a project's income after a date change.

    Args:
        storage: Storage to query linked transactions from
        owner_id: Owner scope
        project: The project whose delivery date changed
        new_end_date: New delivery date; becomes the accrual date
        clients: Known clients of the owner
        batch: When given, updates are staged into it and the caller
            commits. Otherwise a batch is created and committed here.

    Returns:
        RecalculationResult with counts, warnings and the staged updates
    """
    new_end = to_date(new_end_date)
    log = logger.bind(owner_id=owner_id, project_id=project.id)

    try:
        transactions = await storage.query_transactions(
            owner_id,
            project_id=project.id,
            transaction_type=TransactionType.INCOME,
        )
    except Exception as e:
        log.error("settlement_query_failed", error=str(e))
        return RecalculationResult(success=False, warnings=[QUERY_FAILED])

    if not transactions:
        return RecalculationResult(warnings=[NO_LINKED_TRANSACTIONS])

    client = find_client(project.client_id, clients)
    staged = batch if batch is not None else WriteBatch(owner_id)
    result = RecalculationResult()

    for tx in transactions:
        name = tx.label()

        if tx.is_settled:
            result.skip(tx.id, SkipReason.SETTLED,
                        f"'{name}' is already settled and was left unchanged")
            continue
        if tx.is_detached:
            result.skip(tx.id, SkipReason.DETACHED,
                        f"'{name}' was edited individually and was left unchanged")
            continue
        if not project.client_id:
            result.skip(tx.id, SkipReason.NO_CLIENT,
                        f"Project has no client; settlement date of '{name}' was not recalculated")
            continue
        if client is None:
            result.skip(tx.id, SkipReason.CLIENT_NOT_FOUND,
                        f"Client not found; settlement date of '{name}' was not recalculated")
            continue

        changes = {
            "transaction_date": new_end,
            "settlement_date": settlement_date_for_client(new_end, client),
        }
        staged.update(Collection.TRANSACTIONS, tx.id, changes)
        result.updates.append(StagedUpdate(transaction_id=tx.id, changes=changes))
        result.updated_count += 1

    if batch is None and not staged.is_empty:
        try:
            await storage.commit(staged)
        except Exception as e:
            log.error("settlement_commit_failed", error=str(e), staged_writes=len(staged))
            return RecalculationResult(success=False, warnings=[COMMIT_FAILED])

    log.info(
        "settlement_recalculated",
        updated=result.updated_count,
        skipped=result.skipped_count,
    )
    return result
