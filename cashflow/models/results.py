"""
Result Models

Structured outcomes of engine operations. Expected conditions (a settled
transaction, a project without a client) are reported here rather than
raised, so callers can show partial-success summaries.
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SkipReason(str, Enum):
    """Why recalculation left a transaction alone."""
    SETTLED = "settled"
    DETACHED = "detached"
    NO_CLIENT = "no_client"
    CLIENT_NOT_FOUND = "client_not_found"


class StagedUpdate(BaseModel):
    """Field-level changes proposed for one stored transaction."""

    transaction_id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class SkippedTransaction(BaseModel):
    """A transaction recalculation did not touch, and why."""

    transaction_id: str
    reason: SkipReason


class RecalculationResult(BaseModel):
    """
    Outcome of re-deriving settlement dates after an upstream date change.

    success is False only when the storage collaborator failed; skips are
    a normal outcome and leave success True.
    """

    success: bool = True
    updated_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0)
    warnings: list[str] = Field(default_factory=list)

    updates: list[StagedUpdate] = Field(
        default_factory=list,
        description="Updates staged for the atomic commit"
    )
    skipped: list[SkippedTransaction] = Field(default_factory=list)

    def skip(self, transaction_id: str, reason: SkipReason, warning: str) -> None:
        self.skipped_count += 1
        self.skipped.append(
            SkippedTransaction(transaction_id=transaction_id, reason=reason)
        )
        self.warnings.append(warning)

    def summary(self) -> str:
        """e.g. '3 updated, 2 skipped'."""
        return f"{self.updated_count} updated, {self.skipped_count} skipped"


class MoveProjectResult(BaseModel):
    """Outcome of shifting a project on the calendar."""

    success: bool
    message: str
    warnings: list[str] = Field(default_factory=list)
    new_start_date: date | None = None
    new_end_date: date | None = None
