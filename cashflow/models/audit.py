"""
Audit Event Models

One event per series edit, project change, recalculation skip or failed
commit, answering "why did this payment move?" after the fact.

DESIGN DECISION: The audit trail is append-only. Events are never updated
or deleted.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Recurring series
    RECURRING_MASTER_CREATED = "recurring_master_created"
    RECURRING_SERIES_UPDATED = "recurring_series_updated"
    RECURRING_INSTANCE_DETACHED = "recurring_instance_detached"
    RECURRING_MASTER_DELETED = "recurring_master_deleted"
    AUTO_EXTENSION_APPLIED = "auto_extension_applied"

    # Projects
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_MOVED = "project_moved"
    PROJECT_STATUS_CHANGED = "project_status_changed"
    PROJECT_DELETED = "project_deleted"

    # Settlement
    SETTLEMENT_RECALCULATED = "settlement_recalculated"
    TRANSACTION_SKIPPED = "transaction_skipped"

    # Persistence
    COMMIT_FAILED = "commit_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One entry in the audit trail."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    owner_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'project')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one project move)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_record(self) -> dict:
        """Flat record for append-only storage (details JSON-encoded)."""
        record = self.to_log_dict()
        record["details"] = json.dumps(self.details, default=str) if self.details else ""
        return record


class AuditEventBuilder:
    """
    Factory methods for the events the planner flows emit.

    Usage:
        event = AuditEventBuilder.project_moved(owner_id, project_id, ...)
    """

    @staticmethod
    def recurring_master_created(
        owner_id: str,
        master_id: str,
        title: str,
        instance_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MASTER_CREATED,
            owner_id=owner_id,
            entity_type="recurring_master",
            entity_id=master_id,
            correlation_id=correlation_id,
            description=f"Recurring transaction created: {title} ({instance_count} instances)",
            details={
                "title": title,
                "instance_count": instance_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_series_updated(
        owner_id: str,
        master_id: str,
        updated_count: int,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_SERIES_UPDATED,
            owner_id=owner_id,
            entity_type="recurring_master",
            entity_id=master_id,
            correlation_id=correlation_id,
            description=f"Recurring series updated: {updated_count} instances",
            details={
                "updated_count": updated_count,
                "fields": fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_instance_detached(
        owner_id: str,
        transaction_id: str,
        master_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_INSTANCE_DETACHED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Recurring instance edited individually",
            details={
                "recurring_master_id": master_id,
                "fields": fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_master_deleted(
        owner_id: str,
        master_id: str,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MASTER_DELETED,
            owner_id=owner_id,
            entity_type="recurring_master",
            entity_id=master_id,
            correlation_id=correlation_id,
            description=f"Recurring transaction deleted with {deleted_count} unsettled instances",
            details={
                "deleted_count": deleted_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def auto_extension_applied(
        owner_id: str,
        created_count: int,
        master_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_EXTENSION_APPLIED,
            owner_id=owner_id,
            entity_type="recurring_master",
            correlation_id=correlation_id,
            description=f"Auto-extension added {created_count} transactions",
            details={
                "created_count": created_count,
                "master_ids": master_ids,
            },
        )

    @staticmethod
    def project_created(
        owner_id: str,
        project_id: str,
        transaction_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_CREATED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Project created: {title}",
            details={
                "income_transaction_id": transaction_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def project_updated(
        owner_id: str,
        project_id: str,
        fields: list[str],
        linked_updates: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_UPDATED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Project updated ({linked_updates} linked transactions)",
            details={
                "fields": fields,
                "linked_updates": linked_updates,
            },
            is_user_action=True,
        )

    @staticmethod
    def project_moved(
        owner_id: str,
        project_id: str,
        days: int,
        updated_count: int,
        skipped_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_MOVED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Project moved by {days} days",
            details={
                "days": days,
                "updated_count": updated_count,
                "skipped_count": skipped_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def project_status_changed(
        owner_id: str,
        project_id: str,
        status: str,
        affected_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_STATUS_CHANGED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Project status changed to {status}",
            details={
                "status": status,
                "affected_count": affected_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def project_deleted(
        owner_id: str,
        project_id: str,
        deleted_transactions: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_DELETED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description="Project deleted",
            details={
                "deleted_transactions": deleted_transactions,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_recalculated(
        owner_id: str,
        project_id: str,
        updated_count: int,
        skipped_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECALCULATED,
            owner_id=owner_id,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Settlement recalculated: {updated_count} updated, {skipped_count} skipped",
            details={
                "updated_count": updated_count,
                "skipped_count": skipped_count,
            },
        )

    @staticmethod
    def transaction_skipped(
        owner_id: str,
        transaction_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SKIPPED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction left unchanged: {reason}",
            details={
                "reason": reason,
            },
        )

    @staticmethod
    def commit_failed(
        owner_id: str,
        operation: str,
        error_message: str,
        staged_writes: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Commit failed during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
                "staged_writes": staged_writes,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
