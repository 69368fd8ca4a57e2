"""
Planner Audit Trail

DESIGN DECISION: Every batch a flow commits (or fails to commit) leaves an
audit event behind, so a user can see why an expected payment moved.

Events from one user action share a correlation id. Writing the trail is
best effort: a broken audit backend is logged and otherwise ignored.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashflow.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from cashflow.services.storage import AuditStorageInterface


# JSON lines through stdlib logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())


class AuditLogger:
    """
    Writes planner audit events to the structured log and, when a backend
    is configured, to audit storage.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("cashflow.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must never break the flow being audited
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_recurring_created(
        self,
        owner_id: str,
        master_id: str,
        title: str,
        instance_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_master_created(
            owner_id=owner_id,
            master_id=master_id,
            title=title,
            instance_count=instance_count,
            correlation_id=correlation_id,
        ))

    async def log_series_updated(
        self,
        owner_id: str,
        master_id: str,
        updated_count: int,
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_series_updated(
            owner_id=owner_id,
            master_id=master_id,
            updated_count=updated_count,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_instance_detached(
        self,
        owner_id: str,
        transaction_id: str,
        master_id: str,
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_instance_detached(
            owner_id=owner_id,
            transaction_id=transaction_id,
            master_id=master_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_recurring_deleted(
        self,
        owner_id: str,
        master_id: str,
        deleted_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_master_deleted(
            owner_id=owner_id,
            master_id=master_id,
            deleted_count=deleted_count,
            correlation_id=correlation_id,
        ))

    async def log_auto_extension(
        self,
        owner_id: str,
        created_count: int,
        master_ids: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.auto_extension_applied(
            owner_id=owner_id,
            created_count=created_count,
            master_ids=master_ids,
            correlation_id=correlation_id,
        ))

    async def log_project_created(
        self,
        owner_id: str,
        project_id: str,
        transaction_id: str,
        title: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_created(
            owner_id=owner_id,
            project_id=project_id,
            transaction_id=transaction_id,
            title=title,
            correlation_id=correlation_id,
        ))

    async def log_project_updated(
        self,
        owner_id: str,
        project_id: str,
        fields: list[str],
        linked_updates: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_updated(
            owner_id=owner_id,
            project_id=project_id,
            fields=fields,
            linked_updates=linked_updates,
            correlation_id=correlation_id,
        ))

    async def log_project_moved(
        self,
        owner_id: str,
        project_id: str,
        days: int,
        updated_count: int,
        skipped_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_moved(
            owner_id=owner_id,
            project_id=project_id,
            days=days,
            updated_count=updated_count,
            skipped_count=skipped_count,
            correlation_id=correlation_id,
        ))

    async def log_project_status_changed(
        self,
        owner_id: str,
        project_id: str,
        status: str,
        affected_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_status_changed(
            owner_id=owner_id,
            project_id=project_id,
            status=status,
            affected_count=affected_count,
            correlation_id=correlation_id,
        ))

    async def log_project_deleted(
        self,
        owner_id: str,
        project_id: str,
        deleted_transactions: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_deleted(
            owner_id=owner_id,
            project_id=project_id,
            deleted_transactions=deleted_transactions,
            correlation_id=correlation_id,
        ))

    async def log_settlement_recalculated(
        self,
        owner_id: str,
        project_id: str,
        updated_count: int,
        skipped_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_recalculated(
            owner_id=owner_id,
            project_id=project_id,
            updated_count=updated_count,
            skipped_count=skipped_count,
            correlation_id=correlation_id,
        ))

    async def log_transaction_skipped(
        self,
        owner_id: str,
        transaction_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_skipped(
            owner_id=owner_id,
            transaction_id=transaction_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_commit_failed(
        self,
        owner_id: str,
        operation: str,
        error_message: str,
        staged_writes: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.commit_failed(
            owner_id=owner_id,
            operation=operation,
            error_message=error_message,
            staged_writes=staged_writes,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., moving a project).
    Pass it through all subsequent operations.
    """
    return uuid4()
