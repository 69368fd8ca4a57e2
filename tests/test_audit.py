"""
Tests for the audit logger.
"""

import pytest
from uuid import UUID

from cashflow.audit import AuditLogger, create_correlation_id
from cashflow.models import AuditEventBuilder, AuditEventType, AuditSeverity
from cashflow.services.storage import InMemoryAuditStorage, StorageConnectionError


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageConnectionError("audit backend down")


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_persists_events(self, audit_storage, owner_id):
        audit = AuditLogger(audit_storage)
        event = AuditEventBuilder.project_deleted(owner_id, "p1", 2)

        assert await audit.log(event) is True
        assert (await audit_storage.get_recent_events())[0].event_id == event.event_id

    @pytest.mark.asyncio
    async def test_without_storage(self, owner_id):
        """Logging locally only still reports success."""
        audit = AuditLogger()
        assert await audit.log(AuditEventBuilder.project_deleted(owner_id, "p1", 0)) is True

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self, owner_id):
        audit = AuditLogger(BrokenAuditStorage())
        assert await audit.log(AuditEventBuilder.project_deleted(owner_id, "p1", 0)) is False

    @pytest.mark.asyncio
    async def test_helpers_share_correlation_id(self, audit_storage, owner_id):
        audit = AuditLogger(audit_storage)
        correlation_id = create_correlation_id()

        await audit.log_project_moved(
            owner_id=owner_id,
            project_id="p1",
            days=6,
            updated_count=1,
            skipped_count=0,
            correlation_id=correlation_id,
        )
        await audit.log_settlement_recalculated(
            owner_id=owner_id,
            project_id="p1",
            updated_count=1,
            skipped_count=0,
            correlation_id=correlation_id,
        )

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert {e.event_type for e in events} == {
            AuditEventType.PROJECT_MOVED,
            AuditEventType.SETTLEMENT_RECALCULATED,
        }

    @pytest.mark.asyncio
    async def test_commit_failure_is_an_error(self, audit_storage, owner_id):
        audit = AuditLogger(audit_storage)
        await audit.log_commit_failed(
            owner_id=owner_id,
            operation="move_project",
            error_message="connection reset",
            staged_writes=2,
            correlation_id=create_correlation_id(),
        )

        (event,) = await audit_storage.get_recent_events()
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "connection reset"

    @pytest.mark.asyncio
    async def test_log_error(self, audit_storage):
        audit = AuditLogger(audit_storage)
        await audit.log_error("ValueError", "bad input", details={"field": "amount"})

        (event,) = await audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.details == {"field": "amount"}


def test_correlation_ids_are_unique():
    first, second = create_correlation_id(), create_correlation_id()
    assert isinstance(first, UUID)
    assert first != second


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
