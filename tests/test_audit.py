"""Tests for the audit logger."""

import asyncio
from uuid import uuid4

from wealthify.audit import AuditLogger, create_correlation_id
from wealthify.models.audit import AuditEvent, AuditEventType, AuditSeverity
from wealthify.services.storage import InMemoryAuditStorage, StorageError


class ExplodingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("sheet unavailable")


class TestAuditLogger:
    """Audit logging never breaks the caller."""

    def test_local_only(self):
        logger = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert asyncio.run(logger.log(event)) is True

    def test_persists_to_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        row_id = uuid4()

        asyncio.run(logger.log_achievement_unlocked("user-1", "first_goal", row_id, 1, 1))

        (event,) = asyncio.run(storage.get_recent_events())
        assert event.event_type == AuditEventType.ACHIEVEMENT_UNLOCKED
        assert event.entity_id == str(row_id)

    def test_storage_failure_swallowed(self):
        logger = AuditLogger(ExplodingAuditStorage())
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert asyncio.run(logger.log(event)) is False

    def test_helpers_set_severity(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(logger.log_unlock_failed("user-1", "first_goal", "timeout", correlation_id))
        asyncio.run(logger.log_unlock_conflict("user-1", "first_goal", correlation_id))
        asyncio.run(logger.log_error("bad_state", "boom", correlation_id=correlation_id))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.severity for e in events] == [
            AuditSeverity.WARNING,
            AuditSeverity.DEBUG,
            AuditSeverity.ERROR,
        ]

    def test_correlation_ids_unique(self):
        assert create_correlation_id() != create_correlation_id()
