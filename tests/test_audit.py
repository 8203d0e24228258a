"""
Tests for the audit logger and its key-value storage.
"""

import asyncio
from uuid import uuid4

from flatmate.audit import AuditLogger, create_correlation_id
from flatmate.config import StorageSettings
from flatmate.models import AuditEventBuilder, AuditEventType
from flatmate.services.storage import AuditStorageInterface, KeyValueAuditStorage


class BrokenAuditStorage(AuditStorageInterface):
    """Audit storage whose writes always fail."""

    async def append_event(self, event):
        raise OSError("disk full")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_events_by_entity(self, entity_type, entity_id):
        return []

    async def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:

    def test_local_only_logging(self):
        event = AuditEventBuilder.chore_changed(AuditEventType.CHORE_CREATED, uuid4(), "Bins")
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.chore_changed(AuditEventType.CHORE_CREATED, uuid4(), "Bins")
        assert asyncio.run(logger.log(event)) is False

    def test_events_grouped_by_correlation_id(self, storage):
        audit_storage = KeyValueAuditStorage(storage)
        logger = AuditLogger(audit_storage)
        correlation_id = create_correlation_id()
        chore_id, assignee = uuid4(), uuid4()

        async def scenario():
            await logger.log_chore_rotated(chore_id, assignee, 1, correlation_id)
            await logger.log_pin_event(AuditEventType.PIN_VERIFIED, "PIN verified")
            return (
                await audit_storage.get_events_by_correlation_id(correlation_id),
                await audit_storage.get_events_by_entity("chore", chore_id),
            )

        by_correlation, by_entity = asyncio.run(scenario())
        assert [e.event_type for e in by_correlation] == [AuditEventType.CHORE_ROTATED]
        assert by_entity[0].details["next_assignee"] == str(assignee)


class TestKeyValueAuditStorage:

    def test_log_is_bounded(self, storage):
        audit_storage = KeyValueAuditStorage(storage, StorageSettings(audit_log_limit=10))

        async def scenario():
            for i in range(12):
                await audit_storage.append_event(
                    AuditEventBuilder.validation_failed(f"subject-{i}", [])
                )
            return await audit_storage.get_recent_events(limit=100)

        events = asyncio.run(scenario())
        assert len(events) == 10
        assert {e.entity_type for e in events} == {f"subject-{i}" for i in range(2, 12)}

    def test_recent_events_newest_first(self, storage):
        audit_storage = KeyValueAuditStorage(storage)

        async def scenario():
            for name in ("first", "second", "third"):
                await audit_storage.append_event(
                    AuditEventBuilder.validation_failed(name, [])
                )
            return await audit_storage.get_recent_events(limit=2)

        events = asyncio.run(scenario())
        assert [e.entity_type for e in events] == ["third", "second"]
