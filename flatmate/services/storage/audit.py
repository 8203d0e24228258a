"""
Key-Value Audit Storage

Audit events are kept as one bounded list under the auditLog key.
Only the newest `audit_log_limit` events are retained.
"""

from typing import Optional
from uuid import UUID

from flatmate.config import StorageSettings
from flatmate.models.audit import AuditEvent
from flatmate.services.storage.interface import (
    AuditStorageInterface,
    StorageAdapter,
    StorageKeys,
)
from flatmate.services.storage.repository import CollectionRepository


class KeyValueAuditStorage(AuditStorageInterface):
    """Audit storage backed by the household key-value store."""

    def __init__(
        self,
        storage: StorageAdapter,
        settings: Optional[StorageSettings] = None,
    ):
        settings = settings or StorageSettings()
        self._limit = settings.audit_log_limit
        self._events = CollectionRepository(
            storage, StorageKeys.AUDIT_LOG, AuditEvent, settings
        )

    async def append_event(self, event: AuditEvent) -> bool:
        def _append(events: list[AuditEvent]) -> None:
            events.append(event)
            if len(events) > self._limit:
                del events[: len(events) - self._limit]

        await self._events.update(_append)
        return True

    async def _all(self) -> list[AuditEvent]:
        return await self._events.all()

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in await self._all() if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in await self._all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # Stored in append order, oldest first
        events = await self._all()
        return events[::-1][:limit]
