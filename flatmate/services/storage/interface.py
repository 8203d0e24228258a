"""
Abstract Storage Interface

DESIGN DECISION: Household data lives in a plain key-value store.
Every collection (members, expenses, ...) is one JSON value under one key.
This allows us to:
1. Use in-memory storage for testing
2. Keep a single JSON file on disk for local use
3. Put a version token next to each collection for compare-and-swap
4. Keep business logic decoupled from the storage implementation

The interface is intentionally simple - we're not building a database.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from flatmate.models.audit import AuditEvent


class StorageKeys:
    """Centralised storage keys (before namespacing)."""
    MEMBERS = "members"
    EXPENSES = "expenses"
    BALANCES = "balances"
    CHORES = "chores"
    CHORE_ASSIGNMENTS = "choreAssignments"
    SETTINGS = "settings"
    AUDIT_LOG = "auditLog"
    GROCERIES = "groceries"
    GYM_SESSIONS = "gymSessions"
    FITNESS_GOALS = "fitnessGoals"
    NOTES = "notes"
    REMINDERS = "reminders"
    CHAT_MESSAGES = "chatMessages"

    @staticmethod
    def version_key(key: str) -> str:
        return f"{key}:version"


class StorageAdapter(ABC):
    """
    Abstract interface for key-value storage.

    Values must be JSON-compatible (dict, list, str, int, float, bool, None).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The stored value, or None when the key is absent

        Raises:
            SerializationError: If the stored payload cannot be decoded
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing whatever was stored.

        Raises:
            SerializationError: If the value is not JSON-compatible
            QuotaExceededError: If the write would exceed the storage quota
        """
        pass

    @abstractmethod
    async def set_many(self, values: dict[str, Any]) -> None:
        """
        Write several values as one unit: either all are stored or none is.

        The quota is checked against the combined result before anything
        is written.

        Raises:
            SerializationError: If any value is not JSON-compatible
            QuotaExceededError: If the writes together would exceed the quota
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key owned by this adapter."""
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """List stored keys (without namespace prefix)."""
        pass

    async def has(self, key: str) -> bool:
        return key in await self.keys()


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify stored events.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one workflow call, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class SerializationError(StorageError):
    """Value could not be encoded to or decoded from JSON."""
    pass


class QuotaExceededError(StorageError):
    """Write would exceed the configured storage quota."""
    pass


class ConflictError(StorageError):
    """A collection changed between read and write."""

    def __init__(self, key: str, expected: int, actual: int):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on '{key}': expected {expected}, found {actual}"
        )
