"""Services package."""

from typing import Optional

from flatmate.config import StorageSettings
from flatmate.services.storage import (
    AuditStorageInterface,
    CollectionRepository,
    ConflictError,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueAuditStorage,
    NotFoundError,
    QuotaExceededError,
    SerializationError,
    SettingsRepository,
    StorageAdapter,
    StorageError,
    StorageKeys,
)


def create_storage_adapter(settings: Optional[StorageSettings] = None) -> StorageAdapter:
    """Build the storage adapter selected by FLATMATE_STORAGE_BACKEND."""
    settings = settings or StorageSettings()
    if settings.backend == "memory":
        return InMemoryStorage(max_bytes=settings.max_bytes)
    return JsonFileStorage.from_settings(settings)


__all__ = [
    "create_storage_adapter",
    # Storage services
    "AuditStorageInterface",
    "CollectionRepository",
    "ConflictError",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueAuditStorage",
    "NotFoundError",
    "QuotaExceededError",
    "SerializationError",
    "SettingsRepository",
    "StorageAdapter",
    "StorageError",
    "StorageKeys",
]
