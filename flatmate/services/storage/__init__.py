"""
Storage Services Package

Provides the key-value storage abstraction, concrete adapters and the
versioned repositories built on top of them.
"""

from flatmate.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    NotFoundError,
    QuotaExceededError,
    SerializationError,
    StorageAdapter,
    StorageError,
    StorageKeys,
)
from flatmate.services.storage.memory import InMemoryStorage
from flatmate.services.storage.json_file import JsonFileStorage
from flatmate.services.storage.repository import (
    CollectionRepository,
    SettingsRepository,
    Snapshot,
)
from flatmate.services.storage.audit import KeyValueAuditStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StorageAdapter",
    "StorageKeys",
    # Exceptions
    "ConflictError",
    "NotFoundError",
    "QuotaExceededError",
    "SerializationError",
    "StorageError",
    # Adapters
    "InMemoryStorage",
    "JsonFileStorage",
    # Repositories
    "CollectionRepository",
    "KeyValueAuditStorage",
    "SettingsRepository",
    "Snapshot",
]
