"""
Versioned Repositories

DESIGN DECISION: Every collection is read whole, mutated in memory and
written whole. To make that safe when two workflows interleave on the
same collection, each collection carries an integer version token
stored under "<key>:version":

    load()   -> snapshot + version
    commit() -> write only if the version is unchanged, else ConflictError
    update() -> load, mutate, commit; retried on ConflictError

Retries use tenacity with exponential backoff and re-raise the last
ConflictError once attempts are exhausted.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Type, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from flatmate.config import StorageSettings
from flatmate.models.security import HouseholdSettings
from flatmate.services.storage.interface import (
    ConflictError,
    NotFoundError,
    SerializationError,
    StorageAdapter,
    StorageKeys,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


@dataclass
class Snapshot(Generic[T]):
    """A collection as read at a given version."""
    items: list[T]
    version: int


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "storage_conflict_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


class _VersionedStore:
    """Version-token bookkeeping shared by the repositories."""

    def __init__(
        self,
        storage: StorageAdapter,
        key: str,
        settings: Optional[StorageSettings] = None,
    ):
        settings = settings or StorageSettings()
        self._storage = storage
        self._key = key
        self._retry_attempts = settings.conflict_retry_attempts
        self._retry_wait = settings.conflict_retry_wait_seconds
        self._lock = asyncio.Lock()

    @property
    def key(self) -> str:
        return self._key

    async def version(self) -> int:
        value = await self._storage.get(StorageKeys.version_key(self._key))
        return int(value) if value is not None else 0

    async def _commit_payload(self, payload: Any, expected_version: int) -> int:
        async with self._lock:
            current = await self.version()
            if current != expected_version:
                raise ConflictError(self._key, expected_version, current)
            new_version = current + 1
            await self._storage.set_many({
                self._key: payload,
                StorageKeys.version_key(self._key): new_version,
            })
            return new_version

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=1),
            before_sleep=_log_retry,
            reraise=True,
        )


class CollectionRepository(_VersionedStore, Generic[T]):
    """
    A list of pydantic models stored under one key.

    Usage:
        members = CollectionRepository(storage, StorageKeys.MEMBERS, Member)
        created = await members.update(lambda items: items.append(member))
    """

    def __init__(
        self,
        storage: StorageAdapter,
        key: str,
        model: Type[T],
        settings: Optional[StorageSettings] = None,
    ):
        super().__init__(storage, key, settings)
        self._model = model

    def _parse(self, raw: Any) -> list[T]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise SerializationError(f"Collection '{self._key}' is not a list")
        try:
            return [self._model.model_validate(item) for item in raw]
        except ValidationError as e:
            raise SerializationError(
                f"Collection '{self._key}' holds invalid records: {e}"
            ) from e

    async def load(self) -> Snapshot[T]:
        version = await self.version()
        raw = await self._storage.get(self._key)
        return Snapshot(items=self._parse(raw), version=version)

    async def all(self) -> list[T]:
        return (await self.load()).items

    async def get(self, item_id: UUID) -> Optional[T]:
        for item in await self.all():
            if getattr(item, "id", None) == item_id:
                return item
        return None

    async def get_or_raise(self, item_id: UUID) -> T:
        item = await self.get(item_id)
        if item is None:
            raise NotFoundError(f"{self._key} record not found: {item_id}")
        return item

    async def commit(self, items: list[T], expected_version: int) -> int:
        """Write the collection if nobody else committed since expected_version."""
        payload = [item.model_dump(mode="json") for item in items]
        return await self._commit_payload(payload, expected_version)

    async def update(self, mutator: Callable[[list[T]], R]) -> R:
        """
        Read-mutate-commit with retry on conflict.

        The mutator receives a fresh list on every attempt and may change
        it in place. Its return value is returned once the commit succeeds.
        Exceptions raised by the mutator abort the update without writing.
        """
        async for attempt in self._retrying():
            with attempt:
                snapshot = await self.load()
                result = mutator(snapshot.items)
                await self.commit(snapshot.items, snapshot.version)
        return result

    async def replace_all(self, items: list[T]) -> None:
        """Overwrite the collection regardless of its contents."""
        def _replace(current: list[T]) -> None:
            current[:] = items

        await self.update(_replace)


class SettingsRepository(_VersionedStore):
    """
    The household settings singleton.

    Passed explicitly to the rate-limiter; there is no global settings state.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        settings: Optional[StorageSettings] = None,
        key: str = StorageKeys.SETTINGS,
    ):
        super().__init__(storage, key, settings)

    async def load(self) -> tuple[Optional[HouseholdSettings], int]:
        version = await self.version()
        raw = await self._storage.get(self._key)
        if raw is None:
            return None, version
        try:
            return HouseholdSettings.model_validate(raw), version
        except ValidationError as e:
            raise SerializationError(f"Stored settings are invalid: {e}") from e

    async def get(self) -> Optional[HouseholdSettings]:
        settings, _ = await self.load()
        return settings

    async def commit(self, settings: HouseholdSettings, expected_version: int) -> int:
        return await self._commit_payload(settings.model_dump(mode="json"), expected_version)

    async def initialize(self, defaults: HouseholdSettings) -> HouseholdSettings:
        """Store defaults unless settings already exist; return what is stored."""
        async for attempt in self._retrying():
            with attempt:
                existing, version = await self.load()
                if existing is not None:
                    return existing
                await self.commit(defaults, version)
        return defaults

    async def update(self, mutator: Callable[[HouseholdSettings], R]) -> R:
        """
        Read-mutate-commit on the settings record with retry on conflict.

        Raises:
            NotFoundError: If settings were never initialized
        """
        async for attempt in self._retrying():
            with attempt:
                settings, version = await self.load()
                if settings is None:
                    raise NotFoundError("Household settings are not initialized")
                result = mutator(settings)
                await self.commit(settings, version)
        return result
