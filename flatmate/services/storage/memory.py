"""
In-Memory Storage

Used by tests and for throwaway households. Values are kept as encoded
JSON so callers never share mutable state with the store, and so the
same serialization and quota rules apply as on disk.
"""

import json
from typing import Any, Optional

from flatmate.services.storage.interface import (
    QuotaExceededError,
    SerializationError,
    StorageAdapter,
)


def encode_value(key: str, value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize value for '{key}': {e}") from e


def decode_value(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Corrupt value stored under '{key}': {e}") from e


def encoded_size(key: str, encoded: str) -> int:
    """Bytes a stored entry occupies once written as UTF-8."""
    return len(key.encode("utf-8")) + len(encoded.encode("utf-8"))


class InMemoryStorage(StorageAdapter):
    """Dictionary-backed storage adapter."""

    def __init__(self, max_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self._max_bytes = max_bytes

    def _check_quota(self, pending: dict[str, str]) -> None:
        if self._max_bytes is None:
            return
        merged = {**self._data, **pending}
        size = sum(encoded_size(k, v) for k, v in merged.items())
        if size > self._max_bytes:
            keys = ", ".join(f"'{k}'" for k in pending)
            raise QuotaExceededError(
                f"Writing {keys} would exceed the {self._max_bytes} byte quota"
            )

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return decode_value(key, raw)

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: dict[str, Any]) -> None:
        pending = {key: encode_value(key, value) for key, value in values.items()}
        self._check_quota(pending)
        self._data.update(pending)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()

    async def keys(self) -> list[str]:
        return list(self._data)

    async def has(self, key: str) -> bool:
        return key in self._data
