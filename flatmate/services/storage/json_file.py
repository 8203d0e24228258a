"""
JSON File Storage Implementation

DESIGN DECISION: The whole household lives in one JSON document on disk,
the local analogue of browser key-value storage:
1. No database setup required
2. The file is human-readable and easy to back up
3. Writes are atomic (temp file + os.replace), so a crash never
   leaves a half-written store

TRADEOFFS:
- Every write rewrites the whole document (fine for one household)
- No transactions (version tokens in CollectionRepository cover conflicts)
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog

from flatmate.config import StorageSettings
from flatmate.services.storage.interface import (
    QuotaExceededError,
    SerializationError,
    StorageAdapter,
    StorageError,
)
from flatmate.services.storage.memory import decode_value, encode_value, encoded_size


logger = structlog.get_logger(__name__)


class JsonFileStorage(StorageAdapter):
    """
    Storage adapter persisting namespaced keys into a single JSON file.

    The document maps "<namespace>:<key>" to the encoded JSON value.
    """

    def __init__(
        self,
        path: Path,
        namespace: str = "flatmate",
        max_bytes: Optional[int] = None,
    ):
        self._path = Path(path)
        self._namespace = namespace
        self._max_bytes = max_bytes
        self._cache: Optional[dict[str, str]] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "JsonFileStorage":
        return cls(
            path=settings.file_path,
            namespace=settings.namespace,
            max_bytes=settings.max_bytes,
        )

    @property
    def path(self) -> Path:
        return self._path

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _read_document(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Corrupt store file {self._path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read store file {self._path}: {e}") from e

        if not isinstance(document, dict):
            raise SerializationError(f"Store file {self._path} is not a JSON object")
        return document

    def _write_document(self, document: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Failed to write store file {self._path}: {e}") from e

    async def _document(self) -> dict[str, str]:
        if self._cache is None:
            self._cache = await asyncio.to_thread(self._read_document)
        return self._cache

    async def _persist(self, document: dict[str, str]) -> None:
        await asyncio.to_thread(self._write_document, document)
        self._cache = document

    async def get(self, key: str) -> Optional[Any]:
        document = await self._document()
        raw = document.get(self._full_key(key))
        if raw is None:
            return None
        return decode_value(key, raw)

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: dict[str, Any]) -> None:
        pending = {key: encode_value(key, value) for key, value in values.items()}
        async with self._lock:
            document = dict(await self._document())
            for key, encoded in pending.items():
                document[self._full_key(key)] = encoded

            if self._max_bytes is not None:
                size = sum(encoded_size(k, v) for k, v in document.items())
                if size > self._max_bytes:
                    keys = ", ".join(f"'{k}'" for k in pending)
                    raise QuotaExceededError(
                        f"Writing {keys} would exceed the {self._max_bytes} byte quota"
                    )

            await self._persist(document)
        for key, encoded in pending.items():
            logger.debug("storage_write", key=key, bytes=len(encoded.encode("utf-8")))

    async def remove(self, key: str) -> None:
        async with self._lock:
            document = dict(await self._document())
            if document.pop(self._full_key(key), None) is not None:
                await self._persist(document)

    async def clear(self) -> None:
        prefix = f"{self._namespace}:"
        async with self._lock:
            document = {
                k: v for k, v in (await self._document()).items()
                if not k.startswith(prefix)
            }
            await self._persist(document)
        logger.info("storage_cleared", namespace=self._namespace)

    async def keys(self) -> list[str]:
        prefix = f"{self._namespace}:"
        document = await self._document()
        return [k[len(prefix):] for k in document if k.startswith(prefix)]
