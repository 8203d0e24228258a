"""
Tests for storage adapters and versioned repositories.
"""

import asyncio
import json

import pytest

from flatmate.config import StorageSettings
from flatmate.models import HouseholdSettings, Member
from flatmate.services import create_storage_adapter
from flatmate.services.storage import (
    CollectionRepository,
    ConflictError,
    InMemoryStorage,
    JsonFileStorage,
    NotFoundError,
    QuotaExceededError,
    SerializationError,
    SettingsRepository,
    StorageKeys,
)


class RacingStorage(InMemoryStorage):
    """
    Simulates another writer: bumps the version token between a
    repository's read and its commit, `races` times.
    """

    def __init__(self, races: int):
        super().__init__()
        self.races = races
        self._version_reads = 0

    async def get(self, key):
        value = await super().get(key)
        if not key.endswith(":version"):
            return value

        self._version_reads += 1
        # Odd reads come from load(), even reads from the commit check
        if self.races and self._version_reads % 2 == 0:
            self.races -= 1
            value = (value or 0) + 1
            await super().set(key, value)
        return value


class TestInMemoryStorage:

    def test_basic_operations(self):
        async def scenario():
            storage = InMemoryStorage()
            await storage.set("members", [{"name": "Amy"}])
            value = await storage.get("members")
            keys_before = await storage.keys()
            has = await storage.has("members")
            await storage.remove("members")
            return value, keys_before, has, await storage.get("members")

        value, keys, has, after = asyncio.run(scenario())
        assert value == [{"name": "Amy"}]
        assert keys == ["members"]
        assert has
        assert after is None

    def test_values_are_copies(self):
        async def scenario():
            storage = InMemoryStorage()
            original = {"name": "Amy"}
            await storage.set("member", original)
            original["name"] = "Changed"
            return await storage.get("member")

        assert asyncio.run(scenario()) == {"name": "Amy"}

    @pytest.mark.parametrize("value", [float("nan"), object()])
    def test_unserializable_values(self, value):
        with pytest.raises(SerializationError):
            asyncio.run(InMemoryStorage().set("bad", value))

    def test_quota(self):
        storage = InMemoryStorage(max_bytes=40)
        with pytest.raises(QuotaExceededError):
            asyncio.run(storage.set("members", "x" * 100))

    def test_quota_counts_utf8_bytes(self):
        # 11 characters but 21 bytes
        storage = InMemoryStorage(max_bytes=15)
        with pytest.raises(QuotaExceededError):
            asyncio.run(storage.set("\u00e9" * 10, 1))

    def test_set_many_is_all_or_nothing(self):
        async def scenario():
            storage = InMemoryStorage(max_bytes=20)
            await storage.set("a", "x")
            with pytest.raises(QuotaExceededError):
                await storage.set_many({"b": "y", "c": "z" * 20})
            return await storage.keys(), await storage.get("b")

        assert asyncio.run(scenario()) == (["a"], None)


class TestJsonFileStorage:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"

        async def scenario():
            await JsonFileStorage(path).set("members", [{"name": "Amy"}])
            return await JsonFileStorage(path).get("members")

        assert asyncio.run(scenario()) == [{"name": "Amy"}]

        document = json.loads(path.read_text(encoding="utf-8"))
        assert json.loads(document["flatmate:members"]) == [{"name": "Amy"}]

    def test_clear_only_touches_own_namespace(self, tmp_path):
        path = tmp_path / "store.json"

        async def scenario():
            await JsonFileStorage(path, namespace="theirs").set("members", [1])
            ours = JsonFileStorage(path, namespace="ours")
            await ours.set("members", [2])
            await ours.clear()
            return await ours.keys(), await JsonFileStorage(path, namespace="theirs").keys()

        ours_keys, theirs_keys = asyncio.run(scenario())
        assert ours_keys == []
        assert theirs_keys == ["members"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SerializationError):
            asyncio.run(JsonFileStorage(path).get("members"))

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        asyncio.run(JsonFileStorage(path).set("settings", {"currency": "USD"}))
        assert path.exists()

    def test_quota(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "store.json", max_bytes=1024)
        with pytest.raises(QuotaExceededError):
            asyncio.run(storage.set("members", "x" * 2048))
        assert not (tmp_path / "store.json").exists()

    def test_quota_counts_utf8_bytes(self, tmp_path):
        storage = JsonFileStorage(
            tmp_path / "store.json", namespace="\u00fc" * 8, max_bytes=15
        )
        with pytest.raises(QuotaExceededError):
            asyncio.run(storage.set("k", 1))

    def test_set_many_persists_together(self, tmp_path):
        path = tmp_path / "store.json"

        async def scenario():
            await JsonFileStorage(path).set_many({"members": [], "members:version": 1})
            reloaded = JsonFileStorage(path)
            return await reloaded.get("members"), await reloaded.get("members:version")

        assert asyncio.run(scenario()) == ([], 1)

    def test_adapter_factory(self, tmp_path):
        memory = create_storage_adapter(StorageSettings(backend="memory"))
        on_disk = create_storage_adapter(StorageSettings(backend="json", data_dir=tmp_path))
        assert isinstance(memory, InMemoryStorage)
        assert isinstance(on_disk, JsonFileStorage)
        assert on_disk.path == tmp_path / "store.json"


class TestCollectionRepository:

    def test_update_and_version(self, storage):
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)

        async def scenario():
            before = await repo.version()
            await repo.update(lambda items: items.append(Member(name="Amy")))
            await repo.update(lambda items: items.append(Member(name="Bryan")))
            return before, await repo.version(), await repo.all()

        before, after, members = asyncio.run(scenario())
        assert (before, after) == (0, 2)
        assert [m.name for m in members] == ["Amy", "Bryan"]

    def test_stale_commit_conflicts(self, storage):
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)

        async def scenario():
            snapshot = await repo.load()
            await repo.update(lambda items: items.append(Member(name="Amy")))
            await repo.commit(snapshot.items, snapshot.version)

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.key == "members"

    def test_conflict_is_retried(self):
        storage = RacingStorage(races=2)
        settings = StorageSettings(conflict_retry_attempts=3, conflict_retry_wait_seconds=0)
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member, settings)
        calls = []

        def _append(items):
            calls.append(len(items))
            items.append(Member(name="Amy"))
            return "done"

        async def scenario():
            result = await repo.update(_append)
            return result, await repo.all()

        result, members = asyncio.run(scenario())
        assert result == "done"
        assert len(calls) == 3
        assert [m.name for m in members] == ["Amy"]

    def test_conflict_raised_after_retries(self):
        storage = RacingStorage(races=5)
        settings = StorageSettings(conflict_retry_attempts=2, conflict_retry_wait_seconds=0)
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member, settings)

        with pytest.raises(ConflictError):
            asyncio.run(repo.update(lambda items: items.append(Member(name="Amy"))))

    def test_mutator_error_aborts_write(self, storage):
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)

        def _fail(items):
            items.append(Member(name="Amy"))
            raise RuntimeError("nope")

        async def scenario():
            with pytest.raises(RuntimeError):
                await repo.update(_fail)
            return await repo.version(), await repo.all()

        assert asyncio.run(scenario()) == (0, [])

    def test_quota_failure_leaves_nothing_behind(self):
        amy = Member(name="Amy")
        encoded = json.dumps([amy.model_dump(mode="json")], separators=(",", ":"))
        # Room for the collection but not for its version token
        storage = InMemoryStorage(max_bytes=len(StorageKeys.MEMBERS) + len(encoded))
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)

        async def scenario():
            with pytest.raises(QuotaExceededError):
                await repo.update(lambda items: items.append(amy))
            return await storage.keys(), await repo.version(), await repo.all()

        assert asyncio.run(scenario()) == ([], 0, [])

    def test_invalid_records(self, storage):
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)

        async def scenario():
            await storage.set(StorageKeys.MEMBERS, [{"color": "blue"}])
            await repo.all()

        with pytest.raises(SerializationError):
            asyncio.run(scenario())

    def test_get_or_raise(self, storage):
        repo = CollectionRepository(storage, StorageKeys.MEMBERS, Member)
        with pytest.raises(NotFoundError):
            asyncio.run(repo.get_or_raise(Member(name="Ghost").id))


class TestSettingsRepository:

    def test_initialize_once(self, storage):
        repo = SettingsRepository(storage)

        async def scenario():
            first = await repo.initialize(HouseholdSettings(currency="EUR"))
            second = await repo.initialize(HouseholdSettings(currency="GBP"))
            return first, second

        first, second = asyncio.run(scenario())
        assert first.currency == "EUR"
        assert second.currency == "EUR"

    def test_update_requires_initialization(self, storage):
        repo = SettingsRepository(storage)
        with pytest.raises(NotFoundError):
            asyncio.run(repo.update(lambda s: None))

    def test_update_returns_mutator_result(self, storage):
        repo = SettingsRepository(storage)

        def _theme(settings):
            settings.theme = "dark"
            return settings.theme

        async def scenario():
            await repo.initialize(HouseholdSettings())
            result = await repo.update(_theme)
            return result, await repo.get()

        result, settings = asyncio.run(scenario())
        assert result == "dark"
        assert settings.theme == "dark"
