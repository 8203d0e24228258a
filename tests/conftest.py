"""
Shared fixtures for Flatmate tests.

Test strategy:
1. Unit tests for the pure engines (settlement, splits, rotation, PIN)
2. Repository tests against in-memory and JSON-file storage
3. Workflow tests through create_app_components with in-memory storage

Each async test drives one scenario through asyncio.run so that locks
and repositories never outlive their event loop.
"""

from datetime import datetime, timedelta, timezone

import pytest

from flatmate.orchestrator import create_app_components
from flatmate.services.storage import InMemoryStorage


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable, timezone-aware clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def app(clock, storage):
    """Fully wired components over in-memory storage."""
    return create_app_components(storage=storage, clock=clock)


@pytest.fixture
def add_member(app):
    """Create a member through the member workflow and return it."""
    async def _add(name: str, **fields):
        result = await app.members.create_member({"name": name, **fields})
        assert result.success, result.error
        return result.member
    return _add
