"""
Tests for the PIN rate-limiter (progressive delay and lockout).
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from flatmate.config import SecuritySettings
from flatmate.models import ErrorCode, HouseholdSettings
from flatmate.security import PinRateLimiter, hash_pin, lock_message, progressive_delay_ms
from flatmate.services.storage import SettingsRepository


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
PIN = "1357"
WRONG = "0000"


@pytest.fixture
def repository(storage):
    return SettingsRepository(storage)


@pytest.fixture
def limiter(repository, clock):
    return PinRateLimiter(repository, SecuritySettings(), clock)


async def configure(repository, pin=PIN, **fields):
    record = await hash_pin(pin)
    await repository.initialize(HouseholdSettings(pin=record, **fields))


class TestDelays:

    @pytest.mark.parametrize("attempts,expected", [
        (0, 1000),
        (1, 2000),
        (3, 8000),
        (4, 16000),
        (5, 16000),
        (12, 16000),
    ])
    def test_progressive_delay(self, attempts, expected):
        assert progressive_delay_ms(attempts) == expected

    def test_lock_message_rounds_up(self):
        message = lock_message(NOW + timedelta(minutes=14, seconds=30), NOW)
        assert message == "Account locked. Try again in 15 minute(s)."


class TestAttempts:

    def test_not_configured(self, limiter):
        result = asyncio.run(limiter.attempt(PIN))
        assert result.error_code == ErrorCode.NOT_CONFIGURED
        assert result.error == "PIN not configured"

    def test_malformed_pin_not_counted(self, limiter, repository):
        async def scenario():
            await configure(repository)
            result = await limiter.attempt("12")
            return result, await repository.get()

        result, settings = asyncio.run(scenario())
        assert result.error_code == ErrorCode.VALIDATION
        assert result.error == "PIN must be 4-6 digits"
        assert settings.failed_attempts == 0

    def test_correct_pin_resets_attempts(self, limiter, repository):
        async def scenario():
            await configure(repository)
            await limiter.attempt(WRONG)
            await limiter.attempt(WRONG)
            result = await limiter.attempt(PIN)
            return result, await repository.get()

        result, settings = asyncio.run(scenario())
        assert result.success
        assert settings.failed_attempts == 0
        assert settings.locked_until is None

    def test_escalation_to_lockout(self, limiter, repository):
        """Test four rejections with growing delay, then a lock on the fifth."""
        async def scenario():
            await configure(repository)
            return [await limiter.attempt(WRONG) for _ in range(5)]

        results = asyncio.run(scenario())

        assert [r.error_code for r in results[:4]] == [ErrorCode.INVALID_PIN] * 4
        assert [r.delay_ms for r in results[:4]] == [2000, 4000, 8000, 16000]
        assert [r.failed_attempts for r in results] == [1, 2, 3, 4, 5]

        locked = results[4]
        assert locked.error_code == ErrorCode.LOCKED
        assert locked.locked
        assert locked.locked_until == NOW + timedelta(minutes=15)
        assert locked.retry_after_seconds == 900
        assert locked.error.startswith("Too many failed attempts.")

    def test_locked_rejects_correct_pin_without_counting(
        self, limiter, repository, clock, monkeypatch
    ):
        compared = []

        async def spy(pin, record):
            compared.append(pin)
            return True

        async def scenario():
            await configure(repository)
            for _ in range(5):
                await limiter.attempt(WRONG)
            clock.advance(minutes=5)
            monkeypatch.setattr("flatmate.security.rate_limiter.verify_pin", spy)
            result = await limiter.attempt(PIN)
            return result, await repository.get()

        result, settings = asyncio.run(scenario())
        assert compared == []
        assert result.error_code == ErrorCode.LOCKED
        assert result.error == "Account locked. Try again in 10 minute(s)."
        assert result.retry_after_seconds == 600
        assert settings.failed_attempts == 5

    def test_correct_pin_after_lock_expires(self, limiter, repository, clock):
        async def scenario():
            await configure(repository)
            for _ in range(5):
                await limiter.attempt(WRONG)
            clock.advance(minutes=16)
            result = await limiter.attempt(PIN)
            return result, await repository.get()

        result, settings = asyncio.run(scenario())
        assert result.success
        assert settings.failed_attempts == 0

    def test_failure_after_lock_expires_relocks(self, limiter, repository, clock):
        async def scenario():
            await configure(repository)
            for _ in range(5):
                await limiter.attempt(WRONG)
            clock.advance(minutes=16)
            return await limiter.attempt(WRONG)

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.LOCKED
        assert result.failed_attempts == 6
        assert result.locked_until == NOW + timedelta(minutes=31)

    def test_custom_thresholds(self, repository, clock):
        limiter = PinRateLimiter(
            repository,
            SecuritySettings(max_failed_attempts=2, lockout_minutes=1, base_delay_ms=10, max_delay_ms=15),
            clock,
        )

        async def scenario():
            await configure(repository)
            return [await limiter.attempt(WRONG) for _ in range(2)]

        first, second = asyncio.run(scenario())
        assert first.delay_ms == 15
        assert second.locked
        assert second.locked_until == NOW + timedelta(minutes=1)


class TestLockStatus:

    def test_status_without_settings(self, limiter):
        status = asyncio.run(limiter.status())
        assert status.success
        assert not status.locked

    def test_lock_now_without_timeout_is_indefinite(self, limiter, repository):
        async def scenario():
            await configure(repository)
            locked_until = await limiter.lock_now()
            return locked_until, await limiter.status()

        locked_until, status = asyncio.run(scenario())
        assert locked_until == NOW + timedelta(days=365)
        assert status.locked

    def test_lock_now_uses_household_timeout(self, limiter, repository, clock):
        async def scenario():
            await configure(repository, lock_timeout_minutes=30)
            locked_until = await limiter.lock_now()
            clock.advance(minutes=31)
            return locked_until, await limiter.status()

        locked_until, status = asyncio.run(scenario())
        assert locked_until == NOW + timedelta(minutes=30)
        assert not status.locked
        assert status.locked_until is None
