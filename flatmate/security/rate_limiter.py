"""
PIN Rate-Limiter

Verifies PIN attempts against the stored credential and escalates
repeated failures:

    attempt 1..4 fail -> rejected, advisory delay 2s, 4s, 8s, 16s
    attempt 5 fails   -> rejected and locked for lockout_minutes
    while locked      -> rejected without hashing or counting

The delay is advisory: the caller decides how to enforce it (e.g. by
disabling the submit control). The limiter itself never sleeps.

Attempt state lives in HouseholdSettings and is only changed through
SettingsRepository.update, so concurrent attempts cannot lose counts.
"""

import math
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from flatmate.config import SecuritySettings
from flatmate.models.common import utcnow
from flatmate.models.results import ErrorCode, LockStatus, PinResult
from flatmate.models.security import HouseholdSettings
from flatmate.security.pin import is_valid_pin, verify_pin
from flatmate.services.storage import SettingsRepository


logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def progressive_delay_ms(
    failed_attempts: int,
    base_delay_ms: int = 1000,
    max_delay_ms: int = 16000,
) -> int:
    """min(2^attempts * base, max): 1s, 2s, 4s, 8s, 16s, capped."""
    return min(2 ** failed_attempts * base_delay_ms, max_delay_ms)


def lock_message(locked_until: datetime, now: datetime) -> str:
    minutes = math.ceil((locked_until - now).total_seconds() / 60)
    return f"Account locked. Try again in {minutes} minute(s)."


class PinRateLimiter:
    """
    Accept or reject PIN attempts and track lockout state.

    Usage:
        limiter = PinRateLimiter(SettingsRepository(storage))
        result = await limiter.attempt("1234")
        if not result.success and result.locked:
            wait(result.retry_after_seconds)
    """

    def __init__(
        self,
        settings_repository: SettingsRepository,
        security: Optional[SecuritySettings] = None,
        clock: Clock = utcnow,
    ):
        self._repository = settings_repository
        self._security = security or SecuritySettings()
        self._clock = clock

    def _locked_result(self, settings: HouseholdSettings, now: datetime) -> PinResult:
        retry_after = math.ceil((settings.locked_until - now).total_seconds())
        return PinResult.failure(
            lock_message(settings.locked_until, now),
            ErrorCode.LOCKED,
            failed_attempts=settings.failed_attempts,
            locked=True,
            locked_until=settings.locked_until,
            retry_after_seconds=retry_after,
        )

    async def attempt(self, pin: str) -> PinResult:
        """
        Check one PIN attempt.

        Order of checks: PIN format, credential configured, active lock,
        then the hash comparison.
        """
        if not is_valid_pin(pin):
            return PinResult.failure("PIN must be 4-6 digits", ErrorCode.VALIDATION)

        settings = await self._repository.get()
        if settings is None or settings.pin is None:
            return PinResult.failure("PIN not configured", ErrorCode.NOT_CONFIGURED)

        now = self._clock()
        if settings.is_locked(now):
            logger.info("pin_attempt_while_locked", locked_until=settings.locked_until.isoformat())
            return self._locked_result(settings, now)

        if await verify_pin(pin, settings.pin):
            await self.reset()
            return PinResult(success=True)

        return await self._record_failure(now)

    async def _record_failure(self, now: datetime) -> PinResult:
        max_attempts = self._security.max_failed_attempts
        lockout = timedelta(minutes=self._security.lockout_minutes)

        def _fail(settings: HouseholdSettings) -> HouseholdSettings:
            settings.failed_attempts += 1
            if settings.failed_attempts >= max_attempts:
                settings.locked_until = now + lockout
            settings.updated_at = now
            return settings

        settings = await self._repository.update(_fail)
        attempts = settings.failed_attempts
        locked = attempts >= max_attempts
        delay = progressive_delay_ms(
            attempts,
            self._security.base_delay_ms,
            self._security.max_delay_ms,
        )

        logger.warning("pin_rejected", failed_attempts=attempts, locked=locked)

        if locked:
            return PinResult.failure(
                "Too many failed attempts. " + lock_message(settings.locked_until, now),
                ErrorCode.LOCKED,
                failed_attempts=attempts,
                delay_ms=delay,
                locked=True,
                locked_until=settings.locked_until,
                retry_after_seconds=math.ceil((settings.locked_until - now).total_seconds()),
            )

        return PinResult.failure(
            "Invalid PIN",
            ErrorCode.INVALID_PIN,
            failed_attempts=attempts,
            delay_ms=delay,
        )

    async def reset(self) -> None:
        """Clear failed attempts and any lock."""
        now = self._clock()

        def _reset(settings: HouseholdSettings) -> None:
            settings.failed_attempts = 0
            settings.locked_until = None
            settings.updated_at = now

        await self._repository.update(_reset)

    async def lock_now(self) -> datetime:
        """
        Lock immediately, regardless of attempt count.

        Uses the household lock timeout, or an effectively indefinite
        lock when no timeout is configured.
        """
        now = self._clock()
        indefinite = timedelta(days=self._security.indefinite_lock_days)

        def _lock(settings: HouseholdSettings) -> datetime:
            if settings.lock_timeout_minutes > 0:
                settings.locked_until = now + timedelta(minutes=settings.lock_timeout_minutes)
            else:
                settings.locked_until = now + indefinite
            settings.updated_at = now
            return settings.locked_until

        return await self._repository.update(_lock)

    async def status(self) -> LockStatus:
        settings = await self._repository.get()
        if settings is None:
            return LockStatus(success=True, locked=False)

        now = self._clock()
        locked = settings.is_locked(now)
        return LockStatus(
            success=True,
            locked=locked,
            locked_until=settings.locked_until if locked else None,
            failed_attempts=settings.failed_attempts,
        )
