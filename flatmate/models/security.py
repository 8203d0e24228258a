"""
Credential and Household Settings Models

CRITICAL: The raw PIN is never stored. Only the PBKDF2 hash and its
salt are persisted, inside PinHashRecord.
"""

import base64
import binascii
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from flatmate.models.common import UtcDatetime, utcnow


PIN_PATTERN = r"^[0-9]{4,6}$"


class PinHashRecord(BaseModel):
    """Salted PBKDF2 hash of a PIN (base64-encoded salt and hash)."""

    algorithm: Literal["PBKDF2"] = "PBKDF2"
    iterations: int = Field(..., gt=0)
    salt: str = Field(..., min_length=1)
    hash: str = Field(..., min_length=1)
    key_length: int = Field(..., gt=0)

    @field_validator("salt", "hash")
    @classmethod
    def check_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except binascii.Error as e:
            raise ValueError("Must be base64-encoded") from e
        return v


class HouseholdSettings(BaseModel):
    """
    Singleton household configuration, including lockout state.

    failed_attempts and locked_until are only mutated by the
    rate-limiter and by explicit lock requests.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    currency: str = Field(default="USD", min_length=3, max_length=3)
    locale: str = Field(default="en-US", pattern=r"^[a-z]{2}-[A-Z]{2}$")
    theme: Literal["light", "dark", "system"] = "system"

    pin: Optional[PinHashRecord] = None
    pin_hint: Optional[str] = Field(default=None, max_length=100)
    lock_timeout_minutes: int = Field(
        default=0,
        ge=0,
        le=1440,
        description="Auto-lock length in minutes (0 = until PIN entry)"
    )

    failed_attempts: int = Field(default=0, ge=0)
    locked_until: Optional[UtcDatetime] = None

    data_version: str = Field(default="1.0.0", pattern=r"^\d+\.\d+\.\d+$")
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def pin_configured(self) -> bool:
        return self.pin is not None

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


class SetupPinInput(BaseModel):
    pin: str = Field(..., pattern=PIN_PATTERN)
    hint: Optional[str] = Field(default=None, max_length=100)


class VerifyPinInput(BaseModel):
    pin: str = Field(..., pattern=PIN_PATTERN)


class ChangePinInput(BaseModel):
    current_pin: str = Field(..., pattern=PIN_PATTERN)
    new_pin: str = Field(..., pattern=PIN_PATTERN)
    hint: Optional[str] = Field(default=None, max_length=100)
