"""
PIN Hashing

CRITICAL: PINs are never stored. We keep a salted PBKDF2-HMAC-SHA256
hash with fixed parameters. Stored records carry their iteration count
and key length for display only; verification always uses the
constants below.

Key derivation is deliberately slow (100k iterations), so the async
entry points run it in a worker thread.
"""

import asyncio
import base64
import hashlib
import re
import secrets
from typing import Optional

from flatmate.models.security import PinHashRecord


PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # bytes
HASH_ALGORITHM = "sha256"
SALT_LENGTH = 16  # bytes

_PIN_RE = re.compile(r"[0-9]{4,6}")


class InvalidPinFormatError(ValueError):
    """PIN is not 4-6 ASCII digits."""

    def __init__(self):
        super().__init__("PIN must be 4-6 digits")


def is_valid_pin(pin: str) -> bool:
    return isinstance(pin, str) and _PIN_RE.fullmatch(pin) is not None


def ensure_valid_pin(pin: str) -> None:
    if not is_valid_pin(pin):
        raise InvalidPinFormatError()


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Random salt, base64-encoded."""
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


def derive_key(pin: str, salt: str) -> bytes:
    """PBKDF2-HMAC-SHA256 of the PIN with the base64 salt."""
    return hashlib.pbkdf2_hmac(
        HASH_ALGORITHM,
        pin.encode("utf-8"),
        base64.b64decode(salt, validate=True),
        PBKDF2_ITERATIONS,
        dklen=KEY_LENGTH,
    )


def timing_safe_equal(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings without short-circuiting.

    Lengths are compared first: buffers of different length never match.
    """
    if len(a) != len(b):
        return False
    result = 0
    for x, y in zip(a, b):
        result |= x ^ y
    return result == 0


async def hash_pin(pin: str, salt: Optional[str] = None) -> PinHashRecord:
    """
    Hash a PIN for storage.

    Raises:
        InvalidPinFormatError: Before any hashing if the PIN is malformed
    """
    ensure_valid_pin(pin)
    salt = salt or generate_salt()
    derived = await asyncio.to_thread(derive_key, pin, salt)
    return PinHashRecord(
        algorithm="PBKDF2",
        iterations=PBKDF2_ITERATIONS,
        salt=salt,
        hash=base64.b64encode(derived).decode("ascii"),
        key_length=KEY_LENGTH,
    )


async def verify_pin(pin: str, record: PinHashRecord) -> bool:
    """
    Check a PIN against a stored record.

    A malformed PIN never matches: False is returned without hashing.
    """
    if not is_valid_pin(pin):
        return False
    derived = await asyncio.to_thread(derive_key, pin, record.salt)
    expected = base64.b64decode(record.hash, validate=True)
    return timing_safe_equal(derived, expected)
