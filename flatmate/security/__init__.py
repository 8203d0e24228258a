"""
Security Package

PIN hashing and the PIN rate-limiter.
"""

from flatmate.security.pin import (
    KEY_LENGTH,
    PBKDF2_ITERATIONS,
    InvalidPinFormatError,
    derive_key,
    generate_salt,
    hash_pin,
    is_valid_pin,
    timing_safe_equal,
    verify_pin,
)
from flatmate.security.rate_limiter import (
    PinRateLimiter,
    lock_message,
    progressive_delay_ms,
)

__all__ = [
    "KEY_LENGTH",
    "PBKDF2_ITERATIONS",
    "InvalidPinFormatError",
    "PinRateLimiter",
    "derive_key",
    "generate_salt",
    "hash_pin",
    "is_valid_pin",
    "lock_message",
    "progressive_delay_ms",
    "timing_safe_equal",
    "verify_pin",
]
