"""Shared helpers for model definitions."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Union

from pydantic import AfterValidator, Field

CENT = Decimal("0.01")

# Positive amount with at most two decimals, as entered by a user
PositiveMoney = Annotated[Decimal, Field(gt=0, decimal_places=2)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timezone-aware (UTC) datetime; naive input is assumed to be UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def to_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """Quantize any numeric value to 2 decimal places (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
