"""
Split Calculators

Build participant lists for the three split modes. Equal and ratio
splits work in cents and hand out leftover cents by largest remainder
(ties broken by input order), so participant amounts always add up to
the expense amount exactly.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Mapping, Sequence, Union
from uuid import UUID

from flatmate.ledger.settlement import from_cents, to_cents
from flatmate.models.common import to_money
from flatmate.models.household import (
    PARTICIPANT_SUM_TOLERANCE,
    ExpenseParticipant,
    Member,
)

Amount = Union[Decimal, float, int, str]


class SplitError(ValueError):
    """An amount cannot be divided as requested."""
    pass


def _allocate(total_cents: int, weights: Sequence[Decimal]) -> list[int]:
    """Distribute total_cents proportionally to weights (largest remainder)."""
    weight_sum = sum(weights, Decimal("0"))
    exact = [Decimal(total_cents) * w / weight_sum for w in weights]
    floors = [int(x.to_integral_value(rounding=ROUND_FLOOR)) for x in exact]

    leftover = total_cents - sum(floors)
    by_remainder = sorted(
        range(len(weights)),
        key=lambda i: exact[i] - floors[i],
        reverse=True,
    )
    for i in by_remainder[:leftover]:
        floors[i] += 1
    return floors


def split_equal(amount: Amount, member_ids: Sequence[UUID]) -> list[ExpenseParticipant]:
    """Split evenly; the first members in the list absorb leftover cents."""
    if not member_ids:
        raise SplitError("At least one participant is required")
    if len(set(member_ids)) != len(member_ids):
        raise SplitError("Each member can appear only once among participants")

    total_cents = to_cents(amount)
    if total_cents < len(member_ids):
        raise SplitError(
            f"Amount is too small to split between {len(member_ids)} members"
        )

    shares = _allocate(total_cents, [Decimal(1)] * len(member_ids))
    return [
        ExpenseParticipant(member_id=member_id, amount=from_cents(cents))
        for member_id, cents in zip(member_ids, shares)
    ]


def split_by_ratio(amount: Amount, members: Sequence[Member]) -> list[ExpenseParticipant]:
    """
    Split by each member's share ratio.

    Ratios are normalised to sum to 1. If every ratio is zero, members
    are weighted equally. Members whose share rounds to zero cents are
    left out, since participant amounts must be positive.
    """
    if not members:
        raise SplitError("At least one participant is required")

    ratios = [Decimal(str(m.share_ratio)) for m in members]
    if sum(ratios, Decimal("0")) <= 0:
        ratios = [Decimal(1)] * len(members)
    ratio_sum = sum(ratios, Decimal("0"))

    total_cents = to_cents(amount)
    if total_cents <= 0:
        raise SplitError("Amount must be positive")
    shares = _allocate(total_cents, ratios)

    participants = []
    for member, ratio, cents in zip(members, ratios, shares):
        if cents <= 0:
            continue
        percentage = float((ratio / ratio_sum * 100).quantize(Decimal("0.01")))
        participants.append(ExpenseParticipant(
            member_id=member.id,
            amount=from_cents(cents),
            percentage=percentage,
        ))

    if not participants:
        raise SplitError("Amount is too small to split")
    return participants


def split_custom(
    amount: Amount,
    allocations: Mapping[UUID, Amount],
) -> list[ExpenseParticipant]:
    """
    Use explicit per-member amounts.

    Raises SplitError when an allocation is not positive or the
    allocations do not add up to the amount.
    """
    if not allocations:
        raise SplitError("At least one participant is required")

    participants = []
    for member_id, value in allocations.items():
        money = to_money(value)
        if money <= 0:
            raise SplitError(f"Allocation for {member_id} must be positive")
        participants.append(ExpenseParticipant(member_id=member_id, amount=money))

    total = sum((p.amount for p in participants), Decimal("0"))
    if abs(total - to_money(amount)) >= PARTICIPANT_SUM_TOLERANCE:
        raise SplitError(
            f"Allocations sum to {total}, expected {to_money(amount)}"
        )
    return participants
