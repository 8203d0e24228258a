"""
Settlement Engine

Reduces a set of net balances to a short list of directed payments
(debt simplification).

Algorithm:
1. Convert every net to integer cents (half-up), treating noise below
   EPSILON as exactly zero.
2. Split members into creditors (owed money) and debtors (owing money),
   each sorted by magnitude, largest first. Sorting is stable, so ties
   keep their input order and the output is deterministic.
3. Pair the largest creditor with the largest debtor, transfer the
   smaller of the two remainders, and advance whichever side is done.
4. Stop when either side is exhausted.

The greedy pairing is a heuristic. It usually produces few transfers
but is not a proof of the minimum; output length is at most
len(creditors) + len(debtors) - 1.

Nets that do not sum to zero leave a residual on one side. By default
the residual is logged as a warning and the engine returns the
best-effort transfers; in strict mode a residual above one cent raises
UnbalancedLedgerError.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

import structlog

from flatmate.models.common import CENT
from flatmate.models.household import NetBalance, Settlement


logger = structlog.get_logger(__name__)

CENT_FACTOR = 100
EPSILON = Decimal("1e-6")

# Residual (in cents) tolerated in strict mode
STRICT_RESIDUAL_CENTS = 1


class UnbalancedLedgerError(ValueError):
    """Net balances do not sum to zero."""

    def __init__(self, residual_cents: int):
        self.residual_cents = residual_cents
        super().__init__(
            f"Net balances do not sum to zero (residual {residual_cents} cents)"
        )


@dataclass
class _Position:
    member_id: str
    cents: int


def to_cents(value: Union[Decimal, float, int, str]) -> int:
    """Convert a currency amount to integer cents, rounding half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if abs(value) < EPSILON:
        return 0
    return int((value * CENT_FACTOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / CENT_FACTOR).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_settlements(
    net_balances: Iterable[NetBalance],
    currency: str,
    *,
    strict: bool = False,
) -> list[Settlement]:
    """
    Produce directed payments that zero out the given net balances.

    Args:
        net_balances: Net position per member (positive = owed money)
        currency: Currency code stamped on every settlement
        strict: Raise UnbalancedLedgerError on non-conserving input

    Returns:
        Settlements with strictly positive 2-decimal amounts.
        Empty when there is nothing to settle.
    """
    positions = [_Position(b.member_id, to_cents(b.net)) for b in net_balances]
    if not positions:
        return []

    creditors = sorted(
        (p for p in positions if p.cents > 0),
        key=lambda p: p.cents,
        reverse=True,
    )
    debtors = sorted(
        (_Position(p.member_id, -p.cents) for p in positions if p.cents < 0),
        key=lambda p: p.cents,
        reverse=True,
    )

    residual = sum(p.cents for p in creditors) - sum(p.cents for p in debtors)
    if residual:
        if strict and abs(residual) > STRICT_RESIDUAL_CENTS:
            raise UnbalancedLedgerError(residual)
        logger.warning(
            "unbalanced_net_balances",
            residual_cents=residual,
            creditors=len(creditors),
            debtors=len(debtors),
        )

    settlements: list[Settlement] = []
    ci = di = 0

    while ci < len(creditors) and di < len(debtors):
        creditor = creditors[ci]
        debtor = debtors[di]

        amount = min(creditor.cents, debtor.cents)
        settlements.append(Settlement(
            from_member_id=debtor.member_id,
            to_member_id=creditor.member_id,
            amount=from_cents(amount),
            currency=currency,
        ))

        creditor.cents -= amount
        debtor.cents -= amount

        if creditor.cents == 0:
            ci += 1
        if debtor.cents == 0:
            di += 1

    return settlements
