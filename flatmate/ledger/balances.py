"""
Balance Aggregator

Derives each member's net position from the unsettled expenses and
hands the result to the settlement engine.

Only one currency is supported per computation: the currency of the
first unsettled expense is used for every balance.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from flatmate.ledger.settlement import calculate_settlements
from flatmate.models.household import Balance, Expense, Member, NetBalance


def calculate_net_balances(
    expenses: Iterable[Expense],
    members: Iterable[Member],
) -> list[NetBalance]:
    """
    Net position per member over unsettled expenses.

    Active members always appear (possibly at zero), in roster order,
    followed by any other member referenced by an expense.
    """
    nets: dict[str, Decimal] = {}
    for member in members:
        if member.is_active:
            nets[str(member.id)] = Decimal("0")

    for expense in expenses:
        if expense.is_settled:
            continue

        payer = str(expense.payer_id)
        nets[payer] = nets.get(payer, Decimal("0")) + expense.amount

        for participant in expense.participants:
            member_id = str(participant.member_id)
            nets[member_id] = nets.get(member_id, Decimal("0")) - participant.amount

    return [NetBalance(member_id=member_id, net=net) for member_id, net in nets.items()]


def calculate_balances(
    expenses: Iterable[Expense],
    members: Iterable[Member],
    *,
    strict: bool = False,
) -> list[Balance]:
    """
    Who owes whom, simplified, across all unsettled expenses.

    Pure function: callers persist the result.
    """
    unsettled = [e for e in expenses if not e.is_settled]
    if not unsettled:
        return []

    net_balances = calculate_net_balances(unsettled, members)
    currency = unsettled[0].currency

    settlements = calculate_settlements(net_balances, currency, strict=strict)

    return [
        Balance(
            from_member_id=UUID(s.from_member_id),
            to_member_id=UUID(s.to_member_id),
            amount=s.amount,
            currency=s.currency,
        )
        for s in settlements
    ]
