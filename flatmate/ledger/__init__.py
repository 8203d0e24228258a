"""
Ledger Package

Balance aggregation, debt simplification and split calculators.
All functions here are pure; workflows persist their results.
"""

from flatmate.ledger.balances import calculate_balances, calculate_net_balances
from flatmate.ledger.settlement import (
    UnbalancedLedgerError,
    calculate_settlements,
    from_cents,
    to_cents,
)
from flatmate.ledger.splits import (
    SplitError,
    split_by_ratio,
    split_custom,
    split_equal,
)

__all__ = [
    "calculate_balances",
    "calculate_net_balances",
    "calculate_settlements",
    "from_cents",
    "to_cents",
    "split_by_ratio",
    "split_custom",
    "split_equal",
    "SplitError",
    "UnbalancedLedgerError",
]
