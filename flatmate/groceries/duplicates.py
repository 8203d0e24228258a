"""
Duplicate Detection

Two purchases are likely the same item when they were bought within
the duplicate window and their names are similar:

    similarity = 1 - levenshtein(a, b) / max(len(a), len(b))

compared case-insensitively. A similarity strictly above the threshold
counts as a duplicate, so at the default 0.8 "Milk" and "milk" match
while "Milk" and "Silk" (0.75) do not.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from flatmate.models.groceries import GroceryItem


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1]; 1 for names equal ignoring case."""
    a, b = a.casefold(), b.casefold()
    if a == b:
        return 1.0
    return 1 - levenshtein(a, b) / max(len(a), len(b))


def find_duplicate(
    name: str,
    purchased_at: datetime,
    existing: Iterable[GroceryItem],
    threshold: float = 0.8,
    window: timedelta = timedelta(hours=24),
) -> Optional[GroceryItem]:
    """First existing item that looks like the same purchase, if any."""
    for item in existing:
        if abs(purchased_at - item.purchased_at) > window:
            continue
        if name_similarity(name, item.name) > threshold:
            return item
    return None
