"""
Groceries Package

Duplicate detection and spending roll-ups for the shared grocery list.
"""

from flatmate.groceries.contributions import select_items, summarize_contributions
from flatmate.groceries.duplicates import find_duplicate, levenshtein, name_similarity

__all__ = [
    "find_duplicate",
    "levenshtein",
    "name_similarity",
    "select_items",
    "summarize_contributions",
]
