"""
Chores Package

Rotation sequencing and cadence arithmetic for recurring chores.
"""

from flatmate.chores.cadence import add_months, next_due_date, parse_cadence
from flatmate.chores.rotation import RotationError, get_next_assignee

__all__ = [
    "add_months",
    "get_next_assignee",
    "next_due_date",
    "parse_cadence",
    "RotationError",
]
