"""Due-date arithmetic for chore cadences."""

import calendar
from datetime import datetime, timedelta
from typing import Optional

from flatmate.models.chores import Cadence


CADENCE_INTERVALS = {
    Cadence.DAILY: timedelta(days=1),
    Cadence.WEEKLY: timedelta(days=7),
    Cadence.BIWEEKLY: timedelta(days=14),
}


def parse_cadence(label: str) -> Optional[Cadence]:
    """Known cadence for a label, or None for a custom cadence."""
    try:
        return Cadence(label.strip().lower())
    except ValueError:
        return None


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_due_date(cadence: str, previous_due: datetime) -> Optional[datetime]:
    """
    Next due date after previous_due.

    Returns None for custom cadences, which have no automatic schedule.
    """
    known = parse_cadence(cadence)
    if known is None:
        return None
    if known is Cadence.MONTHLY:
        return add_months(previous_due, 1)
    return previous_due + CADENCE_INTERVALS[known]
