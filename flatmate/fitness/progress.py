"""
Goal Progress

A goal counts the sessions whose date falls inside its inclusive
[start_date, end_date] range, either by number or by total minutes.
Sessions of every member count towards the household goal.
"""

import math
from typing import Iterable, Optional

from flatmate.models.fitness import FitnessGoal, GoalMetric, GoalProgress, GymSession


def sessions_in_range(goal: FitnessGoal, sessions: Iterable[GymSession]) -> list[GymSession]:
    return [s for s in sessions if goal.start_date <= s.date <= goal.end_date]


def goal_progress(goal: FitnessGoal, sessions: Iterable[GymSession]) -> GoalProgress:
    counted = sessions_in_range(goal, sessions)
    sessions_count = len(counted)
    total_duration = sum(s.duration for s in counted)

    if goal.target_metric is GoalMetric.SESSION_COUNT:
        progress = sessions_count
    else:
        progress = total_duration

    # Half-up, so 12.5% shows as 13%
    percent = math.floor(progress / goal.target_value * 100 + 0.5)
    return GoalProgress(
        goal=goal,
        progress=progress,
        percent_complete=percent,
        is_complete=progress >= goal.target_value,
        sessions_count=sessions_count,
        total_duration=total_duration,
    )


def find_overlapping_goal(
    goal: FitnessGoal,
    goals: Iterable[FitnessGoal],
) -> Optional[FitnessGoal]:
    """An other active goal of the same period type sharing any day with goal."""
    for other in goals:
        if other.id != goal.id and other.is_active and goal.overlaps(other):
            return other
    return None
