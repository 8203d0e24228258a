"""
Fitness Package

Progress tracking for the household's collective fitness goals.
"""

from flatmate.fitness.progress import find_overlapping_goal, goal_progress, sessions_in_range

__all__ = [
    "find_overlapping_goal",
    "goal_progress",
    "sessions_in_range",
]
