"""
Workout streaks from session history.

A streak is a run of consecutive UTC calendar days with at least one session.
The current streak stays alive while the last workout day is today or
yesterday.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List

from fitness_insights.schemas import StreakTrigger, WorkoutSession, ensure_utc


def workout_days(sessions: Iterable[WorkoutSession], now: datetime) -> List[date]:
    """Distinct UTC days with a session on or before `now`, ascending."""
    now = ensure_utc(now)
    return sorted({s.date.date() for s in sessions if s.date <= now})


def compute_streak(sessions: Iterable[WorkoutSession], now: datetime) -> StreakTrigger:
    """
    Current and longest streak as of `now`.

    Args:
        sessions: Completed sessions
        now: Reference time

    Returns:
        StreakTrigger with current_streak and longest_streak
    """
    now = ensure_utc(now)
    days = workout_days(sessions, now)
    if not days:
        return StreakTrigger(current_streak=0, longest_streak=0)

    longest = run = 1
    for previous, day in zip(days, days[1:]):
        run = run + 1 if day - previous == timedelta(days=1) else 1
        longest = max(longest, run)

    current = 0
    if (now.date() - days[-1]).days <= 1:
        current = 1
        for previous, day in zip(reversed(days[:-1]), reversed(days)):
            if day - previous != timedelta(days=1):
                break
            current += 1

    return StreakTrigger(current_streak=current, longest_streak=max(longest, current))
