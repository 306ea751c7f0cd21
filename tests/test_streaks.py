"""Tests for workout streak computation."""

import json

from fitness_insights.schemas import coerce_sessions
from fitness_insights.streaks import compute_streak, workout_days


def test_no_sessions(now):
    streak = compute_streak([], now)
    assert streak.current_streak == 0
    assert streak.longest_streak == 0


def test_streak_alive_through_yesterday(make_session, now):
    """Training yesterday keeps the streak alive before today's session."""
    sessions = [make_session(f"s{i}", 24 * i + 20) for i in range(4)]
    streak = compute_streak(sessions, now)
    assert streak.current_streak == 4
    assert streak.longest_streak == 4


def test_streak_broken_by_missed_day(make_session, now):
    sessions = [make_session(f"s{i}", 24 * i + 60) for i in range(5)]
    streak = compute_streak(sessions, now)
    assert streak.current_streak == 0
    assert streak.longest_streak == 5


def test_longest_streak_from_earlier_run(make_session, now):
    earlier = [make_session(f"e{i}", 24 * (i + 10)) for i in range(6)]
    recent = [make_session("today", 1), make_session("yesterday", 24)]
    streak = compute_streak(earlier + recent, now)
    assert streak.current_streak == 2
    assert streak.longest_streak == 6


def test_multiple_sessions_per_day_count_once(make_session, now):
    sessions = [make_session("am", 2), make_session("am2", 3), make_session("y", 24)]
    assert len(workout_days(sessions, now)) == 2
    assert compute_streak(sessions, now).current_streak == 2


def test_future_sessions_ignored(make_session, now):
    sessions = [make_session("future", -30), make_session("past", 1)]
    assert compute_streak(sessions, now).current_streak == 1


def test_fixture_history(fixtures_dir, now):
    """Leg days on the 9th, 10th and 11th give a three-day streak."""
    with open(fixtures_dir / "sessions_history.json") as f:
        sessions = coerce_sessions(json.load(f)["sessions"])
    streak = compute_streak(sessions, now)
    assert streak.current_streak == 3
    assert streak.longest_streak == 3
