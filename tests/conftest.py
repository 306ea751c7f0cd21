"""Shared fixtures for insight engine tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fitness_insights.schemas import ExercisePerformed, WorkoutSession

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# A Thursday; the ISO week starts Monday 2026-03-09
NOW = datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def make_session():
    """Factory for single-exercise sessions dated relative to NOW."""

    def _make(
        session_id,
        hours_ago,
        duration=60,
        intensity=0.7,
        groups=("quadriceps", "glutes", "hamstrings"),
        exercise_id="back-squats",
        sets=4,
    ):
        return WorkoutSession(
            id=session_id,
            date=NOW - timedelta(hours=hours_ago),
            duration_minutes=duration,
            exercises=[
                ExercisePerformed(
                    exercise_id=exercise_id,
                    muscle_groups=list(groups),
                    sets=sets,
                    reps=8,
                    intensity_proxy=intensity,
                )
            ],
        )

    return _make
