"""
Tests for engine records.

Ensures records validate their inputs, derive session figures correctly and
report malformed collaborator data with the offending record id.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from fitness_insights import errors
from fitness_insights.schemas import (
    ExercisePerformed,
    ExercisePrescription,
    Goal,
    GoalType,
    Insight,
    InsightAction,
    ActionType,
    InsightType,
    Priority,
    ScoreType,
    StreakTrigger,
    WorkoutSession,
    WorkoutSuggestion,
    Difficulty,
    coerce_score_events,
    coerce_sessions,
    ensure_utc,
)


# Fixtures

@pytest.fixture
def mixed_session():
    """Session with two exercises of different intensity."""
    return WorkoutSession(
        id="mixed",
        date=datetime(2026, 3, 10, 18, 0),
        duration_minutes=50,
        exercises=[
            ExercisePerformed(
                exercise_id="bench-press",
                muscle_groups=["Chest", "shoulders"],
                sets=3,
                reps=8,
                intensity_proxy=0.9,
            ),
            ExercisePerformed(
                exercise_id="plank",
                muscle_groups=["core"],
                sets=1,
                reps=0,
                intensity_proxy=0.5,
            ),
        ],
    )


# Test Cases


def test_naive_dates_are_treated_as_utc(mixed_session):
    """Naive timestamps are interpreted as UTC."""
    assert mixed_session.date.tzinfo is not None
    assert mixed_session.date == datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_offsets():
    """Aware timestamps are converted to UTC."""
    cet = timezone(timedelta(hours=1))
    converted = ensure_utc(datetime(2026, 3, 10, 19, 0, tzinfo=cet))
    assert converted == datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def test_session_intensity_is_sets_weighted(mixed_session):
    """Intensity weights each exercise by its sets."""
    assert mixed_session.intensity == pytest.approx((0.9 * 3 + 0.5 * 1) / 4)
    assert mixed_session.load == pytest.approx(50 * 0.8)


def test_session_muscle_groups(mixed_session):
    """Muscle groups are lower-cased and the first entry is primary."""
    assert mixed_session.muscle_groups == ["chest", "shoulders", "core"]
    assert mixed_session.primary_muscle_groups == ["chest", "core"]
    assert mixed_session.exercise_ids == ["bench-press", "plank"]


def test_session_without_exercises_has_zero_load():
    session = WorkoutSession(id="empty", date=datetime(2026, 3, 1), duration_minutes=30)
    assert session.intensity == 0.0
    assert session.load == 0.0


def test_session_is_immutable(mixed_session):
    with pytest.raises(PydanticValidationError):
        mixed_session.duration_minutes = 10


def test_intensity_proxy_out_of_range():
    with pytest.raises(PydanticValidationError):
        ExercisePerformed(exercise_id="x", muscle_groups=["core"], sets=1, intensity_proxy=1.2)


def test_exercise_requires_a_muscle_group():
    with pytest.raises(PydanticValidationError):
        ExercisePerformed(exercise_id="x", muscle_groups=["  "], sets=1, intensity_proxy=0.5)


def test_goal_defaults_and_bounds():
    goal = Goal(type=GoalType.STRENGTH)
    assert goal.target_duration_minutes == 45
    assert goal.difficulty_preference == Difficulty.INTERMEDIATE

    with pytest.raises(PydanticValidationError):
        Goal(type=GoalType.STRENGTH, target_duration_minutes=0)


def test_prescription_rejects_inverted_rep_range():
    with pytest.raises(PydanticValidationError):
        ExercisePrescription(exercise_id="x", sets=3, reps_range=(12, 8), rest_seconds=60)


def test_suggestion_score_is_not_serialized():
    """The internal score never leaves the engine."""
    suggestion = WorkoutSuggestion(
        id="t:strength",
        template_id="t",
        name="Test",
        description="Test workout",
        difficulty_level=Difficulty.BEGINNER,
        estimated_duration=30,
        exercises=[ExercisePrescription(exercise_id="x", sets=3, reps_range=(8, 12), rest_seconds=60)],
        calories_estimate=150,
        reasoning="Because.",
        score=0.87,
        score_breakdown={"affinity": 1.0},
    )
    dumped = suggestion.model_dump()
    assert "score" not in dumped
    assert "score_breakdown" not in dumped
    assert "score" not in json.loads(suggestion.model_dump_json())


def test_insight_visibility(now):
    insight = Insight(
        id="i1",
        type=InsightType.WARNING,
        origin="fatigue:high",
        title="High Fatigue",
        message="Rest",
        priority=Priority.HIGH,
        confidence=90,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(hours=1),
    )
    assert insight.is_visible(now)
    assert not insight.is_visible(now + timedelta(hours=1))
    assert not insight.model_copy(update={"dismissed": True}).is_visible(now)


def test_actionable_insight_requires_action(now):
    with pytest.raises(PydanticValidationError):
        Insight(
            id="i1",
            type=InsightType.SUGGESTION,
            origin="rest:day",
            title="Rest",
            message="Rest",
            priority=Priority.LOW,
            confidence=50,
            created_at=now,
            updated_at=now,
            actionable=True,
        )

    insight = Insight(
        id="i2",
        type=InsightType.SUGGESTION,
        origin="rest:day",
        title="Rest",
        message="Rest",
        priority=Priority.LOW,
        confidence=50,
        created_at=now,
        updated_at=now,
        actionable=True,
        action=InsightAction(type=ActionType.REST, label="Rest up"),
    )
    assert insight.action.type == ActionType.REST


def test_streak_longest_cannot_trail_current():
    with pytest.raises(PydanticValidationError):
        StreakTrigger(current_streak=5, longest_streak=3)


def test_score_type_direction():
    """Time is the only lower-is-better score type."""
    assert not ScoreType.TIME.higher_is_better
    for score_type in (ScoreType.POINTS, ScoreType.WEIGHT, ScoreType.DISTANCE, ScoreType.REPS):
        assert score_type.higher_is_better


def test_coerce_sessions_reports_record_id():
    """A malformed session is reported with its id."""
    records = [
        {"id": "ok", "date": "2026-03-10T10:00:00Z", "duration_minutes": 30},
        {"id": "bad-session", "date": "2026-03-11T10:00:00Z", "duration_minutes": -5},
    ]
    with pytest.raises(errors.ValidationError) as exc_info:
        coerce_sessions(records)

    assert exc_info.value.record_id == "bad-session"
    assert exc_info.value.code == errors.ErrorCode.VALIDATION_ERROR
    assert "bad-session" in str(exc_info.value)


def test_coerce_sessions_falls_back_to_position():
    with pytest.raises(errors.ValidationError) as exc_info:
        coerce_sessions([{"date": "2026-03-10T10:00:00Z", "duration_minutes": 30}])
    assert exc_info.value.record_id == "session[0]"


def test_coerce_sessions_rejects_duplicate_ids():
    records = [
        {"id": "dup", "date": "2026-03-10T10:00:00Z", "duration_minutes": 30},
        {"id": "dup", "date": "2026-03-11T10:00:00Z", "duration_minutes": 40},
    ]
    with pytest.raises(errors.ValidationError) as exc_info:
        coerce_sessions(records)
    assert exc_info.value.record_id == "dup"


def test_coerce_sessions_loads_fixture(fixtures_dir):
    with open(fixtures_dir / "sessions_history.json") as f:
        data = json.load(f)
    sessions = coerce_sessions(data["sessions"])
    assert len(sessions) == 8
    assert all(isinstance(s, WorkoutSession) for s in sessions)


def test_coerce_score_events_reports_user_id():
    records = [{"user_id": "u9", "score": 10, "achieved_at": "2026-03-10T10:00:00Z", "score_type": "laps"}]
    with pytest.raises(errors.ValidationError) as exc_info:
        coerce_score_events(records)
    assert exc_info.value.record_id == "u9"


def test_error_to_dict():
    error = errors.ValidationError("Malformed session", record_id="s1", details={"field": "date"})
    assert error.to_dict() == {
        "error": "VALIDATION_ERROR",
        "message": "Malformed session",
        "record_id": "s1",
        "details": {"field": "date"},
    }
