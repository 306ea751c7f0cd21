"""
Pydantic models for the insight engine.

This module defines the typed records exchanged with collaborators:
- Inputs: workout sessions, training goals, score events, achievement and
  streak triggers
- Outputs: workout suggestions, fatigue assessments, rest recommendations,
  insights and leaderboard standings

Closed variants (goal type, insight type, score type, ...) are str enums so
they serialize as plain strings and exhaustiveness stays checkable.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from fitness_insights.errors import ValidationError


def ensure_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================================
# Enumerations
# ============================================================================


class GoalType(str, Enum):
    """Training goal selected by the user."""
    STRENGTH = "strength"
    MUSCLE_GAIN = "muscle_gain"
    WEIGHT_LOSS = "weight_loss"
    ENDURANCE = "endurance"
    GENERAL_FITNESS = "general_fitness"


class Difficulty(str, Enum):
    """Workout difficulty level."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


DIFFICULTY_ORDER = [Difficulty.BEGINNER, Difficulty.INTERMEDIATE, Difficulty.ADVANCED]


class Severity(str, Enum):
    """Severity of a fatigue indicator."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    """Priority of a recommendation or insight."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class IndicatorType(str, Enum):
    """What a fatigue indicator measures."""
    LOAD_SPIKE = "load_spike"
    MUSCLE_OVERUSE = "muscle_overuse"
    WEEKLY_VOLUME = "weekly_volume"
    HIGH_INTENSITY_RECENT = "high_intensity_recent"


class RecommendationType(str, Enum):
    """Kind of rest-day activity."""
    COMPLETE_REST = "complete_rest"
    ACTIVE_RECOVERY = "active_recovery"
    LIGHT_ACTIVITY = "light_activity"


class Intensity(str, Enum):
    """Recommended intensity for the next workout."""
    LIGHT = "light"
    MODERATE = "moderate"
    HIGH = "high"


class InsightType(str, Enum):
    """Category of an insight shown to the user."""
    ACHIEVEMENT = "achievement"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    MILESTONE = "milestone"
    PATTERN = "pattern"


class ActionType(str, Enum):
    """What an actionable insight asks the user to do."""
    WORKOUT = "workout"
    EXERCISE = "exercise"
    REST = "rest"
    NUTRITION = "nutrition"
    RECOVERY = "recovery"
    LEADERBOARD = "leaderboard"
    SHARE = "share"


class ScoreType(str, Enum):
    """Unit of a leaderboard score."""
    POINTS = "points"
    TIME = "time"
    WEIGHT = "weight"
    DISTANCE = "distance"
    REPS = "reps"

    @property
    def higher_is_better(self) -> bool:
        """Time is the only score where a smaller value wins."""
        return self is not ScoreType.TIME


class LeaderboardType(str, Enum):
    """Which population a leaderboard ranks."""
    GLOBAL = "global"
    CHALLENGE = "challenge"
    CATEGORY = "category"


class Timeframe(str, Enum):
    """Calendar window a leaderboard covers."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"


# ============================================================================
# Inputs: workout history and goal
# ============================================================================


class ExercisePerformed(BaseModel):
    """One exercise inside a completed workout session."""

    model_config = ConfigDict(frozen=True)

    exercise_id: str = Field(..., min_length=1, description="Exercise identifier")
    muscle_groups: List[str] = Field(
        ...,
        min_length=1,
        description="Muscle groups worked; the first entry is the primary group",
    )
    sets: int = Field(..., gt=0, description="Completed sets")
    reps: int = Field(default=0, ge=0, description="Reps per set (0 for timed work)")
    intensity_proxy: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Relative effort of the exercise. Must be decimal 0.0-1.0.",
    )

    @field_validator("muscle_groups")
    @classmethod
    def normalize_muscle_groups(cls, v: List[str]) -> List[str]:
        """Lower-case muscle group names so comparisons are case-insensitive."""
        groups = [g.strip().lower() for g in v if g and g.strip()]
        if not groups:
            raise ValueError("At least one non-empty muscle group is required")
        return groups

    @property
    def primary_muscle_group(self) -> str:
        return self.muscle_groups[0]


class WorkoutSession(BaseModel):
    """
    A completed workout session.

    Sessions are created by the workout-tracking flow and are read-only to
    the engine.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Session identifier")
    date: datetime = Field(..., description="When the session was performed")
    duration_minutes: float = Field(..., gt=0, description="Session duration in minutes")
    exercises: List[ExercisePerformed] = Field(
        default_factory=list, description="Exercises performed"
    )
    calories_estimate: float = Field(default=0.0, ge=0.0, description="Estimated calories")

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def intensity(self) -> float:
        """Sets-weighted mean intensity of the session's exercises."""
        total_sets = sum(e.sets for e in self.exercises)
        if total_sets == 0:
            return 0.0
        return sum(e.intensity_proxy * e.sets for e in self.exercises) / total_sets

    @property
    def load(self) -> float:
        """Training load: duration weighted by intensity."""
        return self.duration_minutes * self.intensity

    @property
    def muscle_groups(self) -> List[str]:
        """All muscle groups worked, in first-seen order."""
        seen: Dict[str, None] = {}
        for exercise in self.exercises:
            for group in exercise.muscle_groups:
                seen.setdefault(group, None)
        return list(seen)

    @property
    def primary_muscle_groups(self) -> List[str]:
        """Primary muscle group of each exercise, in first-seen order."""
        seen: Dict[str, None] = {}
        for exercise in self.exercises:
            seen.setdefault(exercise.primary_muscle_group, None)
        return list(seen)

    @property
    def exercise_ids(self) -> List[str]:
        return [e.exercise_id for e in self.exercises]


class Goal(BaseModel):
    """The user's training goal and preferences for a suggestion request."""

    model_config = ConfigDict(frozen=True)

    type: GoalType = Field(..., description="Training goal")
    target_duration_minutes: int = Field(
        default=45, gt=0, le=300, description="Preferred workout length in minutes"
    )
    difficulty_preference: Difficulty = Field(
        default=Difficulty.INTERMEDIATE, description="Preferred difficulty"
    )


# ============================================================================
# Outputs: suggestions
# ============================================================================


class ExercisePrescription(BaseModel):
    """One exercise in a suggested workout plan."""

    model_config = ConfigDict(frozen=True)

    exercise_id: str = Field(..., description="Exercise identifier")
    sets: int = Field(..., gt=0, description="Prescribed sets")
    reps_range: Tuple[int, int] = Field(
        ..., description="Minimum and maximum reps (or seconds for timed work)"
    )
    rest_seconds: int = Field(..., ge=0, description="Rest between sets")

    @field_validator("reps_range")
    @classmethod
    def validate_reps_range(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        low, high = v
        if low <= 0 or high < low:
            raise ValueError(f"Invalid reps range {v}: need 0 < min <= max")
        return v


class WorkoutSuggestion(BaseModel):
    """
    A ranked workout suggestion.

    Created fresh on each generation call and never mutated. The score and
    its breakdown are internal and excluded from serialization.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Suggestion identifier")
    template_id: str = Field(..., description="Catalog template this was built from")
    name: str = Field(..., description="Workout name")
    description: str = Field(..., description="Short workout description")
    difficulty_level: Difficulty = Field(..., description="Workout difficulty")
    estimated_duration: int = Field(..., gt=0, description="Estimated minutes")
    exercises: List[ExercisePrescription] = Field(
        ..., min_length=1, description="Ordered exercise plan"
    )
    focus_areas: List[str] = Field(default_factory=list, description="Muscle groups targeted")
    calories_estimate: int = Field(..., ge=0, description="Estimated calories burned")
    reasoning: str = Field(..., description="Why this workout was suggested")
    score: float = Field(default=0.0, exclude=True, description="Internal ranking score")
    score_breakdown: Dict[str, float] = Field(
        default_factory=dict, exclude=True, description="Internal per-factor scores"
    )


# ============================================================================
# Outputs: fatigue and rest
# ============================================================================


class FatigueIndicator(BaseModel):
    """A specific sign of accumulated fatigue."""

    model_config = ConfigDict(frozen=True)

    type: IndicatorType = Field(..., description="What was detected")
    severity: Severity = Field(..., description="How serious it is")
    description: str = Field(..., description="Human-readable explanation")
    muscle_groups: List[str] = Field(
        default_factory=list, description="Muscle groups implicated, if any"
    )


class FatigueAssessment(BaseModel):
    """
    Fatigue and recovery estimate derived from a trailing window of sessions.

    Recomputed on demand; it has no lifecycle of its own.
    """

    model_config = ConfigDict(frozen=True)

    fatigue_level: float = Field(..., ge=0.0, le=1.0, description="Accumulated stress (0-1)")
    recovery_score: float = Field(..., ge=0.0, le=1.0, description="Readiness to train (0-1)")
    indicators: List[FatigueIndicator] = Field(default_factory=list)
    assessed_at: datetime = Field(..., description="The 'now' the assessment was made at")
    acute_load: float = Field(default=0.0, ge=0.0, description="Undecayed load in the acute window")
    baseline_load: float = Field(
        default=0.0, ge=0.0, description="Weekly baseline load the acute load is compared to"
    )
    weekly_duration_minutes: float = Field(default=0.0, ge=0.0)
    sessions_in_window: int = Field(default=0, ge=0)
    hours_since_high_intensity: Optional[float] = Field(
        None, ge=0.0, description="Hours since the last high-intensity session"
    )
    recent_muscle_groups: List[str] = Field(
        default_factory=list, description="Muscle groups trained in the overuse window"
    )

    def indicators_of(self, indicator_type: IndicatorType) -> List[FatigueIndicator]:
        return [i for i in self.indicators if i.type == indicator_type]


class SuggestedActivity(BaseModel):
    """A group of activities of one recommendation type."""

    model_config = ConfigDict(frozen=True)

    type: RecommendationType
    activities: List[str] = Field(..., min_length=1)
    duration_minutes: Optional[int] = Field(None, gt=0)


class NextWorkoutGuidance(BaseModel):
    """What the next workout should look like."""

    model_config = ConfigDict(frozen=True)

    recommended_intensity: Intensity
    focus_areas: List[str] = Field(default_factory=list)
    avoid_muscle_groups: List[str] = Field(default_factory=list)


class RestRecommendation(BaseModel):
    """Rest-day decision derived 1:1 from a FatigueAssessment."""

    model_config = ConfigDict(frozen=True)

    rest_day_needed: bool
    priority: Priority
    recommendation_type: RecommendationType
    title: str
    reasoning: List[str] = Field(..., min_length=1)
    estimated_recovery_hours: float = Field(..., ge=0.0)
    suggested_activities: List[SuggestedActivity] = Field(..., min_length=1)
    next_workout_guidance: NextWorkoutGuidance


# ============================================================================
# Insights
# ============================================================================


class InsightAction(BaseModel):
    """Call to action attached to an actionable insight."""

    model_config = ConfigDict(frozen=True)

    type: ActionType
    label: str
    target: Optional[str] = None


class Insight(BaseModel):
    """
    A prioritized, time-bounded, dismissible notification.

    Visible while not dismissed and not expired. Dismissal and expiry are
    terminal; the record itself is kept for audit.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: InsightType
    origin: str = Field(..., description="Upstream trigger key used for deduplication")
    title: str
    message: str
    priority: Priority
    confidence: int = Field(..., ge=0, le=100)
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    dismissed: bool = False
    dismissed_at: Optional[datetime] = None
    actionable: bool = False
    action: Optional[InsightAction] = None

    @model_validator(mode="after")
    def validate_action(self):
        """An actionable insight must say what to do."""
        if self.actionable and self.action is None:
            raise ValueError(f"Actionable insight '{self.id}' has no action")
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= ensure_utc(now)

    def is_visible(self, now: datetime) -> bool:
        return not self.dismissed and not self.is_expired(now)

    def is_terminal(self, now: datetime) -> bool:
        return not self.is_visible(now)


class AchievementTrigger(BaseModel):
    """An achievement unlocked elsewhere in the application."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str
    description: str = ""
    achieved_at: datetime

    @field_validator("achieved_at")
    @classmethod
    def normalize_achieved_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class StreakTrigger(BaseModel):
    """Current workout streak state."""

    model_config = ConfigDict(frozen=True)

    current_streak: int = Field(..., ge=0)
    longest_streak: int = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_longest(self):
        if self.longest_streak < self.current_streak:
            raise ValueError(
                f"Longest streak ({self.longest_streak}) cannot be shorter than "
                f"current streak ({self.current_streak})"
            )
        return self


# ============================================================================
# Leaderboards
# ============================================================================


class ScoreEvent(BaseModel):
    """A score a user attained, as reported by the challenge/workout flows."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    score: float = Field(..., ge=0.0)
    achieved_at: datetime
    score_type: ScoreType
    challenge_id: Optional[str] = None
    category: Optional[str] = None

    @field_validator("achieved_at")
    @classmethod
    def normalize_achieved_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class LeaderboardEntry(BaseModel):
    """A ranked row of a leaderboard."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str
    score: float
    score_type: ScoreType
    rank: int = Field(..., ge=1)
    is_current_user: bool = False
    achieved_at: datetime


class LeaderboardResult(BaseModel):
    """Ranked standings for one leaderboard type and timeframe."""

    model_config = ConfigDict(frozen=True)

    leaderboard_type: LeaderboardType
    timeframe: Timeframe
    score_type: Optional[ScoreType] = None
    window_start: Optional[datetime] = None
    window_end: datetime
    entries: List[LeaderboardEntry] = Field(default_factory=list)
    total_participants: int = Field(default=0, ge=0)
    current_user_rank: Optional[int] = Field(None, ge=1)
    current_user_entry: Optional[LeaderboardEntry] = None


# ============================================================================
# Coercion of raw collaborator records
# ============================================================================


def _coerce(model, records: Iterable[Any], id_field: str, kind: str) -> List[Any]:
    coerced = []
    for index, record in enumerate(records):
        if isinstance(record, model):
            coerced.append(record)
            continue
        record_id = None
        if isinstance(record, dict):
            record_id = record.get(id_field)
        record_id = str(record_id) if record_id is not None else f"{kind}[{index}]"
        if not isinstance(record, dict):
            raise ValidationError(f"Malformed {kind}: expected an object", record_id=record_id)
        try:
            coerced.append(model(**record))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Malformed {kind}: {e.errors()[0]['msg']}",
                record_id=record_id,
                details={"errors": e.errors(include_url=False)},
            ) from e
    return coerced


def coerce_sessions(records: Iterable[Any]) -> List[WorkoutSession]:
    """
    Build WorkoutSession records from raw dictionaries.

    Raises:
        ValidationError: If a record is malformed or a session id repeats
    """
    sessions = _coerce(WorkoutSession, records, "id", "session")
    validate_unique_ids(sessions)
    return sessions


def coerce_score_events(records: Iterable[Any]) -> List[ScoreEvent]:
    """Build ScoreEvent records from raw dictionaries."""
    return _coerce(ScoreEvent, records, "user_id", "score event")


def validate_unique_ids(sessions: Iterable[WorkoutSession]) -> None:
    """Reject histories in which two sessions share an id."""
    seen = set()
    for session in sessions:
        if session.id in seen:
            raise ValidationError("Duplicate session id in history", record_id=session.id)
        seen.add(session.id)
