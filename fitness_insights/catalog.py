"""
Workout template catalog.

The fixed candidate pool the suggestion generator scores. Each template is
tagged with an affinity per goal type; exercises carry their muscle groups so
templates can be compared against recent training.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fitness_insights.errors import ValidationError
from fitness_insights.schemas import Difficulty, ExercisePrescription, GoalType


class ExerciseKind(str, Enum):
    """How an exercise is prescribed."""
    STRENGTH = "strength"
    CARDIO = "cardio"
    MOBILITY = "mobility"


# Muscle groups rolled up into the regions used for focus areas
MUSCLE_REGIONS: Dict[str, Set[str]] = {
    "chest": {"chest"},
    "back": {"back", "lats", "rhomboids", "lower_back"},
    "shoulders": {"shoulders"},
    "arms": {"biceps", "triceps", "forearms", "arms"},
    "legs": {"quadriceps", "hamstrings", "glutes", "calves", "hip_flexors", "legs"},
    "core": {"core", "abs", "obliques"},
}

# Tags that describe the workout rather than a muscle; never count as overlap
NON_MUSCLE_TAGS = {"cardiovascular", "full_body"}

# Warm-up added to every estimated duration
WARMUP_SECONDS = 300
TRANSITION_SECONDS = 60
SECONDS_PER_REP = 4


def region_of(muscle_group: str) -> Optional[str]:
    """Major region a muscle group belongs to, or None for non-muscle tags."""
    for region, groups in MUSCLE_REGIONS.items():
        if muscle_group in groups:
            return region
    return None


class PrescriptionScheme(BaseModel):
    """Sets, rep range and rest applied to every exercise of one kind."""

    model_config = ConfigDict(frozen=True)

    sets: int = Field(..., gt=0)
    reps_range: Tuple[int, int]
    rest_seconds: int = Field(..., ge=0)
    timed: bool = Field(default=False, description="reps_range is seconds of work, not reps")
    note: str = ""


# Per-goal schemes for strength exercises
GOAL_SCHEMES: Dict[GoalType, PrescriptionScheme] = {
    GoalType.STRENGTH: PrescriptionScheme(
        sets=4,
        reps_range=(3, 6),
        rest_seconds=120,
        note="lower rep ranges with longer rest for strength development",
    ),
    GoalType.ENDURANCE: PrescriptionScheme(
        sets=3,
        reps_range=(15, 20),
        rest_seconds=45,
        note="higher rep ranges with shorter rest for endurance building",
    ),
    GoalType.WEIGHT_LOSS: PrescriptionScheme(
        sets=4,
        reps_range=(10, 15),
        rest_seconds=30,
        note="short rest periods keep the calorie burn high",
    ),
    GoalType.MUSCLE_GAIN: PrescriptionScheme(
        sets=4,
        reps_range=(6, 10),
        rest_seconds=90,
        note="moderate rep ranges in the hypertrophy zone for muscle growth",
    ),
    GoalType.GENERAL_FITNESS: PrescriptionScheme(
        sets=3,
        reps_range=(8, 12),
        rest_seconds=60,
        note="balanced rep ranges for all-round fitness",
    ),
}

# Cardio and mobility are timed regardless of goal
KIND_SCHEMES: Dict[ExerciseKind, PrescriptionScheme] = {
    ExerciseKind.CARDIO: PrescriptionScheme(
        sets=3, reps_range=(30, 60), rest_seconds=60, timed=True
    ),
    ExerciseKind.MOBILITY: PrescriptionScheme(
        sets=2, reps_range=(30, 45), rest_seconds=30, timed=True
    ),
}


class TemplateExercise(BaseModel):
    """One exercise slot in a workout template."""

    model_config = ConfigDict(frozen=True)

    exercise_id: str = Field(..., min_length=1)
    kind: ExerciseKind = ExerciseKind.STRENGTH
    muscle_groups: List[str] = Field(..., min_length=1)
    duration_seconds: Optional[int] = Field(
        None, gt=0, description="Fixed single-block duration for steady-state work"
    )

    @field_validator("muscle_groups")
    @classmethod
    def normalize_muscle_groups(cls, v: List[str]) -> List[str]:
        return [g.strip().lower() for g in v]


class WorkoutTemplate(BaseModel):
    """A candidate workout, tagged by goal affinity."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str
    difficulty: Difficulty
    goal_affinity: Dict[GoalType, float] = Field(
        ..., description="Affinity per goal type (0.0-1.0); missing goals score 0"
    )
    exercises: List[TemplateExercise] = Field(..., min_length=1)
    calories_per_minute: float = Field(default=6.0, gt=0)

    @field_validator("goal_affinity")
    @classmethod
    def validate_affinity(cls, v: Dict[GoalType, float]) -> Dict[GoalType, float]:
        for goal, affinity in v.items():
            if not 0.0 <= affinity <= 1.0:
                raise ValueError(f"Affinity for {goal.value} must be within 0.0-1.0, got {affinity}")
        return v

    def affinity(self, goal_type: GoalType) -> float:
        return self.goal_affinity.get(goal_type, 0.0)

    @property
    def muscle_groups(self) -> List[str]:
        """All muscle groups worked (non-muscle tags excluded), first-seen order."""
        seen: Dict[str, None] = {}
        for exercise in self.exercises:
            for group in exercise.muscle_groups:
                if group not in NON_MUSCLE_TAGS:
                    seen.setdefault(group, None)
        return list(seen)

    @property
    def primary_muscle_groups(self) -> List[str]:
        seen: Dict[str, None] = {}
        for exercise in self.exercises:
            seen.setdefault(exercise.muscle_groups[0], None)
        return list(seen)

    @property
    def exercise_ids(self) -> List[str]:
        return [e.exercise_id for e in self.exercises]

    def prescribe(self, goal_type: GoalType) -> List[ExercisePrescription]:
        """
        Build the exercise plan for a goal.

        Strength exercises follow the goal's scheme; cardio and mobility use
        timed schemes. Steady-state blocks with a fixed duration are a single
        set of that many seconds.
        """
        plan = []
        for exercise in self.exercises:
            if exercise.duration_seconds is not None:
                plan.append(
                    ExercisePrescription(
                        exercise_id=exercise.exercise_id,
                        sets=1,
                        reps_range=(exercise.duration_seconds, exercise.duration_seconds),
                        rest_seconds=0,
                    )
                )
                continue
            scheme = scheme_for(exercise.kind, goal_type)
            plan.append(
                ExercisePrescription(
                    exercise_id=exercise.exercise_id,
                    sets=scheme.sets,
                    reps_range=scheme.reps_range,
                    rest_seconds=scheme.rest_seconds,
                )
            )
        return plan

    def estimate_duration_minutes(self, goal_type: GoalType) -> int:
        """Estimated session length for a goal's prescription, in whole minutes."""
        total = WARMUP_SECONDS
        for exercise, prescription in zip(self.exercises, self.prescribe(goal_type)):
            low, high = prescription.reps_range
            work = (low + high) / 2.0
            timed = exercise.duration_seconds is not None or exercise.kind != ExerciseKind.STRENGTH
            if not timed:
                work *= SECONDS_PER_REP
            total += prescription.sets * work
            total += (prescription.sets - 1) * prescription.rest_seconds
            total += TRANSITION_SECONDS
        return max(1, int(round(total / 60.0)))


def scheme_for(kind: ExerciseKind, goal_type: GoalType) -> PrescriptionScheme:
    if kind in KIND_SCHEMES:
        return KIND_SCHEMES[kind]
    return GOAL_SCHEMES[goal_type]


def _ex(exercise_id: str, *groups: str, kind: ExerciseKind = ExerciseKind.STRENGTH,
        duration_seconds: Optional[int] = None) -> TemplateExercise:
    return TemplateExercise(
        exercise_id=exercise_id,
        kind=kind,
        muscle_groups=list(groups),
        duration_seconds=duration_seconds,
    )


CARDIO = ExerciseKind.CARDIO
MOBILITY = ExerciseKind.MOBILITY

DEFAULT_CATALOG: List[WorkoutTemplate] = [
    WorkoutTemplate(
        id="upper-body-strength",
        name="Upper Body Strength Builder",
        description="Compound pressing and pulling for chest, back, shoulders and arms.",
        difficulty=Difficulty.INTERMEDIATE,
        goal_affinity={
            GoalType.STRENGTH: 1.0,
            GoalType.MUSCLE_GAIN: 0.8,
            GoalType.GENERAL_FITNESS: 0.5,
            GoalType.WEIGHT_LOSS: 0.3,
            GoalType.ENDURANCE: 0.2,
        },
        exercises=[
            _ex("bench-press", "chest", "shoulders", "triceps"),
            _ex("pull-ups", "lats", "biceps", "rhomboids"),
            _ex("overhead-press", "shoulders", "triceps", "core"),
            _ex("barbell-rows", "back", "biceps"),
            _ex("dips", "triceps", "chest", "shoulders"),
        ],
        calories_per_minute=6.0,
    ),
    WorkoutTemplate(
        id="lower-body-power",
        name="Lower Body Power & Strength",
        description="Heavy squat and hinge patterns for the legs and posterior chain.",
        difficulty=Difficulty.ADVANCED,
        goal_affinity={
            GoalType.STRENGTH: 1.0,
            GoalType.MUSCLE_GAIN: 0.7,
            GoalType.GENERAL_FITNESS: 0.4,
            GoalType.WEIGHT_LOSS: 0.4,
            GoalType.ENDURANCE: 0.3,
        },
        exercises=[
            _ex("back-squats", "quadriceps", "glutes", "hamstrings"),
            _ex("romanian-deadlifts", "hamstrings", "glutes", "lower_back"),
            _ex("bulgarian-split-squats", "quadriceps", "glutes"),
            _ex("walking-lunges", "quadriceps", "glutes", "hamstrings"),
        ],
        calories_per_minute=7.0,
    ),
    WorkoutTemplate(
        id="push-day",
        name="Push Day Hypertrophy",
        description="High-volume pressing for chest, shoulders and triceps.",
        difficulty=Difficulty.INTERMEDIATE,
        goal_affinity={
            GoalType.MUSCLE_GAIN: 1.0,
            GoalType.STRENGTH: 0.7,
            GoalType.GENERAL_FITNESS: 0.4,
            GoalType.WEIGHT_LOSS: 0.3,
            GoalType.ENDURANCE: 0.2,
        },
        exercises=[
            _ex("incline-barbell-press", "chest", "shoulders", "triceps"),
            _ex("dumbbell-shoulder-press", "shoulders", "triceps"),
            _ex("dumbbell-flyes", "chest"),
            _ex("lateral-raises", "shoulders"),
            _ex("overhead-tricep-extension", "triceps"),
        ],
        calories_per_minute=5.5,
    ),
    WorkoutTemplate(
        id="hiit-fat-burner",
        name="HIIT Fat Burner Circuit",
        description="Short, intense intervals that keep the heart rate high.",
        difficulty=Difficulty.INTERMEDIATE,
        goal_affinity={
            GoalType.WEIGHT_LOSS: 1.0,
            GoalType.ENDURANCE: 0.7,
            GoalType.GENERAL_FITNESS: 0.6,
            GoalType.STRENGTH: 0.1,
            GoalType.MUSCLE_GAIN: 0.1,
        },
        exercises=[
            _ex("burpees", "full_body", "cardiovascular", kind=CARDIO),
            _ex("kettlebell-swings", "glutes", "hamstrings", "core"),
            _ex("mountain-climbers", "core", "shoulders", "cardiovascular", kind=CARDIO),
            _ex("dumbbell-thrusters", "shoulders", "quadriceps", "core"),
            _ex("high-knees", "quadriceps", "cardiovascular", kind=CARDIO),
        ],
        calories_per_minute=10.0,
    ),
    WorkoutTemplate(
        id="cardio-strength-combo",
        name="Cardio-Strength Fat Loss",
        description="Low-impact cardio blocks mixed with bodyweight strength moves.",
        difficulty=Difficulty.BEGINNER,
        goal_affinity={
            GoalType.WEIGHT_LOSS: 0.9,
            GoalType.GENERAL_FITNESS: 0.7,
            GoalType.ENDURANCE: 0.5,
            GoalType.STRENGTH: 0.2,
            GoalType.MUSCLE_GAIN: 0.2,
        },
        exercises=[
            _ex("marching-in-place", "hip_flexors", "cardiovascular", kind=CARDIO),
            _ex("bodyweight-squats", "quadriceps", "glutes"),
            _ex("step-ups", "quadriceps", "glutes", "calves"),
            _ex("modified-push-ups", "chest", "triceps", "shoulders"),
            _ex("resistance-band-rows", "back", "biceps"),
        ],
        calories_per_minute=7.5,
    ),
    WorkoutTemplate(
        id="cardio-endurance",
        name="Cardiovascular Endurance Builder",
        description="Steady walking and jogging intervals to build aerobic base.",
        difficulty=Difficulty.BEGINNER,
        goal_affinity={
            GoalType.ENDURANCE: 1.0,
            GoalType.WEIGHT_LOSS: 0.7,
            GoalType.GENERAL_FITNESS: 0.6,
            GoalType.STRENGTH: 0.1,
            GoalType.MUSCLE_GAIN: 0.1,
        },
        exercises=[
            _ex("warm-up-walk", "cardiovascular", "calves", kind=CARDIO, duration_seconds=480),
            _ex("interval-jogging", "cardiovascular", "quadriceps", "calves", kind=CARDIO,
                duration_seconds=1500),
            _ex("cool-down-walk", "cardiovascular", "calves", kind=CARDIO, duration_seconds=480),
        ],
        calories_per_minute=8.0,
    ),
    WorkoutTemplate(
        id="full-body-stretch",
        name="Full Body Flexibility Flow",
        description="Gentle mobility flow for the spine, hips and hamstrings.",
        difficulty=Difficulty.BEGINNER,
        goal_affinity={
            GoalType.GENERAL_FITNESS: 0.5,
            GoalType.ENDURANCE: 0.3,
            GoalType.WEIGHT_LOSS: 0.2,
            GoalType.STRENGTH: 0.2,
            GoalType.MUSCLE_GAIN: 0.2,
        },
        exercises=[
            _ex("cat-cow-stretch", "back", "core", kind=MOBILITY),
            _ex("downward-dog", "hamstrings", "calves", "shoulders", kind=MOBILITY),
            _ex("pigeon-pose", "glutes", "hip_flexors", kind=MOBILITY),
            _ex("seated-forward-fold", "hamstrings", "lower_back", kind=MOBILITY),
            _ex("spinal-twist", "back", "obliques", kind=MOBILITY),
        ],
        calories_per_minute=3.0,
    ),
    WorkoutTemplate(
        id="beginner-total-body",
        name="Beginner Total Body Workout",
        description="Simple full-body circuit for building a training habit.",
        difficulty=Difficulty.BEGINNER,
        goal_affinity={
            GoalType.GENERAL_FITNESS: 1.0,
            GoalType.WEIGHT_LOSS: 0.6,
            GoalType.STRENGTH: 0.5,
            GoalType.MUSCLE_GAIN: 0.5,
            GoalType.ENDURANCE: 0.4,
        },
        exercises=[
            _ex("bodyweight-squats", "quadriceps", "glutes"),
            _ex("wall-push-ups", "chest", "triceps"),
            _ex("seated-rows", "back", "biceps"),
            _ex("modified-plank", "core"),
            _ex("standing-marches", "hip_flexors", "cardiovascular", kind=CARDIO),
        ],
        calories_per_minute=5.0,
    ),
]


def load_catalog(path: Union[str, Path]) -> List[WorkoutTemplate]:
    """
    Load workout templates from a JSON file.

    The file holds either a list of templates or {"templates": [...]}.

    Args:
        path: Path to a JSON catalog file

    Returns:
        List of WorkoutTemplate
    """
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("templates", [])
    return [WorkoutTemplate(**item) for item in data]


def validate_catalog(templates: Iterable[WorkoutTemplate]) -> List[WorkoutTemplate]:
    """Reject catalogs with repeated template ids."""
    templates = list(templates)
    ids = [t.id for t in templates]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValidationError(
            f"Duplicate template ids in catalog: {', '.join(duplicates)}",
            record_id=duplicates[0],
            details={"duplicates": duplicates},
        )
    return templates
