"""
Workout suggestion generation.

Scores every catalog template against the user's goal and recent history and
returns the best few as WorkoutSuggestion records with a human-readable
justification.

Score = Σ weight_i × factor_i, with factors:
- affinity: template affinity to the goal type
- balance: share of the template's muscles not trained recently
- duration: fit of the estimated duration to the target
- novelty: share of exercises absent from the last N sessions
- difficulty: closeness to the preferred difficulty
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from fitness_insights import errors
from fitness_insights.catalog import (
    DEFAULT_CATALOG,
    GOAL_SCHEMES,
    ExerciseKind,
    NON_MUSCLE_TAGS,
    WorkoutTemplate,
    validate_catalog,
)
from fitness_insights.config import SuggestionConfig
from fitness_insights.schemas import (
    DIFFICULTY_ORDER,
    Goal,
    WorkoutSession,
    WorkoutSuggestion,
    ensure_utc,
    validate_unique_ids,
)

logger = logging.getLogger(__name__)

GOAL_LABELS = {
    "strength": "strength",
    "muscle_gain": "muscle-gain",
    "weight_loss": "weight-loss",
    "endurance": "endurance",
    "general_fitness": "general fitness",
}


def _join(items: List[str]) -> str:
    """'a', 'a and b', 'a, b and c'."""
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])} and {items[-1]}"


class RecentTraining:
    """What the user trained recently, as seen from `now`."""

    def __init__(self, sessions: List[WorkoutSession], now: datetime, config: SuggestionConfig):
        window = timedelta(hours=config.balance_window_hours)
        past = sorted((s for s in sessions if s.date <= now), key=lambda s: (s.date, s.id), reverse=True)
        in_window = [s for s in past if now - s.date < window]

        groups: Dict[str, None] = {}
        for session in in_window:
            for group in session.muscle_groups:
                if group not in NON_MUSCLE_TAGS:
                    groups.setdefault(group, None)
        self.muscle_groups: List[str] = list(groups)
        self.last_trained: Optional[datetime] = in_window[0].date if in_window else None
        self.now = now

        self.exercise_ids = set()
        for session in past[: config.novelty_sessions]:
            self.exercise_ids.update(session.exercise_ids)
        self.has_history = bool(past)

    @property
    def hours_since_last(self) -> Optional[int]:
        if self.last_trained is None:
            return None
        hours = (self.now - self.last_trained).total_seconds() / 3600.0
        return max(1, int(math.ceil(hours)))


class SuggestionGenerator:
    """
    Generates ranked workout suggestions.

    Pure function of (goal, sessions, now) and the fixed template catalog.
    Equal scores are ordered by template id.
    """

    def __init__(
        self,
        config: Optional[SuggestionConfig] = None,
        catalog: Optional[Iterable[WorkoutTemplate]] = None,
    ):
        """
        Initialize generator.

        Args:
            config: Scoring weights and windows
            catalog: Candidate templates (defaults to DEFAULT_CATALOG)
        """
        self.config = config or SuggestionConfig()
        self.catalog = validate_catalog(catalog if catalog is not None else DEFAULT_CATALOG)

    def generate(
        self,
        goal: Goal,
        sessions: Iterable[WorkoutSession],
        now: datetime,
        count: Optional[int] = None,
    ) -> List[WorkoutSuggestion]:
        """
        Generate up to `count` ranked suggestions.

        Args:
            goal: Training goal and preferences
            sessions: Completed sessions; sessions after `now` are ignored
            now: Reference time
            count: Maximum number of suggestions (default from config)

        Returns:
            Suggestions sorted by score descending

        Raises:
            ValidationError: If count < 1 or session ids repeat
            InsufficientDataError: If no template is eligible for the goal
        """
        if count is None:
            count = self.config.default_count
        if count < 1:
            raise errors.ValidationError(f"count must be at least 1, got {count}")

        now = ensure_utc(now)
        sessions = list(sessions)
        validate_unique_ids(sessions)
        recent = RecentTraining(sessions, now, self.config)

        candidates = [t for t in self.catalog if self._is_eligible(t, goal)]
        if not candidates:
            raise errors.InsufficientDataError(
                f"No workout template fits a {goal.type.value} goal at "
                f"{goal.difficulty_preference.value} level"
            )

        scored = []
        for template in candidates:
            breakdown = self._score_factors(template, goal, recent)
            scored.append((self._total(breakdown), template, breakdown))
        scored.sort(key=lambda item: (-item[0], item[1].id))

        suggestions = [
            self._build_suggestion(template, goal, recent, score, breakdown)
            for score, template, breakdown in scored[:count]
        ]
        logger.debug(
            "Generated %d suggestions for %s goal from %d candidates",
            len(suggestions),
            goal.type.value,
            len(candidates),
        )
        return suggestions

    # ===== ELIGIBILITY & SCORING =====

    @staticmethod
    def _difficulty_gap(template: WorkoutTemplate, goal: Goal) -> int:
        return DIFFICULTY_ORDER.index(template.difficulty) - DIFFICULTY_ORDER.index(
            goal.difficulty_preference
        )

    def _is_eligible(self, template: WorkoutTemplate, goal: Goal) -> bool:
        """Templates more than one level above the preference are excluded."""
        return self._difficulty_gap(template, goal) <= 1

    def _score_factors(
        self, template: WorkoutTemplate, goal: Goal, recent: RecentTraining
    ) -> Dict[str, float]:
        return {
            "affinity": template.affinity(goal.type),
            "balance": self._balance_score(template, recent),
            "duration": self._duration_score(template, goal),
            "novelty": self._novelty_score(template, recent),
            "difficulty": self._difficulty_score(template, goal),
        }

    def _total(self, breakdown: Dict[str, float]) -> float:
        weights = self.config.weights.model_dump()
        return round(sum(weights[name] * value for name, value in breakdown.items()), 6)

    @staticmethod
    def _balance_score(template: WorkoutTemplate, recent: RecentTraining) -> float:
        groups = template.muscle_groups
        if not groups or not recent.muscle_groups:
            return 1.0
        overlap = [g for g in groups if g in recent.muscle_groups]
        return 1.0 - len(overlap) / len(groups)

    def _duration_score(self, template: WorkoutTemplate, goal: Goal) -> float:
        """1.0 within tolerance, then falls linearly with the relative deviation."""
        estimate = template.estimate_duration_minutes(goal.type)
        target = goal.target_duration_minutes
        deviation = abs(estimate - target) / target
        tolerance = self.config.duration_tolerance
        if deviation <= tolerance:
            return 1.0
        return max(0.0, 1.0 - (deviation - tolerance) * 2.0)

    @staticmethod
    def _novelty_score(template: WorkoutTemplate, recent: RecentTraining) -> float:
        ids = template.exercise_ids
        fresh = [e for e in ids if e not in recent.exercise_ids]
        return len(fresh) / len(ids)

    def _difficulty_score(self, template: WorkoutTemplate, goal: Goal) -> float:
        return max(0.0, 1.0 - 0.5 * abs(self._difficulty_gap(template, goal)))

    # ===== OUTPUT =====

    def _build_suggestion(
        self,
        template: WorkoutTemplate,
        goal: Goal,
        recent: RecentTraining,
        score: float,
        breakdown: Dict[str, float],
    ) -> WorkoutSuggestion:
        duration = template.estimate_duration_minutes(goal.type)
        return WorkoutSuggestion(
            id=f"{template.id}:{goal.type.value}",
            template_id=template.id,
            name=template.name,
            description=template.description,
            difficulty_level=template.difficulty,
            estimated_duration=duration,
            exercises=template.prescribe(goal.type),
            focus_areas=template.primary_muscle_groups,
            calories_estimate=int(round(duration * template.calories_per_minute)),
            reasoning=self._build_reasoning(template, goal, recent, breakdown),
            score=score,
            score_breakdown=breakdown,
        )

    def _build_reasoning(
        self,
        template: WorkoutTemplate,
        goal: Goal,
        recent: RecentTraining,
        breakdown: Dict[str, float],
    ) -> str:
        """
        Assemble a justification from the dominant scoring factors.

        The clause about recently trained muscles is always kept when it
        applies; other clauses are ordered by weighted contribution.
        """
        weights = self.config.weights.model_dump()
        clauses = []

        goal_label = GOAL_LABELS[goal.type.value]
        if breakdown["affinity"] >= 0.8:
            clauses.append(("affinity", f"matches your {goal_label} goal"))
        elif breakdown["affinity"] >= 0.5:
            clauses.append(("affinity", f"supports your {goal_label} goal"))

        balance_clause = None
        if recent.muscle_groups:
            hours = recent.hours_since_last
            trained = _join(recent.muscle_groups[:3])
            if breakdown["balance"] == 1.0:
                balance_clause = f"avoids {trained} trained in the last {hours} hours"
            elif breakdown["balance"] >= 0.5:
                balance_clause = f"limits overlap with {trained} trained in the last {hours} hours"

        if breakdown["duration"] == 1.0:
            clauses.append(
                ("duration", f"fits your {goal.target_duration_minutes}-minute window")
            )
        if recent.has_history and breakdown["novelty"] >= 0.6:
            clauses.append(("novelty", "adds variety to your recent sessions"))
        if breakdown["difficulty"] == 1.0:
            clauses.append(
                ("difficulty", f"matches your {goal.difficulty_preference.value} level")
            )

        clauses.sort(key=lambda c: -weights[c[0]] * breakdown[c[0]])
        parts = [text for _, text in clauses[:2]]
        if balance_clause:
            parts.insert(1 if parts else 0, balance_clause)
        if not parts:
            parts.append("is the closest available fit for your goal")

        sentence = _join(parts)
        reasoning = f"{template.name} {sentence}."
        if any(e.kind == ExerciseKind.STRENGTH for e in template.exercises):
            note = GOAL_SCHEMES[goal.type].note
            reasoning += f" Uses {note}."
        return reasoning
