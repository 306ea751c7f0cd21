"""
Upstream outputs mapped to insight signals.

Each function turns one component's output into zero or more InsightSignal
values using a fixed template per insight type. Signals carry an origin key;
the aggregator deduplicates on (type, origin).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from fitness_insights.config import InsightConfig, LeaderboardConfig, RestConfig
from fitness_insights.schemas import (
    AchievementTrigger,
    ActionType,
    FatigueAssessment,
    IndicatorType,
    InsightAction,
    InsightType,
    LeaderboardResult,
    Priority,
    RestRecommendation,
    StreakTrigger,
    WorkoutSuggestion,
)

# Recovered-and-ready thresholds
READY_RECOVERY = 0.8
READY_FATIGUE = 0.3
PERSONAL_BEST_MIN_STREAK = 3


@dataclass(frozen=True)
class InsightSignal:
    """A candidate insight produced by one upstream output."""
    type: InsightType
    origin: str
    title: str
    message: str
    priority: Priority
    confidence: int
    ttl_hours: Optional[float] = None
    action: Optional[InsightAction] = None


def ttl_for(insight_type: InsightType, config: InsightConfig) -> float:
    return {
        InsightType.WARNING: config.warning_ttl_hours,
        InsightType.SUGGESTION: config.suggestion_ttl_hours,
        InsightType.PATTERN: config.pattern_ttl_hours,
        InsightType.ACHIEVEMENT: config.achievement_ttl_hours,
        InsightType.MILESTONE: config.milestone_ttl_hours,
    }[insight_type]


def _confidence(value: float) -> int:
    return max(0, min(100, int(round(value * 100))))


# ===== FATIGUE & REST =====


def fatigue_signals(
    assessment: FatigueAssessment, rest_config: RestConfig, config: InsightConfig
) -> List[InsightSignal]:
    """High fatigue, per-group overuse and recovered/ready signals."""
    signals = []
    ttl = ttl_for(InsightType.WARNING, config)

    if assessment.fatigue_level > rest_config.fatigue_high:
        signals.append(
            InsightSignal(
                type=InsightType.WARNING,
                origin="fatigue:high",
                title="High Fatigue Detected",
                message=(
                    f"Your fatigue level is {assessment.fatigue_level:.0%}. "
                    "Your body is showing signs of high fatigue; consider taking 1-2 rest days."
                ),
                priority=Priority.HIGH,
                confidence=_confidence(assessment.fatigue_level),
                ttl_hours=ttl,
                action=InsightAction(type=ActionType.REST, label="Plan a rest day"),
            )
        )

    for indicator in assessment.indicators_of(IndicatorType.MUSCLE_OVERUSE):
        for group in indicator.muscle_groups:
            signals.append(
                InsightSignal(
                    type=InsightType.WARNING,
                    origin=f"fatigue:overuse:{group}",
                    title=f"{group.replace('_', ' ').title()} Overtraining",
                    message=(
                        f"Your {group.replace('_', ' ')} muscles need extra recovery time. "
                        f"{indicator.description}."
                    ),
                    priority=Priority.MEDIUM,
                    confidence=80,
                    ttl_hours=ttl,
                    action=InsightAction(
                        type=ActionType.RECOVERY, label="Try a recovery session", target=group
                    ),
                )
            )

    if (
        assessment.recovery_score > READY_RECOVERY
        and assessment.fatigue_level < READY_FATIGUE
    ):
        signals.append(
            InsightSignal(
                type=InsightType.PATTERN,
                origin="recovery:ready",
                title="Excellent Recovery Status",
                message="You're well-recovered and ready for an intense workout!",
                priority=Priority.LOW,
                confidence=_confidence(assessment.recovery_score),
                ttl_hours=ttl_for(InsightType.PATTERN, config),
                action=InsightAction(type=ActionType.WORKOUT, label="Start a workout"),
            )
        )
    return signals


def rest_signals(recommendation: RestRecommendation, config: InsightConfig) -> List[InsightSignal]:
    """A rest-day suggestion when rest is needed."""
    if not recommendation.rest_day_needed:
        return []
    confidence = {Priority.HIGH: 90, Priority.MEDIUM: 75, Priority.LOW: 60}[recommendation.priority]
    return [
        InsightSignal(
            type=InsightType.SUGGESTION,
            origin="rest:day",
            title=recommendation.title,
            message=(
                f"{recommendation.reasoning[0]}. Expect about "
                f"{recommendation.estimated_recovery_hours:.0f} hours to recover."
            ),
            priority=recommendation.priority,
            confidence=confidence,
            ttl_hours=ttl_for(InsightType.SUGGESTION, config),
            action=InsightAction(
                type=ActionType.REST,
                label="See recovery activities",
                target=recommendation.recommendation_type.value,
            ),
        )
    ]


# ===== SUGGESTIONS =====


def suggestion_signals(
    suggestions: List[WorkoutSuggestion], total_weight: float, config: InsightConfig
) -> List[InsightSignal]:
    """The top-ranked workout suggestion."""
    if not suggestions:
        return []
    top = suggestions[0]
    return [
        InsightSignal(
            type=InsightType.SUGGESTION,
            origin="workout_suggestion",
            title=f"Try {top.name}",
            message=top.reasoning,
            priority=Priority.MEDIUM,
            confidence=_confidence(top.score / total_weight) if total_weight > 0 else 50,
            ttl_hours=ttl_for(InsightType.SUGGESTION, config),
            action=InsightAction(type=ActionType.WORKOUT, label="Start workout", target=top.template_id),
        )
    ]


# ===== LEADERBOARD =====


def leaderboard_signals(
    result: LeaderboardResult,
    previous_rank: Optional[int],
    scope_key: str,
    leaderboard_config: LeaderboardConfig,
    config: InsightConfig,
) -> List[InsightSignal]:
    """Podium finish or a climb since the previous standings."""
    rank = result.current_user_rank
    if rank is None:
        return []

    label = f"{result.timeframe.value.replace('_', '-')} {result.leaderboard_type.value}"
    signals = []
    if rank <= leaderboard_config.podium_size:
        signals.append(
            InsightSignal(
                type=InsightType.ACHIEVEMENT,
                origin=f"leaderboard:{scope_key}:podium",
                title=f"You're #{rank} on the {label} leaderboard",
                message=(
                    f"You're in the top {leaderboard_config.podium_size} of "
                    f"{result.total_participants} participants."
                ),
                priority=Priority.HIGH if rank == 1 else Priority.MEDIUM,
                confidence=100,
                ttl_hours=ttl_for(InsightType.ACHIEVEMENT, config),
                action=InsightAction(type=ActionType.SHARE, label="Share your rank"),
            )
        )
    elif previous_rank is not None and rank < previous_rank:
        climbed = previous_rank - rank
        signals.append(
            InsightSignal(
                type=InsightType.PATTERN,
                origin=f"leaderboard:{scope_key}:climb",
                title=f"Up {climbed} place{'s' if climbed > 1 else ''} on the {label} leaderboard",
                message=f"You moved from #{previous_rank} to #{rank}. Keep it up!",
                priority=Priority.LOW,
                confidence=100,
                ttl_hours=ttl_for(InsightType.PATTERN, config),
                action=InsightAction(type=ActionType.LEADERBOARD, label="View leaderboard"),
            )
        )
    return signals


# ===== ACHIEVEMENTS, STREAKS, MILESTONES =====


def achievement_signals(
    achievements: Iterable[AchievementTrigger], config: InsightConfig
) -> List[InsightSignal]:
    return [
        InsightSignal(
            type=InsightType.ACHIEVEMENT,
            origin=f"achievement:{a.id}",
            title=f"Achievement Unlocked: {a.title}",
            message=a.description or f"You unlocked {a.title}.",
            priority=Priority.MEDIUM,
            confidence=100,
            ttl_hours=ttl_for(InsightType.ACHIEVEMENT, config),
            action=InsightAction(type=ActionType.SHARE, label="Share achievement", target=a.id),
        )
        for a in achievements
    ]


def streak_signals(streak: StreakTrigger, config: InsightConfig) -> List[InsightSignal]:
    """Streak milestones, or a new personal-best streak between milestones."""
    current = streak.current_streak
    if current in config.streak_milestones:
        return [
            InsightSignal(
                type=InsightType.MILESTONE,
                origin=f"streak:{current}",
                title=f"{current}-Day Streak!",
                message=f"You've worked out {current} days in a row. Amazing consistency!",
                priority=Priority.HIGH,
                confidence=100,
                ttl_hours=ttl_for(InsightType.MILESTONE, config),
                action=InsightAction(type=ActionType.SHARE, label="Share your streak"),
            )
        ]
    if current >= PERSONAL_BEST_MIN_STREAK and current == streak.longest_streak:
        return [
            InsightSignal(
                type=InsightType.ACHIEVEMENT,
                origin=f"streak:personal_best:{current}",
                title="New Personal Best Streak",
                message=f"{current} days in a row is your longest streak yet.",
                priority=Priority.MEDIUM,
                confidence=100,
                ttl_hours=ttl_for(InsightType.ACHIEVEMENT, config),
            )
        ]
    return []


def workout_count_signals(workout_count: int, config: InsightConfig) -> List[InsightSignal]:
    """Celebrate a workout-count milestone reached within the last few sessions."""
    reached = [
        m
        for m in config.workout_count_milestones
        if 0 <= workout_count - m <= config.workout_count_grace
    ]
    if not reached:
        return []
    milestone = max(reached)
    return [
        InsightSignal(
            type=InsightType.MILESTONE,
            origin=f"workouts:{milestone}",
            title=f"{milestone} Workouts Completed",
            message=f"You've logged {milestone} workouts. Every session counts!",
            priority=Priority.MEDIUM,
            confidence=100,
            ttl_hours=ttl_for(InsightType.MILESTONE, config),
            action=InsightAction(type=ActionType.SHARE, label="Share milestone"),
        )
    ]


def onboarding_signals(config: InsightConfig) -> List[InsightSignal]:
    """Encouraging placeholder when history is too sparse to analyse."""
    return [
        InsightSignal(
            type=InsightType.SUGGESTION,
            origin="onboarding",
            title="Start Your Training Journey",
            message=(
                "Log a few workouts to unlock fatigue tracking and personalized "
                "rest-day recommendations."
            ),
            priority=Priority.LOW,
            confidence=100,
            ttl_hours=ttl_for(InsightType.SUGGESTION, config),
            action=InsightAction(type=ActionType.WORKOUT, label="Log a workout"),
        )
    ]
