"""
Rest-day recommendation.

Turns a FatigueAssessment into a rest decision, a priority, suggested
recovery activities and guidance for the next workout.
"""

import logging
from typing import List, Optional

from fitness_insights.catalog import MUSCLE_REGIONS, region_of
from fitness_insights.config import RestConfig
from fitness_insights.schemas import (
    FatigueAssessment,
    IndicatorType,
    Intensity,
    NextWorkoutGuidance,
    Priority,
    RecommendationType,
    RestRecommendation,
    SuggestedActivity,
)

logger = logging.getLogger(__name__)


ACTIVITY_GROUPS = {
    RecommendationType.COMPLETE_REST: SuggestedActivity(
        type=RecommendationType.COMPLETE_REST,
        activities=[
            "Complete rest and sleep optimization",
            "Gentle stretching (5-10 minutes)",
            "Meditation or relaxation techniques",
            "Hydration focus and nutrition recovery",
        ],
    ),
    RecommendationType.ACTIVE_RECOVERY: SuggestedActivity(
        type=RecommendationType.ACTIVE_RECOVERY,
        activities=[
            "Light walking (20-30 minutes)",
            "Gentle yoga or stretching routine",
            "Foam rolling and mobility work",
            "Swimming at easy pace",
        ],
        duration_minutes=30,
    ),
    RecommendationType.LIGHT_ACTIVITY: SuggestedActivity(
        type=RecommendationType.LIGHT_ACTIVITY,
        activities=[
            "Leisurely bike ride",
            "Easy hiking or nature walk",
            "Recreational sports at low intensity",
            "Dancing or movement for fun",
        ],
        duration_minutes=45,
    ),
}

TITLES = {
    Priority.HIGH: "Rest Day Required",
    Priority.MEDIUM: "Rest Day Recommended",
    Priority.LOW: "Keep Up the Routine",
}


class RestRecommender:
    """
    Decides whether a rest day is needed.

    rest_day_needed = fatigue_level > fatigue_high OR recovery_score < recovery_low

    Both comparisons are strict: a value sitting exactly on a threshold does
    not trigger rest.
    """

    def __init__(self, config: Optional[RestConfig] = None):
        self.config = config or RestConfig()

    def recommend(self, assessment: FatigueAssessment) -> RestRecommendation:
        """
        Build a rest recommendation from a fatigue assessment.

        A recommendation is always produced; when rest is not needed it is a
        low-priority "maintain" recommendation.

        Args:
            assessment: Output of FatigueAnalyzer.assess

        Returns:
            RestRecommendation
        """
        cfg = self.config
        fatigue = assessment.fatigue_level
        recovery = assessment.recovery_score

        fatigue_high = fatigue > cfg.fatigue_high
        recovery_low = recovery < cfg.recovery_low
        rest_day_needed = fatigue_high or recovery_low

        if (fatigue_high and recovery_low) or fatigue > cfg.fatigue_critical:
            priority = Priority.HIGH
        elif fatigue_high or recovery_low:
            priority = Priority.MEDIUM
        else:
            priority = Priority.LOW

        recommendation_type = self._recommendation_type(fatigue, recovery)

        recommendation = RestRecommendation(
            rest_day_needed=rest_day_needed,
            priority=priority,
            recommendation_type=recommendation_type,
            title=TITLES[priority],
            reasoning=self._build_reasoning(assessment, fatigue_high, recovery_low),
            estimated_recovery_hours=round(
                cfg.base_recovery_hours + fatigue * cfg.recovery_hours_scale, 1
            ),
            suggested_activities=self._suggested_activities(recommendation_type, priority),
            next_workout_guidance=NextWorkoutGuidance(
                recommended_intensity=self._recommended_intensity(fatigue),
                focus_areas=self._focus_areas(assessment),
                avoid_muscle_groups=self._avoid_muscle_groups(assessment, rest_day_needed),
            ),
        )
        logger.debug(
            "Rest recommendation: needed=%s priority=%s type=%s",
            rest_day_needed,
            priority.value,
            recommendation_type.value,
        )
        return recommendation

    def _recommendation_type(self, fatigue: float, recovery: float) -> RecommendationType:
        if fatigue > self.config.fatigue_high:
            return RecommendationType.COMPLETE_REST
        if fatigue > self.config.fatigue_moderate or recovery < self.config.recovery_low:
            return RecommendationType.ACTIVE_RECOVERY
        return RecommendationType.LIGHT_ACTIVITY

    def _recommended_intensity(self, fatigue: float) -> Intensity:
        if fatigue > self.config.fatigue_high:
            return Intensity.LIGHT
        if fatigue > self.config.fatigue_moderate:
            return Intensity.MODERATE
        return Intensity.HIGH

    @staticmethod
    def _suggested_activities(
        recommendation_type: RecommendationType, priority: Priority
    ) -> List[SuggestedActivity]:
        """Activity groups, with the recommended type listed first."""
        mandatory = recommendation_type == RecommendationType.COMPLETE_REST and priority == Priority.HIGH
        types = []
        if priority == Priority.HIGH or recommendation_type == RecommendationType.COMPLETE_REST:
            types.append(RecommendationType.COMPLETE_REST)
        if not mandatory:
            types.append(RecommendationType.ACTIVE_RECOVERY)
        types.append(RecommendationType.LIGHT_ACTIVITY)

        types.sort(key=lambda t: t != recommendation_type)
        return [ACTIVITY_GROUPS[t] for t in types]

    @staticmethod
    def _avoid_muscle_groups(assessment: FatigueAssessment, rest_day_needed: bool) -> List[str]:
        flagged = [IndicatorType.MUSCLE_OVERUSE]
        if rest_day_needed:
            flagged.append(IndicatorType.HIGH_INTENSITY_RECENT)

        groups = {}
        for indicator in assessment.indicators:
            if indicator.type in flagged:
                for group in indicator.muscle_groups:
                    groups.setdefault(group, None)
        return list(groups)

    def _focus_areas(self, assessment: FatigueAssessment) -> List[str]:
        """Major regions with nothing trained recently."""
        trained = {region_of(g) for g in assessment.recent_muscle_groups}
        untrained = [region for region in MUSCLE_REGIONS if region not in trained]
        return untrained[: self.config.max_focus_areas]

    def _build_reasoning(
        self, assessment: FatigueAssessment, fatigue_high: bool, recovery_low: bool
    ) -> List[str]:
        reasoning = []
        if fatigue_high:
            reasoning.append(
                f"Fatigue level {assessment.fatigue_level:.0%} is above the "
                f"{self.config.fatigue_high:.0%} rest threshold"
            )
        if recovery_low:
            reasoning.append(
                f"Recovery score {assessment.recovery_score:.0%} is below "
                f"{self.config.recovery_low:.0%}"
            )
        for indicator in assessment.indicators:
            reasoning.append(indicator.description)

        if not reasoning:
            reasoning.append(
                "Preventive rest to maintain optimal performance and reduce injury risk"
            )
        return reasoning
