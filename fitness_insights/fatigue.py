"""
Fatigue and recovery assessment.

Derives a fatigue level and a recovery score from a trailing window of
workout sessions. The fatigue level is the decayed acute load measured
against a configured reference load; the user's own baseline from the weeks
before the acute window drives the load spike indicator.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from fitness_insights.config import FatigueConfig
from fitness_insights.errors import InsufficientDataError
from fitness_insights.schemas import (
    FatigueAssessment,
    FatigueIndicator,
    IndicatorType,
    Severity,
    WorkoutSession,
    ensure_utc,
    validate_unique_ids,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


class FatigueAnalyzer:
    """
    Computes fatigue level, recovery score and fatigue indicators.

    fatigue_level = clip(acute_decayed / (capacity × ratio_ceiling), 0, 1)

    where acute_decayed is the exponentially decayed load of the acute window
    and capacity is the decayed load reference_weekly_load would produce if
    spread evenly over the same window. Capacity does not depend on the
    history, so adding any session can only raise fatigue. The personal
    baseline only feeds the load spike indicator.
    """

    def __init__(self, config: Optional[FatigueConfig] = None):
        """
        Initialize analyzer.

        Args:
            config: Windows, decay constant and indicator thresholds
        """
        self.config = config or FatigueConfig()

    def assess(self, sessions: Iterable[WorkoutSession], now: datetime) -> FatigueAssessment:
        """
        Assess fatigue and recovery as of `now`.

        Args:
            sessions: Completed workout sessions in any order
            now: Reference time; sessions after it are ignored

        Returns:
            FatigueAssessment with levels, indicators and supporting figures

        Raises:
            InsufficientDataError: If no session falls in the baseline lookback
            ValidationError: If two sessions share an id
        """
        now = ensure_utc(now)
        sessions = list(sessions)
        validate_unique_ids(sessions)

        lookback = self._in_window(sessions, now, timedelta(days=self.config.baseline_window_days))
        if not lookback:
            raise InsufficientDataError(
                f"No workouts in the last {self.config.baseline_window_days} days"
            )

        acute_span = timedelta(days=self.config.acute_window_days)
        acute = self._in_window(lookback, now, acute_span)
        prior = [s for s in lookback if now - s.date >= acute_span]

        acute_decayed = sum(s.load * self._decay(s, now) for s in acute)
        acute_load = sum(s.load for s in acute)
        baseline_load = self._calculate_baseline_weekly_load(prior)

        fatigue_level = self._calculate_fatigue_level(acute_decayed)
        hours_since_high = self._hours_since_high_intensity(lookback, now)
        recovery_score = self._calculate_recovery_score(hours_since_high)

        overuse_span = timedelta(hours=self.config.overuse_window_hours)
        recent = self._in_window(lookback, now, overuse_span)
        recent_groups: Dict[str, None] = {}
        for session in sorted(recent, key=lambda s: s.date, reverse=True):
            for group in session.muscle_groups:
                recent_groups.setdefault(group, None)

        weekly_duration = sum(s.duration_minutes for s in acute)

        indicators: List[FatigueIndicator] = []
        indicators.extend(self._detect_load_spike(acute_load, baseline_load))
        indicators.extend(self._detect_muscle_overuse(recent))
        indicators.extend(self._detect_weekly_volume(weekly_duration))
        indicators.extend(self._detect_recent_high_intensity(lookback, now))

        logger.debug(
            "Fatigue assessed: level=%.3f recovery=%.3f acute=%.1f baseline=%.1f indicators=%d",
            fatigue_level,
            recovery_score,
            acute_load,
            baseline_load,
            len(indicators),
        )

        return FatigueAssessment(
            fatigue_level=fatigue_level,
            recovery_score=recovery_score,
            indicators=indicators,
            assessed_at=now,
            acute_load=round(acute_load, 2),
            baseline_load=round(baseline_load, 2),
            weekly_duration_minutes=round(weekly_duration, 2),
            sessions_in_window=len(acute),
            hours_since_high_intensity=(
                round(hours_since_high, 2) if hours_since_high is not None else None
            ),
            recent_muscle_groups=list(recent_groups),
        )

    # ===== LOAD MODEL =====

    @staticmethod
    def _in_window(
        sessions: Iterable[WorkoutSession], now: datetime, span: timedelta
    ) -> List[WorkoutSession]:
        """Sessions dated in (now - span, now]."""
        return [s for s in sessions if s.date <= now and now - s.date < span]

    def _decay(self, session: WorkoutSession, now: datetime) -> float:
        age_days = (now - session.date).total_seconds() / SECONDS_PER_DAY
        return math.exp(-age_days / self.config.tau_days)

    def _calculate_baseline_weekly_load(self, prior: List[WorkoutSession]) -> float:
        """
        Average weekly load over the lookback that precedes the acute window.

        Floored at min_baseline_weekly_load.
        """
        prior_weeks = (
            self.config.baseline_window_days - self.config.acute_window_days
        ) / 7.0
        average = sum(s.load for s in prior) / prior_weeks
        return max(average, self.config.min_baseline_weekly_load)

    def _capacity(self) -> float:
        """Decayed acute load produced by the reference load spread evenly over the window."""
        days = self.config.acute_window_days
        daily = self.config.reference_weekly_load / 7.0
        return daily * sum(
            math.exp(-(day + 0.5) / self.config.tau_days) for day in range(days)
        )

    def _calculate_fatigue_level(self, acute_decayed: float) -> float:
        ratio = acute_decayed / self._capacity()
        return max(0.0, min(1.0, ratio / self.config.ratio_ceiling))

    # ===== RECOVERY MODEL =====

    def _hours_since_high_intensity(
        self, sessions: List[WorkoutSession], now: datetime
    ) -> Optional[float]:
        high = [s for s in sessions if s.intensity >= self.config.high_intensity_cutoff]
        if not high:
            return None
        latest = max(s.date for s in high)
        return (now - latest).total_seconds() / 3600.0

    def _calculate_recovery_score(self, hours_since_high: Optional[float]) -> float:
        """
        Saturating exponential recovery curve.

        recovery = (1 - e^(-k·x)) / (1 - e^(-k)), x = hours / horizon

        Reaches exactly 1.0 at the recovery horizon and stays there.
        """
        if hours_since_high is None:
            return 1.0
        x = hours_since_high / self.config.recovery_horizon_hours
        if x >= 1.0:
            return 1.0
        k = self.config.recovery_curve_k
        score = (1.0 - math.exp(-k * x)) / (1.0 - math.exp(-k))
        return max(0.0, min(1.0, score))

    # ===== INDICATORS =====

    def _detect_load_spike(self, acute_load: float, baseline_load: float) -> List[FatigueIndicator]:
        threshold = self.config.spike_ratio * baseline_load
        if acute_load <= threshold:
            return []
        ratio = acute_load / baseline_load
        return [
            FatigueIndicator(
                type=IndicatorType.LOAD_SPIKE,
                severity=Severity.HIGH,
                description=(
                    f"Training load over the last {self.config.acute_window_days} days is "
                    f"{ratio:.1f}x your usual weekly load"
                ),
            )
        ]

    def _detect_muscle_overuse(self, recent: List[WorkoutSession]) -> List[FatigueIndicator]:
        counts: Dict[str, int] = defaultdict(int)
        for session in recent:
            for group in session.primary_muscle_groups:
                counts[group] += 1

        indicators = []
        for group in sorted(counts):
            if counts[group] >= self.config.overuse_session_count:
                indicators.append(
                    FatigueIndicator(
                        type=IndicatorType.MUSCLE_OVERUSE,
                        severity=Severity.MEDIUM,
                        description=(
                            f"{group.title()} was the main focus of {counts[group]} sessions "
                            f"in the last {self.config.overuse_window_hours:g} hours"
                        ),
                        muscle_groups=[group],
                    )
                )
        return indicators

    def _detect_weekly_volume(self, weekly_duration: float) -> List[FatigueIndicator]:
        ceiling = self.config.weekly_duration_ceiling_minutes
        if weekly_duration <= ceiling:
            return []
        severity = Severity.MEDIUM if weekly_duration > 1.5 * ceiling else Severity.LOW
        return [
            FatigueIndicator(
                type=IndicatorType.WEEKLY_VOLUME,
                severity=severity,
                description=(
                    f"{weekly_duration:.0f} minutes trained in the last "
                    f"{self.config.acute_window_days} days (ceiling {ceiling:.0f})"
                ),
            )
        ]

    def _detect_recent_high_intensity(
        self, sessions: List[WorkoutSession], now: datetime
    ) -> List[FatigueIndicator]:
        horizon = timedelta(hours=self.config.recovery_horizon_hours)
        recent_high = [
            s
            for s in self._in_window(sessions, now, horizon)
            if s.intensity >= self.config.high_intensity_cutoff
        ]
        if not recent_high:
            return []

        groups: Dict[str, None] = {}
        for session in sorted(recent_high, key=lambda s: s.date, reverse=True):
            for group in session.muscle_groups:
                groups.setdefault(group, None)

        latest = max(s.date for s in recent_high)
        hours = (now - latest).total_seconds() / 3600.0
        return [
            FatigueIndicator(
                type=IndicatorType.HIGH_INTENSITY_RECENT,
                severity=Severity.MEDIUM,
                description=(
                    f"High-intensity session {hours:.0f} hours ago; full recovery takes "
                    f"about {self.config.recovery_horizon_hours:g} hours"
                ),
                muscle_groups=list(groups),
            )
        ]
