"""
Engine configuration.

Every threshold and decay constant used by the engine is a documented,
overridable default. EngineConfig can be built in code or loaded from a JSON
file; EngineSettings picks up process-level settings from the environment.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FatigueConfig(BaseModel):
    """Windows, decay and indicator thresholds for fatigue assessment."""

    tau_days: float = Field(default=3.0, gt=0, description="Load decay time constant in days")
    acute_window_days: int = Field(default=7, gt=0, description="Trailing window for acute load")
    baseline_window_days: int = Field(
        default=28, gt=0, description="Trailing lookback used for the baseline"
    )
    min_baseline_weekly_load: float = Field(
        default=45.0,
        gt=0,
        description="Floor on baseline weekly load so a sparse history does not inflate load spikes",
    )
    reference_weekly_load: float = Field(
        default=45.0,
        gt=0,
        description="Weekly load whose decayed equivalent fatigue_level is measured against",
    )
    ratio_ceiling: float = Field(
        default=2.0,
        gt=0,
        description="Acute:reference ratio that maps to fatigue_level 1.0",
    )
    high_intensity_cutoff: float = Field(
        default=0.75, ge=0.0, le=1.0, description="Session intensity counted as high intensity"
    )
    recovery_horizon_hours: float = Field(
        default=48.0, gt=0, description="Hours after which recovery saturates at 1.0"
    )
    recovery_curve_k: float = Field(
        default=3.0, gt=0, description="Steepness of the exponential recovery curve"
    )
    spike_ratio: float = Field(
        default=1.5, gt=0, description="Acute load over baseline that raises a load spike"
    )
    overuse_window_hours: float = Field(default=72.0, gt=0)
    overuse_session_count: int = Field(
        default=3, ge=2, description="Sessions sharing a primary group that count as overuse"
    )
    weekly_duration_ceiling_minutes: float = Field(default=420.0, gt=0)

    @model_validator(mode="after")
    def validate_windows(self):
        if self.baseline_window_days <= self.acute_window_days:
            raise ValueError("baseline_window_days must exceed acute_window_days")
        return self


class RestConfig(BaseModel):
    """Thresholds for the rest-day decision."""

    fatigue_moderate: float = Field(default=0.4, ge=0.0, le=1.0)
    fatigue_high: float = Field(default=0.7, ge=0.0, le=1.0)
    fatigue_critical: float = Field(default=0.85, ge=0.0, le=1.0)
    recovery_low: float = Field(default=0.3, ge=0.0, le=1.0)
    base_recovery_hours: float = Field(default=12.0, ge=0.0)
    recovery_hours_scale: float = Field(default=36.0, ge=0.0)
    max_focus_areas: int = Field(default=2, ge=0)

    @model_validator(mode="after")
    def validate_ordering(self):
        """Fatigue thresholds must be ordered moderate < high <= critical."""
        if not self.fatigue_moderate < self.fatigue_high <= self.fatigue_critical:
            raise ValueError(
                f"Fatigue thresholds out of order: moderate={self.fatigue_moderate}, "
                f"high={self.fatigue_high}, critical={self.fatigue_critical}"
            )
        return self


class SuggestionWeights(BaseModel):
    """Relative weight of each scoring factor. Need not sum to 1."""

    affinity: float = Field(default=0.35, ge=0.0)
    balance: float = Field(default=0.25, ge=0.0)
    duration: float = Field(default=0.20, ge=0.0)
    novelty: float = Field(default=0.10, ge=0.0)
    difficulty: float = Field(default=0.10, ge=0.0)


class SuggestionConfig(BaseModel):
    """Scoring parameters for workout suggestions."""

    weights: SuggestionWeights = Field(default_factory=SuggestionWeights)
    balance_window_hours: float = Field(default=72.0, gt=0)
    duration_tolerance: float = Field(
        default=0.15,
        ge=0.0,
        description="Relative deviation from the target duration that costs nothing",
    )
    novelty_sessions: int = Field(default=5, ge=0, description="Recent sessions checked for novelty")
    default_count: int = Field(default=3, ge=1)


class LeaderboardConfig(BaseModel):
    """Leaderboard display parameters."""

    default_limit: Optional[int] = Field(default=None, ge=1)
    podium_size: int = Field(default=3, ge=1, description="Ranks that count as a podium finish")


class InsightConfig(BaseModel):
    """Lifetimes and caps for the insight stream (hours)."""

    warning_ttl_hours: float = Field(default=24.0, gt=0)
    suggestion_ttl_hours: float = Field(default=24.0, gt=0)
    pattern_ttl_hours: float = Field(default=72.0, gt=0)
    achievement_ttl_hours: float = Field(default=168.0, gt=0)
    milestone_ttl_hours: float = Field(default=168.0, gt=0)
    max_visible: Optional[int] = Field(default=None, ge=1)
    streak_milestones: List[int] = Field(default_factory=lambda: [7, 14, 30, 60, 100])
    workout_count_milestones: List[int] = Field(
        default_factory=lambda: [10, 25, 50, 100, 200, 500]
    )
    workout_count_grace: int = Field(
        default=2, ge=0, description="Sessions past a milestone that still celebrate it"
    )
    tracked_leaderboards: int = Field(
        default=8,
        ge=1,
        description="Leaderboard queries whose last result is kept for fallback and rank movement",
    )


class RefreshConfig(BaseModel):
    """Memoization, coalescing and timeout policy for refresh requests."""

    cache_size: int = Field(default=64, ge=1)
    timeout_seconds: float = Field(default=5.0, gt=0)
    now_granularity_seconds: int = Field(
        default=60, ge=1, description="Resolution 'now' is truncated to in cache keys"
    )


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    fatigue: FatigueConfig = Field(default_factory=FatigueConfig)
    rest: RestConfig = Field(default_factory=RestConfig)
    suggestions: SuggestionConfig = Field(default_factory=SuggestionConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    insights: InsightConfig = Field(default_factory=InsightConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EngineConfig":
        """
        Load configuration from a JSON file.

        Sections and fields that are omitted keep their defaults.

        Args:
            path: Path to a JSON configuration file

        Returns:
            EngineConfig instance
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


class EngineSettings(BaseSettings):
    """Process-level settings loaded from FITNESS_INSIGHTS_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FITNESS_INSIGHTS_", env_file=".env", extra="ignore")

    config_path: Optional[Path] = None
    log_level: str = "WARNING"

    def load_config(self) -> EngineConfig:
        """Engine configuration from config_path, or defaults when unset."""
        if self.config_path is None:
            return EngineConfig()
        return EngineConfig.from_file(self.config_path)


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
