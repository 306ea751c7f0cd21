"""
Leaderboard ranking.

Ranks users from a stream of score events for a leaderboard type and a
calendar timeframe, with deterministic tie-breaks:

1. Best effective score (direction depends on score type)
2. Earliest achieved_at (first to reach the score ranks higher)
3. user_id (ordering only; never affects rank)

Ranks follow standard competition ranking: only a true dead heat (equal
score and equal achieved_at) shares a rank, and the next entry's rank is its
1-based position.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from fitness_insights import errors
from fitness_insights.config import LeaderboardConfig
from fitness_insights.schemas import (
    LeaderboardEntry,
    LeaderboardResult,
    LeaderboardType,
    ScoreEvent,
    ScoreType,
    Timeframe,
    ensure_utc,
)

logger = logging.getLogger(__name__)


class LeaderboardTier(BaseModel):
    """Named band of ranks."""

    name: str
    min_rank: int = Field(..., ge=1)
    max_rank: Optional[int] = Field(None, ge=1, description="Inclusive; None is unbounded")


TIERS: List[LeaderboardTier] = [
    LeaderboardTier(name="Legend", min_rank=1, max_rank=1),
    LeaderboardTier(name="Champion", min_rank=2, max_rank=5),
    LeaderboardTier(name="Elite", min_rank=6, max_rank=20),
    LeaderboardTier(name="Advanced", min_rank=21, max_rank=100),
    LeaderboardTier(name="Intermediate", min_rank=101, max_rank=500),
    LeaderboardTier(name="Beginner", min_rank=501, max_rank=None),
]


class RankChange(BaseModel):
    """Movement of one user between two standings."""

    user_id: str
    previous_rank: Optional[int] = None
    current_rank: int
    change: int = Field(..., description="Positive when the user moved up")


def tier_for_rank(rank: int) -> LeaderboardTier:
    """Tier a rank falls in."""
    if rank < 1:
        raise errors.ValidationError(f"Rank must be at least 1, got {rank}")
    for tier in TIERS:
        if rank >= tier.min_rank and (tier.max_rank is None or rank <= tier.max_rank):
            return tier
    return TIERS[-1]


def rank_changes(
    previous: Iterable[LeaderboardEntry], current: Iterable[LeaderboardEntry]
) -> Dict[str, RankChange]:
    """
    Compare two standings.

    Users new to the current standings get previous_rank None and change 0.
    Users who dropped off the current standings are omitted.
    """
    previous_ranks = {entry.user_id: entry.rank for entry in previous}
    changes = {}
    for entry in current:
        before = previous_ranks.get(entry.user_id)
        changes[entry.user_id] = RankChange(
            user_id=entry.user_id,
            previous_rank=before,
            current_rank=entry.rank,
            change=(before - entry.rank) if before is not None else 0,
        )
    return changes


def timeframe_window(timeframe: Timeframe, now: datetime) -> Optional[datetime]:
    """
    Start of the UTC calendar window containing `now`.

    Daily is the calendar day, weekly the ISO week starting Monday, monthly
    the calendar month. All-time has no start.
    """
    now = ensure_utc(now)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == Timeframe.DAILY:
        return day_start
    if timeframe == Timeframe.WEEKLY:
        return day_start - timedelta(days=now.weekday())
    if timeframe == Timeframe.MONTHLY:
        return day_start.replace(day=1)
    return None


class LeaderboardRanker:
    """Computes ranked standings from score events."""

    def __init__(self, config: Optional[LeaderboardConfig] = None):
        self.config = config or LeaderboardConfig()

    def rank(
        self,
        events: Iterable[ScoreEvent],
        leaderboard_type: LeaderboardType,
        timeframe: Timeframe,
        now: datetime,
        current_user_id: Optional[str] = None,
        scope_id: Optional[str] = None,
        score_type: Optional[ScoreType] = None,
        limit: Optional[int] = None,
    ) -> LeaderboardResult:
        """
        Rank users for one leaderboard.

        Args:
            events: Score events (any order)
            leaderboard_type: global, challenge or category
            timeframe: Calendar window to rank within
            now: Reference time; events after it are excluded
            current_user_id: User whose rank is reported separately
            scope_id: Challenge id or category name for scoped leaderboards
            score_type: Score type to rank; required when events mix types
            limit: Maximum number of entries returned

        Returns:
            LeaderboardResult with entries sorted by rank

        Raises:
            ValidationError: On a missing scope id, mixed score types or a bad limit
        """
        now = ensure_utc(now)
        if limit is None:
            limit = self.config.default_limit
        if limit is not None and limit < 1:
            raise errors.ValidationError(f"limit must be at least 1, got {limit}")

        window_start = timeframe_window(timeframe, now)
        scoped = [
            e
            for e in self._scope(events, leaderboard_type, scope_id)
            if e.achieved_at <= now and (window_start is None or e.achieved_at >= window_start)
        ]

        score_type = self._resolve_score_type(scoped, score_type)
        if score_type is not None:
            scoped = [e for e in scoped if e.score_type == score_type]

        entries = self._rank_entries(scoped, current_user_id)
        current_entry = next((e for e in entries if e.is_current_user), None)

        logger.debug(
            "Ranked %d users on %s/%s leaderboard",
            len(entries),
            leaderboard_type.value,
            timeframe.value,
        )
        return LeaderboardResult(
            leaderboard_type=leaderboard_type,
            timeframe=timeframe,
            score_type=score_type,
            window_start=window_start,
            window_end=now,
            entries=entries[:limit] if limit is not None else entries,
            total_participants=len(entries),
            current_user_rank=current_entry.rank if current_entry else None,
            current_user_entry=current_entry,
        )

    @staticmethod
    def _scope(
        events: Iterable[ScoreEvent], leaderboard_type: LeaderboardType, scope_id: Optional[str]
    ) -> List[ScoreEvent]:
        if leaderboard_type == LeaderboardType.GLOBAL:
            return list(events)
        if not scope_id:
            raise errors.ValidationError(
                f"A {leaderboard_type.value} leaderboard needs a scope id"
            )
        if leaderboard_type == LeaderboardType.CHALLENGE:
            return [e for e in events if e.challenge_id == scope_id]
        return [e for e in events if e.category == scope_id]

    @staticmethod
    def _resolve_score_type(
        events: List[ScoreEvent], requested: Optional[ScoreType]
    ) -> Optional[ScoreType]:
        if requested is not None:
            return requested
        types = sorted({e.score_type.value for e in events})
        if len(types) > 1:
            raise errors.ValidationError(
                f"Score events mix score types ({', '.join(types)}); pass score_type"
            )
        return ScoreType(types[0]) if types else None

    @staticmethod
    def _sort_key(event: ScoreEvent) -> Tuple[float, datetime, str]:
        effective = -event.score if event.score_type.higher_is_better else event.score
        return (effective, event.achieved_at, event.user_id)

    def _rank_entries(
        self, events: List[ScoreEvent], current_user_id: Optional[str]
    ) -> List[LeaderboardEntry]:
        best: Dict[str, ScoreEvent] = {}
        names: Dict[str, str] = {}
        for event in events:
            if event.display_name:
                names.setdefault(event.user_id, event.display_name)
            held = best.get(event.user_id)
            if held is None or self._sort_key(event) < self._sort_key(held):
                best[event.user_id] = event

        ordered = sorted(best.values(), key=self._sort_key)

        entries = []
        previous: Optional[ScoreEvent] = None
        rank = 0
        for position, event in enumerate(ordered, start=1):
            dead_heat = (
                previous is not None
                and event.score == previous.score
                and event.achieved_at == previous.achieved_at
            )
            if not dead_heat:
                rank = position
            entries.append(
                LeaderboardEntry(
                    user_id=event.user_id,
                    display_name=event.display_name or names.get(event.user_id, event.user_id),
                    score=event.score,
                    score_type=event.score_type,
                    rank=rank,
                    is_current_user=event.user_id == current_user_id,
                    achieved_at=event.achieved_at,
                )
            )
            previous = event
        return entries
