"""
Tests for leaderboard ranking.

Covers tie-breaks, competition ranking, timeframe windows, scoped
leaderboards, tiers and rank movement.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from fitness_insights.errors import ValidationError
from fitness_insights.leaderboard import (
    LeaderboardRanker,
    rank_changes,
    tier_for_rank,
    timeframe_window,
)
from fitness_insights.schemas import (
    LeaderboardType,
    ScoreEvent,
    ScoreType,
    Timeframe,
    coerce_score_events,
)


# Fixtures

@pytest.fixture
def ranker():
    """Ranker with default configuration."""
    return LeaderboardRanker()


@pytest.fixture
def events(fixtures_dir):
    """Score events for one week of a March challenge plus an older event."""
    with open(fixtures_dir / "score_events.json") as f:
        return coerce_score_events(json.load(f)["events"])


def _event(user_id, score, hours_ago, now, score_type=ScoreType.POINTS, **kwargs):
    return ScoreEvent(
        user_id=user_id,
        score=score,
        achieved_at=now - timedelta(hours=hours_ago),
        score_type=score_type,
        **kwargs,
    )


# Test Cases


def test_earlier_achiever_wins_equal_scores(ranker, events, now):
    """u2 reached 1200 before u1, so u2 ranks first."""
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now)

    assert [(e.user_id, e.rank) for e in result.entries] == [
        ("u2", 1),
        ("u1", 2),
        ("athlete_001", 3),
        ("u3", 4),
    ]
    assert result.total_participants == 4
    assert result.score_type == ScoreType.POINTS


def test_best_score_per_user(ranker, events, now):
    """Only a user's best event in the window counts."""
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now)
    u1 = next(e for e in result.entries if e.user_id == "u1")
    assert u1.score == 1200
    assert u1.display_name == "Alex"


def test_weekly_window_starts_monday(ranker, events, now):
    """Events before Monday 00:00 UTC are outside the weekly board."""
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now)

    assert result.window_start == datetime(2026, 3, 9, tzinfo=timezone.utc)
    assert result.window_end == now
    assert "u4" not in [e.user_id for e in result.entries]


def test_monthly_and_all_time(ranker, events, now):
    monthly = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.MONTHLY, now)
    assert monthly.entries[0].user_id == "u4"
    assert monthly.total_participants == 5

    all_time = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)
    assert all_time.window_start is None
    assert all_time.total_participants == 5


def test_daily_board_can_be_empty(ranker, events, now):
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.DAILY, now)
    assert result.entries == []
    assert result.total_participants == 0
    assert result.score_type is None


def test_current_user_rank(ranker, events, now):
    result = ranker.rank(
        events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now, current_user_id="athlete_001"
    )
    assert result.current_user_rank == 3
    assert result.current_user_entry.is_current_user
    assert [e.is_current_user for e in result.entries].count(True) == 1


def test_limit_keeps_current_user_rank(ranker, events, now):
    """Truncating entries does not hide the current user's standing."""
    result = ranker.rank(
        events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now, current_user_id="u3", limit=2
    )
    assert len(result.entries) == 2
    assert result.total_participants == 4
    assert result.current_user_rank == 4
    assert result.current_user_entry.user_id == "u3"


def test_invalid_limit(ranker, events, now):
    with pytest.raises(ValidationError):
        ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, now, limit=0)


def test_challenge_leaderboard(ranker, events, now):
    result = ranker.rank(
        events, LeaderboardType.CHALLENGE, Timeframe.ALL_TIME, now, scope_id="march-madness"
    )
    assert [e.user_id for e in result.entries] == ["u2", "u1", "athlete_001", "u3"]


def test_category_leaderboard(ranker, events, now):
    result = ranker.rank(events, LeaderboardType.CATEGORY, Timeframe.WEEKLY, now, scope_id="cardio")
    assert [e.user_id for e in result.entries] == ["u3"]


def test_scoped_leaderboard_requires_scope(ranker, events, now):
    with pytest.raises(ValidationError):
        ranker.rank(events, LeaderboardType.CHALLENGE, Timeframe.WEEKLY, now)


def test_dead_heat_shares_rank(ranker, now):
    """Equal score at the same instant shares a rank; the next rank skips."""
    events = [
        _event("b", 500, 5, now),
        _event("a", 500, 5, now),
        _event("c", 400, 6, now),
    ]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)

    assert [(e.user_id, e.rank) for e in result.entries] == [("a", 1), ("b", 1), ("c", 3)]


def test_time_scores_rank_lower_first(ranker, now):
    events = [
        _event("slow", 1800, 3, now, ScoreType.TIME),
        _event("fast", 1500, 2, now, ScoreType.TIME),
        _event("fast", 1600, 10, now, ScoreType.TIME),
    ]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)

    assert [e.user_id for e in result.entries] == ["fast", "slow"]
    assert result.entries[0].score == 1500


def test_mixed_score_types_need_selection(ranker, now):
    events = [_event("a", 10, 1, now), _event("b", 600, 1, now, ScoreType.TIME)]

    with pytest.raises(ValidationError):
        ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)

    result = ranker.rank(
        events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now, score_type=ScoreType.TIME
    )
    assert [e.user_id for e in result.entries] == ["b"]


def test_future_events_excluded(ranker, now):
    events = [_event("a", 10, 1, now), _event("b", 99, -1, now)]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)
    assert [e.user_id for e in result.entries] == ["a"]


def test_display_name_falls_back(ranker, now):
    events = [
        _event("a", 100, 1, now),
        _event("a", 50, 2, now, display_name="Avery"),
        _event("b", 90, 1, now),
    ]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)
    names = {e.user_id: e.display_name for e in result.entries}
    assert names == {"a": "Avery", "b": "b"}


def test_ranking_is_order_independent(ranker, events, now):
    forward = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.MONTHLY, now)
    backward = ranker.rank(list(reversed(events)), LeaderboardType.GLOBAL, Timeframe.MONTHLY, now)
    assert forward == backward


def test_timeframe_window(now):
    assert timeframe_window(Timeframe.DAILY, now) == datetime(2026, 3, 12, tzinfo=timezone.utc)
    assert timeframe_window(Timeframe.WEEKLY, now) == datetime(2026, 3, 9, tzinfo=timezone.utc)
    assert timeframe_window(Timeframe.MONTHLY, now) == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert timeframe_window(Timeframe.ALL_TIME, now) is None


@pytest.mark.parametrize(
    "rank,tier",
    [
        (1, "Legend"),
        (2, "Champion"),
        (5, "Champion"),
        (6, "Elite"),
        (20, "Elite"),
        (21, "Advanced"),
        (100, "Advanced"),
        (101, "Intermediate"),
        (500, "Intermediate"),
        (501, "Beginner"),
        (10000, "Beginner"),
    ],
)
def test_tier_boundaries(rank, tier):
    assert tier_for_rank(rank).name == tier


def test_tier_rejects_zero_rank():
    with pytest.raises(ValidationError):
        tier_for_rank(0)


def test_rank_changes(ranker, now):
    before = ranker.rank(
        [_event("a", 100, 5, now), _event("b", 90, 5, now)],
        LeaderboardType.GLOBAL,
        Timeframe.ALL_TIME,
        now,
    )
    after = ranker.rank(
        [_event("a", 100, 5, now), _event("b", 120, 1, now), _event("c", 80, 1, now)],
        LeaderboardType.GLOBAL,
        Timeframe.ALL_TIME,
        now,
    )

    changes = rank_changes(before.entries, after.entries)

    assert changes["b"].change == 1
    assert changes["a"].change == -1
    assert changes["c"].previous_rank is None
    assert changes["c"].change == 0


def test_earlier_tie_is_not_a_shared_rank(ranker, now):
    """Equal scores an hour apart rank 1 and 2, earliest first."""
    events = [_event("u1", 100, 0, now), _event("u2", 100, 1, now)]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)

    assert [(e.user_id, e.rank) for e in result.entries] == [("u2", 1), ("u1", 2)]


def test_ranks_have_no_gaps_without_dead_heats(ranker, now):
    events = [
        _event(f"user{i}", score, hours, now)
        for i, (score, hours) in enumerate(
            [(300, 1), (300, 2), (250, 3), (500, 4), (250, 5), (100, 6), (300, 7)]
        )
    ]
    result = ranker.rank(events, LeaderboardType.GLOBAL, Timeframe.ALL_TIME, now)

    assert [e.rank for e in result.entries] == list(range(1, len(events) + 1))
    for earlier, later in zip(result.entries, result.entries[1:]):
        if earlier.score == later.score:
            assert earlier.achieved_at < later.achieved_at
