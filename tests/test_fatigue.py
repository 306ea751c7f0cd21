"""
Tests for fatigue and recovery assessment.

Covers the load model, the recovery curve, each indicator and the
insufficient-data outcome.
"""

import json

import pytest

from fitness_insights.config import FatigueConfig
from fitness_insights.errors import InsufficientDataError, ValidationError
from fitness_insights.fatigue import FatigueAnalyzer
from fitness_insights.rest import RestRecommender
from fitness_insights.schemas import IndicatorType, Severity, coerce_sessions


# Fixtures

@pytest.fixture
def analyzer():
    """Analyzer with default configuration."""
    return FatigueAnalyzer()


@pytest.fixture
def history(fixtures_dir):
    """Four weeks of mixed training ending in a block of leg days."""
    with open(fixtures_dir / "sessions_history.json") as f:
        return coerce_sessions(json.load(f)["sessions"])


@pytest.fixture
def steady_history(make_session):
    """Three sessions a week for the three weeks before the acute window."""
    sessions = []
    for week in range(1, 4):
        for offset in (0, 48, 96):
            hours_ago = week * 7 * 24 + 12 + offset
            sessions.append(
                make_session(f"w{week}-{offset}", hours_ago, duration=60, intensity=0.7)
            )
    sessions.append(make_session("recent", 72, duration=40, intensity=0.6))
    return sessions


# Test Cases


def test_single_hard_session_scenario(analyzer, make_session, now):
    """One hard strength session 20 hours ago puts fatigue in the upper half."""
    sessions = [make_session("s1", 20, duration=60, intensity=0.9)]

    assessment = analyzer.assess(sessions, now)

    assert assessment.fatigue_level >= 0.5
    assert 0.0 <= assessment.fatigue_level <= 1.0
    assert assessment.recovery_score == pytest.approx(0.751, abs=0.001)
    assert any(i.severity in (Severity.MEDIUM, Severity.HIGH) for i in assessment.indicators)

    recent = assessment.indicators_of(IndicatorType.HIGH_INTENSITY_RECENT)
    assert len(recent) == 1
    assert recent[0].muscle_groups == ["quadriceps", "glutes", "hamstrings"]


def test_adding_hard_session_never_lowers_fatigue(analyzer, steady_history, make_session, now):
    """Fatigue grows when a high-intensity session is added to the acute window."""
    before = analyzer.assess(steady_history, now)
    after = analyzer.assess(
        steady_history + [make_session("hard", 20, duration=60, intensity=0.9)], now
    )

    assert before.fatigue_level < 1.0
    assert after.fatigue_level > before.fatigue_level


@pytest.mark.parametrize("days_ago", [8, 9, 12, 15, 20, 27])
def test_hard_session_in_prior_weeks_never_lowers_fatigue(analyzer, make_session, now, days_ago):
    """A hard session older than the acute window raises the baseline, not fatigue."""
    history = [
        make_session("easy", 24, duration=60, intensity=0.6),
        make_session("old-hard", 24 * 10, duration=90, intensity=0.9),
    ]
    extra = make_session("extra", 24 * days_ago + 1, duration=90, intensity=0.9)

    before = analyzer.assess(history, now)
    after = analyzer.assess(history + [extra], now)

    assert after.baseline_load >= before.baseline_load
    assert after.fatigue_level >= before.fatigue_level
    assert RestRecommender().recommend(after).rest_day_needed == (
        RestRecommender().recommend(before).rest_day_needed
    )


def test_fatigue_ignores_prior_week_volume(analyzer, steady_history, now):
    """Only the acute window feeds fatigue; prior weeks only move the baseline."""
    recent = [s for s in steady_history if s.id == "recent"]

    full = analyzer.assess(steady_history, now)
    alone = analyzer.assess(recent, now)

    assert full.fatigue_level == pytest.approx(alone.fatigue_level)
    assert full.baseline_load > alone.baseline_load


def test_fatigue_is_monotonic_across_session_sizes(analyzer, steady_history, make_session, now):
    """Each larger added session yields fatigue at least as high as a smaller one."""
    levels = []
    for duration in (10, 30, 60, 90, 120):
        extra = make_session("extra", 30, duration=duration, intensity=0.85)
        levels.append(analyzer.assess(steady_history + [extra], now).fatigue_level)

    assert levels == sorted(levels)


def test_baseline_uses_prior_weeks(analyzer, steady_history, now):
    """Baseline is the average weekly load of the weeks before the acute window."""
    assessment = analyzer.assess(steady_history, now)

    # nine sessions of 60 min at 0.7 over three weeks
    assert assessment.baseline_load == pytest.approx(126.0)
    assert assessment.acute_load == pytest.approx(24.0)
    assert assessment.sessions_in_window == 1


def test_baseline_floor_for_new_users(analyzer, make_session, now):
    """Sparse history is compared to the minimum baseline, not to zero."""
    assessment = analyzer.assess([make_session("s1", 30, duration=20, intensity=0.5)], now)
    assert assessment.baseline_load == pytest.approx(FatigueConfig().min_baseline_weekly_load)


def test_recovery_saturates_after_horizon(analyzer, make_session, now):
    """Recovery is 1.0 once the recovery horizon has passed."""
    assessment = analyzer.assess([make_session("s1", 60, intensity=0.9)], now)
    assert assessment.recovery_score == 1.0


def test_recovery_without_high_intensity(analyzer, make_session, now):
    """Only easy sessions leaves recovery untouched."""
    assessment = analyzer.assess([make_session("s1", 2, intensity=0.5)], now)
    assert assessment.recovery_score == 1.0
    assert assessment.hours_since_high_intensity is None


def test_recovery_increases_with_elapsed_time(analyzer, make_session, now):
    """Longer since the last hard session means a higher recovery score."""
    scores = [
        analyzer.assess([make_session("s1", hours, intensity=0.9)], now).recovery_score
        for hours in (1, 6, 12, 24, 36, 47)
    ]
    assert scores == sorted(scores)
    assert scores[0] < 0.1


def test_fixture_history(analyzer, history, now):
    """The leg-heavy week raises a spike, quadriceps overuse and recent high intensity."""
    assessment = analyzer.assess(history, now)

    assert assessment.fatigue_level == 1.0
    assert assessment.sessions_in_window == 4
    assert assessment.hours_since_high_intensity == pytest.approx(18.0)

    spikes = assessment.indicators_of(IndicatorType.LOAD_SPIKE)
    assert len(spikes) == 1
    assert spikes[0].severity == Severity.HIGH

    overuse = assessment.indicators_of(IndicatorType.MUSCLE_OVERUSE)
    assert [i.muscle_groups for i in overuse] == [["quadriceps"]]
    assert overuse[0].severity == Severity.MEDIUM

    assert not assessment.indicators_of(IndicatorType.WEEKLY_VOLUME)
    assert assessment.recent_muscle_groups[0] == "quadriceps"


def test_overuse_needs_primary_group(analyzer, make_session, now):
    """Secondary muscle groups do not count toward overuse."""
    sessions = [
        make_session("s1", 10, groups=("quadriceps", "glutes")),
        make_session("s2", 30, groups=("hamstrings", "glutes")),
        make_session("s3", 50, groups=("calves", "glutes")),
    ]
    assessment = analyzer.assess(sessions, now)
    assert not assessment.indicators_of(IndicatorType.MUSCLE_OVERUSE)


def test_overuse_window_excludes_older_sessions(analyzer, make_session, now):
    sessions = [
        make_session("s1", 10, intensity=0.5),
        make_session("s2", 30, intensity=0.5),
        make_session("s3", 80, intensity=0.5),
    ]
    assessment = analyzer.assess(sessions, now)
    assert not assessment.indicators_of(IndicatorType.MUSCLE_OVERUSE)


def test_weekly_volume_severity(analyzer, make_session, now):
    """Volume over the ceiling is low severity, far over it is medium."""
    moderate = [make_session(f"m{i}", 24 * i + 1, duration=75, intensity=0.3) for i in range(6)]
    heavy = [make_session(f"h{i}", 24 * i + 1, duration=110, intensity=0.3) for i in range(6)]

    volume = analyzer.assess(moderate, now).indicators_of(IndicatorType.WEEKLY_VOLUME)
    assert [i.severity for i in volume] == [Severity.LOW]

    volume = analyzer.assess(heavy, now).indicators_of(IndicatorType.WEEKLY_VOLUME)
    assert [i.severity for i in volume] == [Severity.MEDIUM]


def test_future_sessions_are_ignored(analyzer, make_session, now):
    """Sessions dated after now do not contribute."""
    base = [make_session("s1", 30, intensity=0.6)]
    with_future = base + [make_session("future", -5, intensity=1.0)]

    assert analyzer.assess(with_future, now) == analyzer.assess(base, now)


def test_insufficient_data_without_recent_sessions(analyzer, make_session, now):
    """No session in the lookback is insufficient data, not a crash."""
    with pytest.raises(InsufficientDataError):
        analyzer.assess([], now)

    with pytest.raises(InsufficientDataError):
        analyzer.assess([make_session("old", 24 * 40)], now)


def test_duplicate_ids_rejected(analyzer, make_session, now):
    with pytest.raises(ValidationError):
        analyzer.assess([make_session("dup", 10), make_session("dup", 20)], now)


def test_assessment_is_deterministic(analyzer, history, now):
    assert analyzer.assess(history, now) == analyzer.assess(list(reversed(history)), now)


def test_custom_decay_constant(make_session, now):
    """A longer decay constant keeps older sessions contributing more."""
    sessions = [make_session("s1", 24 * 5, duration=30, intensity=0.5)]
    fast = FatigueAnalyzer(FatigueConfig(tau_days=1.0)).assess(sessions, now)
    slow = FatigueAnalyzer(FatigueConfig(tau_days=6.0)).assess(sessions, now)
    assert slow.fatigue_level > fast.fatigue_level
