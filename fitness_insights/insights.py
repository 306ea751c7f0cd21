"""
Insight aggregation.

The InsightAggregator is the single fan-in point of the engine. Each
aggregation pass runs the upstream components behind an isolation boundary,
maps their outputs to insight signals, and merges them into a maintained set
of Insight records:

- an existing visible insight with the same (type, origin) is updated in place
- a dismissed (type, origin) is never re-created
- an expired (type, origin) may be re-created as a new record
- records are never deleted; history() returns all of them

State is replaced wholesale under a lock, so readers always see a complete
snapshot.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from fitness_insights import errors, signals
from fitness_insights.config import EngineConfig
from fitness_insights.fatigue import FatigueAnalyzer
from fitness_insights.leaderboard import LeaderboardRanker
from fitness_insights.rest import RestRecommender
from fitness_insights.schemas import (
    PRIORITY_RANK,
    AchievementTrigger,
    FatigueAssessment,
    Goal,
    Insight,
    InsightType,
    LeaderboardResult,
    LeaderboardType,
    Priority,
    RestRecommendation,
    ScoreType,
    StreakTrigger,
    Timeframe,
    WorkoutSuggestion,
    coerce_score_events,
    coerce_sessions,
    ensure_utc,
)
from fitness_insights.streaks import compute_streak
from fitness_insights.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)

InsightKey = Tuple[InsightType, str]


class Outcome(str, Enum):
    """How one component fared in an aggregation pass."""
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    FALLBACK = "fallback"
    FAILED = "failed"
    SKIPPED = "skipped"


class LeaderboardQuery(BaseModel):
    """Which leaderboard the current user should be ranked on."""

    leaderboard_type: LeaderboardType = LeaderboardType.GLOBAL
    timeframe: Timeframe = Timeframe.WEEKLY
    current_user_id: str = Field(..., min_length=1)
    scope_id: Optional[str] = None
    score_type: Optional[ScoreType] = None

    @property
    def key(self) -> str:
        scope = self.scope_id or "all"
        return f"{self.leaderboard_type.value}:{scope}:{self.timeframe.value}"


@dataclass
class ComponentError:
    """A failure caught at an isolation boundary."""
    component: str
    error_type: str
    message: str
    record_id: Optional[str] = None

    @classmethod
    def from_exception(cls, component: str, exc: Exception) -> "ComponentError":
        return cls(
            component=component,
            error_type=type(exc).__name__,
            message=getattr(exc, "message", str(exc)),
            record_id=getattr(exc, "record_id", None),
        )


@dataclass
class AggregationReport:
    """What happened during one aggregation pass."""
    ran_at: datetime
    outcomes: Dict[str, Outcome] = field(default_factory=dict)
    errors: List[ComponentError] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    suppressed: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    assessment: Optional[FatigueAssessment] = None
    rest: Optional[RestRecommendation] = None
    suggestions: List[WorkoutSuggestion] = field(default_factory=list)
    leaderboard: Optional[LeaderboardResult] = None

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class _Snapshot:
    insights: Dict[str, Insight]
    active: Dict[InsightKey, str]
    suppressed: FrozenSet[InsightKey]


class InsightAggregator:
    """
    Maintains the prioritized, lifecycle-managed insight stream.

    Upstream components are pure; this class holds the only mutable state in
    the engine (the insight records and the last known-good component
    results).
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        analyzer: Optional[FatigueAnalyzer] = None,
        recommender: Optional[RestRecommender] = None,
        generator: Optional[SuggestionGenerator] = None,
        ranker: Optional[LeaderboardRanker] = None,
    ):
        self.config = config or EngineConfig()
        self.analyzer = analyzer or FatigueAnalyzer(self.config.fatigue)
        self.recommender = recommender or RestRecommender(self.config.rest)
        self.generator = generator or SuggestionGenerator(self.config.suggestions)
        self.ranker = ranker or LeaderboardRanker(self.config.leaderboard)

        self._lock = threading.RLock()
        self._snapshot = _Snapshot(insights={}, active={}, suppressed=frozenset())
        self._last_good: "OrderedDict[str, Any]" = OrderedDict()

    # ===== AGGREGATION =====

    def run_pass(
        self,
        now: datetime,
        sessions: Iterable[Any],
        goal: Optional[Goal] = None,
        score_events: Iterable[Any] = (),
        leaderboard: Optional[LeaderboardQuery] = None,
        achievements: Iterable[AchievementTrigger] = (),
        streak: Optional[StreakTrigger] = None,
    ) -> AggregationReport:
        """
        Run every upstream component and merge the results.

        Component failures never propagate: they are logged, reported in the
        returned AggregationReport, and the component's last known-good
        result is used instead when there is one.

        Args:
            now: Reference time for every component
            sessions: WorkoutSession records (or raw dicts)
            goal: Goal for workout suggestions; suggestions are skipped without one
            score_events: ScoreEvent records (or raw dicts)
            leaderboard: Leaderboard to rank the current user on
            achievements: Achievements unlocked since the last pass
            streak: Streak state; computed from sessions when omitted

        Returns:
            AggregationReport
        """
        now = ensure_utc(now)
        sessions = list(sessions)
        report = AggregationReport(ran_at=now)
        report.expired = self.expire(now)
        cfg = self.config.insights
        pending: List[signals.InsightSignal] = []

        assessment = self._isolated(
            "fatigue", report, lambda: self.analyzer.assess(coerce_sessions(sessions), now)
        )
        report.assessment = assessment
        if assessment is not None:
            pending.extend(signals.fatigue_signals(assessment, self.config.rest, cfg))
            self._retire("onboarding", now)
        elif report.outcomes["fatigue"] == Outcome.INSUFFICIENT_DATA:
            pending.extend(signals.onboarding_signals(cfg))

        if assessment is not None:
            rest = self._isolated("rest", report, lambda: self.recommender.recommend(assessment))
            report.rest = rest
            if rest is not None:
                pending.extend(signals.rest_signals(rest, cfg))
        else:
            report.outcomes["rest"] = Outcome.SKIPPED

        if goal is not None:
            suggestions = self._isolated(
                "suggestions",
                report,
                lambda: self.generator.generate(goal, coerce_sessions(sessions), now),
            )
            report.suggestions = suggestions or []
            total_weight = sum(self.generator.config.weights.model_dump().values())
            pending.extend(signals.suggestion_signals(report.suggestions, total_weight, cfg))
        else:
            report.outcomes["suggestions"] = Outcome.SKIPPED

        if leaderboard is not None:
            pending.extend(self._leaderboard_pass(leaderboard, score_events, now, report))
        else:
            report.outcomes["leaderboard"] = Outcome.SKIPPED

        achievement_signals = self._isolated(
            "achievements",
            report,
            lambda: signals.achievement_signals(
                [a if isinstance(a, AchievementTrigger) else AchievementTrigger(**a) for a in achievements],
                cfg,
            ),
            keep_last_good=False,
        )
        pending.extend(achievement_signals or [])

        milestone_signals = self._isolated(
            "milestones",
            report,
            lambda: self._milestone_signals(sessions, streak, now),
            keep_last_good=False,
        )
        pending.extend(milestone_signals or [])

        self._apply(pending, now, report)

        if report.errors:
            logger.warning(
                "Aggregation pass finished with %d component error(s): %s",
                len(report.errors),
                ", ".join(e.component for e in report.errors),
            )
        logger.debug(
            "Aggregation pass: %d created, %d updated, %d suppressed, %d expired",
            len(report.created),
            len(report.updated),
            len(report.suppressed),
            len(report.expired),
        )
        return report

    def _isolated(
        self,
        component: str,
        report: AggregationReport,
        fn: Callable[[], Any],
        keep_last_good: bool = True,
        cache_key: Optional[str] = None,
    ) -> Any:
        """Call one component, converting failures into report entries."""
        cache_key = cache_key or component
        try:
            result = fn()
        except errors.InsufficientDataError as e:
            logger.info("%s: insufficient data (%s)", component, e)
            report.outcomes[component] = Outcome.INSUFFICIENT_DATA
            self._last_good.pop(cache_key, None)
            return None
        except Exception as e:
            report.errors.append(ComponentError.from_exception(component, e))
            fallback = self._last_good.get(cache_key) if keep_last_good else None
            report.outcomes[component] = Outcome.FALLBACK if fallback is not None else Outcome.FAILED
            logger.warning(
                "%s failed (%s: %s); %s",
                component,
                type(e).__name__,
                e,
                "using last known-good result" if fallback is not None else "no fallback available",
            )
            return fallback

        report.outcomes[component] = Outcome.OK
        if keep_last_good:
            self._last_good[cache_key] = result
        return result

    def _leaderboard_pass(
        self,
        query: LeaderboardQuery,
        score_events: Iterable[Any],
        now: datetime,
        report: AggregationReport,
    ) -> List[signals.InsightSignal]:
        cache_key = f"leaderboard:{query.key}"
        previous: Optional[LeaderboardResult] = self._last_good.get(cache_key)
        score_events = list(score_events)

        result = self._isolated(
            "leaderboard",
            report,
            lambda: self.ranker.rank(
                coerce_score_events(score_events),
                query.leaderboard_type,
                query.timeframe,
                now,
                current_user_id=query.current_user_id,
                scope_id=query.scope_id,
                score_type=query.score_type,
            ),
            cache_key=cache_key,
        )
        report.leaderboard = result
        self._forget_stale_leaderboards(cache_key)
        if result is None:
            return []

        previous_rank = previous.current_user_rank if previous is not None else None
        return signals.leaderboard_signals(
            result, previous_rank, query.key, self.config.leaderboard, self.config.insights
        )

    def _forget_stale_leaderboards(self, cache_key: str) -> None:
        """Keep last results for the most recently queried leaderboards only."""
        if cache_key in self._last_good:
            self._last_good.move_to_end(cache_key)
        boards = [k for k in self._last_good if k.startswith("leaderboard:")]
        for stale in boards[: max(0, len(boards) - self.config.insights.tracked_leaderboards)]:
            del self._last_good[stale]

    def _milestone_signals(
        self, sessions: List[Any], streak: Optional[StreakTrigger], now: datetime
    ) -> List[signals.InsightSignal]:
        typed = coerce_sessions(sessions)
        if streak is None:
            streak = compute_streak(typed, now)
        workout_count = sum(1 for s in typed if s.date <= now)
        return signals.streak_signals(streak, self.config.insights) + signals.workout_count_signals(
            workout_count, self.config.insights
        )

    # ===== STATE TRANSITIONS =====

    def _apply(
        self, pending: List[signals.InsightSignal], now: datetime, report: AggregationReport
    ) -> None:
        with self._lock:
            current = self._snapshot
            insights = dict(current.insights)
            active = dict(current.active)

            for signal in pending:
                key = (signal.type, signal.origin)
                if key in current.suppressed:
                    report.suppressed.append(signal.origin)
                    continue

                expires_at = now + timedelta(hours=signal.ttl_hours) if signal.ttl_hours else None
                existing = insights.get(active.get(key, ""))
                if existing is not None and existing.is_visible(now):
                    insights[existing.id] = existing.model_copy(
                        update={
                            "title": signal.title,
                            "message": signal.message,
                            "priority": signal.priority,
                            "confidence": signal.confidence,
                            "expires_at": expires_at,
                            "updated_at": now,
                            "actionable": signal.action is not None,
                            "action": signal.action,
                        }
                    )
                    if existing.id not in report.created:
                        report.updated.append(existing.id)
                    continue

                insight = Insight(
                    id=str(uuid.uuid4()),
                    type=signal.type,
                    origin=signal.origin,
                    title=signal.title,
                    message=signal.message,
                    priority=signal.priority,
                    confidence=signal.confidence,
                    created_at=now,
                    updated_at=now,
                    expires_at=expires_at,
                    actionable=signal.action is not None,
                    action=signal.action,
                )
                insights[insight.id] = insight
                active[key] = insight.id
                report.created.append(insight.id)

            self._snapshot = _Snapshot(insights, active, current.suppressed)

    def _retire(self, origin: str, now: datetime) -> None:
        """Expire visible insights of one origin immediately."""
        with self._lock:
            current = self._snapshot
            insights = dict(current.insights)
            changed = False
            for insight in current.insights.values():
                if insight.origin == origin and insight.is_visible(now):
                    insights[insight.id] = insight.model_copy(
                        update={"expires_at": now, "updated_at": now}
                    )
                    changed = True
            if changed:
                self._snapshot = _Snapshot(insights, dict(current.active), current.suppressed)

    def dismiss(self, insight_id: str, now: datetime) -> Insight:
        """
        Dismiss an insight. Irreversible.

        The (type, origin) pair is suppressed so later passes never re-create
        it. Dismissing an already dismissed or expired insight leaves it as is.

        Raises:
            InsightNotFoundError: If no insight has this id
        """
        now = ensure_utc(now)
        with self._lock:
            current = self._snapshot
            insight = current.insights.get(insight_id)
            if insight is None:
                raise errors.InsightNotFoundError(insight_id)
            if insight.is_terminal(now):
                return insight

            dismissed = insight.model_copy(
                update={"dismissed": True, "dismissed_at": now, "updated_at": now}
            )
            key = (insight.type, insight.origin)
            insights = dict(current.insights)
            insights[insight_id] = dismissed
            active = {k: v for k, v in current.active.items() if k != key}
            self._snapshot = _Snapshot(insights, active, current.suppressed | {key})

        logger.debug("Dismissed insight %s (%s/%s)", insight_id, key[0].value, key[1])
        return dismissed

    def expire(self, now: datetime) -> List[str]:
        """
        Sweep insights whose expiry has passed.

        Expired records stay in history; only their (type, origin) slot is
        freed so a recurring trigger creates a new record.

        Returns:
            Ids of insights that expired since the last sweep
        """
        now = ensure_utc(now)
        with self._lock:
            current = self._snapshot
            expired = [
                insight_id
                for insight_id in current.active.values()
                if current.insights[insight_id].is_expired(now)
            ]
            if expired:
                gone = set(expired)
                active = {k: v for k, v in current.active.items() if v not in gone}
                self._snapshot = _Snapshot(current.insights, active, current.suppressed)
        return expired

    def restore(self, records: Iterable[Insight]) -> None:
        """
        Rebuild state from previously exported insight history.

        Dismissed records re-establish suppression of their (type, origin).
        Last known-good component results are discarded.
        """
        insights: Dict[str, Insight] = {}
        active: Dict[InsightKey, str] = {}
        suppressed = set()
        for record in sorted(records, key=lambda r: (r.created_at, r.id)):
            insights[record.id] = record
            key = (record.type, record.origin)
            if record.dismissed:
                suppressed.add(key)
                active.pop(key, None)
            else:
                active[key] = record.id
        with self._lock:
            self._snapshot = _Snapshot(insights, active, frozenset(suppressed))
            self._last_good.clear()

    # ===== QUERIES =====

    def visible(
        self,
        now: datetime,
        max_visible: Optional[int] = None,
        insight_type: Optional[InsightType] = None,
        priority: Optional[Priority] = None,
        actionable_only: bool = False,
    ) -> List[Insight]:
        """
        Visible insights, highest priority first, newest first within a priority.

        Args:
            now: Reference time for expiry
            max_visible: Cap on the number returned (default from config)
            insight_type: Only this type
            priority: Only this priority
            actionable_only: Only insights with an action

        Returns:
            Sorted list of visible insights

        Raises:
            ValidationError: If max_visible < 1
        """
        now = ensure_utc(now)
        if max_visible is None:
            max_visible = self.config.insights.max_visible
        if max_visible is not None and max_visible < 1:
            raise errors.ValidationError(f"max_visible must be at least 1, got {max_visible}")

        snapshot = self._snapshot
        result = [
            i
            for i in snapshot.insights.values()
            if i.is_visible(now)
            and (insight_type is None or i.type == insight_type)
            and (priority is None or i.priority == priority)
            and (not actionable_only or i.actionable)
        ]
        result.sort(key=lambda i: (-PRIORITY_RANK[i.priority], -i.created_at.timestamp(), i.id))
        return result[:max_visible] if max_visible is not None else result

    def get(self, insight_id: str) -> Insight:
        insight = self._snapshot.insights.get(insight_id)
        if insight is None:
            raise errors.InsightNotFoundError(insight_id)
        return insight

    def history(self) -> List[Insight]:
        """Every insight ever created, in creation order."""
        return list(self._snapshot.insights.values())

    def stats(self, now: datetime) -> Dict[str, Any]:
        now = ensure_utc(now)
        records = self.history()
        visible = [i for i in records if i.is_visible(now)]
        by_type: Dict[str, int] = {}
        by_priority: Dict[str, int] = {}
        for insight in visible:
            by_type[insight.type.value] = by_type.get(insight.type.value, 0) + 1
            by_priority[insight.priority.value] = by_priority.get(insight.priority.value, 0) + 1
        return {
            "total": len(records),
            "visible": len(visible),
            "dismissed": sum(1 for i in records if i.dismissed),
            "expired": sum(1 for i in records if not i.dismissed and i.is_expired(now)),
            "by_type": by_type,
            "by_priority": by_priority,
        }
