#!/usr/bin/env python3
"""
Quick start script to demonstrate the training insight engine.

This script shows the complete workflow:
1. Load workout history
2. Assess fatigue and recovery
3. Decide whether a rest day is needed
4. Suggest the next workouts
5. Rank the weekly leaderboard
6. Run an insight pass, dismiss an insight, and save the audit
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from rich import box
from rich.console import Console
from rich.table import Table

from fitness_insights.fatigue import FatigueAnalyzer
from fitness_insights.insights import InsightAggregator, LeaderboardQuery
from fitness_insights.leaderboard import LeaderboardRanker, tier_for_rank
from fitness_insights.rest import RestRecommender
from fitness_insights.schemas import (
    AchievementTrigger,
    Goal,
    GoalType,
    LeaderboardType,
    Timeframe,
    coerce_score_events,
    coerce_sessions,
)
from fitness_insights.suggestions import SuggestionGenerator
from fitness_insights.trace import InsightAuditTrail

console = Console()

FIXTURES = Path("tests/fixtures")
NOW = datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc)


def print_header(title: str):
    """Print a formatted header."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))


def load(name: str, key: str):
    with open(FIXTURES / name) as f:
        return json.load(f)[key]


def main():
    """Run the complete demonstration workflow."""
    console.print("\n[bold magenta]🏋️  Training Insight Engine[/bold magenta]")
    console.print("[dim]Demonstration of complete workflow[/dim]\n")

    # ===== STEP 1: Load History =====
    print_header("Step 1: Load Workout History")

    sessions = coerce_sessions(load("sessions_history.json", "sessions"))
    console.print(f"✓ Loaded [green]{len(sessions)}[/green] sessions")
    console.print(f"  Most recent: {max(s.date for s in sessions):%Y-%m-%d %H:%M} UTC")

    # ===== STEP 2: Fatigue =====
    print_header("Step 2: Assess Fatigue")

    assessment = FatigueAnalyzer().assess(sessions, NOW)
    console.print(f"  Fatigue: [yellow]{assessment.fatigue_level:.0%}[/yellow]")
    console.print(f"  Recovery: [green]{assessment.recovery_score:.0%}[/green]")
    console.print(f"  Sessions in window: {assessment.sessions_in_window}")

    table = Table(title="Fatigue Indicators", box=box.ROUNDED)
    table.add_column("Indicator", style="cyan")
    table.add_column("Severity", style="yellow")
    table.add_column("Detail")
    for indicator in assessment.indicators:
        table.add_row(indicator.type.value, indicator.severity.value, indicator.description)
    console.print(table)

    # ===== STEP 3: Rest Day =====
    print_header("Step 3: Rest Day Decision")

    rest = RestRecommender().recommend(assessment)
    console.print(f"  [bold]{rest.title}[/bold] ({rest.priority.value} priority)")
    for line in rest.reasoning:
        console.print(f"  • {line}")
    console.print(f"  Estimated recovery: {rest.estimated_recovery_hours:.0f}h")

    # ===== STEP 4: Suggestions =====
    print_header("Step 4: Workout Suggestions")

    goal = Goal(type=GoalType.STRENGTH, target_duration_minutes=45)
    for i, suggestion in enumerate(SuggestionGenerator().generate(goal, sessions, NOW), 1):
        console.print(
            f"  {i}. [green]{suggestion.name}[/green] "
            f"({suggestion.estimated_duration} min, {suggestion.difficulty_level.value})"
        )
        console.print(f"     [dim]{suggestion.reasoning}[/dim]")

    # ===== STEP 5: Leaderboard =====
    print_header("Step 5: Weekly Leaderboard")

    events = coerce_score_events(load("score_events.json", "events"))
    board = LeaderboardRanker().rank(
        events, LeaderboardType.GLOBAL, Timeframe.WEEKLY, NOW, current_user_id="athlete_001"
    )
    for entry in board.entries:
        marker = " ←" if entry.is_current_user else ""
        console.print(f"  #{entry.rank} {entry.display_name}: {entry.score:g}{marker}")
    if board.current_user_rank is not None:
        tier = tier_for_rank(board.current_user_rank)
        console.print(f"  Tier: [magenta]{tier.name}[/magenta]")

    # ===== STEP 6: Insights =====
    print_header("Step 6: Insight Stream")

    aggregator = InsightAggregator()
    report = aggregator.run_pass(
        NOW,
        sessions,
        goal=goal,
        score_events=events,
        leaderboard=LeaderboardQuery(current_user_id="athlete_001"),
        achievements=[AchievementTrigger(**a) for a in load("achievements.json", "achievements")],
    )
    visible = aggregator.visible(NOW)
    for insight in visible:
        console.print(f"  [{insight.priority.value}] {insight.title}")

    dismissed = aggregator.dismiss(visible[0].id, NOW + timedelta(minutes=5))
    console.print(f"\n✓ Dismissed: [dim]{dismissed.title}[/dim]")

    trail = InsightAuditTrail.from_aggregator(aggregator, "athlete_001", reports=[report])
    audit_path = trail.save_to_file(Path("audits"))
    console.print(f"✓ Audit saved to: [cyan]{audit_path}[/cyan]")

    console.print("\n[bold green]✓ Demonstration complete![/bold green]\n")


if __name__ == "__main__":
    main()
