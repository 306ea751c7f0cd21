"""
Command-line interface for the insight engine.

Provides commands for:
- Fatigue assessment and rest-day recommendation
- Workout suggestions for a goal
- Leaderboard standings
- A full insight aggregation pass with optional audit export

Inputs are JSON files of sessions, score events and achievements.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from fitness_insights import errors
from fitness_insights.config import EngineConfig, get_settings
from fitness_insights.fatigue import FatigueAnalyzer
from fitness_insights.insights import InsightAggregator, LeaderboardQuery
from fitness_insights.leaderboard import LeaderboardRanker, tier_for_rank
from fitness_insights.rest import RestRecommender
from fitness_insights.schemas import (
    AchievementTrigger,
    Difficulty,
    FatigueAssessment,
    Goal,
    GoalType,
    LeaderboardResult,
    LeaderboardType,
    Priority,
    RestRecommendation,
    ScoreType,
    Severity,
    Timeframe,
    WorkoutSuggestion,
    coerce_score_events,
    coerce_sessions,
    ensure_utc,
)
from fitness_insights.suggestions import SuggestionGenerator
from fitness_insights.trace import InsightAuditTrail

app = typer.Typer(
    help="Personalized training insights - fatigue, rest days, workout suggestions and leaderboards"
)
console = Console()

PRIORITY_STYLES = {Priority.HIGH: "red", Priority.MEDIUM: "yellow", Priority.LOW: "green"}
SEVERITY_STYLES = {Severity.HIGH: "red", Severity.MEDIUM: "yellow", Severity.LOW: "cyan"}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to engine configuration JSON (overrides FITNESS_INSIGHTS_CONFIG_PATH)",
        exists=True,
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (overrides FITNESS_INSIGHTS_LOG_LEVEL)",
    ),
):
    """Load settings and engine configuration."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level)
    try:
        ctx.obj = EngineConfig.from_file(config) if config else settings.load_config()
    except (OSError, ValueError) as e:
        console.print(f"[red]✗ Failed to load configuration: {e}[/red]")
        raise typer.Exit(1)


# ===== INPUT HELPERS =====


def _parse_now(now: Optional[str]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    try:
        return ensure_utc(datetime.fromisoformat(now))
    except ValueError:
        console.print(f"[red]✗ Invalid --now timestamp: {now}[/red]")
        raise typer.Exit(1)


def _load_records(path: Path, key: str) -> List[Any]:
    """Records from a JSON file holding a list or {key: [...]}."""
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Failed to read {path}: {e}[/red]")
        raise typer.Exit(1)
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        console.print(f"[red]✗ {path} must contain a list of {key}[/red]")
        raise typer.Exit(1)
    return data


def _load_sessions(path: Path):
    try:
        return coerce_sessions(_load_records(path, "sessions"))
    except errors.ValidationError as e:
        console.print(f"[red]✗ Invalid session: {e}[/red]")
        raise typer.Exit(1)


def _fail(e: errors.InsightEngineError) -> None:
    if isinstance(e, errors.InsufficientDataError):
        console.print(f"[yellow]Not enough data yet: {e.message}[/yellow]")
        console.print("[dim]Log a few workouts to unlock this view.[/dim]")
        raise typer.Exit(0)
    console.print(f"[red]✗ {e}[/red]")
    raise typer.Exit(1)


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_assessment(assessment: FatigueAssessment) -> None:
    fatigue_color = "red" if assessment.fatigue_level > 0.7 else "yellow" if assessment.fatigue_level > 0.4 else "green"
    recovery_color = "green" if assessment.recovery_score >= 0.7 else "yellow" if assessment.recovery_score >= 0.3 else "red"

    lines = [
        f"[bold]Fatigue Level:[/bold] [{fatigue_color}]{assessment.fatigue_level:.0%}[/{fatigue_color}]",
        f"[bold]Recovery Score:[/bold] [{recovery_color}]{assessment.recovery_score:.0%}[/{recovery_color}]",
        f"[dim]Acute load {assessment.acute_load:.0f} vs baseline {assessment.baseline_load:.0f} "
        f"| {assessment.sessions_in_window} sessions, "
        f"{assessment.weekly_duration_minutes:.0f} min this week[/dim]",
    ]
    console.print(Panel("\n".join(lines), title="Fatigue Assessment", border_style="cyan"))

    if assessment.indicators:
        table = Table(show_header=True, header_style="bold cyan", box=box.SIMPLE)
        table.add_column("Indicator", style="cyan")
        table.add_column("Severity", justify="center")
        table.add_column("Details")
        for indicator in assessment.indicators:
            style = SEVERITY_STYLES[indicator.severity]
            table.add_row(
                indicator.type.value.replace("_", " "),
                f"[{style}]{indicator.severity.value.upper()}[/{style}]",
                indicator.description,
            )
        console.print(table)


def _display_rest(recommendation: RestRecommendation) -> None:
    style = PRIORITY_STYLES[recommendation.priority]
    body = [f"[bold]Priority:[/bold] [{style}]{recommendation.priority.value.upper()}[/{style}]"]
    body.append(
        f"[bold]Estimated recovery:[/bold] {recommendation.estimated_recovery_hours:.0f} hours"
    )
    body.append("")
    body.extend(f"• {line}" for line in recommendation.reasoning)
    console.print(Panel("\n".join(body), title=recommendation.title, border_style=style))

    for group in recommendation.suggested_activities:
        duration = f" ({group.duration_minutes} min)" if group.duration_minutes else ""
        console.print(f"\n[bold]{group.type.value.replace('_', ' ').title()}{duration}[/bold]")
        for activity in group.activities:
            console.print(f"  • {activity}")

    guidance = recommendation.next_workout_guidance
    console.print("\n[bold]Next workout:[/bold]")
    console.print(f"  Intensity: [cyan]{guidance.recommended_intensity.value}[/cyan]")
    if guidance.focus_areas:
        console.print(f"  Focus on: {', '.join(guidance.focus_areas)}")
    if guidance.avoid_muscle_groups:
        console.print(f"  Avoid: [yellow]{', '.join(guidance.avoid_muscle_groups)}[/yellow]")


def _display_suggestions(suggestions: List[WorkoutSuggestion]) -> None:
    for rank, suggestion in enumerate(suggestions, 1):
        table = Table(show_header=True, header_style="bold cyan", box=box.SIMPLE)
        table.add_column("Exercise", style="cyan")
        table.add_column("Sets", justify="right")
        table.add_column("Reps", justify="right")
        table.add_column("Rest", justify="right")
        for exercise in suggestion.exercises:
            low, high = exercise.reps_range
            table.add_row(
                exercise.exercise_id,
                str(exercise.sets),
                f"{low}-{high}" if low != high else str(low),
                f"{exercise.rest_seconds}s",
            )
        console.print(
            f"\n[bold]{rank}. {suggestion.name}[/bold] "
            f"[dim]({suggestion.difficulty_level.value}, ~{suggestion.estimated_duration} min, "
            f"~{suggestion.calories_estimate} kcal)[/dim]"
        )
        console.print(f"   {suggestion.reasoning}")
        console.print(table)


def _display_leaderboard(result: LeaderboardResult) -> None:
    title = (
        f"{result.timeframe.value.replace('_', ' ').title()} "
        f"{result.leaderboard_type.value.title()} Leaderboard"
    )
    table = Table(title=title, show_header=True, header_style="bold cyan", box=box.ROUNDED)
    table.add_column("Rank", justify="right")
    table.add_column("User")
    table.add_column("Score", justify="right")
    table.add_column("Achieved")
    table.add_column("Tier")
    for entry in result.entries:
        style = "bold green" if entry.is_current_user else ""
        table.add_row(
            str(entry.rank),
            entry.display_name,
            f"{entry.score:g}",
            entry.achieved_at.strftime("%Y-%m-%d %H:%M"),
            tier_for_rank(entry.rank).name,
            style=style,
        )
    console.print(table)
    if result.current_user_rank is not None:
        console.print(
            f"Your rank: [bold green]#{result.current_user_rank}[/bold green] "
            f"of {result.total_participants} ({tier_for_rank(result.current_user_rank).name})"
        )


# ===== COMMANDS =====


@app.command()
def fatigue(
    ctx: typer.Context,
    history: Path = typer.Option(..., "--history", "-H", help="Sessions JSON file", exists=True),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601)"),
):
    """
    Assess fatigue and recovery from workout history.
    """
    config: EngineConfig = ctx.obj
    sessions = _load_sessions(history)
    try:
        assessment = FatigueAnalyzer(config.fatigue).assess(sessions, _parse_now(now))
    except errors.InsightEngineError as e:
        _fail(e)
    _display_assessment(assessment)


@app.command()
def rest(
    ctx: typer.Context,
    history: Path = typer.Option(..., "--history", "-H", help="Sessions JSON file", exists=True),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601)"),
):
    """
    Decide whether to take a rest day and what to do instead.
    """
    config: EngineConfig = ctx.obj
    sessions = _load_sessions(history)
    try:
        assessment = FatigueAnalyzer(config.fatigue).assess(sessions, _parse_now(now))
    except errors.InsightEngineError as e:
        _fail(e)
    _display_rest(RestRecommender(config.rest).recommend(assessment))


@app.command()
def suggest(
    ctx: typer.Context,
    history: Path = typer.Option(..., "--history", "-H", help="Sessions JSON file", exists=True),
    goal: GoalType = typer.Option(GoalType.GENERAL_FITNESS, "--goal", "-g", help="Training goal"),
    duration: int = typer.Option(45, "--duration", "-d", help="Target duration in minutes"),
    difficulty: Difficulty = typer.Option(
        Difficulty.INTERMEDIATE, "--difficulty", help="Preferred difficulty"
    ),
    count: int = typer.Option(3, "--count", "-n", help="Number of suggestions"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601)"),
):
    """
    Suggest workouts for a goal, balanced against recent training.
    """
    config: EngineConfig = ctx.obj
    sessions = _load_sessions(history)
    try:
        user_goal = Goal(type=goal, target_duration_minutes=duration, difficulty_preference=difficulty)
    except ValueError as e:
        console.print(f"[red]✗ Invalid goal: {e}[/red]")
        raise typer.Exit(1)
    try:
        suggestions = SuggestionGenerator(config.suggestions).generate(
            user_goal, sessions, _parse_now(now), count=count
        )
    except errors.InsightEngineError as e:
        _fail(e)
    _display_suggestions(suggestions)


@app.command()
def leaderboard(
    ctx: typer.Context,
    events: Path = typer.Option(..., "--events", "-e", help="Score events JSON file", exists=True),
    board_type: LeaderboardType = typer.Option(LeaderboardType.GLOBAL, "--type", "-t"),
    timeframe: Timeframe = typer.Option(Timeframe.WEEKLY, "--timeframe"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    scope: Optional[str] = typer.Option(None, "--scope", help="Challenge id or category"),
    score_type: Optional[ScoreType] = typer.Option(None, "--score-type"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601)"),
):
    """
    Show ranked leaderboard standings.
    """
    config: EngineConfig = ctx.obj
    try:
        result = LeaderboardRanker(config.leaderboard).rank(
            coerce_score_events(_load_records(events, "events")),
            board_type,
            timeframe,
            _parse_now(now),
            current_user_id=user,
            scope_id=scope,
            score_type=score_type,
            limit=limit,
        )
    except errors.InsightEngineError as e:
        _fail(e)
    _display_leaderboard(result)


@app.command()
def insights(
    ctx: typer.Context,
    history: Path = typer.Option(..., "--history", "-H", help="Sessions JSON file", exists=True),
    goal: Optional[GoalType] = typer.Option(None, "--goal", "-g", help="Training goal"),
    duration: int = typer.Option(45, "--duration", "-d"),
    events: Optional[Path] = typer.Option(None, "--events", "-e", exists=True),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    achievements: Optional[Path] = typer.Option(None, "--achievements", exists=True),
    max_visible: Optional[int] = typer.Option(None, "--max", help="Maximum insights shown"),
    audit_dir: Optional[Path] = typer.Option(None, "--audit-dir", help="Save insight audit here"),
    audit_format: str = typer.Option("json", "--audit-format", help="json or markdown"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601)"),
):
    """
    Run a full aggregation pass and show the visible insights.
    """
    config: EngineConfig = ctx.obj
    reference = _parse_now(now)
    aggregator = InsightAggregator(config)

    query = None
    score_events: List[Any] = []
    if events is not None:
        if not user:
            console.print("[red]✗ --user is required with --events[/red]")
            raise typer.Exit(1)
        score_events = _load_records(events, "events")
        query = LeaderboardQuery(current_user_id=user)

    triggers = []
    if achievements is not None:
        triggers = [AchievementTrigger(**a) for a in _load_records(achievements, "achievements")]

    report = aggregator.run_pass(
        reference,
        _load_records(history, "sessions"),
        goal=Goal(type=goal, target_duration_minutes=duration) if goal else None,
        score_events=score_events,
        leaderboard=query,
        achievements=triggers,
    )
    for error in report.errors:
        record = f" (record {error.record_id})" if error.record_id else ""
        console.print(f"[yellow]⚠ {error.component}: {error.message}{record}[/yellow]")

    try:
        visible = aggregator.visible(reference, max_visible=max_visible)
    except errors.InsightEngineError as e:
        _fail(e)

    if not visible:
        console.print("[dim]No insights right now.[/dim]")
    for insight in visible:
        style = PRIORITY_STYLES[insight.priority]
        footer = f"\n[dim]→ {insight.action.label}[/dim]" if insight.action else ""
        console.print(
            Panel(
                f"{insight.message}{footer}",
                title=f"[{style}]{insight.type.value.upper()}[/{style}] {insight.title}",
                border_style=style,
            )
        )

    if audit_dir is not None:
        trail = InsightAuditTrail.from_aggregator(
            aggregator, user or "local", reports=[report], exported_at=reference
        )
        try:
            path = trail.save_to_file(audit_dir, format=audit_format)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(1)
        console.print(f"\n✓ Insight audit saved: [cyan]{path}[/cyan]")


if __name__ == "__main__":
    app()
