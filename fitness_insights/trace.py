"""
Insight audit trail export.

Insight records are never deleted by the engine; persistence collaborators
keep them for audit. This module packages insight history together with
aggregation pass summaries and exports it to JSON and Markdown for review.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from fitness_insights.schemas import Insight, ensure_utc


class PassError(BaseModel):
    """A component failure recorded during a pass."""

    component: str
    error_type: str
    message: str
    record_id: Optional[str] = None


class PassSummary(BaseModel):
    """Outcome of one aggregation pass."""

    ran_at: datetime
    outcomes: Dict[str, str] = Field(default_factory=dict)
    errors: List[PassError] = Field(default_factory=list)
    created: int = 0
    updated: int = 0
    suppressed: int = 0
    expired: int = 0


class InsightAudit(BaseModel):
    """Exportable audit of a user's insight stream."""

    user_id: str
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    insights: List[Insight] = Field(default_factory=list)
    passes: List[PassSummary] = Field(default_factory=list)


class InsightAuditTrail:
    """
    Builds and exports the insight audit trail.

    The audit shows:
    - Every insight created, with its lifecycle state
    - Which components ran, fell back or failed in each pass
    - The offending record for each failure
    """

    def __init__(self, user_id: str, exported_at: Optional[datetime] = None):
        """
        Initialize audit trail.

        Args:
            user_id: User the insight stream belongs to
            exported_at: Export timestamp (defaults to now)
        """
        self.audit = InsightAudit(user_id=user_id)
        if exported_at is not None:
            self.audit.exported_at = ensure_utc(exported_at)

    def add_insights(self, insights: List[Insight]) -> None:
        self.audit.insights.extend(insights)

    def add_pass(self, report) -> None:
        """
        Record an aggregation pass.

        Args:
            report: AggregationReport returned by InsightAggregator.run_pass
        """
        self.audit.passes.append(
            PassSummary(
                ran_at=report.ran_at,
                outcomes={name: outcome.value for name, outcome in report.outcomes.items()},
                errors=[
                    PassError(
                        component=e.component,
                        error_type=e.error_type,
                        message=e.message,
                        record_id=e.record_id,
                    )
                    for e in report.errors
                ],
                created=len(report.created),
                updated=len(report.updated),
                suppressed=len(report.suppressed),
                expired=len(report.expired),
            )
        )

    @classmethod
    def from_aggregator(cls, aggregator, user_id: str, reports=(), exported_at=None) -> "InsightAuditTrail":
        """Audit trail holding an aggregator's full insight history."""
        trail = cls(user_id, exported_at=exported_at)
        trail.add_insights(aggregator.history())
        for report in reports:
            trail.add_pass(report)
        return trail

    def export_to_json(self) -> dict:
        return self.audit.model_dump(mode="json")

    def _status(self, insight: Insight) -> str:
        if insight.dismissed:
            return "dismissed"
        if insight.is_expired(self.audit.exported_at):
            return "expired"
        return "visible"

    def export_to_markdown(self) -> str:
        """
        Export the audit to human-readable Markdown.

        Returns:
            Markdown-formatted audit report
        """
        lines = []
        lines.append("# Insight Audit")
        lines.append("")
        lines.append(f"**Exported:** {self.audit.exported_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")
        lines.append(f"**User:** `{self.audit.user_id}`")
        lines.append(f"**Insights:** {len(self.audit.insights)}")
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Insights")
        lines.append("")
        if not self.audit.insights:
            lines.append("*No insights recorded*")
        else:
            lines.append("| Created | Type | Priority | Status | Title | Origin |")
            lines.append("|---------|------|----------|--------|-------|--------|")
            for insight in self.audit.insights:
                lines.append(
                    f"| {insight.created_at.strftime('%Y-%m-%d %H:%M')} "
                    f"| {insight.type.value} | {insight.priority.value} "
                    f"| {self._status(insight)} | {insight.title} | `{insight.origin}` |"
                )
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Aggregation Passes")
        lines.append("")
        if not self.audit.passes:
            lines.append("*No passes recorded*")
            lines.append("")
        for i, summary in enumerate(self.audit.passes, 1):
            lines.append(f"### Pass {i}: {summary.ran_at.strftime('%Y-%m-%d %H:%M:%S')}")
            lines.append("")
            lines.append(
                f"- **Created:** {summary.created}, **Updated:** {summary.updated}, "
                f"**Suppressed:** {summary.suppressed}, **Expired:** {summary.expired}"
            )
            for component, outcome in summary.outcomes.items():
                lines.append(f"- `{component}`: {outcome}")
            if summary.errors:
                lines.append("")
                lines.append("**Errors:**")
                for error in summary.errors:
                    record = f" (record `{error.record_id}`)" if error.record_id else ""
                    lines.append(f"- `{error.component}` {error.error_type}: {error.message}{record}")
            lines.append("")

        return "\n".join(lines)

    def save_to_file(self, output_dir: Path, format: str = "json") -> Path:
        """
        Save the audit to a file.

        Args:
            output_dir: Directory to save the file in
            format: Output format ("json" or "markdown")

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp_str = self.audit.exported_at.strftime("%Y%m%d_%H%M%S")
        user_id = self.audit.user_id.replace(" ", "_")

        if format == "json":
            filepath = output_dir / f"insights_{user_id}_{timestamp_str}.json"
            with open(filepath, "w") as f:
                json.dump(self.export_to_json(), f, indent=2, default=str)
        elif format == "markdown":
            filepath = output_dir / f"insights_{user_id}_{timestamp_str}.md"
            with open(filepath, "w") as f:
                f.write(self.export_to_markdown())
        else:
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        return filepath


def load_audit_from_file(filepath: Path) -> InsightAudit:
    """
    Load an insight audit from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a valid audit
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Audit file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    try:
        return InsightAudit(**data)
    except PydanticValidationError as e:
        raise ValueError(f"Invalid audit file: {e}") from e
