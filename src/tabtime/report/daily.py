"""Daily report generation from a :class:`~tabtime.core.types.DailyBucket`.

Converts the stored per-category seconds into minutes and shares of the
day, sorted by time spent, for display and export.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from tabtime.core.types import DailyBucket


class CategoryUsage(BaseModel, frozen=True):
    """Time spent in one category on one day."""

    category: str
    minutes: float = Field(ge=0, description="Total minutes, rounded to 2 decimals.")
    visit_count: int = Field(ge=0)
    share: float = Field(ge=0, le=1, description="Fraction of the day's tracked time.")


class DailyReport(BaseModel, frozen=True):
    """Aggregated summary of one day of browsing."""

    date: str = Field(description="Calendar date (YYYY-MM-DD) this report covers.")
    total_minutes: float = Field(ge=0, description="Total tracked minutes.")
    visit_count: int = Field(ge=0, description="Total recorded visits.")
    usage: list[CategoryUsage] = Field(
        default_factory=list, description="Per-category usage, most time first."
    )

    @property
    def top_category(self) -> str | None:
        return self.usage[0].category if self.usage else None


def build_daily_report(bucket: DailyBucket) -> DailyReport:
    """Summarize *bucket* into a :class:`DailyReport`.

    Categories are ordered by time descending, ties broken by name.
    """
    total_seconds = bucket.total_seconds
    ordered = sorted(
        bucket.categories.items(),
        key=lambda item: (-item[1].total_seconds, item[0]),
    )
    usage = [
        CategoryUsage(
            category=name,
            minutes=round(totals.total_seconds / 60.0, 2),
            visit_count=totals.visit_count,
            share=round(totals.total_seconds / total_seconds, 4) if total_seconds > 0 else 0.0,
        )
        for name, totals in ordered
    ]
    return DailyReport(
        date=bucket.date,
        total_minutes=round(total_seconds / 60.0, 2),
        visit_count=bucket.visit_count,
        usage=usage,
    )


def format_minutes(minutes: float) -> str:
    """Render minutes as ``"1h 5m"`` or ``"42m"``."""
    hours = int(minutes // 60)
    mins = round(minutes % 60)
    if mins == 60:
        hours, mins = hours + 1, 0
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"
