"""Core data contracts: activity records, daily buckets, settings, snapshots."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from tabtime.core.defaults import (
    DEFAULT_CATEGORIES,
    DEFAULT_RETENTION_DAYS,
    SNAPSHOT_VERSION,
)
from tabtime.core.time import to_utc


class ActivityRecord(BaseModel, frozen=True):
    """One finished visit to a tab.

    The category is assigned once, at record time, and is never
    recomputed when rules or overrides change later.
    """

    tab_id: str = Field(description="Browser tab identifier.")
    url: str = Field(description="Visited URL.")
    title: str = Field(default="", description="Page title at the time of the visit.")
    category: str = Field(min_length=1, description="Category resolved for the URL.")
    start_time: datetime = Field(description="Visit start (UTC).")
    duration_seconds: float = Field(ge=0.0, description="Visit length in seconds.")

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, value: datetime) -> datetime:
        return to_utc(value)


class CategoryTotals(BaseModel, frozen=True):
    """Accumulated time and visit count for one category on one day."""

    total_seconds: float = Field(default=0.0, ge=0.0)
    visit_count: int = Field(default=0, ge=0)


class DailyBucket(BaseModel, frozen=True):
    """Per-category totals for a single UTC calendar date."""

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$", description="UTC date (YYYY-MM-DD).")
    categories: dict[str, CategoryTotals] = Field(default_factory=dict)

    @property
    def total_seconds(self) -> float:
        return sum(t.total_seconds for t in self.categories.values())

    @property
    def visit_count(self) -> int:
        return sum(t.visit_count for t in self.categories.values())


class UserSettings(BaseModel, frozen=True):
    """User-editable settings persisted alongside activity data.

    ``overrides`` maps an exact domain to a category and always wins
    over automatic classification.
    """

    categories: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    overrides: dict[str, str] = Field(default_factory=dict)
    retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=0)


class Snapshot(BaseModel, frozen=True):
    """Full persisted state: the unit of every read-modify-write."""

    version: str = SNAPSHOT_VERSION
    activities: list[ActivityRecord] = Field(default_factory=list)
    daily_stats: dict[str, DailyBucket] = Field(default_factory=dict)
    settings: UserSettings = Field(default_factory=UserSettings)

    @model_validator(mode="after")
    def _check_bucket_keys(self) -> Snapshot:
        for key, bucket in self.daily_stats.items():
            if key != bucket.date:
                raise ValueError(
                    f"Daily stats key {key!r} does not match bucket date {bucket.date!r}"
                )
        return self
