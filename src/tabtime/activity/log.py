"""Activity log: append visits, roll them into daily buckets, enforce retention.

One call to :meth:`ActivityLog.record` is one write transaction::

    read snapshot -> ActivityStore.append -> DailyAggregator.add
                  -> RetentionPruner.prune -> write snapshot

The three steps operate on working copies of the snapshot's collections;
nothing is persisted unless the whole transaction succeeds, so a failed
write can never leave a visit counted twice or half-aggregated.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable, Sequence

from tabtime.core.defaults import NON_TRACKABLE_SCHEMES
from tabtime.core.store import SnapshotTransactor
from tabtime.core.time import date_key, retention_cutoff, utc_date, utc_now
from tabtime.core.types import ActivityRecord, CategoryTotals, DailyBucket, Snapshot

logger = logging.getLogger(__name__)


def is_trackable(url: str | None) -> bool:
    """True unless *url* is empty or uses a browser-internal scheme."""
    if not url or not url.strip():
        return False
    return not url.strip().lower().startswith(NON_TRACKABLE_SCHEMES)


class ActivityStore:
    """Append-only list of visits in arrival order."""

    def __init__(self, records: Iterable[ActivityRecord] = ()) -> None:
        self._records: list[ActivityRecord] = list(records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[ActivityRecord, ...]:
        return tuple(self._records)

    def append(self, record: ActivityRecord) -> bool:
        """Append *record*; returns ``False`` (and stores nothing) if it is non-trackable."""
        if not is_trackable(record.url):
            logger.debug("Dropping non-trackable visit url=%s for tab %s", record.url, record.tab_id)
            return False
        self._records.append(record)
        return True


class DailyAggregator:
    """Per-date, per-category running totals keyed by UTC date."""

    def __init__(self, buckets: dict[str, DailyBucket] | None = None) -> None:
        self._buckets: dict[str, DailyBucket] = dict(buckets or {})

    @property
    def buckets(self) -> dict[str, DailyBucket]:
        return dict(self._buckets)

    def add(self, record: ActivityRecord) -> DailyBucket:
        """Fold *record* into its day bucket and return the updated bucket."""
        key = date_key(utc_date(record.start_time))
        bucket = self._buckets.get(key) or DailyBucket(date=key)
        totals = bucket.categories.get(record.category, CategoryTotals())
        categories = dict(bucket.categories)
        categories[record.category] = CategoryTotals(
            total_seconds=totals.total_seconds + record.duration_seconds,
            visit_count=totals.visit_count + 1,
        )
        updated = bucket.model_copy(update={"categories": categories})
        self._buckets[key] = updated
        return updated


class RetentionPruner:
    """Drops history dated before ``today - retention_days``.

    Data dated on the cutoff day itself, or later, is kept.
    """

    def __init__(self, retention_days: int) -> None:
        if retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {retention_days}")
        self.retention_days = retention_days

    def cutoff(self, today: date) -> date:
        return retention_cutoff(today, self.retention_days)

    def prune(
        self,
        activities: Sequence[ActivityRecord],
        daily_stats: dict[str, DailyBucket],
        today: date,
    ) -> tuple[list[ActivityRecord], dict[str, DailyBucket]]:
        """Return the activities and buckets that survive the retention window."""
        cutoff = self.cutoff(today)
        kept_activities = [a for a in activities if utc_date(a.start_time) >= cutoff]
        cutoff_key = date_key(cutoff)
        kept_stats = {k: b for k, b in daily_stats.items() if k >= cutoff_key}

        dropped = (len(activities) - len(kept_activities), len(daily_stats) - len(kept_stats))
        if any(dropped):
            logger.info(
                "Pruned %d activities and %d daily buckets older than %s",
                dropped[0],
                dropped[1],
                cutoff_key,
            )
        return kept_activities, kept_stats


class ActivityLog:
    """Transactional writer and read access for tracked activity.

    Args:
        transactor: Serialized access to the snapshot store.
        clock: Returns "now"; the UTC date of its result is "today" for
            retention purposes.
    """

    def __init__(
        self,
        transactor: SnapshotTransactor,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.transactor = transactor
        self._clock = clock

    def record(self, record: ActivityRecord) -> bool:
        """Append, aggregate and prune as one write.

        Returns:
            ``True`` if the record was stored, ``False`` if it was dropped
            as non-trackable (in which case nothing is written).

        Raises:
            PersistenceUnavailableError: If the snapshot could not be read
                or written.  No partial update is persisted.
        """
        accepted = False

        def mutate(snapshot: Snapshot) -> Snapshot | None:
            nonlocal accepted
            store = ActivityStore(snapshot.activities)
            if not store.append(record):
                return None
            aggregator = DailyAggregator(snapshot.daily_stats)
            aggregator.add(record)
            pruner = RetentionPruner(snapshot.settings.retention_days)
            activities, daily_stats = pruner.prune(
                store.records, aggregator.buckets, utc_date(self._clock()),
            )
            accepted = True
            return snapshot.model_copy(
                update={"activities": activities, "daily_stats": daily_stats}
            )

        self.transactor.update(mutate)
        if accepted:
            logger.debug(
                "Recorded %.1fs of %s for tab %s url=%s title=%r",
                record.duration_seconds,
                record.category,
                record.tab_id,
                record.url,
                record.title,
            )
        return accepted

    def daily_bucket(self, day: date | str) -> DailyBucket | None:
        """Bucket for *day* (a date or ``YYYY-MM-DD`` string), if any."""
        key = day if isinstance(day, str) else date_key(day)
        return self.transactor.load().daily_stats.get(key)

    def activities(self) -> list[ActivityRecord]:
        return list(self.transactor.load().activities)
