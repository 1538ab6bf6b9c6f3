"""Tests for the activity log: store, daily aggregation, retention, transactions."""

from __future__ import annotations

import datetime as dt

import pytest

from tabtime.activity.log import (
    ActivityLog,
    ActivityStore,
    DailyAggregator,
    RetentionPruner,
    is_trackable,
)
from tabtime.core.errors import PersistenceUnavailableError
from tabtime.core.store import MemorySnapshotStore, SnapshotTransactor
from tabtime.core.types import ActivityRecord, DailyBucket, Snapshot, UserSettings

UTC = dt.timezone.utc


def _record(
    url: str = "https://github.com/x",
    category: str = "Work",
    start: dt.datetime = dt.datetime(2025, 6, 15, 10, 0, tzinfo=UTC),
    duration: float = 60.0,
) -> ActivityRecord:
    return ActivityRecord(
        tab_id="1",
        url=url,
        title="Page",
        category=category,
        start_time=start,
        duration_seconds=duration,
    )


class FailingStore(MemorySnapshotStore):
    def __init__(self, snapshot: Snapshot | None = None, *, fail_read: bool = False) -> None:
        super().__init__(snapshot)
        self.fail_read = fail_read

    def read(self) -> Snapshot | None:
        if self.fail_read:
            raise PersistenceUnavailableError("read failed")
        return super().read()

    def write(self, snapshot: Snapshot) -> None:
        raise PersistenceUnavailableError("disk full")


class TestIsTrackable:
    @pytest.mark.parametrize(
        "url",
        ["", "   ", None, "chrome://settings", "chrome-extension://abc/popup.html",
         "about:blank", "edge://newtab", "CHROME://history"],
    )
    def test_non_trackable(self, url) -> None:
        assert not is_trackable(url)

    @pytest.mark.parametrize("url", ["https://github.com", "http://localhost:8000", "file:///tmp/a.html"])
    def test_trackable(self, url) -> None:
        assert is_trackable(url)


class TestActivityStore:
    def test_appends_in_arrival_order(self) -> None:
        store = ActivityStore()
        first, second = _record(url="https://a.com"), _record(url="https://b.com")
        assert store.append(first)
        assert store.append(second)
        assert store.records == (first, second)

    def test_internal_scheme_dropped(self) -> None:
        store = ActivityStore()
        assert store.append(_record(url="chrome://settings")) is False
        assert len(store) == 0

    def test_does_not_mutate_source_list(self) -> None:
        source = [_record()]
        store = ActivityStore(source)
        store.append(_record(url="https://b.com"))
        assert len(source) == 1


class TestDailyAggregator:
    def test_sums_duration_and_counts_visits(self) -> None:
        agg = DailyAggregator()
        durations = [30.0, 45.5, 120.0]
        for d in durations:
            agg.add(_record(duration=d))
        bucket = agg.buckets["2025-06-15"]
        assert bucket.categories["Work"].total_seconds == pytest.approx(sum(durations))
        assert bucket.categories["Work"].visit_count == len(durations)

    def test_categories_tracked_separately(self) -> None:
        agg = DailyAggregator()
        agg.add(_record(category="Work", duration=10))
        agg.add(_record(category="Social", duration=20))
        bucket = agg.buckets["2025-06-15"]
        assert bucket.categories["Work"].total_seconds == 10
        assert bucket.categories["Social"].total_seconds == 20
        assert bucket.total_seconds == 30
        assert bucket.visit_count == 2

    def test_bucket_keyed_by_utc_date_of_start(self) -> None:
        agg = DailyAggregator()
        late_local = dt.datetime(2025, 6, 15, 23, 30, tzinfo=dt.timezone(dt.timedelta(hours=-5)))
        agg.add(_record(start=late_local))
        assert list(agg.buckets) == ["2025-06-16"]

    def test_existing_buckets_untouched(self) -> None:
        existing = DailyBucket(date="2025-06-14")
        agg = DailyAggregator({"2025-06-14": existing})
        agg.add(_record())
        assert agg.buckets["2025-06-14"] is existing
        assert set(agg.buckets) == {"2025-06-14", "2025-06-15"}


class TestRetentionPruner:
    def test_cutoff(self) -> None:
        assert RetentionPruner(7).cutoff(dt.date(2025, 6, 15)) == dt.date(2025, 6, 8)

    def test_keeps_cutoff_day_and_later(self) -> None:
        today = dt.date(2025, 6, 15)
        records = [
            _record(start=dt.datetime(2025, 6, 13, 23, 59, tzinfo=UTC)),
            _record(start=dt.datetime(2025, 6, 14, 0, 0, tzinfo=UTC)),
            _record(start=dt.datetime(2025, 6, 15, 9, 0, tzinfo=UTC)),
        ]
        buckets = {d: DailyBucket(date=d) for d in ("2025-06-13", "2025-06-14", "2025-06-15")}
        kept, kept_buckets = RetentionPruner(1).prune(records, buckets, today)
        assert kept == records[1:]
        assert set(kept_buckets) == {"2025-06-14", "2025-06-15"}

    def test_negative_retention_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetentionPruner(-1)


class TestActivityLog:
    @pytest.fixture()
    def log(self, store: MemorySnapshotStore, dt_clock) -> ActivityLog:
        return ActivityLog(SnapshotTransactor(store), clock=dt_clock)

    def test_record_persists_activity_and_bucket(self, log: ActivityLog, store) -> None:
        assert log.record(_record(duration=90))
        snapshot = store.read()
        assert len(snapshot.activities) == 1
        assert snapshot.daily_stats["2025-06-15"].categories["Work"].visit_count == 1
        assert log.daily_bucket(dt.date(2025, 6, 15)).categories["Work"].total_seconds == 90

    def test_daily_bucket_accepts_string_key(self, log: ActivityLog) -> None:
        log.record(_record())
        assert log.daily_bucket("2025-06-15") is not None
        assert log.daily_bucket("2025-06-14") is None

    def test_aggregation_matches_activity_sum(self, log: ActivityLog) -> None:
        durations = [5.0, 15.0, 25.0, 35.0]
        for d in durations:
            log.record(_record(duration=d))
        totals = log.daily_bucket("2025-06-15").categories["Work"]
        assert totals.total_seconds == pytest.approx(sum(durations))
        assert totals.visit_count == len(log.activities())

    def test_non_trackable_leaves_store_unchanged(self, log: ActivityLog, store) -> None:
        log.record(_record())
        before = store.read()
        assert log.record(_record(url="chrome://settings")) is False
        assert store.read() is before

    def test_non_trackable_on_empty_store_writes_nothing(self, log: ActivityLog, store) -> None:
        assert log.record(_record(url="")) is False
        assert store.read() is None

    def test_retention_prunes_on_next_write(self, store, dt_clock) -> None:
        now = dt_clock()
        old = _record(start=now - dt.timedelta(days=3))
        store.write(
            Snapshot(
                activities=[old],
                daily_stats={
                    "2025-06-12": DailyBucket(date="2025-06-12"),
                },
                settings=UserSettings(retention_days=1),
            )
        )
        log = ActivityLog(SnapshotTransactor(store), clock=dt_clock)
        today = _record(start=now)
        log.record(today)

        snapshot = store.read()
        assert snapshot.activities == [today]
        assert set(snapshot.daily_stats) == {"2025-06-15"}

    def test_data_inside_window_unaffected(self, store, dt_clock) -> None:
        now = dt_clock()
        store.write(Snapshot(settings=UserSettings(retention_days=3)))
        log = ActivityLog(SnapshotTransactor(store), clock=dt_clock)
        within = [_record(start=now - dt.timedelta(days=n), duration=10) for n in (3, 2, 1)]
        for rec in within:
            log.record(rec)
        log.record(_record(start=now))
        snapshot = store.read()
        assert len(snapshot.activities) == 4
        assert len(snapshot.daily_stats) == 4

    def test_write_failure_propagates_without_partial_update(self, dt_clock) -> None:
        initial = Snapshot(activities=[_record()])
        store = FailingStore(initial)
        log = ActivityLog(SnapshotTransactor(store), clock=dt_clock)
        with pytest.raises(PersistenceUnavailableError):
            log.record(_record(url="https://b.com"))
        assert store.read() is initial
        assert store.read().daily_stats == {}

    def test_read_failure_propagates(self, dt_clock) -> None:
        log = ActivityLog(SnapshotTransactor(FailingStore(fail_read=True)), clock=dt_clock)
        with pytest.raises(PersistenceUnavailableError):
            log.record(_record())
