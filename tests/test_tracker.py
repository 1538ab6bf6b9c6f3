"""Tests for TabTracker event handling and the composition root.

Covers the end-to-end scenarios: rule classification with cache reuse,
override precedence over a stale cache entry, dropping internal URLs,
and retention on write.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from tabtime.classify.cache import ClassificationCache
from tabtime.classify.rules import CategoryRuleSet, CategoryRulesDocument, save_category_rules
from tabtime.core.errors import InvalidPatternError
from tabtime.core.store import JsonSnapshotStore, MemorySnapshotStore
from tabtime.core.types import ActivityRecord, Snapshot, UserSettings
from tabtime.tracker import TabTracker, build_tracker


class TestVisitLifecycle:
    def test_first_activation_records_nothing(self, tracker: TabTracker, store) -> None:
        assert tracker.tab_activated(1, "https://github.com/x", "Repo") is None
        assert tracker.active is not None
        assert store.read().activities == []

    def test_switch_records_previous_visit(self, tracker: TabTracker, dt_clock) -> None:
        tracker.tab_activated(1, "https://github.com/x", "Repo")
        dt_clock.advance(seconds=90)
        recorded = tracker.tab_activated(2, "https://www.reddit.com/r/python", "Reddit")

        assert recorded is not None
        assert recorded.tab_id == "1"
        assert recorded.category == "Work"
        assert recorded.duration_seconds == 90
        assert tracker.active.tab_id == "2"

    def test_navigation_completed_ends_visit(self, tracker: TabTracker, dt_clock) -> None:
        tracker.tab_activated(1, "https://github.com/x", "Repo")
        dt_clock.advance(seconds=30)
        recorded = tracker.navigation_completed(1, "https://www.youtube.com/watch", "Video")
        assert recorded.category == "Work"
        assert tracker.active.url == "https://www.youtube.com/watch"

    def test_focus_loss_records_and_clears(self, tracker: TabTracker, dt_clock) -> None:
        tracker.tab_activated(1, "https://github.com/x", "Repo")
        dt_clock.advance(seconds=45)
        recorded = tracker.window_focus_changed(None)
        assert recorded.duration_seconds == 45
        assert tracker.active is None

    def test_focus_gain_starts_visit(self, tracker: TabTracker) -> None:
        assert tracker.window_focus_changed(3, tab_id=9, url="https://github.com", title="GH") is None
        assert tracker.active.tab_id == "9"

    def test_tick_records_and_restarts(self, tracker: TabTracker, dt_clock) -> None:
        start = dt_clock()
        tracker.tab_activated(1, "https://github.com/x", "Repo")
        dt_clock.advance(seconds=60)
        first = tracker.tick()
        dt_clock.advance(seconds=60)
        second = tracker.tick()

        assert first.start_time == start
        assert second.start_time == start + dt.timedelta(seconds=60)
        assert first.duration_seconds == second.duration_seconds == 60
        bucket = tracker.daily_bucket(start.date())
        assert bucket.categories["Work"].visit_count == 2
        assert bucket.categories["Work"].total_seconds == 120

    def test_tick_without_active_tab(self, tracker: TabTracker) -> None:
        assert tracker.tick() is None

    def test_internal_page_not_tracked(self, tracker: TabTracker, dt_clock, store) -> None:
        tracker.tab_activated(1, "chrome://settings", "Settings")
        assert tracker.active is None
        dt_clock.advance(seconds=30)
        tracker.tab_activated(2, "https://github.com", "GH")
        assert store.read().activities == []

    def test_explicit_timestamps(self, tracker: TabTracker) -> None:
        t0 = dt.datetime(2025, 6, 15, 8, 0, tzinfo=dt.timezone.utc)
        tracker.tab_activated(1, "https://github.com", "GH", timestamp=t0)
        recorded = tracker.tab_activated(
            2, "https://example.org", "Ex", timestamp=t0 + dt.timedelta(minutes=5),
        )
        assert recorded.start_time == t0
        assert recorded.duration_seconds == 300

    def test_clock_going_backwards_clamps_duration(self, tracker: TabTracker) -> None:
        t0 = dt.datetime(2025, 6, 15, 8, 0, tzinfo=dt.timezone.utc)
        tracker.tab_activated(1, "https://github.com", "GH", timestamp=t0)
        recorded = tracker.tick(timestamp=t0 - dt.timedelta(seconds=5))
        assert recorded.duration_seconds == 0


class TestScenarios:
    def test_rule_then_cache_then_override(self, store, dt_clock, clock) -> None:
        cache = ClassificationCache(clock=clock)
        tracker = build_tracker(store=store, clock=dt_clock, cache=cache)
        tracker.classifier.rules = CategoryRuleSet({"Work": [r"github\.com$"]})

        assert tracker.categorize("https://github.com/x") == "Work"
        assert cache.lookup("github.com") == "Work"
        assert tracker.categorize("https://github.com/x") == "Work"

        tracker.settings.add_category("Personal")
        tracker.settings.set_override("github.com", "Personal")
        assert tracker.categorize("https://github.com/x") == "Personal"

    def test_override_wins_even_if_cache_not_cleared(self, store, dt_clock, clock) -> None:
        store.write(Snapshot(settings=UserSettings(overrides={"github.com": "Personal"})))
        tracker = build_tracker(store=store, clock=dt_clock, cache=ClassificationCache(clock=clock))
        tracker.classifier.cache.insert("github.com", "Work")
        assert tracker.categorize("https://github.com/x") == "Personal"

    def test_override_change_clears_cache(self, tracker: TabTracker) -> None:
        tracker.categorize("https://github.com")
        assert len(tracker.classifier.cache) == 1
        tracker.settings.set_override("example.org", "Work")
        assert len(tracker.classifier.cache) == 0

    def test_recorded_category_not_recomputed(self, tracker: TabTracker, dt_clock, store) -> None:
        tracker.tab_activated(1, "https://github.com", "GH")
        dt_clock.advance(seconds=10)
        tracker.window_focus_changed(None)
        tracker.settings.set_override("github.com", "Social")
        assert store.read().activities[0].category == "Work"

    def test_retention_one_day(self, store, dt_clock, clock) -> None:
        now = dt_clock()
        old = ActivityRecord(
            tab_id="1",
            url="https://github.com",
            category="Work",
            start_time=now - dt.timedelta(days=3),
            duration_seconds=60,
        )
        store.write(Snapshot(activities=[old], settings=UserSettings(retention_days=1)))
        tracker = build_tracker(store=store, clock=dt_clock, cache=ClassificationCache(clock=clock))

        tracker.tab_activated(1, "https://github.com", "GH")
        dt_clock.advance(seconds=60)
        tracker.tick()

        activities = store.read().activities
        assert old not in activities
        assert len(activities) == 1
        assert activities[0].start_time.date() == now.date()


class TestBuildTracker:
    def test_json_store_created_in_data_dir(self, tmp_path: Path) -> None:
        tracker = build_tracker(tmp_path)
        assert (tmp_path / "snapshot.json").exists()
        assert tracker.categories == ["Work", "Social", "Entertainment", "Shopping", "News", "Education", "Other"]
        assert isinstance(tracker.activity_log.transactor.store, JsonSnapshotStore)

    def test_builtin_categories_are_configured(self, tracker: TabTracker) -> None:
        assert tracker.categorize("https://www.cnn.com/world") == "News"
        assert "News" in tracker.categories
        tracker.settings.set_override("cnn.com", "Education")
        assert tracker.categorize("https://cnn.com") == "Education"

    def test_custom_rules_file(self, tmp_path: Path) -> None:
        doc = CategoryRulesDocument.model_validate({"categories": {"Study": [r"\.edu$"]}})
        path = save_category_rules(doc, tmp_path / "rules.yaml")
        tracker = build_tracker(store=MemorySnapshotStore(), rules_path=path)
        assert tracker.classifier.categories == ["Study"]
        assert tracker.categorize("https://cs.stanford.edu") == "Study"

    def test_invalid_rules_fail_fast(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("categories:\n  Work: ['(']\n")
        with pytest.raises(InvalidPatternError):
            build_tracker(store=MemorySnapshotStore(), rules_path=path)

    def test_state_survives_rebuild(self, tmp_path: Path, dt_clock) -> None:
        first = build_tracker(tmp_path, clock=dt_clock)
        first.tab_activated(1, "https://github.com", "GH")
        dt_clock.advance(seconds=120)
        first.window_focus_changed(None)

        second = build_tracker(tmp_path, clock=dt_clock)
        bucket = second.daily_bucket(dt_clock().date())
        assert bucket.categories["Work"].total_seconds == 120
