"""Tab-lifecycle handling and the composition root.

The browser host reports four kinds of events: a tab was activated, a
navigation finished, window focus changed, and a periodic tick.  Each
one ends the visit currently in progress (recording it) and, where the
event names a tab, starts the next one.

:func:`build_tracker` wires every component together; nothing in
tabtime relies on module-level singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Callable

from tabtime.activity.log import ActivityLog, is_trackable
from tabtime.classify.cache import ClassificationCache
from tabtime.classify.classifier import Classifier
from tabtime.classify.rules import (
    CategoryRuleSet,
    default_category_rules,
    load_category_rules,
)
from tabtime.core.defaults import DEFAULT_DATA_DIR
from tabtime.core.store import JsonSnapshotStore, SnapshotStore, SnapshotTransactor, initialize
from tabtime.core.time import to_utc, utc_now
from tabtime.core.types import ActivityRecord, DailyBucket
from tabtime.settings import SettingsManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveVisit:
    """The visit currently in progress."""

    tab_id: str
    url: str
    title: str
    start_time: datetime


class TabTracker:
    """Turns tab events into recorded, categorized visits.

    Events are expected one at a time from a single host; the tracker
    holds only the visit in progress, everything else lives in the
    snapshot store.  Event timestamps default to the tracker's clock.
    """

    def __init__(
        self,
        classifier: Classifier,
        activity_log: ActivityLog,
        settings: SettingsManager,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.classifier = classifier
        self.activity_log = activity_log
        self.settings = settings
        self._clock = clock
        self._active: ActiveVisit | None = None

    @property
    def active(self) -> ActiveVisit | None:
        return self._active

    # -- host events ---------------------------------------------------------

    def tab_activated(
        self, tab_id: int | str, url: str, title: str = "", timestamp: datetime | None = None,
    ) -> ActivityRecord | None:
        return self._switch_to(tab_id, url, title, timestamp)

    def navigation_completed(
        self, tab_id: int | str, url: str, title: str = "", timestamp: datetime | None = None,
    ) -> ActivityRecord | None:
        return self._switch_to(tab_id, url, title, timestamp)

    def window_focus_changed(
        self,
        window_id: int | None,
        tab_id: int | str | None = None,
        url: str = "",
        title: str = "",
        timestamp: datetime | None = None,
    ) -> ActivityRecord | None:
        """Handle a focus change; ``window_id=None`` means the browser lost focus."""
        if window_id is None or tab_id is None:
            ts = self._now(timestamp)
            recorded = self._finish_active(ts)
            self._active = None
            return recorded
        return self._switch_to(tab_id, url, title, timestamp)

    def tick(self, timestamp: datetime | None = None) -> ActivityRecord | None:
        """Periodic flush: record the visit so far and restart it at *timestamp*."""
        if self._active is None:
            return None
        ts = self._now(timestamp)
        recorded = self._finish_active(ts)
        self._active = ActiveVisit(
            tab_id=self._active.tab_id,
            url=self._active.url,
            title=self._active.title,
            start_time=ts,
        )
        return recorded

    # -- produced to collaborators ------------------------------------------

    def daily_bucket(self, day: date | str) -> DailyBucket | None:
        return self.activity_log.daily_bucket(day)

    @property
    def categories(self) -> list[str]:
        """Configured category names, in display order."""
        return self.settings.categories

    def clear_cache(self) -> None:
        self.classifier.clear_cache()

    def categorize(self, url: str) -> str:
        return self.classifier.categorize(url, self.settings.overrides)

    # -- internals -----------------------------------------------------------

    def _now(self, timestamp: datetime | None) -> datetime:
        return to_utc(timestamp) if timestamp is not None else self._clock()

    def _switch_to(
        self, tab_id: int | str, url: str, title: str, timestamp: datetime | None,
    ) -> ActivityRecord | None:
        ts = self._now(timestamp)
        recorded = self._finish_active(ts)
        if not is_trackable(url):
            self._active = None
        else:
            self._active = ActiveVisit(tab_id=str(tab_id), url=url, title=title or "", start_time=ts)
            logger.debug("Tab %s active url=%s title=%r", tab_id, url, title)
        return recorded

    def _finish_active(self, end: datetime) -> ActivityRecord | None:
        visit = self._active
        if visit is None:
            return None
        record = ActivityRecord(
            tab_id=visit.tab_id,
            url=visit.url,
            title=visit.title,
            category=self.categorize(visit.url),
            start_time=visit.start_time,
            duration_seconds=max(0.0, (end - visit.start_time).total_seconds()),
        )
        if not self.activity_log.record(record):
            return None
        return record


def build_tracker(
    data_dir: Path | str = DEFAULT_DATA_DIR,
    rules_path: Path | None = None,
    *,
    store: SnapshotStore | None = None,
    clock: Callable[[], datetime] = utc_now,
    cache: ClassificationCache | None = None,
) -> TabTracker:
    """Construct a fully wired :class:`TabTracker`.

    Args:
        data_dir: Directory holding ``snapshot.json`` (ignored if *store*
            is given).
        rules_path: Optional YAML rules document; the built-in rules are
            used when omitted.
        store: Snapshot store to use instead of the JSON file store.
        clock: Source of "now" for visits and retention.
        cache: Pre-built classification cache (e.g. with a fake clock).

    Raises:
        InvalidPatternError: If a rule pattern fails to compile.
        PersistenceUnavailableError: If the store cannot be initialized.
    """
    document = load_category_rules(rules_path) if rules_path is not None else default_category_rules()
    rules = CategoryRuleSet.from_document(document)
    classifier = Classifier(rules, cache=cache)

    snapshot_store = store if store is not None else JsonSnapshotStore.in_dir(data_dir)
    initialize(snapshot_store)
    transactor = SnapshotTransactor(snapshot_store)

    settings = SettingsManager(transactor, on_overrides_changed=classifier.clear_cache, clock=clock)
    activity_log = ActivityLog(transactor, clock=clock)
    logger.debug("Tracker ready with categories %s", rules.categories)
    return TabTracker(classifier, activity_log, settings, clock=clock)
