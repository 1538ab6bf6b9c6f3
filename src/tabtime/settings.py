"""User settings: category list, domain overrides, retention window.

Settings are persisted inside the snapshot, next to activity data, and
every change is its own read-modify-write through the shared
:class:`~tabtime.core.store.SnapshotTransactor`.

Usage::

    settings = SettingsManager(transactor, on_overrides_changed=classifier.clear_cache)
    settings.add_category("Side Project")
    settings.set_override("github.com", "Side Project")   # clears the cache
    settings.set_retention_days(14)
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Final

from tabtime.activity.log import RetentionPruner
from tabtime.core.defaults import PROTECTED_CATEGORIES
from tabtime.core.errors import SettingsError
from tabtime.core.store import SnapshotTransactor
from tabtime.core.time import utc_date, utc_now
from tabtime.core.types import Snapshot, UserSettings

logger = logging.getLogger(__name__)

_CATEGORY_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\s\-_.#@&!]{1,24}$")
_DOMAIN_RE: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-_.]+\.[a-zA-Z]{2,}$")


def validate_category_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise SettingsError("Category name must not be empty")
    if not _CATEGORY_NAME_RE.match(name):
        raise SettingsError(
            f"Invalid category name {name!r}: must start with a letter or number "
            "and be 2-25 characters long"
        )
    return name


def validate_domain(domain: str) -> str:
    domain = domain.strip().lower()
    if not _DOMAIN_RE.match(domain):
        raise SettingsError(f"Invalid domain format: {domain!r}")
    return domain


class SettingsManager:
    """Read and edit :class:`~tabtime.core.types.UserSettings`.

    Args:
        transactor: Serialized access to the snapshot store.
        on_overrides_changed: Called after any successful override edit;
            wire this to :meth:`Classifier.clear_cache`.
        clock: Returns "now"; used to prune history when the retention
            window shrinks.
    """

    def __init__(
        self,
        transactor: SnapshotTransactor,
        on_overrides_changed: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.transactor = transactor
        self._on_overrides_changed = on_overrides_changed
        self._clock = clock

    # -- read ----------------------------------------------------------------

    def get(self) -> UserSettings:
        return self.transactor.load().settings

    @property
    def categories(self) -> list[str]:
        return list(self.get().categories)

    @property
    def overrides(self) -> dict[str, str]:
        return dict(self.get().overrides)

    @property
    def retention_days(self) -> int:
        return self.get().retention_days

    # -- categories ----------------------------------------------------------

    def add_category(self, name: str) -> list[str]:
        """Append a new category to the display list and return the list."""
        name = validate_category_name(name)

        def mutate(settings: UserSettings) -> UserSettings:
            if name in settings.categories:
                raise SettingsError(f"Category {name!r} already exists")
            return settings.model_copy(update={"categories": [*settings.categories, name]})

        return list(self._update(mutate).categories)

    def remove_category(self, name: str) -> list[str]:
        """Remove a user-added category.  Built-in categories cannot be removed."""
        if name in PROTECTED_CATEGORIES:
            raise SettingsError(f"Cannot remove default category {name!r}")

        def mutate(settings: UserSettings) -> UserSettings:
            if name not in settings.categories:
                raise SettingsError(f"Unknown category {name!r}")
            return settings.model_copy(
                update={"categories": [c for c in settings.categories if c != name]}
            )

        return list(self._update(mutate).categories)

    # -- overrides -----------------------------------------------------------

    def set_override(self, domain: str, category: str) -> dict[str, str]:
        """Pin *domain* to *category*.  *category* must be a configured category."""
        domain = validate_domain(domain)

        def mutate(settings: UserSettings) -> UserSettings:
            if category not in settings.categories:
                raise SettingsError(
                    f"Unknown category {category!r}; must be one of {settings.categories}"
                )
            return settings.model_copy(
                update={"overrides": {**settings.overrides, domain: category}}
            )

        updated = self._update(mutate)
        logger.info("Override set: %s -> %s", domain, category)
        self._notify_overrides_changed()
        return dict(updated.overrides)

    def remove_override(self, domain: str) -> dict[str, str]:
        domain = domain.strip().lower()

        def mutate(settings: UserSettings) -> UserSettings:
            if domain not in settings.overrides:
                raise SettingsError(f"No override for {domain!r}")
            remaining = {d: c for d, c in settings.overrides.items() if d != domain}
            return settings.model_copy(update={"overrides": remaining})

        updated = self._update(mutate)
        logger.info("Override removed: %s", domain)
        self._notify_overrides_changed()
        return dict(updated.overrides)

    # -- retention -----------------------------------------------------------

    def set_retention_days(self, days: int) -> int:
        """Change the retention window, pruning history that falls outside it."""
        if days < 0:
            raise SettingsError(f"retention_days must be >= 0, got {days}")
        days = int(days)

        def apply(snapshot: Snapshot) -> Snapshot:
            activities, daily_stats = RetentionPruner(days).prune(
                snapshot.activities, snapshot.daily_stats, utc_date(self._clock()),
            )
            return snapshot.model_copy(update={
                "settings": snapshot.settings.model_copy(update={"retention_days": days}),
                "activities": activities,
                "daily_stats": daily_stats,
            })

        return self.transactor.update(apply).settings.retention_days

    # -- internals -----------------------------------------------------------

    def _update(self, mutate: Callable[[UserSettings], UserSettings]) -> UserSettings:
        def apply(snapshot: Snapshot) -> Snapshot:
            return snapshot.model_copy(update={"settings": mutate(snapshot.settings)})

        return self.transactor.update(apply).settings

    def _notify_overrides_changed(self) -> None:
        if self._on_overrides_changed is not None:
            self._on_overrides_changed()
