"""Centralised default constants for tabtime.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Classification ──
DEFAULT_CATEGORY: Final[str] = "Other"
CACHE_TTL_SECONDS: Final[float] = 24 * 60 * 60
CACHE_MAX_ENTRIES: Final[int] = 1000
RULES_DOCUMENT_VERSION: Final[str] = "1.0"

# ── Settings ──
DEFAULT_CATEGORIES: Final[tuple[str, ...]] = (
    "Work",
    "Social",
    "Entertainment",
    "Shopping",
    "News",
    "Education",
    "Other",
)
PROTECTED_CATEGORIES: Final[frozenset[str]] = frozenset(DEFAULT_CATEGORIES)
DEFAULT_RETENTION_DAYS: Final[int] = 30

# ── Tracking ──
DEFAULT_TICK_SECONDS: Final[int] = 60
NON_TRACKABLE_SCHEMES: Final[tuple[str, ...]] = (
    "chrome:",
    "chrome-extension:",
    "chrome-search:",
    "edge:",
    "brave:",
    "about:",
    "moz-extension:",
    "devtools:",
    "view-source:",
)

# ── Paths ──
DEFAULT_DATA_DIR: Final[str] = "data"
SNAPSHOT_FILENAME: Final[str] = "snapshot.json"
SNAPSHOT_VERSION: Final[str] = "1"
