"""Exception types raised across tabtime.

Malformed URLs and non-trackable visits are deliberately absent: both
are absorbed where they occur and never reach a caller.
"""

from __future__ import annotations


class InvalidPatternError(ValueError):
    """A category rule pattern failed to compile."""

    def __init__(self, category: str, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid pattern {pattern!r} for category {category!r}: {reason}"
        )
        self.category = category
        self.pattern = pattern


class PersistenceUnavailableError(RuntimeError):
    """The snapshot store could not be read or written."""


class SettingsError(ValueError):
    """A settings change was rejected (bad name, domain, or value)."""
