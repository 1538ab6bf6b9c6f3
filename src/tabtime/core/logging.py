"""Log setup that keeps browsing history out of log output.

Modules log visits as ``url=%s`` / ``title=%r`` pairs so the values can be
found and blanked by :class:`SanitizingFilter` before a handler formats
them.  Domains and categories stay readable.
"""

from __future__ import annotations

import logging
import re
from typing import Final, Iterable

HISTORY_KEYS: Final[tuple[str, ...]] = ("full_url", "url", "title")

_REDACTED: Final[str] = "[REDACTED]"


def _key_value_pattern(keys: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(k) for k in keys)
    return re.compile(
        rf"""\b(?P<key>{alternatives})\s*[=:]\s*(?P<value>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|\S+)""",
        re.IGNORECASE,
    )


class SanitizingFilter(logging.Filter):
    """Rewrites each record so the values of history keys read ``[REDACTED]``.

    The message is rendered first (``msg % args``) so values passed as
    arguments are caught as well as literal ones.
    """

    def __init__(self, keys: Iterable[str] = HISTORY_KEYS) -> None:
        super().__init__()
        self._pattern = _key_value_pattern(keys)

    def redact(self, message: str) -> str:
        return self._pattern.sub(lambda m: f"{m.group('key')}={_REDACTED}", message)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = None
        return True


def configure_logging(verbose: bool = False) -> SanitizingFilter:
    """Set up root logging for the CLI and sanitize every root handler.

    The filter goes on handlers rather than on the root logger because
    logger filters do not see records propagated from child loggers.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sanitizer = SanitizingFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SanitizingFilter) for f in handler.filters):
            handler.addFilter(sanitizer)
    return sanitizer
