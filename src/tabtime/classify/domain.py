"""URL to domain normalization.

A domain here is the lowercase hostname of a URL, with no port, path,
userinfo or trailing dot.  Anything that does not parse to a hostname
yields the empty string; callers treat that as "unknown domain".
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


def extract_domain(url: str | None) -> str:
    """Return the lowercase hostname of *url*, or ``""`` if it has none.

    Never raises: malformed input (missing scheme, bad IPv6 literal,
    non-string) is absorbed and reported as an empty domain.

    Args:
        url: Absolute URL, e.g. ``"https://GitHub.com:443/x?y=1"``.

    Returns:
        The hostname (``"github.com"`` for the example above) or ``""``.
    """
    if not isinstance(url, str) or not url.strip():
        return ""
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        logger.debug("Unparseable URL; treating domain as unknown")
        return ""
    if not host:
        return ""
    return host.rstrip(".").lower()
