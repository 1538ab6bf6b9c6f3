"""URL categorization: overrides, then cache, then rules, then fallback."""

from __future__ import annotations

import logging
from typing import Mapping

from tabtime.classify.cache import ClassificationCache
from tabtime.classify.domain import extract_domain
from tabtime.classify.rules import CategoryRuleSet
from tabtime.core.defaults import DEFAULT_CATEGORY

logger = logging.getLogger(__name__)


class Classifier:
    """Resolves a URL to exactly one category.

    Precedence, highest first:

    1. an exact domain match in the caller's *overrides* (never cached);
    2. a fresh :class:`ClassificationCache` hit;
    3. the first matching category of the :class:`CategoryRuleSet`;
    4. :data:`~tabtime.core.defaults.DEFAULT_CATEGORY`.

    Results from steps 3 and 4 are cached.  A URL without a usable
    hostname returns the default category and leaves the cache alone.
    :meth:`categorize` never raises.
    """

    def __init__(
        self,
        rules: CategoryRuleSet,
        cache: ClassificationCache | None = None,
        default_category: str = DEFAULT_CATEGORY,
    ) -> None:
        self.rules = rules
        self.cache = cache if cache is not None else ClassificationCache()
        self.default_category = default_category

    def categorize(self, url: str, overrides: Mapping[str, str] | None = None) -> str:
        domain = extract_domain(url)
        if not domain:
            return self.default_category

        if overrides:
            override = overrides.get(domain)
            if override:
                return override

        cached = self.cache.lookup(domain)
        if cached is not None:
            return cached

        category = self.rules.match(domain) or self.default_category
        self.cache.insert(domain, category)
        logger.debug("Classified url=%s via domain %s as %s", url, domain, category)
        return category

    @property
    def categories(self) -> list[str]:
        """Rule categories in evaluation order."""
        return self.rules.categories

    def add_pattern(self, category: str, pattern: str) -> None:
        """Register a new rule pattern and drop cached results it may change."""
        self.rules.add_pattern(category, pattern)
        self.cache.clear()

    def clear_cache(self) -> None:
        """Invalidation hook for external override edits."""
        self.cache.clear()
