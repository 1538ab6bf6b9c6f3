"""Category rules: versioned YAML document and the compiled rule set.

Each category owns an ordered list of regular expressions that are
searched against a normalized domain.  Categories are evaluated in
document order and the first category with a matching pattern wins;
there is no specificity scoring.

Typical flow::

    doc = load_category_rules(Path("configs/categories.yaml"))
    rules = CategoryRuleSet.from_document(doc)
    rules.match("github.com")        # "Work"
    rules.add_pattern("Work", r"atlassian\\.net$")
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Final, Mapping, Sequence

import yaml
from pydantic import BaseModel, Field, field_validator

from tabtime.core.defaults import RULES_DOCUMENT_VERSION
from tabtime.core.errors import InvalidPatternError

logger = logging.getLogger(__name__)

_DEFAULT_RULES: Final[dict[str, list[str]]] = {
    "Work": [
        r"github\.com$",
        r"gitlab\.com$",
        r"bitbucket\.org$",
        r"atlassian\.net$",
        r"stackoverflow\.com$",
        r"(^|\.)slack\.com$",
        r"(^|\.)notion\.so$",
        r"^docs\.google\.com$",
    ],
    "Social": [
        r"facebook\.com$",
        r"twitter\.com$",
        r"(^|\.)x\.com$",
        r"instagram\.com$",
        r"linkedin\.com$",
        r"reddit\.com$",
        r"tiktok\.com$",
    ],
    "Entertainment": [
        r"youtube\.com$",
        r"netflix\.com$",
        r"twitch\.tv$",
        r"spotify\.com$",
        r"hulu\.com$",
    ],
    "Shopping": [
        r"amazon\.[a-z.]+$",
        r"ebay\.[a-z.]+$",
        r"etsy\.com$",
        r"aliexpress\.com$",
    ],
    "News": [
        r"news\.ycombinator\.com$",
        r"bbc\.(com|co\.uk)$",
        r"cnn\.com$",
        r"nytimes\.com$",
        r"reuters\.com$",
        r"theguardian\.com$",
    ],
    "Education": [
        r"wikipedia\.org$",
        r"coursera\.org$",
        r"edx\.org$",
        r"khanacademy\.org$",
        r"udemy\.com$",
    ],
}


# ---------------------------------------------------------------------------
# Config document
# ---------------------------------------------------------------------------


class CategoryPatterns(BaseModel, frozen=True):
    """Raw (uncompiled) pattern list for one category."""

    patterns: list[str] = Field(default_factory=list)


class CategoryRulesDocument(BaseModel, frozen=True):
    """Versioned category -> pattern-list document.

    A category may be written either as ``{patterns: [...]}`` or as a
    bare list of pattern strings.
    """

    version: str = RULES_DOCUMENT_VERSION
    categories: dict[str, CategoryPatterns] = Field(min_length=1)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: object) -> str:
        return str(value)

    @field_validator("categories", mode="before")
    @classmethod
    def _accept_bare_lists(cls, value: object) -> object:
        if isinstance(value, Mapping):
            return {
                name: {"patterns": entry} if isinstance(entry, list) else entry
                for name, entry in value.items()
            }
        return value

    @field_validator("categories")
    @classmethod
    def _check_names(cls, value: dict[str, CategoryPatterns]) -> dict[str, CategoryPatterns]:
        for name in value:
            if not name.strip():
                raise ValueError("Category names must not be empty")
        return value


def load_category_rules(path: Path) -> CategoryRulesDocument:
    """Load and validate a category rules document from a YAML file.

    Patterns are not compiled here; see :meth:`CategoryRuleSet.from_document`.

    Raises:
        FileNotFoundError: If *path* does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValidationError: If the document does not match the schema.
    """
    raw = yaml.safe_load(Path(path).read_text("utf-8"))
    return CategoryRulesDocument.model_validate(raw)


def save_category_rules(document: CategoryRulesDocument, path: Path) -> Path:
    """Serialize a rules document to YAML and return *path*."""
    data = document.model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), "utf-8")
    return path


def default_category_rules() -> CategoryRulesDocument:
    """Built-in rules covering the default categories."""
    return CategoryRulesDocument.model_validate({"categories": _DEFAULT_RULES})


# ---------------------------------------------------------------------------
# Compiled rule set
# ---------------------------------------------------------------------------


def _compile(category: str, pattern: str) -> re.Pattern[str]:
    if not isinstance(pattern, str) or not pattern:
        raise InvalidPatternError(category, str(pattern), "pattern must be a non-empty string")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(category, pattern, str(exc)) from exc


class CategoryRuleSet:
    """Ordered, compiled domain matchers per category.

    Patterns can be appended at runtime but never removed.  Appends are
    serialized by a lock and publish a fresh mapping, so concurrent
    :meth:`match` calls always see either the old or the new rules.

    Args:
        rules: Category name -> pattern strings, in evaluation order.

    Raises:
        InvalidPatternError: If any pattern fails to compile.  No rule
            set is constructed in that case.
    """

    def __init__(self, rules: Mapping[str, Sequence[str]]) -> None:
        compiled: dict[str, tuple[re.Pattern[str], ...]] = {}
        for category, patterns in rules.items():
            compiled[category] = tuple(_compile(category, p) for p in patterns)
        self._rules = compiled
        self._write_lock = threading.Lock()
        logger.debug(
            "Loaded %d categories with %d patterns",
            len(compiled),
            sum(len(p) for p in compiled.values()),
        )

    @classmethod
    def from_document(cls, document: CategoryRulesDocument) -> CategoryRuleSet:
        return cls({name: cat.patterns for name, cat in document.categories.items()})

    @property
    def categories(self) -> list[str]:
        """Category names in evaluation order."""
        return list(self._rules)

    def patterns(self, category: str) -> list[str]:
        """Source strings of the patterns registered for *category*."""
        return [p.pattern for p in self._rules.get(category, ())]

    def match(self, domain: str) -> str | None:
        """Return the first category with a pattern found in *domain*, else ``None``."""
        for category, patterns in self._rules.items():
            for pattern in patterns:
                if pattern.search(domain):
                    return category
        return None

    def add_pattern(self, category: str, pattern: str) -> None:
        """Append *pattern* to *category*, creating the category if needed.

        Raises:
            InvalidPatternError: If *pattern* does not compile.  The rule
                set is left unchanged.
        """
        compiled = _compile(category, pattern)
        with self._write_lock:
            updated = dict(self._rules)
            updated[category] = updated.get(category, ()) + (compiled,)
            self._rules = updated
        logger.info("Added pattern %r to category %r", pattern, category)
