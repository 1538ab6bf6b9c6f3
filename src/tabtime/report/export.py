"""Report export utilities: JSON, CSV, and Parquet output."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pandas as pd

from tabtime.report.daily import DailyReport

_SENSITIVE_KEYS = frozenset({
    "url",
    "title",
    "full_url",
})

_COLUMNS = ["date", "category", "minutes", "visit_count", "share"]


def _check_no_sensitive_fields(data: dict) -> None:
    """Recursively check *data* for forbidden keys."""
    for key, value in data.items():
        if key in _SENSITIVE_KEYS:
            raise ValueError(
                f"Sensitive field {key!r} must not appear in report output"
            )
        if isinstance(value, dict):
            _check_no_sensitive_fields(value)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    _check_no_sensitive_fields(item)


def export_report_json(report: DailyReport, path: Path) -> Path:
    """Write *report* to a JSON file, rejecting sensitive keys.

    Raises:
        ValueError: If the serialized output contains a URL or title field.
    """
    data = report.model_dump()
    _check_no_sensitive_fields(data)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def _usage_rows(report: DailyReport) -> list[dict[str, object]]:
    return [
        {
            "date": report.date,
            "category": u.category,
            "minutes": u.minutes,
            "visit_count": u.visit_count,
            "share": u.share,
        }
        for u in report.usage
    ]


def export_report_csv(report: DailyReport, path: Path) -> Path:
    """Write *report* as a flat CSV with one row per category.

    Columns: ``date``, ``category``, ``minutes``, ``visit_count``, ``share``.
    """
    _check_no_sensitive_fields(report.model_dump())

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_COLUMNS)
        writer.writeheader()
        writer.writerows(_usage_rows(report))
    return path


def export_report_parquet(report: DailyReport, path: Path) -> Path:
    """Write *report* as a Parquet file; schema matches :func:`export_report_csv`."""
    _check_no_sensitive_fields(report.model_dump())

    df = pd.DataFrame(_usage_rows(report), columns=_COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, engine="pyarrow", index=False)
    return path
