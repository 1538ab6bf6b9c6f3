"""Typer CLI entrypoint and command definitions for tabtime."""

import datetime as dt
from pathlib import Path
from typing import Callable, Optional

import typer

from tabtime.core.defaults import DEFAULT_DATA_DIR

app = typer.Typer()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Track browsing time per category."""
    from tabtime.core.logging import configure_logging

    configure_logging(verbose)


def _tracker(data_dir: str, rules: Optional[str] = None):
    import yaml
    from pydantic import ValidationError

    from tabtime.core.errors import InvalidPatternError, PersistenceUnavailableError
    from tabtime.tracker import build_tracker

    rules_path = Path(rules) if rules else None
    if rules_path is not None and not rules_path.exists():
        typer.echo(f"Rules file not found: {rules_path}", err=True)
        raise typer.Exit(code=1)
    try:
        return build_tracker(Path(data_dir), rules_path)
    except (InvalidPatternError, PersistenceUnavailableError, ValidationError, yaml.YAMLError) as exc:
        _fail(exc)


def _fail(exc: Exception) -> None:
    typer.echo(str(exc), err=True)
    raise typer.Exit(code=1)


def _parse_iso(value: str, option: str, parse: Callable):
    try:
        return parse(value)
    except ValueError:
        _fail(ValueError(f"Invalid {option} value {value!r}; expected ISO-8601"))


# -- classify -----------------------------------------------------------------


@app.command("classify")
def classify_cmd(
    url: str = typer.Argument(..., help="URL to categorize"),
    rules: Optional[str] = typer.Option(None, "--rules", help="Category rules YAML (defaults to built-in rules)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Print the category a URL would be recorded under."""
    tracker = _tracker(data_dir, rules)
    typer.echo(tracker.categorize(url))


# -- record -------------------------------------------------------------------


@app.command("record")
def record_cmd(
    url: str = typer.Option(..., "--url", help="Visited URL"),
    duration: float = typer.Option(..., "--duration", help="Visit length in seconds"),
    tab_id: str = typer.Option("0", "--tab-id", help="Browser tab identifier"),
    title: str = typer.Option("", "--title", help="Page title"),
    start: Optional[str] = typer.Option(None, "--start", help="Visit start, ISO-8601 (defaults to now - duration)"),
    rules: Optional[str] = typer.Option(None, "--rules", help="Category rules YAML"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Record a single finished visit."""
    from tabtime.core.errors import PersistenceUnavailableError
    from tabtime.core.time import to_utc, utc_now
    from tabtime.core.types import ActivityRecord

    if duration < 0:
        _fail(ValueError("--duration must be >= 0"))

    tracker = _tracker(data_dir, rules)
    start_time = (
        to_utc(_parse_iso(start, "--start", dt.datetime.fromisoformat))
        if start
        else utc_now() - dt.timedelta(seconds=duration)
    )
    record = ActivityRecord(
        tab_id=tab_id,
        url=url,
        title=title,
        category=tracker.categorize(url),
        start_time=start_time,
        duration_seconds=duration,
    )
    try:
        stored = tracker.activity_log.record(record)
    except PersistenceUnavailableError as exc:
        _fail(exc)
    if not stored:
        typer.echo("Skipped non-trackable URL")
        return
    typer.echo(f"Recorded {duration:.0f}s as {record.category} on {record.start_time.date().isoformat()}")


# -- stats --------------------------------------------------------------------
stats_app = typer.Typer()
app.add_typer(stats_app, name="stats")


def _resolve_date(date: Optional[str]) -> dt.date:
    from tabtime.core.time import utc_date, utc_now

    return _parse_iso(date, "--date", dt.date.fromisoformat) if date else utc_date(utc_now())


@stats_app.command("daily")
def stats_daily_cmd(
    date: Optional[str] = typer.Option(None, help="Date in YYYY-MM-DD format (defaults to today, UTC)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Show per-category time for one day."""
    from tabtime.report.daily import build_daily_report, format_minutes

    day = _resolve_date(date)
    bucket = _tracker(data_dir).daily_bucket(day)
    if bucket is None:
        typer.echo(f"No activity recorded for {day.isoformat()}")
        return

    report = build_daily_report(bucket)
    typer.echo(f"{report.date}: {format_minutes(report.total_minutes)} across {report.visit_count} visits")
    for usage in report.usage:
        typer.echo(
            f"  {usage.category:<20} {format_minutes(usage.minutes):>8}  "
            f"{usage.visit_count:>4} visits  {usage.share:>6.1%}"
        )


@stats_app.command("export")
def stats_export_cmd(
    out: str = typer.Option(..., "--out", help="Destination file"),
    date: Optional[str] = typer.Option(None, help="Date in YYYY-MM-DD format (defaults to today, UTC)"),
    fmt: str = typer.Option("json", "--format", help="json, csv or parquet"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Export one day's report to a file."""
    from tabtime.report.daily import build_daily_report
    from tabtime.report.export import (
        export_report_csv,
        export_report_json,
        export_report_parquet,
    )

    exporters = {
        "json": export_report_json,
        "csv": export_report_csv,
        "parquet": export_report_parquet,
    }
    if fmt not in exporters:
        _fail(ValueError(f"Unknown format {fmt!r}; expected one of {sorted(exporters)}"))

    day = _resolve_date(date)
    bucket = _tracker(data_dir).daily_bucket(day)
    if bucket is None:
        typer.echo(f"No activity recorded for {day.isoformat()}", err=True)
        raise typer.Exit(code=1)

    path = exporters[fmt](build_daily_report(bucket), Path(out))
    typer.echo(f"Report written to {path}")


# -- categories ---------------------------------------------------------------
categories_app = typer.Typer()
app.add_typer(categories_app, name="categories")


@categories_app.command("list")
def categories_list_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """List configured categories in display order."""
    for name in _tracker(data_dir).categories:
        typer.echo(name)


@categories_app.command("add")
def categories_add_cmd(
    name: str = typer.Argument(..., help="New category name"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Add a category."""
    from tabtime.core.errors import SettingsError

    try:
        _tracker(data_dir).settings.add_category(name)
    except SettingsError as exc:
        _fail(exc)
    typer.echo(f"Added category {name}")


@categories_app.command("remove")
def categories_remove_cmd(
    name: str = typer.Argument(..., help="Category to remove"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Remove a user-added category."""
    from tabtime.core.errors import SettingsError

    try:
        _tracker(data_dir).settings.remove_category(name)
    except SettingsError as exc:
        _fail(exc)
    typer.echo(f"Removed category {name}")


# -- overrides ----------------------------------------------------------------
overrides_app = typer.Typer()
app.add_typer(overrides_app, name="overrides")


@overrides_app.command("list")
def overrides_list_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """List domain overrides."""
    overrides = _tracker(data_dir).settings.overrides
    if not overrides:
        typer.echo("No overrides configured")
        return
    for domain, category in sorted(overrides.items()):
        typer.echo(f"{domain} -> {category}")


@overrides_app.command("set")
def overrides_set_cmd(
    domain: str = typer.Argument(..., help="Exact domain, e.g. github.com"),
    category: str = typer.Argument(..., help="Configured category name"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Always classify DOMAIN as CATEGORY."""
    from tabtime.core.errors import SettingsError

    try:
        _tracker(data_dir).settings.set_override(domain, category)
    except SettingsError as exc:
        _fail(exc)
    typer.echo(f"{domain.strip().lower()} -> {category}")


@overrides_app.command("remove")
def overrides_remove_cmd(
    domain: str = typer.Argument(..., help="Domain to un-pin"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Remove a domain override."""
    from tabtime.core.errors import SettingsError

    try:
        _tracker(data_dir).settings.remove_override(domain)
    except SettingsError as exc:
        _fail(exc)
    typer.echo(f"Removed override for {domain.strip().lower()}")


# -- retention ----------------------------------------------------------------
retention_app = typer.Typer()
app.add_typer(retention_app, name="retention")


@retention_app.command("show")
def retention_show_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Show the retention window in days."""
    typer.echo(str(_tracker(data_dir).settings.retention_days))


@retention_app.command("set")
def retention_set_cmd(
    days: int = typer.Argument(..., help="Days of history to keep"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Data directory holding snapshot.json"),
) -> None:
    """Change the retention window and prune history that falls outside it."""
    from tabtime.core.errors import SettingsError

    try:
        _tracker(data_dir).settings.set_retention_days(days)
    except SettingsError as exc:
        _fail(exc)
    typer.echo(f"Retention set to {days} days")


# -- rules --------------------------------------------------------------------
rules_app = typer.Typer()
app.add_typer(rules_app, name="rules")


@rules_app.command("init")
def rules_init_cmd(
    out: str = typer.Option("configs/categories.yaml", "--out", help="Destination YAML file"),
) -> None:
    """Write the built-in category rules to a YAML file for editing."""
    from tabtime.classify.rules import default_category_rules, save_category_rules

    path = save_category_rules(default_category_rules(), Path(out))
    typer.echo(f"Wrote rules to {path}")


@rules_app.command("check")
def rules_check_cmd(
    path: str = typer.Argument(..., help="Category rules YAML to validate"),
) -> None:
    """Validate a rules file and compile every pattern."""
    import yaml
    from pydantic import ValidationError

    from tabtime.classify.rules import CategoryRuleSet, load_category_rules
    from tabtime.core.errors import InvalidPatternError

    rules_path = Path(path)
    if not rules_path.exists():
        typer.echo(f"Rules file not found: {rules_path}", err=True)
        raise typer.Exit(code=1)
    try:
        rule_set = CategoryRuleSet.from_document(load_category_rules(rules_path))
    except (InvalidPatternError, ValidationError, yaml.YAMLError) as exc:
        _fail(exc)
    for category in rule_set.categories:
        typer.echo(f"{category}: {len(rule_set.patterns(category))} patterns")


if __name__ == "__main__":
    app()
