"""
CLI interface for Usage Wrapped.

Provides command-line access to the statistics snapshot.
"""

import json
import os
import sys
from dataclasses import asdict
from datetime import datetime
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from usage_wrapped import __version__
from usage_wrapped.config.loader import default_config, load_config
from usage_wrapped.core.context import ReportPeriod, UsageContext
from usage_wrapped.core.locator import has_claude_data
from usage_wrapped.core.stats import calculate_stats
from usage_wrapped.storage.cache import StatsCacheError
from usage_wrapped.storage.models import StatisticsSnapshot

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

MIN_YEAR = 2024


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Usage Wrapped CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Usage Wrapped - Use --help to see available commands")


@app.command()
def version():
    """Show the installed version."""
    console.print(f"usage-wrapped v{__version__}")


@app.command()
def summary(
    year: Optional[int] = typer.Option(
        None,
        "--year",
        "-y",
        help="Year to summarize (default: current year)"
    ),
    month: Optional[int] = typer.Option(
        None,
        "--month",
        "-m",
        help="Narrow the summary to one month (1-12)"
    ),
    config_dir: Optional[str] = typer.Option(
        None,
        "--config-dir",
        "-c",
        help="Data directory, or comma-separated list of directories"
    ),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        help="YAML configuration file"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the snapshot as JSON"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Show debug information"
    )
):
    """
    Summarize activity logs into a yearly or monthly snapshot.

    Raw logs are recomputed on every run; the stats cache fills in
    whatever the logs no longer hold.
    """
    _configure_logging(verbose)

    current_year = datetime.now().year
    requested_year = year if year is not None else current_year
    if requested_year < MIN_YEAR or requested_year > current_year:
        console.print(f"[red]Invalid year:[/] {requested_year}. Must be between {MIN_YEAR} and {current_year}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        period = ReportPeriod(year=requested_year, month=month)
        config = load_config(config_file) if config_file else default_config()
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    environ = dict(os.environ)
    if config_dir:
        environ[config.config_dir_env] = config_dir

    if not has_claude_data(config, environ):
        console.print("\n[bold yellow]No activity data found[/]")
        console.print(f"\nLooked in: {', '.join(config.data_dirs)}")
        console.print("Make sure the assistant has been used at least once.\n")
        sys.exit(EXIT_CODE_PASS)

    try:
        snapshot = calculate_stats(period, UsageContext.from_config(config), environ)
    except StatsCacheError as e:
        console.print(f"[red]Failed to collect stats:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        console.print_json(json.dumps(snapshot_to_dict(snapshot)))
    elif not snapshot.has_activity:
        console.print(f"\n[bold yellow]No activity recorded for {_period_label(snapshot)}[/]\n")
    else:
        _display_snapshot(snapshot)
    sys.exit(EXIT_CODE_PASS)


def snapshot_to_dict(snapshot: StatisticsSnapshot) -> dict:
    """Convert a snapshot to JSON-serializable primitives."""
    data = {}
    for name in StatisticsSnapshot.__dataclass_fields__:
        value = getattr(snapshot, name)
        if name == "daily_activity":
            value = dict(value)
        elif name == "max_streak_days":
            value = sorted(value)
        elif name == "first_session_date":
            value = value.isoformat()
        elif name in ("top_models", "top_providers"):
            value = [asdict(entry) for entry in value]
        elif hasattr(value, "__dataclass_fields__"):
            value = asdict(value)
        data[name] = value
    return data


def _period_label(snapshot: StatisticsSnapshot) -> str:
    if snapshot.month_name:
        return f"{snapshot.month_name} {snapshot.year}"
    return str(snapshot.year)


def _format_number(value: float) -> str:
    """Compact number formatting (1.2K, 3.4M, 5.6B)."""
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:,.1f}{suffix}"
    return f"{value:,.0f}"


def _format_currency(amount: float) -> str:
    return f"${abs(amount):,.2f}"


def _display_snapshot(snapshot: StatisticsSnapshot):
    """Display the snapshot as a summary table."""
    console.print(f"\n[bold]Wrapped {_period_label(snapshot)}[/bold]")
    console.print("-" * 40)

    table = Table(show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Started", f"{snapshot.first_session_date:%Y-%m-%d} ({snapshot.days_since_first_session} days ago)")
    table.add_row("Sessions", f"{snapshot.total_sessions:,}")
    table.add_row("Messages", f"{snapshot.total_messages:,}")
    table.add_row("Projects", f"{snapshot.total_projects:,}")
    table.add_row("Total tokens", _format_number(snapshot.total_tokens))
    table.add_row("Cache hit rate", f"{snapshot.cache_hit_rate:.1f}%")
    if snapshot.total_tool_calls:
        table.add_row("Tool calls", f"{snapshot.total_tool_calls:,}")
    if snapshot.has_usage_cost:
        table.add_row("Cost", _format_currency(snapshot.total_cost))
    table.add_row("Max streak", f"{snapshot.max_streak} days")
    table.add_row("Current streak", f"{snapshot.current_streak} days")
    if snapshot.most_active_day:
        table.add_row(
            "Most active day",
            f"{snapshot.most_active_day.formatted_date} ({snapshot.most_active_day.count:,})"
        )
    table.add_row("Busiest weekday", snapshot.weekday_activity.most_active_day_name)
    console.print(table)

    if snapshot.top_models:
        console.print("\n[bold]Top models[/bold]")
        for rank, model in enumerate(snapshot.top_models, start=1):
            console.print(f"{rank}. {model.name} - {_format_number(model.count)} ({model.percentage:.1f}%)")

    if snapshot.top_providers:
        console.print("\n[bold]Top providers[/bold]")
        for rank, provider in enumerate(snapshot.top_providers, start=1):
            console.print(f"{rank}. {provider.name} - {provider.percentage:.1f}%")
    print()


if __name__ == "__main__":
    app()
