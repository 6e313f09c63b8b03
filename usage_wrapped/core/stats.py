"""
Statistics computation entry point.

Wires source discovery, log reduction, the cache and history readers and
the merger into a single call.
"""

from typing import Mapping, Optional

from loguru import logger

from usage_wrapped.storage.cache import load_stats_cache
from usage_wrapped.storage.history import collect_projects
from usage_wrapped.storage.models import StatisticsSnapshot
from .context import ReportPeriod, UsageContext
from .locator import resolve_data_dir, resolve_project_roots
from .merger import merge_stats
from .reducer import collect_usage_summary


def calculate_stats(
    period: ReportPeriod,
    context: Optional[UsageContext] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> StatisticsSnapshot:
    """Compute the statistics snapshot for a year or month.

    Missing data directories and a missing cache produce a zero-valued
    snapshot rather than an error.

    Args:
        period: Requested year, optionally narrowed to one month
        context: Run context; a fresh default one is built when omitted
        environ: Environment used for the override path list

    Returns:
        StatisticsSnapshot for the period

    Raises:
        StatsCacheError: If the stats cache exists but is corrupt
    """
    context = context or UsageContext()
    config = context.config

    data_dir = resolve_data_dir(config, environ)
    roots = resolve_project_roots(config, environ)
    logger.debug("Data directory: {}", data_dir if data_dir else "not found")

    cache_path = data_dir / config.stats_cache_file if data_dir else None
    history_path = data_dir / config.history_file if data_dir else None

    cache = load_stats_cache(cache_path)
    projects = collect_projects(history_path, period, context)
    summary = collect_usage_summary(roots, period, context)

    return merge_stats(period, summary, cache, context, total_projects=len(projects))
