"""
Usage reduction.

Folds the deduplicated event stream into running totals for one
requested period: per-day activity, per-model tokens, token and cost
scalars, distinct sessions and the earliest timestamp.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

from loguru import logger

from usage_wrapped.storage.models import RawEvent
from .context import ReportPeriod, UsageContext, format_date_key
from .pricing import calculate_cost
from .scanner import EventScanner


@dataclass
class UsageSummary:
    """Aggregates recomputed from raw logs for one run."""
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_read_tokens: int = 0
    total_cache_write_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    model_token_totals: Dict[str, int] = field(default_factory=dict)
    daily_activity: Dict[str, int] = field(default_factory=dict)
    session_ids: Set[str] = field(default_factory=set)
    first_timestamp: Optional[datetime] = None
    total_messages: int = 0

    @property
    def total_sessions(self) -> int:
        return len(self.session_ids)

    @property
    def has_token_signal(self) -> bool:
        """True when any token scalar is nonzero."""
        return any((
            self.total_tokens,
            self.total_input_tokens,
            self.total_output_tokens,
            self.total_cache_read_tokens,
            self.total_cache_write_tokens,
        ))


class UsageReducer:
    """Accumulates events into a UsageSummary.

    Events outside the requested period are ignored entirely. All
    accumulation runs through this single owner, so the pricing memo in
    the context needs no locking.
    """

    def __init__(self, period: ReportPeriod, context: UsageContext):
        self.period = period
        self.context = context
        self.summary = UsageSummary()

    def add(self, event: RawEvent) -> bool:
        """Fold one event in; returns False when the event was rejected."""
        if event.timestamp is None:
            return False
        local_day = self.context.local_date(event.timestamp)
        if not self.period.contains(local_day):
            return False

        summary = self.summary
        if summary.first_timestamp is None or event.timestamp < summary.first_timestamp:
            summary.first_timestamp = event.timestamp

        date_key = format_date_key(local_day)
        summary.daily_activity[date_key] = summary.daily_activity.get(date_key, 0) + 1
        summary.total_messages += 1

        if event.session_id:
            summary.session_ids.add(event.session_id)

        has_cost = event.cost_usd is not None
        if has_cost:
            summary.total_cost_usd += event.cost_usd

        usage = event.usage
        if usage is None:
            return True

        entry_total = usage.total_tokens
        summary.total_input_tokens += usage.input_tokens
        summary.total_output_tokens += usage.output_tokens
        summary.total_cache_read_tokens += usage.cache_read_tokens
        summary.total_cache_write_tokens += usage.cache_write_tokens
        summary.total_tokens += entry_total

        if event.model and entry_total > 0:
            totals = summary.model_token_totals
            totals[event.model] = totals.get(event.model, 0) + entry_total

            if not has_cost:
                pricing = self.context.pricing.get_pricing(event.model)
                if pricing is not None:
                    summary.total_cost_usd += calculate_cost(pricing, usage)
        return True

    def add_all(self, events: Iterable[RawEvent]) -> UsageSummary:
        for event in events:
            self.add(event)
        return self.summary


def collect_usage_summary(
    roots: Iterable[Path],
    period: ReportPeriod,
    context: UsageContext,
) -> UsageSummary:
    """Scan every root and reduce the events for the requested period.

    Args:
        roots: Raw-log root directories
        period: Requested year or month
        context: Run context supplying pricing, timezone and configuration

    Returns:
        UsageSummary, zero-valued when no roots or no events exist
    """
    scanner = EventScanner(extension=context.config.log_extension)
    reducer = UsageReducer(period, context)
    summary = reducer.add_all(scanner.scan_roots(roots))
    stats = scanner.stats
    logger.debug(
        "Scanned {} file(s), {} line(s): {} malformed, {} duplicate, {} unreadable file(s)",
        stats.files_scanned,
        stats.lines_read,
        stats.malformed_lines,
        stats.duplicate_events,
        stats.files_skipped,
    )
    logger.debug(
        "Reduced {} event(s) across {} day(s) and {} model(s)",
        summary.total_messages,
        len(summary.daily_activity),
        len(summary.model_token_totals),
    )
    return summary
