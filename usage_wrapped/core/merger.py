"""
Statistics merging.

Reconciles the live recomputation from raw logs with the persisted stats
cache into one statistics snapshot.

Each aggregate is chosen through an ordered decision table of
(condition, source) rules; the first rule whose condition holds supplies
the value. The live recomputation comes first wherever it has signal and
the cache is the fallback, never both at once:

    daily activity   live (period map non-empty) > cache days in period
    model tokens     live > cache per-day model tokens > cache model usage
    token scalars    live (any nonzero scalar) > apportioned from model tokens
    cost             live (cost or token signal) > cache per-model cost
    first session    live earliest > cache first date > earliest day > now

Tool-call and session counts that come out as zero are backstopped by
summing every cache day, without the period filter.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from usage_wrapped.storage.models import (
    ModelStats,
    ProviderStats,
    StatisticsSnapshot,
    StatsCache,
    parse_timestamp,
)
from .context import ReportPeriod, UsageContext, parse_date_key
from .directory import ModelDirectory, resolve_provider_id
from .reducer import UsageSummary
from .streaks import (
    build_monthly_activity,
    build_weekday_activity,
    calculate_streaks,
    find_most_active_day,
)
from .token_counter import TokenUsage

T = TypeVar("T")

TOP_N = 3


@dataclass(frozen=True)
class MergeInputs:
    """Everything a merge rule may inspect."""
    period: ReportPeriod
    summary: UsageSummary
    cache: StatsCache
    context: UsageContext


@dataclass(frozen=True)
class SourceRule(Generic[T]):
    """One row of a decision table."""
    source: str
    applies: Callable[[MergeInputs], bool]
    build: Callable[[MergeInputs], T]


def resolve(aggregate: str, rules: Sequence[SourceRule[T]], inputs: MergeInputs) -> Tuple[str, T]:
    """Evaluate a decision table and return (source name, value).

    Raises:
        LookupError: If no rule applies
    """
    for rule in rules:
        if rule.applies(inputs):
            logger.debug("{} taken from {}", aggregate, rule.source)
            return rule.source, rule.build(inputs)
    raise LookupError(f"No source applies for {aggregate}")


def _always(_: MergeInputs) -> bool:
    return True


# -- daily activity -----------------------------------------------------------

@dataclass(frozen=True)
class ActivityTotals:
    daily_activity: Dict[str, int]
    total_messages: int
    total_sessions: int
    total_tool_calls: int


def _live_daily(inputs: MergeInputs) -> Dict[str, int]:
    return {
        key: count
        for key, count in inputs.summary.daily_activity.items()
        if inputs.period.contains_key(key)
    }


def _activity_from_live(inputs: MergeInputs) -> ActivityTotals:
    daily = dict(sorted(_live_daily(inputs).items()))
    return ActivityTotals(
        daily_activity=daily,
        total_messages=sum(daily.values()),
        total_sessions=inputs.summary.total_sessions,
        total_tool_calls=0,
    )


def _activity_from_cache(inputs: MergeInputs) -> ActivityTotals:
    daily: Dict[str, int] = {}
    sessions = 0
    tool_calls = 0
    for entry in inputs.cache.daily_activity:
        if not inputs.period.contains_key(entry.date):
            continue
        daily[entry.date] = entry.message_count
        sessions += entry.session_count
        tool_calls += entry.tool_call_count
    return ActivityTotals(
        daily_activity=dict(sorted(daily.items())),
        total_messages=sum(daily.values()),
        total_sessions=sessions,
        total_tool_calls=tool_calls,
    )


ACTIVITY_RULES: Tuple[SourceRule[ActivityTotals], ...] = (
    SourceRule("live", lambda i: bool(_live_daily(i)), _activity_from_live),
    SourceRule("cache", _always, _activity_from_cache),
)


def unfiltered_cache_backstop(cache: StatsCache, attribute: str) -> int:
    """Sum a per-day cache counter across every day, ignoring the period.

    Used only when the primary source yields zero. The result is not
    guaranteed to belong to the requested period.
    """
    return sum(getattr(entry, attribute) for entry in cache.daily_activity)


# -- per-model token totals ---------------------------------------------------

def _models_from_live(inputs: MergeInputs) -> Dict[str, int]:
    return dict(inputs.summary.model_token_totals)


def _models_from_cache_days(inputs: MergeInputs) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for entry in inputs.cache.daily_model_tokens:
        if not inputs.period.contains_key(entry.date):
            continue
        for model_id, tokens in entry.tokens_by_model.items():
            totals[model_id] = totals.get(model_id, 0) + tokens
    return totals


def _models_from_cache_usage(inputs: MergeInputs) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for model_id, usage in inputs.cache.model_usage.items():
        tokens = usage.input_tokens + usage.output_tokens
        if tokens > 0:
            totals[model_id] = tokens
    return totals


MODEL_TOKEN_RULES: Tuple[SourceRule[Dict[str, int]], ...] = (
    SourceRule("live", lambda i: bool(i.summary.model_token_totals), _models_from_live),
    SourceRule("cache daily model tokens", lambda i: bool(_models_from_cache_days(i)), _models_from_cache_days),
    SourceRule("cache model usage", _always, _models_from_cache_usage),
)


# -- apportionment ------------------------------------------------------------

def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apportion_tokens(aggregate: int, proportions: TokenUsage) -> TokenUsage:
    """Split an aggregate token count in the proportions of a usage record.

    Each component is scaled and rounded; any rounding drift is folded
    into the input component so the parts always sum to the aggregate.
    When the record has no tokens the whole aggregate counts as input.
    """
    usage_total = proportions.total_tokens
    if usage_total <= 0:
        return TokenUsage(input_tokens=aggregate)

    ratio = Decimal(aggregate) / Decimal(usage_total)
    input_tokens = _round_half_up(proportions.input_tokens * ratio)
    output_tokens = _round_half_up(proportions.output_tokens * ratio)
    cache_read = _round_half_up(proportions.cache_read_tokens * ratio)
    cache_write = _round_half_up(proportions.cache_write_tokens * ratio)

    scaled_total = input_tokens + output_tokens + cache_read + cache_write
    if scaled_total != aggregate:
        input_tokens += aggregate - scaled_total

    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read,
        cache_write_tokens=cache_write,
    )


@dataclass
class ModelBreakdown:
    """Token totals for every model that contributed tokens."""
    model_tokens: Dict[str, int] = field(default_factory=dict)
    components: Dict[str, TokenUsage] = field(default_factory=dict)
    web_search_requests: int = 0
    peak_context_window: int = 0


def build_model_breakdown(model_tokens: Dict[str, int], cache: StatsCache) -> ModelBreakdown:
    breakdown = ModelBreakdown()
    for model_id, tokens in model_tokens.items():
        if tokens <= 0:
            continue
        breakdown.model_tokens[model_id] = tokens
        usage = cache.model_usage.get(model_id)
        if usage is None:
            breakdown.components[model_id] = TokenUsage(input_tokens=tokens)
            continue
        breakdown.components[model_id] = apportion_tokens(tokens, usage.token_usage)
        breakdown.web_search_requests += usage.web_search_requests
        breakdown.peak_context_window = max(breakdown.peak_context_window, usage.context_window)
    return breakdown


# -- token scalars and cost ---------------------------------------------------

@dataclass(frozen=True)
class TokenTotals:
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_write_tokens: int
    total_tokens: int


def _tokens_from_live(inputs: MergeInputs, _: ModelBreakdown) -> TokenTotals:
    s = inputs.summary
    return TokenTotals(
        input_tokens=s.total_input_tokens,
        output_tokens=s.total_output_tokens,
        cache_read_tokens=s.total_cache_read_tokens,
        cache_write_tokens=s.total_cache_write_tokens,
        total_tokens=s.total_tokens,
    )


def _tokens_from_breakdown(_: MergeInputs, breakdown: ModelBreakdown) -> TokenTotals:
    parts = breakdown.components.values()
    return TokenTotals(
        input_tokens=sum(p.input_tokens for p in parts),
        output_tokens=sum(p.output_tokens for p in parts),
        cache_read_tokens=sum(p.cache_read_tokens for p in parts),
        cache_write_tokens=sum(p.cache_write_tokens for p in parts),
        total_tokens=sum(breakdown.model_tokens.values()),
    )


def _token_rules(breakdown: ModelBreakdown) -> Tuple[SourceRule[TokenTotals], ...]:
    return (
        SourceRule("live", lambda i: i.summary.has_token_signal, lambda i: _tokens_from_live(i, breakdown)),
        SourceRule("apportioned model tokens", _always, lambda i: _tokens_from_breakdown(i, breakdown)),
    )


def _cost_rules(breakdown: ModelBreakdown) -> Tuple[SourceRule[float], ...]:
    def _cache_cost(inputs: MergeInputs) -> float:
        total = 0.0
        for model_id in breakdown.model_tokens:
            usage = inputs.cache.model_usage.get(model_id)
            if usage is not None and usage.cost_usd is not None:
                total += usage.cost_usd
        return total

    return (
        SourceRule(
            "live",
            lambda i: i.summary.total_cost_usd > 0 or i.summary.has_token_signal,
            lambda i: i.summary.total_cost_usd,
        ),
        SourceRule("cache model usage", _always, _cache_cost),
    )


# -- rankings -----------------------------------------------------------------

def _percentage(count: int, total_tokens: int) -> float:
    return (count / total_tokens) * 100 if total_tokens > 0 else 0.0


def rank_models(
    model_tokens: Dict[str, int],
    total_tokens: int,
    directory: ModelDirectory,
) -> List[ModelStats]:
    """Rank every model by descending tokens, keeping encounter order on ties."""
    ranked = sorted(model_tokens.items(), key=lambda item: item[1], reverse=True)
    return [
        ModelStats(
            id=model_id,
            name=directory.get_model_display_name(model_id),
            provider_id=resolve_provider_id(directory, model_id),
            count=tokens,
            percentage=_percentage(tokens, total_tokens),
        )
        for model_id, tokens in ranked
    ]


def rank_providers(
    model_tokens: Dict[str, int],
    total_tokens: int,
    directory: ModelDirectory,
) -> List[ProviderStats]:
    provider_counts: Dict[str, int] = {}
    for model_id, tokens in model_tokens.items():
        provider_id = resolve_provider_id(directory, model_id)
        provider_counts[provider_id] = provider_counts.get(provider_id, 0) + tokens

    ranked = sorted(provider_counts.items(), key=lambda item: item[1], reverse=True)
    return [
        ProviderStats(
            id=provider_id,
            name=directory.get_provider_display_name(provider_id),
            count=count,
            percentage=_percentage(count, total_tokens),
        )
        for provider_id, count in ranked
    ]


# -- first session ------------------------------------------------------------

def _cache_first_session(inputs: MergeInputs) -> Optional[datetime]:
    raw = inputs.cache.first_session_date
    if raw is None:
        return None
    parsed = parse_timestamp(raw)
    if parsed is None:
        logger.warning("Ignoring unparseable firstSessionDate in stats cache: {}", raw)
    return parsed


def _first_session_rules(daily_activity: Dict[str, int]) -> Tuple[SourceRule[datetime], ...]:
    def _earliest_day(inputs: MergeInputs) -> datetime:
        day = min(parse_date_key(key) for key in daily_activity)
        return inputs.context.start_of_day(day)

    return (
        SourceRule("live", lambda i: i.summary.first_timestamp is not None, lambda i: i.summary.first_timestamp),
        SourceRule("cache", lambda i: _cache_first_session(i) is not None, _cache_first_session),
        SourceRule("earliest active day", lambda i: bool(daily_activity), _earliest_day),
        SourceRule("now", _always, lambda i: i.context.now()),
    )


# -- snapshot -----------------------------------------------------------------

def merge_stats(
    period: ReportPeriod,
    summary: UsageSummary,
    cache: StatsCache,
    context: UsageContext,
    total_projects: int = 0,
) -> StatisticsSnapshot:
    """Reconcile live and cached aggregates into a StatisticsSnapshot.

    Args:
        period: Requested year or month
        summary: Live recomputation from raw logs
        cache: Persisted stats cache (empty when absent)
        context: Run context supplying the directory and clock
        total_projects: Distinct projects in the period

    Returns:
        Immutable StatisticsSnapshot
    """
    inputs = MergeInputs(period=period, summary=summary, cache=cache, context=context)

    _, activity = resolve("daily activity", ACTIVITY_RULES, inputs)
    daily_activity = activity.daily_activity

    total_tool_calls = activity.total_tool_calls
    if total_tool_calls == 0:
        total_tool_calls = unfiltered_cache_backstop(cache, "tool_call_count")
    total_sessions = activity.total_sessions
    if total_sessions == 0:
        total_sessions = unfiltered_cache_backstop(cache, "session_count")

    _, model_tokens = resolve("model tokens", MODEL_TOKEN_RULES, inputs)
    breakdown = build_model_breakdown(model_tokens, cache)

    _, tokens = resolve("token totals", _token_rules(breakdown), inputs)
    _, total_cost = resolve("cost", _cost_rules(breakdown), inputs)

    directory = context.directory
    top_models = rank_models(breakdown.model_tokens, tokens.total_tokens, directory)[:TOP_N]
    top_providers = rank_providers(breakdown.model_tokens, tokens.total_tokens, directory)[:TOP_N]

    now = context.now()
    streaks = calculate_streaks(daily_activity, period, now.date())

    cache_denominator = tokens.cache_read_tokens + tokens.cache_write_tokens
    cache_hit_rate = (
        (tokens.cache_read_tokens / cache_denominator) * 100 if cache_denominator > 0 else 0.0
    )

    _, first_session_date = resolve("first session", _first_session_rules(daily_activity), inputs)
    first_session_date = context.to_local(first_session_date)
    days_since = math.floor((now - first_session_date).total_seconds() / 86400)

    return StatisticsSnapshot(
        year=period.year,
        month=period.month,
        month_name=period.month_name,
        first_session_date=first_session_date,
        days_since_first_session=days_since,
        total_sessions=total_sessions,
        total_messages=activity.total_messages,
        total_projects=total_projects,
        total_input_tokens=tokens.input_tokens,
        total_output_tokens=tokens.output_tokens,
        total_tokens=tokens.total_tokens,
        total_cache_read_tokens=tokens.cache_read_tokens,
        total_cache_write_tokens=tokens.cache_write_tokens,
        cache_hit_rate=cache_hit_rate,
        total_web_search_requests=breakdown.web_search_requests,
        total_tool_calls=total_tool_calls,
        peak_context_window=breakdown.peak_context_window,
        total_cost=total_cost,
        has_usage_cost=total_cost > 0,
        top_models=tuple(top_models),
        top_providers=tuple(top_providers),
        max_streak=streaks.max_streak,
        current_streak=streaks.current_streak,
        max_streak_days=streaks.max_streak_days,
        daily_activity=MappingProxyType(daily_activity),
        most_active_day=find_most_active_day(daily_activity),
        weekday_activity=build_weekday_activity(daily_activity),
        monthly_activity=build_monthly_activity(daily_activity),
    )
