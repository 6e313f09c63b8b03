"""
Data models for ingested records and computed statistics.

Defines the strict record types built at the ingestion boundary and the
immutable statistics snapshot handed to presentation code.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from usage_wrapped.core.token_counter import TokenUsage, ensure_count, finite_or_none


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an event timestamp into an aware datetime.

    Accepts ISO-8601 strings (naive values are taken as UTC) and epoch
    milliseconds. Returns None for anything else.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class RawEvent:
    """One logged interaction, validated at the ingestion boundary.

    Read once per run and never modified.
    """
    timestamp: Optional[datetime]
    session_id: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[TokenUsage] = None
    cost_usd: Optional[float] = None
    message_id: Optional[str] = None
    request_id: Optional[str] = None

    @property
    def identity_key(self) -> Optional[str]:
        """Dedup key; None when either identifier is missing."""
        if not self.message_id or not self.request_id:
            return None
        return f"{self.message_id}:{self.request_id}"

    @classmethod
    def from_record(cls, record: Any) -> Optional["RawEvent"]:
        """Build from one parsed JSON log line.

        Returns None when the record is not a JSON object. Unknown fields
        are ignored and mistyped optional fields are treated as absent.
        """
        if not isinstance(record, dict):
            return None

        message = record.get("message")
        if not isinstance(message, dict):
            message = {}

        usage_block = message.get("usage")
        usage = TokenUsage.from_usage_block(usage_block) if isinstance(usage_block, dict) else None

        return cls(
            timestamp=parse_timestamp(record.get("timestamp")),
            session_id=_optional_str(record.get("sessionId")),
            model=_optional_str(message.get("model")),
            usage=usage,
            cost_usd=finite_or_none(record.get("costUSD")),
            message_id=_optional_str(message.get("id")),
            request_id=_optional_str(record.get("requestId")),
        )


@dataclass(frozen=True)
class CacheDayActivity:
    """One per-day entry of the stats cache."""
    date: str
    message_count: int = 0
    session_count: int = 0
    tool_call_count: int = 0


@dataclass(frozen=True)
class CacheDayModelTokens:
    """Per-day, per-model token totals from the stats cache."""
    date: str
    tokens_by_model: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CacheModelUsage:
    """Aggregate usage record for one model from the stats cache."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    web_search_requests: int = 0
    cost_usd: Optional[float] = None
    context_window: int = 0

    @property
    def token_usage(self) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_read_tokens=self.cache_read_tokens,
            cache_write_tokens=self.cache_write_tokens,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheModelUsage":
        return cls(
            input_tokens=ensure_count(data.get("inputTokens")),
            output_tokens=ensure_count(data.get("outputTokens")),
            cache_read_tokens=ensure_count(data.get("cacheReadInputTokens")),
            cache_write_tokens=ensure_count(data.get("cacheCreationInputTokens")),
            web_search_requests=ensure_count(data.get("webSearchRequests")),
            cost_usd=finite_or_none(data.get("costUSD")),
            context_window=ensure_count(data.get("contextWindow")),
        )


@dataclass(frozen=True)
class StatsCache:
    """Previously computed rollup, read-only to this engine.

    An empty instance stands for a missing cache file.
    """
    daily_activity: Tuple[CacheDayActivity, ...] = ()
    daily_model_tokens: Tuple[CacheDayModelTokens, ...] = ()
    model_usage: Dict[str, CacheModelUsage] = field(default_factory=dict)
    first_session_date: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.daily_activity or self.daily_model_tokens or self.model_usage)


@dataclass(frozen=True)
class ModelStats:
    """Ranking entry for a model."""
    id: str
    name: str
    provider_id: str
    count: int
    percentage: float


@dataclass(frozen=True)
class ProviderStats:
    """Ranking entry for a provider."""
    id: str
    name: str
    count: int
    percentage: float


@dataclass(frozen=True)
class MostActiveDay:
    date: str
    count: int
    formatted_date: str


@dataclass(frozen=True)
class WeekdayActivity:
    """Event counts per weekday, index 0 is Sunday."""
    counts: Tuple[int, ...]
    most_active_day: int
    most_active_day_name: str
    max_count: int


@dataclass(frozen=True)
class MonthlyActivity:
    """Event counts per month, index 0 is January."""
    counts: Tuple[int, ...]
    most_active_month: int
    most_active_month_name: str
    max_count: int


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Final statistics for one requested year or month."""
    year: int
    month: Optional[int]
    month_name: Optional[str]

    first_session_date: datetime
    days_since_first_session: int

    total_sessions: int
    total_messages: int
    total_projects: int

    total_input_tokens: int
    total_output_tokens: int
    total_tokens: int
    total_cache_read_tokens: int
    total_cache_write_tokens: int
    cache_hit_rate: float
    total_web_search_requests: int
    total_tool_calls: int
    peak_context_window: int

    total_cost: float
    has_usage_cost: bool

    top_models: Tuple[ModelStats, ...]
    top_providers: Tuple[ProviderStats, ...]

    max_streak: int
    current_streak: int
    max_streak_days: FrozenSet[str]

    daily_activity: Mapping[str, int]
    most_active_day: Optional[MostActiveDay]
    weekday_activity: WeekdayActivity
    monthly_activity: MonthlyActivity

    @property
    def has_activity(self) -> bool:
        """False when no data source produced any activity."""
        return bool(self.daily_activity) or self.total_tokens > 0
