"""
Run context shared by the reducer and the merger.

Bundles configuration with the run-scoped collaborators (memoized pricing,
model directory, reporting timezone and clock) so that each invocation, and
each test, works against its own isolated set.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from typing import Callable, Optional

from usage_wrapped.config.loader import WrappedConfig, default_config
from .directory import DEFAULT_DIRECTORY, ModelDirectory
from .pricing import PRICING_TABLE, CachedPricingResolver


@dataclass(frozen=True)
class ReportPeriod:
    """The requested year, optionally narrowed to one month (1-12)."""
    year: int
    month: Optional[int] = None

    def __post_init__(self):
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError("month must be between 1 and 12")

    @property
    def month_name(self) -> Optional[str]:
        if self.month is None:
            return None
        return calendar.month_name[self.month]

    def contains(self, day: date) -> bool:
        if day.year != self.year:
            return False
        return self.month is None or day.month == self.month

    def contains_key(self, date_key: str) -> bool:
        """Check a YYYY-MM-DD key; malformed keys are never in the period."""
        day = parse_date_key(date_key)
        return day is not None and self.contains(day)


def parse_date_key(date_key: str) -> Optional[date]:
    if not isinstance(date_key, str):
        return None
    try:
        return date.fromisoformat(date_key)
    except ValueError:
        return None


def format_date_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


@dataclass
class UsageContext:
    """Collaborators for one aggregation run."""
    config: WrappedConfig = field(default_factory=default_config)
    pricing: CachedPricingResolver = field(default_factory=CachedPricingResolver)
    directory: ModelDirectory = DEFAULT_DIRECTORY
    tz: Optional[tzinfo] = None
    clock: Optional[Callable[[], datetime]] = None

    @classmethod
    def from_config(cls, config: WrappedConfig) -> "UsageContext":
        """Build a fresh context, applying configured price overrides."""
        return cls(
            config=config,
            pricing=CachedPricingResolver(table=PRICING_TABLE.with_overrides(config.pricing)),
            tz=config.get_tzinfo(),
        )

    def now(self) -> datetime:
        """Current time as an aware datetime in the reporting timezone."""
        current = self.clock() if self.clock else datetime.now(self.tz)
        return self.to_local(current)

    def to_local(self, moment: datetime) -> datetime:
        """Convert to the reporting timezone (process local when unset)."""
        return moment.astimezone(self.tz)

    def local_date(self, moment: datetime) -> date:
        return self.to_local(moment).date()

    def start_of_day(self, day: date) -> datetime:
        """Local midnight of a calendar date."""
        midnight = datetime.combine(day, time())
        if self.tz is None:
            return midnight.astimezone()
        return midnight.replace(tzinfo=self.tz)
