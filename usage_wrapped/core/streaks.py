"""
Temporal statistics over daily activity.

Computes streaks, the most active day, and weekday/monthly distributions
from a period-filtered map of YYYY-MM-DD keys to event counts.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import FrozenSet, List, Mapping, Optional, Sequence

from usage_wrapped.storage.models import MonthlyActivity, MostActiveDay, WeekdayActivity
from .context import ReportPeriod, format_date_key, parse_date_key

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
SHORT_MONTH_NAMES = tuple(name[:3] for name in MONTH_NAMES)


@dataclass(frozen=True)
class StreakResult:
    max_streak: int
    current_streak: int
    max_streak_days: FrozenSet[str]


def calculate_streaks(
    daily_activity: Mapping[str, int],
    period: ReportPeriod,
    today: date,
) -> StreakResult:
    """Compute the longest and the current run of consecutive active days.

    The longest run only considers dates inside the period; on ties the
    earliest run is kept. The current streak counts back from today, or
    from yesterday when today has no activity yet, and is zero otherwise.

    Args:
        daily_activity: Period-filtered activity map
        period: Requested year or month
        today: Local calendar date of the run

    Returns:
        StreakResult with the max streak days for heatmap highlighting
    """
    active_days: List[date] = sorted(
        day for day in (parse_date_key(key) for key in daily_activity)
        if day is not None and period.contains(day)
    )

    if not active_days:
        return StreakResult(max_streak=0, current_streak=0, max_streak_days=frozenset())

    max_streak = 1
    temp_streak = 1
    temp_start = 0
    max_start = 0
    max_end = 0

    for i in range(1, len(active_days)):
        if (active_days[i] - active_days[i - 1]).days == 1:
            temp_streak += 1
            if temp_streak > max_streak:
                max_streak = temp_streak
                max_start = temp_start
                max_end = i
        else:
            temp_streak = 1
            temp_start = i

    max_streak_days = frozenset(
        format_date_key(day) for day in active_days[max_start:max_end + 1]
    )

    return StreakResult(
        max_streak=max_streak,
        current_streak=calculate_current_streak(daily_activity, today),
        max_streak_days=max_streak_days,
    )


def calculate_current_streak(daily_activity: Mapping[str, int], today: date) -> int:
    yesterday = today - timedelta(days=1)
    if format_date_key(today) in daily_activity:
        start = today
    elif format_date_key(yesterday) in daily_activity:
        start = yesterday
    else:
        return 0

    streak = 1
    check = start - timedelta(days=1)
    while format_date_key(check) in daily_activity:
        streak += 1
        check -= timedelta(days=1)
    return streak


def find_most_active_day(daily_activity: Mapping[str, int]) -> Optional[MostActiveDay]:
    """Return the date with the highest count; the earliest date wins ties."""
    max_date = None
    max_count = 0
    for key in sorted(daily_activity):
        count = daily_activity[key]
        if count > max_count:
            max_count = count
            max_date = key

    if max_date is None:
        return None

    day = parse_date_key(max_date)
    formatted = f"{SHORT_MONTH_NAMES[day.month - 1]} {day.day}" if day else max_date
    return MostActiveDay(date=max_date, count=max_count, formatted_date=formatted)


def _argmax(counts: Sequence[int]) -> int:
    best = 0
    for i, count in enumerate(counts):
        if count > counts[best]:
            best = i
    return best


def build_weekday_activity(daily_activity: Mapping[str, int]) -> WeekdayActivity:
    counts = [0] * 7
    for key, count in daily_activity.items():
        day = parse_date_key(key)
        if day is not None:
            # date.weekday() is Monday-based; buckets start on Sunday
            counts[(day.weekday() + 1) % 7] += count

    best = _argmax(counts)
    return WeekdayActivity(
        counts=tuple(counts),
        most_active_day=best,
        most_active_day_name=WEEKDAY_NAMES[best],
        max_count=counts[best],
    )


def build_monthly_activity(daily_activity: Mapping[str, int]) -> MonthlyActivity:
    counts = [0] * 12
    for key, count in daily_activity.items():
        day = parse_date_key(key)
        if day is not None:
            counts[day.month - 1] += count

    best = _argmax(counts)
    return MonthlyActivity(
        counts=tuple(counts),
        most_active_month=best,
        most_active_month_name=MONTH_NAMES[best],
        max_count=counts[best],
    )
