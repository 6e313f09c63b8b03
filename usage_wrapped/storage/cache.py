"""
Stats cache reader.

Loads the previously persisted summary file. The file is never written
by this package.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from usage_wrapped.core.token_counter import ensure_count
from .models import CacheDayActivity, CacheDayModelTokens, CacheModelUsage, StatsCache


class StatsCacheError(ValueError):
    """Raised when the stats cache exists but is not usable."""
    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


def load_stats_cache(path: Optional[Path]) -> StatsCache:
    """Load the stats cache from disk.

    A missing file is not an error and yields an empty StatsCache, so
    callers can report "no data". A file that is not valid JSON, or whose
    sections have the wrong shape, raises instead of degrading to empty.

    Args:
        path: Location of the cache file, or None when no data dir exists

    Returns:
        Parsed StatsCache

    Raises:
        StatsCacheError: If the cache file is corrupt or mis-shaped
    """
    if path is None or not Path(path).exists():
        logger.debug("No stats cache at {}", path)
        return StatsCache()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise StatsCacheError(f"Invalid JSON in stats cache {path}: {e}", path)
    except (OSError, UnicodeDecodeError) as e:
        raise StatsCacheError(f"Cannot read stats cache {path}: {e}", path)

    return parse_stats_cache(raw, path)


def parse_stats_cache(raw: Any, path: Optional[Path] = None) -> StatsCache:
    """Validate a decoded cache document into a StatsCache."""
    if not isinstance(raw, dict):
        raise StatsCacheError("Stats cache must be a JSON object", path)

    daily_activity = [
        CacheDayActivity(
            date=entry["date"],
            message_count=ensure_count(entry.get("messageCount")),
            session_count=ensure_count(entry.get("sessionCount")),
            tool_call_count=ensure_count(entry.get("toolCallCount")),
        )
        for entry in _entries(raw, "dailyActivity", path)
    ]

    daily_model_tokens = []
    for entry in _entries(raw, "dailyModelTokens", path):
        tokens_by_model = entry.get("tokensByModel")
        if tokens_by_model is None:
            tokens_by_model = {}
        elif not isinstance(tokens_by_model, dict):
            raise StatsCacheError("'tokensByModel' must be an object", path)
        daily_model_tokens.append(CacheDayModelTokens(
            date=entry["date"],
            tokens_by_model={str(k): ensure_count(v) for k, v in tokens_by_model.items()},
        ))

    model_usage_data = raw.get("modelUsage")
    if model_usage_data is None:
        model_usage_data = {}
    elif not isinstance(model_usage_data, dict):
        raise StatsCacheError("'modelUsage' must be an object", path)
    model_usage: Dict[str, CacheModelUsage] = {}
    for model_id, usage in model_usage_data.items():
        if not isinstance(usage, dict):
            raise StatsCacheError(f"Usage for model '{model_id}' must be an object", path)
        model_usage[str(model_id)] = CacheModelUsage.from_dict(usage)

    first_session_date = raw.get("firstSessionDate")

    return StatsCache(
        daily_activity=tuple(daily_activity),
        daily_model_tokens=tuple(daily_model_tokens),
        model_usage=model_usage,
        first_session_date=first_session_date if isinstance(first_session_date, str) else None,
    )


def _entries(raw: Dict[str, Any], key: str, path: Optional[Path]) -> List[Dict[str, Any]]:
    """Return the dated entries of a list section.

    Entries without a string date are dropped, as they cannot be placed
    on the calendar.
    """
    section = raw.get(key)
    if section is None:
        return []
    if not isinstance(section, list):
        raise StatsCacheError(f"'{key}' must be a list", path)

    entries = []
    for entry in section:
        if not isinstance(entry, dict):
            raise StatsCacheError(f"Entries of '{key}' must be objects", path)
        if not isinstance(entry.get("date"), str) or not entry["date"]:
            continue
        entries.append(entry)
    return entries
