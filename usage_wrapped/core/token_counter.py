"""
Token counting and usage tracking.

Holds the four-way token breakdown reported by each logged interaction.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class TokenUsage:
    """Token usage for one record or one aggregate.

    Cache-write tokens are the tokens spent creating prompt cache entries,
    cache-read tokens the ones served from the cache.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens used across all four categories."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_read_tokens
            + self.cache_write_tokens
        )

    @classmethod
    def from_usage_block(cls, block: Mapping[str, Any]) -> "TokenUsage":
        """Build from a raw log usage block, defaulting bad fields to zero."""
        return cls(
            input_tokens=ensure_count(block.get("input_tokens")),
            output_tokens=ensure_count(block.get("output_tokens")),
            cache_read_tokens=ensure_count(block.get("cache_read_input_tokens")),
            cache_write_tokens=ensure_count(block.get("cache_creation_input_tokens")),
        )


def ensure_number(value: Any) -> float:
    """Return value if it is a finite number, else 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return value


def ensure_count(value: Any) -> int:
    """Like ensure_number, as a whole token count.

    Any fractional part is discarded (12.9 counts as 12), so every total
    built from these counts stays integral.
    """
    return int(ensure_number(value))


def finite_or_none(value: Any) -> Optional[float]:
    """Return value as a float if it is a finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)
