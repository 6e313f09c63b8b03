"""
Pricing calculations and rate management.

Estimates cost for log records that carry token usage but no explicit cost.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping, Optional

from loguru import logger

from usage_wrapped.config.loader import PriceOverride
from .token_counter import TokenUsage

PER_MILLION = Decimal("1000000")

_DATE_SUFFIX_RE = re.compile(r"-\d{8}$")


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a specific model."""
    input_cost_per_1m: Decimal
    output_cost_per_1m: Decimal
    cache_read_cost_per_1m: Decimal = Decimal("0")
    cache_write_cost_per_1m: Decimal = Decimal("0")

    @classmethod
    def from_override(cls, override: PriceOverride) -> "ModelPricing":
        return cls(
            input_cost_per_1m=override.input,
            output_cost_per_1m=override.output,
            cache_read_cost_per_1m=override.cache_read,
            cache_write_cost_per_1m=override.cache_write,
        )


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for known models."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        """Get pricing for a specific model.

        Tries the exact identifier first, then the identifier with its
        trailing release date removed, then the longest known prefix.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or None when the model is unknown
        """
        if model in self.prices:
            return self.prices[model]

        undated = _DATE_SUFFIX_RE.sub("", model)
        if undated in self.prices:
            return self.prices[undated]

        best_match = None
        for known in self.prices:
            if model.startswith(known) and (best_match is None or len(known) > len(best_match)):
                best_match = known
        if best_match is not None:
            return self.prices[best_match]
        return None

    def with_overrides(self, overrides: Mapping[str, PriceOverride]) -> "PricingTable":
        """Return a copy with configured prices replacing built-in ones."""
        prices = dict(self.prices)
        for model, override in overrides.items():
            prices[model] = ModelPricing.from_override(override)
        return PricingTable(prices)


def _price(input_cost: str, output_cost: str, cache_read: str, cache_write: str) -> ModelPricing:
    return ModelPricing(
        input_cost_per_1m=Decimal(input_cost),
        output_cost_per_1m=Decimal(output_cost),
        cache_read_cost_per_1m=Decimal(cache_read),
        cache_write_cost_per_1m=Decimal(cache_write),
    )


# USD per million tokens: input, output, cache read, cache write
PRICING_TABLE = PricingTable({
    "claude-opus-4-5": _price("5.00", "25.00", "0.50", "6.25"),
    "claude-opus-4-1": _price("15.00", "75.00", "1.50", "18.75"),
    "claude-opus-4": _price("15.00", "75.00", "1.50", "18.75"),
    "claude-sonnet-4-5": _price("3.00", "15.00", "0.30", "3.75"),
    "claude-sonnet-4": _price("3.00", "15.00", "0.30", "3.75"),
    "claude-3-7-sonnet": _price("3.00", "15.00", "0.30", "3.75"),
    "claude-3-5-sonnet": _price("3.00", "15.00", "0.30", "3.75"),
    "claude-haiku-4-5": _price("1.00", "5.00", "0.10", "1.25"),
    "claude-3-5-haiku": _price("0.80", "4.00", "0.08", "1.00"),
    "claude-3-opus": _price("15.00", "75.00", "1.50", "18.75"),
    "claude-3-haiku": _price("0.25", "1.25", "0.03", "0.30"),
})


def calculate_cost(pricing: ModelPricing, usage: TokenUsage) -> float:
    """Calculate cost in USD for one record's token usage.

    No rounding is applied; the figure is summed into a yearly total.

    Args:
        pricing: Unit prices for the model
        usage: Token usage data

    Returns:
        Estimated cost in USD
    """
    total = (
        Decimal(usage.input_tokens) * pricing.input_cost_per_1m
        + Decimal(usage.output_tokens) * pricing.output_cost_per_1m
        + Decimal(usage.cache_read_tokens) * pricing.cache_read_cost_per_1m
        + Decimal(usage.cache_write_tokens) * pricing.cache_write_cost_per_1m
    )
    return float(total / PER_MILLION)


@dataclass
class CachedPricingResolver:
    """Memoizes model price lookups for the duration of one run.

    Unknown models are memoized too, so each model is looked up at most once.
    """
    table: PricingTable = PRICING_TABLE
    _memo: Dict[str, Optional[ModelPricing]] = field(default_factory=dict)

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        if model not in self._memo:
            pricing = self.table.get_pricing(model)
            if pricing is None:
                logger.debug("No pricing known for model {}", model)
            self._memo[model] = pricing
        return self._memo[model]

    @property
    def lookups(self) -> int:
        """Number of distinct models resolved so far."""
        return len(self._memo)
