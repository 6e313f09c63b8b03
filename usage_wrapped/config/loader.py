"""
Configuration management and loading.

Handles data directory discovery settings, timezone and pricing overrides.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


DEFAULT_DATA_DIRS = (
    str(Path.home() / ".config" / "claude"),
    str(Path.home() / ".claude"),
)

PRICE_FIELDS = ("input", "output", "cache_read", "cache_write")


@dataclass(frozen=True)
class PriceOverride:
    """Unit prices in USD per million tokens for one model."""
    input: Decimal
    output: Decimal
    cache_read: Decimal = Decimal("0")
    cache_write: Decimal = Decimal("0")

    def __post_init__(self):
        """Validate prices are not negative."""
        for name in PRICE_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} price cannot be negative")


@dataclass(frozen=True)
class WrappedConfig:
    """Complete engine configuration."""
    data_dirs: Tuple[str, ...] = DEFAULT_DATA_DIRS
    config_dir_env: str = "CLAUDE_CONFIG_DIR"
    projects_dir: str = "projects"
    log_extension: str = ".jsonl"
    stats_cache_file: str = "stats-cache.json"
    history_file: str = "history.jsonl"
    timezone: Optional[str] = None
    pricing: Dict[str, PriceOverride] = field(default_factory=dict)

    def __post_init__(self):
        if not self.data_dirs:
            raise ValueError("data_dirs cannot be empty")
        if not self.log_extension.startswith("."):
            raise ValueError("log_extension must start with '.'")

    def get_tzinfo(self):
        """Timezone used for calendar-date bucketing (None means local time)."""
        if self.timezone is None:
            return None
        return ZoneInfo(self.timezone)


def default_config() -> WrappedConfig:
    """Built-in configuration used when no config file is given."""
    return WrappedConfig()


def load_config(path: str) -> WrappedConfig:
    """Load and validate engine configuration from YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated WrappedConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {
        'data_dirs', 'config_dir_env', 'projects_dir', 'log_extension',
        'stats_cache_file', 'history_file', 'timezone', 'pricing'
    }
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    kwargs = {}

    if 'data_dirs' in raw_config:
        data_dirs = raw_config['data_dirs']
        if not isinstance(data_dirs, list) or not all(isinstance(d, str) for d in data_dirs):
            raise ValueError("'data_dirs' must be a list of strings")
        kwargs['data_dirs'] = tuple(str(Path(d).expanduser()) for d in data_dirs)

    for key in ('config_dir_env', 'projects_dir', 'log_extension',
                'stats_cache_file', 'history_file'):
        if key in raw_config:
            value = raw_config[key]
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"'{key}' must be a non-empty string")
            kwargs[key] = value

    if raw_config.get('timezone') is not None:
        tz_name = raw_config['timezone']
        if not isinstance(tz_name, str):
            raise ValueError("'timezone' must be a string")
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {tz_name}")
        kwargs['timezone'] = tz_name

    pricing_data = raw_config.get('pricing', {}) or {}
    if not isinstance(pricing_data, dict):
        raise ValueError("'pricing' must be a dictionary")

    pricing = {}
    for model_id, price_data in pricing_data.items():
        if not isinstance(price_data, dict):
            raise ValueError(f"Pricing for '{model_id}' must be a dictionary")
        pricing[str(model_id)] = _parse_price_override(price_data, f"pricing.{model_id}")
    kwargs['pricing'] = pricing

    return WrappedConfig(**kwargs)


def _parse_price_override(data: Dict, path: str) -> PriceOverride:
    """Parse and validate one model's unit prices.

    Args:
        data: Price mapping for the model
        path: Path for error messages

    Returns:
        Validated PriceOverride

    Raises:
        ValueError: If prices are missing or invalid
    """
    unknown_keys = set(data.keys()) - set(PRICE_FIELDS)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    for required in ('input', 'output'):
        if required not in data:
            raise ValueError(f"Missing required '{required}' in {path}")

    prices = {}
    for name in PRICE_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"'{name}' in {path} must be a number")
        try:
            prices[name] = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"'{name}' in {path} must be a number")
        if prices[name] < 0:
            raise ValueError(f"'{name}' in {path} must be >= 0")

    return PriceOverride(**prices)
