"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for engine configs.
"""

import os
import tempfile
from decimal import Decimal

import pytest
import yaml

from usage_wrapped.config.loader import (
    DEFAULT_DATA_DIRS,
    PriceOverride,
    WrappedConfig,
    default_config,
    load_config,
)
from usage_wrapped.core.context import UsageContext


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data: dict, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "data_dirs": ["/data/one", "/data/two"],
            "config_dir_env": "WRAPPED_DIRS",
            "projects_dir": "logs",
            "stats_cache_file": "cache.json",
            "timezone": "Europe/Berlin",
            "pricing": {
                "my-model": {
                    "input": 2.5,
                    "output": 10,
                    "cache_read": "0.25",
                }
            }
        }

        config = load_config(self._write_config(config_data))

        assert config.data_dirs == ("/data/one", "/data/two")
        assert config.config_dir_env == "WRAPPED_DIRS"
        assert config.projects_dir == "logs"
        assert config.stats_cache_file == "cache.json"
        assert config.history_file == "history.jsonl"
        assert config.timezone == "Europe/Berlin"

        price = config.pricing["my-model"]
        assert price.input == Decimal("2.5")
        assert price.output == Decimal("10")
        assert price.cache_read == Decimal("0.25")
        assert price.cache_write == Decimal("0")

    def test_partial_config_keeps_defaults(self):
        """Test that omitted keys fall back to built-in values."""
        config = load_config(self._write_config({"projects_dir": "projects"}))

        assert config.data_dirs == DEFAULT_DATA_DIRS
        assert config.config_dir_env == "CLAUDE_CONFIG_DIR"
        assert config.log_extension == ".jsonl"
        assert config.timezone is None
        assert config.pricing == {}

    def test_data_dirs_expand_user(self):
        """Test that ~ in data_dirs is expanded."""
        config = load_config(self._write_config({"data_dirs": ["~/somewhere"]}))
        assert config.data_dirs[0] == os.path.expanduser("~/somewhere")

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config("nonexistent.yaml")

    def test_empty_config_raises_error(self):
        """Test that empty config file raises error."""
        config_path = self._write_config({})

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_config(config_path)

    def test_non_mapping_config_raises_error(self):
        """Test that a YAML list at top level is rejected."""
        config_path = os.path.join(self.temp_dir, "list.yaml")
        with open(config_path, 'w') as f:
            f.write("- a\n- b\n")

        with pytest.raises(ValueError, match="must be a dictionary"):
            load_config(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys raise error."""
        config_path = self._write_config({"projects_dir": "projects", "unknown_key": "value"})

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(config_path)

    def test_data_dirs_must_be_list_of_strings(self):
        """Test that data_dirs type is validated."""
        config_path = self._write_config({"data_dirs": "/just/one"})

        with pytest.raises(ValueError, match="'data_dirs' must be a list of strings"):
            load_config(config_path)

    def test_empty_data_dirs_raise_error(self):
        """Test that an empty candidate list is rejected."""
        config_path = self._write_config({"data_dirs": []})

        with pytest.raises(ValueError, match="data_dirs cannot be empty"):
            load_config(config_path)

    def test_blank_string_setting_raises_error(self):
        """Test that string settings cannot be blank."""
        config_path = self._write_config({"projects_dir": "  "})

        with pytest.raises(ValueError, match="'projects_dir' must be a non-empty string"):
            load_config(config_path)

    def test_log_extension_must_start_with_dot(self):
        """Test log extension validation."""
        config_path = self._write_config({"log_extension": "jsonl"})

        with pytest.raises(ValueError, match="log_extension must start with"):
            load_config(config_path)

    def test_unknown_timezone_raises_error(self):
        """Test that timezone names are validated."""
        config_path = self._write_config({"timezone": "Mars/Olympus_Mons"})

        with pytest.raises(ValueError, match="Unknown timezone"):
            load_config(config_path)


class TestPricingOverrides:
    """Test validation of configured model prices."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _load(self, pricing) -> WrappedConfig:
        config_path = os.path.join(self.temp_dir, "config.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump({"pricing": pricing}, f)
        return load_config(config_path)

    def test_pricing_must_be_mapping(self):
        """Test that pricing section must be a dictionary."""
        with pytest.raises(ValueError, match="'pricing' must be a dictionary"):
            self._load(["model"])

    def test_model_pricing_must_be_mapping(self):
        """Test that each model's prices must be a dictionary."""
        with pytest.raises(ValueError, match="Pricing for 'm' must be a dictionary"):
            self._load({"m": 3})

    def test_missing_output_price_raises_error(self):
        """Test that input and output prices are required."""
        with pytest.raises(ValueError, match="Missing required 'output' in pricing.m"):
            self._load({"m": {"input": 1}})

    def test_unknown_price_key_raises_error(self):
        """Test that unknown price keys are rejected."""
        with pytest.raises(ValueError, match="Unknown keys in pricing.m"):
            self._load({"m": {"input": 1, "output": 2, "reasoning": 3}})

    def test_negative_price_raises_error(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValueError, match="'output' in pricing.m must be >= 0"):
            self._load({"m": {"input": 1, "output": -2}})

    def test_non_numeric_price_raises_error(self):
        """Test that non-numeric prices are rejected."""
        with pytest.raises(ValueError, match="'input' in pricing.m must be a number"):
            self._load({"m": {"input": "cheap", "output": 2}})

    def test_boolean_price_raises_error(self):
        """Test that booleans are not accepted as prices."""
        with pytest.raises(ValueError, match="must be a number"):
            self._load({"m": {"input": True, "output": 2}})


class TestConfigDefaults:
    """Test built-in configuration values."""

    def test_default_config(self):
        """Test the built-in candidate directories and file names."""
        config = default_config()
        assert config.data_dirs == DEFAULT_DATA_DIRS
        assert config.data_dirs[0].endswith(os.path.join(".config", "claude"))
        assert config.data_dirs[1].endswith(".claude")
        assert config.projects_dir == "projects"
        assert config.stats_cache_file == "stats-cache.json"

    def test_default_timezone_is_local(self):
        """Test that no timezone means local time."""
        assert default_config().get_tzinfo() is None

    def test_configured_timezone(self):
        """Test that a configured timezone resolves to tzinfo."""
        config = WrappedConfig(timezone="UTC")
        assert config.get_tzinfo().key == "UTC"

    def test_price_override_rejects_negative(self):
        """Test PriceOverride validation."""
        with pytest.raises(ValueError, match="input price cannot be negative"):
            PriceOverride(input=Decimal("-1"), output=Decimal("1"))


class TestContextFromConfig:
    """Test building a run context from configuration."""

    def test_price_overrides_are_applied(self):
        """Test that configured prices replace the built-in ones."""
        config = WrappedConfig(
            timezone="UTC",
            pricing={"claude-sonnet-4": PriceOverride(input=Decimal("9"), output=Decimal("10"))},
        )

        context = UsageContext.from_config(config)

        pricing = context.pricing.get_pricing("claude-sonnet-4-20250514")
        assert pricing.input_cost_per_1m == Decimal("9")
        assert pricing.cache_read_cost_per_1m == Decimal("0")
        assert context.tz.key == "UTC"
        assert context.config is config

    def test_contexts_do_not_share_memo(self):
        """Test that each context starts with an empty pricing memo."""
        first = UsageContext.from_config(default_config())
        first.pricing.get_pricing("claude-opus-4")
        second = UsageContext.from_config(default_config())
        assert first.pricing.lookups == 1
        assert second.pricing.lookups == 0
