"""
Model and provider directory.

Maps model identifiers to display names and owning providers.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

UNKNOWN_PROVIDER = "unknown"

_DATE_SUFFIX_RE = re.compile(r"-\d{8}$")


@dataclass(frozen=True)
class ModelInfo:
    """Display metadata for a model."""
    name: str
    provider_id: str


@dataclass(frozen=True)
class ModelDirectory:
    """Lookup table of known models and providers."""
    models: Dict[str, ModelInfo]
    providers: Dict[str, str]

    def lookup(self, model_id: str) -> Optional[ModelInfo]:
        """Find a model by exact identifier or with its release date stripped."""
        if model_id in self.models:
            return self.models[model_id]
        return self.models.get(_DATE_SUFFIX_RE.sub("", model_id))

    def get_model_display_name(self, model_id: str) -> str:
        info = self.lookup(model_id)
        return info.name if info else model_id

    def get_model_provider(self, model_id: str) -> Optional[str]:
        info = self.lookup(model_id)
        return info.provider_id if info else None

    def get_provider_display_name(self, provider_id: str) -> str:
        if provider_id in self.providers:
            return self.providers[provider_id]
        return provider_id.replace("-", " ").title()


DEFAULT_DIRECTORY = ModelDirectory(
    models={
        "claude-opus-4-5": ModelInfo("Claude Opus 4.5", "anthropic"),
        "claude-opus-4-1": ModelInfo("Claude Opus 4.1", "anthropic"),
        "claude-opus-4": ModelInfo("Claude Opus 4", "anthropic"),
        "claude-sonnet-4-5": ModelInfo("Claude Sonnet 4.5", "anthropic"),
        "claude-sonnet-4": ModelInfo("Claude Sonnet 4", "anthropic"),
        "claude-3-7-sonnet": ModelInfo("Claude Sonnet 3.7", "anthropic"),
        "claude-3-5-sonnet": ModelInfo("Claude Sonnet 3.5", "anthropic"),
        "claude-haiku-4-5": ModelInfo("Claude Haiku 4.5", "anthropic"),
        "claude-3-5-haiku": ModelInfo("Claude Haiku 3.5", "anthropic"),
        "claude-3-opus": ModelInfo("Claude Opus 3", "anthropic"),
        "claude-3-haiku": ModelInfo("Claude Haiku 3", "anthropic"),
    },
    providers={
        "anthropic": "Anthropic",
        "openai": "OpenAI",
        "google": "Google",
        UNKNOWN_PROVIDER: "Unknown",
    },
)


def resolve_provider_id(directory: ModelDirectory, model_id: str) -> str:
    """Resolve the provider owning a model.

    Falls back to name-prefix heuristics when the directory does not know
    the model, and to "unknown" when nothing matches.
    """
    provider = directory.get_model_provider(model_id)
    if provider and provider != UNKNOWN_PROVIDER:
        return provider

    if model_id.startswith("claude"):
        return "anthropic"
    if model_id.startswith("gpt") or model_id.startswith("openai"):
        return "openai"
    if model_id.startswith("gemini"):
        return "google"

    return UNKNOWN_PROVIDER
