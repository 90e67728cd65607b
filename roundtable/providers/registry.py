"""Build providers from model configs, keyed by the SDK each model uses."""

import logging

from config.config_loader import AppConfig, ModelConfig
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import AIProvider
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def build_provider(config: ModelConfig) -> AIProvider:
    """Instantiate the provider for one model config.

    Raises:
        ValueError: If the config names an unsupported SDK.
        ProviderError: If the API key is missing.
    """
    try:
        provider_cls = PROVIDER_CLASSES[config.sdk]
    except KeyError:
        raise ValueError(f"Unknown sdk '{config.sdk}' for model '{config.name}'") from None
    return provider_cls(config)


def build_providers(config: AppConfig, model_names: set[str]) -> dict[str, AIProvider]:
    """Build every requested model that has an API key. Returns dict keyed by model name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(model_names):
        if name not in config.available_models:
            logger.warning("Model '%s' has no API key, skipping", name)
            continue
        try:
            providers[name] = build_provider(config.models[name])
        except Exception as exc:
            logger.warning("Failed to instantiate model '%s': %s", name, exc)
    return providers
