"""Build provider adapters from configuration, keyed by provider id."""

import logging

from config.config_loader import AppConfig
from orchestra.models import ProviderSettings
from orchestra.providers.anthropic import AnthropicProvider
from orchestra.providers.base import AIProvider, ProviderUnavailable
from orchestra.providers.gemini import GeminiProvider
from orchestra.providers.luxia import LuxiaProvider
from orchestra.providers.openai_provider import OpenAIProvider
from orchestra.providers.perplexity import PerplexityProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GeminiProvider,
    "perplexity": PerplexityProvider,
    "luxia": LuxiaProvider,
}


def build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available, active providers. Returns dict keyed by provider id."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if not model_cfg.is_active:
            logger.info("Provider '%s' is inactive, skipping", name)
            continue
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' has unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except ProviderUnavailable as exc:
            logger.warning("Provider '%s' unavailable: %s", name, exc)
    return providers


def provider_settings(config: AppConfig, built: dict[str, AIProvider]) -> list[ProviderSettings]:
    """Selection table: configured weights, active only when an adapter was built."""
    return [
        ProviderSettings(
            provider_id=name,
            display_name=config.display_name(name),
            weight=model_cfg.weight,
            is_active=model_cfg.is_active and name in built,
        )
        for name, model_cfg in config.models.items()
    ]
