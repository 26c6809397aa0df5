"""Luxia provider over its OpenAI-compatible chat completions endpoint."""

import os
from dataclasses import replace

from config.config_loader import ModelConfig
from orchestra.providers.base import ProviderUnavailable
from orchestra.providers.openai_provider import OpenAIProvider


class LuxiaProvider(OpenAIProvider):
    """Luxia AI provider. ``LUXIA_API_URL`` overrides the configured base_url."""

    def __init__(self, config: ModelConfig) -> None:
        base_url = os.environ.get("LUXIA_API_URL", "").strip() or config.base_url
        if not base_url:
            raise ProviderUnavailable(config.name, "base_url is required for Luxia provider")
        super().__init__(replace(config, base_url=base_url))
