"""Perplexity provider using openai SDK (OpenAI-compatible API)."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

_CHAT_ROLES = {"system", "user", "assistant"}


class PerplexityProvider(AIProvider):
    """Perplexity Sonar provider via OpenAI-compatible API. Buffered only."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        if not config.base_url:
            raise ProviderUnavailable(config.name, "base_url is required for Perplexity provider")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    def display_name(self) -> str:
        return self._config.display_name or self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def _complete(self, messages: list[ChatMessage]) -> str:
        # Perplexity rejects roles outside the standard three
        payload = [
            {"role": m.role if m.role in _CHAT_ROLES else "user", "content": m.content}
            for m in messages
        ]
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=payload,
                    max_tokens=self._config.max_tokens,
                    temperature=self._config.temperature,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("Perplexity chat: %.2fs, %s tokens", latency, token_count)

        return choice.message.content
