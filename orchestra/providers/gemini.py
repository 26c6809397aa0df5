"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider, ProviderError, ProviderUnavailable, split_system

logger = logging.getLogger(__name__)


def to_gemini_contents(messages: list[ChatMessage]) -> list[genai_types.Content]:
    """Gemini names the assistant role 'model'; system text travels separately."""
    return [
        genai_types.Content(
            role="model" if m.role == "assistant" else "user",
            parts=[genai_types.Part(text=m.content)],
        )
        for m in messages
    ]


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def display_name(self) -> str:
        return self._config.display_name or self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def _complete(self, messages: list[ChatMessage]) -> str:
        system, rest = split_system(messages)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=to_gemini_contents(rest),
                    config=genai_types.GenerateContentConfig(
                        system_instruction=system or None,
                        max_output_tokens=self._config.max_tokens,
                        temperature=self._config.temperature,
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini chat: %.2fs, %s tokens", latency, token_count)

        return response.text
