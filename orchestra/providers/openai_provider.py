"""OpenAI provider using openai SDK with native async streaming."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """OpenAI-compatible APIs accept system messages inline."""
    return [{"role": m.role, "content": m.content} for m in messages]


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self.supports_streaming = config.streaming
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    def display_name(self) -> str:
        return self._config.display_name or self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def _complete(self, messages: list[ChatMessage]) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=to_openai_messages(messages),
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

        logger.info(
            "%s chat: %.2fs, %s tokens",
            self._config.name,
            latency,
            response.usage.total_tokens if response.usage else None,
        )
        return choice.message.content

    async def stream_chat(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        try:
            stream = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=to_openai_messages(messages),
                    max_tokens=self._config.max_tokens,
                    temperature=self._config.temperature,
                    stream=True,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Stream did not start within {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        deadline = time.monotonic() + self._config.timeout_sec
        events = aiter(stream)
        try:
            while True:
                # Each read gets only what is left of the overall budget
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    event = await asyncio.wait_for(anext(events), timeout=remaining)
                except StopAsyncIteration:
                    break
                except TimeoutError as exc:
                    raise ProviderError(
                        self._config.name, f"Stream exceeded {self._config.timeout_sec}s"
                    ) from exc
                delta = event.choices[0].delta.content if event.choices else None
                if delta:
                    yield delta
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc

        logger.info("%s stream completed", self._config.name)
