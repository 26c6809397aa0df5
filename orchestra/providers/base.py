"""Abstract base for all AI model providers."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from orchestra.models import ChatMessage

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ProviderUnavailable(ProviderError):
    """Raised when a provider cannot be built (inactive or missing credentials)."""


def split_system(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system messages from the conversation.

    Returns:
        (joined system text, remaining non-system messages in order)
    """
    system_parts = [m.content for m in messages if m.role == "system"]
    rest = [m for m in messages if m.role != "system"]
    return "\n\n".join(system_parts), rest


class AIProvider(ABC):
    """Uniform call contract over one vendor chat API."""

    supports_streaming: bool = False

    @abstractmethod
    def name(self) -> str:
        """Return the short provider id (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def display_name(self) -> str:
        """Return the human-readable provider name used in prompts and headers."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def _complete(self, messages: list[ChatMessage]) -> str:
        """Send messages to the vendor and return the plain response text.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    async def chat(self, messages: list[ChatMessage]) -> str | None:
        """Buffered chat call. Never raises.

        Returns:
            The response text, or None when the provider produced nothing usable.
        """
        try:
            return await self._complete(messages)
        except ProviderError as exc:
            logger.warning("Provider %s chat failed: %s", self.name(), exc)
        except Exception as exc:
            logger.warning("Provider %s unexpected chat failure: %s", self.name(), exc)
        return None

    async def stream_chat(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Yield response text deltas as they arrive.

        Raises:
            ProviderError: When the stream cannot start or breaks mid-way.
        """
        raise ProviderError(self.name(), "Streaming not supported")
        yield ""  # unreachable; marks this as an async generator
