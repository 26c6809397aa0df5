"""Buffered provider calls routed through the provider's circuit breaker."""

import logging

from orchestra.circuit_breaker import CircuitBreaker
from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


async def call_provider(
    provider_id: str,
    provider: AIProvider | None,
    breaker: CircuitBreaker,
    messages: list[ChatMessage],
) -> str | None:
    """Call a single provider through its breaker.

    Never raises. Returns None when the provider is unavailable, the
    circuit is open, or the call produced nothing usable.
    """
    if provider is None:
        logger.warning("Provider %s is not available (inactive or no credentials)", provider_id)
        return None

    async def action() -> str:
        text = await provider.chat(messages)
        if not text:
            raise ProviderError(provider_id, "No response")
        return text

    async def fallback(exc: Exception) -> None:
        logger.warning("Provider %s produced no usable output: %s", provider_id, exc)
        return None

    return await breaker.execute(action, fallback)
