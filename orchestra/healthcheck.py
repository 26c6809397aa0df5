"""Provider health checks: ping each adapter before opening a session."""

import asyncio
import logging

from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (name, ok, error_message)."""
    try:
        reply = await asyncio.wait_for(
            provider.chat([ChatMessage("user", _PING_PROMPT)]),
            timeout=_TIMEOUT_SEC,
        )
    except asyncio.TimeoutError:
        return name, False, f"No reply within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return name, False, str(exc)
    if reply is None:
        return name, False, str(ProviderError(name, "No response"))
    return name, True, ""


async def run_health_checks(
    providers: dict[str, AIProvider],
) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, p) for n, p in providers.items()))
    for name, ok, err in results:
        if not ok:
            logger.warning("Health check failed for %s: %s", name, err)
    return {name: (ok, err) for name, ok, err in results}
