"""Weighted provider selection over active providers whose breakers allow calls."""

import logging
import random

from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.models import ProviderSettings

logger = logging.getLogger(__name__)


class ProviderSelector:
    """Pick one provider id per request.

    Eligible providers are active and not blocked by their circuit breaker.
    An eligible intent hint wins outright; otherwise the draw is weighted by
    each provider's configured weight. Candidates are ordered by id before
    the draw so a seeded ``rng`` gives reproducible picks.
    """

    def __init__(
        self,
        providers: list[ProviderSettings],
        breakers: CircuitBreakerRegistry,
        fallback_provider: str,
        rng: random.Random | None = None,
    ) -> None:
        for p in providers:
            if p.weight <= 0:
                raise ValueError(f"Provider '{p.provider_id}' weight must be positive, got {p.weight}")
        self._providers = list(providers)
        self._breakers = breakers
        self._fallback_provider = fallback_provider
        self._rng = rng or random.Random()

    def eligible_providers(self) -> list[ProviderSettings]:
        eligible = [
            p for p in self._providers
            if p.is_active and not self._breakers.is_blocking(p.provider_id)
        ]
        return sorted(eligible, key=lambda p: p.provider_id)

    def select_provider(self, intent_hint: str | None = None) -> str:
        eligible = self.eligible_providers()

        if not eligible:
            # Fail open: the caller still gets a provider id to try
            logger.warning(
                "No eligible providers, falling back to default '%s'",
                self._fallback_provider,
            )
            return self._fallback_provider

        if intent_hint:
            for p in eligible:
                if p.provider_id == intent_hint:
                    logger.debug("Selected hinted provider: %s", intent_hint)
                    return intent_hint

        chosen = self._rng.choices(eligible, weights=[p.weight for p in eligible], k=1)[0]
        logger.debug("Weighted draw selected %s from %d candidates", chosen.provider_id, len(eligible))
        return chosen.provider_id
