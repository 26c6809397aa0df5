"""Per-provider circuit breakers.

A breaker opens after ``failure_threshold`` consecutive failures and blocks
calls for ``cooldown_sec``. The first call after the cooldown moves it to
half-open and is let through as a single trial: success closes the breaker,
failure opens it again.

Breaker state is shared by every request that calls the same provider and is
not locked; failure counts are advisory.
"""

import enum
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 5
COOLDOWN_SEC = 60.0

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitOpenError(Exception):
    """Raised (or handed to the fallback) when a call is short-circuited."""

    def __init__(self, circuit_name: str, cooldown_remaining: float) -> None:
        self.circuit_name = circuit_name
        self.cooldown_remaining = cooldown_remaining
        super().__init__(
            f"Circuit breaker '{circuit_name}' is open. Retry in {cooldown_remaining:.1f}s"
        )


class CircuitBreaker:
    """Closed / open / half-open state machine around one provider."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        cooldown_sec: float = COOLDOWN_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_sec = cooldown_sec
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.last_failure_at: float | None = None
        self.next_retry_at: float | None = None
        self._trial_in_flight = False

    def cooldown_remaining(self) -> float:
        if self.next_retry_at is None:
            return 0.0
        return max(0.0, self.next_retry_at - self._clock())

    def is_blocking(self) -> bool:
        """True while calls would be short-circuited without touching the provider."""
        if self.state is CircuitState.OPEN:
            return self.cooldown_remaining() > 0
        if self.state is CircuitState.HALF_OPEN:
            return self._trial_in_flight
        return False

    def _admit(self) -> tuple[bool, bool]:
        """Decide whether this call may run, moving open -> half-open when due.

        Returns ``(admitted, trial)``. Only the trial call owns the half-open slot.
        """
        if self.state is CircuitState.CLOSED:
            return True, False
        if self.state is CircuitState.OPEN:
            if self.cooldown_remaining() > 0:
                return False, False
            self.state = CircuitState.HALF_OPEN
            logger.info("Circuit breaker '%s' entering half-open state", self.name)
        # Half-open admits a single trial at a time
        if self._trial_in_flight:
            return False, False
        self._trial_in_flight = True
        return True, True

    def _on_success(self, trial: bool) -> None:
        if trial:
            self.failures = 0
            self.state = CircuitState.CLOSED
            self.next_retry_at = None
            self._trial_in_flight = False
            logger.info("Circuit breaker '%s' closed after successful trial", self.name)
        elif self.state is CircuitState.CLOSED:
            self.failures = 0

    def _on_failure(self, trial: bool) -> None:
        self.failures += 1
        now = self._clock()
        self.last_failure_at = now
        if trial:
            self.state = CircuitState.OPEN
            self.next_retry_at = now + self.cooldown_sec
            self._trial_in_flight = False
            logger.warning("Circuit breaker '%s' reopened after failed trial", self.name)
        elif self.state is CircuitState.CLOSED and self.failures >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.next_retry_at = now + self.cooldown_sec
            logger.error(
                "Circuit breaker '%s' opened after %d consecutive failures",
                self.name,
                self.failures,
            )

    async def execute(
        self,
        action: Callable[[], Awaitable[T]],
        fallback: Callable[[Exception], Awaitable[T]] | None = None,
    ) -> T:
        """Run ``action`` unless the circuit is open.

        ``fallback`` receives the cause and runs exactly once whenever
        ``action`` is skipped (``CircuitOpenError``) or raises. Without a
        fallback the cause is raised.
        """
        admitted, trial = self._admit()
        if not admitted:
            exc = CircuitOpenError(self.name, self.cooldown_remaining())
            logger.warning("Circuit breaker '%s' is open, skipping call", self.name)
            if fallback is None:
                raise exc
            return await fallback(exc)

        try:
            result = await action()
        except Exception as exc:
            self._on_failure(trial)
            if fallback is None:
                raise
            logger.warning("Call through '%s' failed, using fallback: %s", self.name, exc)
            return await fallback(exc)
        except BaseException:
            # Cancelled mid-trial: release the slot without counting a failure
            if trial:
                self._trial_in_flight = False
            raise

        self._on_success(trial)
        return result

    def get_stats(self) -> dict[str, Any]:
        return {
            "provider": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "last_failure_at": self.last_failure_at,
            "next_retry_at": self.next_retry_at,
        }

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.last_failure_at = None
        self.next_retry_at = None
        self._trial_in_flight = False


class CircuitBreakerRegistry:
    """Breakers keyed by provider id, created on first use.

    One registry belongs to one orchestrator and is handed to the selector
    and the debate coordinator, so tests get fresh state per instance.
    """

    def __init__(
        self,
        failure_threshold: int = FAILURE_THRESHOLD,
        cooldown_sec: float = COOLDOWN_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.cooldown_sec = cooldown_sec
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, provider_id: str) -> CircuitBreaker:
        breaker = self._breakers.get(provider_id)
        if breaker is None:
            breaker = CircuitBreaker(
                provider_id,
                failure_threshold=self.failure_threshold,
                cooldown_sec=self.cooldown_sec,
                clock=self._clock,
            )
            self._breakers[provider_id] = breaker
            logger.debug("Created circuit breaker: %s", provider_id)
        return breaker

    def is_blocking(self, provider_id: str) -> bool:
        """Blocking check that does not create a breaker for unseen providers."""
        breaker = self._breakers.get(provider_id)
        return breaker is not None and breaker.is_blocking()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: cb.get_stats() for name, cb in self._breakers.items()}

    def reset_all(self) -> None:
        for cb in self._breakers.values():
            cb.reset()
        logger.info("Reset %d circuit breakers", len(self._breakers))
