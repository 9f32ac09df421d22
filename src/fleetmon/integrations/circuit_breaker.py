"""Circuit breaker for outbound calls to fleet services."""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fleetmon.config import Settings
from fleetmon.utils.time import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests pass through
    OPEN = "open"  # Circuit broken, requests fail fast
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int = 5  # Failures before opening
    timeout_seconds: int = 60  # Time before attempting half-open
    half_open_max_calls: int = 3  # Test calls in half-open state
    success_threshold: int = 2  # Successes to close from half-open

    @classmethod
    def from_settings(cls, settings: Settings) -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout_seconds=settings.circuit_breaker_timeout_seconds,
            half_open_max_calls=settings.circuit_breaker_half_open_max_calls,
            success_threshold=settings.circuit_breaker_success_threshold,
        )


@dataclass
class CircuitBreakerStats:
    """Circuit breaker statistics."""

    state: CircuitState
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    half_open_calls: int = 0
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a service whose circuit is open."""

    def __init__(self, service_name: str, retry_after: int):
        self.service_name = service_name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker open for {service_name}, retry after {retry_after}s"
        )


class CircuitBreaker:
    """
    Fails fast once a service keeps failing.

    A monitoring pass touches many hosts; when the provisioner or the
    delivery webhook is down, the remaining calls of the pass fail
    immediately with CircuitBreakerOpen instead of each waiting for its own
    timeout. Those failures are ordinary per-item errors for the caller.

    State transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: after timeout_seconds elapsed
    - HALF_OPEN -> CLOSED: after success_threshold consecutive successes
    - HALF_OPEN -> OPEN: on any failure
    """

    def __init__(self, name: str, config: CircuitBreakerConfig):
        self.name = name
        self.config = config
        self._state = CircuitState.CLOSED
        self._stats = CircuitBreakerStats(state=self._state)
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        """Copy of the current statistics."""
        return replace(self._stats, state=self._state)

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await func through the breaker.

        Raises:
            CircuitBreakerOpen: the circuit is open or the half-open probe
                budget is used up.
            Exception: whatever func raised, after it has been counted.
        """
        async with self._lock:
            self._stats.total_calls += 1

            if self._state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    raise CircuitBreakerOpen(self.name, self._seconds_until_half_open())
                self._transition_to_half_open()

            if self._state == CircuitState.HALF_OPEN:
                if self._stats.half_open_calls >= self.config.half_open_max_calls:
                    logger.warning(f"Circuit {self.name} half-open limit reached, rejecting call")
                    raise CircuitBreakerOpen(self.name, self._seconds_until_half_open())
                self._stats.half_open_calls += 1

        # Run outside the lock so slow calls do not serialize each other
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._on_failure(e)
            raise

        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            self._stats.success_count += 1
            self._stats.total_successes += 1
            self._stats.failure_count = 0

            if (
                self._state == CircuitState.HALF_OPEN
                and self._stats.success_count >= self.config.success_threshold
            ):
                self._transition_to_closed()

    async def _on_failure(self, error: Exception) -> None:
        async with self._lock:
            self._stats.failure_count += 1
            self._stats.total_failures += 1
            self._stats.success_count = 0
            self._stats.last_failure_time = utc_now()

            logger.warning(
                f"Circuit {self.name} failure ({self._stats.failure_count}/"
                f"{self.config.failure_threshold}): {error}"
            )

            if self._state == CircuitState.HALF_OPEN:
                self._transition_to_open()
            elif (
                self._state == CircuitState.CLOSED
                and self._stats.failure_count >= self.config.failure_threshold
            ):
                self._transition_to_open()

    def _transition_to_open(self) -> None:
        self._state = CircuitState.OPEN
        self._stats.opened_at = utc_now()
        self._stats.half_open_calls = 0
        logger.error(f"Circuit {self.name} opened after {self._stats.failure_count} failures")

    def _transition_to_half_open(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._stats.success_count = 0
        self._stats.failure_count = 0
        self._stats.half_open_calls = 0
        logger.info(f"Circuit {self.name} entering half-open state")

    def _transition_to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._stats.failure_count = 0
        self._stats.success_count = 0
        self._stats.opened_at = None
        self._stats.half_open_calls = 0
        logger.info(f"Circuit {self.name} closed after recovery")

    def _should_attempt_reset(self) -> bool:
        if not self._stats.opened_at:
            return False
        elapsed = (utc_now() - self._stats.opened_at).total_seconds()
        return elapsed >= self.config.timeout_seconds

    def _seconds_until_half_open(self) -> int:
        if not self._stats.opened_at:
            return self.config.timeout_seconds
        elapsed = (utc_now() - self._stats.opened_at).total_seconds()
        return int(max(0, self.config.timeout_seconds - elapsed))


def build_circuit_breaker(name: str, settings: Settings) -> Optional[CircuitBreaker]:
    """Circuit breaker for an integration, or None when breakers are disabled."""
    if not settings.circuit_breaker_enabled:
        logger.info(f"{name} circuit breaker disabled")
        return None
    return CircuitBreaker(name, CircuitBreakerConfig.from_settings(settings))
