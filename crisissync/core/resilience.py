"""
Resilience Patterns Module.

Circuit breaker guarding calls to the external classifier, so an outage
turns into immediate fallbacks instead of a timeout per report.
"""

import time
from typing import Awaitable, Callable, Any, TypeVar

from crisissync.core.exceptions import UpstreamClassifierError
from crisissync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitBreakerOpenException(UpstreamClassifierError):
    """Raised when the circuit is open and calls are blocked."""
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker.

    States:
    - CLOSED: Normal operation, calls go through.
    - OPEN: Fails fast with CircuitBreakerOpenException.
    - HALF-OPEN: Allows one trial call after ``recovery_timeout`` seconds.
    """

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: float = 30,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        if self.state == "OPEN":
            if self._clock() - self.last_failure_time > self.recovery_timeout:
                self.state = "HALF-OPEN"
                logger.info(f"[{self.name}] circuit HALF-OPEN, attempting recovery")
            else:
                raise CircuitBreakerOpenException(
                    f"{self.name} circuit is OPEN after {self.failure_count} failures"
                )

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self.failure_count += 1
            self.last_failure_time = self._clock()
            logger.error(f"[{self.name}] failure ({self.failure_count}/{self.failure_threshold}): {e}")

            if self.state == "HALF-OPEN" or self.failure_count >= self.failure_threshold:
                self.state = "OPEN"
                logger.warning(f"[{self.name}] circuit OPEN, blocking calls for {self.recovery_timeout}s")
            raise

        if self.state == "HALF-OPEN":
            logger.info(f"[{self.name}] circuit CLOSED, recovery successful")
        self.state = "CLOSED"
        self.failure_count = 0
        return result

    def reset(self) -> None:
        self.state = "CLOSED"
        self.failure_count = 0
        self.last_failure_time = 0.0


# Independent breakers per upstream operation
classifier_circuit_breaker = CircuitBreaker("classifier", failure_threshold=3, recovery_timeout=60)
resource_lookup_circuit_breaker = CircuitBreaker("resource-lookup", failure_threshold=3, recovery_timeout=60)
sitrep_circuit_breaker = CircuitBreaker("sitrep", failure_threshold=3, recovery_timeout=60)
