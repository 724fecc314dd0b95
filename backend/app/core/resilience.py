"""
Resilience Patterns Module.

Circuit Breaker guarding the blob store. Only transient failures (transport
errors, 5xx and rate limiting) count towards opening the circuit. A request
the store rejects on its merits ("object not found", "already exists") is
re-raised without being counted.
"""

import time
from typing import Callable, Any

from backend.app.core.logging import get_logger

logger = get_logger(__name__)

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF-OPEN"


class CircuitBreakerOpenException(Exception):
    """Raised when the circuit is open and calls are blocked."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit '{name}' is OPEN; retry in {retry_after:.0f}s")
        self.name = name
        self.retry_after = retry_after


def is_transient(exc: BaseException) -> bool:
    """Errors may set `retryable = False` to mark a rejection, not an outage."""
    return getattr(exc, "retryable", True)


class CircuitBreaker:
    """
    States:
    - CLOSED: calls pass; transient failures are counted.
    - OPEN: calls fail fast until `recovery_timeout` has elapsed.
    - HALF-OPEN: one trial call; any answer from the store closes the
      circuit, a transient failure opens it again.
    """

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 30,
                 trips_on: Callable[[BaseException], bool] = is_transient):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.trips_on = trips_on
        self.reset()

    def reset(self) -> None:
        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = CLOSED

    def _close(self) -> None:
        if self.state != CLOSED:
            logger.info(f"[{self.name}] Circuit State changed to CLOSED. Recovery successful.")
        self.reset()

    def _record_failure(self, exc: BaseException) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        logger.error(f"[{self.name}] Circuit Breaker failure ({self.failure_count}/{self.failure_threshold}): {exc}")

        if self.state == HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = OPEN
            logger.warning(f"[{self.name}] Circuit State changed to OPEN. Blocking calls for {self.recovery_timeout}s.")

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == OPEN:
            elapsed = time.time() - self.last_failure_time
            if elapsed <= self.recovery_timeout:
                raise CircuitBreakerOpenException(self.name, self.recovery_timeout - elapsed)
            self.state = HALF_OPEN
            logger.info(f"[{self.name}] Circuit State changed to HALF-OPEN. Attempting recovery.")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.trips_on(e):
                self._record_failure(e)
            else:
                self._close()
            raise

        self._close()
        return result


# Shared breaker for blob-store calls
storage_circuit_breaker = CircuitBreaker("blob-store", failure_threshold=5, recovery_timeout=30)
