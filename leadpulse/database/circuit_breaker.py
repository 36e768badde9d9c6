"""
Circuit Breaker

Guards the read-replica connection pool. When per-table queries keep
failing (pool exhaustion, network partition) the breaker opens and
rejects calls immediately instead of queueing more work on the pool.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from leadpulse.errors import CircuitBreakerOpenError


logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Breaker states."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerState:
    """Circuit breaker state tracking."""
    failures: int = 0
    last_failure_time: float = 0.0
    state: CircuitState = CircuitState.CLOSED
    trial_in_flight: bool = False


class CircuitBreaker:
    """
    Failure-counting guard around async calls.

    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN rejects with CircuitBreakerOpenError without calling through.
    Once `recovery_timeout` seconds pass since the last failure, the next
    call runs as a HALF_OPEN trial: success closes the breaker and resets
    the count, failure reopens it with a fresh cooldown. Other calls made
    while the trial is pending are rejected.

    The wrapped call's own exception is re-raised unchanged.
    """

    def __init__(
        self,
        name: str = "read-replica",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitBreakerState()

    @property
    def state(self) -> CircuitState:
        return self._state.state

    @property
    def failure_count(self) -> int:
        return self._state.failures

    @property
    def is_open(self) -> bool:
        return self._state.state == CircuitState.OPEN

    def _retry_after(self) -> float:
        elapsed = self._clock() - self._state.last_failure_time
        return max(0.0, self.recovery_timeout - elapsed)

    def _before_call(self):
        if self._state.state == CircuitState.CLOSED:
            return

        if self._state.state == CircuitState.HALF_OPEN:
            if self._state.trial_in_flight:
                raise CircuitBreakerOpenError(self.name, 0.0)
            self._state.trial_in_flight = True
            return

        if self._retry_after() > 0:
            raise CircuitBreakerOpenError(self.name, self._retry_after())

        self._state.state = CircuitState.HALF_OPEN
        self._state.trial_in_flight = True
        logger.info(f"Circuit breaker '{self.name}' half-open, allowing trial call")

    def record_success(self):
        """Record successful operation."""
        if self._state.state != CircuitState.CLOSED:
            logger.info(f"Circuit breaker '{self.name}' closed")
        self._state.failures = 0
        self._state.state = CircuitState.CLOSED
        self._state.trial_in_flight = False

    def record_failure(self):
        """Record failed operation."""
        self._state.failures += 1
        self._state.last_failure_time = self._clock()
        self._state.trial_in_flight = False

        if self._state.state == CircuitState.HALF_OPEN:
            self._state.state = CircuitState.OPEN
            logger.warning(
                f"Circuit breaker '{self.name}' trial call failed, reopening "
                f"for {self.recovery_timeout}s"
            )
        elif self._state.failures >= self.failure_threshold and self._state.state != CircuitState.OPEN:
            self._state.state = CircuitState.OPEN
            logger.warning(
                f"Circuit breaker '{self.name}' opened after {self._state.failures} failures. "
                f"Will retry in {self.recovery_timeout} seconds."
            )

    async def execute(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await fn through the breaker, re-raising its errors after bookkeeping."""
        self._before_call()

        try:
            result = await fn(*args, **kwargs)
        except asyncio.CancelledError:
            self._state.trial_in_flight = False
            raise
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def reset(self):
        """Force the breaker back to CLOSED."""
        self._state = CircuitBreakerState()
        logger.info(f"Circuit breaker '{self.name}' reset")

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.state.value,
            "failure_count": self._state.failures,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "retry_after": round(self._retry_after(), 2) if self.is_open else 0.0,
        }
