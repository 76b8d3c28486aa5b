"""
Circuit breaker guarding realtime publishes.

When Redis is down every publish would otherwise wait for its socket timeout
and retries. After enough consecutive failures the breaker opens and
publishes are dropped immediately until the cool-down elapses.
"""

from __future__ import annotations

import random
import threading
import time
from enum import Enum

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class PublishCircuitBreaker:
    """Thread-safe breaker shared by all publishers of one process."""

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        probe_limit: int = 1,
        clock=time.monotonic,
    ):
        self._failure_threshold = failure_threshold
        self._cooldown = cooldown_seconds
        self._probe_limit = probe_limit
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._probes_in_flight = 0
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def allow(self) -> bool:
        """Whether a publish attempt may go ahead."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._clock() - self._opened_at < self._cooldown:
                    self._dropped += 1
                    return False
                self._state = CircuitState.HALF_OPEN
                self._probes_in_flight = 0
                logger.info("Publish circuit half-open, probing Redis")

            if self._state == CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self._probe_limit:
                    self._dropped += 1
                    return False
                self._probes_in_flight += 1

            return True

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Publish circuit closed again")
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            tripped = (
                self._state == CircuitState.HALF_OPEN
                or self._consecutive_failures >= self._failure_threshold
            )
            if tripped and self._state != CircuitState.OPEN:
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                logger.error(
                    "Publish circuit opened",
                    consecutive_failures=self._consecutive_failures,
                    cooldown_seconds=self._cooldown,
                )

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "consecutive_failures": self._consecutive_failures,
                "dropped": self._dropped,
            }


_breaker: PublishCircuitBreaker | None = None
_breaker_lock = threading.Lock()


def get_publish_circuit_breaker() -> PublishCircuitBreaker:
    """Process-wide breaker singleton."""
    global _breaker
    if _breaker is None:
        with _breaker_lock:
            if _breaker is None:
                _breaker = PublishCircuitBreaker(
                    failure_threshold=settings.redis_publish_max_retries + 2,
                )
    return _breaker


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 5.0) -> float:
    """Exponential backoff with full jitter for retry ``attempt`` (0-based)."""
    ceiling = min(base_delay * (2 ** attempt), max_delay)
    return random.uniform(0, ceiling)
