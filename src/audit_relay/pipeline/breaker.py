"""
Circuit breaker guarding the collector endpoint.

    CLOSED --(threshold consecutive failures)--> OPEN
    OPEN --(reset timeout elapsed, checked lazily in allow())--> HALF_OPEN
    any --(success)--> CLOSED
    HALF_OPEN --(failure)--> OPEN (failures are still >= threshold)
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .types import Clock


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    state: BreakerState
    consecutive_failures: int
    last_failure_time: float
    next_retry_time: float


def next_state(current: BreakerSnapshot, now: float) -> BreakerState:
    """State the breaker should be in at ``now``; no side effects."""
    if current.state is BreakerState.OPEN and now >= current.next_retry_time:
        return BreakerState.HALF_OPEN
    return current.state


class CircuitBreaker:
    """Consecutive-failure breaker with lazy half-open evaluation.

    ``allow`` is the gate; failures and successes are reported separately
    by the delivery call sites via ``record_failure`` / ``record_success``.
    Times are seconds from ``clock`` (``time.monotonic`` by default).
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout_sec: float = 30.0,
        *,
        clock: Clock = time.monotonic,
        name: str = "audit",
    ):
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be > 0")
        if reset_timeout_sec < 0:
            raise ValueError("reset_timeout_sec must be >= 0")

        self.failure_threshold = failure_threshold
        self.reset_timeout_sec = reset_timeout_sec
        self._clock = clock
        self._name = name

        self._state = BreakerState.CLOSED
        self._failures = 0
        self._last_failure_time = 0.0
        self._next_retry_time = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            state=self._state,
            consecutive_failures=self._failures,
            last_failure_time=self._last_failure_time,
            next_retry_time=self._next_retry_time,
        )

    def allow(self) -> bool:
        """False only while OPEN and the reset timeout has not elapsed."""
        with self._lock:
            new_state = next_state(self._snapshot(), self._clock())
            if new_state is not self._state:
                self._state = new_state
                logger.info(f"Circuit breaker [{self._name}] moving to HALF_OPEN state")
            return self._state is not BreakerState.OPEN

    def record_success(self) -> None:
        with self._lock:
            if self._state is not BreakerState.CLOSED:
                logger.info(f"Circuit breaker [{self._name}] CLOSED after successful delivery")
            self._failures = 0
            self._state = BreakerState.CLOSED

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            self._failures += 1
            self._last_failure_time = now
            if self._failures >= self.failure_threshold:
                self._state = BreakerState.OPEN
                self._next_retry_time = now + self.reset_timeout_sec
                logger.warning(
                    f"Circuit breaker [{self._name}] OPEN: "
                    f"{self._failures} consecutive failures"
                )
