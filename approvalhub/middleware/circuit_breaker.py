"""Per-provider circuit breaker so a degraded backend fails fast into the fallback."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import time
from types import TracebackType

import structlog

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"  # sends go through, backend failures are counted
    OPEN = "open"  # sends are refused until recovery_timeout has passed
    HALF_OPEN = "half_open"  # probe sends decide between CLOSED and OPEN


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a provider whose breaker is open."""

    def __init__(self, breaker: str, retry_after: float = 0) -> None:
        super().__init__(f"Circuit breaker '{breaker}' is open")
        self.breaker = breaker
        self.retry_after = retry_after


def _any_exception(error: Exception) -> bool:
    return True


@dataclass
class CircuitBreaker:
    """Guard for calls to one messaging backend.

    `trips_on` decides which exceptions count against the backend; a rejected
    request (bad recipient, unknown template) says nothing about its health.

    Example:
        ```python
        breaker = CircuitBreaker(label="meta_cloud_api", failure_threshold=5)

        async with breaker:
            await client.post(url, json=payload)
        ```
    """

    label: str = "provider"
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1
    success_threshold: int = 1
    trips_on: Callable[[Exception], bool] = _any_exception

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _probe_successes: int = field(default=0, init=False)
    _probes_in_flight: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN breaker past its recovery timeout reads as HALF_OPEN."""
        if self._state is CircuitState.OPEN and self._seconds_open() >= self.recovery_timeout:
            self._enter(CircuitState.HALF_OPEN)
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _seconds_open(self) -> float:
        return time.monotonic() - self._opened_at

    def _enter(self, new_state: CircuitState) -> None:
        previous = self._state
        self._state = new_state
        self._probe_successes = 0
        self._probes_in_flight = 0
        if new_state is CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state is CircuitState.CLOSED:
            self._consecutive_failures = 0
        logger.info(
            "Provider circuit state change",
            breaker=self.label,
            old_state=previous.value,
            new_state=new_state.value,
        )

    async def __aenter__(self) -> "CircuitBreaker":
        async with self._lock:
            current = self.state
            if current is CircuitState.OPEN:
                raise CircuitBreakerOpen(
                    self.label, retry_after=max(0.0, self.recovery_timeout - self._seconds_open())
                )
            if current is CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.half_open_max_calls:
                    raise CircuitBreakerOpen(self.label, retry_after=1.0)
                self._probes_in_flight += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        async with self._lock:
            if exc_val is None:
                self._on_success()
            elif isinstance(exc_val, Exception):
                if self.trips_on(exc_val):
                    self._on_failure(exc_val)
                else:
                    self._on_success()
        return False

    def _on_success(self) -> None:
        if self._state is not CircuitState.HALF_OPEN:
            self._consecutive_failures = 0
            return
        self._probe_successes += 1
        if self._probe_successes >= self.success_threshold:
            self._enter(CircuitState.CLOSED)

    def _on_failure(self, error: Exception) -> None:
        self._consecutive_failures += 1
        logger.warning(
            "Provider failure counted",
            breaker=self.label,
            consecutive_failures=self._consecutive_failures,
            threshold=self.failure_threshold,
            error=str(error),
        )
        if self._state is CircuitState.HALF_OPEN:
            self._enter(CircuitState.OPEN)
        elif self._consecutive_failures >= self.failure_threshold:
            self._enter(CircuitState.OPEN)

    def reset(self) -> None:
        """Close the breaker by hand, e.g. after credentials were re-validated."""
        if self._state is not CircuitState.CLOSED or self._consecutive_failures:
            self._enter(CircuitState.CLOSED)


__all__ = ["CircuitBreaker", "CircuitBreakerOpen", "CircuitState"]
