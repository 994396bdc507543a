# backend/portfolio_engine/services/circuit_breaker.py
"""
Circuit breaker guarding each upstream quote source.

When a source keeps failing, every symbol routed to it would otherwise
wait out a full timeout plus retries before falling back to the next
source. The breaker remembers the failures and rejects calls outright
for a recovery period, so the resolver falls through immediately.

States:
    CLOSED    - Normal operation, calls pass through
    OPEN      - Too many consecutive failures, calls rejected immediately
    HALF_OPEN - Recovery period elapsed, a limited number of probe calls allowed

State Transitions:
    CLOSED -> OPEN: consecutive failures reach failure_threshold
    OPEN -> HALF_OPEN: recovery_timeout elapsed (checked lazily on access)
    HALF_OPEN -> CLOSED: a probe call succeeds
    HALF_OPEN -> OPEN: a probe call fails

Usage:
    breaker = CircuitBreaker(name="naver-stock", failure_threshold=5)

    async with breaker:
        payload = await client.get(url)

The clock is injectable so tests can move time without sleeping. All
transitions run on the event loop thread; no lock is taken.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the circuit breaker
        time_remaining: Seconds until the next probe is allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreakerStats:
    """Counters exposed on the health endpoint."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0


@dataclass
class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Attributes:
        name: Identifier used in logs and errors
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds to stay open before probing
        half_open_max_calls: Probe calls allowed while half-open
        excluded_exceptions: Exception types that do not count as failures
            (a symbol the source does not know says nothing about its health)
        clock: Monotonic time source in seconds
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 1
    excluded_exceptions: tuple[type[BaseException], ...] = field(default_factory=tuple)
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _half_open_calls: int = field(default=0, init=False)
    _stats: CircuitBreakerStats = field(default_factory=CircuitBreakerStats, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> CircuitState:
        self._refresh_state()
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        """Copy of the current counters."""
        s = self._stats
        return CircuitBreakerStats(
            total_calls=s.total_calls,
            successful_calls=s.successful_calls,
            failed_calls=s.failed_calls,
            rejected_calls=s.rejected_calls,
            state_changes=s.state_changes,
        )

    def time_until_probe(self) -> float:
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.recovery_timeout - (self.clock() - self._opened_at))

    def _refresh_state(self) -> None:
        if self._state == CircuitState.OPEN and self.time_until_probe() == 0.0:
            self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self.clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_calls = 0
        else:
            self._consecutive_failures = 0

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(f"CircuitBreaker '{self.name}': {old_state.value} -> {new_state.value}")

    # =========================================================================
    # CALL ACCOUNTING
    # =========================================================================

    def before_call(self) -> None:
        """
        Admit or reject a call.

        Raises:
            CircuitBreakerOpen: If the circuit is open or the half-open
                probe budget is spent
        """
        self._refresh_state()
        self._stats.total_calls += 1

        if self._state == CircuitState.HALF_OPEN and self._half_open_calls < self.half_open_max_calls:
            self._half_open_calls += 1
            return
        if self._state == CircuitState.CLOSED:
            return

        self._stats.rejected_calls += 1
        raise CircuitBreakerOpen(self.name, self.time_until_probe())

    def record_success(self) -> None:
        self._stats.successful_calls += 1
        self._consecutive_failures = 0
        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._stats.failed_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            return

        self._consecutive_failures += 1
        if self._state == CircuitState.CLOSED and self._consecutive_failures >= self.failure_threshold:
            self._transition_to(CircuitState.OPEN)

    def _record_outcome(self, exc: BaseException | None) -> None:
        if exc is None or isinstance(exc, self.excluded_exceptions):
            self.record_success()
        else:
            self.record_failure()

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    async def __aenter__(self) -> "CircuitBreaker":
        self.before_call()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        self._record_outcome(exc_val)
        return False

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def reset(self) -> None:
        """Force the circuit closed."""
        self._transition_to(CircuitState.CLOSED)

    def force_open(self) -> None:
        """Force the circuit open (e.g. during a known provider outage)."""
        self._transition_to(CircuitState.OPEN)
