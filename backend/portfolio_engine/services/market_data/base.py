# backend/portfolio_engine/services/market_data/base.py
"""
Abstract interface for quote source adapters.

One adapter per upstream provider. Every adapter exposes the same two
operations, and neither ever raises past this boundary:

    fetch_current(symbol)            -> SourceResult[RawQuote]
    fetch_session_bar(symbol, date)  -> SourceResult[tuple[SessionBar, ...]]

Subclasses implement the private `_fetch_current` / `_fetch_session_bars`
coroutines and signal failure by raising the MarketDataError family.
The public wrappers in this base class add, in order:

    circuit breaker -> tenacity retry (transient errors only) -> per-call timeout

and convert whatever escapes into a SourceError with a reason code:

    CircuitBreakerOpen, ProviderUnavailableError, RateLimitError  -> UNAVAILABLE
    TickerNotFoundError                                           -> NOT_FOUND
    SourceTimeoutError / asyncio timeout                          -> TIMEOUT
    MalformedPayloadError, parse errors (ValueError, KeyError...) -> MALFORMED

Design Principles:
- One interface, N implementations, selected by the classifier's source
  priority (the resolver never branches on provider).
- Retry and timeout policy is implemented once, here.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from portfolio_engine.models import QuoteSource, SourceErrorReason
from portfolio_engine.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
)
from portfolio_engine.services.exceptions import (
    MalformedPayloadError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    SourceTimeoutError,
    TickerNotFoundError,
)
from portfolio_engine.services.market_data.types import (
    RawQuote,
    SessionBar,
    SourceError,
    SourceResult,
    Symbol,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Exceptions raised while parsing an upstream payload
_PARSE_ERRORS = (ValueError, KeyError, IndexError, TypeError, AttributeError, InvalidOperation)


class QuoteSourceAdapter(ABC):
    """
    Base class for quote source adapters.

    Retry Behavior:
        Transient errors (ProviderUnavailableError, RateLimitError) are
        retried with exponential backoff. Subclasses can tune the class
        attributes below. Timeouts are NOT retried: the resolver falls back
        to the next source instead of spending the batch budget here.

    Attributes:
        timeout: Per-attempt timeout in seconds
        breaker: Circuit breaker for this source (one per adapter instance)
    """

    # =========================================================================
    # RETRY CONFIGURATION (can be overridden by subclasses)
    # =========================================================================

    MAX_RETRY_ATTEMPTS: int = 2
    RETRY_MIN_WAIT: float = 0.5
    RETRY_MAX_WAIT: float = 4.0
    RETRY_MULTIPLIER: float = 0.5

    # False for realtime-only upstreams; fetch_session_bar then answers
    # NOT_FOUND without a network call
    SUPPORTS_SESSION_BARS: bool = True

    def __init__(
            self,
            timeout: float = 5.0,
            retry_attempts: int | None = None,
            breaker: CircuitBreaker | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self.retry_attempts = retry_attempts or self.MAX_RETRY_ATTEMPTS
        self.breaker = breaker or CircuitBreaker(
            name=self.source.value.lower(),
            excluded_exceptions=(TickerNotFoundError,),
        )

    # =========================================================================
    # ABSTRACT MEMBERS
    # =========================================================================

    @property
    @abstractmethod
    def source(self) -> QuoteSource:
        """The QuoteSource this adapter reports as `source_used`."""

    @abstractmethod
    async def _fetch_current(self, symbol: Symbol) -> RawQuote:
        """
        Fetch the current quote.

        Raises:
            TickerNotFoundError: Upstream does not know the symbol
            ProviderUnavailableError: Network or server error (retryable)
            RateLimitError: Upstream throttled us (retryable)
            MalformedPayloadError: Payload carries no usable price
        """

    async def _fetch_session_bars(self, symbol: Symbol, session_date: date) -> list[SessionBar]:
        """
        Fetch candidate daily bars for `session_date`.

        May return several bars (duplicate timestamps) or, when the
        upstream's day boundaries differ, a bar labelled with another
        date; the resolver picks among them.
        """
        raise TickerNotFoundError(symbol.code, self.name, "session bars not supported")

    # =========================================================================
    # PUBLIC BOUNDARY
    # =========================================================================

    @property
    def name(self) -> str:
        return self.source.value.lower()

    def is_available(self) -> bool:
        """False while the circuit breaker is rejecting calls."""
        return self.breaker.state != CircuitState.OPEN

    async def fetch_current(self, symbol: Symbol) -> SourceResult[RawQuote]:
        """Current quote for `symbol`, or a SourceError. Never raises."""
        return await self._guarded("fetch_current", symbol, lambda: self._fetch_current(symbol))

    async def fetch_session_bar(
            self,
            symbol: Symbol,
            session_date: date,
    ) -> SourceResult[tuple[SessionBar, ...]]:
        """Candidate bars for `session_date`, or a SourceError. Never raises."""
        if not self.SUPPORTS_SESSION_BARS:
            return SourceResult.failure(SourceError(
                self.source, SourceErrorReason.NOT_FOUND, "session bars not supported",
            ))

        async def _bars() -> tuple[SessionBar, ...]:
            bars = await self._fetch_session_bars(symbol, session_date)
            if not bars:
                raise TickerNotFoundError(symbol.code, self.name, f"no bar for {session_date}")
            return tuple(bars)

        return await self._guarded("fetch_session_bar", symbol, _bars)

    # =========================================================================
    # RETRY / TIMEOUT / ERROR MAPPING
    # =========================================================================

    async def _guarded(
            self,
            operation: str,
            symbol: Symbol,
            call: Callable[[], Awaitable[T]],
    ) -> SourceResult[T]:
        try:
            async with self.breaker:
                value = await self._execute_with_retry(call)
        except Exception as exc:
            error = self._to_source_error(exc)
            logger.warning(f"{self.name}.{operation}({symbol.code}) failed: {error}")
            return SourceResult.failure(error)

        return SourceResult.success(value)

    async def _execute_with_retry(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run `call` with a per-attempt timeout, retrying transient errors.

        Raises:
            SourceTimeoutError: An attempt exceeded self.timeout
            The last exception if all retries fail
        """
        async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(
                    multiplier=self.RETRY_MULTIPLIER,
                    min=self.RETRY_MIN_WAIT,
                    max=self.RETRY_MAX_WAIT,
                ),
                retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
        ):
            with attempt:
                try:
                    return await asyncio.wait_for(call(), timeout=self.timeout)
                except asyncio.TimeoutError as exc:
                    raise SourceTimeoutError(self.name, self.timeout) from exc
        raise AssertionError("unreachable")  # pragma: no cover

    def _to_source_error(self, exc: Exception) -> SourceError:
        if isinstance(exc, CircuitBreakerOpen):
            reason = SourceErrorReason.UNAVAILABLE
        elif isinstance(exc, TickerNotFoundError):
            reason = SourceErrorReason.NOT_FOUND
        elif isinstance(exc, (SourceTimeoutError, asyncio.TimeoutError)):
            reason = SourceErrorReason.TIMEOUT
        elif isinstance(exc, MalformedPayloadError) or isinstance(exc, _PARSE_ERRORS):
            reason = SourceErrorReason.MALFORMED
        elif isinstance(exc, MarketDataError):
            reason = SourceErrorReason.UNAVAILABLE
        else:
            logger.exception(f"Unexpected error in {self.name} adapter")
            reason = SourceErrorReason.UNAVAILABLE
        return SourceError(self.source, reason, str(exc))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout})"


def to_decimal(value: Any, positive: bool = True) -> Decimal | None:
    """
    Convert an upstream number (float, int, str with thousands separators)
    to Decimal. Returns None for missing or NaN values, and for
    non-positive values when `positive` is set (prices).
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
        if not value:
            return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    if result.is_nan() or result.is_infinite() or (positive and result <= 0):
        return None
    return result
