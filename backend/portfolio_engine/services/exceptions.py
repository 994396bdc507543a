# backend/portfolio_engine/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer maps the few that can reach it to HTTP responses.

Market data exceptions are raised inside quote source adapters only. The
adapter boundary (QuoteSourceAdapter.fetch_current / fetch_session_bar)
converts them into SourceError values, so they never reach the resolver
or any caller above it.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── MarketDataError
    │   ├── ProviderUnavailableError   -> SourceErrorReason.UNAVAILABLE (retryable)
    │   ├── RateLimitError             -> SourceErrorReason.UNAVAILABLE (retryable)
    │   ├── TickerNotFoundError        -> SourceErrorReason.NOT_FOUND
    │   ├── SourceTimeoutError         -> SourceErrorReason.TIMEOUT
    │   └── MalformedPayloadError      -> SourceErrorReason.MALFORMED
    └── FXRateError
        └── FXProviderError

    CircuitBreakerOpen (from circuit_breaker module)
        - Raised when a source's circuit is open; maps to UNAVAILABLE
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when service input is unusable (e.g. a non-positive exchange rate).

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# MARKET DATA SOURCE ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for quote source failures.

    Attributes:
        provider: Name of the source that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a source cannot be reached or answers with a server error.

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a source does not know the symbol, or cannot serve the
    requested data for it (e.g. no bar for the requested session).

    This is NOT a retryable error.
    """

    def __init__(self, ticker: str, provider: str, detail: str | None = None) -> None:
        message = f"Ticker '{ticker}' not found by {provider}"
        if detail:
            message += f": {detail}"
        super().__init__(message, provider=provider)
        self.ticker = ticker
        self.detail = detail


class RateLimitError(MarketDataError):
    """
    Raised when the source's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class SourceTimeoutError(MarketDataError):
    """Raised when a source call exceeds its per-call timeout."""

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(
            f"Provider '{provider}' timed out after {timeout:.1f}s",
            provider=provider,
        )
        self.timeout = timeout


class MalformedPayloadError(MarketDataError):
    """
    Raised when a source answers but the payload has no usable price.

    Not retryable: the same request returns the same payload.
    """

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"Malformed payload from '{provider}': {detail}", provider=provider)
        self.detail = detail


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        base_currency: The base currency code
        quote_currency: The quote currency code
    """

    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXProviderError(FXRateError):
    """
    Raised when a live FX endpoint fails or returns no usable rate.

    FXRateService catches this per endpoint and moves to the next one.
    """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"FX provider {url} failed: {reason}", "USD", "KRW")
        self.url = url
        self.reason = reason


# =============================================================================
# CIRCUIT BREAKER (re-exported for convenience)
# =============================================================================

from portfolio_engine.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402

__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "SourceTimeoutError",
    "MalformedPayloadError",
    # FX Rate
    "FXRateError",
    "FXProviderError",
    # Circuit Breaker
    "CircuitBreakerOpen",
]
