# backend/portfolio_engine/routers/quotes.py
"""
Quote endpoints.

- GET /quotes?symbols=005930,AAPL:USD - Cached/resolved quotes
- POST /quotes/refresh - Forced refetch, limited per client by the refresh cooldown
- GET /quotes/stats - Quote cache counters

Symbols are "CODE" or "CODE:CURRENCY". Without a currency, letter-only
codes are read as USD and everything else as KRW.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request

from portfolio_engine.dependencies import get_quote_service
from portfolio_engine.middleware.rate_limit import RATE_LIMIT_QUOTES, RATE_LIMIT_REFRESH, limiter
from portfolio_engine.schemas.quotes import (
    CacheStatsResponse,
    QuoteResponse,
    QuotesResponse,
    RefreshRequest,
)
from portfolio_engine.services.market_data.types import CachedQuote
from portfolio_engine.services.quote_service import QuoteService

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"],
)


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_quote(cached: CachedQuote) -> QuoteResponse:
    quote = cached.quote
    return QuoteResponse(
        symbol=quote.symbol,
        market_class=quote.market_class,
        name=quote.name,
        current_price=quote.current_price,
        previous_close=quote.previous_close,
        change=quote.change,
        change_percent=quote.change_percent,
        as_of=quote.as_of,
        market_was_closed=quote.market_was_closed,
        source_used=quote.source_used,
        price_available=quote.is_available,
        is_stale=cached.is_stale,
    )


def _map_quotes(results: dict[str, CachedQuote]) -> QuotesResponse:
    return QuotesResponse(
        quotes={key: _map_quote(cached) for key, cached in results.items()},
        total=len(results),
        unavailable=sorted(key for key, cached in results.items() if not cached.quote.is_available),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=QuotesResponse,
    summary="Get quotes",
)
@limiter.limit(RATE_LIMIT_QUOTES)
async def get_quotes(
        request: Request,  # Required for rate limiting
        symbols: str = Query(
            ...,
            min_length=1,
            description='Comma-separated tokens, e.g. "005930,AAPL:USD"',
        ),
        service: QuoteService = Depends(get_quote_service),
) -> QuotesResponse:
    """
    Resolve quotes, serving fresh cache entries without an upstream call.

    A symbol no source could price is returned with `price_available=false`
    and zero prices. `is_stale=true` marks an older value served because a
    fresh one could not be obtained in time.
    """
    results = await service.resolve_quotes(symbols.split(","))
    return _map_quotes(results)


@router.post(
    "/refresh",
    response_model=QuotesResponse,
    summary="Force a quote refresh",
)
@limiter.limit(RATE_LIMIT_REFRESH)
async def refresh_quotes(
        request: Request,  # Required for rate limiting
        body: RefreshRequest,
        service: QuoteService = Depends(get_quote_service),
) -> QuotesResponse:
    """
    Drop cached quotes for the given symbols and resolve them again.

    Limited per client by the refresh cooldown; excess calls get **429**
    with a `Retry-After` header.
    """
    results = await service.refresh(body.symbols)
    return _map_quotes(results)


@router.get(
    "/stats",
    response_model=CacheStatsResponse,
    summary="Quote cache statistics",
)
@limiter.limit(RATE_LIMIT_QUOTES)
def get_cache_stats(
        request: Request,  # Required for rate limiting
        service: QuoteService = Depends(get_quote_service),
) -> CacheStatsResponse:
    return CacheStatsResponse(**asdict(service.stats))
