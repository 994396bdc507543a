# backend/portfolio_engine/dependencies.py
"""
Dependency injection module for FastAPI services.

Provides the singleton service graph shared by all requests. The quote
cache must be one object per process (it is the single-flight point for
upstream calls), so every layer above it is a singleton as well.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from portfolio_engine.dependencies import get_quote_service

    @router.get("/")
    async def list_quotes(service: QuoteService = Depends(get_quote_service)):
        ...

Tests replace pieces with app.dependency_overrides and call
clear_service_caches() between cases.
"""

import logging
from functools import lru_cache

from portfolio_engine.config import settings
from portfolio_engine.models import Currency, QuoteSource
from portfolio_engine.services.circuit_breaker import CircuitBreaker
from portfolio_engine.services.exceptions import TickerNotFoundError
from portfolio_engine.services.fx_rate_service import FXRateService
from portfolio_engine.services.market_data import (
    MarketCalendar,
    NaverMetalsAdapter,
    NaverStockAdapter,
    QuoteCache,
    QuoteResolver,
    QuoteSourceAdapter,
    YahooQuoteAdapter,
)
from portfolio_engine.services.portfolio_service import PortfolioService
from portfolio_engine.services.quote_service import QuoteService

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_quote_adapters (no deps)
# 2. get_quote_resolver (adapters)
# 3. get_quote_cache (resolver)
# 4. get_quote_service (cache)
# 5. get_fx_rate_service (no deps)
# 6. get_portfolio_service (quote service, fx service)


def _breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.breaker_failure_threshold,
        recovery_timeout=settings.breaker_recovery_seconds,
        excluded_exceptions=(TickerNotFoundError,),
    )


@lru_cache(maxsize=1)
def get_quote_adapters() -> dict[QuoteSource, QuoteSourceAdapter]:
    """One adapter (and circuit breaker) per upstream, shared by all requests."""
    logger.debug("Initializing quote source adapters")
    return {
        QuoteSource.NAVER_STOCK: NaverStockAdapter(
            timeout=settings.source_timeout_seconds,
            retry_attempts=settings.source_retry_attempts,
            breaker=_breaker("naver_stock"),
        ),
        QuoteSource.NAVER_METALS: NaverMetalsAdapter(
            timeout=settings.metals_timeout_seconds,
            retry_attempts=settings.source_retry_attempts,
            breaker=_breaker("naver_metals"),
        ),
        QuoteSource.YAHOO: YahooQuoteAdapter(
            timeout=settings.source_timeout_seconds,
            retry_attempts=settings.source_retry_attempts,
            breaker=_breaker("yahoo"),
        ),
    }


@lru_cache(maxsize=1)
def get_quote_resolver() -> QuoteResolver:
    logger.debug("Initializing singleton QuoteResolver")
    return QuoteResolver(get_quote_adapters(), MarketCalendar())


@lru_cache(maxsize=1)
def get_quote_cache() -> QuoteCache:
    """
    Get the process-wide QuoteCache.

    Constructed once and handed to QuoteService; nothing else holds a
    reference to it.
    """
    logger.debug("Initializing singleton QuoteCache")
    return QuoteCache(
        get_quote_resolver(),
        ttl_seconds=settings.quote_cache_ttl_seconds,
        idle_eviction_seconds=settings.quote_cache_idle_eviction_seconds,
        max_concurrency=settings.quote_batch_concurrency,
    )


@lru_cache(maxsize=1)
def get_quote_service() -> QuoteService:
    logger.debug("Initializing singleton QuoteService")
    return QuoteService(
        get_quote_cache(),
        batch_deadline_seconds=settings.quote_batch_deadline_seconds,
    )


@lru_cache(maxsize=1)
def get_fx_rate_service() -> FXRateService:
    logger.debug("Initializing singleton FXRateService")
    return FXRateService(
        fallback_rate=settings.fx_fallback_rate,
        ttl_seconds=settings.fx_cache_ttl_seconds,
        timeout=settings.source_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_portfolio_service() -> PortfolioService:
    logger.debug("Initializing singleton PortfolioService")
    return PortfolioService(
        get_quote_service(),
        get_fx_rate_service(),
        reporting_currency=Currency(settings.reporting_currency),
    )


def clear_service_caches() -> None:
    """
    Drop every singleton so the next request rebuilds the graph.

    Useful for testing to ensure fresh instances.
    """
    get_quote_adapters.cache_clear()
    get_quote_resolver.cache_clear()
    get_quote_cache.cache_clear()
    get_quote_service.cache_clear()
    get_fx_rate_service.cache_clear()
    get_portfolio_service.cache_clear()
    logger.debug("Cleared all service caches")
