# backend/portfolio_engine/services/market_data/__init__.py
"""
Market data resolution.

Components, leaf first:
    classifier - code + currency -> market class and source priority
    calendar   - trading windows and session dates per market class
    yahoo/naver - quote source adapters behind QuoteSourceAdapter
    resolver   - source fallback and previous-close selection
    cache      - TTL + single-flight cache in front of the resolver

Usage:
    from portfolio_engine.services.market_data import (
        QuoteCache,
        QuoteResolver,
        classify,
    )
"""

from portfolio_engine.services.market_data.base import QuoteSourceAdapter
from portfolio_engine.services.market_data.cache import QuoteCache
from portfolio_engine.services.market_data.calendar import MarketCalendar, MarketHours
from portfolio_engine.services.market_data.classifier import (
    SOURCE_PRIORITY,
    classify,
    classify_market,
    parse_symbol_key,
    yahoo_symbol,
)
from portfolio_engine.services.market_data.naver import NaverMetalsAdapter, NaverStockAdapter
from portfolio_engine.services.market_data.resolver import QuoteResolver, select_session_bar
from portfolio_engine.services.market_data.types import (
    CachedQuote,
    CacheStats,
    Classification,
    Quote,
    RawQuote,
    SessionBar,
    SourceError,
    SourceResult,
    Symbol,
)
from portfolio_engine.services.market_data.yahoo import YahooQuoteAdapter

__all__ = [
    # Classification / calendar
    "classify",
    "classify_market",
    "parse_symbol_key",
    "yahoo_symbol",
    "SOURCE_PRIORITY",
    "MarketCalendar",
    "MarketHours",
    # Adapters
    "QuoteSourceAdapter",
    "YahooQuoteAdapter",
    "NaverStockAdapter",
    "NaverMetalsAdapter",
    # Resolution
    "QuoteResolver",
    "QuoteCache",
    "select_session_bar",
    # Types
    "Symbol",
    "Classification",
    "RawQuote",
    "SessionBar",
    "SourceError",
    "SourceResult",
    "Quote",
    "CachedQuote",
    "CacheStats",
]
