# backend/portfolio_engine/services/quote_service.py
"""
Quote Service - entry point for quote resolution.

Callers hand in request tokens ("005930", "AAPL:USD", "M04020000:KRW");
the service classifies them, runs them through the shared QuoteCache and
returns one CachedQuote per distinct symbol.

Design Principles:
- Dependency Injection: the cache (and through it the resolver and
  adapters) is passed in, never created from globals
- No HTTP Knowledge: the refresh cooldown belongs to the API layer
- Never raises for upstream failures; a failed symbol is a NONE quote

Usage:
    service = QuoteService(cache, batch_deadline_seconds=15)
    quotes = await service.resolve_quotes(["005930", "AAPL:USD"])
    for key, cached in quotes.items():
        print(key, cached.quote.current_price, cached.is_stale)
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from portfolio_engine.services.exceptions import ValidationError
from portfolio_engine.services.market_data.cache import QuoteCache
from portfolio_engine.services.market_data.classifier import parse_symbol_key
from portfolio_engine.services.market_data.types import CachedQuote, CacheStats, Symbol

logger = logging.getLogger(__name__)


class QuoteService:
    """
    Resolves quotes for request tokens through the shared cache.

    Attributes:
        cache: Process-wide QuoteCache
        batch_deadline_seconds: Wall-clock budget of one resolve_quotes call
    """

    def __init__(
            self,
            cache: QuoteCache,
            batch_deadline_seconds: float | None = None,
    ) -> None:
        self.cache = cache
        self.batch_deadline_seconds = batch_deadline_seconds

    @staticmethod
    def parse_symbols(tokens: Iterable[str]) -> list[Symbol]:
        """
        Classify request tokens, skipping blanks.

        Raises:
            ValidationError: If no non-blank token is given
        """
        symbols = [
            parse_symbol_key(token).symbol
            for token in tokens
            if token and token.strip()
        ]
        if not symbols:
            raise ValidationError("At least one symbol is required", field="symbols")
        return symbols

    async def resolve_quotes(
            self,
            tokens: Iterable[str],
            now: datetime | None = None,
    ) -> dict[str, CachedQuote]:
        """
        Resolve quotes for the given tokens.

        Args:
            tokens: "CODE" or "CODE:CURRENCY" strings
            now: Resolution instant (tz-aware); defaults to the current UTC time

        Returns:
            Mapping of Symbol.key ("005930:KRW") to CachedQuote
        """
        symbols = self.parse_symbols(tokens)
        now = now or datetime.now(timezone.utc)
        results = await self.cache.get_or_fetch_batch(
            symbols, now, deadline_seconds=self.batch_deadline_seconds
        )

        unavailable = [key for key, cached in results.items() if not cached.quote.is_available]
        if unavailable:
            logger.warning(f"No quote available for: {', '.join(unavailable)}")
        return results

    async def refresh(
            self,
            tokens: Iterable[str],
            now: datetime | None = None,
    ) -> dict[str, CachedQuote]:
        """Invalidate the given symbols, then resolve them again."""
        symbols = self.parse_symbols(tokens)
        for symbol in symbols:
            self.cache.invalidate(symbol)
        logger.info(f"Forced refresh of {len(symbols)} symbol(s)")
        return await self.resolve_quotes([s.key for s in symbols], now=now)

    @property
    def stats(self) -> CacheStats:
        return self.cache.stats

    def source_status(self) -> dict[str, str]:
        """Circuit state per configured adapter, keyed by adapter name."""
        return {
            adapter.name: adapter.breaker.state.value
            for adapter in self.cache.resolver.adapters.values()
        }
