# backend/portfolio_engine/services/market_data/cache.py
"""
Time-bounded, request-coalescing quote cache in front of the resolver.

Guarantees:
- Single flight: while a symbol is being resolved, every other caller for
  that symbol awaits the same task. N concurrent misses cost exactly one
  resolution.
- Bounded fan-out: resolutions run under a semaphore shared by all
  callers, so a large batch cannot flood the upstream providers.
- Stale over nothing: if a refresh fails (source_used=NONE) and an older
  good quote exists, the older quote is served flagged is_stale and kept.
- Atomic entries: entries are frozen CachedQuote objects replaced in one
  dict assignment; a reader never sees a half-written entry.
- Lazy expiry: TTL is checked on access. Symbols not requested for
  idle_eviction_seconds are dropped during access-time sweeps.

The cache has no notion of who is asking. Manual-refresh cooldowns are
enforced by the API layer.

Usage:
    cache = QuoteCache(resolver, ttl_seconds=300)
    cached = await cache.get_or_fetch(symbol, now)
    batch = await cache.get_or_fetch_batch(symbols, now, deadline_seconds=10)
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from portfolio_engine.services.market_data.resolver import QuoteResolver
from portfolio_engine.services.market_data.types import (
    CachedQuote,
    CacheStats,
    Quote,
    Symbol,
)

logger = logging.getLogger(__name__)

# fetched_at of an invalidated entry: always older than any TTL
_EXPIRED = float("-inf")


class QuoteCache:
    """
    Per-process quote cache. Construct once and pass it to callers.

    Attributes:
        ttl_seconds: Freshness window of an entry
        idle_eviction_seconds: Idle time after which an entry is dropped
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(
            self,
            resolver: QuoteResolver,
            ttl_seconds: float = 300.0,
            idle_eviction_seconds: float = 3600.0,
            max_concurrency: int = 8,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if idle_eviction_seconds < ttl_seconds:
            raise ValueError("idle_eviction_seconds must be at least ttl_seconds")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.resolver = resolver
        self.ttl_seconds = ttl_seconds
        self.idle_eviction_seconds = idle_eviction_seconds
        self.clock = clock

        self._entries: dict[str, CachedQuote] = {}
        self._last_access: dict[str, float] = {}
        self._in_flight: dict[str, asyncio.Task[CachedQuote]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._stats = CacheStats()
        self._last_sweep = clock()

        logger.info(
            f"QuoteCache initialized: ttl={ttl_seconds}s, "
            f"idle_eviction={idle_eviction_seconds}s, concurrency={max_concurrency}"
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def get_or_fetch(self, symbol: Symbol, now: datetime) -> CachedQuote:
        """
        Fresh cached quote, or the result of a (possibly shared) resolution.

        Never raises for upstream failures; an unresolvable symbol yields a
        NONE quote, or the previous good quote flagged stale.
        """
        key = symbol.key
        t = self.clock()
        self._sweep(t)
        self._last_access[key] = t

        entry = self._entries.get(key)
        if entry is not None and t - entry.fetched_at <= self.ttl_seconds:
            self._stats.hits += 1
            logger.debug(f"Cache hit for {key}")
            return entry

        task = self._in_flight.get(key)
        if task is None:
            self._stats.misses += 1
            logger.debug(f"Cache miss for {key}")
            task = self._start_fetch(symbol, now)
        else:
            self._stats.coalesced += 1
            logger.debug(f"Joining in-flight fetch for {key}")

        # A cancelled waiter (batch deadline) must not cancel the shared fetch
        return await asyncio.shield(task)

    async def get_or_fetch_batch(
            self,
            symbols: Iterable[Symbol],
            now: datetime,
            deadline_seconds: float | None = None,
    ) -> dict[str, CachedQuote]:
        """
        Resolve many symbols concurrently.

        One task per distinct symbol. Symbols not settled by the deadline get
        their last cached value (flagged stale) or a NONE quote; their fetches
        keep running in the background and land in the cache.

        Returns:
            Mapping of Symbol.key to CachedQuote, one per distinct symbol
        """
        distinct = {symbol.key: symbol for symbol in symbols}
        if not distinct:
            return {}

        tasks = {
            key: asyncio.ensure_future(self.get_or_fetch(symbol, now))
            for key, symbol in distinct.items()
        }
        done, pending = await asyncio.wait(tasks.values(), timeout=deadline_seconds)

        for task in pending:
            task.cancel()
        if pending:
            logger.warning(
                f"Batch deadline {deadline_seconds}s passed with "
                f"{len(pending)}/{len(tasks)} symbols unresolved"
            )

        results: dict[str, CachedQuote] = {}
        for key, task in tasks.items():
            if task in done and task.exception() is None:
                results[key] = task.result()
            else:
                if task in done:
                    logger.error(f"Unexpected error resolving {key}: {task.exception()!r}")
                results[key] = self._fallback(distinct[key], now)
        return results

    def peek(self, symbol: Symbol) -> CachedQuote | None:
        """Current entry regardless of age, without fetching."""
        return self._entries.get(symbol.key)

    # =========================================================================
    # INVALIDATION / EVICTION
    # =========================================================================

    def invalidate(self, symbol: Symbol) -> bool:
        """
        Expire the entry for `symbol` so the next read refetches it.

        The expired quote is kept as the stale fallback should that refetch
        fail. An in-flight fetch is left to finish.

        Returns:
            True if an entry was expired
        """
        entry = self._entries.get(symbol.key)
        if entry is None:
            return False
        self._entries[symbol.key] = replace(entry, fetched_at=_EXPIRED)
        logger.debug(f"Invalidated {symbol.key}")
        return True

    def invalidate_all(self) -> int:
        count = len(self._entries)
        self._entries = {
            key: replace(entry, fetched_at=_EXPIRED)
            for key, entry in self._entries.items()
        }
        logger.info(f"Invalidated all {count} cached quotes")
        return count

    def evict_idle(self, t: float | None = None) -> int:
        """
        Drop entries not requested for idle_eviction_seconds.

        Returns:
            Number of entries evicted
        """
        t = self.clock() if t is None else t
        cutoff = t - self.idle_eviction_seconds
        idle = [
            key for key, last in self._last_access.items()
            if last < cutoff and key not in self._in_flight
        ]
        for key in idle:
            self._last_access.pop(key, None)
            self._entries.pop(key, None)
        if idle:
            self._stats.evicted += len(idle)
            logger.debug(f"Evicted {len(idle)} idle quotes")
        self._last_sweep = t
        return len(idle)

    @property
    def stats(self) -> CacheStats:
        return replace(
            self._stats,
            entries=len(self._entries),
            in_flight=len(self._in_flight),
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _sweep(self, t: float) -> None:
        # Sweeping on every access would be O(n) per read; once per TTL is enough
        if t - self._last_sweep >= self.ttl_seconds:
            self.evict_idle(t)

    def _start_fetch(self, symbol: Symbol, now: datetime) -> asyncio.Task[CachedQuote]:
        key = symbol.key
        task = asyncio.create_task(self._fetch(symbol, now), name=f"quote:{key}")
        self._in_flight[key] = task

        def _done(finished: asyncio.Task[CachedQuote]) -> None:
            if self._in_flight.get(key) is finished:
                del self._in_flight[key]

        task.add_done_callback(_done)
        return task

    async def _fetch(self, symbol: Symbol, now: datetime) -> CachedQuote:
        key = symbol.key
        async with self._semaphore:
            try:
                quote = await self.resolver.resolve(symbol, now)
            except Exception:
                logger.exception(f"Resolver failed for {key}")
                quote = Quote.unavailable(symbol.code, now, market_class=symbol.market_class)

        previous = self._entries.get(key)
        if not quote.is_available and previous is not None and previous.quote.is_available:
            self._stats.stale_served += 1
            logger.warning(f"Refresh failed for {key}, serving stale quote from {previous.quote.as_of}")
            return replace(previous, is_stale=True)

        cached = CachedQuote(quote=quote, fetched_at=self.clock())
        self._entries[key] = cached
        return cached

    def _fallback(self, symbol: Symbol, now: datetime) -> CachedQuote:
        previous = self._entries.get(symbol.key)
        if previous is not None and previous.quote.is_available:
            self._stats.stale_served += 1
            return replace(previous, is_stale=True)
        return CachedQuote(
            quote=Quote.unavailable(symbol.code, now, market_class=symbol.market_class),
            fetched_at=self.clock(),
        )
