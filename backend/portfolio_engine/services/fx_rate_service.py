# backend/portfolio_engine/services/fx_rate_service.py
"""
USD/KRW exchange-rate provider.

The valuation core never owns exchange-rate state: it receives a rate as
an argument. This service is the collaborator that supplies it.

=============================================================================
RATE CONVENTION
=============================================================================

    rate = "1 USD = X KRW"        e.g. 1350.25

    KRW_amount = USD_amount × rate

=============================================================================

Sources (tried in order, first usable `rates.KRW` wins):
    1. https://api.exchangerate-api.com/v4/latest/USD
    2. https://open.er-api.com/v6/latest/USD
    3. settings.fx_fallback_rate (flagged is_fallback)

The last good live rate is kept in a one-slot cachetools TTLCache for
fx_cache_ttl_seconds. Concurrent callers during a refresh share one round
of HTTP calls. A fallback rate is never cached, so the next call retries
the live sources.

Usage:
    service = FXRateService()
    fx = await service.get_usd_krw()
    krw_value = usd_value * fx.rate
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import httpx
from cachetools import TTLCache

from portfolio_engine.services.constants import FX_RATE_URLS
from portfolio_engine.services.exceptions import FXProviderError
from portfolio_engine.services.market_data.base import to_decimal

logger = logging.getLogger(__name__)

_USD_KRW = "USD/KRW"


@dataclass(frozen=True)
class FXRate:
    """
    A USD/KRW rate and where it came from.

    Attributes:
        rate: KRW per 1 USD
        source: URL of the provider, or "fallback"
        fetched_at: When the rate was obtained (UTC)
        is_fallback: True when no live provider answered
    """
    rate: Decimal
    source: str
    fetched_at: datetime
    is_fallback: bool = False


class FXRateService:
    """
    Fetches and caches the USD/KRW rate.

    Attributes:
        urls: Provider URLs, tried in order
        fallback_rate: Rate returned when every provider fails
        ttl_seconds: Reuse window of a live rate
    """

    def __init__(
            self,
            urls: Sequence[str] = FX_RATE_URLS,
            fallback_rate: Decimal = Decimal("1350"),
            ttl_seconds: float = 3600.0,
            timeout: float = 5.0,
            client: httpx.AsyncClient | None = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if fallback_rate <= 0:
            raise ValueError("fallback_rate must be positive")
        self.urls = tuple(urls)
        self.fallback_rate = fallback_rate
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._client = client
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl_seconds, timer=clock)
        self._lock = asyncio.Lock()

    async def get_usd_krw(self) -> FXRate:
        """
        Current USD/KRW rate. Never raises: falls back to the configured rate.
        """
        cached = self._fresh_cached()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have refreshed while we waited
            cached = self._fresh_cached()
            if cached is not None:
                return cached

            for url in self.urls:
                try:
                    rate = await self._fetch(url)
                except FXProviderError as e:
                    logger.warning(str(e))
                    continue

                fx = FXRate(rate=rate, source=url, fetched_at=datetime.now(timezone.utc))
                self._cache[_USD_KRW] = fx
                logger.info(f"USD/KRW rate {rate} from {url}")
                return fx

        logger.error(f"All FX providers failed, using fallback rate {self.fallback_rate}")
        return FXRate(
            rate=self.fallback_rate,
            source="fallback",
            fetched_at=datetime.now(timezone.utc),
            is_fallback=True,
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    def _fresh_cached(self) -> FXRate | None:
        return self._cache.get(_USD_KRW)

    async def _fetch(self, url: str) -> Decimal:
        """
        Read `rates.KRW` from one provider.

        Raises:
            FXProviderError: On transport errors, non-2xx, or a missing rate
        """
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise FXProviderError(url, f"{type(e).__name__}: {e}") from e

        rates = payload.get("rates") if isinstance(payload, dict) else None
        rate = to_decimal(rates.get("KRW")) if isinstance(rates, dict) else None
        if rate is None:
            raise FXProviderError(url, "response has no rates.KRW")
        return rate
