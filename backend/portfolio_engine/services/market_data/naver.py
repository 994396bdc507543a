# backend/portfolio_engine/services/market_data/naver.py
"""
Naver Finance quote sources for domestic instruments.

Two adapters share one HTTP layer:

    NaverStockAdapter   - primary source for KOSPI/KOSDAQ listings. Reads the
                          realtime polling API (stock endpoint, then etf).
    NaverMetalsAdapter  - metal futures (e.g. domestic gold, "M04020000").
                          The only upstream for them is the mobile market
                          index page, scraped with regular expressions.

Both upstreams are realtime only, so neither serves session bars. The
resolver takes after-hours bars from the next source in the symbol's
priority list, or degrades to the reported change when there is none.

HTTP status mapping:
    404                -> TickerNotFoundError
    429                -> RateLimitError
    other non-2xx      -> ProviderUnavailableError
    transport errors   -> ProviderUnavailableError
    httpx timeouts     -> SourceTimeoutError
"""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from portfolio_engine.models import QuoteSource
from portfolio_engine.services.constants import (
    DESKTOP_USER_AGENT,
    MOBILE_USER_AGENT,
    NAVER_METALS_REFERER,
    NAVER_METALS_URL,
    NAVER_REALTIME_URL,
    NAVER_REFERER,
)
from portfolio_engine.services.exceptions import (
    MalformedPayloadError,
    ProviderUnavailableError,
    RateLimitError,
    SourceTimeoutError,
    TickerNotFoundError,
)
from portfolio_engine.services.market_data.base import QuoteSourceAdapter, to_decimal
from portfolio_engine.services.market_data.types import RawQuote, Symbol

logger = logging.getLogger(__name__)


class _NaverHttpAdapter(QuoteSourceAdapter):
    """
    Shared HTTP plumbing for the Naver adapters.

    A shared httpx.AsyncClient can be injected (tests pass one built on
    httpx.MockTransport); otherwise a short-lived client is opened per call.
    """

    SUPPORTS_SESSION_BARS = False

    def __init__(
            self,
            timeout: float = 5.0,
            retry_attempts: int | None = None,
            breaker=None,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retry_attempts=retry_attempts, breaker=breaker)
        self._client = client

    async def _get(self, url: str, code: str, headers: dict[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise SourceTimeoutError(self.name, self.timeout) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code == 404:
            raise TickerNotFoundError(code, self.name)
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.name, int(retry_after) if retry_after and retry_after.isdigit() else None
            )
        if response.status_code >= 400:
            raise ProviderUnavailableError(self.name, f"HTTP {response.status_code}")
        return response


# =============================================================================
# REALTIME STOCK / ETF
# =============================================================================

class NaverStockAdapter(_NaverHttpAdapter):
    """
    Naver realtime polling API for domestic equities and ETFs.

    Payload (relevant fields, numbers are strings with thousands separators):
        {"datas": [{"stockName": "삼성전자",
                    "closePrice": "75,000",
                    "compareToPreviousClosePrice": "-1,000",
                    "fluctuationsRatio": "-1.32",
                    "accumulatedTradingVolume": "12,345,678"}]}
    """

    # Tried in order; an unknown code on "stock" may be an ETF
    ENDPOINT_KINDS: tuple[str, ...] = ("stock", "etf")

    @property
    def source(self) -> QuoteSource:
        return QuoteSource.NAVER_STOCK

    async def _fetch_current(self, symbol: Symbol) -> RawQuote:
        headers = {"User-Agent": DESKTOP_USER_AGENT, "Referer": NAVER_REFERER}

        for kind in self.ENDPOINT_KINDS:
            url = NAVER_REALTIME_URL.format(kind=kind, code=symbol.code)
            try:
                response = await self._get(url, symbol.code, headers)
            except TickerNotFoundError:
                logger.debug(f"Naver {kind} endpoint does not know {symbol.code}")
                continue

            datas = response.json().get("datas") or []
            if not datas:
                logger.debug(f"Naver {kind} endpoint returned no data for {symbol.code}")
                continue
            return self._parse(symbol, datas[0])

        raise TickerNotFoundError(symbol.code, self.name)

    def _parse(self, symbol: Symbol, data: dict[str, Any]) -> RawQuote:
        price = to_decimal(data.get("closePrice"))
        if price is None:
            raise MalformedPayloadError(self.name, f"closePrice missing for {symbol.code}")

        change = to_decimal(data.get("compareToPreviousClosePrice"), positive=False)
        previous_close = None
        if change is not None and price - change > 0:
            previous_close = price - change

        volume = to_decimal(data.get("accumulatedTradingVolume"), positive=False)
        return RawQuote(
            symbol=symbol.code,
            price=price,
            previous_close=previous_close,
            change=change,
            change_percent=to_decimal(data.get("fluctuationsRatio"), positive=False),
            volume=int(volume) if volume is not None else None,
            name=data.get("stockName") or None,
            as_of=datetime.now(timezone.utc),
        )


# =============================================================================
# METAL FUTURES (HTML SCRAPE)
# =============================================================================

class NaverMetalsAdapter(_NaverHttpAdapter):
    """
    Naver mobile market-index page for domestic metals, priced in KRW per gram.

    Price patterns are tried in order; the page markup changes from time
    to time, so the embedded JSON pattern is kept as a last resort.

    The daily change is read from, in order:
        1. the embedded JSON ("fluctuations" / "fluctuationsRatio"), signed
        2. the HTML fluctuation block; its amount and percent are unsigned,
           the direction comes from the Fluctuation_RISING/FALLING class or,
           failing that, the 상승 (rise) / 하락 (fall) label
        3. the amount following a bare 하락 / 상승 label, with the first
           percentage on the page
    A page that yields no signed change leaves change unset, and the
    resolver then reports no daily move for it.
    """

    PRICE_PATTERNS: tuple[re.Pattern[str], ...] = (
        re.compile(r'class="DetailInfo_price__I_VJn">(\d{1,3}(?:,\d{3})*)<span[^>]*>원/g'),
        re.compile(r'>(\d{1,3}(?:,\d{3})*)<[^>]*원/g'),
        re.compile(r'"price":"(\d{1,3}(?:,\d{3})*)"'),
    )
    CHANGE_PATTERN = re.compile(
        r'"fluctuations":"([+-]?\d{1,3}(?:,\d{3})*)","fluctuationsRatio":"([+-]?\d+(?:\.\d+)?)"'
    )
    FLUCTUATION_PATTERN = re.compile(
        r'Fluctuation_fluctuation__9UU9_[^>]*>[\s\S]*?(\d{1,3}(?:,\d{3})*)<[\s\S]*?([+-]?\d+(?:\.\d+)?)<span[^>]*>%'
    )
    FALL_PATTERN = re.compile(r'하락[^>]*>[\s\S]*?(\d{1,3}(?:,\d{3})*)')
    RISE_PATTERN = re.compile(r'상승[^>]*>[\s\S]*?(\d{1,3}(?:,\d{3})*)')
    PERCENT_PATTERN = re.compile(r'([+-]?\d+(?:\.\d+)?)%')

    @property
    def source(self) -> QuoteSource:
        return QuoteSource.NAVER_METALS

    async def _fetch_current(self, symbol: Symbol) -> RawQuote:
        headers = {
            "User-Agent": MOBILE_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "ko-KR,ko;q=0.9,en;q=0.8",
            "Referer": NAVER_METALS_REFERER,
        }
        response = await self._get(NAVER_METALS_URL.format(code=symbol.code), symbol.code, headers)
        return self.parse_page(symbol, response.text)

    def parse_page(self, symbol: Symbol, html: str) -> RawQuote:
        price = self._extract_price(html)
        if price is None:
            raise MalformedPayloadError(self.name, f"no price pattern matched for {symbol.code}")

        change, change_percent = self._extract_change(html)
        if change is None:
            logger.debug(f"No change pattern matched for {symbol.code}")

        previous_close = None
        if change is not None and price - change > 0:
            previous_close = price - change

        return RawQuote(
            symbol=symbol.code,
            price=price,
            previous_close=previous_close,
            change=change,
            change_percent=change_percent,
            as_of=datetime.now(timezone.utc),
        )

    def _extract_price(self, html: str) -> Decimal | None:
        for pattern in self.PRICE_PATTERNS:
            match = pattern.search(html)
            if match:
                price = to_decimal(match.group(1))
                if price is not None:
                    return price
        return None

    def _extract_change(self, html: str) -> tuple[Decimal | None, Decimal | None]:
        """(change, change_percent), both signed; (None, None) if no direction is known."""
        match = self.CHANGE_PATTERN.search(html)
        if match:
            return (
                to_decimal(match.group(1), positive=False),
                to_decimal(match.group(2), positive=False),
            )

        direction = self._direction(html)
        if direction is None:
            return None, None

        match = self.FLUCTUATION_PATTERN.search(html)
        if match:
            amount, percent = match.group(1), match.group(2)
        else:
            amount_match = (self.FALL_PATTERN if direction < 0 else self.RISE_PATTERN).search(html)
            percent_match = self.PERCENT_PATTERN.search(html)
            amount = amount_match.group(1) if amount_match else None
            percent = percent_match.group(1) if percent_match else None

        change = to_decimal(amount, positive=False)
        change_percent = to_decimal(percent, positive=False)
        return (
            abs(change) * direction if change is not None else None,
            abs(change_percent) * direction if change_percent is not None else None,
        )

    @staticmethod
    def _direction(html: str) -> int | None:
        if "Fluctuation_FALLING" in html:
            return -1
        if "Fluctuation_RISING" in html:
            return 1
        if "하락" in html:
            return -1
        if "상승" in html:
            return 1
        return None
