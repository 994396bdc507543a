# backend/portfolio_engine/services/market_data/yahoo.py
"""
Yahoo Finance quote source.

Serves US equities and acts as the fallback (and the session-bar source)
for domestic equities, which Yahoo lists under ".KS" / ".KQ" suffixes.
Metal futures are not listed on Yahoo and are reported as NOT_FOUND.

yfinance is synchronous; every call runs in a worker thread via
asyncio.to_thread so the event loop keeps serving other symbols. The
per-call timeout from the base class stops waiting on a slow thread but
cannot interrupt it.

Field precedence (first present, positive value wins):
    current price:  regularMarketPrice, postMarketPrice, preMarketPrice
    previous close: regularMarketPreviousClose, chartPreviousClose, previousClose

Limitations:
- Rate limits exist but are not documented
- Quotes may be delayed 15-20 minutes
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

import yfinance as yf

from portfolio_engine.models import QuoteSource
from portfolio_engine.services.constants import SESSION_BAR_LOOKBACK_DAYS
from portfolio_engine.services.exceptions import (
    MalformedPayloadError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from portfolio_engine.services.market_data.base import QuoteSourceAdapter, to_decimal
from portfolio_engine.services.market_data.calendar import DEFAULT_HOURS
from portfolio_engine.services.market_data.classifier import yahoo_symbol
from portfolio_engine.services.market_data.types import RawQuote, SessionBar, Symbol

logger = logging.getLogger(__name__)


class YahooQuoteAdapter(QuoteSourceAdapter):
    """
    Yahoo Finance implementation of QuoteSourceAdapter.

    Example:
        adapter = YahooQuoteAdapter(timeout=5)
        result = await adapter.fetch_current(classify("AAPL", "USD").symbol)
        if result.ok:
            print(result.value.price)
    """

    PRICE_FIELDS: tuple[str, ...] = (
        "regularMarketPrice",
        "postMarketPrice",
        "preMarketPrice",
    )
    PREVIOUS_CLOSE_FIELDS: tuple[str, ...] = (
        "regularMarketPreviousClose",
        "chartPreviousClose",
        "previousClose",
    )

    @property
    def source(self) -> QuoteSource:
        return QuoteSource.YAHOO

    # =========================================================================
    # CURRENT QUOTE
    # =========================================================================

    async def _fetch_current(self, symbol: Symbol) -> RawQuote:
        ticker = self._require_ticker(symbol)
        info = await asyncio.to_thread(self._load_info, ticker)

        price = self._first_positive(info, self.PRICE_FIELDS)
        if price is None:
            if not (info.get("shortName") or info.get("longName")):
                raise TickerNotFoundError(symbol.code, self.name)
            raise MalformedPayloadError(self.name, f"no price field for {ticker}")

        logger.debug(f"Yahoo quote {ticker}: price={price}")
        return RawQuote(
            symbol=symbol.code,
            price=price,
            previous_close=self._first_positive(info, self.PREVIOUS_CLOSE_FIELDS),
            change=to_decimal(info.get("regularMarketChange"), positive=False),
            change_percent=to_decimal(info.get("regularMarketChangePercent"), positive=False),
            volume=self._to_int(info.get("regularMarketVolume")),
            name=info.get("longName") or info.get("shortName"),
            as_of=datetime.now(timezone.utc),
        )

    def _load_info(self, ticker: str) -> dict[str, Any]:
        """Blocking yfinance call; runs in a worker thread."""
        try:
            info = yf.Ticker(ticker).info
        except Exception as e:
            raise self._map_error(ticker, e) from e
        return info or {}

    # =========================================================================
    # SESSION BARS
    # =========================================================================

    async def _fetch_session_bars(self, symbol: Symbol, session_date: date) -> list[SessionBar]:
        """
        Daily bars of the latest session on or before `session_date`.

        Requests a short window ending at session_date so a holiday on
        session_date still yields the preceding session's bar.
        """
        ticker = self._require_ticker(symbol)
        start = session_date - timedelta(days=SESSION_BAR_LOOKBACK_DAYS)
        # Yahoo Finance end date is exclusive
        end = session_date + timedelta(days=1)

        df = await asyncio.to_thread(self._load_history, ticker, start, end)
        bars = self._dataframe_to_bars(df, symbol)
        if not bars:
            return []

        latest = max(bar.date for bar in bars)
        return [bar for bar in bars if bar.date == latest]

    def _load_history(self, ticker: str, start: date, end: date):
        try:
            return yf.Ticker(ticker).history(
                start=start.isoformat(),
                end=end.isoformat(),
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            raise self._map_error(ticker, e) from e

    def _dataframe_to_bars(self, df, symbol: Symbol) -> list[SessionBar]:
        """
        Convert a yfinance history DataFrame to SessionBars.

        Rows without a usable Close are skipped. Naive index timestamps are
        taken as exchange-local.
        """
        if df is None or df.empty:
            return []

        tz = DEFAULT_HOURS[symbol.market_class].tz
        bars = []
        for idx, row in df.iterrows():
            close = to_decimal(row.get("Close"))
            if close is None:
                logger.warning(f"Skipping {symbol.code} bar {idx}: missing close")
                continue
            stamp = idx.to_pydatetime() if hasattr(idx, "to_pydatetime") else idx
            if stamp.tzinfo is None:
                stamp = stamp.replace(tzinfo=tz)
            bars.append(SessionBar(
                date=stamp.astimezone(tz).date(),
                close=close,
                timestamp=stamp,
            ))
        return bars

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_ticker(self, symbol: Symbol) -> str:
        ticker = yahoo_symbol(symbol)
        if ticker is None:
            raise TickerNotFoundError(symbol.code, self.name, "not listed on Yahoo")
        return ticker

    def _map_error(self, ticker: str, error: Exception) -> Exception:
        """Map a yfinance exception to our hierarchy by its message."""
        error_str = str(error).lower()
        if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
            return TickerNotFoundError(ticker, self.name)
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)
        logger.error(f"Yahoo Finance error for {ticker}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    @staticmethod
    def _first_positive(info: dict[str, Any], fields: tuple[str, ...]):
        for field_name in fields:
            value = to_decimal(info.get(field_name))
            if value is not None:
                return value
        return None

    @staticmethod
    def _to_int(value: Any) -> int | None:
        dec = to_decimal(value, positive=False)
        return int(dec) if dec is not None else None
