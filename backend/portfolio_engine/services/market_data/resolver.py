# backend/portfolio_engine/services/market_data/resolver.py
"""
Quote resolver.

Turns a classified symbol into a Quote by walking the symbol's ordered
source list and working out the economically correct previous close.

Algorithm:
    1. Take the source priority for the symbol's market class.
    2. Ask each adapter in order for the current price; stop at the first
       success. An adapter is never called before its predecessor failed.
    3. Market open: previous close is the adapter's own reported value.
       Market closed: previous close is the close of the last completed
       session strictly before the current one (MarketCalendar
       .previous_close_session), read from a session bar. If the bar comes
       back dated on the current session (upstream day boundaries differ
       from ours), step one session back and retry once.
    4. Every source failed: Quote.unavailable (source_used=NONE).
    5. After-hours bar lookup failed: degrade to the adapter's reported
       previous close; the quote stays flagged market_was_closed.
    6. No previous close from anywhere: use the current price, so the
       quote reports no change instead of a full-price move. The quote is
       flagged market_was_closed.

Session bars are looked up on the adapter that served the price first,
then on the other adapters in priority order. Realtime-only adapters
answer NOT_FOUND at once, so KR equities served by Naver read their
after-hours bar from Yahoo.

Nothing here raises for upstream failures: adapters report SourceError
values and the resolver folds them into fallback or a NONE quote.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal

from portfolio_engine.models import QuoteSource
from portfolio_engine.services.market_data.base import QuoteSourceAdapter
from portfolio_engine.services.market_data.calendar import MarketCalendar
from portfolio_engine.services.market_data.classifier import SOURCE_PRIORITY
from portfolio_engine.services.market_data.types import (
    Quote,
    RawQuote,
    SessionBar,
    SourceError,
    Symbol,
)

logger = logging.getLogger(__name__)


def select_session_bar(bars: Sequence[SessionBar], now: datetime) -> SessionBar | None:
    """
    Pick one bar among candidates: the chronologically latest bar
    strictly before `now`. Returns None if every candidate is at or
    after `now`.
    """
    candidates = [bar for bar in bars if bar.timestamp < now]
    if not candidates:
        return None
    return max(candidates, key=lambda bar: bar.timestamp)


class QuoteResolver:
    """
    Orchestrates classifier output, market calendar and adapters.

    Attributes:
        adapters: Adapter per QuoteSource; sources without an adapter are skipped
        calendar: Market calendar used for every date decision
    """

    def __init__(
            self,
            adapters: Mapping[QuoteSource, QuoteSourceAdapter],
            calendar: MarketCalendar | None = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.calendar = calendar or MarketCalendar()

    def adapters_for(self, symbol: Symbol) -> list[QuoteSourceAdapter]:
        """Adapters to try for `symbol`, in priority order."""
        return [
            self.adapters[source]
            for source in SOURCE_PRIORITY[symbol.market_class]
            if source in self.adapters
        ]

    async def resolve(self, symbol: Symbol, now: datetime) -> Quote:
        """
        Resolve one symbol as of `now` (tz-aware).

        Returns:
            A Quote; source_used is QuoteSource.NONE if every source failed
        """
        market_class = symbol.market_class
        market_closed = self.calendar.is_market_closed(market_class, now)
        adapters = self.adapters_for(symbol)

        errors: list[SourceError] = []
        for adapter in adapters:
            result = await adapter.fetch_current(symbol)
            if not result.ok:
                errors.append(result.error)
                continue

            raw = result.value
            flagged = market_closed
            if market_closed:
                previous_close = await self._after_hours_previous_close(symbol, adapter, adapters, now)
                if previous_close is None:
                    logger.warning(
                        f"{symbol.code}: after-hours session bar unavailable, "
                        f"using {adapter.name} reported previous close"
                    )
                    previous_close = self._reported_previous_close(raw)
            else:
                previous_close = raw.previous_close
                if previous_close is None:
                    previous_close = await self._after_hours_previous_close(symbol, adapter, adapters, now)
                if previous_close is None:
                    logger.warning(f"{symbol.code}: no previous close from {adapter.name}, reporting no change")
                    previous_close = raw.price
                    flagged = True

            quote = Quote.from_prices(
                symbol=symbol.code,
                current_price=raw.price,
                previous_close=previous_close,
                as_of=now,
                market_was_closed=flagged,
                source_used=adapter.source,
                market_class=market_class,
                name=raw.name,
            )
            logger.info(
                f"Resolved {symbol.code} via {adapter.name}: price={quote.current_price} "
                f"prev={quote.previous_close} closed={market_closed}"
            )
            return quote

        logger.error(
            f"All sources failed for {symbol.code}: "
            + (", ".join(str(e) for e in errors) or "no adapter configured")
        )
        return Quote.unavailable(
            symbol=symbol.code,
            as_of=now,
            market_was_closed=market_closed,
            market_class=market_class,
        )

    # =========================================================================
    # PREVIOUS CLOSE
    # =========================================================================

    async def _after_hours_previous_close(
            self,
            symbol: Symbol,
            served_by: QuoteSourceAdapter,
            adapters: list[QuoteSourceAdapter],
            now: datetime,
    ) -> Decimal | None:
        market_class = symbol.market_class
        current = self.calendar.current_session(market_class, now)
        target = self.calendar.previous_close_session(market_class, now)

        bar_sources = [served_by] + [a for a in adapters if a is not served_by]
        for adapter in bar_sources:
            bar = await self._session_bar(adapter, symbol, target, current, now)
            if bar is not None:
                logger.debug(f"{symbol.code}: previous close {bar.close} from {adapter.name} bar {bar.date}")
                return bar.close
        return None

    async def _session_bar(
            self,
            adapter: QuoteSourceAdapter,
            symbol: Symbol,
            target: date,
            current: date,
            now: datetime,
    ) -> SessionBar | None:
        """
        Bar for `target` from one adapter, stepping back once if the
        upstream hands back the current (not yet closed) session.
        """
        for attempt in range(2):
            result = await adapter.fetch_session_bar(symbol, target)
            if not result.ok:
                return None

            bar = select_session_bar(result.value, now)
            if bar is None:
                return None
            if bar.date < current:
                return bar

            if attempt == 0:
                logger.info(
                    f"{symbol.code}: {adapter.name} returned current session {bar.date} "
                    f"for {target}, stepping back one session"
                )
                target = self.calendar.previous_session(symbol.market_class, target)
        return None

    @staticmethod
    def _reported_previous_close(raw: RawQuote) -> Decimal:
        """The adapter's previous close, or the current price (zero change) if unknown."""
        if raw.previous_close is not None:
            return raw.previous_close
        return raw.price
