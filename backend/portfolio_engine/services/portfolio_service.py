# backend/portfolio_engine/services/portfolio_service.py
"""
Portfolio Service - valuation and risk over a holdings snapshot.

Entry points:
- get_portfolio_summary(): resolve quotes, value holdings, aggregate
- get_risk_metrics(): risk/performance statistics for valuations

The valuator and analyzer are pure; this service supplies their inputs
(quotes from QuoteService, the exchange rate from FXRateService unless
the caller provides one).

Usage:
    service = PortfolioService(quote_service, fx_service)
    result = await service.get_portfolio_summary(holdings)
    metrics = service.get_risk_metrics(result.valuations)
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal

from portfolio_engine.models import Currency
from portfolio_engine.services.analytics import RiskAnalyzer, RiskMetrics
from portfolio_engine.services.fx_rate_service import FXRateService
from portfolio_engine.services.quote_service import QuoteService
from portfolio_engine.services.valuation import (
    Holding,
    PortfolioValuator,
    Valuation,
    ValuationResult,
)

logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Orchestrates quotes, exchange rate, valuator and analyzer.

    Attributes:
        reporting_currency: Currency of aggregate totals
    """

    def __init__(
            self,
            quote_service: QuoteService,
            fx_service: FXRateService,
            reporting_currency: Currency = Currency.KRW,
    ) -> None:
        self._quotes = quote_service
        self._fx = fx_service
        self.reporting_currency = reporting_currency
        self._valuator = PortfolioValuator(reporting_currency)
        self._analyzer = RiskAnalyzer()

    async def get_portfolio_summary(
            self,
            holdings: Sequence[Holding],
            exchange_rate: Decimal | None = None,
            now: datetime | None = None,
    ) -> ValuationResult:
        """
        Value a holdings snapshot at current prices.

        Args:
            holdings: Positions to value
            exchange_rate: Reporting-currency units per foreign-currency unit;
                fetched from the FX service when None
            now: Resolution instant (tz-aware), defaults to now

        Returns:
            ValuationResult (valuations + summary)

        Raises:
            ValidationError: If a supplied exchange_rate is not positive
        """
        if exchange_rate is None:
            exchange_rate = await self.current_exchange_rate()

        if not holdings:
            return self._valuator.valuate([], {}, exchange_rate)

        cached = await self._quotes.resolve_quotes([h.quote_key for h in holdings], now=now)
        quotes = {key: entry.quote for key, entry in cached.items()}

        result = self._valuator.valuate(holdings, quotes, exchange_rate)
        logger.info(
            f"Valued {result.summary.holding_count} holdings: "
            f"{result.summary.total_value} {self.reporting_currency.value}, "
            f"{result.summary.unavailable_count} without price"
        )
        return result

    def get_risk_metrics(self, valuations: Iterable[Valuation]) -> RiskMetrics:
        return self._analyzer.analyze(valuations)

    async def current_exchange_rate(self) -> Decimal:
        """
        Rate that converts the non-reporting currency into the reporting one.

        The FX service quotes KRW per USD; a USD-reporting portfolio uses
        its inverse.
        """
        fx = await self._fx.get_usd_krw()
        if self.reporting_currency == Currency.KRW:
            return fx.rate
        return Decimal("1") / fx.rate
