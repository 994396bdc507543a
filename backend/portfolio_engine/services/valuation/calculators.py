# backend/portfolio_engine/services/valuation/calculators.py
"""
Portfolio valuator.

Folds holdings and resolved quotes into per-holding valuations and a
portfolio summary in one reporting currency.

Design Principles:
- Pure: no network, no clock, no instance state beyond configuration.
  Calling valuate twice with the same inputs yields equal results.
- The exchange rate is an argument; this module never fetches one.
- Uses Decimal for ALL financial calculations.

Conversion is linear: a holding whose currency differs from the
reporting currency is multiplied by `exchange_rate` (units of reporting
currency per unit of the holding's currency).

Usage:
    valuator = PortfolioValuator(reporting_currency=Currency.KRW)
    result = valuator.valuate(holdings, quotes, exchange_rate=Decimal("1350"))
    print(result.summary.total_value)
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from portfolio_engine.models import Currency
from portfolio_engine.services.constants import MONEY_QUANTIZE, PERCENT
from portfolio_engine.services.exceptions import ValidationError
from portfolio_engine.services.market_data.types import Quote
from portfolio_engine.services.valuation.types import (
    Holding,
    PortfolioSummary,
    Valuation,
    ValuationResult,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole × 100, quantized; 0 when whole is not positive."""
    if whole <= 0:
        return _ZERO
    return (part / whole * PERCENT).quantize(MONEY_QUANTIZE)


class PortfolioValuator:
    """
    Values holdings against quotes.

    Attributes:
        reporting_currency: Currency of all *_reporting_ccy fields and the summary
    """

    def __init__(self, reporting_currency: Currency = Currency.KRW) -> None:
        self.reporting_currency = reporting_currency

    def valuate(
            self,
            holdings: Iterable[Holding],
            quotes: Mapping[str, Quote],
            exchange_rate: Decimal,
    ) -> ValuationResult:
        """
        Value every holding and aggregate.

        Args:
            holdings: Holdings snapshot
            quotes: Quotes keyed by Holding.quote_key ("005930:KRW"); a plain
                code key ("005930") is accepted as well
            exchange_rate: Reporting-currency units per foreign-currency unit

        Returns:
            ValuationResult with one Valuation per holding, in input order

        Raises:
            ValidationError: If exchange_rate is not positive
        """
        if exchange_rate <= 0:
            raise ValidationError(
                f"exchange_rate must be positive, got {exchange_rate}",
                field="exchange_rate",
            )

        valuations = tuple(
            self.valuate_holding(holding, self._quote_for(holding, quotes), exchange_rate)
            for holding in holdings
        )
        summary = self.summarize(valuations, exchange_rate)
        return ValuationResult(valuations=valuations, summary=summary)

    def valuate_holding(
            self,
            holding: Holding,
            quote: Quote | None,
            exchange_rate: Decimal,
    ) -> Valuation:
        price_available = quote is not None and quote.is_available
        current_price = quote.current_price if price_available else _ZERO
        change = quote.change if price_available else _ZERO

        total_value = holding.quantity * current_price
        total_cost = holding.quantity * holding.average_cost
        profit_loss = total_value - total_cost
        day_change = change * holding.quantity

        rate = Decimal("1") if holding.currency == self.reporting_currency else exchange_rate

        if not price_available:
            logger.warning(f"No price for {holding.symbol}; valued at 0 and flagged unavailable")

        return Valuation(
            holding=holding,
            current_price=current_price,
            total_value=total_value,
            total_cost=total_cost,
            profit_loss=profit_loss,
            profit_loss_percent=percent_of(profit_loss, total_cost),
            day_change=day_change,
            total_value_reporting_ccy=total_value * rate,
            total_cost_reporting_ccy=total_cost * rate,
            profit_loss_reporting_ccy=profit_loss * rate,
            day_change_reporting_ccy=day_change * rate,
            price_available=price_available,
            quote=quote,
        )

    def summarize(self, valuations: Iterable[Valuation], exchange_rate: Decimal) -> PortfolioSummary:
        valuations = list(valuations)
        total_value = sum((v.total_value_reporting_ccy for v in valuations), _ZERO)
        total_cost = sum((v.total_cost_reporting_ccy for v in valuations), _ZERO)
        day_change = sum((v.day_change_reporting_ccy for v in valuations), _ZERO)
        total_profit_loss = total_value - total_cost

        base = total_value - day_change
        day_change_percent = (
            (day_change / base * PERCENT).quantize(MONEY_QUANTIZE) if base != 0 else _ZERO
        )

        return PortfolioSummary(
            reporting_currency=self.reporting_currency,
            total_value=total_value,
            total_cost=total_cost,
            total_profit_loss=total_profit_loss,
            total_profit_loss_percent=percent_of(total_profit_loss, total_cost),
            day_change=day_change,
            day_change_percent=day_change_percent,
            holding_count=len(valuations),
            unavailable_count=sum(1 for v in valuations if not v.price_available),
            exchange_rate=exchange_rate,
        )

    @staticmethod
    def _quote_for(holding: Holding, quotes: Mapping[str, Quote]) -> Quote | None:
        quote = quotes.get(holding.quote_key)
        if quote is None:
            quote = quotes.get(holding.symbol)
        return quote
