# backend/portfolio_engine/services/valuation/types.py
"""
Data types for portfolio valuation.

All money fields are Decimal. Nothing here is persisted: valuations are
derived on every request from a holdings snapshot and a quote set.

Architecture:
    - Holding: input position (quantity, average cost, currency)
    - Valuation: one holding valued in native and reporting currency
    - PortfolioSummary: aggregates over all valuations, reporting currency
    - ValuationResult: valuations + summary, as returned by the valuator
"""

from dataclasses import dataclass
from decimal import Decimal

from portfolio_engine.models import Currency
from portfolio_engine.services.market_data.classifier import normalize_code
from portfolio_engine.services.market_data.types import Quote


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class Holding:
    """
    A position owned by an account.

    Frozen: valuation reads a snapshot, so a holding cannot change while a
    quote cycle is valuating it.

    Attributes:
        symbol: Instrument code (e.g. "005930", "AAPL")
        quantity: Units held
        average_cost: Average cost per unit, in `currency`
        currency: Currency the holding is priced in
        account_id: Owning account (informational)
        name: Display name (optional)
        sector: Sector label; when None the analyzer maps it from the code
    """
    symbol: str
    quantity: Decimal
    average_cost: Decimal
    currency: Currency
    account_id: str | None = None
    name: str | None = None
    sector: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"quantity cannot be negative, got {self.quantity}")
        if self.average_cost < 0:
            raise ValueError(f"average_cost cannot be negative, got {self.average_cost}")

    @property
    def quote_key(self) -> str:
        """Key of this holding's quote in a resolved quote map ("005930:KRW")."""
        return f"{normalize_code(self.symbol)}:{self.currency.value}"


# =============================================================================
# OUTPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class Valuation:
    """
    One holding valued against its quote.

    Invariant: *_reporting_ccy fields equal the native fields when
    holding.currency == reporting currency, else native × exchange rate.

    Attributes:
        holding: The valued holding
        current_price: Quote price (0 when the price is unavailable)
        total_value: quantity × current_price
        total_cost: quantity × average_cost
        profit_loss: total_value - total_cost
        profit_loss_percent: profit_loss / total_cost × 100 (0 if no cost)
        day_change: quote.change × quantity
        price_available: False when the quote is missing or source_used=NONE;
            the zero value is then "unknown", not a real zero
    """
    holding: Holding
    current_price: Decimal
    total_value: Decimal
    total_cost: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    day_change: Decimal
    total_value_reporting_ccy: Decimal
    total_cost_reporting_ccy: Decimal
    profit_loss_reporting_ccy: Decimal
    day_change_reporting_ccy: Decimal
    price_available: bool = True
    quote: Quote | None = None


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Aggregate valuation in the reporting currency.

    Attributes:
        day_change: Σ quote.change × quantity, converted
        day_change_percent: day_change / (total_value - day_change) × 100
        unavailable_count: Holdings valued without a price
        exchange_rate: Rate applied to foreign-currency holdings
    """
    reporting_currency: Currency
    total_value: Decimal
    total_cost: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percent: Decimal
    day_change: Decimal
    day_change_percent: Decimal
    holding_count: int
    unavailable_count: int
    exchange_rate: Decimal


@dataclass(frozen=True)
class ValuationResult:
    valuations: tuple[Valuation, ...]
    summary: PortfolioSummary
