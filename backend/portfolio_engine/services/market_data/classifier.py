# backend/portfolio_engine/services/market_data/classifier.py
"""
Symbol classifier.

Maps a raw instrument code and its declared currency to a market class
and the ordered list of quote sources to try. Classification is a pure
function of its two inputs: no network, no configuration, no state.

Rules (first match wins):
    6 digits                  -> KR_KOSDAQ if in KOSDAQ_CODES, else KR_KOSPI
    "M0" + 7 digits           -> METAL_FUTURES
    1-5 letters, USD declared -> US_EQUITY
    anything else             -> US_EQUITY with matched=False

Source priority per class:
    KR_KOSPI / KR_KOSDAQ -> NAVER_STOCK, YAHOO
    METAL_FUTURES        -> NAVER_METALS
    US_EQUITY            -> YAHOO
"""

import re

from portfolio_engine.models import Currency, MarketClass, QuoteSource
from portfolio_engine.services.constants import (
    KOSDAQ_CODES,
    YAHOO_SUFFIX_KOSDAQ,
    YAHOO_SUFFIX_KOSPI,
)
from portfolio_engine.services.market_data.types import Classification, Symbol

_KR_CODE = re.compile(r"^\d{6}$")
_METAL_CODE = re.compile(r"^M0\d{7}$")
_US_TICKER = re.compile(r"^[A-Z]{1,5}$")

SOURCE_PRIORITY: dict[MarketClass, tuple[QuoteSource, ...]] = {
    MarketClass.KR_KOSPI: (QuoteSource.NAVER_STOCK, QuoteSource.YAHOO),
    MarketClass.KR_KOSDAQ: (QuoteSource.NAVER_STOCK, QuoteSource.YAHOO),
    MarketClass.METAL_FUTURES: (QuoteSource.NAVER_METALS,),
    MarketClass.US_EQUITY: (QuoteSource.YAHOO,),
}

# Unmatched codes are treated as foreign equities
DEFAULT_MARKET_CLASS = MarketClass.US_EQUITY


def normalize_code(code: str) -> str:
    return code.strip().upper()


def classify(code: str, declared_currency: Currency | str) -> Classification:
    """
    Classify an instrument code.

    Never raises for any string input; unknown patterns fall back to
    DEFAULT_MARKET_CLASS with matched=False.

    Args:
        code: Raw instrument code (whitespace and case are normalized)
        declared_currency: Currency the holding or request declares

    Returns:
        Classification with the symbol and its ordered source list

    Example:
        >>> classify("005930", "KRW").market_class
        <MarketClass.KR_KOSPI: 'KR_KOSPI'>
    """
    normalized = normalize_code(code)
    currency = _coerce_currency(declared_currency)

    matched = True
    if _KR_CODE.match(normalized):
        market_class = MarketClass.KR_KOSDAQ if normalized in KOSDAQ_CODES else MarketClass.KR_KOSPI
    elif _METAL_CODE.match(normalized):
        market_class = MarketClass.METAL_FUTURES
    elif _US_TICKER.match(normalized) and currency == Currency.USD:
        market_class = MarketClass.US_EQUITY
    else:
        market_class = DEFAULT_MARKET_CLASS
        matched = False

    return Classification(
        symbol=Symbol(code=normalized, declared_currency=currency, market_class=market_class),
        source_priority=SOURCE_PRIORITY[market_class],
        matched=matched,
    )


def classify_market(code: str, declared_currency: Currency | str) -> MarketClass:
    """Shorthand for classify(...).market_class."""
    return classify(code, declared_currency).market_class


def parse_symbol_key(raw: str) -> Classification:
    """
    Classify a request token of the form "CODE" or "CODE:CURRENCY".

    Without an explicit currency, letter-only codes are taken as USD and
    everything else as KRW.
    """
    code, _, currency = raw.partition(":")
    code = normalize_code(code)
    if not currency:
        currency = Currency.USD.value if code.isalpha() else Currency.KRW.value
    return classify(code, currency)


def yahoo_symbol(symbol: Symbol) -> str | None:
    """
    Yahoo Finance ticker for a symbol, or None if Yahoo does not list it.

    Example:
        005930 (KOSPI)  -> "005930.KS"
        068270 (KOSDAQ) -> "068270.KQ"
        AAPL            -> "AAPL"
    """
    if symbol.market_class == MarketClass.KR_KOSPI:
        return f"{symbol.code}{YAHOO_SUFFIX_KOSPI}"
    if symbol.market_class == MarketClass.KR_KOSDAQ:
        return f"{symbol.code}{YAHOO_SUFFIX_KOSDAQ}"
    if symbol.market_class == MarketClass.METAL_FUTURES:
        return None
    return symbol.code


def _coerce_currency(value: Currency | str) -> Currency:
    if isinstance(value, Currency):
        return value
    try:
        return Currency(str(value).strip().upper())
    except ValueError:
        # Unknown currency labels are treated as foreign
        return Currency.USD
