# backend/tests/services/market_data/test_classifier.py
"""
Tests for the symbol classifier.

Classification must be deterministic and total: every string maps to a
defined market class, and unmatched patterns land in the default.
"""

import pytest

from portfolio_engine.models import Currency, MarketClass, QuoteSource
from portfolio_engine.services.market_data.classifier import (
    SOURCE_PRIORITY,
    classify,
    classify_market,
    parse_symbol_key,
    yahoo_symbol,
)


# =============================================================================
# MARKET CLASS RULES
# =============================================================================

class TestClassify:
    """Tests for classify()."""

    def test_six_digit_code_is_kospi(self):
        result = classify("005930", Currency.KRW)

        assert result.market_class == MarketClass.KR_KOSPI
        assert result.matched is True
        assert result.source_priority == (QuoteSource.NAVER_STOCK, QuoteSource.YAHOO)

    def test_known_kosdaq_member(self):
        """068270 is in the KOSDAQ membership set."""
        assert classify_market("068270", "KRW") == MarketClass.KR_KOSDAQ

    def test_metal_futures_code(self):
        result = classify("M04020000", Currency.KRW)

        assert result.market_class == MarketClass.METAL_FUTURES
        assert result.source_priority == (QuoteSource.NAVER_METALS,)

    def test_us_ticker_with_usd(self):
        result = classify("AAPL", Currency.USD)

        assert result.market_class == MarketClass.US_EQUITY
        assert result.matched is True
        assert result.source_priority == (QuoteSource.YAHOO,)

    def test_code_is_normalized(self):
        """Whitespace and case do not change the result."""
        result = classify("  aapl ", "usd")

        assert result.symbol.code == "AAPL"
        assert result.symbol.declared_currency == Currency.USD
        assert result.market_class == MarketClass.US_EQUITY

    def test_letters_declared_krw_fall_to_default(self):
        result = classify("AAPL", Currency.KRW)

        assert result.market_class == MarketClass.US_EQUITY
        assert result.matched is False

    @pytest.mark.parametrize("code", ["", "BRK.B", "12345", "1234567", "M0123", "TOOLONG", "??"])
    def test_unmatched_patterns_default_to_foreign_equity(self, code):
        """Never raises; unknown codes are treated as foreign equities."""
        result = classify(code, Currency.USD)

        assert result.market_class == MarketClass.US_EQUITY
        assert result.matched is False
        assert result.source_priority == SOURCE_PRIORITY[MarketClass.US_EQUITY]

    def test_unknown_currency_is_coerced(self):
        result = classify("005930", "EUR")

        assert result.market_class == MarketClass.KR_KOSPI

    def test_deterministic(self):
        assert classify("035720", "KRW") == classify("035720", "KRW")


# =============================================================================
# REQUEST TOKENS
# =============================================================================

class TestParseSymbolKey:
    """Tests for parse_symbol_key()."""

    def test_explicit_currency(self):
        result = parse_symbol_key("AAPL:USD")

        assert result.symbol.key == "AAPL:USD"

    def test_numeric_code_defaults_to_krw(self):
        assert parse_symbol_key("005930").symbol.key == "005930:KRW"

    def test_letter_code_defaults_to_usd(self):
        assert parse_symbol_key("msft").symbol.key == "MSFT:USD"

    def test_metal_code_defaults_to_krw(self):
        assert parse_symbol_key("M04020000").market_class == MarketClass.METAL_FUTURES


# =============================================================================
# YAHOO TICKERS
# =============================================================================

class TestYahooSymbol:
    """Tests for yahoo_symbol()."""

    def test_kospi_suffix(self):
        assert yahoo_symbol(classify("005930", "KRW").symbol) == "005930.KS"

    def test_kosdaq_suffix(self):
        assert yahoo_symbol(classify("068270", "KRW").symbol) == "068270.KQ"

    def test_us_ticker_is_bare(self):
        assert yahoo_symbol(classify("AAPL", "USD").symbol) == "AAPL"

    def test_metals_not_listed(self):
        assert yahoo_symbol(classify("M04020000", "KRW").symbol) is None
