# backend/portfolio_engine/services/constants.py
"""
Centralized constants for the quote and valuation services.

This module provides a single source of truth for the fixed tables and
tuning values used across the engine. Values that operators may want to
change per deployment live in config.Settings instead.

Usage:
    from portfolio_engine.services.constants import (
        KOSDAQ_CODES,
        MONEY_QUANTIZE,
        RATE_LIMIT_DEFAULT,
    )
"""

from datetime import time
from decimal import Decimal


# =============================================================================
# DECIMAL PRECISION
# =============================================================================

# Precision for stored money amounts and ratios (8 decimal places)
MONEY_QUANTIZE: Decimal = Decimal("0.00000001")

# Percentages are expressed in percent units (7.14 = 7.14%)
PERCENT: Decimal = Decimal("100")


# =============================================================================
# SYMBOL CLASSIFICATION
# =============================================================================

# KOSDAQ-listed codes known to the engine. Any other 6-digit code is KOSPI.
KOSDAQ_CODES: frozenset[str] = frozenset({
    "043150", "065420", "068270", "078130", "086520", "101490", "137310",
    "141080", "145020", "161390", "183490", "196170", "200130", "214420",
    "225570", "240810", "247540", "263750", "293490", "317870", "348210",
    "357780", "365340", "376300", "393890", "403870", "950140", "950210",
})

# Yahoo Finance ticker suffixes for domestic listings
YAHOO_SUFFIX_KOSPI: str = ".KS"
YAHOO_SUFFIX_KOSDAQ: str = ".KQ"


# =============================================================================
# TRADING HOURS (local exchange time, weekdays only)
# =============================================================================

KR_TIMEZONE: str = "Asia/Seoul"
KR_OPEN: time = time(9, 0)
KR_CLOSE: time = time(15, 30)

US_TIMEZONE: str = "America/New_York"
US_OPEN: time = time(9, 30)
US_CLOSE: time = time(16, 0)

# Days of daily bars requested around a session date (covers long weekends)
SESSION_BAR_LOOKBACK_DAYS: int = 5


# =============================================================================
# UPSTREAM ENDPOINTS
# =============================================================================

NAVER_REALTIME_URL: str = "https://polling.finance.naver.com/api/realtime/domestic/{kind}/{code}"
NAVER_REFERER: str = "https://finance.naver.com/"
NAVER_METALS_URL: str = "https://m.stock.naver.com/marketindex/metals/{code}"
NAVER_METALS_REFERER: str = "https://m.stock.naver.com/marketindex"

DESKTOP_USER_AGENT: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
MOBILE_USER_AGENT: str = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_7_1 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/14.1.2 Mobile/15E148 Safari/604.1"
)

# Tried in order; each returns {"rates": {"KRW": ...}}
FX_RATE_URLS: tuple[str, ...] = (
    "https://api.exchangerate-api.com/v4/latest/USD",
    "https://open.er-api.com/v6/latest/USD",
)


# =============================================================================
# RISK ANALYTICS HEURISTICS
# =============================================================================

# beta proxy = volatility / BETA_VOLATILITY_DIVISOR
BETA_VOLATILITY_DIVISOR: Decimal = Decimal("20")

# Assumed market return (percent) used by the alpha proxy
ASSUMED_MARKET_RETURN_PERCENT: Decimal = Decimal("8")

# Tail fraction for the parametric VaR proxy (95% confidence)
VAR_TAIL: Decimal = Decimal("0.05")

# Diversification points per holding, capped at 100
DIVERSIFICATION_POINTS_PER_HOLDING: int = 10

DEFAULT_SECTOR: str = "Other"

SECTOR_BY_CODE: dict[str, str] = {
    "005930": "Semiconductors",
    "000660": "Semiconductors",
    "035420": "IT Services",
    "035720": "IT Services",
    "051910": "Chemicals",
    "006400": "Batteries",
    "207940": "Bio",
    "068270": "Bio",
    "005380": "Automobiles",
    "012330": "Auto Parts",
}


# =============================================================================
# API RATE LIMITS
# =============================================================================
# Format: "X/period" where period is second, minute, hour, day

# Default rate limit for read endpoints
RATE_LIMIT_DEFAULT: str = "100/minute"

# Quote reads fan out to upstream providers on cache misses
RATE_LIMIT_QUOTES: str = "60/minute"

# Portfolio valuation and risk endpoints
RATE_LIMIT_ANALYTICS: str = "30/minute"

# Health checks (high limit for monitoring systems)
RATE_LIMIT_HEALTH: str = "300/minute"
