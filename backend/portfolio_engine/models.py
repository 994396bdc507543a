# backend/portfolio_engine/models.py
import enum


# Enums shared by every layer (classifier, adapters, valuator, API schemas)
class MarketClass(str, enum.Enum):
    KR_KOSPI = "KR_KOSPI"
    KR_KOSDAQ = "KR_KOSDAQ"
    US_EQUITY = "US_EQUITY"
    METAL_FUTURES = "METAL_FUTURES"


class Currency(str, enum.Enum):
    KRW = "KRW"
    USD = "USD"


class QuoteSource(str, enum.Enum):
    """
    Upstream that produced a quote.

    NONE marks a quote no source could resolve. Its zero price means
    "unknown", never "unchanged".
    """
    YAHOO = "YAHOO"
    NAVER_STOCK = "NAVER_STOCK"
    NAVER_METALS = "NAVER_METALS"
    NONE = "NONE"


class SourceErrorReason(str, enum.Enum):
    """
    Reason codes reported at the adapter boundary.

    UNAVAILABLE covers HTTP errors, connection failures, rate limits and
    an open circuit breaker; MALFORMED covers payloads that parse but do
    not carry a usable price.
    """
    UNAVAILABLE = "UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    MALFORMED = "MALFORMED"
