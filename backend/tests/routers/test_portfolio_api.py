# backend/tests/routers/test_portfolio_api.py
"""
API tests for the portfolio and FX endpoints.

Quotes come from scripted adapters and the exchange rate from StubFX, both
injected through app.dependency_overrides.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from portfolio_engine.dependencies import get_fx_rate_service, get_portfolio_service
from portfolio_engine.main import app
from portfolio_engine.middleware import limiter
from portfolio_engine.models import QuoteSource
from portfolio_engine.services.market_data import QuoteCache, QuoteResolver
from portfolio_engine.services.portfolio_service import PortfolioService
from portfolio_engine.services.quote_service import QuoteService

SAMSUNG = {"symbol": "005930", "quantity": "10", "average_cost": "70000", "currency": "KRW"}
APPLE = {"symbol": "aapl", "quantity": "2", "average_cost": "150", "currency": "USD"}


@pytest.fixture
def client(naver, yahoo, fx) -> TestClient:
    naver.set_quote("005930", "75000", "74000")
    yahoo.set_quote("AAPL", "196.89", "196.70")
    resolver = QuoteResolver({QuoteSource.NAVER_STOCK: naver, QuoteSource.YAHOO: yahoo})
    portfolio_service = PortfolioService(QuoteService(QuoteCache(resolver)), fx)

    limiter.reset()
    app.dependency_overrides[get_portfolio_service] = lambda: portfolio_service
    app.dependency_overrides[get_fx_rate_service] = lambda: fx

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# POST /portfolio/summary
# =============================================================================

class TestPortfolioSummary:
    """Tests for POST /portfolio/summary."""

    def test_values_holdings(self, client):
        response = client.post("/portfolio/summary", json={"holdings": [SAMSUNG, APPLE]})

        assert response.status_code == 200
        body = response.json()
        summary = body["summary"]
        assert summary["reporting_currency"] == "KRW"
        assert Decimal(summary["total_value"]) == Decimal("1281603")
        assert Decimal(summary["total_cost"]) == Decimal("1105000")
        assert Decimal(summary["exchange_rate"]) == Decimal("1350")
        assert summary["holding_count"] == 2

        samsung, apple = body["valuations"]
        assert samsung["symbol"] == "005930"
        assert Decimal(samsung["profit_loss"]) == Decimal("50000")
        assert Decimal(samsung["profit_loss_percent"]) == Decimal("7.14285714")
        assert apple["symbol"] == "AAPL"
        assert Decimal(apple["total_value_reporting_ccy"]) == Decimal("531603")

    def test_explicit_exchange_rate(self, client, fx):
        response = client.post(
            "/portfolio/summary",
            json={"holdings": [APPLE], "exchange_rate": "1000"},
        )

        assert response.status_code == 200
        assert Decimal(response.json()["summary"]["total_value"]) == Decimal("393780")
        assert fx.calls == 0

    def test_unpriced_holding_flagged(self, client):
        holding = {"symbol": "999999", "quantity": "1", "average_cost": "1000", "currency": "KRW"}

        response = client.post("/portfolio/summary", json={"holdings": [holding]})

        body = response.json()
        assert body["valuations"][0]["price_available"] is False
        assert body["summary"]["unavailable_count"] == 1

    def test_empty_portfolio(self, client):
        response = client.post("/portfolio/summary", json={"holdings": []})

        assert response.status_code == 200
        assert response.json()["valuations"] == []

    @pytest.mark.parametrize("payload", [
        {"holdings": [{**SAMSUNG, "quantity": "-1"}]},
        {"holdings": [{**SAMSUNG, "currency": "EUR"}]},
        {"holdings": [SAMSUNG], "exchange_rate": "0"},
        {"holdings": [{"symbol": "005930"}]},
    ])
    def test_invalid_payload(self, client, payload):
        response = client.post("/portfolio/summary", json=payload)

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["details"]


# =============================================================================
# POST /portfolio/risk
# =============================================================================

class TestPortfolioRisk:
    """Tests for POST /portfolio/risk."""

    def test_includes_risk_metrics(self, client):
        response = client.post("/portfolio/risk", json={"holdings": [SAMSUNG, APPLE]})

        assert response.status_code == 200
        body = response.json()
        risk = body["risk"]
        assert risk["holding_count"] == 2
        assert risk["priced_count"] == 2
        assert set(risk["sector_allocation"]) == {"Semiconductors", "Other"}
        assert Decimal(risk["win_rate"]) == Decimal("100.00")
        assert body["summary"]["holding_count"] == 2

    def test_empty_portfolio_baseline(self, client):
        response = client.post("/portfolio/risk", json={"holdings": []})

        risk = response.json()["risk"]
        assert Decimal(risk["volatility"]) == Decimal("0")
        assert Decimal(risk["beta"]) == Decimal("1")
        assert risk["sector_allocation"] == {}


# =============================================================================
# GET /fx/usd-krw
# =============================================================================

class TestExchangeRate:
    """Tests for GET /fx/usd-krw."""

    def test_returns_rate(self, client):
        response = client.get("/fx/usd-krw")

        assert response.status_code == 200
        body = response.json()
        assert body["base_currency"] == "USD"
        assert body["quote_currency"] == "KRW"
        assert Decimal(body["rate"]) == Decimal("1350")
        assert body["source"] == "stub"
        assert body["is_fallback"] is False

    def test_fallback_flagged(self, client, fx):
        fx.is_fallback = True

        body = client.get("/fx/usd-krw").json()

        assert body["is_fallback"] is True
        assert body["source"] == "fallback"
