# backend/portfolio_engine/routers/portfolio.py
"""
Portfolio valuation and risk endpoints.

- POST /portfolio/summary - Valuations + summary for a holdings snapshot
- POST /portfolio/risk - Same, plus risk/performance metrics

Holdings are sent by the caller; nothing is persisted.
"""

from fastapi import APIRouter, Depends, Request

from portfolio_engine.dependencies import get_portfolio_service
from portfolio_engine.middleware.rate_limit import RATE_LIMIT_ANALYTICS, limiter
from portfolio_engine.schemas.portfolio import (
    HoldingInput,
    PortfolioRequest,
    PortfolioRiskResponse,
    PortfolioSummaryResponse,
    PortfolioValuationResponse,
    RiskMetricsResponse,
    ValuationResponse,
)
from portfolio_engine.services.analytics import RiskMetrics
from portfolio_engine.services.portfolio_service import PortfolioService
from portfolio_engine.services.valuation import (
    Holding,
    PortfolioSummary,
    Valuation,
    ValuationResult,
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/portfolio",
    tags=["Portfolio"],
)


# =============================================================================
# MAPPER FUNCTIONS
# =============================================================================

def _to_holding(item: HoldingInput) -> Holding:
    return Holding(
        symbol=item.symbol,
        quantity=item.quantity,
        average_cost=item.average_cost,
        currency=item.currency,
        account_id=item.account_id,
        name=item.name,
        sector=item.sector,
    )


def _map_valuation(v: Valuation) -> ValuationResponse:
    holding = v.holding
    return ValuationResponse(
        symbol=holding.symbol,
        name=holding.name or (v.quote.name if v.quote else None),
        account_id=holding.account_id,
        currency=holding.currency,
        quantity=holding.quantity,
        average_cost=holding.average_cost,
        current_price=v.current_price,
        total_value=v.total_value,
        total_cost=v.total_cost,
        profit_loss=v.profit_loss,
        profit_loss_percent=v.profit_loss_percent,
        day_change=v.day_change,
        total_value_reporting_ccy=v.total_value_reporting_ccy,
        profit_loss_reporting_ccy=v.profit_loss_reporting_ccy,
        day_change_reporting_ccy=v.day_change_reporting_ccy,
        price_available=v.price_available,
    )


def _map_summary(summary: PortfolioSummary) -> PortfolioSummaryResponse:
    return PortfolioSummaryResponse(
        reporting_currency=summary.reporting_currency,
        total_value=summary.total_value,
        total_cost=summary.total_cost,
        total_profit_loss=summary.total_profit_loss,
        total_profit_loss_percent=summary.total_profit_loss_percent,
        day_change=summary.day_change,
        day_change_percent=summary.day_change_percent,
        holding_count=summary.holding_count,
        unavailable_count=summary.unavailable_count,
        exchange_rate=summary.exchange_rate,
    )


def _map_risk(metrics: RiskMetrics) -> RiskMetricsResponse:
    return RiskMetricsResponse(
        volatility=metrics.volatility,
        sharpe_like=metrics.sharpe_like,
        diversification_score=metrics.diversification_score,
        max_drawdown=metrics.max_drawdown,
        beta=metrics.beta,
        alpha=metrics.alpha,
        var_95=metrics.var_95,
        win_rate=metrics.win_rate,
        sector_allocation=metrics.sector_allocation,
        total_value=metrics.total_value,
        total_cost=metrics.total_cost,
        total_return=metrics.total_return,
        total_return_percent=metrics.total_return_percent,
        holding_count=metrics.holding_count,
        priced_count=metrics.priced_count,
    )


def _map_result(result: ValuationResult) -> PortfolioValuationResponse:
    return PortfolioValuationResponse(
        valuations=[_map_valuation(v) for v in result.valuations],
        summary=_map_summary(result.summary),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/summary",
    response_model=PortfolioValuationResponse,
    summary="Value a holdings snapshot",
)
@limiter.limit(RATE_LIMIT_ANALYTICS)
async def portfolio_summary(
        request: Request,  # Required for rate limiting
        body: PortfolioRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioValuationResponse:
    """
    Value each holding at its current quote and aggregate in the reporting currency.

    Holdings without a price have `price_available=false` and are counted in
    `summary.unavailable_count`.
    """
    result = await service.get_portfolio_summary(
        [_to_holding(h) for h in body.holdings],
        exchange_rate=body.exchange_rate,
    )
    return _map_result(result)


@router.post(
    "/risk",
    response_model=PortfolioRiskResponse,
    summary="Value a holdings snapshot and compute risk metrics",
)
@limiter.limit(RATE_LIMIT_ANALYTICS)
async def portfolio_risk(
        request: Request,  # Required for rate limiting
        body: PortfolioRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioRiskResponse:
    """
    Valuation plus cross-sectional risk statistics.

    **Note:** `beta`, `sharpe_like` and `max_drawdown` are proxies computed
    from one snapshot of holding returns, not from price history.
    """
    result = await service.get_portfolio_summary(
        [_to_holding(h) for h in body.holdings],
        exchange_rate=body.exchange_rate,
    )
    metrics = service.get_risk_metrics(result.valuations)
    base = _map_result(result)
    return PortfolioRiskResponse(
        valuations=base.valuations,
        summary=base.summary,
        risk=_map_risk(metrics),
    )
