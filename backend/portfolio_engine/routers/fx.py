# backend/portfolio_engine/routers/fx.py
"""
Exchange-rate endpoint.

- GET /fx/usd-krw - Current USD/KRW rate and where it came from
"""

from fastapi import APIRouter, Depends, Request

from portfolio_engine.dependencies import get_fx_rate_service
from portfolio_engine.middleware.rate_limit import RATE_LIMIT_DEFAULT, limiter
from portfolio_engine.schemas.portfolio import ExchangeRateResponse
from portfolio_engine.services.fx_rate_service import FXRateService

router = APIRouter(
    prefix="/fx",
    tags=["Exchange Rates"],
)


@router.get(
    "/usd-krw",
    response_model=ExchangeRateResponse,
    summary="Get the USD/KRW rate",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def get_usd_krw(
        request: Request,  # Required for rate limiting
        service: FXRateService = Depends(get_fx_rate_service),
) -> ExchangeRateResponse:
    """`is_fallback=true` means no live provider answered and the configured rate was used."""
    fx = await service.get_usd_krw()
    return ExchangeRateResponse(
        rate=fx.rate,
        source=fx.source,
        fetched_at=fx.fetched_at,
        is_fallback=fx.is_fallback,
    )
