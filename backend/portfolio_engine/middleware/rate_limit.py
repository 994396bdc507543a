# backend/portfolio_engine/middleware/rate_limit.py
"""
Rate limiting for the HTTP API (slowapi).

Two jobs:
- Protect upstream quote providers from request floods
- Enforce the per-client cooldown on forced quote refreshes
  (settings.refresh_cooldown, default "1/minute")

The quote cache has no notion of who is asking, so the cooldown lives
here, keyed by client IP. Storage is in-memory (single process).

Usage:
    from portfolio_engine.middleware.rate_limit import limiter, RATE_LIMIT_REFRESH

    @router.post("/refresh")
    @limiter.limit(RATE_LIMIT_REFRESH)
    async def refresh(request: Request):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from portfolio_engine.config import settings
from portfolio_engine.services.constants import (
    RATE_LIMIT_ANALYTICS,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_HEALTH,
    RATE_LIMIT_QUOTES,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_REFRESH: str = settings.refresh_cooldown

# Seconds reported in Retry-After when the limit window cannot be read
DEFAULT_RETRY_AFTER = 60


def _get_client_ip(request: Request) -> str:
    """
    Client address used as the rate-limit key.

    X-Forwarded-For / X-Real-IP are honoured only with
    settings.trust_proxy_headers, otherwise any client could pick its own key.
    """
    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
    return get_remote_address(request)


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
)


def _retry_after(exc: RateLimitExceeded) -> int:
    limit = getattr(exc, "limit", None)
    item = getattr(limit, "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER
    return int(item.get_expiry())


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """429 in the API's error format, with a Retry-After header."""
    retry_after = _retry_after(exc)
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"

    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)} on {request.url.path}: {limit_info}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests. {limit_info}",
            "details": {"retry_after": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_QUOTES",
    "RATE_LIMIT_REFRESH",
    "RATE_LIMIT_ANALYTICS",
    "RATE_LIMIT_HEALTH",
]
