# backend/portfolio_engine/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)

Run:
    uvicorn portfolio_engine.main:app --reload
"""

import logging
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from portfolio_engine.config import settings
from portfolio_engine.dependencies import get_quote_service
from portfolio_engine.middleware import (
    RATE_LIMIT_HEALTH,
    CorrelationIdMiddleware,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from portfolio_engine.routers import fx, portfolio, quotes
from portfolio_engine.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_engine.services.exceptions import ServiceError, ValidationError
from portfolio_engine.services.quote_service import QuoteService
from portfolio_engine.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()

# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Quote resolution and portfolio valuation API",
    version="0.1.0",
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Order matters: last added = first executed
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="ValidationError",
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPExceptions in the ErrorDetail format instead of {"detail": ...}."""
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert the default 422 body to ValidationErrorDetail."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(quotes.router)  # /quotes/*
app.include_router(portfolio.router)  # /portfolio/*
app.include_router(fx.router)  # /fx/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(request: Request, service: QuoteService = Depends(get_quote_service)):
    """
    Detailed health: circuit state per quote source and cache statistics.

    Quote sources are never critical on their own (the resolver falls back
    to the next one), so an open circuit only marks the service "degraded".
    Returns 503 when every source is open, since no quote can be served.
    """
    sources = service.source_status()
    open_sources = [name for name, state in sources.items() if state == "open"]

    if sources and len(open_sources) == len(sources):
        overall_status = "unhealthy"
    elif open_sources:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    response_data = {
        "status": overall_status,
        "checks": {
            "sources": {
                name: {"status": "unhealthy" if state == "open" else "healthy", "circuit_breaker_state": state}
                for name, state in sources.items()
            },
            "quote_cache": asdict(service.stats),
        },
    }

    if overall_status == "unhealthy":
        logger.error(f"All quote sources unavailable: {', '.join(open_sources)}")
        return JSONResponse(status_code=503, content=response_data)
    return response_data


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """
    Liveness probe. Always 200 while the process is alive; checks no dependencies.
    """
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, service: QuoteService = Depends(get_quote_service)):
    """
    Readiness probe. 503 when no quote source accepts calls.
    """
    sources = service.source_status()
    if sources and all(state == "open" for state in sources.values()):
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "error": "All quote sources unavailable"},
        )
    return {"status": "ready"}
