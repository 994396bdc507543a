# backend/portfolio_engine/utils/context.py
"""
Request context for log correlation.

The correlation ID lives in a ContextVar, so it follows a request through
every await and into the tasks the quote cache spawns for it (asyncio
copies the current context when a task is created).

Usage:
    from portfolio_engine.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")      # middleware, start of request
    get_correlation_id()               # anywhere below it -> "abc-123"
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Correlation ID of the current request, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)
