# backend/portfolio_engine/routers/__init__.py
"""API routers."""

from portfolio_engine.routers import fx, portfolio, quotes

__all__ = ["fx", "portfolio", "quotes"]
