# backend/portfolio_engine/__init__.py
"""Quote resolution and portfolio valuation engine."""

__version__ = "0.1.0"
