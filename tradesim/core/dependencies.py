"""
Core dependencies for FastAPI routes.

The engine is built once per application and stored on app.state.
"""

from fastapi import Request

from tradesim.config.settings import Settings, get_settings
from tradesim.services.trading_engine import TradingEngine
from tradesim.shared.exceptions import InternalServerError


def get_trading_engine(request: Request) -> TradingEngine:
    """
    FastAPI dependency returning the application's trading engine.

    Raises:
        InternalServerError: app was created without an engine
    """
    engine = getattr(request.app.state, "trading_engine", None)
    if engine is None:
        raise InternalServerError("Trading engine is not initialized")
    return engine


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()
