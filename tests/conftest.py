"""
Pytest configuration and shared fixtures.

Every test gets its own ledger, book, history, feed and engine; nothing is
shared between tests. The price feed is built with zero volatility so
prices only move through set_price().
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport

from tradesim.config.settings import Settings
from tradesim.domain.models.position import Position, PositionSide
from tradesim.domain.services.portfolio_ledger import PortfolioLedger
from tradesim.domain.services.position_book import PositionBook
from tradesim.domain.services.trade_history import TradeHistory
from tradesim.infrastructure.market_data.simulated_feed import SimulatedPriceFeed
from tradesim.main import create_app
from tradesim.modules.signals.signal_generator import SignalGenerator
from tradesim.services.close_evaluator import CloseEvaluator
from tradesim.services.trading_engine import TradingEngine


NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

TEST_BALANCES = {
    "USD": Decimal("10000"),
    "BTC": Decimal("0.5"),
    "ETH": Decimal("3.2"),
    "SOL": Decimal("10"),
}

TEST_PRICES = {
    "BTC": Decimal("40000"),
    "ETH": Decimal("2000"),
    "SOL": Decimal("100"),
}


def make_position(
    position_id: str = "trade_1_abc",
    symbol: str = "BTC",
    side: PositionSide = PositionSide.LONG,
    quantity: Decimal = Decimal("0.1"),
    entry_price: Decimal = Decimal("40000"),
    current_price: Decimal = None,
    take_profit: Decimal = None,
    stop_loss: Decimal = None,
    opened_at: datetime = None,
    confidence: Decimal = Decimal("70"),
) -> Position:
    """Build an open position; current price defaults to the entry price."""
    position = Position(
        id=position_id,
        symbol=symbol,
        side=side,
        quantity=quantity,
        entry_price=entry_price,
        current_price=entry_price,
        notional=quantity * entry_price,
        take_profit=take_profit,
        stop_loss=stop_loss,
        signal_confidence_at_entry=confidence,
        opened_at=opened_at or NOW - timedelta(minutes=5),
    )
    if current_price is not None:
        position.update_price(current_price)
    return position


@pytest.fixture
def price_feed() -> SimulatedPriceFeed:
    return SimulatedPriceFeed(dict(TEST_PRICES), volatility=Decimal("0"))


@pytest.fixture
def ledger() -> PortfolioLedger:
    return PortfolioLedger(dict(TEST_BALANCES))


@pytest.fixture
def book() -> PositionBook:
    return PositionBook()


@pytest.fixture
def history() -> TradeHistory:
    return TradeHistory()


@pytest.fixture
def evaluator() -> CloseEvaluator:
    """Evaluator on the rule-based fallback only (no oracle)."""
    return CloseEvaluator(SignalGenerator())


@pytest.fixture
def engine(ledger, book, history, price_feed, evaluator) -> TradingEngine:
    return TradingEngine(
        ledger=ledger,
        book=book,
        history=history,
        price_feed=price_feed,
        evaluator=evaluator,
        default_take_profit_percent=Decimal("0"),
        default_stop_loss_percent=Decimal("0"),
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        SWEEP_ENABLED=False,
        PRICE_VOLATILITY=Decimal("0"),
        ORACLE_API_KEY="",
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def client(test_settings, engine) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to a fresh app around the test engine.

    Yields:
        AsyncClient: test client
    """
    app = create_app(settings=test_settings, engine=engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
