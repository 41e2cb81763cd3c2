"""
Trading Engine Tests

Execution, manual close, sweep and the close-exactly-once guarantee.
"""

import asyncio
import random
import re
import pytest
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

from pydantic import ValidationError as PydanticValidationError

from tradesim.config.settings import Settings
from tradesim.domain.models.position import CloseReason, PositionSide
from tradesim.modules.signals import SignalGenerator
from tradesim.modules.trading.schemas import TradeExecutionRequest
from tradesim.services.close_evaluator import CloseEvaluator
from tradesim.services.trading_engine import TradingEngine, build_trading_engine
from tradesim.shared.exceptions import PositionNotFoundError, ValidationError
from conftest import NOW, make_position


def buy(symbol="BTC", amount="4000", **kwargs):
    return TradeExecutionRequest(symbol=symbol, side="buy", notional_amount=Decimal(amount), **kwargs)


def sell(symbol="SOL", amount="1000", **kwargs):
    return TradeExecutionRequest(symbol=symbol, side="sell", notional_amount=Decimal(amount), **kwargs)


# ==================== EXECUTION ====================

@pytest.mark.asyncio
async def test_execute_long(engine, ledger, book):
    result = await engine.execute_trade(buy(take_profit=Decimal("44000")))

    assert result.success is True
    assert result.status == "executed"
    assert re.fullmatch(r"trade_\d+_[0-9a-z]{9}", result.trade_id)
    assert result.execution_price == Decimal("40000")
    assert result.quantity == Decimal("0.1")
    assert result.fees == Decimal("4")
    assert ledger.cash == Decimal("5996")

    position = book.get(result.trade_id)
    assert position.side == PositionSide.LONG
    assert position.take_profit == Decimal("44000")
    assert position.entry_fees == Decimal("4")
    assert position.signal_confidence_at_entry == Decimal("70")


@pytest.mark.asyncio
async def test_execute_short(engine, ledger, book):
    result = await engine.execute_trade(sell(stop_loss=Decimal("105")))

    assert result.success is True
    assert book.get(result.trade_id).side == PositionSide.SHORT
    assert ledger.cash == Decimal("10999")
    assert ledger.balance("SOL") == Decimal("0")


@pytest.mark.asyncio
async def test_insufficient_balance_returns_failed_without_mutation(engine, ledger, book):
    before = ledger.snapshot()

    result = await engine.execute_trade(buy(amount="10000"))

    assert result.success is False
    assert result.status == "failed"
    assert result.trade_id is None
    assert result.message == "Insufficient USD balance"
    assert ledger.snapshot() == before
    assert len(book) == 0


@pytest.mark.asyncio
async def test_short_without_asset_fails(engine):
    result = await engine.execute_trade(sell(symbol="ETH", amount="10000"))

    assert result.status == "failed"
    assert result.message == "Insufficient ETH balance"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5"])
async def test_non_positive_amount_fails(engine, amount):
    result = await engine.execute_trade(buy(amount=amount))

    assert result.status == "failed"


@pytest.mark.asyncio
async def test_unknown_symbol_fails(engine, ledger):
    before = ledger.snapshot()

    result = await engine.execute_trade(buy(symbol="DOGE"))

    assert result.status == "failed"
    assert ledger.snapshot() == before


@pytest.mark.asyncio
async def test_default_targets_long_and_short(ledger, book, history, price_feed, evaluator):
    engine = TradingEngine(ledger, book, history, price_feed, evaluator)

    long_result = await engine.execute_trade(buy())
    short_result = await engine.execute_trade(sell())

    assert long_result.take_profit == Decimal("44000")
    assert long_result.stop_loss == Decimal("38000")
    assert short_result.take_profit == Decimal("90")
    assert short_result.stop_loss == Decimal("105")


@pytest.mark.parametrize("field", ["take_profit", "stop_loss"])
def test_non_positive_targets_rejected_by_request(field):
    with pytest.raises(PydanticValidationError):
        buy(**{field: Decimal("0")})


def test_non_positive_targets_count_as_unset(ledger, book, history, price_feed, evaluator):
    engine = TradingEngine(ledger, book, history, price_feed, evaluator)

    take_profit, stop_loss = engine._resolve_targets(
        PositionSide.LONG, Decimal("40000"), Decimal("0"), Decimal("-5")
    )

    assert take_profit == Decimal("44000")
    assert stop_loss == Decimal("38000")


@pytest.mark.asyncio
async def test_zero_take_profit_without_defaults_does_not_close(engine, book):
    request = TradeExecutionRequest.model_construct(
        symbol="BTC",
        side="buy",
        notional_amount=Decimal("4000"),
        confidence_at_entry=None,
        take_profit=Decimal("0"),
        stop_loss=None,
    )
    result = await engine.execute_trade(request)

    closed = await engine.run_sweep()

    assert result.take_profit is None
    assert closed == []
    assert result.trade_id in book


class ScriptedRng(random.Random):
    """Replays a fixed sequence of id characters."""

    def __init__(self, chars):
        super().__init__(0)
        self._chars = iter(chars)

    def choice(self, seq):
        return next(self._chars)


@pytest.mark.asyncio
async def test_trade_ids_are_not_reused_after_close(ledger, book, history, price_feed, evaluator, monkeypatch):
    monkeypatch.setattr(
        "tradesim.services.trading_engine.time",
        SimpleNamespace(time=lambda: 1700000000.0),
    )
    engine = TradingEngine(
        ledger, book, history, price_feed, evaluator,
        rng=ScriptedRng("a" * 18 + "b" * 9),
    )

    first = await engine.execute_trade(buy())
    await engine.close_trade(first.trade_id)
    second = await engine.execute_trade(buy())

    assert first.trade_id == "trade_1700000000000_aaaaaaaaa"
    assert second.trade_id == "trade_1700000000000_bbbbbbbbb"


@pytest.mark.asyncio
async def test_slippage_stays_within_rate(ledger, book, history, price_feed, evaluator):
    engine = TradingEngine(
        ledger, book, history, price_feed, evaluator,
        slippage_rate=Decimal("0.001"),
        rng=random.Random(7),
    )

    result = await engine.execute_trade(buy())

    assert abs(result.execution_price - Decimal("40000")) <= Decimal("40")


def test_estimated_profit():
    assert TradingEngine.estimate_profit(PositionSide.LONG, Decimal("3000"), Decimal("85")) == Decimal("30")
    assert TradingEngine.estimate_profit(PositionSide.SHORT, Decimal("3000"), Decimal("85")) == Decimal("-30")
    assert TradingEngine.estimate_profit(PositionSide.LONG, Decimal("3000"), Decimal("70")) == Decimal("0")


# ==================== MANUAL CLOSE ====================

@pytest.mark.asyncio
async def test_manual_close_moves_position_to_history(engine, book, history):
    result = await engine.execute_trade(buy())

    closed = await engine.close_trade(result.trade_id, CloseReason.MANUAL, now=NOW)

    assert result.trade_id not in book
    assert history.count(result.trade_id) == 1
    assert closed.reason == CloseReason.MANUAL
    assert closed.closed_at == NOW


@pytest.mark.asyncio
async def test_round_trip_at_same_price_costs_two_fees(engine, ledger):
    cash_before = ledger.cash

    result = await engine.execute_trade(buy())
    closed = await engine.close_trade(result.trade_id)

    assert ledger.cash - cash_before == -(result.fees + closed.fees)
    assert closed.fees == result.fees


@pytest.mark.asyncio
async def test_close_uses_feed_price_by_default(engine, price_feed):
    result = await engine.execute_trade(buy())
    price_feed.set_price("BTC", Decimal("42000"))

    closed = await engine.close_trade(result.trade_id)

    assert closed.close_price == Decimal("42000")
    assert closed.realized_pnl == Decimal("200") - Decimal("4.2")


@pytest.mark.asyncio
async def test_close_unknown_id_raises(engine, ledger):
    before = ledger.snapshot()

    with pytest.raises(PositionNotFoundError):
        await engine.close_trade("trade_missing")

    assert ledger.snapshot() == before


@pytest.mark.asyncio
async def test_close_twice_reports_not_found(engine, history):
    result = await engine.execute_trade(buy())
    await engine.close_trade(result.trade_id)

    with pytest.raises(PositionNotFoundError):
        await engine.close_trade(result.trade_id)

    assert history.count(result.trade_id) == 1


@pytest.mark.asyncio
async def test_invalid_close_price_leaves_state_untouched(engine, ledger, book, history):
    result = await engine.execute_trade(buy())
    before = ledger.snapshot()

    with pytest.raises(ValidationError):
        await engine.close_trade(result.trade_id, close_price=Decimal("0"))

    assert result.trade_id in book
    assert len(history) == 0
    assert ledger.snapshot() == before


@pytest.mark.asyncio
async def test_failed_removal_leaves_balances_untouched(engine, ledger, book, history, monkeypatch):
    result = await engine.execute_trade(buy())
    before = ledger.snapshot()

    def broken_remove(trade_id):
        raise RuntimeError("book unavailable")

    monkeypatch.setattr(book, "remove", broken_remove)

    with pytest.raises(RuntimeError):
        await engine.close_trade(result.trade_id, close_price=Decimal("44000"))

    assert ledger.snapshot() == before
    assert len(history) == 0


# ==================== SWEEP ====================

@pytest.mark.asyncio
async def test_sweep_take_profit_scenario(engine, price_feed, book, history):
    """Long 0.1 BTC @ 40000 with TP 44000 closes at 44000 for 395.60."""
    result = await engine.execute_trade(buy(take_profit=Decimal("44000")))
    price_feed.set_price("BTC", Decimal("44000"))

    closed = await engine.run_sweep(NOW)

    assert len(closed) == 1
    assert closed[0].reason == CloseReason.TAKE_PROFIT
    assert closed[0].fees == Decimal("4.4")
    assert closed[0].realized_pnl == Decimal("395.6")
    assert result.trade_id not in book
    assert history.all()[0].close_reason == CloseReason.TAKE_PROFIT


@pytest.mark.asyncio
async def test_sweep_short_stop_loss_scenario(engine, price_feed):
    """Short 10 SOL @ 100 with SL 105, price 106: stop loss, -60 - 1.06."""
    await engine.execute_trade(sell(stop_loss=Decimal("105")))
    price_feed.set_price("SOL", Decimal("106"))

    closed = await engine.run_sweep(NOW)

    assert closed[0].reason == CloseReason.STOP_LOSS
    assert closed[0].realized_pnl == Decimal("-61.06")


@pytest.mark.asyncio
async def test_sweep_marks_positions_that_stay_open(engine, price_feed, book):
    result = await engine.execute_trade(buy())
    price_feed.set_price("BTC", Decimal("40400"))

    closed = await engine.run_sweep()

    assert closed == []
    assert book.get(result.trade_id).unrealized_pnl == Decimal("40")


@pytest.mark.asyncio
async def test_sweep_closes_stale_position_on_fallback(engine, book):
    position = make_position("trade_stale", opened_at=NOW - timedelta(hours=25))
    book.open(position)

    closed = await engine.run_sweep(NOW)

    assert [c.reason for c in closed] == [CloseReason.ML_SIGNAL]


@pytest.mark.asyncio
async def test_manual_close_during_sweep_settles_once(ledger, book, history, price_feed):
    """
    The oracle is slow; a manual close lands while the sweep is evaluating.
    Exactly one settlement and one history record result.
    """
    evaluation_started = asyncio.Event()
    release = asyncio.Event()

    class BlockingEvaluator(CloseEvaluator):
        async def evaluate(self, position, now=None):
            decision = await super().evaluate(position, now)
            evaluation_started.set()
            await release.wait()
            return decision

    engine = TradingEngine(
        ledger, book, history, price_feed,
        BlockingEvaluator(SignalGenerator()),
        default_take_profit_percent=Decimal("0"),
        default_stop_loss_percent=Decimal("0"),
    )
    result = await engine.execute_trade(buy(take_profit=Decimal("44000")))
    price_feed.set_price("BTC", Decimal("44000"))

    sweep_task = asyncio.create_task(engine.run_sweep(NOW))
    await evaluation_started.wait()

    manual = await engine.close_trade(result.trade_id, CloseReason.MANUAL)
    release.set()
    swept = await sweep_task

    assert manual.reason == CloseReason.MANUAL
    assert swept == []
    assert history.count(result.trade_id) == 1
    assert ledger.balance("BTC") == Decimal("0.5")


@pytest.mark.asyncio
async def test_concurrent_manual_closes_settle_once(engine, history):
    result = await engine.execute_trade(buy())

    outcomes = await asyncio.gather(
        engine.close_trade(result.trade_id),
        engine.close_trade(result.trade_id),
        return_exceptions=True,
    )

    errors = [o for o in outcomes if isinstance(o, PositionNotFoundError)]
    assert len(errors) == 1
    assert history.count(result.trade_id) == 1


@pytest.mark.asyncio
async def test_sweep_survives_failing_evaluation(engine, book, evaluator):
    book.open(make_position("trade_a", current_price=Decimal("40000")))
    evaluator.evaluate = AsyncMock(side_effect=RuntimeError("boom"))

    assert await engine.run_sweep(NOW) == []
    assert "trade_a" in book


# ==================== REPORTING ====================

@pytest.mark.asyncio
async def test_status_snapshot(engine):
    await engine.execute_trade(buy())
    opened = await engine.execute_trade(buy(amount="1000"))
    await engine.close_trade(opened.trade_id)

    status = await engine.status(history_limit=50)

    assert status["open_count"] == 1
    assert len(status["trade_history"]) == 1
    assert status["summary"]["total_trades"] == 1
    assert status["portfolio"]["USD"] == Decimal("5996") - Decimal("1001") + Decimal("999")


@pytest.mark.asyncio
async def test_portfolio(engine):
    portfolio = await engine.portfolio()

    assert portfolio["available_pairs"] == ["BTC/USD", "ETH/USD", "SOL/USD"]
    assert portfolio["trading_fee"] == "0.1%"
    assert portfolio["total_value"] == Decimal("37400")


@pytest.mark.asyncio
async def test_trade_history_filters(engine):
    for _ in range(3):
        result = await engine.execute_trade(buy(amount="100"))
        await engine.close_trade(result.trade_id)

    assert len(engine.trade_history(limit=2)["trades"]) == 2
    assert engine.trade_history(window_hours=1)["summary"]["total_trades"] == 3


# ==================== WIRING ====================

def test_build_trading_engine_without_oracle_key():
    settings = Settings(_env_file=None, ORACLE_API_KEY="", MAX_POSITION_AGE_HOURS=48)

    engine = build_trading_engine(settings)

    assert engine.evaluator.signal_generator.oracle is None
    assert engine.evaluator.max_position_age == timedelta(hours=48)
    assert engine.ledger.cash == Decimal("10000")
    assert engine.price_feed.current_price("BTC") == Decimal("45234.56")


def test_build_trading_engine_with_oracle_key():
    settings = Settings(_env_file=None, ORACLE_API_KEY="sk-test")

    engine = build_trading_engine(settings)

    assert engine.evaluator.signal_generator.oracle is not None
    assert engine.evaluator.signal_generator.oracle.model.model_name == "anthropic/claude-3-haiku"
