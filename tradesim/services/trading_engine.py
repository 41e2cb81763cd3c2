"""
Trading Engine

Orchestrates the trade lifecycle: executes trades against the portfolio
ledger, marks open positions to market, closes them manually or from the
auto-close sweep, and records every close in the trade history.

All mutations of the position book and the ledger happen while holding a
single asyncio.Lock. Oracle calls made during a sweep run outside the lock
and each close decision is re-checked under the lock before it is applied,
so a position can never be settled twice.

Author: Tradesim Team
"""

import asyncio
import random
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from tradesim.config.settings import Settings
from tradesim.domain.models.position import CloseReason, Position, PositionSide
from tradesim.domain.models.trade_record import TradeHistoryRecord
from tradesim.domain.services.portfolio_ledger import PortfolioLedger
from tradesim.domain.services.position_book import PositionBook
from tradesim.domain.services.trade_history import TradeHistory, summarize
from tradesim.infrastructure.ai_providers.factory import ModelFactory
from tradesim.infrastructure.market_data.base import PriceFeed
from tradesim.infrastructure.market_data.simulated_feed import SimulatedPriceFeed
from tradesim.modules.signals.oracle import LLMPredictionOracle
from tradesim.modules.signals.signal_generator import SignalGenerator
from tradesim.modules.trading.schemas import (
    TradeCloseResult,
    TradeExecutionRequest,
    TradeExecutionResult,
)
from tradesim.services.close_evaluator import CloseDecision, CloseEvaluator
from tradesim.shared.exceptions import (
    InsufficientBalanceError,
    PositionNotFoundError,
    PriceUnavailableError,
    ValidationError,
)
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
ESTIMATE_CONFIDENCE_FLOOR = Decimal("70")
ESTIMATE_EDGE_RATE = Decimal("0.02")


class TradingEngine:
    """
    Trading Engine

    Usage:
        engine = build_trading_engine(get_settings())

        result = await engine.execute_trade(
            TradeExecutionRequest(symbol="BTC", side="buy", notional_amount=Decimal("1000"))
        )
        closed = await engine.close_trade(result.trade_id, CloseReason.MANUAL)
        auto_closed = await engine.run_sweep()
    """

    def __init__(
        self,
        ledger: PortfolioLedger,
        book: PositionBook,
        history: TradeHistory,
        price_feed: PriceFeed,
        evaluator: CloseEvaluator,
        slippage_rate: Decimal = Decimal("0"),
        default_take_profit_percent: Decimal = Decimal("10"),
        default_stop_loss_percent: Decimal = Decimal("5"),
        default_confidence: Decimal = Decimal("70"),
        rng: Optional[random.Random] = None
    ):
        self.ledger = ledger
        self.book = book
        self.history = history
        self.price_feed = price_feed
        self.evaluator = evaluator
        self.slippage_rate = Decimal(str(slippage_rate))
        self.default_take_profit_percent = Decimal(str(default_take_profit_percent))
        self.default_stop_loss_percent = Decimal(str(default_stop_loss_percent))
        self.default_confidence = Decimal(str(default_confidence))
        self._rng = rng or random.Random()
        self._issued_ids: Set[str] = set()
        self._lock = asyncio.Lock()

    # ==================== EXECUTION ====================

    async def execute_trade(self, request: TradeExecutionRequest) -> TradeExecutionResult:
        """
        Open a position.

        Business failures (unknown symbol, non-positive amount, insufficient
        balance) come back as a result with status "failed"; nothing is
        mutated in that case.
        """
        timestamp = datetime.now(timezone.utc)
        side = request.position_side
        symbol = request.symbol
        notional = request.notional_amount
        confidence = (
            request.confidence_at_entry
            if request.confidence_at_entry is not None
            else self.default_confidence
        )

        async with self._lock:
            try:
                market_price = self.price_feed.current_price(symbol)
                execution_price = self._apply_slippage(market_price)
                self.ledger.validate_open(symbol, side, notional, execution_price)

                take_profit, stop_loss = self._resolve_targets(
                    side, execution_price, request.take_profit, request.stop_loss
                )
                position = Position(
                    id=self._new_trade_id(),
                    symbol=symbol,
                    side=side,
                    quantity=notional / execution_price,
                    entry_price=execution_price,
                    current_price=execution_price,
                    notional=notional,
                    take_profit=take_profit,
                    stop_loss=stop_loss,
                    signal_confidence_at_entry=confidence,
                    opened_at=timestamp,
                )

                fees = self.ledger.settle_open(symbol, side, notional, execution_price)
                position.entry_fees = fees
                self.book.open(position)

            except (ValidationError, InsufficientBalanceError, PriceUnavailableError) as e:
                logger.warning(f"Trade rejected ({request.side} {symbol} {notional}): {e.message}")
                return TradeExecutionResult(
                    success=False,
                    symbol=symbol,
                    side=request.side,
                    status="failed",
                    message=e.message,
                    timestamp=timestamp,
                )

        estimated_profit = self.estimate_profit(side, notional, confidence)

        return TradeExecutionResult(
            success=True,
            trade_id=position.id,
            symbol=symbol,
            side=request.side,
            quantity=position.quantity,
            execution_price=execution_price,
            fees=fees,
            estimated_profit=estimated_profit,
            take_profit=take_profit,
            stop_loss=stop_loss,
            status="executed",
            message=f"{request.side.upper()} order executed for {symbol}",
            timestamp=timestamp,
        )

    @staticmethod
    def estimate_profit(side: PositionSide, notional: Decimal, confidence: Decimal) -> Decimal:
        """
        Informational profit estimate returned with an executed trade.

        Scales 2% of the notional by how far the entry confidence sits above
        70; zero at or below 70. Negative for shorts.
        """
        if confidence <= ESTIMATE_CONFIDENCE_FLOOR:
            return Decimal("0")
        edge = (confidence - ESTIMATE_CONFIDENCE_FLOOR) / (100 - ESTIMATE_CONFIDENCE_FLOOR)
        estimate = notional * ESTIMATE_EDGE_RATE * edge
        return estimate if side == PositionSide.LONG else -estimate

    # ==================== CLOSE ====================

    async def close_trade(
        self,
        trade_id: str,
        reason: CloseReason = CloseReason.MANUAL,
        close_price: Optional[Decimal] = None,
        now: Optional[datetime] = None
    ) -> TradeCloseResult:
        """
        Close an open position.

        Without close_price the position is closed at the feed's current
        price (or its last marked price if the feed has none).

        Raises:
            PositionNotFoundError: unknown or already closed id
            ValidationError: non-positive close price
        """
        async with self._lock:
            return self._close_locked(trade_id, reason, close_price, now or datetime.now(timezone.utc))

    def _close_locked(
        self,
        trade_id: str,
        reason: CloseReason,
        close_price: Optional[Decimal],
        closed_at: datetime
    ) -> TradeCloseResult:
        """Lookup, settle, remove, record. Caller holds the lock."""
        position = self.book.get(trade_id)

        if close_price is None:
            try:
                close_price = self.price_feed.current_price(position.symbol)
            except PriceUnavailableError:
                close_price = position.current_price

        # Balances are swapped in only after the position has left the book,
        # so a failure before that point leaves book, ledger and history untouched.
        settlement = self.ledger.prepare_close(position, close_price)
        position.update_price(close_price)
        self.book.remove(trade_id)
        self.ledger.apply(settlement)

        record = TradeHistoryRecord(
            id=position.id,
            symbol=position.symbol,
            side=position.side,
            quantity=position.quantity,
            entry_price=position.entry_price,
            close_price=close_price,
            realized_pnl=settlement.realized_pnl,
            fees=settlement.fees,
            closed_at=closed_at,
            close_reason=reason,
        )
        self.history.append(record)

        logger.info(
            f"Closed {position.side.value} {position.symbol} {trade_id} ({reason.value}) "
            f"@ {close_price} | pnl={settlement.realized_pnl} fees={settlement.fees}"
        )

        return TradeCloseResult(
            trade_id=trade_id,
            symbol=position.symbol,
            side=position.side.value,
            close_price=close_price,
            closed_at=closed_at,
            realized_pnl=settlement.realized_pnl,
            fees=settlement.fees,
            reason=reason,
            message=f"Trade closed successfully ({reason.value})",
        )

    # ==================== SWEEP ====================

    async def run_sweep(self, now: Optional[datetime] = None) -> List[TradeCloseResult]:
        """
        One auto-close pass over all open positions.

        1. Refresh quotes and mark every open position (under the lock)
        2. Evaluate close conditions on a snapshot (outside the lock)
        3. Apply each decision under the lock; positions closed in the
           meantime are skipped

        Returns:
            Results of the closes performed by this sweep
        """
        now = now or datetime.now(timezone.utc)
        prices = await self.price_feed.refresh()

        async with self._lock:
            self.book.refresh_prices(prices)
            snapshot = self.book.list_open()

        decisions: List[CloseDecision] = []
        for position in snapshot:
            try:
                decision = await self.evaluator.evaluate(position, now)
            except Exception as e:
                logger.error(f"Close evaluation failed for {position.id}: {str(e)}", exc_info=True)
                continue
            if decision:
                decisions.append(decision)

        results: List[TradeCloseResult] = []
        for decision in decisions:
            async with self._lock:
                try:
                    result = self._close_locked(
                        decision.position_id,
                        decision.reason,
                        decision.trigger_price,
                        now
                    )
                except PositionNotFoundError:
                    logger.info(f"Position {decision.position_id} already closed, skipping sweep close")
                    continue
            results.append(result)

        if results:
            logger.info(f"Sweep closed {len(results)} of {len(snapshot)} open positions")
        return results

    # ==================== REPORTING ====================

    async def status(self, history_limit: int = 50) -> Dict[str, Any]:
        """Point-in-time view of open positions, recent history and balances."""
        async with self._lock:
            open_positions = self.book.list_open()
            recent = self.history.recent(history_limit)
            balances = self.ledger.snapshot()
            prices = self.price_feed.get_prices()

        return {
            "open_positions": [position.to_response() for position in open_positions],
            "open_count": len(open_positions),
            "trade_history": [record.to_response() for record in recent],
            "portfolio": balances,
            "prices": prices,
            "summary": summarize(recent),
            "timestamp": datetime.now(timezone.utc),
        }

    async def portfolio(self) -> Dict[str, Any]:
        """Balances, tradable pairs and current prices."""
        async with self._lock:
            balances = self.ledger.snapshot()
            prices = self.price_feed.get_prices()

        cash_symbol = self.ledger.cash_symbol
        return {
            "portfolio": balances,
            "available_pairs": [f"{symbol}/{cash_symbol}" for symbol in prices],
            "current_prices": prices,
            "trading_fee": f"{self.ledger.fee_rate * 100:.1f}%",
            "total_value": self.ledger.total_value(prices),
            "timestamp": datetime.now(timezone.utc),
        }

    def trade_history(
        self,
        limit: Optional[int] = None,
        window_hours: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Closed trades, optionally limited to a time window and/or the last N."""
        if window_hours is not None:
            records = self.history.within(timedelta(hours=window_hours), now)
        else:
            records = self.history.all()

        if limit is not None:
            records = records[-limit:] if limit > 0 else []

        return {
            "trades": [record.to_response() for record in records],
            "summary": summarize(records),
        }

    # ==================== HELPERS ====================

    def _apply_slippage(self, price: Decimal) -> Decimal:
        """Symmetric random slippage of at most slippage_rate."""
        if self.slippage_rate == 0:
            return price
        factor = Decimal(str(self._rng.random() - 0.5)) * 2 * self.slippage_rate
        return price * (1 + factor)

    def _resolve_targets(
        self,
        side: PositionSide,
        price: Decimal,
        take_profit: Optional[Decimal],
        stop_loss: Optional[Decimal]
    ):
        """
        Fill in default take-profit / stop-loss levels around the entry price.

        A missing or non-positive level counts as unset.
        """
        is_long = side == PositionSide.LONG
        if take_profit is not None and take_profit <= 0:
            take_profit = None
        if stop_loss is not None and stop_loss <= 0:
            stop_loss = None

        if take_profit is None and self.default_take_profit_percent > 0:
            move = price * self.default_take_profit_percent / 100
            take_profit = price + move if is_long else price - move

        if stop_loss is None and self.default_stop_loss_percent > 0:
            move = price * self.default_stop_loss_percent / 100
            stop_loss = price - move if is_long else price + move

        return take_profit, stop_loss

    def _new_trade_id(self) -> str:
        """trade_<epoch ms>_<9 base36 chars>, never reused by this engine."""
        while True:
            suffix = "".join(self._rng.choice(ID_ALPHABET) for _ in range(9))
            trade_id = f"trade_{int(time.time() * 1000)}_{suffix}"
            if trade_id not in self._issued_ids and trade_id not in self.book:
                self._issued_ids.add(trade_id)
                return trade_id


def build_trading_engine(settings: Settings) -> TradingEngine:
    """
    Wire an engine from settings.

    The LLM oracle is only configured when ORACLE_API_KEY is set; without
    it the signal generator runs on its rule-based fallback.
    """
    oracle = None
    if settings.ORACLE_API_KEY:
        model = ModelFactory().create_model(
            provider=settings.ORACLE_PROVIDER,
            model_name=settings.ORACLE_MODEL,
            api_key=settings.ORACLE_API_KEY,
            request_timeout=settings.ORACLE_TIMEOUT_SECONDS,
        )
        oracle = LLMPredictionOracle(model)
    else:
        logger.info("ORACLE_API_KEY not set, close signals use rule-based fallback only")

    max_age = (
        timedelta(hours=settings.MAX_POSITION_AGE_HOURS)
        if settings.MAX_POSITION_AGE_HOURS is not None
        else None
    )
    evaluator = CloseEvaluator(
        SignalGenerator(oracle=oracle, timeout_seconds=settings.ORACLE_TIMEOUT_SECONDS),
        signal_min_age=timedelta(minutes=settings.SIGNAL_MIN_AGE_MINUTES),
        close_confidence=settings.SIGNAL_CLOSE_CONFIDENCE,
        max_position_age=max_age,
    )

    return TradingEngine(
        ledger=PortfolioLedger(
            settings.INITIAL_BALANCES,
            cash_symbol=settings.CASH_SYMBOL,
            fee_rate=settings.TRADING_FEE_RATE,
        ),
        book=PositionBook(),
        history=TradeHistory(),
        price_feed=SimulatedPriceFeed(settings.INITIAL_PRICES, volatility=settings.PRICE_VOLATILITY),
        evaluator=evaluator,
        slippage_rate=settings.SLIPPAGE_RATE,
        default_take_profit_percent=settings.DEFAULT_TAKE_PROFIT_PERCENT,
        default_stop_loss_percent=settings.DEFAULT_STOP_LOSS_PERCENT,
        default_confidence=settings.DEFAULT_SIGNAL_CONFIDENCE,
    )
