"""
Close Evaluator

Per-position rule engine deciding whether an open position should be
closed automatically.

Author: Tradesim Team
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from tradesim.domain.models.position import CloseReason, Position, PositionSide
from tradesim.modules.signals.signal_generator import CloseSignal, FallbackRule, SignalGenerator
from tradesim.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CloseDecision:
    """A fired close condition."""
    position_id: str
    reason: CloseReason
    trigger_price: Decimal
    signal: Optional[CloseSignal] = None


class CloseEvaluator:
    """
    Close Evaluator

    Checks, first match wins:
    1. Take profit (inclusive)
    2. Stop loss (inclusive)
    3. Hard maximum duration, when configured
    4. Signal generator, for positions older than signal_min_age; closes
       when should_close and confidence > close_confidence, or when the
       fallback maximum-duration rule fired

    Usage:
        evaluator = CloseEvaluator(SignalGenerator())
        decision = await evaluator.evaluate(position)
        if decision:
            await engine.close_trade(decision.position_id, decision.reason)
    """

    def __init__(
        self,
        signal_generator: SignalGenerator,
        signal_min_age: timedelta = timedelta(hours=1),
        close_confidence: Decimal = Decimal("70"),
        max_position_age: Optional[timedelta] = None
    ):
        self.signal_generator = signal_generator
        self.signal_min_age = signal_min_age
        self.close_confidence = close_confidence
        self.max_position_age = max_position_age

    async def evaluate(
        self,
        position: Position,
        now: Optional[datetime] = None
    ) -> Optional[CloseDecision]:
        """
        Evaluate close conditions for one position.

        Returns:
            CloseDecision if a condition fired, None to keep the position open
        """
        now = now or datetime.now(timezone.utc)

        reason = self.check_take_profit_stop_loss(position)
        if reason:
            return CloseDecision(position.id, reason, position.current_price)

        age = position.age(now)

        if self.max_position_age is not None and age >= self.max_position_age:
            return CloseDecision(position.id, CloseReason.MAX_DURATION, position.current_price)

        if age > self.signal_min_age:
            signal = await self.signal_generator.generate(position, now)
            if self.signal_fires(signal):
                logger.info(
                    f"Close signal for {position.id} ({signal.source.value}, "
                    f"confidence {signal.confidence}): {signal.reasoning}"
                )
                return CloseDecision(position.id, CloseReason.ML_SIGNAL, position.current_price, signal)

        return None

    def signal_fires(self, signal: CloseSignal) -> bool:
        """
        Whether a close signal is strong enough to act on.

        A fallback signal from the maximum-duration rule always fires: it is
        the duration policy, not a prediction, so the confidence bar does
        not apply to it.
        """
        if not signal.should_close:
            return False
        if signal.rule == FallbackRule.MAX_DURATION:
            return True
        return signal.confidence > self.close_confidence

    @staticmethod
    def check_take_profit_stop_loss(position: Position) -> Optional[CloseReason]:
        """Take profit / stop loss check with inclusive boundaries."""
        price = position.current_price
        is_long = position.side == PositionSide.LONG

        if position.take_profit is not None:
            if (is_long and price >= position.take_profit) or (not is_long and price <= position.take_profit):
                return CloseReason.TAKE_PROFIT

        if position.stop_loss is not None:
            if (is_long and price <= position.stop_loss) or (not is_long and price >= position.stop_loss):
                return CloseReason.STOP_LOSS

        return None
