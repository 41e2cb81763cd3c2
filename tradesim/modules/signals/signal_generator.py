"""
Signal Generator

Close/hold recommendation for an open position. Consults the prediction
oracle with a bounded timeout and falls back to deterministic rules when
the oracle is missing, slow, failing or unparsable.

Author: Tradesim Team
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from tradesim.domain.models.position import Position
from tradesim.modules.signals.oracle import PositionSnapshot, PredictionOracle
from tradesim.shared.exceptions import OracleUnavailableError
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

MAX_DURATION_HOURS = 24


class SignalSource(str, Enum):
    """Where a close signal came from"""
    ORACLE = "oracle"
    FALLBACK = "fallback"


class FallbackRule(str, Enum):
    """Which deterministic rule produced a fallback signal"""
    TARGET_REACHED = "target_reached"
    PRICE_MOVEMENT = "price_movement"
    MAX_DURATION = "max_duration"
    HOLD = "hold"


@dataclass(frozen=True)
class CloseSignal:
    """Tagged close recommendation. rule is set only for fallback signals."""
    should_close: bool
    confidence: Decimal
    reasoning: str
    expected_move_percent: Decimal
    source: SignalSource
    rule: Optional[FallbackRule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_close": self.should_close,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "expected_move_percent": self.expected_move_percent,
            "source": self.source.value,
            "rule": self.rule.value if self.rule else None,
        }


class OraclePrediction(BaseModel):
    """Validated shape of an oracle answer."""
    should_close: bool
    confidence: Decimal
    reasoning: str = ""
    expected_move: Decimal = Field(default=Decimal("0"))

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: Decimal) -> Decimal:
        return min(max(v, Decimal("0")), Decimal("100"))


def rule_based_close_signal(snapshot: PositionSnapshot) -> CloseSignal:
    """
    Deterministic close rules. Pure and total.

    First match wins:
    - |unrealized P&L %| >= 10 -> close, 90
    - |price change %| >= 5    -> close, 75, expected move = change * 0.3
    - age > 24h                -> close, 60
    - otherwise                -> hold, 30, expected move = change * 0.1
    """
    price_change = snapshot.price_change_percent
    pnl_percent = snapshot.unrealized_pnl_percent

    if abs(pnl_percent) >= 10:
        return CloseSignal(
            should_close=True,
            confidence=Decimal("90"),
            reasoning=f"Target profit/loss reached: {pnl_percent:.2f}%",
            expected_move_percent=Decimal("0"),
            source=SignalSource.FALLBACK,
            rule=FallbackRule.TARGET_REACHED,
        )

    if abs(price_change) >= 5:
        return CloseSignal(
            should_close=True,
            confidence=Decimal("75"),
            reasoning=f"Significant price movement: {price_change:.2f}%",
            expected_move_percent=price_change * Decimal("0.3"),
            source=SignalSource.FALLBACK,
            rule=FallbackRule.PRICE_MOVEMENT,
        )

    if snapshot.age_hours > MAX_DURATION_HOURS:
        return CloseSignal(
            should_close=True,
            confidence=Decimal("60"),
            reasoning="Maximum trade duration reached",
            expected_move_percent=Decimal("0"),
            source=SignalSource.FALLBACK,
            rule=FallbackRule.MAX_DURATION,
        )

    return CloseSignal(
        should_close=False,
        confidence=Decimal("30"),
        reasoning="Hold position - no strong close signals",
        expected_move_percent=price_change * Decimal("0.1"),
        source=SignalSource.FALLBACK,
        rule=FallbackRule.HOLD,
    )


class SignalGenerator:
    """
    Signal Generator

    Usage:
        generator = SignalGenerator(oracle=LLMPredictionOracle(model), timeout_seconds=5)
        signal = await generator.generate(position)
        if signal.source == SignalSource.FALLBACK:
            ...
    """

    def __init__(
        self,
        oracle: Optional[PredictionOracle] = None,
        timeout_seconds: float = 5.0
    ):
        self.oracle = oracle
        self.timeout_seconds = timeout_seconds

    async def generate(self, position: Position, now: Optional[datetime] = None) -> CloseSignal:
        """
        Produce a close recommendation. Never raises.

        Args:
            position: Open position (a snapshot copy is fine)
            now: Evaluation time (default: current UTC time)
        """
        snapshot = PositionSnapshot.from_position(position, now or datetime.now(timezone.utc))

        if self.oracle is None:
            return rule_based_close_signal(snapshot)

        try:
            prediction = await self._consult_oracle(snapshot)
        except OracleUnavailableError as e:
            logger.warning(f"Oracle unavailable for {snapshot.position_id}, using rules: {e.message}")
            return rule_based_close_signal(snapshot)

        return CloseSignal(
            should_close=prediction.should_close,
            confidence=prediction.confidence,
            reasoning=prediction.reasoning,
            expected_move_percent=prediction.expected_move,
            source=SignalSource.ORACLE,
        )

    async def _consult_oracle(self, snapshot: PositionSnapshot) -> OraclePrediction:
        """
        Single bounded oracle call, no retry.

        Raises:
            OracleUnavailableError: timeout, provider error or invalid answer
        """
        try:
            raw = await asyncio.wait_for(self.oracle.predict(snapshot), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise OracleUnavailableError(f"Oracle timed out after {self.timeout_seconds}s")
        except Exception as e:
            raise OracleUnavailableError(f"Oracle call failed: {str(e)}")

        try:
            return OraclePrediction.model_validate(raw)
        except PydanticValidationError as e:
            raise OracleUnavailableError(f"Unparsable oracle answer: {e.error_count()} errors")
