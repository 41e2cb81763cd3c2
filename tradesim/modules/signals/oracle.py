"""
Prediction Oracle

Interface to the external predictive signal provider plus an LLM-backed
implementation that asks a model for a close/hold recommendation.

Author: Tradesim Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from tradesim.domain.models.position import Position
from tradesim.infrastructure.ai_providers.base import BaseLLM
from tradesim.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PositionSnapshot:
    """What the oracle (and the rule-based fallback) get to see of a position."""
    position_id: str
    symbol: str
    side: str
    entry_price: Decimal
    current_price: Decimal
    price_change_percent: Decimal
    unrealized_pnl_percent: Decimal
    confidence_at_entry: Decimal
    age_hours: float

    @classmethod
    def from_position(cls, position: Position, now: Optional[datetime] = None) -> "PositionSnapshot":
        now = now or datetime.now(timezone.utc)
        return cls(
            position_id=position.id,
            symbol=position.symbol,
            side=position.side.value,
            entry_price=position.entry_price,
            current_price=position.current_price,
            price_change_percent=position.price_change_percent,
            unrealized_pnl_percent=position.unrealized_pnl_percent,
            confidence_at_entry=position.signal_confidence_at_entry,
            age_hours=position.age_hours(now),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PredictionOracle(ABC):
    """
    External predictive signal provider.

    predict() returns a raw dict with should_close, confidence, reasoning
    and expected_move. It may raise, hang or return garbage; SignalGenerator
    bounds the call and validates the answer.
    """

    @abstractmethod
    async def predict(self, snapshot: PositionSnapshot) -> Dict[str, Any]:
        pass


class LLMPredictionOracle(PredictionOracle):
    """
    Prediction oracle backed by an LLM.

    Usage:
        model = ModelFactory().create_model("openrouter", api_key="...")
        oracle = LLMPredictionOracle(model)
        answer = await oracle.predict(snapshot)
        # {"should_close": True, "confidence": 82, "reasoning": "...", "expected_move": -1.2}
    """

    SCHEMA = {
        "type": "object",
        "properties": {
            "should_close": {"type": "boolean"},
            "confidence": {"type": "number", "minimum": 0, "maximum": 100},
            "reasoning": {"type": "string"},
            "expected_move": {"type": "number"}
        },
        "required": ["should_close", "confidence", "reasoning", "expected_move"]
    }

    def __init__(self, model: BaseLLM, temperature: float = 0.3):
        self.model = model
        self.temperature = temperature

    async def predict(self, snapshot: PositionSnapshot) -> Dict[str, Any]:
        result = await self.model.generate_structured_output(
            prompt=self._build_prompt(snapshot),
            schema=self.SCHEMA,
            system_prompt=self._get_system_prompt(),
            temperature=self.temperature
        )
        logger.debug(f"Oracle answer for {snapshot.position_id}: {result}")
        return result

    def _build_prompt(self, snapshot: PositionSnapshot) -> str:
        """Build close-recommendation prompt"""
        return f"""
Analyze the following open trade position and provide a close recommendation.

**Trade Details:**
- Symbol: {snapshot.symbol}
- Side: {snapshot.side}
- Entry Price: ${snapshot.entry_price:.2f}
- Current Price: ${snapshot.current_price:.2f}
- Price Change: {snapshot.price_change_percent:.2f}%
- Unrealized P&L: {snapshot.unrealized_pnl_percent:.2f}%
- Signal Confidence at Entry: {snapshot.confidence_at_entry}%
- Trade Duration: {int(snapshot.age_hours)} hours

**Your Task:**
1. Recommend whether to close the position now (true/false)
2. Give your confidence level (0-100)
3. Give brief reasoning
4. Estimate the additional price movement in percent if the position is held

Consider profit-taking opportunities, risk reversal signals, momentum
exhaustion and time-based decay of the original edge.
"""

    def _get_system_prompt(self) -> str:
        return """You are an expert trading analyst specializing in position management and exit timing.
Analyze open positions and provide close recommendations.

Guidelines:
- Prefer closing when the edge that justified the entry is gone
- Be conservative with confidence
- Answer only with the requested JSON
"""
