"""
Trading Schemas

Pydantic schemas for trading API requests and engine results.

Author: Tradesim Team
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

from tradesim.domain.models.position import CloseReason, PositionSide


MANUAL_CLOSE_REASONS = (
    CloseReason.TAKE_PROFIT,
    CloseReason.STOP_LOSS,
    CloseReason.MANUAL,
    CloseReason.ML_SIGNAL,
)


# ==================== REQUEST SCHEMAS ====================

class TradeExecutionRequest(BaseModel):
    """Open a new position"""
    symbol: str = Field(..., min_length=1, description="Asset symbol, e.g. BTC")
    side: str = Field(..., description="buy / sell (long / short accepted)")
    notional_amount: Decimal = Field(..., description="Cash amount of the trade")
    confidence_at_entry: Optional[Decimal] = Field(default=None, ge=0, le=100)
    take_profit: Optional[Decimal] = Field(default=None, gt=0, description="Take-profit price")
    stop_loss: Optional[Decimal] = Field(default=None, gt=0, description="Stop-loss price")

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("side")
    @classmethod
    def validate_side(cls, v: str) -> str:
        PositionSide.from_trade_side(v)
        return v.strip().lower()

    @property
    def position_side(self) -> PositionSide:
        return PositionSide.from_trade_side(self.side)


class CloseTradeRequest(BaseModel):
    """Close an open position"""
    trade_id: str = Field(..., min_length=1)
    reason: CloseReason = Field(..., description="take_profit, stop_loss, manual or ml_signal")
    close_price: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: CloseReason) -> CloseReason:
        """max_duration is reserved for the sweep."""
        if v not in MANUAL_CLOSE_REASONS:
            allowed = ", ".join(reason.value for reason in MANUAL_CLOSE_REASONS)
            raise ValueError(f"Invalid close reason. Must be one of: {allowed}")
        return v


# ==================== RESULT SCHEMAS ====================

class TradeExecutionResult(BaseModel):
    """Outcome of a trade execution attempt"""
    success: bool
    trade_id: Optional[str] = None
    symbol: str
    side: str
    quantity: Decimal = Decimal("0")
    execution_price: Optional[Decimal] = None
    fees: Decimal = Decimal("0")
    estimated_profit: Decimal = Decimal("0")
    take_profit: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    status: str
    message: str
    timestamp: datetime

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump()


class TradeCloseResult(BaseModel):
    """Outcome of a successful close"""
    success: bool = True
    trade_id: str
    symbol: str
    side: str
    close_price: Decimal
    closed_at: datetime
    realized_pnl: Decimal
    fees: Decimal
    reason: CloseReason
    message: str

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump()
