"""
Trade History Record

Immutable snapshot of a position written once at close time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from tradesim.domain.models.position import CloseReason, PositionSide


class TradeHistoryRecord(BaseModel):
    """Closed trade. Frozen: never mutated after it is appended."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    side: PositionSide
    quantity: Decimal
    entry_price: Decimal
    close_price: Decimal
    realized_pnl: Decimal
    fees: Decimal
    closed_at: datetime
    close_reason: CloseReason

    def to_response(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "close_price": self.close_price,
            "realized_pnl": self.realized_pnl,
            "fees": self.fees,
            "closed_at": self.closed_at,
            "close_reason": self.close_reason.value,
        }
