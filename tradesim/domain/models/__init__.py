"""
Domain Models

Pure business logic models without storage dependencies.
"""

from tradesim.domain.models.position import (
    Position,
    PositionSide,
    PositionStatus,
    CloseReason,
)
from tradesim.domain.models.trade_record import TradeHistoryRecord

__all__ = [
    "Position",
    "PositionSide",
    "PositionStatus",
    "CloseReason",
    "TradeHistoryRecord",
]
