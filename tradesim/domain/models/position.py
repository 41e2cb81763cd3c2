"""
Position Domain Model

Pure Pydantic domain model for open positions.
No storage dependencies - business logic only.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from pydantic import Field, field_validator

from tradesim.shared.models import DomainModel


# ==================== ENUMS ====================

class PositionStatus(str, Enum):
    """Position status lifecycle"""
    OPEN = "open"
    CLOSED = "closed"


class PositionSide(str, Enum):
    """Position side"""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_trade_side(cls, value: str) -> "PositionSide":
        """
        Map a request side onto a position side.

        Accepts "buy"/"sell" as well as "long"/"short" (case-insensitive).
        """
        normalized = str(value).strip().lower()
        if normalized in ("buy", "long"):
            return cls.LONG
        if normalized in ("sell", "short"):
            return cls.SHORT
        raise ValueError(f"Invalid trade side '{value}'. Must be 'buy' or 'sell'")


class CloseReason(str, Enum):
    """Why a position was closed"""
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MANUAL = "manual"
    ML_SIGNAL = "ml_signal"
    MAX_DURATION = "max_duration"


# ==================== MAIN POSITION MODEL ====================

class Position(DomainModel):
    """
    Position Domain Model

    An open trade whose unrealized P&L is tracked against the live price.
    Owned by PositionBook while open.

    Usage:
        position = Position(
            id="trade_1700000000000_abc123def",
            symbol="BTC",
            side=PositionSide.LONG,
            quantity=Decimal("0.1"),
            entry_price=Decimal("40000"),
            current_price=Decimal("40000"),
        )

        # Update price (domain logic only)
        position.update_price(Decimal("41000"))
        position.unrealized_pnl  # Decimal("100.0")
    """

    # Identity
    id: str
    symbol: str
    side: PositionSide
    status: PositionStatus = PositionStatus.OPEN

    # Entry
    quantity: Decimal
    entry_price: Decimal
    notional: Decimal = Decimal("0")
    entry_fees: Decimal = Decimal("0")

    # Current State
    current_price: Decimal
    unrealized_pnl: Decimal = Decimal("0")

    # Risk Management
    take_profit: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None

    # Signal
    signal_confidence_at_entry: Decimal = Decimal("70")

    # Timing
    opened_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("quantity", "entry_price")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        """Quantity and entry price must stay strictly positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("signal_confidence_at_entry")
    @classmethod
    def validate_confidence(cls, v: Decimal) -> Decimal:
        """Confidence lives in 0..100."""
        if v < 0 or v > 100:
            raise ValueError("confidence must be between 0 and 100")
        return v

    @field_validator("opened_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Store opened_at as an aware UTC datetime."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def update_price(self, current_price: Decimal) -> None:
        """
        Update current price and recalculate unrealized P&L.

        Long positions profit when the price rises above entry, short
        positions when it falls below. No rounding is applied.

        Args:
            current_price: Current market price
        """
        if self.status != PositionStatus.OPEN:
            return

        if not isinstance(current_price, Decimal):
            current_price = Decimal(str(current_price))

        self.current_price = current_price
        self.unrealized_pnl = self.calculate_pnl(current_price)

    def calculate_pnl(self, price: Decimal) -> Decimal:
        """Gross P&L of the whole position at the given price."""
        if self.side == PositionSide.LONG:
            return (price - self.entry_price) * self.quantity
        return (self.entry_price - price) * self.quantity

    @property
    def entry_value(self) -> Decimal:
        return self.entry_price * self.quantity

    @property
    def price_change_percent(self) -> Decimal:
        """Raw price move since entry, in percent (side-agnostic)."""
        return (self.current_price - self.entry_price) / self.entry_price * 100

    @property
    def unrealized_pnl_percent(self) -> Decimal:
        """Unrealized P&L relative to the entry value, in percent."""
        return self.unrealized_pnl / self.entry_value * 100

    def age(self, now: Optional[datetime] = None) -> timedelta:
        """Time since the position was opened."""
        now = now or datetime.now(timezone.utc)
        return now - self.opened_at

    def age_hours(self, now: Optional[datetime] = None) -> float:
        return self.age(now).total_seconds() / 3600

    def is_open(self) -> bool:
        """Check if position is open"""
        return self.status == PositionStatus.OPEN

    def to_response(self) -> Dict[str, Any]:
        """Serializable view used by the API."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "status": self.status.value,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "current_price": self.current_price,
            "notional": self.notional,
            "entry_fees": self.entry_fees,
            "take_profit": self.take_profit,
            "stop_loss": self.stop_loss,
            "signal_confidence_at_entry": self.signal_confidence_at_entry,
            "unrealized_pnl": self.unrealized_pnl,
            "unrealized_pnl_percent": self.unrealized_pnl_percent,
            "opened_at": self.opened_at,
        }
