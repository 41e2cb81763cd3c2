"""
Portfolio Ledger

Asset balances (cash included) and the settlement math for opening and
closing trades.

Features:
- Fee simulation (0.1% default) on both legs
- Balance validation before a trade opens
- Atomic settlement: balances are rebuilt on a copy and swapped in at once,
  so readers never observe a half-applied trade

Usage:
    ledger = PortfolioLedger({"USD": Decimal("10000")})

    fees = ledger.settle_open("BTC", PositionSide.LONG, Decimal("4000"), Decimal("40000"))
    settlement = ledger.settle_close(position, Decimal("44000"))
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping, Optional

from tradesim.domain.models.position import Position, PositionSide
from tradesim.shared.exceptions import InsufficientBalanceError, ValidationError
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FEE_RATE = Decimal("0.001")
MIN_REPORTED_PNL = Decimal("0.01")


@dataclass(frozen=True)
class Settlement:
    """Result of closing a position against the ledger.

    balances holds the ledger state after the exit leg; it is only swapped
    in by PortfolioLedger.apply().
    """
    fees: Decimal
    realized_pnl: Decimal
    balances: Mapping[str, Decimal] = field(default_factory=dict, repr=False, compare=False)


def apply_min_pnl_magnitude(
    realized_pnl: Decimal,
    side: PositionSide,
    entry_price: Decimal,
    close_price: Decimal,
    quantity: Decimal,
    fees: Decimal
) -> Decimal:
    """
    Minimum realized P&L display policy.

    When the price moved but the realized P&L is smaller than one cent, the
    reported value is pushed out to at least +/-0.01 in the direction of the
    price move for the position's side. This is a precision/display rule for
    realized P&L at close only; unrealized P&L and ledger balances are never
    floored.
    """
    if abs(realized_pnl) >= MIN_REPORTED_PNL or close_price == entry_price:
        return realized_pnl

    base_pnl = abs(close_price - entry_price) * quantity - fees

    if side == PositionSide.LONG:
        favourable = close_price > entry_price
    else:
        favourable = entry_price > close_price

    if favourable:
        return max(MIN_REPORTED_PNL, base_pnl)
    return min(-MIN_REPORTED_PNL, -base_pnl)


class PortfolioLedger:
    """
    Mapping from asset symbol to balance, including the cash balance.

    Mutated only by settle_open, settle_close and apply. Callers are expected to hold
    the engine lock around a settlement; reads go through snapshot().
    """

    def __init__(
        self,
        initial_balances: Optional[Mapping[str, Decimal]] = None,
        cash_symbol: str = "USD",
        fee_rate: Decimal = DEFAULT_FEE_RATE
    ):
        """
        Initialize ledger.

        Args:
            initial_balances: Starting balances (default: {cash_symbol: 10000})
            cash_symbol: Symbol of the cash balance
            fee_rate: Fee fraction charged on each leg (default: 0.1%)
        """
        if fee_rate < 0:
            raise ValueError("fee_rate must not be negative")

        self.cash_symbol = cash_symbol
        self.fee_rate = Decimal(str(fee_rate))

        balances = initial_balances if initial_balances is not None else {cash_symbol: Decimal("10000")}
        self._balances: Dict[str, Decimal] = {
            symbol: Decimal(str(amount)) for symbol, amount in balances.items()
        }
        self._balances.setdefault(cash_symbol, Decimal("0"))

    # ==================== READS ====================

    def snapshot(self) -> Dict[str, Decimal]:
        """Point-in-time copy of all balances."""
        return dict(self._balances)

    def balance(self, symbol: str) -> Decimal:
        return self._balances.get(symbol, Decimal("0"))

    @property
    def cash(self) -> Decimal:
        return self.balance(self.cash_symbol)

    def total_value(self, prices: Mapping[str, Decimal]) -> Decimal:
        """Cash plus every asset balance marked at the given prices."""
        balances = self._balances
        total = Decimal("0")
        for symbol, amount in balances.items():
            if symbol == self.cash_symbol:
                total += amount
            else:
                total += amount * prices.get(symbol, Decimal("0"))
        return total

    # ==================== FEES & VALIDATION ====================

    def calculate_fees(self, notional: Decimal) -> Decimal:
        """Trading fee for a leg of the given notional value."""
        return abs(notional) * self.fee_rate

    def validate_open(
        self,
        symbol: str,
        side: PositionSide,
        notional: Decimal,
        price: Decimal
    ) -> None:
        """
        Check that a trade can be opened.

        Raises:
            ValidationError: Non-positive amount or price
            InsufficientBalanceError: Not enough cash (long) or asset (short)
        """
        if notional <= 0:
            raise ValidationError("Trade amount must be positive")
        if price <= 0:
            raise ValidationError("Execution price must be positive")

        if side == PositionSide.LONG:
            total_cost = notional + self.calculate_fees(notional)
            if self.cash < total_cost:
                raise InsufficientBalanceError(f"Insufficient {self.cash_symbol} balance")
        else:
            asset_amount = notional / price
            if self.balance(symbol) < asset_amount:
                raise InsufficientBalanceError(f"Insufficient {symbol} balance")

    # ==================== SETTLEMENT ====================

    def settle_open(
        self,
        symbol: str,
        side: PositionSide,
        notional: Decimal,
        price: Decimal
    ) -> Decimal:
        """
        Apply the entry leg of a trade.

        Long: debit cash by notional + fee, credit notional/price units.
        Short: credit cash by notional - fee, debit notional/price units.

        Returns:
            Fees charged on the entry leg
        """
        self.validate_open(symbol, side, notional, price)

        fees = self.calculate_fees(notional)
        quantity = notional / price
        updated = dict(self._balances)

        if side == PositionSide.LONG:
            updated[self.cash_symbol] = updated.get(self.cash_symbol, Decimal("0")) - (notional + fees)
            updated[symbol] = updated.get(symbol, Decimal("0")) + quantity
        else:
            updated[symbol] = updated.get(symbol, Decimal("0")) - quantity
            updated[self.cash_symbol] = updated.get(self.cash_symbol, Decimal("0")) + (notional - fees)

        self._balances = updated

        logger.debug(f"Settled open {side.value} {symbol}: notional={notional} qty={quantity} fees={fees}")
        return fees

    def prepare_close(self, position: Position, close_price: Decimal) -> Settlement:
        """
        Compute the exit leg of a position without touching the balances.

        Long: sell the units back (asset -= q, cash += close * q - fees).
        Short: buy the units back (cash -= close * q + fees, asset += q).

        The exit notional is quantity * close_price. Because quantity was
        notional / entry_price at open, a round trip at an unchanged price can
        differ from the opening notional in the last of Decimal's 28
        significant digits.

        Returns:
            Settlement with exit fees, realized P&L (after exit fees,
            minimum-magnitude policy applied) and the resulting balances
        """
        if close_price <= 0:
            raise ValidationError("Close price must be positive")

        quantity = position.quantity
        exit_value = quantity * close_price
        fees = self.calculate_fees(exit_value)
        updated = dict(self._balances)
        symbol = position.symbol

        if position.side == PositionSide.LONG:
            realized_pnl = (close_price - position.entry_price) * quantity - fees
            updated[symbol] = updated.get(symbol, Decimal("0")) - quantity
            updated[self.cash_symbol] = updated.get(self.cash_symbol, Decimal("0")) + exit_value - fees
        else:
            realized_pnl = (position.entry_price - close_price) * quantity - fees
            updated[self.cash_symbol] = updated.get(self.cash_symbol, Decimal("0")) - (exit_value + fees)
            updated[symbol] = updated.get(symbol, Decimal("0")) + quantity

        realized_pnl = apply_min_pnl_magnitude(
            realized_pnl,
            position.side,
            position.entry_price,
            close_price,
            quantity,
            fees
        )

        logger.debug(
            f"Prepared close {position.side.value} {symbol} @ {close_price}: "
            f"fees={fees} realized_pnl={realized_pnl}"
        )
        return Settlement(fees=fees, realized_pnl=realized_pnl, balances=updated)

    def apply(self, settlement: Settlement) -> None:
        """Swap in the balances computed by prepare_close()."""
        self._balances = dict(settlement.balances)

    def settle_close(self, position: Position, close_price: Decimal) -> Settlement:
        """prepare_close() followed by apply()."""
        settlement = self.prepare_close(position, close_price)
        self.apply(settlement)
        return settlement
