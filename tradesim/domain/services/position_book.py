"""
Position Book

Authoritative set of open positions. Every mutation (open, price refresh,
close) goes through here.
"""

from decimal import Decimal
from typing import Dict, List, Mapping

from tradesim.domain.models.position import Position, PositionStatus
from tradesim.shared.exceptions import DuplicatePositionError, PositionNotFoundError
from tradesim.core.logger import get_logger

logger = get_logger(__name__)


class PositionBook:
    """
    In-memory store of open positions keyed by id.

    list_open() hands out deep copies so callers never see a position while
    it is being mutated. remove() is only used as the first half of a close.
    """

    def __init__(self):
        self._positions: Dict[str, Position] = {}

    def open(self, position: Position) -> str:
        """
        Add a new open position.

        Raises:
            DuplicatePositionError: id already in the book
        """
        if position.id in self._positions:
            raise DuplicatePositionError(f"Position {position.id} already exists")

        position.status = PositionStatus.OPEN
        self._positions[position.id] = position

        logger.info(
            f"Opened {position.side.value} {position.symbol} | price={position.entry_price} "
            f"qty={position.quantity} id={position.id}"
        )
        return position.id

    def get(self, position_id: str) -> Position:
        """
        Get an open position.

        Raises:
            PositionNotFoundError: unknown or already closed id
        """
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(f"Trade {position_id} not found or already closed")
        return position

    def list_open(self) -> List[Position]:
        """Snapshot of all open positions, in opening order."""
        return [position.model_copy(deep=True) for position in self._positions.values()]

    def refresh_prices(self, price_map: Mapping[str, Decimal]) -> int:
        """
        Mark every open position to the given prices.

        Positions whose symbol is missing from price_map keep their last price.

        Returns:
            Number of positions updated
        """
        updated = 0
        for position in self._positions.values():
            price = price_map.get(position.symbol)
            if price is None:
                continue
            position.update_price(price)
            updated += 1
        return updated

    def remove(self, position_id: str) -> Position:
        """
        Take a position out of the book.

        Raises:
            PositionNotFoundError: unknown or already closed id
        """
        position = self._positions.pop(position_id, None)
        if position is None:
            raise PositionNotFoundError(f"Trade {position_id} not found or already closed")
        position.status = PositionStatus.CLOSED
        return position

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, position_id: object) -> bool:
        return position_id in self._positions
