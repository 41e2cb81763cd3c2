"""
Price Feed Base Classes

Abstract interface for the market data source the engine marks positions
against.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List


class PriceFeed(ABC):
    """
    Abstract base class for price feeds.

    Usage:
        feed = SimulatedPriceFeed({"BTC": Decimal("45000")})
        await feed.refresh()
        price = feed.current_price("BTC")
    """

    @abstractmethod
    def current_price(self, symbol: str) -> Decimal:
        """
        Latest price for a symbol.

        Raises:
            PriceUnavailableError: symbol is not quoted by this feed
        """
        pass

    @abstractmethod
    def get_prices(self) -> Dict[str, Decimal]:
        """Copy of the latest price for every quoted symbol."""
        pass

    async def refresh(self) -> Dict[str, Decimal]:
        """Pull fresh quotes. Feeds that push updates just return get_prices()."""
        return self.get_prices()

    def symbols(self) -> List[str]:
        return list(self.get_prices().keys())

    def has_symbol(self, symbol: str) -> bool:
        return symbol in self.get_prices()
