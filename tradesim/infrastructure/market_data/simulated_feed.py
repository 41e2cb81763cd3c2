"""
Simulated Price Feed

Random-walk market generator used in place of a real exchange feed.
"""

import random
from decimal import Decimal
from typing import Dict, Mapping, Optional

from tradesim.infrastructure.market_data.base import PriceFeed
from tradesim.shared.exceptions import PriceUnavailableError
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PRICES = {
    "BTC": Decimal("45234.56"),
    "ETH": Decimal("2345.67"),
    "SOL": Decimal("98.76"),
    "ADA": Decimal("0.45"),
    "DOT": Decimal("7.89"),
}


class SimulatedPriceFeed(PriceFeed):
    """
    In-memory quotes that drift by a bounded random step on every refresh.

    Each refresh moves a price by a uniform factor in
    [-volatility/2, +volatility/2]. With volatility 0 prices only change
    through set_price(), which is what tests use.
    """

    def __init__(
        self,
        initial_prices: Optional[Mapping[str, Decimal]] = None,
        volatility: Decimal = Decimal("0.002"),
        rng: Optional[random.Random] = None
    ):
        prices = initial_prices if initial_prices is not None else DEFAULT_PRICES
        self._prices: Dict[str, Decimal] = {
            symbol: Decimal(str(price)) for symbol, price in prices.items()
        }
        self.volatility = Decimal(str(volatility))
        self._rng = rng or random.Random()

    def current_price(self, symbol: str) -> Decimal:
        price = self._prices.get(symbol)
        if price is None:
            raise PriceUnavailableError(f"No price for symbol {symbol}")
        return price

    def get_prices(self) -> Dict[str, Decimal]:
        return dict(self._prices)

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Pin a quote (manual override / tests)."""
        price = Decimal(str(price))
        if price <= 0:
            raise ValueError("price must be positive")
        self._prices[symbol] = price

    async def refresh(self) -> Dict[str, Decimal]:
        if self.volatility > 0:
            updated = {}
            for symbol, price in self._prices.items():
                change = Decimal(str(self._rng.random() - 0.5)) * self.volatility
                updated[symbol] = price * (1 + change)
            self._prices = updated
            logger.debug(f"Simulated prices refreshed for {len(updated)} symbols")
        return self.get_prices()
