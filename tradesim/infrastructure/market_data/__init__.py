"""
Market Data

- PriceFeed: Abstract price source
- SimulatedPriceFeed: Random-walk simulator
"""

from tradesim.infrastructure.market_data.base import PriceFeed
from tradesim.infrastructure.market_data.simulated_feed import SimulatedPriceFeed, DEFAULT_PRICES

__all__ = [
    "PriceFeed",
    "SimulatedPriceFeed",
    "DEFAULT_PRICES",
]
