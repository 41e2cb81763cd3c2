"""
Domain Services

Stateful building blocks of the trade lifecycle: ledger, position book and
trade history.
"""

from tradesim.domain.services.portfolio_ledger import (
    PortfolioLedger,
    Settlement,
    apply_min_pnl_magnitude,
)
from tradesim.domain.services.position_book import PositionBook
from tradesim.domain.services.trade_history import TradeHistory, summarize

__all__ = [
    "PortfolioLedger",
    "Settlement",
    "apply_min_pnl_magnitude",
    "PositionBook",
    "TradeHistory",
    "summarize",
]
