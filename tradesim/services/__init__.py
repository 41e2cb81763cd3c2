"""
Application Services

- CloseEvaluator: per-position close rules
- TradingEngine: trade lifecycle orchestration
- PositionSweeper: periodic auto-close loop
"""

from tradesim.services.close_evaluator import CloseDecision, CloseEvaluator
from tradesim.services.trading_engine import TradingEngine, build_trading_engine
from tradesim.services.position_sweeper import PositionSweeper

__all__ = [
    "CloseDecision",
    "CloseEvaluator",
    "TradingEngine",
    "build_trading_engine",
    "PositionSweeper",
]
