"""
Signals Module

Close recommendations for open positions:
- PredictionOracle / LLMPredictionOracle: external predictive signal
- SignalGenerator: oracle call with deterministic rule-based fallback
"""

from tradesim.modules.signals.oracle import (
    PositionSnapshot,
    PredictionOracle,
    LLMPredictionOracle,
)
from tradesim.modules.signals.signal_generator import (
    CloseSignal,
    FallbackRule,
    SignalSource,
    SignalGenerator,
    rule_based_close_signal,
)

__all__ = [
    "PositionSnapshot",
    "PredictionOracle",
    "LLMPredictionOracle",
    "CloseSignal",
    "FallbackRule",
    "SignalSource",
    "SignalGenerator",
    "rule_based_close_signal",
]
