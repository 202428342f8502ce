"""
Signal module for the Imbalance Trader.

- Order book imbalance (direction)
- Trade flow (aggressor confirmation)
- TradeSignal variants
"""

from .signal import (
    TradeSignal,
    NoSignal,
    LongSignal,
    ShortSignal,
    NO_SIGNAL,
    signal_side,
)

from .imbalance import ImbalanceCalculator

from .trade_flow import TradeFlowAnalyzer

__all__ = [
    "TradeSignal",
    "NoSignal",
    "LongSignal",
    "ShortSignal",
    "NO_SIGNAL",
    "signal_side",
    "ImbalanceCalculator",
    "TradeFlowAnalyzer",
]
