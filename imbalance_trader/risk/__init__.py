"""
Risk management module for the Imbalance Trader.

- Risk manager gate and day-scoped loss tracking
- Spread and liquidity filter
- Position sizing
"""

from .daily_loss_guard import DailyLossGuard

from .risk_manager import (
    RiskManager,
    RiskStatus,
    RiskBlockReason,
)

from .spread_filter import SpreadFilter

from .position_sizer import PositionSizer

__all__ = [
    "DailyLossGuard",
    "RiskManager",
    "RiskStatus",
    "RiskBlockReason",
    "SpreadFilter",
    "PositionSizer",
]
