"""
Engine module for the Imbalance Trader.

- TradingEngine: the decision pipeline
- TradingEngineFactory: standard wiring from one config
- MarketSnapshotBuilder: per-cycle snapshot assembly
- TradingSession: feeds to engine, with an execution timeout
"""

from .trading_engine import TradingEngine

from .factory import TradingEngineFactory

from .snapshot_builder import MarketSnapshotBuilder

from .live_loop import (
    TradingSession,
    SessionStats,
    run_live_session,
)

__all__ = [
    "TradingEngine",
    "TradingEngineFactory",
    "MarketSnapshotBuilder",
    "TradingSession",
    "SessionStats",
    "run_live_session",
]
