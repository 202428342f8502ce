"""
Imbalance Trader
================

A real-time decision engine for a single crypto spot instrument. From
order book depth and the aggregated trade tape it decides whether to
open a position, how large it may be, and how to send the order, while
staying inside hard risk and liquidity limits.

MODULES:
- data: market data model, order book math, Binance feeds, simulator
- signals: order book imbalance and trade flow confirmation
- risk: risk manager gate, daily loss guard, spread filter, sizing
- execution: order type policy, paper and Binance executors
- engine: the decision pipeline, wiring and live session
- infra: configuration, logging, clock
"""

__version__ = "1.0.0"

from .infra import (
    SystemConfig,
    StrategyConfig,
    ConfigurationError,
    get_default_config,
    get_conservative_config,
    get_aggressive_config,
    logger,
)

from .data import (
    OrderBookLevel,
    OrderBookData,
    AggTrade,
    TradeFlowMetrics,
    MarketSnapshot,
    OrderBookSimulator,
)

from .signals import (
    TradeSignal,
    NoSignal,
    LongSignal,
    ShortSignal,
    ImbalanceCalculator,
    TradeFlowAnalyzer,
)

from .risk import (
    RiskManager,
    RiskStatus,
    DailyLossGuard,
    SpreadFilter,
    PositionSizer,
)

from .execution import (
    ExecutionResult,
    OrderSuccess,
    OrderPartialFill,
    OrderRejected,
    OrderError,
    OrderType,
    ExecutionPolicy,
    OrderExecutor,
    PaperOrderExecutor,
    BinanceOrderExecutor,
)

from .engine import (
    TradingEngine,
    TradingEngineFactory,
    MarketSnapshotBuilder,
    TradingSession,
)

__all__ = [
    # Config
    "SystemConfig",
    "StrategyConfig",
    "ConfigurationError",
    "get_default_config",
    "get_conservative_config",
    "get_aggressive_config",
    # Logging
    "logger",
    # Data
    "OrderBookLevel",
    "OrderBookData",
    "AggTrade",
    "TradeFlowMetrics",
    "MarketSnapshot",
    "OrderBookSimulator",
    # Signals
    "TradeSignal",
    "NoSignal",
    "LongSignal",
    "ShortSignal",
    "ImbalanceCalculator",
    "TradeFlowAnalyzer",
    # Risk
    "RiskManager",
    "RiskStatus",
    "DailyLossGuard",
    "SpreadFilter",
    "PositionSizer",
    # Execution
    "ExecutionResult",
    "OrderSuccess",
    "OrderPartialFill",
    "OrderRejected",
    "OrderError",
    "OrderType",
    "ExecutionPolicy",
    "OrderExecutor",
    "PaperOrderExecutor",
    "BinanceOrderExecutor",
    # Engine
    "TradingEngine",
    "TradingEngineFactory",
    "MarketSnapshotBuilder",
    "TradingSession",
]
