"""
Infrastructure module for the Imbalance Trader.

Provides:
- Configuration dataclasses and presets
- Categorised structured logging and latency tracking
- Clock abstraction
"""

from .config import (
    SystemConfig,
    StrategyConfig,
    MarketDataConfig,
    ExecutionConfig,
    StrategyPreset,
    ConfigurationError,
    get_default_config,
    get_conservative_config,
    get_aggressive_config,
    config_from_env,
)

from .logging import (
    TradingLogger,
    LogCategory,
    LatencyMeasurement,
    LatencyTracker,
    StructuredFormatter,
    configure_logging,
    get_logger,
    get_latency_stats,
    logger,
)

from .clock import (
    Clock,
    SystemClock,
    ManualClock,
)

__all__ = [
    # Config
    "SystemConfig",
    "StrategyConfig",
    "MarketDataConfig",
    "ExecutionConfig",
    "StrategyPreset",
    "ConfigurationError",
    "get_default_config",
    "get_conservative_config",
    "get_aggressive_config",
    "config_from_env",
    # Logging
    "TradingLogger",
    "LogCategory",
    "LatencyMeasurement",
    "LatencyTracker",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "get_latency_stats",
    "logger",
    # Time
    "Clock",
    "SystemClock",
    "ManualClock",
]
