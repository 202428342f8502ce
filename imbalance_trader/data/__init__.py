"""
Data module for the Imbalance Trader.

Provides:
- Immutable market data model
- Order book math
- Binance websocket feeds and REST adapter
- Synthetic market simulator
"""

from .models import (
    OrderBookLevel,
    OrderBookData,
    AggTrade,
    TradeFlowMetrics,
    MarketSnapshot,
    pressure_ratio,
)

from .orderbook import (
    calculate_imbalance,
    depth_usd,
    bid_depth_usd,
    ask_depth_usd,
    vwap,
    average_fill_price,
    has_sufficient_depth,
)

from .market_data_feed import (
    LatestValue,
    MarketDataFeed,
    DepthFeed,
    AggTradeFeed,
    BinanceApiAdapter,
)

from .orderbook_simulator import OrderBookSimulator

__all__ = [
    # Model
    "OrderBookLevel",
    "OrderBookData",
    "AggTrade",
    "TradeFlowMetrics",
    "MarketSnapshot",
    "pressure_ratio",
    # Math
    "calculate_imbalance",
    "depth_usd",
    "bid_depth_usd",
    "ask_depth_usd",
    "vwap",
    "average_fill_price",
    "has_sufficient_depth",
    # Feeds
    "LatestValue",
    "MarketDataFeed",
    "DepthFeed",
    "AggTradeFeed",
    "BinanceApiAdapter",
    # Simulation
    "OrderBookSimulator",
]
