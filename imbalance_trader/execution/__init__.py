"""
Execution module for the Imbalance Trader.

- Order type and price selection
- Executor interface with paper and Binance implementations
- ExecutionResult variants
"""

from .results import (
    ExecutionResult,
    OrderSuccess,
    OrderPartialFill,
    OrderRejected,
    OrderError,
    is_filled,
)

from .policy import (
    OrderType,
    ExecutionPolicy,
)

from .executor import (
    OrderExecutor,
    PaperOrderExecutor,
    PaperOrder,
)

from .binance_executor import (
    BinanceOrderExecutor,
    BinanceSigner,
)

__all__ = [
    "ExecutionResult",
    "OrderSuccess",
    "OrderPartialFill",
    "OrderRejected",
    "OrderError",
    "is_filled",
    "OrderType",
    "ExecutionPolicy",
    "OrderExecutor",
    "PaperOrderExecutor",
    "PaperOrder",
    "BinanceOrderExecutor",
    "BinanceSigner",
]
