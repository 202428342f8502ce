"""
Order Executors
===============

The engine talks to the outside world through one interface:

    execute(signal, quantity, order_type, limit_price) -> ExecutionResult
    cancel_order(order_id) -> bool
    get_order_status(order_id) -> ExecutionResult | None

execute() is the only call on the decision path and the only one with
real latency. Callers that need a time bound wrap it themselves
(asyncio.wait_for). cancel_order() and get_order_status() exist for
operational tooling; the engine never calls them.

PAPER TRADING:
==============
PaperOrderExecutor fills every order at once:

    MARKET       entry price moved against the trader by slippage_pct
    LIMIT_*      the limit price

and charges fee_pct of notional. Nothing rests, so a paper order can
never be cancelled after execute() returns. Only the most recent
max_orders orders are kept for status lookups.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional

from ..infra.clock import Clock, SystemClock
from ..infra.logging import get_logger, LogCategory
from ..signals.signal import TradeSignal, signal_side
from .policy import OrderType
from .results import ExecutionResult, OrderRejected, OrderSuccess


logger = get_logger()


class OrderExecutor(ABC):
    """Order sink for one symbol."""

    @abstractmethod
    async def execute(
        self,
        signal: TradeSignal,
        quantity: float,
        order_type: OrderType,
        limit_price: Optional[float] = None,
    ) -> ExecutionResult:
        """Place an entry order for an actionable signal."""

    @abstractmethod
    async def cancel_order(self, order_id: str) -> bool:
        """Cancel a resting order. False if it is unknown or already done."""

    @abstractmethod
    async def get_order_status(self, order_id: str) -> Optional[ExecutionResult]:
        """Latest known state of an order, or None if it is unknown."""


@dataclass(frozen=True)
class PaperOrder:
    order_id: str
    symbol: str
    side: str
    order_type: OrderType
    quantity: float
    limit_price: Optional[float]
    created_at_ms: int
    result: ExecutionResult


class PaperOrderExecutor(OrderExecutor):
    """
    In-memory executor for simulation and dry runs.

    Args:
        symbol: Instrument the orders are for (used in logs only)
        slippage_pct: Adverse price move applied to MARKET fills
        fee_pct: Fee as a fraction of fill notional
        latency_s: Optional simulated round trip, awaited in execute()
        max_orders: Orders kept for get_order_status; the oldest is dropped first
    """

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        slippage_pct: float = 0.0005,
        fee_pct: float = 0.001,
        latency_s: float = 0.0,
        clock: Optional[Clock] = None,
        max_orders: int = 10_000,
    ):
        self._symbol = symbol
        self._slippage_pct = slippage_pct
        self._fee_pct = fee_pct
        self._latency_s = latency_s
        self._clock = clock or SystemClock()
        self._max_orders = max_orders
        self._orders: "OrderedDict[str, PaperOrder]" = OrderedDict()

    @property
    def orders(self) -> Dict[str, PaperOrder]:
        return dict(self._orders)

    def _fill_price(self, signal: TradeSignal, order_type: OrderType, limit_price: Optional[float]) -> float:
        if order_type is OrderType.MARKET or limit_price is None:
            direction = 1 if signal.is_long() else -1
            return signal.entry_price * (1 + direction * self._slippage_pct)
        return limit_price

    async def execute(
        self,
        signal: TradeSignal,
        quantity: float,
        order_type: OrderType,
        limit_price: Optional[float] = None,
    ) -> ExecutionResult:
        if not signal.is_actionable():
            return OrderRejected("Signal is not actionable")
        if quantity <= 0:
            return OrderRejected(f"Invalid quantity: {quantity}")
        if order_type is not OrderType.MARKET and (limit_price is None or limit_price <= 0):
            return OrderRejected(f"{order_type.value} order requires a positive limit price")

        if self._latency_s > 0:
            await asyncio.sleep(self._latency_s)

        side = signal_side(signal)
        price = self._fill_price(signal, order_type, limit_price)
        fee = price * quantity * self._fee_pct
        order_id = f"PAPER-{uuid.uuid4().hex[:12]}"
        result = OrderSuccess(
            order_id=order_id,
            filled_quantity=quantity,
            avg_fill_price=price,
            fee=fee,
        )

        self._orders[order_id] = PaperOrder(
            order_id=order_id,
            symbol=self._symbol,
            side=side,
            order_type=order_type,
            quantity=quantity,
            limit_price=limit_price,
            created_at_ms=self._clock.now_ms(),
            result=result,
        )
        while len(self._orders) > self._max_orders:
            self._orders.popitem(last=False)

        logger.log_trade(
            self._symbol,
            side,
            quantity,
            price,
            order_type.value,
            order_id=order_id,
            fee=fee,
            paper=True,
        )
        return result

    async def cancel_order(self, order_id: str) -> bool:
        if order_id not in self._orders:
            logger.warning(f"Cancel for unknown paper order {order_id}", category=LogCategory.EXECUTION)
        else:
            logger.debug(f"Paper order {order_id} already filled", category=LogCategory.EXECUTION)
        return False

    async def get_order_status(self, order_id: str) -> Optional[ExecutionResult]:
        order = self._orders.get(order_id)
        return order.result if order else None
