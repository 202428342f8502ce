"""
Execution Policy
================

Decides HOW an entry is sent once the engine has decided THAT it is sent.

ORDER TYPES:
============

    MARKET       fill guaranteed, pays the spread and taker fee
    LIMIT_MAKER  post-only limit resting just inside the touch, maker fee
    LIMIT_TAKER  limit at the opposite touch, crosses immediately

DECISION:
=========

1. momentum > momentum_threshold          -> MARKET
2. prefer_maker and spread <= maker_spread -> LIMIT_MAKER
3. otherwise                               -> LIMIT_TAKER

Momentum is the share of window volume that was aggressive:
(aggressive_buy_volume + aggressive_sell_volume) / total_volume, and
1.0 for an empty window. Every aggregated trade has an aggressor, so the
reading sits at 1.0 on exchange data; only a threshold below 1.0 makes
MARKET reachable.

PRICES:
=======

                 LONG                SHORT
    LIMIT_MAKER  best_bid * 0.9999   best_ask * 1.0001
    LIMIT_TAKER  best_ask            best_bid
    MARKET       no price            no price
"""

from enum import Enum
from typing import Optional

from ..data.models import MarketSnapshot, TradeFlowMetrics
from ..infra.config import StrategyConfig
from ..signals.signal import LongSignal, TradeSignal


MAKER_OFFSET = 0.0001


class OrderType(Enum):
    MARKET = "MARKET"
    LIMIT_MAKER = "LIMIT_MAKER"
    LIMIT_TAKER = "LIMIT_TAKER"


class ExecutionPolicy:

    def __init__(
        self,
        prefer_maker: bool = True,
        maker_spread_threshold: float = 0.0005,
        momentum_threshold: float = 1.2,
    ):
        self.prefer_maker = prefer_maker
        self.maker_spread_threshold = maker_spread_threshold
        self.momentum_threshold = momentum_threshold

    @classmethod
    def from_config(cls, config: StrategyConfig) -> 'ExecutionPolicy':
        return cls(
            prefer_maker=config.prefer_maker,
            maker_spread_threshold=config.maker_spread_threshold,
            momentum_threshold=config.momentum_threshold,
        )

    @staticmethod
    def calculate_momentum(metrics: TradeFlowMetrics) -> float:
        if metrics.total_volume <= 0:
            return 1.0
        aggressive = metrics.aggressive_buy_volume + metrics.aggressive_sell_volume
        return aggressive / metrics.total_volume

    def determine_order_type(self, snapshot: MarketSnapshot, signal: TradeSignal) -> OrderType:
        momentum = self.calculate_momentum(snapshot.trade_flow)
        if momentum > self.momentum_threshold:
            return OrderType.MARKET

        if self.prefer_maker and snapshot.spread_pct <= self.maker_spread_threshold:
            return OrderType.LIMIT_MAKER

        return OrderType.LIMIT_TAKER

    def calculate_limit_price(
        self,
        order_type: OrderType,
        signal: TradeSignal,
        best_bid: float,
        best_ask: float,
    ) -> Optional[float]:
        """Limit price for the order, or None for MARKET."""
        if order_type is OrderType.MARKET:
            return None

        is_long = isinstance(signal, LongSignal)
        if order_type is OrderType.LIMIT_MAKER:
            if is_long:
                return best_bid * (1 - MAKER_OFFSET)
            return best_ask * (1 + MAKER_OFFSET)

        return best_ask if is_long else best_bid
