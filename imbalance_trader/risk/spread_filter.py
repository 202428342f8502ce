"""
Spread and liquidity gates.

Two independent checks, both must pass:
1. Quoted spread as a fraction of mid at or under max_spread_pct
2. Same-side depth (asks for a buy, bids for a sell) covering the order
   plus min_depth_buffer_pct

A rejection reason aborts the cycle. There is no reduced-size fallback.
"""

from typing import Optional

from ..data import orderbook
from ..data.models import MarketSnapshot
from ..infra.config import StrategyConfig


class SpreadFilter:

    def __init__(
        self,
        max_spread_pct: float = 0.001,
        min_depth_buffer_pct: float = 0.02,
        top_n_levels: int = 20,
    ):
        self.max_spread_pct = max_spread_pct
        self.min_depth_buffer_pct = min_depth_buffer_pct
        self.top_n_levels = top_n_levels

    @classmethod
    def from_config(cls, config: StrategyConfig) -> 'SpreadFilter':
        return cls(
            max_spread_pct=config.max_spread_pct,
            min_depth_buffer_pct=config.min_depth_buffer_pct,
            top_n_levels=config.top_n_levels,
        )

    def is_spread_acceptable(self, snapshot: MarketSnapshot) -> bool:
        return snapshot.spread_pct <= self.max_spread_pct

    def available_depth(self, snapshot: MarketSnapshot, is_buy: bool) -> float:
        if is_buy:
            return snapshot.ask_depth(self.top_n_levels)
        return snapshot.bid_depth(self.top_n_levels)

    def has_sufficient_depth(self, snapshot: MarketSnapshot, order_size: float, is_buy: bool) -> bool:
        return orderbook.has_sufficient_depth(
            snapshot.order_book,
            order_size,
            is_buy,
            self.min_depth_buffer_pct,
            self.top_n_levels,
        )

    def passes(self, snapshot: MarketSnapshot, order_size: float, is_buy: bool) -> bool:
        return self.get_rejection_reason(snapshot, order_size, is_buy) is None

    def get_rejection_reason(self, snapshot: MarketSnapshot, order_size: float, is_buy: bool) -> Optional[str]:
        if not self.is_spread_acceptable(snapshot):
            return (
                f"Spread too wide: {snapshot.spread_pct * 100:.4f}% > "
                f"{self.max_spread_pct * 100:.4f}%"
            )

        if not self.has_sufficient_depth(snapshot, order_size, is_buy):
            required = order_size * (1 + self.min_depth_buffer_pct)
            available = self.available_depth(snapshot, is_buy)
            side = "ask" if is_buy else "bid"
            return f"Insufficient {side} depth: required {required:.2f}, available {available:.2f}"

        return None
