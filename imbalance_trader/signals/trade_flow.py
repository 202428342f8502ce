"""
Trade Flow Confirmation
=======================

A book imbalance says where size is resting. The tape says who is
actually trading. Every aggregated trade has an aggressor, the side that
crossed the spread:

    is_buyer_maker = False  ->  buyer lifted the offer  (aggressive buy)
    is_buyer_maker = True   ->  seller hit the bid      (aggressive sell)

The analyzer sums trade value (price * quantity) for each aggressor
side over a trailing window measured back from the NEWEST trade, then
compares them:

    buy_pressure_ratio  = buy_volume  / sell_volume
    sell_pressure_ratio = sell_volume / buy_volume

A one-sided tape gives math.inf for the dominant side; an empty tape
gives 1.0 for both.

NOISE SUPPRESSION:
==================
Three trades can produce any ratio at all. Confirmation therefore also
requires at least `min_samples` trades with non-zero total volume in the
window, whatever the ratio says.
"""

from typing import Sequence

import numpy as np

from ..data.models import AggTrade, MarketSnapshot, TradeFlowMetrics, pressure_ratio
from ..infra.config import StrategyConfig


class TradeFlowAnalyzer:
    """Aggressor-volume analysis over a trailing window."""

    def __init__(
        self,
        confirmation_threshold: float = 1.5,
        window_ms: int = 5000,
        min_samples: int = 5,
    ):
        self.confirmation_threshold = confirmation_threshold
        self.window_ms = window_ms
        self.min_samples = min_samples

    @classmethod
    def from_config(cls, config: StrategyConfig) -> 'TradeFlowAnalyzer':
        return cls(
            confirmation_threshold=config.trade_flow_threshold,
            window_ms=config.trade_flow_window_ms,
            min_samples=config.min_trade_flow_samples,
        )

    def calculate_metrics(self, trades: Sequence[AggTrade]) -> TradeFlowMetrics:
        """
        Aggregate a most-recent-first trade list.

        The window runs from the first trade's timestamp back `window_ms`;
        scanning stops at the first trade older than that.
        """
        if not trades:
            return TradeFlowMetrics.empty(self.window_ms)

        timestamps = np.fromiter((t.timestamp for t in trades), dtype=np.int64, count=len(trades))
        cutoff = timestamps[0] - self.window_ms
        outside = np.flatnonzero(timestamps < cutoff)
        end = int(outside[0]) if outside.size else len(trades)
        window = trades[:end]

        values = np.array([t.trade_value for t in window], dtype=np.float64)
        prices = np.array([t.price for t in window], dtype=np.float64)
        is_buy = np.array([t.is_aggressive_buy for t in window], dtype=bool)

        buy_volume = float(values[is_buy].sum())
        sell_volume = float(values[~is_buy].sum())

        return TradeFlowMetrics(
            aggressive_buy_volume=buy_volume,
            aggressive_sell_volume=sell_volume,
            total_volume=buy_volume + sell_volume,
            buy_pressure_ratio=pressure_ratio(buy_volume, sell_volume),
            sell_pressure_ratio=pressure_ratio(sell_volume, buy_volume),
            sample_count=len(window),
            window_ms=self.window_ms,
            price_high=float(prices.max()),
            price_low=float(prices.min()),
        )

    def has_sufficient_samples(self, metrics: TradeFlowMetrics) -> bool:
        return metrics.sample_count >= self.min_samples and metrics.total_volume > 0

    def confirms_long(self, metrics: TradeFlowMetrics) -> bool:
        return (
            self.has_sufficient_samples(metrics)
            and metrics.has_strong_buy_flow(self.confirmation_threshold)
        )

    def confirms_short(self, metrics: TradeFlowMetrics) -> bool:
        return (
            self.has_sufficient_samples(metrics)
            and metrics.has_strong_sell_flow(self.confirmation_threshold)
        )

    def confirms_signal(self, snapshot: MarketSnapshot, is_long: bool) -> bool:
        if is_long:
            return self.confirms_long(snapshot.trade_flow)
        return self.confirms_short(snapshot.trade_flow)
