"""
Order Book Simulator
====================

Generates a synthetic but internally consistent market for one symbol:
a depth snapshot and a stream of aggregated trades per step. It drives
the `simulation` CLI mode and gives tests a reproducible market.

DYNAMICS:
=========

1. MID PRICE:
   Gaussian random walk, `volatility` is the per-step standard deviation
   as a fraction of price.

2. PRESSURE REGIME:
   A mean-reverting (Ornstein-Uhlenbeck) value in [-1, 1]. Positive
   pressure thickens the bid side and makes aggressive buys more likely;
   negative pressure does the opposite. This is what lets the engine see
   imbalance readings outside its thresholds now and then.

3. BOOK SHAPE:
   Level sizes grow away from the touch (typical resting-liquidity
   profile) with multiplicative noise.

       size_i = base_size * (1 + 0.3 i) * U(0.8, 1.2) * (1 +/- pressure)

4. TRADES:
   A Poisson number of trades per step at the touch. The aggressor is a
   buy with probability (1 + pressure) / 2.

Everything comes from one numpy Generator, so a seed reproduces a run.
"""

from collections import deque
from decimal import Decimal
from typing import Deque, List, Optional, Tuple

import numpy as np

from ..infra.logging import get_logger, LogCategory
from .models import AggTrade, OrderBookData, OrderBookLevel


logger = get_logger()


class OrderBookSimulator:
    """
    Synthetic depth and trade generator.

    Args:
        symbol: Symbol stamped on generated data
        mid_price: Starting mid price
        tick_size: Price grid
        num_levels: Levels per side
        base_size: Base quantity at the touch
        spread_ticks: Quoted spread in ticks
        volatility: Per-step mid move, fraction of price
        trades_per_step: Mean of the Poisson trade count
        step_ms: Simulated time per step
        seed: RNG seed
    """

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        mid_price: float = 60_000.0,
        tick_size: float = 0.01,
        num_levels: int = 20,
        base_size: float = 0.5,
        spread_ticks: int = 1,
        volatility: float = 0.0002,
        trades_per_step: float = 4.0,
        step_ms: int = 250,
        start_time_ms: int = 1_700_000_000_000,
        seed: int = 42,
    ):
        self._symbol = symbol
        self._mid = mid_price
        self._tick_size = tick_size
        self._decimals = max(0, -Decimal(str(tick_size)).as_tuple().exponent)
        self._num_levels = num_levels
        self._base_size = base_size
        self._spread_ticks = max(1, spread_ticks)
        self._volatility = volatility
        self._trades_per_step = trades_per_step
        self._step_ms = step_ms
        self._rng = np.random.default_rng(seed)

        self._time_ms = start_time_ms
        self._pressure = 0.0
        self._update_id = 0
        self._trade_id = 0
        self._trades: Deque[AggTrade] = deque(maxlen=1000)

    @property
    def time_ms(self) -> int:
        return self._time_ms

    @property
    def pressure(self) -> float:
        return self._pressure

    def set_pressure(self, pressure: float) -> None:
        """Force the regime, e.g. to stage a one-sided market in a test."""
        self._pressure = float(np.clip(pressure, -1.0, 1.0))

    def _fmt(self, value: float) -> str:
        return f"{value:.{self._decimals}f}"

    def _snap(self, price: float) -> float:
        return round(price / self._tick_size) * self._tick_size

    def _advance_regime(self) -> None:
        # OU step: pull toward 0, plus noise
        self._pressure += -0.1 * self._pressure + self._rng.normal(0.0, 0.15)
        self._pressure = float(np.clip(self._pressure, -1.0, 1.0))

    def _level_sizes(self, side_scale: float) -> np.ndarray:
        profile = 1.0 + 0.3 * np.arange(self._num_levels)
        noise = self._rng.uniform(0.8, 1.2, self._num_levels)
        return np.maximum(self._base_size * profile * noise * side_scale, self._base_size * 0.05)

    def _touch(self) -> Tuple[float, float]:
        half_spread = self._spread_ticks * self._tick_size / 2
        best_bid = self._snap(self._mid - half_spread)
        return best_bid, best_bid + self._spread_ticks * self._tick_size

    def generate_book(self) -> OrderBookData:
        best_bid, best_ask = self._touch()

        bid_sizes = self._level_sizes(1.0 + self._pressure)
        ask_sizes = self._level_sizes(1.0 - self._pressure)
        offsets = np.arange(self._num_levels) * self._tick_size

        bids = tuple(
            OrderBookLevel(self._fmt(best_bid - off), f"{qty:.5f}")
            for off, qty in zip(offsets, bid_sizes)
        )
        asks = tuple(
            OrderBookLevel(self._fmt(best_ask + off), f"{qty:.5f}")
            for off, qty in zip(offsets, ask_sizes)
        )

        self._update_id += 1
        return OrderBookData(
            symbol=self._symbol,
            bids=bids,
            asks=asks,
            last_update_id=self._update_id,
            timestamp=self._time_ms,
        )

    def generate_trades(self, count: Optional[int] = None) -> List[AggTrade]:
        """New trades for this step, oldest first."""
        if count is None:
            count = int(self._rng.poisson(self._trades_per_step))
        if count <= 0:
            return []

        buy_probability = (1.0 + self._pressure) / 2.0
        is_buy = self._rng.random(count) < buy_probability
        quantities = self._rng.exponential(self._base_size * 0.1, count) + 1e-5
        offsets = np.sort(self._rng.integers(0, max(1, self._step_ms), count))

        best_bid, best_ask = self._touch()
        trades = []
        for buy, qty, offset in zip(is_buy, quantities, offsets):
            self._trade_id += 1
            price = best_ask if buy else best_bid
            trades.append(AggTrade(
                aggregate_trade_id=self._trade_id,
                price=price,
                quantity=round(float(qty), 5),
                timestamp=self._time_ms - self._step_ms + int(offset),
                is_buyer_maker=not bool(buy),
                first_trade_id=self._trade_id,
                last_trade_id=self._trade_id,
            ))
        return trades

    def step(self) -> Tuple[OrderBookData, Tuple[AggTrade, ...]]:
        """
        Advance one step.

        Returns the new book and the recent-trade buffer, newest first.
        """
        self._time_ms += self._step_ms
        self._advance_regime()
        self._mid *= 1.0 + self._rng.normal(0.0, self._volatility)

        for trade in self.generate_trades():
            self._trades.appendleft(trade)
        book = self.generate_book()

        logger.debug(
            f"Simulated step: mid={self._mid:.2f} pressure={self._pressure:+.2f}",
            category=LogCategory.MARKET_DATA,
            symbol=self._symbol,
        )
        return book, tuple(self._trades)
