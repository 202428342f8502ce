"""
Market Data Model
=================

Immutable inputs to the decision pipeline.

    OrderBookData        one depth snapshot (top N levels per side)
    AggTrade             one aggregated trade from the exchange tape
    TradeFlowMetrics     aggressor volumes over a trailing window
    MarketSnapshot       everything the engine sees in one cycle

A new MarketSnapshot is assembled for every evaluation cycle from the
latest book and trade list. Nothing here is mutated after construction.

PRICES AS STRINGS:
==================
Exchanges send prices and quantities as decimal strings ("64012.35000000").
OrderBookLevel keeps the original text and parses to float on demand, so
the exact exchange representation is never lost through float rounding.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from . import orderbook


def _parse_float(text: str) -> float:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


@dataclass(frozen=True)
class OrderBookLevel:
    """A single price level: exact decimal strings."""
    price: str
    quantity: str

    @property
    def price_float(self) -> float:
        return _parse_float(self.price)

    @property
    def quantity_float(self) -> float:
        return _parse_float(self.quantity)

    @property
    def notional(self) -> float:
        return self.price_float * self.quantity_float


@dataclass(frozen=True)
class OrderBookData:
    """
    Depth snapshot for one symbol.

    Bids are sorted by descending price, asks by ascending price.
    A book whose best bid is not strictly below its best ask is crossed
    and treated as invalid input.
    """
    symbol: str
    bids: Tuple[OrderBookLevel, ...]
    asks: Tuple[OrderBookLevel, ...]
    last_update_id: int = 0
    timestamp: int = 0

    @classmethod
    def from_raw(
        cls,
        symbol: str,
        bids: Iterable[Sequence[Any]],
        asks: Iterable[Sequence[Any]],
        last_update_id: int = 0,
        timestamp: int = 0,
    ) -> 'OrderBookData':
        """
        Build from exchange-style [[price, qty], ...] lists.

        Levels are sorted into book order and zero-quantity levels dropped.
        """
        def to_levels(raw: Iterable[Sequence[Any]], descending: bool) -> Tuple[OrderBookLevel, ...]:
            levels = [OrderBookLevel(str(entry[0]), str(entry[1])) for entry in raw]
            levels = [lvl for lvl in levels if lvl.quantity_float > 0]
            levels.sort(key=lambda lvl: lvl.price_float, reverse=descending)
            return tuple(levels)

        return cls(
            symbol=symbol,
            bids=to_levels(bids, descending=True),
            asks=to_levels(asks, descending=False),
            last_update_id=last_update_id,
            timestamp=timestamp,
        )

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price_float if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price_float if self.asks else None

    @property
    def mid_price(self) -> Optional[float]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid + self.best_ask) / 2

    def is_crossed(self) -> bool:
        if self.best_bid is None or self.best_ask is None:
            return False
        return self.best_bid >= self.best_ask

    def is_valid(self) -> bool:
        """Both sides present, strictly sorted, positive prices, not crossed."""
        if not self.bids or not self.asks:
            return False
        bid_prices = [lvl.price_float for lvl in self.bids]
        ask_prices = [lvl.price_float for lvl in self.asks]
        if bid_prices[-1] <= 0 or ask_prices[0] <= 0:
            return False
        if any(a <= b for a, b in zip(bid_prices, bid_prices[1:])):
            return False
        if any(b <= a for a, b in zip(ask_prices, ask_prices[1:])):
            return False
        return not self.is_crossed()


@dataclass(frozen=True)
class AggTrade:
    """
    Aggregated trade.

    is_buyer_maker is true when the resting order was the buyer, which
    means the seller crossed the spread.
    """
    aggregate_trade_id: int
    price: float
    quantity: float
    timestamp: int
    is_buyer_maker: bool
    first_trade_id: int = 0
    last_trade_id: int = 0

    @classmethod
    def from_binance(cls, payload: Dict[str, Any]) -> 'AggTrade':
        """Parse the short-key payload used by both REST and websocket."""
        return cls(
            aggregate_trade_id=int(payload["a"]),
            price=float(payload["p"]),
            quantity=float(payload["q"]),
            timestamp=int(payload["T"]),
            is_buyer_maker=bool(payload["m"]),
            first_trade_id=int(payload.get("f", 0)),
            last_trade_id=int(payload.get("l", 0)),
        )

    @property
    def is_aggressive_buy(self) -> bool:
        return not self.is_buyer_maker

    @property
    def is_aggressive_sell(self) -> bool:
        return self.is_buyer_maker

    @property
    def trade_value(self) -> float:
        return self.price * self.quantity


def pressure_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, with inf for x/0 and 1.0 for 0/0."""
    if denominator > 0:
        return numerator / denominator
    if numerator > 0:
        return math.inf
    return 1.0


@dataclass(frozen=True)
class TradeFlowMetrics:
    """Aggressor volumes (in quote currency) over a trailing window."""
    aggressive_buy_volume: float
    aggressive_sell_volume: float
    total_volume: float
    buy_pressure_ratio: float
    sell_pressure_ratio: float
    sample_count: int
    window_ms: int
    price_high: float = 0.0
    price_low: float = 0.0

    @classmethod
    def empty(cls, window_ms: int = 5000) -> 'TradeFlowMetrics':
        return cls(
            aggressive_buy_volume=0.0,
            aggressive_sell_volume=0.0,
            total_volume=0.0,
            buy_pressure_ratio=1.0,
            sell_pressure_ratio=1.0,
            sample_count=0,
            window_ms=window_ms,
        )

    @property
    def price_range_pct(self) -> float:
        """High-low range of traded prices relative to the low."""
        if self.price_low <= 0:
            return 0.0
        return (self.price_high - self.price_low) / self.price_low

    def has_strong_buy_flow(self, threshold: float = 1.5) -> bool:
        return self.buy_pressure_ratio > threshold and self.aggressive_buy_volume > 0

    def has_strong_sell_flow(self, threshold: float = 1.5) -> bool:
        return self.sell_pressure_ratio > threshold and self.aggressive_sell_volume > 0


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything the engine evaluates in one cycle."""
    symbol: str
    order_book: OrderBookData
    trade_flow: TradeFlowMetrics
    best_bid: float
    best_ask: float
    mid_price: float
    spread: float
    spread_pct: float
    timestamp: int

    def is_stale(self, max_age_ms: int, now_ms: int) -> bool:
        return now_ms - self.timestamp > max_age_ms

    def bid_depth(self, top_n: int = 20) -> float:
        return orderbook.depth_usd(self.order_book.bids, top_n)

    def ask_depth(self, top_n: int = 20) -> float:
        return orderbook.depth_usd(self.order_book.asks, top_n)

    def vwap_bid(self, top_n: int = 20) -> float:
        return orderbook.vwap(self.order_book.bids, top_n, fallback=self.best_bid)

    def vwap_ask(self, top_n: int = 20) -> float:
        return orderbook.vwap(self.order_book.asks, top_n, fallback=self.best_ask)
