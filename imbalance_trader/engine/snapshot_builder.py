"""
Snapshot assembly.

A MarketSnapshot is built fresh for every evaluation cycle from the
latest order book and trade list. Missing sides give a best price of 0,
which the engine treats as invalid input.
"""

from typing import Optional, Sequence

from ..data.market_data_feed import BinanceApiAdapter
from ..data.models import AggTrade, MarketSnapshot, OrderBookData
from ..infra.clock import Clock, SystemClock
from ..signals.trade_flow import TradeFlowAnalyzer


class MarketSnapshotBuilder:

    def __init__(self, trade_flow_analyzer: Optional[TradeFlowAnalyzer] = None, clock: Optional[Clock] = None):
        self._analyzer = trade_flow_analyzer or TradeFlowAnalyzer()
        self._clock = clock or SystemClock()

    def build(
        self,
        symbol: str,
        order_book: OrderBookData,
        recent_trades: Sequence[AggTrade],
        timestamp_ms: Optional[int] = None,
    ) -> MarketSnapshot:
        best_bid = order_book.best_bid or 0.0
        best_ask = order_book.best_ask or 0.0
        mid = (best_bid + best_ask) / 2
        spread = best_ask - best_bid
        spread_pct = spread / mid if mid > 0 else 0.0

        return MarketSnapshot(
            symbol=symbol,
            order_book=order_book,
            trade_flow=self._analyzer.calculate_metrics(recent_trades),
            best_bid=best_bid,
            best_ask=best_ask,
            mid_price=mid,
            spread=spread,
            spread_pct=spread_pct,
            timestamp=timestamp_ms if timestamp_ms is not None else self._clock.now_ms(),
        )

    async def build_from_api(
        self,
        symbol: str,
        adapter: BinanceApiAdapter,
        depth_limit: int = 20,
        trade_limit: int = 500,
    ) -> Optional[MarketSnapshot]:
        """One REST round trip for depth and trades; None if the book is unavailable."""
        now_ms = self._clock.now_ms()
        book = await adapter.get_depth(symbol, depth_limit, timestamp_ms=now_ms)
        if book is None:
            return None
        trades = await adapter.get_agg_trades(symbol, trade_limit)
        return self.build(symbol, book, trades, timestamp_ms=now_ms)
