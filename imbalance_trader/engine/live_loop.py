"""
Trading Session
===============

Glue between the feeds and the engine.

    DepthFeed ──> LatestValue[OrderBookData] ──┐
                                               ├──> snapshot ──> engine (with timeout)
    AggTradeFeed ──> LatestValue[trades] ──────┘

A cycle starts whenever a NEW order book is published. The newest trade
list is read at that moment; nothing waits on the trade feed. Books
published while a cycle is running are skipped, only the latest one is
evaluated next.

Every engine call is bounded by `execution_timeout_s`. On timeout the
cycle is cancelled and its result discarded.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..data.market_data_feed import AggTradeFeed, DepthFeed, LatestValue
from ..data.models import AggTrade, OrderBookData
from ..execution.results import ExecutionResult, OrderSuccess, OrderPartialFill
from ..infra.logging import get_logger, LogCategory
from .snapshot_builder import MarketSnapshotBuilder
from .trading_engine import TradingEngine


logger = get_logger()


@dataclass
class SessionStats:
    cycles: int = 0
    orders: int = 0
    fills: int = 0
    failures: int = 0
    timeouts: int = 0


class TradingSession:
    """
    Drives one engine from a pair of latest-value channels.

    Args:
        engine: Engine for the symbol
        symbol: Symbol stamped on snapshots
        books: Channel carrying the latest order book
        trades: Channel carrying the newest-first recent trade list
        snapshot_builder: Builds snapshots from book + trades
        execution_timeout_s: Upper bound on one engine call
    """

    def __init__(
        self,
        engine: TradingEngine,
        symbol: str,
        books: LatestValue[OrderBookData],
        trades: LatestValue[Tuple[AggTrade, ...]],
        snapshot_builder: MarketSnapshotBuilder,
        execution_timeout_s: float = 5.0,
    ):
        self._engine = engine
        self._symbol = symbol
        self._books = books
        self._trades = trades
        self._builder = snapshot_builder
        self._timeout_s = execution_timeout_s
        self.stats = SessionStats()

    async def process(
        self,
        book: OrderBookData,
        trades: Sequence[AggTrade],
        timestamp_ms: Optional[int] = None,
    ) -> Optional[ExecutionResult]:
        """One evaluation cycle with the execution timeout applied."""
        snapshot = self._builder.build(self._symbol, book, trades, timestamp_ms)
        self.stats.cycles += 1

        try:
            result = await asyncio.wait_for(self._engine.on_market_update(snapshot), self._timeout_s)
        except asyncio.TimeoutError:
            self.stats.timeouts += 1
            logger.warning(
                f"Engine cycle exceeded {self._timeout_s:.1f}s, result discarded",
                category=LogCategory.EXECUTION,
                symbol=self._symbol,
            )
            return None

        if result is not None:
            self.stats.orders += 1
            if isinstance(result, (OrderSuccess, OrderPartialFill)):
                self.stats.fills += 1
            else:
                self.stats.failures += 1
        return result

    async def run(self, max_cycles: Optional[int] = None) -> SessionStats:
        """Evaluate every new book until cancelled or `max_cycles` is reached."""
        version = self._books.version
        while max_cycles is None or self.stats.cycles < max_cycles:
            version, book = await self._books.wait_for_update(version)
            if book is None:
                continue
            await self.process(book, self._trades.get() or ())
        return self.stats


async def run_live_session(
    engine: TradingEngine,
    depth_feed: DepthFeed,
    trade_feed: AggTradeFeed,
    snapshot_builder: MarketSnapshotBuilder,
    execution_timeout_s: float = 5.0,
    max_cycles: Optional[int] = None,
) -> SessionStats:
    """Start both feeds, run a session on their channels, stop the feeds on exit."""
    session = TradingSession(
        engine,
        depth_feed.symbol,
        depth_feed.channel,
        trade_feed.channel,
        snapshot_builder,
        execution_timeout_s,
    )
    await depth_feed.start()
    await trade_feed.start()
    try:
        return await session.run(max_cycles)
    finally:
        await depth_feed.stop()
        await trade_feed.stop()
        logger.info(
            f"Session finished: {session.stats}",
            category=LogCategory.SYSTEM,
            symbol=depth_feed.symbol,
        )
