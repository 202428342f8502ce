"""
Market Data Feeds
=================

Live data reaches the engine through two Binance websocket streams and,
for one-off snapshots, the REST API:

┌──────────────────────────┬─────────────────────────────┬──────────────────────────┐
│ Source                   │ Payload                     │ Published as             │
├──────────────────────────┼─────────────────────────────┼──────────────────────────┤
│ <sym>@depth20@100ms (WS) │ top 20 bids/asks, full      │ OrderBookData            │
│ <sym>@aggTrade      (WS) │ one aggregated trade        │ tuple of AggTrade,       │
│                          │                             │ newest first (max 1000)  │
│ /api/v3/depth     (REST) │ top N bids/asks             │ OrderBookData            │
│ /api/v3/aggTrades (REST) │ last N trades, oldest first │ list of AggTrade,        │
│                          │                             │ newest first             │
└──────────────────────────┴─────────────────────────────┴──────────────────────────┘

LATEST VALUE, NOT A QUEUE:
==========================
Each websocket feed writes into a LatestValue slot. A new book replaces
the previous one; readers always see the freshest value and never work
through a backlog. A slow consumer simply skips intermediate books.

RECONNECTS:
===========
Each feed runs as its own asyncio task. On any connection failure it
logs, sleeps a fixed delay (3s by default) and reconnects, forever.
Cancelling the task (stop()) ends the loop immediately.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Deque, Dict, Generic, List, Optional, Tuple, TypeVar

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from ..infra.clock import Clock, SystemClock
from ..infra.config import MarketDataConfig
from ..infra.logging import get_logger, LogCategory
from .models import AggTrade, OrderBookData


logger = get_logger()

T = TypeVar("T")

MAX_AGG_TRADES_LIMIT = 1000


class LatestValue(Generic[T]):
    """
    Single-slot channel. One writer, any number of readers.

    Readers either poll get() or await wait_for_update(version) to be
    woken by the next publish.
    """

    def __init__(self, initial: Optional[T] = None):
        self._value = initial
        self._version = 0
        self._changed = asyncio.Event()

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> Optional[T]:
        return self._value

    def publish(self, value: T) -> None:
        self._value = value
        self._version += 1
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    async def wait_for_update(self, after_version: int) -> Tuple[int, Optional[T]]:
        """Wait until the version moves past `after_version`; returns (version, value)."""
        while self._version <= after_version:
            await self._changed.wait()
        return self._version, self._value


class MarketDataFeed(ABC):
    """
    Base class for a reconnecting websocket stream.

    Subclasses give the stream URL and turn each decoded message into a
    published value.
    """

    def __init__(self, config: MarketDataConfig, clock: Optional[Clock] = None):
        self._config = config
        self._clock = clock or SystemClock()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._connect_count = 0
        self._message_count = 0

    @property
    def symbol(self) -> str:
        return self._config.symbol.upper()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def connect_count(self) -> int:
        return self._connect_count

    @property
    @abstractmethod
    def stream_url(self) -> str:
        """Full websocket URL of the stream."""

    @abstractmethod
    def handle_message(self, payload: Dict[str, Any]) -> None:
        """Process one decoded message."""

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"{type(self).__name__}:{self.symbol}")
        logger.info(
            f"{type(self).__name__} started",
            category=LogCategory.MARKET_DATA,
            symbol=self.symbol,
            url=self.stream_url,
        )

    async def stop(self) -> None:
        self._running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"{type(self).__name__} stopped", category=LogCategory.MARKET_DATA, symbol=self.symbol)

    async def _run(self) -> None:
        while self._running:
            try:
                await self._consume()
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as exc:
                logger.warning(
                    f"Stream closed: {exc}",
                    category=LogCategory.MARKET_DATA,
                    symbol=self.symbol,
                )
            except Exception as exc:
                logger.error(
                    f"Stream error: {exc!r}",
                    category=LogCategory.MARKET_DATA,
                    symbol=self.symbol,
                )

            if not self._running:
                break
            logger.info(
                f"Reconnecting in {self._config.reconnect_delay_s:.1f}s",
                category=LogCategory.MARKET_DATA,
                symbol=self.symbol,
            )
            await asyncio.sleep(self._config.reconnect_delay_s)

    async def _consume(self) -> None:
        async with websockets.connect(self.stream_url, ping_interval=20) as ws:
            self._connect_count += 1
            logger.info("Stream connected", category=LogCategory.MARKET_DATA, symbol=self.symbol)
            async for raw in ws:
                self.process_raw(raw)

    def process_raw(self, raw: Any) -> None:
        """Decode and dispatch one frame; malformed frames are logged and dropped."""
        try:
            payload = json.loads(raw)
            self.handle_message(payload)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(
                f"Dropped malformed message: {exc!r}",
                category=LogCategory.MARKET_DATA,
                symbol=self.symbol,
            )
            return
        self._message_count += 1


class DepthFeed(MarketDataFeed):
    """Partial book depth stream publishing OrderBookData."""

    def __init__(
        self,
        config: MarketDataConfig,
        clock: Optional[Clock] = None,
        channel: Optional[LatestValue[OrderBookData]] = None,
    ):
        super().__init__(config, clock)
        self.channel: LatestValue[OrderBookData] = channel or LatestValue()

    @property
    def stream_url(self) -> str:
        stream = f"{self.symbol.lower()}@depth{self._config.depth_levels}"
        if self._config.depth_update_speed_ms == 100:
            stream += "@100ms"
        return f"{self._config.ws_base_url}/{stream}"

    def handle_message(self, payload: Dict[str, Any]) -> None:
        book = OrderBookData.from_raw(
            self.symbol,
            payload["bids"],
            payload["asks"],
            last_update_id=int(payload.get("lastUpdateId", 0)),
            timestamp=self._clock.now_ms(),
        )
        self.channel.publish(book)


class AggTradeFeed(MarketDataFeed):
    """Aggregated trade stream publishing a newest-first tuple of recent trades."""

    def __init__(
        self,
        config: MarketDataConfig,
        clock: Optional[Clock] = None,
        channel: Optional[LatestValue[Tuple[AggTrade, ...]]] = None,
    ):
        super().__init__(config, clock)
        self.channel: LatestValue[Tuple[AggTrade, ...]] = channel or LatestValue(())
        self._buffer: Deque[AggTrade] = deque(maxlen=config.trade_buffer_size)

    @property
    def stream_url(self) -> str:
        return f"{self._config.ws_base_url}/{self.symbol.lower()}@aggTrade"

    def handle_message(self, payload: Dict[str, Any]) -> None:
        if payload.get("e", "aggTrade") != "aggTrade":
            return
        self._buffer.appendleft(AggTrade.from_binance(payload))
        self.channel.publish(tuple(self._buffer))


class BinanceApiAdapter:
    """
    Public REST endpoints used for snapshots and warm-up.

    Errors are logged and turned into None or an empty list.
    """

    def __init__(self, config: MarketDataConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.rest_base_url,
            timeout=config.rest_timeout_s,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                f"GET {path} failed: {exc}",
                category=LogCategory.MARKET_DATA,
                symbol=params.get("symbol"),
            )
            return None

    async def get_depth(self, symbol: str, limit: int = 20, timestamp_ms: int = 0) -> Optional[OrderBookData]:
        data = await self._get_json("/api/v3/depth", {"symbol": symbol.upper(), "limit": limit})
        if not isinstance(data, dict):
            return None
        try:
            return OrderBookData.from_raw(
                symbol.upper(),
                data["bids"],
                data["asks"],
                last_update_id=int(data.get("lastUpdateId", 0)),
                timestamp=timestamp_ms,
            )
        except (KeyError, TypeError, IndexError) as exc:
            logger.error(f"Unexpected depth payload: {exc!r}", category=LogCategory.MARKET_DATA, symbol=symbol)
            return None

    async def get_agg_trades(self, symbol: str, limit: int = 500) -> List[AggTrade]:
        """Most recent trades, newest first."""
        limit = max(1, min(limit, MAX_AGG_TRADES_LIMIT))
        data = await self._get_json("/api/v3/aggTrades", {"symbol": symbol.upper(), "limit": limit})
        if not isinstance(data, list):
            return []
        try:
            trades = [AggTrade.from_binance(item) for item in data]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"Unexpected aggTrades payload: {exc!r}", category=LogCategory.MARKET_DATA, symbol=symbol)
            return []
        trades.reverse()
        return trades

    async def get_book_ticker(self, symbol: str) -> Optional[Dict[str, float]]:
        data = await self._get_json("/api/v3/ticker/bookTicker", {"symbol": symbol.upper()})
        if not isinstance(data, dict):
            return None
        try:
            return {
                "bid_price": float(data["bidPrice"]),
                "bid_qty": float(data["bidQty"]),
                "ask_price": float(data["askPrice"]),
                "ask_qty": float(data["askQty"]),
            }
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"Unexpected bookTicker payload: {exc!r}", category=LogCategory.MARKET_DATA, symbol=symbol)
            return None
