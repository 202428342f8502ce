"""Shared pytest fixtures for the imbalance trader tests.

- Clock pinned to a fixed epoch
- Default strategy config
- Engine wired with the paper executor
- Bullish and wide-spread snapshots used by the end-to-end scenarios
"""

import pytest

from imbalance_trader.engine.factory import TradingEngineFactory
from imbalance_trader.execution.executor import PaperOrderExecutor
from imbalance_trader.infra.clock import ManualClock
from imbalance_trader.infra.config import StrategyConfig
from imbalance_trader.risk.risk_manager import RiskManager

from tests.fixtures.market import NOW_MS, make_book, make_snapshot, make_trades


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(NOW_MS)


@pytest.fixture
def config() -> StrategyConfig:
    return StrategyConfig()


@pytest.fixture
def risk_manager(config, clock) -> RiskManager:
    return RiskManager(config, starting_equity=10_000.0, clock=clock)


@pytest.fixture
def paper_executor(clock) -> PaperOrderExecutor:
    return PaperOrderExecutor(symbol="BTCUSDT", clock=clock)


@pytest.fixture
def engine(config, clock, risk_manager, paper_executor):
    return TradingEngineFactory.create(
        config,
        10_000.0,
        order_executor=paper_executor,
        clock=clock,
        risk_manager=risk_manager,
    )


@pytest.fixture
def bullish_snapshot():
    """Bid depth 3x ask depth, ten aggressive buys, 1bp spread."""
    return make_snapshot(make_book(bid_qty=30.0, ask_qty=10.0), make_trades(10, aggressive_buy=True))


@pytest.fixture
def bearish_snapshot():
    """Ask depth 3x bid depth, ten aggressive sells."""
    return make_snapshot(
        make_book(bid_qty=10.0, ask_qty=30.0),
        make_trades(10, aggressive_buy=False, price=100.00),
    )


@pytest.fixture
def wide_spread_snapshot():
    """Same depth and tape as bullish_snapshot but a 0.5% spread."""
    return make_snapshot(
        make_book(best_bid=99.75, best_ask=100.25, bid_qty=30.0, ask_qty=10.0),
        make_trades(10, aggressive_buy=True, price=100.25),
    )
