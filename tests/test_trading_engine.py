"""
End-to-end tests for the decision pipeline.

Scenario A: bid-heavy book, aggressive buying, tight spread -> maker buy
Scenario B: same pressure behind a 0.5% spread -> no order
Scenario C: loss streak inside the cooldown -> nothing downstream runs

Plus the short path, every early exit, executor failures and the
wiring done by TradingEngineFactory.
"""

import dataclasses
from unittest.mock import AsyncMock, MagicMock

import pytest

from imbalance_trader.data.models import OrderBookData
from imbalance_trader.engine.factory import TradingEngineFactory
from imbalance_trader.engine.trading_engine import TradingEngine
from imbalance_trader.execution.executor import OrderExecutor, PaperOrderExecutor
from imbalance_trader.execution.policy import ExecutionPolicy, OrderType
from imbalance_trader.execution.results import OrderError, OrderPartialFill, OrderSuccess
from imbalance_trader.infra.config import StrategyConfig
from imbalance_trader.risk.position_sizer import PositionSizer
from imbalance_trader.risk.risk_manager import RiskManager
from imbalance_trader.risk.spread_filter import SpreadFilter
from imbalance_trader.signals.imbalance import ImbalanceCalculator
from imbalance_trader.signals.signal import LongSignal, NoSignal, ShortSignal
from imbalance_trader.signals.trade_flow import TradeFlowAnalyzer

from tests.fixtures.market import make_book, make_snapshot, make_trades


def engine_with_executor(config, clock, executor, equity=10_000.0):
    return TradingEngineFactory.create(config, equity, order_executor=executor, clock=clock)


def mock_executor():
    return AsyncMock(spec=OrderExecutor)


class TestScenarios:

    @pytest.mark.asyncio
    async def test_scenario_a_bid_pressure_buys_with_maker_order(self, engine, paper_executor, bullish_snapshot):
        result = await engine.on_market_update(bullish_snapshot)

        assert isinstance(result, OrderSuccess)
        order = paper_executor.orders[result.order_id]
        assert order.side == "BUY"
        assert order.order_type is OrderType.LIMIT_MAKER
        assert order.limit_price == pytest.approx(100.00 * 0.9999)
        assert result.avg_fill_price == pytest.approx(99.99)

        # depth ceiling: 2% of ~20,021 ask depth, floored to the quantity step
        expected_size = bullish_snapshot.ask_depth(20) * 0.02
        assert result.filled_quantity == pytest.approx(4.0046)
        assert result.filled_quantity * order.limit_price <= expected_size

    @pytest.mark.asyncio
    async def test_scenario_b_wide_spread_places_nothing(self, config, clock, wide_spread_snapshot):
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)

        assert await engine.on_market_update(wide_spread_snapshot) is None
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_scenario_c_cooldown_touches_nothing_else(self, config, clock, bullish_snapshot):
        risk = RiskManager(config, 10_000.0, clock)
        for _ in range(config.max_consecutive_losses):
            risk.record_loss(-5.0)
        clock.advance(config.cooldown_after_losses_ms // 2)

        imbalance = MagicMock(spec=ImbalanceCalculator)
        trade_flow = MagicMock(spec=TradeFlowAnalyzer)
        spread_filter = MagicMock(spec=SpreadFilter)
        sizer = MagicMock(spec=PositionSizer)
        policy = MagicMock(spec=ExecutionPolicy)
        executor = mock_executor()

        engine = TradingEngine(
            config=config,
            imbalance_calculator=imbalance,
            trade_flow_analyzer=trade_flow,
            spread_filter=spread_filter,
            position_sizer=sizer,
            risk_manager=risk,
            execution_policy=policy,
            order_executor=executor,
            clock=clock,
        )

        assert await engine.on_market_update(bullish_snapshot) is None
        for component in (imbalance, trade_flow, spread_filter, sizer, policy, executor):
            assert component.mock_calls == []


class TestShortPath:

    @pytest.mark.asyncio
    async def test_ask_pressure_sells(self, engine, paper_executor, bearish_snapshot):
        result = await engine.on_market_update(bearish_snapshot)

        assert isinstance(result, OrderSuccess)
        order = paper_executor.orders[result.order_id]
        assert order.side == "SELL"
        assert order.order_type is OrderType.LIMIT_MAKER
        assert order.limit_price == pytest.approx(100.01 * 1.0001)

        size = bearish_snapshot.bid_depth(20) * 0.02
        assert result.filled_quantity * order.limit_price <= size

    @pytest.mark.asyncio
    async def test_thin_bids_block_short_after_precheck(self, config, clock):
        # ask depth passes the buy-side pre-check, bid depth cannot carry the sell
        book = make_book(bid_qty=0.02, ask_qty=0.1)
        snapshot = make_snapshot(book, make_trades(10, aggressive_buy=False, price=100.00))
        assert snapshot.bid_depth() < 51.0 < snapshot.ask_depth()

        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        assert await engine.on_market_update(snapshot) is None
        executor.execute.assert_not_called()


class TestEvaluateStrategy:

    def test_long_signal_levels(self, engine, bullish_snapshot):
        signal = engine.evaluate_strategy(bullish_snapshot)
        assert isinstance(signal, LongSignal)
        assert signal.entry_price == pytest.approx(100.01)
        assert signal.stop_loss == pytest.approx(100.01 * 0.99)
        assert signal.take_profit == pytest.approx(100.01 * 1.02)
        assert 0.0 < signal.confidence < 1.0

    def test_short_signal_levels(self, engine, bearish_snapshot):
        signal = engine.evaluate_strategy(bearish_snapshot)
        assert isinstance(signal, ShortSignal)
        assert signal.entry_price == pytest.approx(100.00)
        assert signal.stop_loss == pytest.approx(101.00)
        assert signal.take_profit == pytest.approx(98.00)

    def test_imbalance_without_flow_is_no_signal(self, engine):
        snapshot = make_snapshot(make_book(bid_qty=30.0, ask_qty=10.0), make_trades(10, aggressive_buy=False))
        assert isinstance(engine.evaluate_strategy(snapshot), NoSignal)

    def test_balanced_book_is_no_signal(self, engine):
        snapshot = make_snapshot(make_book(bid_qty=10.0, ask_qty=10.0), make_trades(10, aggressive_buy=True))
        assert isinstance(engine.evaluate_strategy(snapshot), NoSignal)

    def test_thin_tape_is_no_signal(self, engine):
        snapshot = make_snapshot(make_book(), make_trades(3, aggressive_buy=True))
        assert isinstance(engine.evaluate_strategy(snapshot), NoSignal)


class TestEarlyExits:

    @pytest.mark.asyncio
    async def test_no_signal_places_nothing(self, config, clock):
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        snapshot = make_snapshot(make_book(bid_qty=10.0, ask_qty=10.0))
        assert await engine.on_market_update(snapshot) is None
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_daily_loss_limit(self, engine, bullish_snapshot):
        engine.risk_manager.record_loss(-250.0)
        assert await engine.on_market_update(bullish_snapshot) is None

    @pytest.mark.asyncio
    async def test_stale_snapshot(self, engine, clock, bullish_snapshot, config):
        clock.advance(config.max_snapshot_age_ms + 1)
        assert await engine.on_market_update(bullish_snapshot) is None

    @pytest.mark.asyncio
    async def test_crossed_book(self, config, clock):
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        snapshot = make_snapshot(make_book(best_bid=100.02, best_ask=100.01))
        assert await engine.on_market_update(snapshot) is None
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_ask_side(self, config, clock):
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        book = OrderBookData.from_raw("BTCUSDT", [["100", "30"]], [])
        assert await engine.on_market_update(make_snapshot(book)) is None
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_quantity_below_exchange_minimum(self, clock, bullish_snapshot):
        config = StrategyConfig(min_quantity=10.0)
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        assert await engine.on_market_update(bullish_snapshot) is None
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_size_below_minimum(self, clock, bullish_snapshot):
        config = StrategyConfig(min_position_size=1_000.0)
        executor = mock_executor()
        engine = engine_with_executor(config, clock, executor)
        assert await engine.on_market_update(bullish_snapshot) is None
        executor.execute.assert_not_called()


class TestExecution:

    @pytest.mark.asyncio
    async def test_market_order_sized_from_entry_price(self, clock, bullish_snapshot):
        config = StrategyConfig(momentum_threshold=0.5)
        executor = PaperOrderExecutor(clock=clock)
        engine = engine_with_executor(config, clock, executor)

        result = await engine.on_market_update(bullish_snapshot)
        order = executor.orders[result.order_id]
        assert order.order_type is OrderType.MARKET
        assert order.limit_price is None
        assert result.avg_fill_price == pytest.approx(100.01 * 1.0005)
        assert result.filled_quantity == pytest.approx(4.00379)

    @pytest.mark.asyncio
    async def test_taker_when_maker_disabled(self, clock, bullish_snapshot):
        config = StrategyConfig(prefer_maker=False)
        executor = PaperOrderExecutor(clock=clock)
        engine = engine_with_executor(config, clock, executor)

        result = await engine.on_market_update(bullish_snapshot)
        assert executor.orders[result.order_id].order_type is OrderType.LIMIT_TAKER
        assert result.avg_fill_price == pytest.approx(100.01)

    @pytest.mark.asyncio
    async def test_partial_fill_is_passed_through(self, config, clock, bullish_snapshot):
        executor = mock_executor()
        partial = OrderPartialFill("42", 1.0, 3.0046, 99.99)
        executor.execute.return_value = partial
        engine = engine_with_executor(config, clock, executor)

        assert await engine.on_market_update(bullish_snapshot) is partial

        signal, quantity, order_type, limit_price = executor.execute.call_args.args
        assert isinstance(signal, LongSignal)
        assert quantity == pytest.approx(4.0046)
        assert order_type is OrderType.LIMIT_MAKER
        assert limit_price == pytest.approx(99.99)

    @pytest.mark.asyncio
    async def test_executor_exception_becomes_order_error(self, config, clock, bullish_snapshot):
        executor = mock_executor()
        executor.execute.side_effect = RuntimeError("exchange down")
        engine = engine_with_executor(config, clock, executor)

        result = await engine.on_market_update(bullish_snapshot)
        assert isinstance(result, OrderError)
        assert "exchange down" in result.message
        assert isinstance(result.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_sizes_from_current_equity(self, config, clock, bullish_snapshot):
        executor = mock_executor()
        executor.execute.return_value = OrderSuccess("1", 1.0, 100.0, 0.1)
        engine = engine_with_executor(config, clock, executor, equity=1_000.0)

        await engine.on_market_update(bullish_snapshot)
        _, quantity, _, limit_price = executor.execute.call_args.args
        # risk ceiling 1,000 * 0.5% / 1.3% is below the depth ceiling
        assert quantity * limit_price <= 1_000.0 * 0.005 / 0.013
        assert quantity == pytest.approx(3.84653)


class TestFactory:

    def test_default_uses_paper_executor(self):
        engine = TradingEngineFactory.create_default()
        assert isinstance(engine.order_executor, PaperOrderExecutor)
        assert engine.risk_manager.current_equity == 10_000.0

    def test_presets(self):
        assert TradingEngineFactory.create_conservative().config == StrategyConfig.conservative()
        assert TradingEngineFactory.create_aggressive(5_000.0).risk_manager.current_equity == 5_000.0

    def test_shared_risk_manager(self, config, clock, risk_manager):
        engine = TradingEngineFactory.create(config, 1.0, clock=clock, risk_manager=risk_manager)
        assert engine.risk_manager is risk_manager

    def test_config_is_frozen(self, config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.max_spread_pct = 0.5
