"""Trade and snapshot models."""

import dataclasses
import math

import pytest

from imbalance_trader.data.models import AggTrade, OrderBookData, TradeFlowMetrics, pressure_ratio
from imbalance_trader.engine.snapshot_builder import MarketSnapshotBuilder
from imbalance_trader.infra.clock import ManualClock

from tests.fixtures.market import NOW_MS, make_book, make_snapshot, make_trades


BINANCE_AGG_TRADE = {
    "e": "aggTrade",
    "E": 1672515782136,
    "s": "BNBBTC",
    "a": 12345,
    "p": "0.001",
    "q": "100",
    "f": 100,
    "l": 105,
    "T": 1672515782136,
    "m": True,
    "M": True,
}


class TestAggTrade:

    def test_from_binance(self):
        trade = AggTrade.from_binance(BINANCE_AGG_TRADE)
        assert trade.aggregate_trade_id == 12345
        assert trade.price == pytest.approx(0.001)
        assert trade.quantity == pytest.approx(100.0)
        assert trade.timestamp == 1672515782136
        assert trade.first_trade_id == 100
        assert trade.last_trade_id == 105
        assert trade.trade_value == pytest.approx(0.1)

    def test_buyer_maker_means_aggressive_sell(self):
        trade = AggTrade.from_binance(BINANCE_AGG_TRADE)
        assert trade.is_aggressive_sell
        assert not trade.is_aggressive_buy

    def test_taker_buy(self):
        trade = AggTrade.from_binance({**BINANCE_AGG_TRADE, "m": False})
        assert trade.is_aggressive_buy

    def test_missing_field_raises(self):
        payload = dict(BINANCE_AGG_TRADE)
        del payload["p"]
        with pytest.raises(KeyError):
            AggTrade.from_binance(payload)

    def test_is_immutable(self):
        trade = AggTrade.from_binance(BINANCE_AGG_TRADE)
        with pytest.raises(dataclasses.FrozenInstanceError):
            trade.price = 1.0


class TestPressureRatio:

    def test_plain_ratio(self):
        assert pressure_ratio(300.0, 100.0) == pytest.approx(3.0)

    def test_one_sided_is_infinite(self):
        assert math.isinf(pressure_ratio(10.0, 0.0))

    def test_empty_is_neutral(self):
        assert pressure_ratio(0.0, 0.0) == 1.0

    def test_no_numerator(self):
        assert pressure_ratio(0.0, 10.0) == 0.0


class TestTradeFlowMetrics:

    def test_empty(self):
        metrics = TradeFlowMetrics.empty(window_ms=3000)
        assert metrics.sample_count == 0
        assert metrics.buy_pressure_ratio == 1.0
        assert metrics.sell_pressure_ratio == 1.0
        assert metrics.window_ms == 3000
        assert metrics.price_range_pct == 0.0

    def test_strong_flow_needs_volume(self):
        metrics = TradeFlowMetrics.empty()
        assert not metrics.has_strong_buy_flow(0.5)
        assert not metrics.has_strong_sell_flow(0.5)

    def test_price_range(self):
        metrics = dataclasses.replace(TradeFlowMetrics.empty(), price_high=101.0, price_low=100.0)
        assert metrics.price_range_pct == pytest.approx(0.01)


class TestMarketSnapshot:

    def test_builder_fills_top_of_book(self):
        snapshot = make_snapshot(make_book(best_bid=100.00, best_ask=100.02))
        assert snapshot.best_bid == pytest.approx(100.00)
        assert snapshot.best_ask == pytest.approx(100.02)
        assert snapshot.mid_price == pytest.approx(100.01)
        assert snapshot.spread == pytest.approx(0.02)
        assert snapshot.spread_pct == pytest.approx(0.02 / 100.01)
        assert snapshot.timestamp == NOW_MS

    def test_builder_uses_clock_when_no_timestamp(self):
        builder = MarketSnapshotBuilder(clock=ManualClock(NOW_MS + 123))
        snapshot = builder.build("BTCUSDT", make_book(), make_trades())
        assert snapshot.timestamp == NOW_MS + 123

    def test_builder_with_empty_side(self):
        book = OrderBookData.from_raw("BTCUSDT", [["100", "1"]], [])
        snapshot = MarketSnapshotBuilder().build("BTCUSDT", book, [], timestamp_ms=NOW_MS)
        assert snapshot.best_ask == 0.0
        assert snapshot.trade_flow.sample_count == 0

    def test_staleness_boundary(self):
        snapshot = make_snapshot()
        assert not snapshot.is_stale(5000, NOW_MS + 5000)
        assert snapshot.is_stale(5000, NOW_MS + 5001)

    def test_depth_and_vwap(self):
        snapshot = make_snapshot(make_book(bid_qty=1.0, ask_qty=2.0, levels=2))
        assert snapshot.bid_depth() == pytest.approx(100.00 + 99.99)
        assert snapshot.ask_depth() == pytest.approx(2 * (100.01 + 100.02))
        assert snapshot.vwap_bid() == pytest.approx(99.995)
        assert snapshot.vwap_ask() == pytest.approx(100.015)
