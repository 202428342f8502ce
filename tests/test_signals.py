"""
Signal generation: book imbalance and trade flow confirmation.

Scenarios tested:
1. Threshold crossings for imbalance (strict inequalities)
2. Confidence scaling and clamping
3. Trailing window anchored on the newest trade
4. Minimum sample requirement overrides a strong ratio
"""

import math

import pytest

from imbalance_trader.data.models import AggTrade, OrderBookData
from imbalance_trader.infra.config import StrategyConfig
from imbalance_trader.signals.imbalance import ImbalanceCalculator
from imbalance_trader.signals.signal import (
    NO_SIGNAL,
    LongSignal,
    NoSignal,
    ShortSignal,
    signal_side,
)
from imbalance_trader.signals.trade_flow import TradeFlowAnalyzer

from tests.fixtures.market import NOW_MS, make_book, make_snapshot, make_trades, mixed_trades


def single_level_snapshot(bid_qty: float, ask_qty: float):
    book = OrderBookData.from_raw("BTCUSDT", [["100", str(bid_qty)]], [["101", str(ask_qty)]])
    return make_snapshot(book, make_trades())


class TestSignals:

    def test_no_signal_is_not_actionable(self):
        assert not NO_SIGNAL.is_actionable()
        assert not NO_SIGNAL.is_long()
        assert not NO_SIGNAL.is_short()
        assert isinstance(NO_SIGNAL, NoSignal)

    def test_long_stop_loss_pct(self):
        signal = LongSignal(confidence=0.5, entry_price=100.0, stop_loss=99.0, take_profit=102.0)
        assert signal.is_actionable()
        assert signal.is_long()
        assert signal.stop_loss_pct() == pytest.approx(0.01)

    def test_short_stop_loss_pct(self):
        signal = ShortSignal(confidence=0.5, entry_price=100.0, stop_loss=101.0, take_profit=98.0)
        assert signal.is_short()
        assert signal.stop_loss_pct() == pytest.approx(0.01)

    def test_stop_loss_pct_without_stop(self):
        assert LongSignal(confidence=0.1, entry_price=100.0).stop_loss_pct() is None

    def test_order_side(self):
        assert signal_side(LongSignal(0.5, 100.0)) == "BUY"
        assert signal_side(ShortSignal(0.5, 100.0)) == "SELL"
        with pytest.raises(ValueError):
            signal_side(NO_SIGNAL)


class TestImbalanceCalculator:

    def test_from_config(self):
        config = StrategyConfig.conservative()
        calc = ImbalanceCalculator.from_config(config)
        assert calc.long_threshold == config.imbalance_long_threshold
        assert calc.short_threshold == config.imbalance_short_threshold
        assert calc.top_n_levels == config.top_n_levels

    def test_thresholds_are_strict(self):
        calc = ImbalanceCalculator()
        assert not calc.suggests_long(1.5)
        assert calc.suggests_long(1.5001)
        assert not calc.suggests_short(0.67)
        assert calc.suggests_short(0.6699)

    def test_calculate_imbalance_from_snapshot(self):
        calc = ImbalanceCalculator()
        assert calc.calculate_imbalance(single_level_snapshot(3.0, 1.0)) == pytest.approx(3.0)

    def test_long_confidence(self):
        calc = ImbalanceCalculator()
        assert calc.calculate_confidence(2.5, is_long=True) == pytest.approx(0.5)
        assert calc.calculate_confidence(10.0, is_long=True) == 1.0
        assert calc.calculate_confidence(1.0, is_long=True) == 0.0

    def test_short_confidence(self):
        calc = ImbalanceCalculator()
        assert calc.calculate_confidence(0.505, is_long=False) == pytest.approx(0.5)
        assert calc.calculate_confidence(0.1, is_long=False) == 1.0
        assert calc.calculate_confidence(1.0, is_long=False) == 0.0

    @pytest.mark.parametrize(
        "bid_qty,ask_qty,expected",
        [(3.0, 1.0, 1), (1.0, 3.0, -1), (1.0, 1.0, 0)],
    )
    def test_evaluate_direction(self, bid_qty, ask_qty, expected):
        calc = ImbalanceCalculator()
        assert calc.evaluate(single_level_snapshot(bid_qty, ask_qty)) == expected


class TestTradeFlowAnalyzer:

    def test_empty_tape(self):
        metrics = TradeFlowAnalyzer().calculate_metrics([])
        assert metrics.sample_count == 0
        assert metrics.buy_pressure_ratio == 1.0
        assert metrics.sell_pressure_ratio == 1.0

    def test_volumes_and_ratios(self):
        trades = mixed_trades([(True, 300.0), (False, 100.0), (True, 300.0), (True, 300.0), (False, 100.0)])
        metrics = TradeFlowAnalyzer().calculate_metrics(trades)
        assert metrics.aggressive_buy_volume == pytest.approx(900.0)
        assert metrics.aggressive_sell_volume == pytest.approx(200.0)
        assert metrics.total_volume == pytest.approx(1100.0)
        assert metrics.buy_pressure_ratio == pytest.approx(4.5)
        assert metrics.sell_pressure_ratio == pytest.approx(200.0 / 900.0)
        assert metrics.sample_count == 5

    def test_one_sided_tape_is_infinite(self):
        metrics = TradeFlowAnalyzer().calculate_metrics(make_trades(10, aggressive_buy=True))
        assert math.isinf(metrics.buy_pressure_ratio)
        assert metrics.sell_pressure_ratio == 0.0

    def test_window_is_anchored_on_newest_trade(self):
        # newest trade is far behind wall clock; the window still counts from it
        trades = make_trades(5, newest_ts=NOW_MS - 60_000)
        metrics = TradeFlowAnalyzer(window_ms=5000).calculate_metrics(trades)
        assert metrics.sample_count == 5

    def test_trade_on_window_edge_is_included(self):
        trades = make_trades(3) + make_trades(1, newest_ts=NOW_MS - 5000)
        assert TradeFlowAnalyzer(window_ms=5000).calculate_metrics(trades).sample_count == 4

    def test_older_trades_are_excluded(self):
        trades = make_trades(3) + make_trades(4, newest_ts=NOW_MS - 5001)
        assert TradeFlowAnalyzer(window_ms=5000).calculate_metrics(trades).sample_count == 3

    def test_scan_stops_at_first_old_trade(self):
        trades = [
            AggTrade(3, 100.0, 1.0, NOW_MS, False),
            AggTrade(2, 100.0, 1.0, NOW_MS - 6000, False),
            AggTrade(1, 100.0, 1.0, NOW_MS - 100, False),
        ]
        assert TradeFlowAnalyzer(window_ms=5000).calculate_metrics(trades).sample_count == 1

    def test_price_range(self):
        trades = [
            AggTrade(2, 101.0, 1.0, NOW_MS, False),
            AggTrade(1, 100.0, 1.0, NOW_MS - 10, True),
        ]
        metrics = TradeFlowAnalyzer().calculate_metrics(trades)
        assert metrics.price_high == 101.0
        assert metrics.price_low == 100.0

    def test_confirms_long(self):
        analyzer = TradeFlowAnalyzer()
        metrics = analyzer.calculate_metrics(make_trades(10, aggressive_buy=True))
        assert analyzer.confirms_long(metrics)
        assert not analyzer.confirms_short(metrics)

    def test_confirms_short(self):
        analyzer = TradeFlowAnalyzer()
        metrics = analyzer.calculate_metrics(make_trades(10, aggressive_buy=False))
        assert analyzer.confirms_short(metrics)
        assert not analyzer.confirms_long(metrics)

    def test_too_few_samples_never_confirms(self):
        analyzer = TradeFlowAnalyzer(min_samples=5)
        metrics = analyzer.calculate_metrics(make_trades(4, aggressive_buy=True))
        assert math.isinf(metrics.buy_pressure_ratio)
        assert not analyzer.confirms_long(metrics)

    def test_ratio_at_threshold_does_not_confirm(self):
        analyzer = TradeFlowAnalyzer(confirmation_threshold=1.5)
        trades = mixed_trades([(True, 150.0), (True, 150.0), (True, 150.0), (False, 100.0), (False, 200.0)])
        metrics = analyzer.calculate_metrics(trades)
        assert metrics.buy_pressure_ratio == pytest.approx(1.5)
        assert not analyzer.confirms_long(metrics)

    def test_confirms_signal_reads_snapshot(self):
        analyzer = TradeFlowAnalyzer()
        snapshot = make_snapshot(make_book(), make_trades(10, aggressive_buy=True))
        assert analyzer.confirms_signal(snapshot, is_long=True)
        assert not analyzer.confirms_signal(snapshot, is_long=False)
