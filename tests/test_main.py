"""Command line entry point."""

import pytest

from imbalance_trader import main as cli
from imbalance_trader.infra.config import StrategyConfig


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(cli.signal, "signal", lambda *args: None)
    for name in ("TRADER_PRESET", "TRADER_SYMBOL", "TRADER_EQUITY", "TRADER_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


class TestBuildConfig:

    def test_flags_override_defaults(self):
        args = cli.argparse.Namespace(
            preset="aggressive",
            symbol="solusdt",
            equity=2_000.0,
            log_level="debug",
            log_file=None,
        )
        config = cli.build_config(args)
        assert config.strategy == StrategyConfig.aggressive()
        assert config.market_data.symbol == "SOLUSDT"
        assert config.starting_equity == 2_000.0
        assert config.log_level == "DEBUG"
        assert not config.log_to_file

    def test_log_file_enables_file_logging(self, tmp_path):
        args = cli.argparse.Namespace(
            preset=None, symbol=None, equity=None, log_level=None, log_file=str(tmp_path / "x.log")
        )
        config = cli.build_config(args)
        assert config.log_to_file
        assert config.log_file_path.endswith("x.log")


class TestClosePositions:

    def make_long(self, opened_step=0):
        return cli.SimulatedPosition(
            direction=1,
            entry_price=100.0,
            quantity=2.0,
            entry_fee=0.2,
            stop_loss=99.0,
            take_profit=102.0,
            opened_step=opened_step,
        )

    def test_take_profit(self):
        positions = [self.make_long()]
        pnl = cli._close_positions(positions, 102.0, step=1, hold_steps=40, fee_pct=0.001)
        assert pnl == [pytest.approx(4.0 - 0.2 - 0.204)]
        assert positions == []

    def test_stop_loss(self):
        positions = [self.make_long()]
        pnl = cli._close_positions(positions, 98.5, step=1, hold_steps=40, fee_pct=0.0)
        assert pnl == [pytest.approx(-3.0 - 0.2)]

    def test_holds_inside_range(self):
        positions = [self.make_long()]
        assert cli._close_positions(positions, 100.5, step=5, hold_steps=40, fee_pct=0.001) == []
        assert len(positions) == 1

    def test_time_exit(self):
        positions = [self.make_long(opened_step=0)]
        pnl = cli._close_positions(positions, 100.0, step=40, hold_steps=40, fee_pct=0.0)
        assert pnl == [pytest.approx(-0.2)]


class TestMain:

    def test_simulation_runs(self, capsys):
        cli.main(["--mode", "simulation", "--steps", "120", "--seed", "5", "--log-level", "WARNING"])
        out = capsys.readouterr().out
        assert "SIMULATION SUMMARY" in out
        assert "Cycles:          120" in out

    def test_real_orders_need_credentials(self, monkeypatch):
        monkeypatch.delenv("BINANCE_API_KEY", raising=False)
        monkeypatch.delenv("BINANCE_API_SECRET", raising=False)
        with pytest.raises(SystemExit):
            cli.main(["--mode", "live", "--real-orders"])

    def test_unknown_mode(self):
        with pytest.raises(SystemExit):
            cli.main(["--mode", "backtest"])
