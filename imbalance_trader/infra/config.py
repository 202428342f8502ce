"""
Configuration Management for the Imbalance Trader
=================================================

All tunables live in frozen dataclasses so a running engine can never
see its thresholds change underneath it. To run with different
settings, build a new config (dataclasses.replace works well) and a new
engine.

Configuration is split by concern:
- StrategyConfig: every signal, liquidity, sizing, risk and execution
  threshold the decision pipeline reads
- MarketDataConfig: exchange endpoints and feed behaviour
- ExecutionConfig: credentials and order-transport settings
- SystemConfig: aggregate plus logging and starting equity

PRESETS:
========
DEFAULT sits between CONSERVATIVE (2.0 / 0.5 imbalance thresholds,
0.05% max spread, 0.2% risk per trade, 1% daily loss, two losses before
cooldown) and AGGRESSIVE (1.3 / 0.77, 0.2% max spread, 1% risk per
trade, 3% daily loss, five losses before cooldown).

Invalid values raise ConfigurationError at construction time. This is
the only place in the package where bad input raises instead of being
turned into a "no trade" outcome.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional
import os


class ConfigurationError(ValueError):
    """Raised when a configuration value is out of its valid range."""


class StrategyPreset(Enum):
    DEFAULT = "default"
    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


@dataclass(frozen=True)
class StrategyConfig:
    """
    Decision thresholds for one instrument.

    Percentages are fractions: 0.001 means 0.1%.
    """
    # Order book imbalance
    imbalance_long_threshold: float = 1.5
    imbalance_short_threshold: float = 0.67
    top_n_levels: int = 20

    # Spread and liquidity
    max_spread_pct: float = 0.001
    min_depth_buffer_pct: float = 0.02

    # Trade flow confirmation
    trade_flow_threshold: float = 1.5
    trade_flow_window_ms: int = 5000
    min_trade_flow_samples: int = 5

    # Position sizing
    max_depth_pct: float = 0.02
    max_risk_per_trade_pct: float = 0.005
    slippage_buffer_pct: float = 0.001
    fee_pct: float = 0.001
    min_position_size: float = 10.0
    default_stop_loss_pct: float = 0.01
    estimate_size_pct: float = 0.005

    # Exchange lot rules
    step_size: float = 0.00001
    min_quantity: float = 0.001

    # Risk
    max_daily_loss_pct: float = 0.02
    max_consecutive_losses: int = 3
    cooldown_after_losses_ms: int = 60_000
    max_volatility_pct: float = 0.05

    # Execution
    prefer_maker: bool = True
    maker_spread_threshold: float = 0.0005
    momentum_threshold: float = 1.2

    # Snapshots older than this are ignored
    max_snapshot_age_ms: int = 5000

    def __post_init__(self):
        _require(
            0 < self.imbalance_short_threshold < self.imbalance_long_threshold,
            "imbalance thresholds must satisfy 0 < short < long, got "
            f"short={self.imbalance_short_threshold} long={self.imbalance_long_threshold}",
        )
        _require(self.top_n_levels > 0, f"top_n_levels must be positive, got {self.top_n_levels}")
        for name in (
            "max_spread_pct",
            "max_depth_pct",
            "max_risk_per_trade_pct",
            "max_daily_loss_pct",
            "max_volatility_pct",
        ):
            value = getattr(self, name)
            _require(0 < value <= 1, f"{name} must be in (0, 1], got {value}")
        for name in (
            "min_depth_buffer_pct",
            "slippage_buffer_pct",
            "fee_pct",
            "maker_spread_threshold",
            "estimate_size_pct",
        ):
            value = getattr(self, name)
            _require(0 <= value < 1, f"{name} must be in [0, 1), got {value}")
        _require(self.default_stop_loss_pct > 0, "default_stop_loss_pct must be positive")
        _require(self.trade_flow_threshold > 0, "trade_flow_threshold must be positive")
        _require(self.trade_flow_window_ms > 0, "trade_flow_window_ms must be positive")
        _require(self.min_trade_flow_samples >= 0, "min_trade_flow_samples must be >= 0")
        _require(self.min_position_size >= 0, "min_position_size must be >= 0")
        _require(self.step_size > 0, "step_size must be positive")
        _require(self.min_quantity >= 0, "min_quantity must be >= 0")
        _require(self.max_consecutive_losses > 0, "max_consecutive_losses must be positive")
        _require(self.cooldown_after_losses_ms >= 0, "cooldown_after_losses_ms must be >= 0")
        _require(self.momentum_threshold > 0, "momentum_threshold must be positive")
        _require(self.max_snapshot_age_ms > 0, "max_snapshot_age_ms must be positive")

    @classmethod
    def conservative(cls) -> 'StrategyConfig':
        return cls(
            imbalance_long_threshold=2.0,
            imbalance_short_threshold=0.5,
            max_spread_pct=0.0005,
            max_risk_per_trade_pct=0.002,
            max_daily_loss_pct=0.01,
            max_consecutive_losses=2,
        )

    @classmethod
    def aggressive(cls) -> 'StrategyConfig':
        return cls(
            imbalance_long_threshold=1.3,
            imbalance_short_threshold=0.77,
            max_spread_pct=0.002,
            max_risk_per_trade_pct=0.01,
            max_daily_loss_pct=0.03,
            max_consecutive_losses=5,
        )

    @classmethod
    def from_preset(cls, preset: StrategyPreset) -> 'StrategyConfig':
        if preset is StrategyPreset.CONSERVATIVE:
            return cls.conservative()
        if preset is StrategyPreset.AGGRESSIVE:
            return cls.aggressive()
        return cls()


@dataclass(frozen=True)
class MarketDataConfig:
    """
    Feed endpoints and behaviour.

    The websocket streams are Binance partial-book depth and aggregated
    trades for a single symbol.
    """
    symbol: str = "BTCUSDT"
    ws_base_url: str = "wss://stream.binance.com:9443/ws"
    rest_base_url: str = "https://api.binance.com"
    depth_levels: int = 20
    depth_update_speed_ms: int = 100
    trade_buffer_size: int = 1000
    reconnect_delay_s: float = 3.0
    rest_timeout_s: float = 10.0

    def __post_init__(self):
        _require(bool(self.symbol), "symbol must not be empty")
        _require(self.depth_levels in (5, 10, 20), f"depth_levels must be 5, 10 or 20, got {self.depth_levels}")
        _require(self.depth_update_speed_ms in (100, 1000), "depth_update_speed_ms must be 100 or 1000")
        _require(self.trade_buffer_size > 0, "trade_buffer_size must be positive")
        _require(self.reconnect_delay_s >= 0, "reconnect_delay_s must be >= 0")
        _require(self.rest_timeout_s > 0, "rest_timeout_s must be positive")


@dataclass(frozen=True)
class ExecutionConfig:
    """
    Order transport settings.

    Credentials default to the BINANCE_API_KEY / BINANCE_API_SECRET
    environment variables. Without them only the paper executor can be
    used.
    """
    api_key: Optional[str] = field(default_factory=lambda: os.environ.get("BINANCE_API_KEY"))
    api_secret: Optional[str] = field(
        default_factory=lambda: os.environ.get("BINANCE_API_SECRET"),
        repr=False,
    )
    testnet: bool = False
    recv_window_ms: int = 5000
    request_timeout_s: float = 10.0
    execution_timeout_s: float = 5.0

    # Paper trading
    paper_slippage_pct: float = 0.0005
    paper_fee_pct: float = 0.001

    def __post_init__(self):
        _require(0 < self.recv_window_ms <= 60_000, "recv_window_ms must be in (0, 60000]")
        _require(self.request_timeout_s > 0, "request_timeout_s must be positive")
        _require(self.execution_timeout_s > 0, "execution_timeout_s must be positive")
        _require(0 <= self.paper_slippage_pct < 1, "paper_slippage_pct must be in [0, 1)")
        _require(0 <= self.paper_fee_pct < 1, "paper_fee_pct must be in [0, 1)")

    @property
    def rest_base_url(self) -> str:
        if self.testnet:
            return "https://testnet.binance.vision"
        return "https://api.binance.com"

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


@dataclass(frozen=True)
class SystemConfig:
    """Top-level configuration aggregating all components."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)

    starting_equity: float = 10_000.0

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_file_path: str = "imbalance_trader.log"

    def __post_init__(self):
        _require(self.starting_equity > 0, f"starting_equity must be positive, got {self.starting_equity}")
        _require(
            self.log_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
            f"unknown log_level {self.log_level}",
        )


def get_default_config() -> SystemConfig:
    return SystemConfig()


def get_conservative_config() -> SystemConfig:
    return SystemConfig(strategy=StrategyConfig.conservative())


def get_aggressive_config() -> SystemConfig:
    return SystemConfig(strategy=StrategyConfig.aggressive())


def config_from_env(base: Optional[SystemConfig] = None) -> SystemConfig:
    """
    Overlay environment variables onto a base config.

    Recognised variables:
        TRADER_PRESET     default | conservative | aggressive
        TRADER_SYMBOL     e.g. ETHUSDT
        TRADER_EQUITY     starting equity in quote currency
        TRADER_LOG_LEVEL  DEBUG, INFO, ...
    """
    config = base or get_default_config()

    preset = os.environ.get("TRADER_PRESET")
    if preset:
        try:
            config = replace(config, strategy=StrategyConfig.from_preset(StrategyPreset(preset.lower())))
        except ValueError as exc:
            raise ConfigurationError(f"unknown TRADER_PRESET {preset!r}") from exc

    symbol = os.environ.get("TRADER_SYMBOL")
    if symbol:
        config = replace(config, market_data=replace(config.market_data, symbol=symbol.upper()))

    equity = os.environ.get("TRADER_EQUITY")
    if equity:
        try:
            starting_equity = float(equity)
        except ValueError as exc:
            raise ConfigurationError(f"TRADER_EQUITY is not a number: {equity!r}") from exc
        config = replace(config, starting_equity=starting_equity)

    level = os.environ.get("TRADER_LOG_LEVEL")
    if level:
        config = replace(config, log_level=level.upper())

    return config
