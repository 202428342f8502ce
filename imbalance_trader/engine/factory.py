"""
Engine wiring.

Builds every pipeline component from one StrategyConfig so they all see
the same thresholds. The executor defaults to paper trading.
"""

from typing import Optional

from ..execution.executor import OrderExecutor, PaperOrderExecutor
from ..execution.policy import ExecutionPolicy
from ..infra.clock import Clock, SystemClock
from ..infra.config import StrategyConfig
from ..risk.position_sizer import PositionSizer
from ..risk.risk_manager import RiskManager
from ..risk.spread_filter import SpreadFilter
from ..signals.imbalance import ImbalanceCalculator
from ..signals.trade_flow import TradeFlowAnalyzer
from .trading_engine import TradingEngine


class TradingEngineFactory:

    @staticmethod
    def create(
        config: StrategyConfig,
        starting_equity: float,
        order_executor: Optional[OrderExecutor] = None,
        clock: Optional[Clock] = None,
        risk_manager: Optional[RiskManager] = None,
        symbol: str = "BTCUSDT",
    ) -> TradingEngine:
        clock = clock or SystemClock()
        return TradingEngine(
            config=config,
            imbalance_calculator=ImbalanceCalculator.from_config(config),
            trade_flow_analyzer=TradeFlowAnalyzer.from_config(config),
            spread_filter=SpreadFilter.from_config(config),
            position_sizer=PositionSizer(config),
            risk_manager=risk_manager or RiskManager(config, starting_equity, clock),
            execution_policy=ExecutionPolicy.from_config(config),
            order_executor=order_executor or PaperOrderExecutor(
                symbol=symbol,
                fee_pct=config.fee_pct,
                clock=clock,
            ),
            clock=clock,
        )

    @staticmethod
    def create_default(starting_equity: float = 10_000.0, clock: Optional[Clock] = None) -> TradingEngine:
        return TradingEngineFactory.create(StrategyConfig(), starting_equity, clock=clock)

    @staticmethod
    def create_conservative(starting_equity: float = 10_000.0, clock: Optional[Clock] = None) -> TradingEngine:
        return TradingEngineFactory.create(StrategyConfig.conservative(), starting_equity, clock=clock)

    @staticmethod
    def create_aggressive(starting_equity: float = 10_000.0, clock: Optional[Clock] = None) -> TradingEngine:
        return TradingEngineFactory.create(StrategyConfig.aggressive(), starting_equity, clock=clock)
