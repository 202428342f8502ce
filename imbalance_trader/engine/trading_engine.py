"""
Trading Engine
==============

One entry point, on_market_update(snapshot), and a strict short-circuit
pipeline behind it. Any step that fails ends the cycle with None; there
is no partial execution and no retry. The next market update starts a
fresh cycle.

PIPELINE:
=========

     snapshot
        │
    1.  ├── RiskManager.can_trade ─────────────── no ──> None
        │   (stale / crossed / empty book) ────────────> None
    2.  ├── rough size = equity * 0.5%
    3.  ├── SpreadFilter (assume BUY) ─────────── reason ──> None
    4.  ├── strategy: imbalance + trade flow
    5.  ├── not actionable ───────────────────────────────> None
    6.  ├── SpreadFilter (actual side) ────────── reason ──> None
    7.  ├── stop-loss % -> PositionSizer
    8.  ├── size <= 0 ────────────────────────────────────> None
    9.  ├── ExecutionPolicy: order type + limit price
   10.  ├── quote -> base quantity, floor to step ── <= 0 ──> None
   11.  └── OrderExecutor.execute ─────────────────────────> ExecutionResult

The risk gate is always first: when it fails, no other component is
touched during the cycle.

SIGNAL LEVELS:
==============

            entry      stop loss       take profit
    LONG    best ask   entry * 0.99    entry * 1.02
    SHORT   best bid   entry * 1.01    entry * 0.98

The engine does not bound the executor call in time. Callers that need
a deadline wrap on_market_update() in asyncio.wait_for (TradingSession
does).
"""

from typing import Optional

from ..data.models import MarketSnapshot
from ..execution.executor import OrderExecutor
from ..execution.policy import ExecutionPolicy
from ..execution.results import ExecutionResult, OrderError, OrderSuccess, OrderPartialFill
from ..infra.clock import Clock, SystemClock
from ..infra.config import StrategyConfig
from ..infra.logging import get_logger, LogCategory
from ..risk.position_sizer import PositionSizer
from ..risk.risk_manager import RiskManager
from ..risk.spread_filter import SpreadFilter
from ..signals.imbalance import ImbalanceCalculator
from ..signals.signal import NO_SIGNAL, LongSignal, ShortSignal, TradeSignal
from ..signals.trade_flow import TradeFlowAnalyzer


logger = get_logger()

LONG_STOP_LOSS_FACTOR = 0.99
LONG_TAKE_PROFIT_FACTOR = 1.02
SHORT_STOP_LOSS_FACTOR = 1.01
SHORT_TAKE_PROFIT_FACTOR = 0.98


class TradingEngine:
    """
    Decision pipeline for a single instrument.

    All collaborators are injected; TradingEngineFactory wires the
    standard set from one StrategyConfig.
    """

    def __init__(
        self,
        config: StrategyConfig,
        imbalance_calculator: ImbalanceCalculator,
        trade_flow_analyzer: TradeFlowAnalyzer,
        spread_filter: SpreadFilter,
        position_sizer: PositionSizer,
        risk_manager: RiskManager,
        execution_policy: ExecutionPolicy,
        order_executor: OrderExecutor,
        clock: Optional[Clock] = None,
    ):
        self._config = config
        self._imbalance = imbalance_calculator
        self._trade_flow = trade_flow_analyzer
        self._spread_filter = spread_filter
        self._sizer = position_sizer
        self._risk = risk_manager
        self._policy = execution_policy
        self._executor = order_executor
        self._clock = clock or SystemClock()

    @property
    def config(self) -> StrategyConfig:
        return self._config

    @property
    def risk_manager(self) -> RiskManager:
        return self._risk

    @property
    def order_executor(self) -> OrderExecutor:
        return self._executor

    def _is_usable(self, snapshot: MarketSnapshot) -> bool:
        if snapshot.is_stale(self._config.max_snapshot_age_ms, self._clock.now_ms()):
            logger.debug("Stale snapshot ignored", category=LogCategory.MARKET_DATA, symbol=snapshot.symbol)
            return False
        if snapshot.best_bid <= 0 or snapshot.best_ask <= 0 or snapshot.best_bid >= snapshot.best_ask:
            logger.debug("Invalid top of book ignored", category=LogCategory.MARKET_DATA, symbol=snapshot.symbol)
            return False
        if not snapshot.order_book.is_valid():
            logger.debug("Malformed order book ignored", category=LogCategory.MARKET_DATA, symbol=snapshot.symbol)
            return False
        return True

    def evaluate_strategy(self, snapshot: MarketSnapshot) -> TradeSignal:
        """Imbalance gives the direction, trade flow must agree."""
        imbalance = self._imbalance.calculate_imbalance(snapshot)
        metrics = snapshot.trade_flow

        if self._imbalance.suggests_long(imbalance) and self._trade_flow.confirms_long(metrics):
            entry = snapshot.best_ask
            signal = LongSignal(
                confidence=self._imbalance.calculate_confidence(imbalance, is_long=True),
                entry_price=entry,
                stop_loss=entry * LONG_STOP_LOSS_FACTOR,
                take_profit=entry * LONG_TAKE_PROFIT_FACTOR,
            )
        elif self._imbalance.suggests_short(imbalance) and self._trade_flow.confirms_short(metrics):
            entry = snapshot.best_bid
            signal = ShortSignal(
                confidence=self._imbalance.calculate_confidence(imbalance, is_long=False),
                entry_price=entry,
                stop_loss=entry * SHORT_STOP_LOSS_FACTOR,
                take_profit=entry * SHORT_TAKE_PROFIT_FACTOR,
            )
        else:
            return NO_SIGNAL

        logger.log_signal(
            type(signal).__name__,
            snapshot.symbol,
            imbalance,
            signal.confidence,
            buy_pressure=metrics.buy_pressure_ratio,
            sell_pressure=metrics.sell_pressure_ratio,
            samples=metrics.sample_count,
        )
        return signal

    async def on_market_update(self, snapshot: MarketSnapshot) -> Optional[ExecutionResult]:
        symbol = snapshot.symbol

        # 1. Risk gate
        if not self._risk.can_trade(snapshot):
            return None
        if not self._is_usable(snapshot):
            return None

        # 2-3. Liquidity pre-check before a direction is known
        equity = self._risk.current_equity
        estimated_size = equity * self._config.estimate_size_pct
        reason = self._spread_filter.get_rejection_reason(snapshot, estimated_size, is_buy=True)
        if reason is not None:
            logger.info(f"Pre-check rejected: {reason}", category=LogCategory.RISK, symbol=symbol)
            return None

        # 4-5. Strategy
        with logger.measure_latency("strategy_evaluation", category=LogCategory.SIGNAL, symbol=symbol):
            signal = self.evaluate_strategy(snapshot)
        if not signal.is_actionable():
            return None
        is_long = signal.is_long()

        # 6. Direction-aware filter
        reason = self._spread_filter.get_rejection_reason(snapshot, estimated_size, is_buy=is_long)
        if reason is not None:
            logger.info(f"Filter rejected {type(signal).__name__}: {reason}", category=LogCategory.RISK, symbol=symbol)
            return None

        # 7-8. Sizing
        position_size = self._sizer.calculate_position_size(
            snapshot,
            equity,
            is_long,
            stop_loss_pct=signal.stop_loss_pct(),
        )
        if position_size <= 0:
            logger.info("Position size is zero, skipping", category=LogCategory.RISK, symbol=symbol)
            return None

        # 9. Order type and price
        order_type = self._policy.determine_order_type(snapshot, signal)
        limit_price = self._policy.calculate_limit_price(order_type, signal, snapshot.best_bid, snapshot.best_ask)

        # 10. Quantity
        reference_price = limit_price if limit_price is not None else signal.entry_price
        quantity = self._sizer.adjust_quantity(
            self._sizer.calculate_base_quantity(position_size, reference_price)
        )
        if quantity <= 0:
            logger.info(
                f"Quantity below exchange minimum for size {position_size:.2f}",
                category=LogCategory.RISK,
                symbol=symbol,
            )
            return None

        # 11. Execute
        logger.info(
            f"Executing {type(signal).__name__}: {quantity} @ "
            f"{limit_price if limit_price is not None else 'MKT'} ({order_type.value})",
            category=LogCategory.EXECUTION,
            symbol=symbol,
            position_size=position_size,
            confidence=signal.confidence,
        )
        try:
            result = await self._executor.execute(signal, quantity, order_type, limit_price)
        except Exception as exc:
            logger.error(
                f"Executor raised: {exc!r}",
                category=LogCategory.EXECUTION,
                symbol=symbol,
                exc_info=exc,
            )
            return OrderError(f"Executor raised: {exc}", exc)

        self._log_result(symbol, result)
        return result

    def _log_result(self, symbol: str, result: ExecutionResult) -> None:
        if isinstance(result, (OrderSuccess, OrderPartialFill)):
            logger.info(f"Execution result: {result}", category=LogCategory.EXECUTION, symbol=symbol)
        else:
            logger.warning(f"Execution result: {result}", category=LogCategory.EXECUTION, symbol=symbol)
