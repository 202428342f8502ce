"""
Risk Manager
============

The risk manager is the FIRST gate of every evaluation cycle. If it says
no, nothing else runs: no imbalance reading, no sizing, no order.

BLOCKING CONDITIONS:
====================

1. DAILY LOSS:
   - Realized loss today >= max_daily_loss_pct of day-start equity
   - Stays blocked for the rest of the day, whatever the market does
   - Cleared only by start_new_day()

2. LOSS STREAK COOLDOWN:
   - consecutive_losses >= max_consecutive_losses
   - Blocked until cooldown_after_losses_ms has passed since the LAST loss
   - When the cooldown runs out the streak counter starts again from 0

3. VOLATILITY:
   - The larger of the quoted spread and the high-low range of recent
     trades, both as a fraction of price, above max_volatility_pct

STATE:
======
All cross-cycle state of the trading pipeline lives here: equity, daily
P&L (in the DailyLossGuard), the loss streak and the time of the last
loss. One engine instance drives one RiskManager; running two engines
against the same instance is not supported.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..data.models import MarketSnapshot
from ..infra.clock import Clock, SystemClock
from ..infra.config import StrategyConfig
from ..infra.logging import get_logger
from .daily_loss_guard import DailyLossGuard


logger = get_logger()


class RiskBlockReason(Enum):
    DAILY_LOSS = "daily_loss"
    LOSS_STREAK_COOLDOWN = "loss_streak_cooldown"
    VOLATILITY = "volatility"


@dataclass(frozen=True)
class RiskStatus:
    """Read-only view of the risk manager for monitoring."""
    can_trade: bool
    daily_pnl: float
    daily_loss_pct: float
    consecutive_losses: int
    is_in_cooldown: bool
    equity: float


class RiskManager:
    """
    Day-scoped circuit breaker.

    Args:
        config: Strategy configuration with the risk thresholds
        starting_equity: Equity at the start of the first trading day
        clock: Time source for cooldown windows
    """

    def __init__(
        self,
        config: StrategyConfig,
        starting_equity: float,
        clock: Optional[Clock] = None,
    ):
        self._config = config
        self._clock = clock or SystemClock()
        self._guard = DailyLossGuard(starting_equity, config.max_daily_loss_pct)

        self._consecutive_losses = 0
        self._last_loss_time_ms: Optional[int] = None

    @property
    def current_equity(self) -> float:
        return self._guard.current_equity

    @property
    def consecutive_losses(self) -> int:
        return self._consecutive_losses

    @property
    def daily_loss_guard(self) -> DailyLossGuard:
        return self._guard

    def _cooldown_active(self, now_ms: int) -> bool:
        if self._consecutive_losses < self._config.max_consecutive_losses:
            return False
        if self._last_loss_time_ms is None:
            return False
        return now_ms - self._last_loss_time_ms < self._config.cooldown_after_losses_ms

    def _volatility(self, snapshot: MarketSnapshot) -> float:
        return max(snapshot.spread_pct, snapshot.trade_flow.price_range_pct)

    def _expire_cooldown(self, now_ms: int) -> None:
        if self._consecutive_losses < self._config.max_consecutive_losses:
            return
        if self._cooldown_active(now_ms):
            return
        logger.info(
            f"Loss streak cooldown expired after {self._consecutive_losses} losses",
            consecutive_losses=self._consecutive_losses,
        )
        self._consecutive_losses = 0

    def get_block_reason(self, snapshot: MarketSnapshot) -> Optional[RiskBlockReason]:
        """Why trading is blocked right now, or None if it is allowed. Read-only."""
        if self._guard.has_exceeded_daily_loss():
            return RiskBlockReason.DAILY_LOSS

        if self._cooldown_active(self._clock.now_ms()):
            return RiskBlockReason.LOSS_STREAK_COOLDOWN

        if self._volatility(snapshot) > self._config.max_volatility_pct:
            return RiskBlockReason.VOLATILITY

        return None

    def can_trade(self, snapshot: MarketSnapshot) -> bool:
        self._expire_cooldown(self._clock.now_ms())
        reason = self.get_block_reason(snapshot)
        if reason is None:
            return True

        logger.log_risk_event(
            reason.value,
            self._describe(reason, snapshot),
            symbol=snapshot.symbol,
        )
        return False

    def _describe(self, reason: RiskBlockReason, snapshot: MarketSnapshot) -> str:
        if reason is RiskBlockReason.DAILY_LOSS:
            return (
                f"Daily loss {self._guard.daily_loss_pct():.2%} >= "
                f"limit {self._config.max_daily_loss_pct:.2%}"
            )
        if reason is RiskBlockReason.LOSS_STREAK_COOLDOWN:
            return (
                f"{self._consecutive_losses} consecutive losses, "
                f"cooling down for {self._config.cooldown_after_losses_ms}ms after last loss"
            )
        return (
            f"Volatility {self._volatility(snapshot):.2%} > "
            f"limit {self._config.max_volatility_pct:.2%}"
        )

    def record_win(self, pnl: float = 0.0) -> None:
        self._guard.record_trade(pnl)
        self._consecutive_losses = 0

    def record_loss(self, pnl: float = 0.0) -> None:
        """Record a losing trade. `pnl` is the realized (negative) amount."""
        self._guard.record_trade(pnl)
        self._consecutive_losses += 1
        self._last_loss_time_ms = self._clock.now_ms()

        if self._consecutive_losses >= self._config.max_consecutive_losses:
            logger.log_risk_event(
                "loss_streak",
                f"{self._consecutive_losses} consecutive losses, entering "
                f"{self._config.cooldown_after_losses_ms}ms cooldown",
                consecutive_losses=self._consecutive_losses,
            )
        if self._guard.has_exceeded_daily_loss():
            logger.log_risk_event(
                "daily_loss",
                f"Daily loss limit reached: P&L {self._guard.daily_pnl:.2f}",
                severity="CRITICAL",
                daily_pnl=self._guard.daily_pnl,
            )

    def record_trade(self, pnl: float) -> None:
        """Route a closed trade's realized P&L to record_win or record_loss."""
        if pnl < 0:
            self.record_loss(pnl)
        else:
            self.record_win(pnl)

    def get_risk_status(self) -> RiskStatus:
        """Snapshot of the day's state. Does not include the volatility check."""
        now_ms = self._clock.now_ms()
        self._expire_cooldown(now_ms)
        in_cooldown = self._cooldown_active(now_ms)
        return RiskStatus(
            can_trade=not self._guard.has_exceeded_daily_loss() and not in_cooldown,
            daily_pnl=self._guard.daily_pnl,
            daily_loss_pct=self._guard.daily_loss_pct(),
            consecutive_losses=self._consecutive_losses,
            is_in_cooldown=in_cooldown,
            equity=self._guard.current_equity,
        )

    def start_new_day(self) -> None:
        """Day rollover: daily P&L and loss streak reset, equity carries over."""
        self._guard.start_new_day()
        self._consecutive_losses = 0
        self._last_loss_time_ms = None

    def reset(self) -> None:
        """Full reset to the initial equity."""
        self._guard.reset()
        self._consecutive_losses = 0
        self._last_loss_time_ms = None
        logger.info("Risk manager reset")
