"""
Daily Loss Guard
================

Tracks realized P&L for the current trading day against the equity the
day started with. Once the loss reaches the configured fraction of that
equity, trading stays blocked until start_new_day() is called, even if
later winning trades bring the day's P&L back above the limit.
"""

from ..infra.logging import get_logger


logger = get_logger()


class DailyLossGuard:

    def __init__(self, starting_equity: float, max_daily_loss_pct: float = 0.02):
        if starting_equity <= 0:
            raise ValueError(f"starting_equity must be positive, got {starting_equity}")
        self._max_daily_loss_pct = max_daily_loss_pct
        self._initial_equity = starting_equity
        self._day_start_equity = starting_equity
        self._current_equity = starting_equity
        self._daily_pnl = 0.0
        self._limit_hit = False

    @property
    def daily_pnl(self) -> float:
        return self._daily_pnl

    @property
    def current_equity(self) -> float:
        return self._current_equity

    @property
    def day_start_equity(self) -> float:
        return self._day_start_equity

    def record_trade(self, pnl: float) -> None:
        self._daily_pnl += pnl
        self._current_equity += pnl
        if self.daily_loss_pct() >= self._max_daily_loss_pct:
            self._limit_hit = True

    def daily_loss_pct(self) -> float:
        """Today's realized loss as a fraction of day-start equity; 0 when up on the day."""
        if self._daily_pnl >= 0:
            return 0.0
        return -self._daily_pnl / self._day_start_equity

    def has_exceeded_daily_loss(self) -> bool:
        """Latched: once true it stays true until the next day or a reset."""
        return self._limit_hit or self.daily_loss_pct() >= self._max_daily_loss_pct

    def start_new_day(self) -> None:
        """Zero the day's P&L and rebase the loss limit on current equity."""
        logger.info(
            f"New trading day: equity {self._current_equity:.2f}, previous day P&L {self._daily_pnl:.2f}",
            previous_daily_pnl=self._daily_pnl,
            equity=self._current_equity,
        )
        self._daily_pnl = 0.0
        self._limit_hit = False
        if self._current_equity > 0:
            self._day_start_equity = self._current_equity

    def reset(self) -> None:
        """Back to the initial equity with no history."""
        self._day_start_equity = self._initial_equity
        self._current_equity = self._initial_equity
        self._daily_pnl = 0.0
        self._limit_hit = False
