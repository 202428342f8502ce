"""
Trade signals.

A signal is exactly one of NoSignal, LongSignal or ShortSignal. They are
frozen dataclasses joined by the TradeSignal alias; consumers branch with
isinstance() and never need a fourth case.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class NoSignal:
    """Conditions for a trade are not met."""

    def is_actionable(self) -> bool:
        return False

    def is_long(self) -> bool:
        return False

    def is_short(self) -> bool:
        return False


@dataclass(frozen=True)
class _DirectionalSignal:
    confidence: float
    entry_price: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    def is_actionable(self) -> bool:
        return True


@dataclass(frozen=True)
class LongSignal(_DirectionalSignal):
    """Buy at entry_price; stop below, target above."""

    def is_long(self) -> bool:
        return True

    def is_short(self) -> bool:
        return False

    def stop_loss_pct(self) -> Optional[float]:
        if self.stop_loss is None or self.entry_price <= 0:
            return None
        return (self.entry_price - self.stop_loss) / self.entry_price


@dataclass(frozen=True)
class ShortSignal(_DirectionalSignal):
    """Sell at entry_price; stop above, target below."""

    def is_long(self) -> bool:
        return False

    def is_short(self) -> bool:
        return True

    def stop_loss_pct(self) -> Optional[float]:
        if self.stop_loss is None or self.entry_price <= 0:
            return None
        return (self.stop_loss - self.entry_price) / self.entry_price


TradeSignal = Union[NoSignal, LongSignal, ShortSignal]

NO_SIGNAL = NoSignal()


def signal_side(signal: TradeSignal) -> str:
    """Exchange order side for an actionable signal."""
    if isinstance(signal, LongSignal):
        return "BUY"
    if isinstance(signal, ShortSignal):
        return "SELL"
    raise ValueError("NoSignal has no order side")
