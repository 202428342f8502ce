"""
Position Sizing
===============

A position is the SMALLEST of two ceilings, and zero if that is below a
minimum viable order:

1. DEPTH CEILING:
   same_side_depth * max_depth_pct
   Taking at most 2% of visible depth keeps market impact small.

2. RISK CEILING:
   equity * max_risk_per_trade_pct / (stop_loss_pct + slippage_buffer_pct + 2 * fee_pct)
   A fixed dollar risk budget divided by the fraction lost if the stop
   is hit, including slippage and a round trip of fees. With $10,000
   equity, 0.5% risk and a 1% stop this is 50 / 0.013 = $3,846.

3. FLOOR:
   Anything under min_position_size (default $10) becomes 0.

Sizes are in quote currency. calculate_base_quantity() converts to base
units, and adjust_quantity() rounds DOWN to the exchange step size so
that rounding can never push a position above its computed risk.
"""

from decimal import Decimal, ROUND_DOWN
from typing import Optional

from ..data.models import MarketSnapshot
from ..infra.config import StrategyConfig
from ..infra.logging import get_logger


logger = get_logger()


class PositionSizer:

    def __init__(self, config: StrategyConfig):
        self._config = config

    def depth_ceiling(self, snapshot: MarketSnapshot, is_long: bool) -> float:
        top_n = self._config.top_n_levels
        depth = snapshot.ask_depth(top_n) if is_long else snapshot.bid_depth(top_n)
        return max(0.0, depth * self._config.max_depth_pct)

    def risk_ceiling(self, equity: float, stop_loss_pct: Optional[float] = None) -> float:
        if stop_loss_pct is None or stop_loss_pct <= 0:
            stop_loss_pct = self._config.default_stop_loss_pct

        risk_amount = max(0.0, equity) * self._config.max_risk_per_trade_pct
        loss_fraction = stop_loss_pct + self._config.slippage_buffer_pct + 2 * self._config.fee_pct
        return risk_amount / loss_fraction

    def calculate_position_size(
        self,
        snapshot: MarketSnapshot,
        equity: float,
        is_long: bool,
        stop_loss_pct: Optional[float] = None,
    ) -> float:
        """
        Position size in quote currency, or 0.0 when below the minimum.
        """
        by_depth = self.depth_ceiling(snapshot, is_long)
        by_risk = self.risk_ceiling(equity, stop_loss_pct)
        size = min(by_depth, by_risk)

        if size < self._config.min_position_size:
            logger.debug(
                f"Position size {size:.2f} below minimum {self._config.min_position_size:.2f}",
                symbol=snapshot.symbol,
                depth_ceiling=by_depth,
                risk_ceiling=by_risk,
            )
            return 0.0

        return size

    @staticmethod
    def calculate_base_quantity(quote_size: float, entry_price: float) -> float:
        if entry_price <= 0:
            return 0.0
        return quote_size / entry_price

    def adjust_quantity(
        self,
        quantity: float,
        step_size: Optional[float] = None,
        min_quantity: Optional[float] = None,
    ) -> float:
        """
        Floor to a multiple of step_size; 0.0 if the result is under min_quantity.
        """
        step = Decimal(str(step_size if step_size is not None else self._config.step_size))
        minimum = Decimal(str(min_quantity if min_quantity is not None else self._config.min_quantity))

        if quantity <= 0 or step <= 0:
            return 0.0

        steps = (Decimal(str(quantity)) / step).to_integral_value(rounding=ROUND_DOWN)
        adjusted = steps * step

        if adjusted < minimum:
            return 0.0
        return float(adjusted)
