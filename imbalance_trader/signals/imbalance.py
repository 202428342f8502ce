"""
Order Book Imbalance Signal
===========================

The imbalance reading is weighted bid volume divided by weighted ask
volume over the top N levels (see data.orderbook.calculate_imbalance).

    imbalance > long_threshold    ->  LONG  (more size resting under the market)
    imbalance < short_threshold   ->  SHORT (more size resting above it)
    otherwise                     ->  neutral

The defaults, 1.5 and 0.67, are reciprocals of each other: a short
needs the same one-and-a-half times dominance on the ask side that a
long needs on the bid side.

CONFIDENCE:
===========
Confidence grows linearly with the distance past the threshold and
saturates at 1.0:

    long:  (imbalance - long_threshold) / 2.0      -> 1.0 at 3.5
    short: (short_threshold - imbalance) / 0.33    -> 1.0 at 0.34

It is reported on the signal for logging and downstream analysis; it
does not change the size of a position.
"""

from typing import Optional

from ..data.models import MarketSnapshot
from ..data import orderbook
from ..infra.config import StrategyConfig
from ..infra.logging import get_logger


logger = get_logger()

LONG_CONFIDENCE_SPAN = 2.0
SHORT_CONFIDENCE_SPAN = 0.33


class ImbalanceCalculator:

    def __init__(
        self,
        long_threshold: float = 1.5,
        short_threshold: float = 0.67,
        top_n_levels: int = 20,
    ):
        self.long_threshold = long_threshold
        self.short_threshold = short_threshold
        self.top_n_levels = top_n_levels

    @classmethod
    def from_config(cls, config: StrategyConfig) -> 'ImbalanceCalculator':
        return cls(
            long_threshold=config.imbalance_long_threshold,
            short_threshold=config.imbalance_short_threshold,
            top_n_levels=config.top_n_levels,
        )

    def calculate_imbalance(self, snapshot: MarketSnapshot) -> float:
        return orderbook.calculate_imbalance(snapshot.order_book, self.top_n_levels)

    def suggests_long(self, imbalance: float) -> bool:
        return imbalance > self.long_threshold

    def suggests_short(self, imbalance: float) -> bool:
        return imbalance < self.short_threshold

    def calculate_confidence(self, imbalance: float, is_long: bool) -> float:
        if is_long:
            raw = (imbalance - self.long_threshold) / LONG_CONFIDENCE_SPAN
        else:
            raw = (self.short_threshold - imbalance) / SHORT_CONFIDENCE_SPAN
        return min(1.0, max(0.0, raw))

    def evaluate(self, snapshot: MarketSnapshot, imbalance: Optional[float] = None) -> int:
        """
        Direction suggested by the book alone.

        Returns 1 for long, -1 for short and 0 for neutral.
        """
        if imbalance is None:
            imbalance = self.calculate_imbalance(snapshot)

        if self.suggests_long(imbalance):
            direction = 1
        elif self.suggests_short(imbalance):
            direction = -1
        else:
            direction = 0

        logger.log_signal(
            "imbalance",
            snapshot.symbol,
            imbalance,
            self.calculate_confidence(imbalance, is_long=direction >= 0) if direction else 0.0,
            direction=direction,
        )
        return direction
