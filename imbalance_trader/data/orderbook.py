"""
Order Book Math
===============

Pure functions over OrderBookData. Nothing here keeps state.

    BIDS                           ASKS
    Price     | Qty                Price     | Qty
    ──────────┼─────               ──────────┼─────
    64010.00  | 1.20  <-- best     64010.50  | 0.40  <-- best
    64009.50  | 2.75               64011.00  | 0.90
    64008.00  | 0.30               64012.25  | 1.10

IMBALANCE:
==========
Each level's quantity is weighted by level_price / best_price_same_side
and the weighted bid volume is divided by the weighted ask volume over
the top N levels. A reading of 1.5 means one and a half times as much
resting size under the market as above it.

An empty ask side returns 1.0 (neutral) rather than infinity: a book
with no offers is broken input, not a buy signal.

FILL PRICE:
===========
average_fill_price() consumes quote currency level by level: asks from
the touch outward for a buy, the bid side in reverse of its stored order
for a sell. If the visible book cannot absorb the full amount it returns
None; a partial answer would understate slippage. "Full" is judged with
a relative tolerance so an amount equal to the side's depth_usd() still
fills despite float summation order.
"""

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import numpy as np

if TYPE_CHECKING:
    from .models import OrderBookData, OrderBookLevel


FILL_TOLERANCE = 1e-9


def _level_arrays(levels: Sequence['OrderBookLevel'], top_n: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    if top_n is not None:
        levels = levels[:top_n]
    prices = np.array([lvl.price_float for lvl in levels], dtype=np.float64)
    quantities = np.array([lvl.quantity_float for lvl in levels], dtype=np.float64)
    return prices, quantities


def _weighted_volume(levels: Sequence['OrderBookLevel'], top_n: int) -> float:
    prices, quantities = _level_arrays(levels, top_n)
    if prices.size == 0:
        return 0.0
    best = prices[0]
    weights = prices / best if best > 0 else np.ones_like(prices)
    return float(np.sum(quantities * weights))


def calculate_imbalance(book: 'OrderBookData', top_n: int = 20) -> float:
    """
    Weighted bid volume over weighted ask volume for the top N levels.

    Returns 1.0 when the weighted ask volume is zero.
    """
    bid_volume = _weighted_volume(book.bids, top_n)
    ask_volume = _weighted_volume(book.asks, top_n)
    if ask_volume > 0:
        return bid_volume / ask_volume
    return 1.0


def depth_usd(levels: Sequence['OrderBookLevel'], top_n: int = 20) -> float:
    """Sum of price * quantity over the top N levels of one side."""
    prices, quantities = _level_arrays(levels, top_n)
    return float(np.dot(prices, quantities)) if prices.size else 0.0


def bid_depth_usd(book: 'OrderBookData', top_n: int = 20) -> float:
    return depth_usd(book.bids, top_n)


def ask_depth_usd(book: 'OrderBookData', top_n: int = 20) -> float:
    return depth_usd(book.asks, top_n)


def vwap(levels: Sequence['OrderBookLevel'], top_n: int = 20, fallback: float = 0.0) -> float:
    """Quantity-weighted average price of the top N levels, or `fallback` if they hold no size."""
    prices, quantities = _level_arrays(levels, top_n)
    total_quantity = float(np.sum(quantities)) if quantities.size else 0.0
    if total_quantity <= 0:
        return fallback
    return float(np.dot(prices, quantities)) / total_quantity


def average_fill_price(book: 'OrderBookData', quote_amount: float, is_buy: bool) -> Optional[float]:
    """
    Volume-weighted price of spending `quote_amount` against the book.

    Buys consume asks from the best price up. Sells consume the bids in
    reverse of their stored order, lowest price first. Returns None for a
    non-positive amount or when the visible side is too thin to fill it
    completely.
    """
    if quote_amount <= 0:
        return None

    levels = book.asks if is_buy else tuple(reversed(book.bids))
    remaining = quote_amount
    base_filled = 0.0

    for level in levels:
        price = level.price_float
        quantity = level.quantity_float
        if price <= 0 or quantity <= 0:
            continue

        level_quote = price * quantity
        if level_quote >= remaining:
            base_filled += remaining / price
            remaining = 0.0
            break

        base_filled += quantity
        remaining -= level_quote

    if remaining > quote_amount * FILL_TOLERANCE or base_filled <= 0:
        return None

    return quote_amount / base_filled


def has_sufficient_depth(
    book: 'OrderBookData',
    quote_amount: float,
    is_buy: bool,
    min_depth_buffer_pct: float = 0.02,
    top_n: int = 20,
) -> bool:
    """True iff same-side depth covers quote_amount plus the buffer."""
    available = ask_depth_usd(book, top_n) if is_buy else bid_depth_usd(book, top_n)
    return available >= quote_amount * (1 + min_depth_buffer_pct)
