"""
Execution results.

An executor answers every order with exactly one of the four variants
below. The engine hands the result back to its caller untouched.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class OrderSuccess:
    order_id: str
    filled_quantity: float
    avg_fill_price: float
    fee: float


@dataclass(frozen=True)
class OrderPartialFill:
    order_id: str
    filled_quantity: float
    remaining_quantity: float
    avg_fill_price: float


@dataclass(frozen=True)
class OrderRejected:
    reason: str


@dataclass(frozen=True)
class OrderError:
    """Transport or unexpected failure. `cause` keeps the original exception."""
    message: str
    cause: Optional[BaseException] = None


ExecutionResult = Union[OrderSuccess, OrderPartialFill, OrderRejected, OrderError]


def is_filled(result: ExecutionResult) -> bool:
    """True for results that moved any quantity."""
    if isinstance(result, OrderSuccess):
        return result.filled_quantity > 0
    if isinstance(result, OrderPartialFill):
        return result.filled_quantity > 0
    return False
