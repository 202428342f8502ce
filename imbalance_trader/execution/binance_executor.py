"""
Binance spot executor.

Signed REST calls against /api/v3/order. Every request carries a
timestamp and recvWindow and is signed with HMAC-SHA256 over the exact
query string that is sent; the API key travels in the X-MBX-APIKEY
header.

Order type mapping:

    MARKET       type=MARKET
    LIMIT_MAKER  type=LIMIT_MAKER (post-only, rejected if it would cross)
    LIMIT_TAKER  type=LIMIT, timeInForce=IOC

Exchange rejections (HTTP 4xx with a {"code", "msg"} body) come back as
OrderRejected. Server errors and transport failures come back as
OrderError. Nothing is raised to the caller.
"""

import hashlib
import hmac
import time
import urllib.parse
from decimal import Decimal, ROUND_DOWN, ROUND_UP
from typing import Any, Dict, Optional

import httpx

from ..infra.config import ExecutionConfig
from ..infra.logging import get_logger, LogCategory
from ..signals.signal import TradeSignal, signal_side
from .executor import OrderExecutor
from .policy import OrderType
from .results import (
    ExecutionResult,
    OrderError,
    OrderPartialFill,
    OrderRejected,
    OrderSuccess,
)


logger = get_logger()

ORDER_PATH = "/api/v3/order"


def format_decimal(value: float, step: float, rounding: str = ROUND_DOWN) -> str:
    """Render `value` as a plain decimal string on the `step` grid."""
    step_dec = Decimal(str(step))
    units = (Decimal(str(value)) / step_dec).to_integral_value(rounding=rounding)
    text = format((units * step_dec).normalize(), "f")
    return text


class BinanceSigner:
    """Query-string signing for Binance signed endpoints."""

    def __init__(self, api_key: str, api_secret: str, recv_window_ms: int = 5000):
        self.api_key = api_key
        self._api_secret = api_secret.encode("utf-8")
        self.recv_window_ms = recv_window_ms

    def signed_query(self, params: Dict[str, Any], timestamp_ms: Optional[int] = None) -> str:
        out = {k: v for k, v in params.items() if v is not None}
        out["timestamp"] = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        out["recvWindow"] = self.recv_window_ms
        query = urllib.parse.urlencode(sorted(out.items()))
        signature = hmac.new(self._api_secret, query.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"{query}&signature={signature}"

    def headers(self) -> Dict[str, str]:
        return {"X-MBX-APIKEY": self.api_key}


class BinanceOrderExecutor(OrderExecutor):
    """
    Live order placement for one symbol.

    Args:
        symbol: Exchange symbol, e.g. "BTCUSDT"
        config: Credentials, endpoint and timeouts
        step_size: Quantity grid of the symbol (LOT_SIZE filter)
        tick_size: Price grid of the symbol (PRICE_FILTER)
        client: Optional pre-built httpx.AsyncClient
    """

    def __init__(
        self,
        symbol: str,
        config: ExecutionConfig,
        step_size: float = 0.00001,
        tick_size: float = 0.01,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not config.has_credentials:
            raise ValueError("BinanceOrderExecutor requires BINANCE_API_KEY and BINANCE_API_SECRET")

        self._symbol = symbol.upper()
        self._config = config
        self._step_size = step_size
        self._tick_size = tick_size
        self._signer = BinanceSigner(config.api_key, config.api_secret, config.recv_window_ms)
        self._client = client or httpx.AsyncClient(
            base_url=config.rest_base_url,
            timeout=config.request_timeout_s,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_order_params(
        self,
        signal: TradeSignal,
        quantity: float,
        order_type: OrderType,
        limit_price: Optional[float],
    ) -> Dict[str, Any]:
        side = signal_side(signal)
        params: Dict[str, Any] = {
            "symbol": self._symbol,
            "side": side,
            "quantity": format_decimal(quantity, self._step_size),
            "newOrderRespType": "FULL",
        }

        if order_type is OrderType.MARKET:
            params["type"] = "MARKET"
            return params

        # Buys round the price down and sells round it up, never through the touch
        rounding = ROUND_DOWN if side == "BUY" else ROUND_UP
        params["price"] = format_decimal(limit_price, self._tick_size, rounding)

        if order_type is OrderType.LIMIT_MAKER:
            params["type"] = "LIMIT_MAKER"
        else:
            params["type"] = "LIMIT"
            params["timeInForce"] = "IOC"
        return params

    async def _request(self, method: str, params: Dict[str, Any]) -> httpx.Response:
        query = self._signer.signed_query(params)
        return await self._client.request(
            method,
            f"{ORDER_PATH}?{query}",
            headers=self._signer.headers(),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:200]}"
        if isinstance(body, dict) and "msg" in body:
            return f"{body['msg']} (code {body.get('code')})"
        return f"HTTP {response.status_code}: {body}"

    @staticmethod
    def parse_order(data: Dict[str, Any]) -> ExecutionResult:
        """
        Map an order response (placement or query) onto ExecutionResult.

        A NEW order with nothing executed is reported as a partial fill of
        zero so callers can still cancel it by id.
        """
        order_id = str(data.get("orderId", ""))
        status = data.get("status", "")
        executed = float(data.get("executedQty", 0) or 0)
        original = float(data.get("origQty", 0) or 0)
        quote = float(data.get("cummulativeQuoteQty", 0) or 0)
        price = float(data.get("price", 0) or 0)

        avg_price = quote / executed if executed > 0 else price
        fee = sum(float(fill.get("commission", 0) or 0) for fill in data.get("fills", []))

        if status == "FILLED":
            return OrderSuccess(order_id, executed, avg_price, fee)
        if status in ("NEW", "PARTIALLY_FILLED") or (executed > 0 and executed < original):
            return OrderPartialFill(order_id, executed, max(0.0, original - executed), avg_price)
        return OrderRejected(f"Order {order_id} {status.lower() or 'unknown'}")

    async def execute(
        self,
        signal: TradeSignal,
        quantity: float,
        order_type: OrderType,
        limit_price: Optional[float] = None,
    ) -> ExecutionResult:
        if not signal.is_actionable():
            return OrderRejected("Signal is not actionable")
        if order_type is not OrderType.MARKET and limit_price is None:
            return OrderRejected(f"{order_type.value} order requires a limit price")

        params = self.build_order_params(signal, quantity, order_type, limit_price)
        logger.log_trade(
            self._symbol,
            params["side"],
            quantity,
            limit_price,
            order_type.value,
            params=params,
        )

        try:
            response = await self._request("POST", params)
        except httpx.HTTPError as exc:
            logger.error(
                f"Order request failed: {exc}",
                category=LogCategory.EXECUTION,
                symbol=self._symbol,
            )
            return OrderError(f"Order request failed: {exc}", exc)

        if response.status_code >= 500:
            message = self._error_message(response)
            logger.error(f"Exchange error: {message}", category=LogCategory.EXECUTION, symbol=self._symbol)
            return OrderError(message)
        if response.status_code >= 400:
            message = self._error_message(response)
            logger.warning(f"Order rejected: {message}", category=LogCategory.EXECUTION, symbol=self._symbol)
            return OrderRejected(message)

        try:
            result = self.parse_order(response.json())
        except (ValueError, TypeError) as exc:
            return OrderError(f"Unreadable order response: {exc}", exc)

        logger.info(
            f"Order result: {type(result).__name__}",
            category=LogCategory.EXECUTION,
            symbol=self._symbol,
            result=repr(result),
        )
        return result

    async def cancel_order(self, order_id: str) -> bool:
        try:
            response = await self._request("DELETE", {"symbol": self._symbol, "orderId": order_id})
        except httpx.HTTPError as exc:
            logger.error(f"Cancel failed for {order_id}: {exc}", category=LogCategory.EXECUTION)
            return False

        if response.status_code != 200:
            logger.warning(
                f"Cancel rejected for {order_id}: {self._error_message(response)}",
                category=LogCategory.EXECUTION,
            )
            return False
        return True

    async def get_order_status(self, order_id: str) -> Optional[ExecutionResult]:
        try:
            response = await self._request("GET", {"symbol": self._symbol, "orderId": order_id})
        except httpx.HTTPError as exc:
            logger.error(f"Status query failed for {order_id}: {exc}", category=LogCategory.EXECUTION)
            return None

        if response.status_code != 200:
            logger.warning(
                f"Status query rejected for {order_id}: {self._error_message(response)}",
                category=LogCategory.EXECUTION,
            )
            return None

        try:
            return self.parse_order(response.json())
        except (ValueError, TypeError) as exc:
            logger.error(f"Unreadable status for {order_id}: {exc}", category=LogCategory.EXECUTION)
            return None
