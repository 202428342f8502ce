"""
Structured Logging for the Imbalance Trader
===========================================

Every component of the decision pipeline logs through one categorised
logger so that a single cycle can be reconstructed afterwards:

- MARKET_DATA: feed connects, reconnects, dropped payloads
- SIGNAL: imbalance readings and flow confirmations
- EXECUTION: order type decisions and executor responses
- RISK: gate rejections, loss streaks, cooldowns
- AUDIT: every order handed to an executor

LOGGING ON A DECISION LOOP:
===========================

1. HOT PATH:
   - The engine evaluates a snapshot on every depth update (100ms on
     Binance partial-book streams). Debug logging there is cheap only
     when the level is filtered out, so per-cycle detail is DEBUG.
   - Rejections that explain why nothing traded are INFO.

2. STRUCTURE:
   - The file handler writes one JSON object per line with the category,
     symbol and keyword context attached to the call.
   - The console handler stays human readable.

3. LATENCY:
   - measure_latency() wraps a block, records the duration in a rolling
     window and exposes p50/p99 through get_latency_stats().
"""

import logging
import sys
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, Optional
import json
import threading

import numpy as np


class LogCategory(Enum):
    """Log categories used for filtering the structured stream."""
    MARKET_DATA = "market_data"
    SIGNAL = "signal"
    EXECUTION = "execution"
    RISK = "risk"
    PERFORMANCE = "performance"
    SYSTEM = "system"
    AUDIT = "audit"


@dataclass
class LatencyMeasurement:
    """
    Timing of one named operation.

    Durations come from time.perf_counter_ns(), which is monotonic and
    unaffected by wall-clock adjustments.
    """
    operation: str
    start_ns: int
    end_ns: int = 0
    category: LogCategory = LogCategory.PERFORMANCE
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ns(self) -> int:
        return self.end_ns - self.start_ns

    @property
    def duration_us(self) -> float:
        return self.duration_ns / 1000.0

    @property
    def duration_ms(self) -> float:
        return self.duration_ns / 1_000_000.0


class LatencyTracker:
    """
    Rolling latency window per operation name.

    Only the last `window_size` durations are kept for each operation.
    """

    def __init__(self, window_size: int = 5000):
        self._window_size = window_size
        self._measurements: Dict[str, Deque[int]] = {}
        self._lock = threading.Lock()

    def record(self, measurement: LatencyMeasurement) -> None:
        with self._lock:
            if measurement.operation not in self._measurements:
                self._measurements[measurement.operation] = deque(maxlen=self._window_size)
            self._measurements[measurement.operation].append(measurement.duration_ns)

    def get_stats(self, operation: str) -> Dict[str, float]:
        """
        Percentile summary for one operation.

        Returns an empty dict when nothing has been recorded yet.
        """
        with self._lock:
            samples = self._measurements.get(operation)
            if not samples:
                return {}
            values = np.fromiter(samples, dtype=np.int64)

        return {
            "count": int(values.size),
            "min_ns": float(values.min()),
            "max_ns": float(values.max()),
            "mean_ns": float(values.mean()),
            "p50_ns": float(np.percentile(values, 50)),
            "p99_ns": float(np.percentile(values, 99)),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            operations = list(self._measurements.keys())
        return {op: self.get_stats(op) for op in operations}

    def clear(self) -> None:
        with self._lock:
            self._measurements.clear()


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter; one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "category"):
            log_data["category"] = record.category
        if hasattr(record, "symbol"):
            log_data["symbol"] = record.symbol
        if hasattr(record, "extra_data") and record.extra_data:
            log_data["data"] = record.extra_data
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


CONSOLE_FORMAT = '%(asctime)s.%(msecs)03d | %(levelname)-8s | %(message)s'


class TradingLogger:
    """
    Categorised logger shared by every component.

    Wraps a stdlib logger named "imbalance_trader". Keyword arguments
    passed to the logging calls travel as structured context and show
    up under "data" in the JSON stream.
    """

    _instance: Optional['TradingLogger'] = None
    _latency_tracker: LatencyTracker = LatencyTracker()

    def __init__(self, name: str = "imbalance_trader", level: int = logging.INFO):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = True
        self._file_handler: Optional[logging.Handler] = None

        if not any(getattr(h, "_trader_console", False) for h in self._logger.handlers):
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            console._trader_console = True
            self._logger.addHandler(console)

    @classmethod
    def get_instance(cls) -> 'TradingLogger':
        if cls._instance is None:
            cls._instance = TradingLogger()
        return cls._instance

    @classmethod
    def get_latency_tracker(cls) -> LatencyTracker:
        return cls._latency_tracker

    @property
    def stdlib_logger(self) -> logging.Logger:
        return self._logger

    def configure(self, level: str = "INFO", log_file: Optional[str] = None) -> None:
        """
        Apply runtime settings.

        Args:
            level: Level name such as "DEBUG" or "WARNING"
            log_file: When given, structured JSON lines are appended here
        """
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        if self._file_handler is not None:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

        if log_file:
            handler = logging.FileHandler(log_file)
            handler.setFormatter(StructuredFormatter())
            self._logger.addHandler(handler)
            self._file_handler = handler

    def log(
        self,
        level: int,
        message: str,
        category: LogCategory = LogCategory.SYSTEM,
        symbol: Optional[str] = None,
        exc_info: Any = None,
        **kwargs
    ) -> None:
        extra = {
            "category": category.value,
            "extra_data": kwargs
        }
        if symbol:
            extra["symbol"] = symbol

        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **kwargs) -> None:
        self.log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log(logging.CRITICAL, message, **kwargs)

    @contextmanager
    def measure_latency(
        self,
        operation: str,
        category: LogCategory = LogCategory.PERFORMANCE,
        log_level: int = logging.DEBUG,
        **metadata
    ):
        """
        Time the wrapped block and record it.

        Usage:
            with logger.measure_latency("engine_cycle", symbol="BTCUSDT"):
                result = await engine.on_market_update(snapshot)
        """
        measurement = LatencyMeasurement(
            operation=operation,
            start_ns=time.perf_counter_ns(),
            category=category,
            metadata=metadata
        )

        try:
            yield measurement
        finally:
            measurement.end_ns = time.perf_counter_ns()
            self._latency_tracker.record(measurement)
            self.log(
                log_level,
                f"{operation} completed in {measurement.duration_us:.1f}us",
                category=category,
                latency_ns=measurement.duration_ns,
                **metadata
            )

    def log_trade(
        self,
        symbol: str,
        side: str,
        quantity: float,
        price: Optional[float],
        order_type: str,
        **kwargs
    ) -> None:
        """Audit record for an order handed to an executor."""
        price_text = f"{price:.8f}" if price is not None else "MKT"
        self.log(
            logging.INFO,
            f"ORDER: {side} {quantity} {symbol} {order_type} @ {price_text}",
            category=LogCategory.AUDIT,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            order_type=order_type,
            **kwargs
        )

    def log_signal(
        self,
        signal_name: str,
        symbol: str,
        value: float,
        confidence: float,
        **kwargs
    ) -> None:
        self.log(
            logging.DEBUG,
            f"SIGNAL: {signal_name} {symbol} = {value:.6f} (conf: {confidence:.2f})",
            category=LogCategory.SIGNAL,
            symbol=symbol,
            signal_name=signal_name,
            signal_value=value,
            confidence=confidence,
            **kwargs
        )

    def log_risk_event(
        self,
        event_type: str,
        message: str,
        severity: str = "WARNING",
        **kwargs
    ) -> None:
        """
        Risk events are WARNING by default; anything else is CRITICAL.
        """
        level = logging.WARNING if severity == "WARNING" else logging.CRITICAL
        self.log(
            level,
            f"RISK [{event_type}]: {message}",
            category=LogCategory.RISK,
            event_type=event_type,
            severity=severity,
            **kwargs
        )


logger = TradingLogger.get_instance()


def get_logger() -> TradingLogger:
    return logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    logger.configure(level=level, log_file=log_file)


def get_latency_stats() -> Dict[str, Dict[str, float]]:
    return TradingLogger.get_latency_tracker().get_all_stats()
