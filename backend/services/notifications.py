"""
Notification Sink Interface.

One-way, fire-and-forget callbacks the bot engine uses to report status,
prices, signals, performance and log lines to whatever is watching it
(a UI, the API event buffer, or plain Python logging).
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional
import logging
import threading

LOG_LEVELS = ("info", "success", "warning", "error", "signal")

_PY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "signal": logging.INFO,
}


def format_duration(duration: timedelta) -> str:
    """Render an uptime as H:MM:SS, dropping sub-second precision."""
    total = int(max(0.0, duration.total_seconds()))
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


class NotificationSink(ABC):
    """
    Abstract notification sink.

    Implementations must not raise back into the engine and must be safe to
    call from the order worker threads as well as the tick loop.
    """

    @abstractmethod
    def log(self, level: str, message: str) -> None:
        """User-facing log line. level is one of info/success/warning/error/signal."""
        pass

    @abstractmethod
    def status(self, text: str) -> None:
        pass

    @abstractmethod
    def price_tick(self, price: float) -> None:
        pass

    @abstractmethod
    def signal(self, kind: str, price: float) -> None:
        """A BUY/SELL signal fired at price."""
        pass

    @abstractmethod
    def last_signal(self, kind: str) -> None:
        pass

    @abstractmethod
    def performance_snapshot(
        self,
        trade_count: int,
        win_rate_percent: float,
        current_price: float,
        profit_and_loss: float,
    ) -> None:
        pass

    @abstractmethod
    def uptime(self, duration: timedelta) -> None:
        pass

    @abstractmethod
    def indicator_snapshot(self, indicators: Dict[str, float]) -> None:
        """Chart indicator values. Only called with a non-empty mapping."""
        pass


class LoggingNotificationSink(NotificationSink):
    """Routes every notification into Python logging."""

    def __init__(self, name: str = "tickbot.events"):
        self._logger = logging.getLogger(name)

    def log(self, level, message):
        self._logger.log(_PY_LEVELS.get(level, logging.INFO), "[%s] %s", level.upper(), message)

    def status(self, text):
        self._logger.info("STATUS: %s", text)

    def price_tick(self, price):
        self._logger.debug("price=%.8f", price)

    def signal(self, kind, price):
        self._logger.info("signal=%s price=%.2f", kind, price)

    def last_signal(self, kind):
        self._logger.debug("last_signal=%s", kind)

    def performance_snapshot(self, trade_count, win_rate_percent, current_price, profit_and_loss):
        self._logger.debug(
            "trades=%d win_rate=%.1f%% price=%.2f pnl=%.2f",
            trade_count,
            win_rate_percent,
            current_price,
            profit_and_loss,
        )

    def uptime(self, duration):
        self._logger.debug("uptime=%s", format_duration(duration))

    def indicator_snapshot(self, indicators):
        self._logger.debug("indicators=%s", indicators)


@dataclass
class NotificationEvent:
    """One buffered notification."""
    kind: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBufferSink(NotificationSink):
    """
    Keeps the most recent notifications in memory for the API.

    Also tracks the latest value of each display field so a status request
    does not need to replay the buffer.
    """

    def __init__(self, max_events: int = 200):
        self._events: Deque[NotificationEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self.latest: Dict[str, Any] = {
            "status": "IDLE",
            "price": None,
            "last_signal": None,
            "performance": None,
            "uptime": None,
            "indicators": {},
        }

    def _record(self, kind: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._events.append(NotificationEvent(kind=kind, payload=payload))

    def log(self, level, message):
        self._record("log", {"level": level, "message": message})

    def status(self, text):
        self.latest["status"] = text
        self._record("status", {"text": text})

    def price_tick(self, price):
        self.latest["price"] = price
        self._record("price", {"price": price})

    def signal(self, kind, price):
        self._record("signal", {"kind": kind, "price": price})

    def last_signal(self, kind):
        self.latest["last_signal"] = kind

    def performance_snapshot(self, trade_count, win_rate_percent, current_price, profit_and_loss):
        snapshot = {
            "trade_count": trade_count,
            "win_rate": win_rate_percent,
            "current_price": current_price,
            "profit_loss": profit_and_loss,
        }
        self.latest["performance"] = snapshot
        self._record("performance", snapshot)

    def uptime(self, duration):
        self.latest["uptime"] = format_duration(duration)

    def indicator_snapshot(self, indicators):
        self.latest["indicators"] = dict(indicators)
        self._record("indicators", dict(indicators))

    def events(self, kind: Optional[str] = None) -> List[NotificationEvent]:
        """Buffered events, oldest first, optionally filtered by kind."""
        with self._lock:
            items = list(self._events)
        if kind:
            items = [event for event in items if event.kind == kind]
        return items

    def export_logs(self) -> List[Dict[str, Any]]:
        """Log lines in export form: timestamp, level, message."""
        return [
            {
                "timestamp": event.timestamp.isoformat(),
                "level": event.payload["level"],
                "message": event.payload["message"],
            }
            for event in self.events("log")
        ]

    def clear_logs(self) -> int:
        """Drop buffered log lines. Returns how many were removed."""
        with self._lock:
            kept = [event for event in self._events if event.kind != "log"]
            removed = len(self._events) - len(kept)
            self._events.clear()
            self._events.extend(kept)
        return removed


class FanOutSink(NotificationSink):
    """Forwards each notification to every child sink."""

    def __init__(self, *sinks: NotificationSink):
        self.sinks = list(sinks)

    def log(self, level, message):
        for sink in self.sinks:
            sink.log(level, message)

    def status(self, text):
        for sink in self.sinks:
            sink.status(text)

    def price_tick(self, price):
        for sink in self.sinks:
            sink.price_tick(price)

    def signal(self, kind, price):
        for sink in self.sinks:
            sink.signal(kind, price)

    def last_signal(self, kind):
        for sink in self.sinks:
            sink.last_signal(kind)

    def performance_snapshot(self, trade_count, win_rate_percent, current_price, profit_and_loss):
        for sink in self.sinks:
            sink.performance_snapshot(trade_count, win_rate_percent, current_price, profit_and_loss)

    def uptime(self, duration):
        for sink in self.sinks:
            sink.uptime(duration)

    def indicator_snapshot(self, indicators):
        for sink in self.sinks:
            sink.indicator_snapshot(indicators)
