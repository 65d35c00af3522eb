"""
Bot Manager - application-scoped owner of the bot engine.

One instance lives on app.state; tests build their own.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import threading

from config.settings import Settings, get_settings
from config.strategy_config import BotConfig
from engine.bot_engine import BotEngine, ConnectorFactory
from services.notifications import EventBufferSink, FanOutSink, LoggingNotificationSink

logger = logging.getLogger(__name__)


class BotManager:
    """
    Wraps a BotEngine with an in-memory event buffer.

    Start/stop are serialized with a lock so concurrent API calls cannot
    interleave them.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        connector_factory: Optional[ConnectorFactory] = None,
    ):
        self.settings = settings or get_settings()
        self.events = EventBufferSink(max_events=self.settings.event_buffer_size)
        self.sink = FanOutSink(self.events, LoggingNotificationSink())
        self.engine = BotEngine(self.sink, settings=self.settings, connector_factory=connector_factory)
        self._lock = threading.Lock()

    def start(self, config: BotConfig) -> Dict[str, Any]:
        with self._lock:
            if self.engine.is_running:
                return self._result(False, "Bot is already running")
            attempted_at = datetime.now(timezone.utc)
            started = self.engine.start(config)
        if started:
            return self._result(True, f"Bot started for {config.symbol}")
        return self._result(False, self._last_error(since=attempted_at) or "Bot failed to start")

    def stop(self) -> Dict[str, Any]:
        with self._lock:
            stopped = self.engine.stop()
        if stopped:
            return self._result(True, "Bot stopped")
        return self._result(False, "Bot is not running")

    def shutdown(self) -> None:
        """Stop a running bot; used on application shutdown."""
        with self._lock:
            if self.engine.is_running:
                self.engine.stop()
                logger.info("Bot stopped during shutdown")

    def get_status(self) -> Dict[str, Any]:
        status = self.engine.get_status()
        latest = self.events.latest
        status.update({
            "status": latest["status"],
            "last_signal": latest["last_signal"],
            "uptime": latest["uptime"],
            "indicators": latest["indicators"],
        })
        return status

    def _last_error(self, since: datetime) -> Optional[str]:
        for event in reversed(self.events.events("log")):
            if event.timestamp < since:
                break
            if event.payload["level"] == "error":
                return event.payload["message"]
        return None

    def _result(self, success: bool, message: str) -> Dict[str, Any]:
        return {"success": success, "message": message, "status": self.get_status()}
