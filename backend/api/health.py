"""
Health check payload.

Reports the bot engine and the live feed instead of a static response.
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from integrations.live_feed import FeedState, LiveFeedConnector

_startup_time: float = time.monotonic()
_startup_utc: str = datetime.now(timezone.utc).isoformat()

APP_VERSION = "0.1.0"


def mark_startup() -> None:
    """Call once at startup to record the process start time."""
    global _startup_time, _startup_utc
    _startup_time = time.monotonic()
    _startup_utc = datetime.now(timezone.utc).isoformat()


def build_health_response(bot_manager: Optional[Any] = None) -> Dict[str, Any]:
    """
    Build the health check payload.

    status is "degraded" when a running bot's live feed has closed or
    errored (feeds are never reopened), otherwise "healthy".
    """
    checks: Dict[str, Dict[str, Any]] = {}
    degraded = False

    if bot_manager is None:
        checks["bot"] = {"status": "unavailable"}
        degraded = True
    else:
        engine = bot_manager.engine
        checks["bot"] = {"status": "running" if engine.is_running else "idle"}
        connector = engine.state.connector
        if isinstance(connector, LiveFeedConnector):
            feed_state = connector.state
            checks["feed"] = {"status": feed_state.value, "exchange": connector.exchange_name}
            if engine.is_running and feed_state in {FeedState.CLOSED, FeedState.ERRORED}:
                degraded = True

    return {
        "status": "degraded" if degraded else "healthy",
        "service": "TickBot Backend",
        "version": APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _startup_time, 1),
        "started_at": _startup_utc,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
