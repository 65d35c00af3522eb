"""
API Data Models and Contracts.
Defines Pydantic models for request/response validation.

Request bodies reuse config.strategy_config.BotConfig directly.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from config.strategy_config import ConnectorDefinition, StrategyDefinition


# ============================================================================
# Bot Models
# ============================================================================

class BotStatusResponse(BaseModel):
    """Bot engine status snapshot."""
    is_running: bool = Field(..., description="Whether the tick loop is running")
    status: str = Field(default="IDLE", description="Last status text reported by the engine")
    symbol: Optional[str] = Field(default=None, description="Trading pair of the current or last run")
    connector: Optional[str] = Field(default=None, description="Connector key")
    strategy: Optional[str] = Field(default=None, description="Strategy key")
    paper_trading: bool = Field(default=True, description="Whether orders are only logged")
    tick_interval_seconds: Optional[int] = Field(default=None, description="Tick interval in seconds")
    history_length: int = Field(default=0, description="Prices currently held in history")
    current_price: float = Field(default=0.0, description="Most recent price")
    last_position: str = Field(default="HOLD", description="Last non-HOLD signal")
    last_signal: Optional[str] = Field(default=None, description="Last signal notified")
    trade_count: int = Field(default=0, description="Position changes")
    win_count: int = Field(default=0, description="Simulated winning trades")
    win_rate: float = Field(default=0.0, description="Winning trades as percent of all trades")
    profit_loss: float = Field(default=0.0, description="Equity minus initial equity")
    start_time: Optional[str] = Field(default=None, description="Run start timestamp ISO string")
    uptime_seconds: float = Field(default=0.0, description="Seconds since start while running")
    uptime: Optional[str] = Field(default=None, description="Last uptime notification (H:MM:SS)")
    indicators: Dict[str, float] = Field(default_factory=dict, description="Last chart indicator values")


class BotActionResponse(BaseModel):
    """Bot action response (start/stop)."""
    success: bool = Field(..., description="Whether action was successful")
    message: str = Field(..., description="Action result message")
    status: BotStatusResponse = Field(..., description="Bot status after the action")


# ============================================================================
# Catalog Models
# ============================================================================

class StrategyCatalogResponse(BaseModel):
    """Available strategies with default parameters."""
    strategies: List[StrategyDefinition] = Field(default_factory=list)


class ConnectorCatalogResponse(BaseModel):
    """Available connectors and the credential keys each expects."""
    connectors: List[ConnectorDefinition] = Field(default_factory=list)


# ============================================================================
# Event / Log Models
# ============================================================================

class BotEvent(BaseModel):
    """One buffered notification."""
    kind: str = Field(..., description="Notification kind (log, status, price, signal, performance, indicators)")
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(..., description="Event timestamp ISO string")


class BotEventsResponse(BaseModel):
    events: List[BotEvent] = Field(default_factory=list)
    total_count: int = Field(default=0)


class LogEntry(BaseModel):
    """Exported log line."""
    timestamp: str
    level: str
    message: str


class LogExportResponse(BaseModel):
    logs: List[LogEntry] = Field(default_factory=list)
    total_count: int = Field(default=0)


class LogClearResponse(BaseModel):
    cleared: int = Field(..., description="Number of log lines removed")
