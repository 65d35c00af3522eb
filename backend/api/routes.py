"""
API Routes.
Control surface for the bot engine: catalogs, start/stop, status, events and logs.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.bot_manager import BotManager
from api.models import (
    BotActionResponse,
    BotEvent,
    BotEventsResponse,
    BotStatusResponse,
    ConnectorCatalogResponse,
    LogClearResponse,
    LogEntry,
    LogExportResponse,
    StrategyCatalogResponse,
)
from config.strategy_config import (
    BotConfig,
    CONNECTOR_CATALOG,
    STRATEGY_CATALOG,
    resolve_strategy_params,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_bot_manager(request: Request) -> BotManager:
    """Resolve the application's BotManager from app.state."""
    manager = getattr(request.app.state, "bot_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Bot manager is not initialized")
    return manager


# ============================================================================
# Catalog Endpoints
# ============================================================================

@router.get("/catalog/strategies", response_model=StrategyCatalogResponse, tags=["Catalog"])
async def get_strategy_catalog():
    """List built-in strategies with their default parameters."""
    return StrategyCatalogResponse(strategies=list(STRATEGY_CATALOG.values()))


@router.get("/catalog/connectors", response_model=ConnectorCatalogResponse, tags=["Catalog"])
async def get_connector_catalog():
    """List available connectors and the credential keys they expect."""
    return ConnectorCatalogResponse(connectors=list(CONNECTOR_CATALOG.values()))


# ============================================================================
# Bot Lifecycle Endpoints
# ============================================================================

@router.post("/bot/start", response_model=BotActionResponse, tags=["Bot"])
def start_bot(config: BotConfig, manager: BotManager = Depends(get_bot_manager)):
    """
    Start the bot with the given run configuration.
    Missing strategy parameters are filled from the catalog defaults.
    Returns 409 when the bot is already running or fails to start.
    """
    config = config.model_copy(
        update={"strategy_params": resolve_strategy_params(config.strategy, config.strategy_params)}
    )
    logger.info("Start requested: %s", config.redacted())
    result = manager.start(config)
    if not result["success"]:
        raise HTTPException(status_code=409, detail=result["message"])
    return BotActionResponse(**result)


@router.post("/bot/stop", response_model=BotActionResponse, tags=["Bot"])
def stop_bot(manager: BotManager = Depends(get_bot_manager)):
    """Stop the running bot. Returns 409 when the bot is idle."""
    result = manager.stop()
    if not result["success"]:
        raise HTTPException(status_code=409, detail=result["message"])
    return BotActionResponse(**result)


@router.get("/bot/status", response_model=BotStatusResponse, tags=["Bot"])
async def get_bot_status(manager: BotManager = Depends(get_bot_manager)):
    return BotStatusResponse(**manager.get_status())


# ============================================================================
# Event / Log Endpoints
# ============================================================================

@router.get("/bot/events", response_model=BotEventsResponse, tags=["Bot"])
async def get_bot_events(
    kind: Optional[str] = Query(default=None, description="Filter by notification kind"),
    limit: int = Query(default=100, ge=1, le=1000),
    manager: BotManager = Depends(get_bot_manager),
):
    """Buffered notifications, oldest first. limit keeps the most recent."""
    events = manager.events.events(kind)
    events = events[-limit:]
    return BotEventsResponse(
        events=[BotEvent(**event.to_dict()) for event in events],
        total_count=len(events),
    )


@router.get("/bot/logs", response_model=LogExportResponse, tags=["Bot"])
async def export_bot_logs(manager: BotManager = Depends(get_bot_manager)):
    logs = manager.events.export_logs()
    return LogExportResponse(logs=[LogEntry(**entry) for entry in logs], total_count=len(logs))


@router.delete("/bot/logs", response_model=LogClearResponse, tags=["Bot"])
async def clear_bot_logs(manager: BotManager = Depends(get_bot_manager)):
    return LogClearResponse(cleared=manager.events.clear_logs())
