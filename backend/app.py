"""
TickBot FastAPI Backend
Main application entry point.

Production features:
- Health check reporting bot and live feed status
- Request correlation IDs for log tracing
- Structured JSON logging plus a file log
- Optional API-key authentication
- Rate limiting
- Running bot stopped on shutdown
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.gzip import GZipMiddleware
import logging
import uvicorn

from api.bot_manager import BotManager
from api.health import APP_VERSION, build_health_response, mark_startup
from api.middleware import (
    api_auth_middleware,
    configure_structured_logging,
    correlation_id_middleware,
    limiter,
    rate_limit_exceeded_handler,
    security_logging_middleware,
)
from api.routes import router as api_router
from config.settings import get_settings
from services.logging_service import configure_file_logging

logger = logging.getLogger(__name__)


def _parse_bool_like(value: str | None) -> bool | None:
    raw = str(value or "").strip().lower()
    if not raw:
        return None
    if raw in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "f", "no", "n", "off"}:
        return False
    return None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Configure logging, create the bot manager, and stop the bot on shutdown."""
    settings = get_settings()
    try:
        configure_file_logging(settings.log_directory)
    except OSError:
        logger.warning("File logging unavailable at %s", settings.log_directory, exc_info=True)
    configure_structured_logging(settings.log_level)
    mark_startup()
    logger.info("TickBot backend starting up (env=%s)", settings.environment)

    if settings.environment == "production" and not settings.api_auth_key:
        logger.warning(
            "Production environment detected but TICKBOT_API_KEY is not set. "
            "API authentication is disabled."
        )

    if getattr(app.state, "bot_manager", None) is None:
        app.state.bot_manager = BotManager(settings=settings)

    try:
        yield
    finally:
        logger.info("Initiating shutdown...")
        app.state.bot_manager.shutdown()
        logger.info("Shutdown complete")


app = FastAPI(
    title="TickBot API",
    description="Live market-data strategy engine",
    version=APP_VERSION,
    lifespan=_lifespan,
    openapi_tags=[
        {"name": "Catalog", "description": "Available strategies and connectors"},
        {"name": "Bot", "description": "Bot lifecycle, status, events and logs"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:1420", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _security_logging(request: Request, call_next):
    return await security_logging_middleware(request, call_next)


@app.middleware("http")
async def _api_auth(request: Request, call_next):
    return await api_auth_middleware(request, call_next)


# Outermost middleware: registered last.
@app.middleware("http")
async def _correlation_id(request: Request, call_next):
    return await correlation_id_middleware(request, call_next)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "TickBot API"}


@app.get("/status")
async def status(request: Request):
    """Health check: bot state and live feed state."""
    return build_health_response(getattr(request.app.state, "bot_manager", None))


app.include_router(api_router)


if __name__ == "__main__":
    reload_enabled = bool(_parse_bool_like(os.getenv("TICKBOT_BACKEND_RELOAD")))
    logger.info("Backend bootstrap: uvicorn reload=%s", reload_enabled)
    uvicorn.run(
        "app:app",
        host="127.0.0.1",
        port=8000,
        reload=reload_enabled,
    )
