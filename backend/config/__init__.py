"""
Configuration module for TickBot backend.

Provides settings management using pydantic-settings.
Supports loading from environment variables and .env files.
"""

from .settings import Settings, get_settings, reset_settings
from .paths import (
    APP_IDENTIFIER,
    resolve_app_data_dir,
    default_log_directory,
)
from .risk_profiles import RiskLevel, get_order_notional
from .strategy_config import (
    BotConfig,
    ConfigurationError,
    STRATEGY_CATALOG,
    CONNECTOR_CATALOG,
    resolve_strategy_params,
)

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "APP_IDENTIFIER",
    "resolve_app_data_dir",
    "default_log_directory",
    "RiskLevel",
    "get_order_notional",
    "BotConfig",
    "ConfigurationError",
    "STRATEGY_CATALOG",
    "CONNECTOR_CATALOG",
    "resolve_strategy_params",
]
