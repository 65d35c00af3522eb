"""
Application Settings and Configuration.

Loads configuration from environment variables and config files.
Covers engine limits, live feed endpoints and API settings.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from .paths import default_log_directory


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        LOG_LEVEL: Root log level (default: INFO)
        TICKBOT_HISTORY_CAPACITY: Max prices kept in rolling history (default: 200)
        TICKBOT_FEED_CONNECT_TIMEOUT: Live feed handshake timeout in seconds (default: 10)
        TICKBOT_WIN_PROBABILITY: Simulated win probability per position change (default: 0.6)
    """

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_directory: str = Field(default_factory=default_log_directory, alias="TICKBOT_LOG_DIR")

    # Engine Configuration
    history_capacity: int = Field(default=200, alias="TICKBOT_HISTORY_CAPACITY", ge=1)
    min_tick_interval_seconds: int = Field(default=1, alias="TICKBOT_MIN_TICK_INTERVAL", ge=1)
    max_tick_interval_seconds: int = Field(default=60, alias="TICKBOT_MAX_TICK_INTERVAL", ge=1)
    price_alert_threshold_pct: float = Field(default=5.0, alias="TICKBOT_PRICE_ALERT_PCT", gt=0)
    simulated_win_probability: float = Field(default=0.6, alias="TICKBOT_WIN_PROBABILITY", ge=0, le=1)
    initial_equity: float = Field(default=10000.0, alias="TICKBOT_INITIAL_EQUITY")

    # Live feed / order submission
    feed_connect_timeout_seconds: float = Field(default=10.0, alias="TICKBOT_FEED_CONNECT_TIMEOUT", gt=0)
    order_workers: int = Field(default=4, alias="TICKBOT_ORDER_WORKERS", ge=1)
    max_pending_orders: int = Field(default=16, alias="TICKBOT_MAX_PENDING_ORDERS", ge=1)
    order_http_timeout_seconds: float = Field(default=10.0, alias="TICKBOT_ORDER_HTTP_TIMEOUT", gt=0)

    coinbase_ws_url: str = Field(default="wss://ws-feed.pro.coinbase.com", alias="TICKBOT_COINBASE_WS_URL")
    coinbase_rest_url: str = Field(default="https://api.pro.coinbase.com", alias="TICKBOT_COINBASE_REST_URL")
    binance_ws_url: str = Field(default="wss://stream.binance.com:9443/ws", alias="TICKBOT_BINANCE_WS_URL")
    binance_rest_url: str = Field(default="https://api.binance.com", alias="TICKBOT_BINANCE_REST_URL")

    # Notification buffer exposed by the API
    event_buffer_size: int = Field(default=200, alias="TICKBOT_EVENT_BUFFER_SIZE", ge=1)

    # API authentication (optional for local use)
    api_auth_key: Optional[str] = Field(default=None, alias="TICKBOT_API_KEY")

    @field_validator("api_auth_key")
    @classmethod
    def strip_api_key(cls, v):
        """Strip whitespace from API key to prevent authentication failures."""
        return v.strip() if v else v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
