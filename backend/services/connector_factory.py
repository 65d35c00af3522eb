"""
Connector factory.

Builds the connector named by a BotConfig. A new instance is created for
every run; connectors are never reused across start() calls.
"""

from typing import Optional

from config.settings import Settings, get_settings
from config.strategy_config import BotConfig, ConfigurationError
from integrations.binance_connector import BinanceConnector
from integrations.coinbase_connector import CoinbaseConnector
from services.connector import Connector, SimulationConnector
from services.notifications import NotificationSink
from services.order_dispatcher import OrderDispatcher

LIVE_CONNECTORS = {
    CoinbaseConnector.key: CoinbaseConnector,
    BinanceConnector.key: BinanceConnector,
}


def create_connector(
    config: BotConfig,
    sink: NotificationSink,
    dispatcher: Optional[OrderDispatcher] = None,
    settings: Optional[Settings] = None,
) -> Connector:
    """
    Create the connector selected by config.connector.

    Args:
        config: Run configuration
        sink: Notification sink the connector reports through
        dispatcher: Order dispatcher for live submissions
        settings: Process settings (feed URLs, timeouts)

    Returns:
        Unconnected connector instance

    Raises:
        ConfigurationError: If the connector key is unknown
    """
    key = config.connector.strip().lower()
    if key == SimulationConnector.key:
        return SimulationConnector(sink, risk_level=config.risk_level)

    connector_cls = LIVE_CONNECTORS.get(key)
    if connector_cls is None:
        raise ConfigurationError(f"Unknown connector: {config.connector}")
    return connector_cls(
        sink,
        risk_level=config.risk_level,
        credentials=config.connector_params,
        dispatcher=dispatcher,
        settings=settings or get_settings(),
    )
