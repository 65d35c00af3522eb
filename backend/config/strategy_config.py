"""
Strategy Configuration Module.
Defines the run configuration model plus the catalogs of available
strategies and connectors with their parameter definitions.
"""
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .risk_profiles import RiskLevel


class ConfigurationError(ValueError):
    """Raised when a run configuration names an unknown key or an out-of-range value."""
    pass


class StrategyParameter(BaseModel):
    """Represents a configurable strategy parameter."""
    name: str
    label: str
    value: float
    min_value: float = 0.0
    max_value: float = 100.0
    description: Optional[str] = None


class StrategyDefinition(BaseModel):
    """Catalog entry for a built-in strategy."""
    key: str
    name: str
    description: str
    parameters: List[StrategyParameter] = Field(default_factory=list)


class ConnectorDefinition(BaseModel):
    """Catalog entry for a price/order connector."""
    key: str
    name: str
    description: str
    credential_keys: List[str] = Field(default_factory=list)


class BotConfig(BaseModel):
    """
    Run configuration consumed by BotEngine.start().

    Accepts both snake_case field names and the camelCase keys used by
    the control UI (tickIntervalSeconds, paperTrading, ...).
    """
    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(..., min_length=1, description="Trading pair, e.g. BTCUSDT")
    tick_interval_seconds: int = Field(default=5, alias="tickIntervalSeconds")
    paper_trading: bool = Field(default=True, alias="paperTrading")
    connector: str = Field(default="simulation")
    connector_params: Dict[str, str] = Field(default_factory=dict, alias="connectorParams")
    strategy: str = Field(default="sma_crossover")
    strategy_params: Dict[str, float] = Field(default_factory=dict, alias="strategyParams")
    risk_level: RiskLevel = Field(default=RiskLevel.MODERATE, alias="riskLevel")

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()

    def redacted(self) -> Dict[str, Any]:
        """Config dump with credential values masked."""
        payload = self.model_dump(mode="json")
        payload["connector_params"] = {key: "***REDACTED***" for key in self.connector_params}
        return payload


STRATEGY_CATALOG: Dict[str, StrategyDefinition] = {
    "sma_crossover": StrategyDefinition(
        key="sma_crossover",
        name="SMA Crossover",
        description=(
            "Generates buy signals when the short SMA crosses above the long SMA, "
            "and sell signals when it crosses below. Best for trending markets."
        ),
        parameters=[
            StrategyParameter(name="sma_short_period", label="Short Period", value=10, min_value=2, max_value=50),
            StrategyParameter(name="sma_long_period", label="Long Period", value=25, min_value=5, max_value=100),
        ],
    ),
    "rsi_basic": StrategyDefinition(
        key="rsi_basic",
        name="RSI Basic",
        description=(
            "Uses the Relative Strength Index to identify overbought and oversold "
            "conditions. Good for range-bound markets."
        ),
        parameters=[
            StrategyParameter(name="rsi_period", label="RSI Period", value=14, min_value=5, max_value=30),
            StrategyParameter(name="rsi_overbought", label="Overbought Level", value=70, min_value=60, max_value=90),
            StrategyParameter(name="rsi_oversold", label="Oversold Level", value=30, min_value=10, max_value=40),
        ],
    ),
    "stochastic": StrategyDefinition(
        key="stochastic",
        name="Stochastic Oscillator",
        description=(
            "Measures the position of current price relative to its range over a "
            "specified period. Sensitive to market momentum."
        ),
        parameters=[
            StrategyParameter(name="period", label="Period", value=14, min_value=5, max_value=50),
            StrategyParameter(name="overbought", label="Overbought", value=80, min_value=70, max_value=95),
            StrategyParameter(name="oversold", label="Oversold", value=20, min_value=5, max_value=30),
        ],
    ),
    "bollinger": StrategyDefinition(
        key="bollinger",
        name="Bollinger Bands",
        description=(
            "Triggers trades when the price touches the upper or lower bands. "
            "Effective in volatile markets with mean reversion."
        ),
        parameters=[
            StrategyParameter(name="period", label="Period", value=20, min_value=10, max_value=50),
            StrategyParameter(name="std_dev", label="Std. Deviations", value=2, min_value=1, max_value=3),
        ],
    ),
}


CONNECTOR_CATALOG: Dict[str, ConnectorDefinition] = {
    "simulation": ConnectorDefinition(
        key="simulation",
        name="Simulation",
        description=(
            "Generates realistic price movements with trends and volatility for "
            "testing strategies without real money."
        ),
    ),
    "coinbase": ConnectorDefinition(
        key="coinbase",
        name="Coinbase",
        description="Connect to Coinbase Pro exchange. Requires API credentials with trading permissions.",
        credential_keys=["apiKey", "apiSecret", "secretPhrase"],
    ),
    "binance": ConnectorDefinition(
        key="binance",
        name="Binance",
        description="Connect to Binance exchange. Requires API credentials with trading permissions.",
        credential_keys=["apiKey", "apiSecret"],
    ),
}


def get_default_parameters(strategy: str) -> Dict[str, float]:
    """
    Get default parameter values for a strategy.

    Raises:
        KeyError: If the strategy is not in the catalog
    """
    definition = STRATEGY_CATALOG[strategy]
    return {param.name: float(param.value) for param in definition.parameters}


def resolve_strategy_params(strategy: str, params: Optional[Dict[str, float]] = None) -> Dict[str, float]:
    """
    Fill parameters missing from params with catalog defaults.

    Explicit values are kept as given. Unknown strategies get params back unchanged
    so the engine can report the bad key itself.
    """
    resolved = dict(params or {})
    if strategy not in STRATEGY_CATALOG:
        return resolved
    for name, value in get_default_parameters(strategy).items():
        resolved.setdefault(name, value)
    return resolved
