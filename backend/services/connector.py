"""
Connector Interface.
Abstraction over a price source and an order sink.

Implementations:
- SimulationConnector: self-contained random walk, no I/O
- CoinbaseConnector / BinanceConnector (integrations/): live websocket feed
  plus signed REST order submission
"""

from abc import ABC, abstractmethod
from typing import Optional
import math
import random
import threading
import time

from config.risk_profiles import RiskLevel
from engine.signals import Signal
from services.notifications import NotificationSink


class ConnectorError(Exception):
    """Base exception for connector errors."""
    pass


class FeedConnectionError(ConnectorError):
    """Raised when a connector cannot establish its price feed."""
    pass


class PriceNotAvailableError(ConnectorError):
    """Raised by get_price() before the feed has delivered a price."""
    pass


class CredentialError(ConnectorError):
    """Raised when a live order is attempted without the required credentials."""
    pass


class LatestPriceCell:
    """
    Lock-guarded slot holding the most recent feed price.

    Written by the feed reader thread, read by the tick loop.
    """

    def __init__(self, source: str = "feed"):
        self._source = source
        self._price: Optional[float] = None
        self._lock = threading.Lock()

    def set(self, price: float) -> None:
        with self._lock:
            self._price = price

    def get(self) -> float:
        """
        Read the latest price without blocking.

        Raises:
            PriceNotAvailableError: If no price has been received yet
        """
        with self._lock:
            price = self._price
        if price is None:
            raise PriceNotAvailableError(f"price not available yet from {self._source}")
        return price

    def has_price(self) -> bool:
        with self._lock:
            return self._price is not None


class Connector(ABC):
    """
    Abstract connector interface.

    The bot engine owns exactly one connector per run; a new one is built
    on every start().
    """

    key: str = ""

    def __init__(self, sink: NotificationSink, risk_level: RiskLevel = RiskLevel.MODERATE):
        self.sink = sink
        self.risk_level = risk_level
        self.paper_trading = True
        self.symbol = ""

    @abstractmethod
    def connect(self, paper_trading: bool, symbol: str) -> None:
        """
        Open the price source.

        Args:
            paper_trading: Only log orders instead of submitting them
            symbol: Trading pair, e.g. BTCUSDT

        Raises:
            FeedConnectionError: If the source cannot be opened
        """
        pass

    @abstractmethod
    def get_price(self) -> float:
        """
        Latest price. Never blocks.

        Raises:
            PriceNotAvailableError: If no price is available
        """
        pass

    @abstractmethod
    def place_order(self, signal: Signal, price: float, symbol: str) -> None:
        """
        Act on a BUY/SELL signal.

        Raises:
            CredentialError: If a live order lacks credentials
        """
        pass

    def disconnect(self) -> None:
        """Optional: release the price source. Default is a no-op."""
        return None

    def log_paper_trade(self, signal: Signal, price: float, symbol: str) -> None:
        self.sink.log("success", f"[PAPER TRADE] Placed {signal.label} order for {symbol} at ${price:.2f}")


class SimulationConnector(Connector):
    """
    Simulated price feed.

    Random walk with a slow sinusoidal trend plus uniform noise, clamped to
    [MIN_PRICE, MAX_PRICE]. Orders are always paper trades.
    """

    key = "simulation"

    MIN_PRICE = 10.0
    MAX_PRICE = 1000.0

    def __init__(
        self,
        sink: NotificationSink,
        risk_level: RiskLevel = RiskLevel.MODERATE,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(sink, risk_level)
        self.rng = rng or random.Random()
        self.last_price = 0.0
        self.volatility = 0.0

    def connect(self, paper_trading: bool, symbol: str) -> None:
        self.paper_trading = paper_trading
        self.symbol = symbol
        self.sink.log("info", "Simulation Connector Initialized.")
        self.last_price = 100.0 + self.rng.random() * 50.0
        self.volatility = 0.02 + self.rng.random() * 0.03

    def get_price(self) -> float:
        trend = math.sin(time.time() / 100.0) * 0.001
        noise = (self.rng.random() - 0.5) * self.volatility
        self.last_price *= (1 + trend + noise)
        self.last_price = min(self.MAX_PRICE, max(self.MIN_PRICE, self.last_price))
        return self.last_price

    def place_order(self, signal: Signal, price: float, symbol: str) -> None:
        self.log_paper_trade(signal, price, symbol)
