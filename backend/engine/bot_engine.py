"""
Bot Engine Module.
Owns one bot run at a time: connector lifecycle, the periodic tick loop,
price history, signal evaluation and the notifications that go with them.

State machine: Idle -> Running -> Idle.

Threads:
- the caller (start/stop)
- one loop thread per run, which is the only writer of history,
  indicator memory and signal state
- connector-owned threads (live feed reader, order dispatcher workers),
  which only touch the connector's price cell and the notification sink
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional
import logging
import random
import threading

from config.settings import Settings, get_settings
from config.strategy_config import BotConfig, ConfigurationError, resolve_strategy_params
from engine.performance import PerformanceTracker
from engine.signals import IndicatorMemory, Signal, get_signal_generator
from services.connector import Connector, ConnectorError, CredentialError
from services.connector_factory import create_connector
from services.notifications import NotificationSink
from services.order_dispatcher import OrderDispatcher

logger = logging.getLogger(__name__)

__all__ = [
    "BotEngine",
    "BotState",
    "ConfigurationError",
    "PriceHistory",
]

ConnectorFactory = Callable[[BotConfig, NotificationSink, OrderDispatcher, Settings], Connector]


class PriceHistory:
    """Bounded newest-last price history. The oldest price is dropped once full."""

    def __init__(self, capacity: int = 200):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._prices: Deque[float] = deque(maxlen=capacity)

    def append(self, price: float) -> None:
        self._prices.append(price)

    def latest(self) -> float:
        """Most recent price, or 0.0 when empty."""
        if not self._prices:
            return 0.0
        return self._prices[-1]

    def as_list(self) -> List[float]:
        return list(self._prices)

    def __len__(self) -> int:
        return len(self._prices)


@dataclass
class BotState:
    """Everything one engine carries between ticks."""
    config: Optional[BotConfig] = None
    is_running: bool = False
    prices: PriceHistory = field(default_factory=PriceHistory)
    connector: Optional[Connector] = None
    memory: IndicatorMemory = field(default_factory=IndicatorMemory)
    last_position: Signal = Signal.HOLD
    performance: PerformanceTracker = field(default_factory=PerformanceTracker)
    start_time: Optional[datetime] = None
    last_price_alert: float = 0.0


class BotEngine:
    """
    Single-bot engine.

    Not a singleton: the API keeps one per application context and tests
    can build as many as they like. History, counters and indicator memory
    carry over from one run to the next on the same engine; only the
    connector is replaced on each start().
    """

    def __init__(
        self,
        sink: NotificationSink,
        settings: Optional[Settings] = None,
        connector_factory: Optional[ConnectorFactory] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the engine.

        Args:
            sink: Where status, prices, signals and log lines are reported
            settings: Process settings (defaults to get_settings())
            connector_factory: Builds the connector for a run (defaults to create_connector)
            rng: Random source for simulated trade outcomes
        """
        self.sink = sink
        self.settings = settings or get_settings()
        self.connector_factory = connector_factory or create_connector
        self.state = BotState(
            prices=PriceHistory(self.settings.history_capacity),
            performance=PerformanceTracker(
                win_probability=self.settings.simulated_win_probability,
                initial_equity=self.settings.initial_equity,
                rng=rng,
            ),
        )
        self._stop_event: Optional[threading.Event] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._dispatcher: Optional[OrderDispatcher] = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def validate_config(self, config: BotConfig) -> None:
        """
        Check the parts of a run configuration the schema does not.

        Raises:
            ConfigurationError: If the tick interval is out of range, the strategy
                is unknown or a lookback period is below one price
        """
        minimum = self.settings.min_tick_interval_seconds
        maximum = self.settings.max_tick_interval_seconds
        if config.tick_interval_seconds < minimum:
            raise ConfigurationError(f"Tick interval must be at least {minimum} second(s).")
        if config.tick_interval_seconds > maximum:
            raise ConfigurationError(f"Tick interval must be at most {maximum} seconds.")
        try:
            get_signal_generator(config.strategy)
        except KeyError as exc:
            raise ConfigurationError(exc.args[0]) from None

        params = resolve_strategy_params(config.strategy, config.strategy_params)
        for name, value in params.items():
            if name.endswith("period") and int(value) < 1:
                raise ConfigurationError(f"Strategy parameter {name} must be at least 1.")

    def start(self, config: BotConfig) -> bool:
        """
        Connect and launch the tick loop.

        Configuration and connection failures are reported through the
        sink and leave the engine Idle.

        Returns:
            True if the bot is now running
        """
        if self.state.is_running:
            self.sink.log("warning", "Bot is already running.")
            return False

        try:
            self.validate_config(config)
        except ConfigurationError as exc:
            self.sink.log("error", str(exc))
            return False

        previous = self._loop_thread
        if previous is not None and previous.is_alive():
            # A tick from the last run may still be in flight.
            previous.join()

        config = config.model_copy(
            update={"strategy_params": resolve_strategy_params(config.strategy, config.strategy_params)}
        )
        dispatcher = OrderDispatcher(
            max_workers=self.settings.order_workers,
            max_pending=self.settings.max_pending_orders,
        )

        try:
            connector = self.connector_factory(config, self.sink, dispatcher, self.settings)
        except ConfigurationError as exc:
            dispatcher.shutdown()
            self.sink.log("error", f"Failed to initialize connector: {exc}")
            return False

        try:
            connector.connect(config.paper_trading, config.symbol)
        except ConnectorError as exc:
            dispatcher.shutdown()
            self.sink.log("error", f"Failed to connect: {exc}")
            return False

        self.state.config = config
        self.state.connector = connector
        self.state.is_running = True
        self.state.start_time = datetime.now(timezone.utc)
        self._dispatcher = dispatcher
        self._stop_event = threading.Event()

        self.sink.status(f"RUNNING - {config.symbol}")
        self.sink.log("success", "Bot started successfully.")
        self._emit_performance(self.current_price())
        logger.info("Bot started: %s", config.redacted())

        self._loop_thread = threading.Thread(
            target=self._run_loop,
            args=(self._stop_event, float(config.tick_interval_seconds)),
            name="tickbot-loop",
            daemon=True,
        )
        self._loop_thread.start()
        return True

    def stop(self) -> bool:
        """
        Stop the running bot.

        The loop thread is signalled but not joined; a tick already in
        progress finishes on its own without recording its price. The
        next start() waits for that thread to exit.

        Returns:
            True if a running bot was stopped
        """
        if not self.state.is_running:
            self.sink.log("warning", "Bot is not running.")
            return False

        self.state.is_running = False
        connector = self.state.connector
        if connector is not None:
            try:
                connector.disconnect()
            except ConnectorError as exc:
                self.sink.log("error", f"Error disconnecting connector: {exc}")
        if self._stop_event is not None:
            self._stop_event.set()
        if self._dispatcher is not None:
            self._dispatcher.shutdown()

        self.sink.status("STOPPED")
        self.sink.log("error", "Bot stopped by user.")
        logger.info("Bot stopped")
        return True

    def _run_loop(self, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.wait(interval):
            self.tick(stop_event)
        self.sink.log("info", "Bot loop stopped.")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, stop_event: Optional[threading.Event] = None) -> Optional[Signal]:
        """
        Run one tick: fetch, record, notify, evaluate, alert.

        A tick whose run was stopped while the price was being fetched
        returns without touching history or signal state.

        Returns:
            The signal for this tick, or None if the price fetch failed
        """
        config = self.state.config
        connector = self.state.connector
        if config is None or connector is None:
            return None

        try:
            price = connector.get_price()
        except ConnectorError as exc:
            self.sink.log("error", f"Failed to get price: {exc}")
            return None

        if stop_event is not None and stop_event.is_set():
            return None

        self.state.prices.append(price)
        self.sink.price_tick(price)
        if self.state.start_time is not None:
            self.sink.uptime(datetime.now(timezone.utc) - self.state.start_time)
        self._emit_performance(price)
        self.sink.log("info", f"New price for {config.symbol}: ${price:.2f}")

        indicators = self.display_indicators()
        if indicators:
            self.sink.indicator_snapshot(indicators)

        signal = self.run_strategy()

        self.check_price_alert(price)
        return signal

    def display_indicators(self) -> Dict[str, float]:
        """Chart values for the active strategy; empty when none apply."""
        config = self.state.config
        if config is None:
            return {}
        try:
            generator = get_signal_generator(config.strategy)
        except KeyError:
            return {}
        return generator.display_indicators(self.state.prices.as_list(), config.strategy_params)

    def run_strategy(self) -> Signal:
        """
        Evaluate the active strategy and act on a BUY/SELL.

        A non-HOLD signal always goes to the connector. The trade counter
        moves only when the signal differs from the last position.
        """
        config = self.state.config
        if config is None:
            return Signal.HOLD
        try:
            generator = get_signal_generator(config.strategy)
        except KeyError:
            self.sink.log("error", "Strategy not found")
            return Signal.HOLD

        signal = generator.generate(self.state.prices.as_list(), config.strategy_params, self.state.memory)
        if signal == Signal.HOLD:
            return signal

        price = self.state.prices.latest()
        if self.state.connector is not None:
            try:
                self.state.connector.place_order(signal, price, config.symbol)
            except CredentialError as exc:
                logger.warning("Order rejected: %s", exc)

        if signal != self.state.last_position:
            self.state.performance.record_position_change()
        self.state.last_position = signal

        self.sink.log("signal", f"{signal.label} signal triggered")
        self.sink.signal(signal.label, price)
        self.sink.last_signal(signal.label)
        return signal

    def check_price_alert(self, price: float) -> Optional[str]:
        """
        Compare price against the alert baseline.

        The first price only sets the baseline. A move of at least the
        configured threshold emits a warning and moves the baseline.

        Returns:
            "UP" or "DOWN" when an alert fired, else None
        """
        baseline = self.state.last_price_alert
        if baseline == 0:
            self.state.last_price_alert = price
            return None

        change = abs(price - baseline) / baseline * 100
        if change < self.settings.price_alert_threshold_pct:
            return None

        direction = "DOWN" if price < baseline else "UP"
        symbol = self.state.config.symbol if self.state.config else ""
        self.sink.log(
            "warning",
            f"PRICE ALERT: {symbol} moved {direction} by {change:.2f}% "
            f"(from ${baseline:.2f} to ${price:.2f})",
        )
        self.state.last_price_alert = price
        return direction

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def win_rate(self) -> float:
        return self.state.performance.win_rate()

    def current_price(self) -> float:
        return self.state.prices.latest()

    def profit_loss(self) -> float:
        return self.state.performance.profit_loss()

    def _emit_performance(self, price: float) -> None:
        performance = self.state.performance
        self.sink.performance_snapshot(
            performance.trade_count,
            performance.win_rate(),
            price,
            performance.profit_loss(),
        )

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the engine for status endpoints."""
        config = self.state.config
        start_time = self.state.start_time
        uptime_seconds = 0.0
        if self.state.is_running and start_time is not None:
            uptime_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()
        return {
            "is_running": self.state.is_running,
            "symbol": config.symbol if config else None,
            "connector": config.connector if config else None,
            "strategy": config.strategy if config else None,
            "paper_trading": config.paper_trading if config else True,
            "tick_interval_seconds": config.tick_interval_seconds if config else None,
            "history_length": len(self.state.prices),
            "current_price": self.current_price(),
            "last_position": self.state.last_position.label,
            "trade_count": self.state.performance.trade_count,
            "win_count": self.state.performance.win_count,
            "win_rate": self.win_rate(),
            "profit_loss": self.profit_loss(),
            "start_time": start_time.isoformat() if start_time else None,
            "uptime_seconds": uptime_seconds,
        }
