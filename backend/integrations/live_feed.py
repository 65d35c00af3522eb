"""
Live Feed Connector Base.

Shared plumbing for exchange connectors backed by a websocket price stream
and a signed REST order endpoint:
- the stream runs on a daemon reader thread using the websockets sync client
- the latest parsed price lives in a LatestPriceCell
- live orders are signed and sent with httpx on the OrderDispatcher pool

Closed or failed streams are not reopened; the connector stays dead for the
rest of the run.
"""

from abc import abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import json
import logging
import math
import threading

import httpx
from websockets.exceptions import ConnectionClosedOK, WebSocketException
from websockets.sync.client import connect as ws_connect

from config.risk_profiles import RiskLevel, get_order_notional
from config.settings import Settings, get_settings
from engine.signals import Signal
from services.connector import (
    Connector,
    CredentialError,
    FeedConnectionError,
    LatestPriceCell,
)
from services.notifications import NotificationSink
from services.order_dispatcher import OrderDispatcher

logger = logging.getLogger(__name__)


class FeedState(Enum):
    """Live feed lifecycle."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"
    ERRORED = "errored"


class LiveFeedConnector(Connector):
    """
    Websocket-backed connector.

    Subclasses provide the exchange specifics: stream URL, subscription
    handshake, frame parsing and order request signing.
    """

    exchange_name: str = "Exchange"
    credential_keys: List[str] = []

    def __init__(
        self,
        sink: NotificationSink,
        risk_level: RiskLevel = RiskLevel.MODERATE,
        credentials: Optional[Dict[str, str]] = None,
        dispatcher: Optional[OrderDispatcher] = None,
        settings: Optional[Settings] = None,
        ws_connect_fn: Optional[Callable[..., Any]] = None,
        http_client_factory: Optional[Callable[[], httpx.Client]] = None,
    ):
        super().__init__(sink, risk_level)
        self.credentials = {key: str(value or "").strip() for key, value in (credentials or {}).items()}
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or OrderDispatcher(
            max_workers=self.settings.order_workers,
            max_pending=self.settings.max_pending_orders,
        )
        self._ws_connect = ws_connect_fn or ws_connect
        self._http_client_factory = http_client_factory or self._default_http_client
        self.state = FeedState.DISCONNECTED
        self._price_cell = LatestPriceCell(f"{self.exchange_name} WebSocket")
        self._ws = None
        self._ready = threading.Event()
        self._failure: Optional[str] = None
        self._abandoned = False
        self._closing = False
        self._reader_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Exchange specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def stream_url(self, symbol: str) -> str:
        pass

    def on_open(self, ws: Any, symbol: str) -> None:
        """Called on the reader thread once the socket is open, before confirmation."""
        return None

    @abstractmethod
    def parse_price(self, raw: Any) -> Optional[float]:
        """Extract a price from one inbound frame, or None for non-price frames."""
        pass

    @abstractmethod
    def build_order_request(self, signal: Signal, symbol: str, notional: float) -> httpx.Request:
        """Build the signed order request."""
        pass

    def check_connect_credentials(self, paper_trading: bool) -> None:
        """Optional: refuse to connect when live mode lacks credentials."""
        return None

    # ------------------------------------------------------------------
    # Connector interface
    # ------------------------------------------------------------------

    def missing_credentials(self) -> List[str]:
        return [key for key in self.credential_keys if not self.credentials.get(key)]

    def connect(self, paper_trading: bool, symbol: str) -> None:
        self.sink.log("info", f"{self.exchange_name} Connector Initializing...")
        self.paper_trading = paper_trading
        self.symbol = symbol
        self.check_connect_credentials(paper_trading)

        url = self.stream_url(symbol)
        self.sink.log("info", f"Connecting to {self.exchange_name} WebSocket: {url}")
        self.state = FeedState.CONNECTING
        self._ready.clear()
        self._failure = None
        self._abandoned = False
        self._closing = False
        self._reader_thread = threading.Thread(
            target=self._run_feed,
            args=(url, symbol),
            name=f"tickbot-{self.key}-feed",
            daemon=True,
        )
        self._reader_thread.start()

        timeout = self.settings.feed_connect_timeout_seconds
        if not self._ready.wait(timeout=timeout):
            self._abandoned = True
            self.state = FeedState.ERRORED
            self._close_socket()
            raise FeedConnectionError(f"{self.exchange_name} WebSocket connection timed out")
        if self._failure is not None:
            raise FeedConnectionError(f"{self.exchange_name} WebSocket connection failed: {self._failure}")

    def get_price(self) -> float:
        return self._price_cell.get()

    def disconnect(self) -> None:
        if self._ws is None:
            return None
        self.sink.log("info", f"Closing {self.exchange_name} WebSocket connection.")
        self._closing = True
        self._close_socket()
        return None

    def place_order(self, signal: Signal, price: float, symbol: str) -> None:
        if self.paper_trading:
            self.log_paper_trade(signal, price, symbol)
            return

        missing = self.missing_credentials()
        if missing:
            message = (
                f"cannot place real order: {self.exchange_name} "
                f"{', '.join(missing)} missing"
            )
            self.sink.log("error", message)
            raise CredentialError(message)

        future = self.dispatcher.submit(self._submit_order, signal, symbol)
        if future is None:
            if self.dispatcher.closed:
                self.sink.log("error", f"{self.exchange_name} order dropped: bot is stopping")
            else:
                self.sink.log("error", f"{self.exchange_name} order dropped: too many submissions in flight")

    # ------------------------------------------------------------------
    # Reader thread
    # ------------------------------------------------------------------

    def _run_feed(self, url: str, symbol: str) -> None:
        try:
            ws = self._ws_connect(url, open_timeout=self.settings.feed_connect_timeout_seconds)
        except (OSError, TimeoutError, WebSocketException) as exc:
            self._failure = str(exc) or exc.__class__.__name__
            self.state = FeedState.ERRORED
            self._ready.set()
            return

        self._ws = ws
        if self._abandoned:
            self._close_socket()
            return

        self.sink.log("success", f"{self.exchange_name} WebSocket connection established.")
        try:
            self.on_open(ws, symbol)
            self.state = FeedState.SUBSCRIBED
            self._ready.set()
            for raw in ws:
                self._handle_message(raw)
            self.state = FeedState.CLOSED
        except ConnectionClosedOK:
            self.state = FeedState.CLOSED
        except (OSError, WebSocketException) as exc:
            logger.debug("%s feed error: %s", self.exchange_name, exc)
            if not self._closing:
                self.state = FeedState.ERRORED
                self.sink.log("error", f"{self.exchange_name} WebSocket error.")
        finally:
            if not self._ready.is_set():
                self._failure = self._failure or "connection closed during handshake"
                self._ready.set()
            if self.state != FeedState.ERRORED:
                self.state = FeedState.CLOSED
            self.sink.log("warning", f"{self.exchange_name} WebSocket connection closed.")

    def _handle_message(self, raw: Any) -> None:
        try:
            price = self.parse_price(raw)
        except (TypeError, ValueError, KeyError, AttributeError):
            return
        if price is None or not math.isfinite(price) or price <= 0:
            return
        self._price_cell.set(price)

    def _close_socket(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            ws.close()
        except (OSError, WebSocketException) as exc:
            logger.debug("Error closing %s socket: %s", self.exchange_name, exc)

    # ------------------------------------------------------------------
    # Order worker
    # ------------------------------------------------------------------

    def _default_http_client(self) -> httpx.Client:
        return httpx.Client(timeout=self.settings.order_http_timeout_seconds)

    def _submit_order(self, signal: Signal, symbol: str) -> None:
        """Sign and send one order. Runs on the dispatcher pool; reports via the sink."""
        notional = get_order_notional(self.risk_level)
        try:
            request = self.build_order_request(signal, symbol, notional)
        except ValueError as exc:
            self.sink.log("error", f"Failed to sign {self.exchange_name} order: {exc}")
            return

        try:
            with self._http_client_factory() as client:
                response = client.send(request)
        except httpx.HTTPError as exc:
            self.sink.log("error", f"Network error during {self.exchange_name} trade execution: {exc}")
            return

        try:
            detail = json.dumps(response.json(), indent=2)
        except ValueError:
            detail = response.text
        if response.is_success:
            self.sink.log("success", f"{self.exchange_name} order successful:\n{detail}")
        else:
            self.sink.log("error", f"{self.exchange_name} API Error:\n{detail}")
