"""
Tests for connectors: simulation, live feed plumbing, exchange wire details
and the connector factory. No network access; the websocket connect function
and the HTTP transport are injected.
"""

import base64
import json
import random
import threading

import httpx
import pytest

from config.risk_profiles import RiskLevel
from config.strategy_config import BotConfig, ConfigurationError
from engine.signals import Signal
from integrations.binance_connector import BinanceConnector, sign_query
from integrations.coinbase_connector import CoinbaseConnector, sign_request, to_product_id
from integrations.live_feed import FeedState
from services.connector import (
    CredentialError,
    FeedConnectionError,
    LatestPriceCell,
    PriceNotAvailableError,
    SimulationConnector,
)
from services.connector_factory import create_connector
from services.order_dispatcher import OrderDispatcher
from fakes import FakeWebSocket, ImmediateDispatcher, RecordingSink

COINBASE_SECRET = base64.b64encode(b"coinbase-test-secret").decode("ascii")
COINBASE_CREDS = {"apiKey": "cb-key", "apiSecret": COINBASE_SECRET, "secretPhrase": "phrase"}
BINANCE_CREDS = {"apiKey": "bn-key", "apiSecret": "bn-secret"}


def _connect_returning(ws):
    calls = []

    def connect(url, **kwargs):
        calls.append((url, kwargs))
        return ws

    connect.calls = calls
    return connect


def _client_factory(handler):
    return lambda: httpx.Client(transport=httpx.MockTransport(handler))


def _live(connector_cls, sink, settings, credentials=None, handler=None, risk_level=RiskLevel.MODERATE, ws=None):
    connector = connector_cls(
        sink,
        risk_level=risk_level,
        credentials=credentials,
        dispatcher=ImmediateDispatcher(),
        settings=settings,
        ws_connect_fn=_connect_returning(ws or FakeWebSocket()),
        http_client_factory=_client_factory(handler) if handler else None,
    )
    connector.paper_trading = False
    return connector


# ============================================================================
# LatestPriceCell
# ============================================================================

def test_price_cell_not_available_until_set():
    cell = LatestPriceCell("Test feed")
    assert not cell.has_price()
    with pytest.raises(PriceNotAvailableError, match="price not available yet from Test feed"):
        cell.get()


def test_price_cell_keeps_latest():
    cell = LatestPriceCell()
    cell.set(1.0)
    cell.set(2.5)
    assert cell.has_price()
    assert cell.get() == 2.5


# ============================================================================
# SimulationConnector
# ============================================================================

def test_simulation_seeds_price_on_connect(sink):
    connector = SimulationConnector(sink, rng=random.Random(42))
    connector.connect(True, "BTCUSDT")
    assert 100.0 <= connector.last_price < 150.0
    assert 0.02 <= connector.volatility < 0.05
    assert sink.logs == [("info", "Simulation Connector Initialized.")]


def test_simulation_prices_stay_in_bounds(sink):
    connector = SimulationConnector(sink, rng=random.Random(9))
    connector.connect(True, "BTCUSDT")
    connector.volatility = 0.5
    prices = [connector.get_price() for _ in range(500)]
    assert all(SimulationConnector.MIN_PRICE <= price <= SimulationConnector.MAX_PRICE for price in prices)


def test_simulation_orders_are_paper_trades(sink):
    connector = SimulationConnector(sink)
    connector.connect(False, "ETHUSDT")
    connector.place_order(Signal.BUY, 123.456, "ETHUSDT")
    assert sink.logs[-1] == ("success", "[PAPER TRADE] Placed BUY order for ETHUSDT at $123.46")


# ============================================================================
# Coinbase
# ============================================================================

def test_coinbase_product_id():
    assert to_product_id("BTCUSDT") == "BTC-USD"
    assert to_product_id("ethusdt") == "ETH-USD"


def test_coinbase_parse_price():
    connector = CoinbaseConnector(RecordingSink())
    assert connector.parse_price(json.dumps({"type": "ticker", "price": "42000.15"})) == 42000.15
    assert connector.parse_price(json.dumps({"type": "heartbeat"})) is None
    assert connector.parse_price(json.dumps({"type": "ticker", "price": 42000})) is None
    assert connector.parse_price(json.dumps(["ticker"])) is None


def test_coinbase_live_connect_requires_credentials(sink, settings):
    connector = CoinbaseConnector(sink, credentials={"apiKey": "k"}, settings=settings)
    with pytest.raises(FeedConnectionError, match="API Key, Secret, or Passphrase is missing for Coinbase"):
        connector.connect(False, "BTCUSDT")
    assert connector.state == FeedState.DISCONNECTED


def test_coinbase_subscribes_and_tracks_price(sink, settings):
    frames = [
        json.dumps({"type": "subscriptions"}),
        "not json at all",
        json.dumps({"type": "ticker", "price": "101.5"}),
        json.dumps({"type": "ticker", "price": "102.25"}),
    ]
    ws = FakeWebSocket(frames)
    connector = _live(CoinbaseConnector, sink, settings, ws=ws)

    with pytest.raises(PriceNotAvailableError, match="Coinbase WebSocket"):
        connector.get_price()

    connector.connect(True, "BTCUSDT")
    connector._reader_thread.join(timeout=2)

    assert json.loads(ws.sent[0]) == {
        "type": "subscribe",
        "product_ids": ["BTC-USD"],
        "channels": ["ticker"],
    }
    assert ("info", "Subscribed to Coinbase ticker for BTC-USD") in sink.logs
    assert ("success", "Coinbase WebSocket connection established.") in sink.logs
    assert connector.get_price() == 102.25
    assert connector.state == FeedState.CLOSED
    assert sink.messages("warning") == ["Coinbase WebSocket connection closed."]
    assert sink.messages("error") == []


def test_coinbase_order_request_is_signed(sink, settings):
    captured = {}

    def handler(request):
        captured["request"] = request
        return httpx.Response(200, json={"id": "order-1"})

    connector = _live(CoinbaseConnector, sink, settings, credentials=COINBASE_CREDS, handler=handler)
    connector.place_order(Signal.BUY, 100.0, "BTCUSDT")

    request = captured["request"]
    body = request.content.decode("utf-8")
    assert request.method == "POST"
    assert str(request.url) == "https://api.pro.coinbase.com/orders"
    assert json.loads(body) == {"product_id": "BTC-USD", "side": "buy", "type": "market", "funds": "20.00"}
    assert request.headers["CB-ACCESS-KEY"] == "cb-key"
    assert request.headers["CB-ACCESS-PASSPHRASE"] == "phrase"
    timestamp = request.headers["CB-ACCESS-TIMESTAMP"]
    assert request.headers["CB-ACCESS-SIGN"] == sign_request(COINBASE_SECRET, timestamp, "POST", "/orders", body)
    assert sink.messages("success")[-1].startswith("Coinbase order successful:\n")


def test_coinbase_sell_uses_placeholder_size(sink, settings):
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    connector = _live(CoinbaseConnector, sink, settings, credentials=COINBASE_CREDS, handler=handler)
    connector.place_order(Signal.SELL, 100.0, "BTCUSDT")
    assert captured["body"]["size"] == "0.001"
    assert "funds" not in captured["body"]
    assert any("require 'size'" in message for message in sink.messages("warning"))


def test_coinbase_bad_secret_reports_signing_error(sink, settings):
    creds = dict(COINBASE_CREDS, apiSecret="***not base64***")
    connector = _live(CoinbaseConnector, sink, settings, credentials=creds, handler=lambda r: httpx.Response(200))
    connector.place_order(Signal.BUY, 100.0, "BTCUSDT")
    assert sink.messages("error") == ["Failed to sign Coinbase order: Failed to decode Coinbase API secret."]


def test_sign_request_rejects_invalid_base64():
    with pytest.raises(ValueError):
        sign_request("%%%", "1", "POST", "/orders", "{}")


# ============================================================================
# Binance
# ============================================================================

def test_binance_stream_url(settings):
    connector = BinanceConnector(RecordingSink(), settings=settings)
    assert connector.stream_url("BTCUSDT") == "wss://stream.binance.com:9443/ws/btcusdt@trade"


def test_binance_parse_price():
    connector = BinanceConnector(RecordingSink())
    assert connector.parse_price(json.dumps({"e": "trade", "p": "27000.50"})) == 27000.5
    assert connector.parse_price(json.dumps({"result": None, "id": 1})) is None
    assert connector.parse_price(json.dumps({"p": 27000.5})) is None


def test_binance_malformed_frames_are_ignored(sink, settings):
    ws = FakeWebSocket(["{broken", json.dumps({"p": "oops"}), json.dumps({"p": "10.5"})])
    connector = _live(BinanceConnector, sink, settings, ws=ws)
    connector.connect(True, "BTCUSDT")
    connector._reader_thread.join(timeout=2)
    assert connector.get_price() == 10.5
    assert sink.messages("error") == []


@pytest.mark.parametrize("bad_price", ["NaN", "inf", "-inf", "0", "-5"])
def test_live_feed_drops_prices_that_are_not_positive_finite(sink, settings, bad_price):
    ws = FakeWebSocket([json.dumps({"p": "100.0"}), json.dumps({"p": bad_price})])
    connector = _live(BinanceConnector, sink, settings, ws=ws)
    connector.connect(True, "BTCUSDT")
    connector._reader_thread.join(timeout=2)
    assert connector.get_price() == 100.0


def test_live_feed_bad_first_price_leaves_cell_empty(sink, settings):
    ws = FakeWebSocket([json.dumps({"type": "ticker", "price": "nan"})])
    connector = _live(CoinbaseConnector, sink, settings, credentials=COINBASE_CREDS, ws=ws)
    connector.connect(True, "BTCUSDT")
    connector._reader_thread.join(timeout=2)
    with pytest.raises(PriceNotAvailableError):
        connector.get_price()


def test_binance_connect_url_and_timeout_argument(sink, settings):
    ws = FakeWebSocket()
    connector = _live(BinanceConnector, sink, settings, ws=ws)
    connector.connect(True, "ETHUSDT")
    connector._reader_thread.join(timeout=2)
    url, kwargs = connector._ws_connect.calls[0]
    assert url == "wss://stream.binance.com:9443/ws/ethusdt@trade"
    assert kwargs == {"open_timeout": settings.feed_connect_timeout_seconds}


def test_live_connect_times_out(sink, settings):
    """A handshake that never completes fails connect() after the timeout."""
    release = threading.Event()
    late_ws = FakeWebSocket()

    def blocking_connect(url, **kwargs):
        release.wait(timeout=5)
        return late_ws

    connector = BinanceConnector(sink, settings=settings, ws_connect_fn=blocking_connect)
    try:
        with pytest.raises(FeedConnectionError, match="Binance WebSocket connection timed out"):
            connector.connect(True, "BTCUSDT")
        assert connector.state == FeedState.ERRORED
    finally:
        release.set()
    connector._reader_thread.join(timeout=2)
    assert late_ws.closed.is_set()


def test_live_connect_transport_failure(sink, settings):
    def refusing_connect(url, **kwargs):
        raise OSError("connection refused")

    connector = BinanceConnector(sink, settings=settings, ws_connect_fn=refusing_connect)
    with pytest.raises(FeedConnectionError, match="Binance WebSocket connection failed: connection refused"):
        connector.connect(True, "BTCUSDT")
    assert connector.state == FeedState.ERRORED


def test_live_disconnect_closes_socket(sink, settings):
    ws = FakeWebSocket(hold_open=True)
    connector = _live(BinanceConnector, sink, settings, ws=ws)
    connector.connect(True, "BTCUSDT")
    assert connector.state == FeedState.SUBSCRIBED

    connector.disconnect()
    connector._reader_thread.join(timeout=2)
    assert ws.closed.is_set()
    assert connector.state == FeedState.CLOSED
    assert ("info", "Closing Binance WebSocket connection.") in sink.logs


def test_live_paper_order_only_logs(sink, settings):
    def handler(request):
        raise AssertionError("paper orders must not hit the network")

    connector = _live(BinanceConnector, sink, settings, handler=handler)
    connector.paper_trading = True
    connector.place_order(Signal.SELL, 27000.0, "BTCUSDT")
    assert sink.logs[-1] == ("success", "[PAPER TRADE] Placed SELL order for BTCUSDT at $27000.00")
    assert connector.dispatcher.submitted == 0


def test_live_order_without_credentials_fails_synchronously(sink, settings):
    connector = _live(BinanceConnector, sink, settings, credentials={"apiKey": "only-key"})
    with pytest.raises(CredentialError, match="Binance apiSecret missing"):
        connector.place_order(Signal.BUY, 100.0, "BTCUSDT")
    assert connector.dispatcher.submitted == 0
    assert sink.messages("error") == ["cannot place real order: Binance apiSecret missing"]


def test_live_order_after_dispatcher_shutdown_reports_stopping(sink, settings):
    connector = _live(BinanceConnector, sink, settings, credentials=BINANCE_CREDS)
    connector.dispatcher = OrderDispatcher(max_workers=1, max_pending=1)
    connector.dispatcher.shutdown()
    connector.place_order(Signal.BUY, 100.0, "BTCUSDT")
    assert sink.messages("error") == ["Binance order dropped: bot is stopping"]


def test_live_order_when_dispatcher_full_reports_backlog(sink, settings):
    release = threading.Event()
    connector = _live(BinanceConnector, sink, settings, credentials=BINANCE_CREDS)
    connector.dispatcher = OrderDispatcher(max_workers=1, max_pending=1)
    try:
        connector.dispatcher.submit(release.wait, 5)
        connector.place_order(Signal.BUY, 100.0, "BTCUSDT")
    finally:
        release.set()
        connector.dispatcher.shutdown()
    assert sink.messages("error") == ["Binance order dropped: too many submissions in flight"]


@pytest.mark.parametrize(
    "risk_level,quantity",
    [
        (RiskLevel.CONSERVATIVE, "10.0"),
        (RiskLevel.MODERATE, "20.0"),
        (RiskLevel.AGGRESSIVE, "50.0"),
    ],
)
def test_binance_order_request_is_signed(sink, settings, risk_level, quantity):
    captured = {}

    def handler(request):
        captured["request"] = request
        return httpx.Response(200, json={"orderId": 7})

    connector = _live(
        BinanceConnector, sink, settings, credentials=BINANCE_CREDS, handler=handler, risk_level=risk_level
    )
    connector.place_order(Signal.BUY, 100.0, "BTCUSDT")

    request = captured["request"]
    assert request.method == "POST"
    assert request.url.path == "/api/v3/order"
    assert request.headers["X-MBX-APIKEY"] == "bn-key"
    query, signature = request.url.query.decode("ascii").split("&signature=")
    assert query.startswith(f"symbol=BTCUSDT&side=BUY&type=MARKET&quoteOrderQty={quantity}&timestamp=")
    assert signature == sign_query("bn-secret", query)
    assert sink.messages("success")[-1] == 'Binance order successful:\n{\n  "orderId": 7\n}'


def test_binance_api_error_reported(sink, settings):
    handler = lambda request: httpx.Response(400, json={"code": -2010, "msg": "insufficient balance"})
    connector = _live(BinanceConnector, sink, settings, credentials=BINANCE_CREDS, handler=handler)
    connector.place_order(Signal.SELL, 100.0, "BTCUSDT")
    assert sink.messages("error")[-1].startswith("Binance API Error:\n")
    assert "insufficient balance" in sink.messages("error")[-1]


def test_binance_network_error_reported(sink, settings):
    def handler(request):
        raise httpx.ConnectError("boom")

    connector = _live(BinanceConnector, sink, settings, credentials=BINANCE_CREDS, handler=handler)
    connector.place_order(Signal.BUY, 100.0, "BTCUSDT")
    assert sink.messages("error") == ["Network error during Binance trade execution: boom"]


def test_sign_query_is_hex_hmac():
    signature = sign_query("secret", "symbol=BTCUSDT")
    assert len(signature) == 64
    assert int(signature, 16) >= 0
    assert signature == sign_query("secret", "symbol=BTCUSDT")
    assert signature != sign_query("other", "symbol=BTCUSDT")


# ============================================================================
# Factory
# ============================================================================

@pytest.mark.parametrize(
    "key,expected",
    [
        ("simulation", SimulationConnector),
        ("coinbase", CoinbaseConnector),
        ("Binance", BinanceConnector),
    ],
)
def test_create_connector(sink, settings, key, expected):
    config = BotConfig(symbol="BTCUSDT", connector=key, riskLevel="aggressive")
    connector = create_connector(config, sink, ImmediateDispatcher(), settings)
    assert isinstance(connector, expected)
    assert connector.risk_level == RiskLevel.AGGRESSIVE


def test_create_connector_passes_credentials(sink, settings):
    config = BotConfig(symbol="BTCUSDT", connector="binance", connectorParams={"apiKey": " k ", "apiSecret": "s"})
    connector = create_connector(config, sink, ImmediateDispatcher(), settings)
    assert connector.credentials == {"apiKey": "k", "apiSecret": "s"}
    assert connector.missing_credentials() == []


def test_create_connector_unknown_key(sink, settings):
    config = BotConfig(symbol="BTCUSDT", connector="kraken")
    with pytest.raises(ConfigurationError, match="Unknown connector: kraken"):
        create_connector(config, sink, ImmediateDispatcher(), settings)
