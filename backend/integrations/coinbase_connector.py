"""
Coinbase Connector.

Ticker channel over the Coinbase websocket feed; market orders through the
signed REST API (CB-ACCESS-* headers).
"""

from typing import Any, Optional
import base64
import binascii
import hashlib
import hmac
import json
import time

import httpx

from engine.signals import Signal
from integrations.live_feed import LiveFeedConnector
from services.connector import FeedConnectionError

ORDER_PATH = "/orders"
# Placeholder base size for market SELLs; Coinbase sells need a crypto amount, not funds.
SELL_SIZE = "0.001"


def to_product_id(symbol: str) -> str:
    """BTCUSDT -> BTC-USD."""
    return symbol.upper().replace("USDT", "-USD", 1)


def sign_request(secret_b64: str, timestamp: str, method: str, path: str, body: str) -> str:
    """
    Coinbase request signature.

    base64(HMAC-SHA256(base64decode(secret), timestamp + method + path + body))

    Raises:
        ValueError: If the secret is not valid base64
    """
    try:
        key = base64.b64decode(secret_b64, validate=True)
    except binascii.Error as exc:
        raise ValueError("Failed to decode Coinbase API secret.") from exc
    prehash = f"{timestamp}{method}{path}{body}"
    digest = hmac.new(key, prehash.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class CoinbaseConnector(LiveFeedConnector):
    """Coinbase Pro ticker feed and order path."""

    key = "coinbase"
    exchange_name = "Coinbase"
    credential_keys = ["apiKey", "apiSecret", "secretPhrase"]

    def stream_url(self, symbol: str) -> str:
        return self.settings.coinbase_ws_url

    def check_connect_credentials(self, paper_trading: bool) -> None:
        if not paper_trading and self.missing_credentials():
            raise FeedConnectionError("API Key, Secret, or Passphrase is missing for Coinbase")

    def on_open(self, ws: Any, symbol: str) -> None:
        product_id = to_product_id(symbol)
        ws.send(json.dumps({
            "type": "subscribe",
            "product_ids": [product_id],
            "channels": ["ticker"],
        }))
        self.sink.log("info", f"Subscribed to Coinbase ticker for {product_id}")

    def parse_price(self, raw: Any) -> Optional[float]:
        data = json.loads(raw)
        if not isinstance(data, dict) or data.get("type") != "ticker":
            return None
        price = data.get("price")
        if not isinstance(price, str):
            return None
        return float(price)

    def build_order_request(self, signal: Signal, symbol: str, notional: float) -> httpx.Request:
        side = "sell" if signal == Signal.SELL else "buy"
        body = {
            "product_id": to_product_id(symbol),
            "side": side,
            "type": "market",
        }
        if side == "sell":
            self.sink.log(
                "warning",
                "Coinbase market SELL orders require 'size' (amount of crypto). "
                "A fixed placeholder size is sent; the order will likely fail.",
            )
            body["size"] = SELL_SIZE
        else:
            body["funds"] = f"{notional:.2f}"

        body_text = json.dumps(body, separators=(",", ":"))
        timestamp = str(int(time.time()))
        signature = sign_request(self.credentials["apiSecret"], timestamp, "POST", ORDER_PATH, body_text)
        self.sink.log("info", f"[REAL TRADE] Submitting Coinbase {side} market order for {body['product_id']}...")
        return httpx.Request(
            "POST",
            f"{self.settings.coinbase_rest_url}{ORDER_PATH}",
            content=body_text.encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "CB-ACCESS-KEY": self.credentials["apiKey"],
                "CB-ACCESS-SIGN": signature,
                "CB-ACCESS-TIMESTAMP": timestamp,
                "CB-ACCESS-PASSPHRASE": self.credentials["secretPhrase"],
            },
        )
