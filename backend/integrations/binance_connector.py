"""
Binance Connector.

Trade stream over the Binance websocket; MARKET orders sized by
quoteOrderQty through the HMAC-signed REST API.
"""

from typing import Any, Optional
import hashlib
import hmac
import json
import time

import httpx

from engine.signals import Signal
from integrations.live_feed import LiveFeedConnector

ORDER_PATH = "/api/v3/order"


def sign_query(secret: str, query: str) -> str:
    """Hex HMAC-SHA256 of the query string."""
    return hmac.new(secret.encode("utf-8"), query.encode("utf-8"), hashlib.sha256).hexdigest()


class BinanceConnector(LiveFeedConnector):
    """Binance spot trade feed and order path."""

    key = "binance"
    exchange_name = "Binance"
    credential_keys = ["apiKey", "apiSecret"]

    def stream_url(self, symbol: str) -> str:
        return f"{self.settings.binance_ws_url}/{symbol.lower()}@trade"

    def parse_price(self, raw: Any) -> Optional[float]:
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        price = data.get("p")
        if not isinstance(price, str):
            return None
        return float(price)

    def build_order_request(self, signal: Signal, symbol: str, notional: float) -> httpx.Request:
        side = "SELL" if signal == Signal.SELL else "BUY"
        quote_qty = f"{notional:.1f}"
        timestamp = int(time.time() * 1000)
        query = f"symbol={symbol}&side={side}&type=MARKET&quoteOrderQty={quote_qty}&timestamp={timestamp}"
        signature = sign_query(self.credentials["apiSecret"], query)
        self.sink.log("info", f"[REAL TRADE] Submitting {side} market order for {symbol} of ${quote_qty}...")
        return httpx.Request(
            "POST",
            f"{self.settings.binance_rest_url}{ORDER_PATH}?{query}&signature={signature}",
            headers={"X-MBX-APIKEY": self.credentials["apiKey"]},
        )
