from __future__ import annotations

import ssl
import threading

import httpx
import truststore


BINANCE_BASE = "https://api.binance.com"


class BinanceRestProvider:
    """One-shot price lookups against the Binance public REST API."""

    def __init__(self, base_url: str = BINANCE_BASE, timeout_s: float = 5.0) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout_s, verify=self._make_ssl_context())
        self._lock = threading.Lock()

    def _normalize_symbol(self, s: str) -> str:
        s = s.replace("/", "").replace("-", "").replace(" ", "")
        return s.upper()

    def fetch_price(self, symbol: str) -> float:
        """Latest traded price for an exchange pair such as ``BTCUSDT``.

        Raises:
            httpx.HTTPError: on transport errors or non-2xx responses
            ValueError: if the payload has no parseable ``price``
        """
        sym = self._normalize_symbol(symbol)
        with self._lock:
            r = self._client.get("/api/v3/ticker/price", params={"symbol": sym})
        r.raise_for_status()
        item = r.json()
        if not isinstance(item, dict) or "price" not in item:
            raise ValueError(f"unexpected ticker payload for {sym}: {item!r}")
        try:
            return float(item["price"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"unparseable price for {sym}: {item['price']!r}") from e

    def close(self) -> None:
        self._client.close()

    def _make_ssl_context(self) -> ssl.SSLContext:
        # Verify against the OS trust store
        return truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
