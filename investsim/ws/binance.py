from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, List, Optional, Tuple

import httpx
from PySide6.QtCore import QObject, QThread, QTimer, QUrl, Signal, Slot
from PySide6.QtWebSockets import QWebSocket

from investsim.data.providers import BinanceRestProvider

logger = logging.getLogger(__name__)

BINANCE_WS_BASE = "wss://stream.binance.com:9443/ws"

MIN_VALID_PRICE = 1000.0
MAX_VALID_PRICE = 200000.0
HISTORY_CAPACITY = 100
RECONNECT_DELAY_MS = 5000
# New points closer than this to the last history point are not recorded.
HISTORY_MIN_MOVE = 0.01


@dataclass(frozen=True)
class PricePoint:
    price: float
    timestamp: datetime


def parse_ticker_message(msg: str) -> Optional[Tuple[float, datetime]]:
    """Extract ``(last price, event time)`` from a ticker stream message.

    Accepts raw ``<symbol>@ticker`` payloads and combined-stream payloads
    wrapped in ``{"data": ...}``. Returns None for anything malformed.
    """
    try:
        obj = json.loads(msg)
        data = obj.get("data") or obj
        raw = data.get("c") or data.get("lastPrice")
        if raw is None:
            return None
        price = float(raw)
        event_ms = data.get("E")
        ts = datetime.fromtimestamp(int(event_ms) / 1000.0) if event_ms is not None else datetime.now()
    except (ValueError, TypeError, AttributeError, OverflowError, OSError) as e:
        logger.debug(f"Skipping malformed ticker message: {e}")
        return None
    return price, ts


class SnapshotWorker(QObject):
    """Fetches one REST price off the event-loop thread."""

    priceReady = Signal(float)
    failed = Signal(str)

    def __init__(self, provider: BinanceRestProvider) -> None:
        super().__init__()
        self._provider = provider

    @Slot(str)
    def fetch(self, symbol: str) -> None:
        try:
            price = self._provider.fetch_price(symbol)
        except (httpx.HTTPError, ValueError) as e:
            self.failed.emit(str(e))
            return
        self.priceReady.emit(price)


class BitcoinPriceFeed(QObject):
    """Live price of one exchange pair from the Binance ticker stream.

    Keeps the latest accepted price and a bounded history of distinct
    prices. While the feed is wanted (between ``start`` and ``stop``), a
    dropped connection is retried after ``reconnect_delay_ms``.
    """

    priceUpdated = Signal(float, object)  # price, datetime
    connectedChanged = Signal(bool)
    error = Signal(str)
    snapshotRequested = Signal(str)

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        ws_base: str = BINANCE_WS_BASE,
        snapshot_provider: Optional[BinanceRestProvider] = None,
        reconnect_delay_ms: int = RECONNECT_DELAY_MS,
        history_capacity: int = HISTORY_CAPACITY,
        min_price: float = MIN_VALID_PRICE,
        max_price: float = MAX_VALID_PRICE,
    ) -> None:
        super().__init__()
        self._symbol = symbol.replace("/", "").replace("-", "").upper()
        self._url = f"{ws_base}/{self._symbol.lower()}@ticker"
        self._min_price = min_price
        self._max_price = max_price
        self._current_price = 0.0
        self._history: Deque[PricePoint] = deque(maxlen=history_capacity)
        self._connected = False
        self._wanted = False

        self._reconnect_timer = QTimer(self)
        self._reconnect_timer.setSingleShot(True)
        self._reconnect_timer.setInterval(reconnect_delay_ms)
        self._reconnect_timer.timeout.connect(self._reconnect)

        # REST snapshot runs on its own thread, results come back queued
        self._snapshot_worker: Optional[SnapshotWorker] = None
        self._snapshot_thread: Optional[QThread] = None
        if snapshot_provider is not None:
            self._snapshot_worker = SnapshotWorker(snapshot_provider)
            self._snapshot_thread = QThread(self)
            self._snapshot_worker.moveToThread(self._snapshot_thread)
            self.snapshotRequested.connect(self._snapshot_worker.fetch)
            self._snapshot_worker.priceReady.connect(self._on_snapshot)
            self._snapshot_worker.failed.connect(self._on_snapshot_failed)

        self._ws = QWebSocket()
        self._wire()

    def _wire(self) -> None:
        self._ws.connected.connect(self._on_connected)
        self._ws.disconnected.connect(self._on_disconnected)
        self._ws.textMessageReceived.connect(self._on_msg)
        self._ws.errorOccurred.connect(self._on_error)

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def url(self) -> str:
        return self._url

    @property
    def current_price(self) -> float:
        return self._current_price

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_running(self) -> bool:
        return self._wanted

    @property
    def history(self) -> List[PricePoint]:
        return list(self._history)

    def chart_data(self) -> List[float]:
        """History prices oldest first, or just the current price if empty."""
        if not self._history:
            return [self._current_price] if self._current_price > 0 else []
        return [p.price for p in self._history]

    def start(self) -> None:
        """Open the stream and request a REST snapshot; returns immediately."""
        self._wanted = True
        logger.info(f"Connecting to {self._url}")
        self._ws.close()
        self._reconnect_timer.stop()
        self._ws.open(QUrl(self._url))
        if self._snapshot_thread is not None:
            if not self._snapshot_thread.isRunning():
                self._snapshot_thread.start()
            self.snapshotRequested.emit(self._symbol)

    def stop(self) -> None:
        """Close the stream and join the snapshot thread. Safe to repeat."""
        was_wanted = self._wanted
        self._wanted = False
        self._reconnect_timer.stop()
        if was_wanted:
            self._ws.close()
        if self._snapshot_thread is not None and self._snapshot_thread.isRunning():
            self._snapshot_thread.quit()
            self._snapshot_thread.wait()
        self._set_connected(False)

    def ingest(self, price: float, timestamp: Optional[datetime] = None) -> bool:
        """Apply one price observation; returns False if it was rejected."""
        if not (self._min_price < price < self._max_price):
            logger.debug(f"Ignoring out-of-range {self._symbol} price {price}")
            return False
        ts = timestamp or datetime.now()
        self._current_price = price
        if not self._history or abs(self._history[-1].price - price) > HISTORY_MIN_MOVE:
            # deque(maxlen) drops the oldest point once full
            self._history.append(PricePoint(price, ts))
        self.priceUpdated.emit(price, ts)
        return True

    @Slot(float)
    def _on_snapshot(self, price: float) -> None:
        if not self._wanted:
            return
        if self._history:
            # The stream already delivered something newer
            return
        if not (self._min_price < price < self._max_price):
            logger.warning(f"Initial {self._symbol} price {price} out of range")
            return
        ts = datetime.now()
        self._current_price = price
        self._history.append(PricePoint(price, ts))
        self.priceUpdated.emit(price, ts)

    @Slot(str)
    def _on_snapshot_failed(self, msg: str) -> None:
        logger.warning(f"Initial {self._symbol} price fetch failed: {msg}")
        self.error.emit(msg)

    def _on_msg(self, msg: str) -> None:
        parsed = parse_ticker_message(msg)
        if parsed is None:
            return
        self.ingest(*parsed)

    def _on_connected(self) -> None:
        logger.info(f"{self._symbol} feed connected")
        self._set_connected(True)

    def _on_disconnected(self) -> None:
        self._set_connected(False)
        self._schedule_reconnect()

    def _on_error(self, err) -> None:
        logger.warning(f"{self._symbol} feed error: {err}")
        self.error.emit(str(err))
        # A failed handshake may never report a disconnect
        if not self._connected:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._wanted and not self._reconnect_timer.isActive():
            logger.info(f"{self._symbol} feed down, retrying in {self._reconnect_timer.interval()} ms")
            self._reconnect_timer.start()

    def _reconnect(self) -> None:
        if not self._wanted or self._connected:
            return
        logger.info(f"Reconnecting {self._symbol} feed")
        self._ws.close()
        self._ws.open(QUrl(self._url))

    def _set_connected(self, connected: bool) -> None:
        if connected != self._connected:
            self._connected = connected
            self.connectedChanged.emit(connected)
