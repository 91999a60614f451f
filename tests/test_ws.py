from __future__ import annotations

import json
import threading
import time
from datetime import datetime

import httpx
from PySide6.QtCore import QCoreApplication

from investsim.data.providers import BinanceRestProvider
from investsim.ws.binance import BitcoinPriceFeed, HISTORY_CAPACITY, parse_ticker_message


class _StubWS:
    def __init__(self):
        self.last_url = None
        self.opens = 0
        self.closes = 0
        class S:
            def connect(self, *a, **k):
                pass
        self.connected = S(); self.disconnected = S(); self.textMessageReceived = S(); self.errorOccurred = S()
    def close(self):
        self.closes += 1
    def open(self, url):
        self.opens += 1
        self.last_url = url


class _Snapshot:
    def __init__(self, price=None, exc=None, gate=None):
        self.price = price
        self.exc = exc
        self.gate = gate
        self.calls = []

    def fetch_price(self, symbol):
        self.calls.append(symbol)
        if self.gate is not None:
            self.gate.wait(5)
        if self.exc is not None:
            raise self.exc
        return self.price


class _Resp:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _FakeClient:
    def __init__(self, payload):
        self._payload = payload

    def get(self, url, params=None):
        return _Resp(self._payload)


def _pump_until(cond, timeout_s: float = 5.0) -> None:
    # Snapshot results arrive as queued signals from the worker thread
    deadline = time.monotonic() + timeout_s
    while not cond() and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    QCoreApplication.processEvents()


def _feed(monkeypatch, **kwargs) -> BitcoinPriceFeed:
    feed = BitcoinPriceFeed(**kwargs)
    monkeypatch.setattr(feed, "_ws", _StubWS())
    return feed


def test_parse_raw_ticker():
    parsed = parse_ticker_message(json.dumps({"e": "24hrTicker", "c": "45123.45", "E": 1700000000000}))

    assert parsed is not None
    price, ts = parsed
    assert price == 45123.45
    assert ts == datetime.fromtimestamp(1700000000)


def test_parse_wrapped_ticker_without_event_time():
    parsed = parse_ticker_message(json.dumps({"stream": "btcusdt@ticker", "data": {"lastPrice": "50000"}}))

    assert parsed is not None
    assert parsed[0] == 50000.0
    assert isinstance(parsed[1], datetime)


def test_parse_malformed_messages():
    assert parse_ticker_message("not json") is None
    assert parse_ticker_message(json.dumps({"c": "abc"})) is None
    assert parse_ticker_message(json.dumps({"x": 1})) is None
    assert parse_ticker_message(json.dumps([1, 2])) is None


def test_feed_builds_ticker_url(monkeypatch):
    feed = _feed(monkeypatch, symbol="btc/usdt")
    feed.start()

    assert feed.symbol == "BTCUSDT"
    assert feed._ws.last_url.toString() == "wss://stream.binance.com:9443/ws/btcusdt@ticker"
    assert feed.is_running
    feed.stop()


def test_ingest_rejects_out_of_range(monkeypatch):
    feed = _feed(monkeypatch)

    assert not feed.ingest(999.0)
    assert not feed.ingest(1000.0)
    assert not feed.ingest(200000.0)
    assert feed.current_price == 0.0
    assert feed.history == []


def test_ingest_updates_price_and_dedups_history(monkeypatch):
    feed = _feed(monkeypatch)
    seen = []
    feed.priceUpdated.connect(lambda p, ts: seen.append(p))

    assert feed.ingest(45000.0)
    assert feed.ingest(45000.005)
    assert feed.ingest(45001.0)

    assert feed.current_price == 45001.0
    assert [p.price for p in feed.history] == [45000.0, 45001.0]
    assert seen == [45000.0, 45000.005, 45001.0]


def test_history_is_bounded(monkeypatch):
    feed = _feed(monkeypatch)

    for i in range(HISTORY_CAPACITY + 20):
        feed.ingest(40000.0 + i)

    prices = feed.chart_data()
    assert len(prices) == HISTORY_CAPACITY
    assert prices[0] == 40020.0
    assert prices[-1] == 40000.0 + HISTORY_CAPACITY + 19


def test_chart_data_falls_back_to_current_price(monkeypatch):
    feed = _feed(monkeypatch)
    assert feed.chart_data() == []

    feed._current_price = 42000.0
    assert feed.chart_data() == [42000.0]


def test_start_seeds_from_snapshot(monkeypatch):
    snapshot = _Snapshot(price=43000.0)
    feed = _feed(monkeypatch, snapshot_provider=snapshot)

    feed.start()
    _pump_until(lambda: feed.current_price > 0)

    assert snapshot.calls == ["BTCUSDT"]
    assert feed.current_price == 43000.0
    assert feed.chart_data() == [43000.0]
    feed.stop()


def test_start_does_not_wait_for_snapshot(monkeypatch):
    release = threading.Event()
    snapshot = _Snapshot(price=43000.0, gate=release)
    feed = _feed(monkeypatch, snapshot_provider=snapshot)

    feed.start()
    try:
        # The stream is already opening while the REST call is still pending
        assert feed._ws.opens == 1
        assert feed.current_price == 0.0
    finally:
        release.set()
    _pump_until(lambda: feed.current_price > 0)
    assert feed.current_price == 43000.0
    feed.stop()


def test_snapshot_failure_is_not_fatal(monkeypatch):
    feed = _feed(monkeypatch, snapshot_provider=_Snapshot(exc=httpx.ConnectError("boom")))
    errors = []
    feed.error.connect(errors.append)

    feed.start()
    _pump_until(lambda: errors)

    assert errors == ["boom"]
    assert feed.current_price == 0.0
    assert feed._ws.opens == 1
    feed.stop()


def test_null_price_snapshot_is_skipped(monkeypatch):
    provider = BinanceRestProvider(timeout_s=1)
    monkeypatch.setattr(provider, "_client", _FakeClient({"symbol": "BTCUSDT", "price": None}))
    feed = _feed(monkeypatch, snapshot_provider=provider)
    errors = []
    feed.error.connect(errors.append)

    feed.start()
    _pump_until(lambda: errors)

    assert len(errors) == 1
    assert feed._ws.opens == 1
    assert feed.current_price == 0.0
    assert feed.is_running
    feed.stop()


def test_out_of_range_snapshot_is_ignored(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()

    feed._on_snapshot(5.0)

    assert feed.current_price == 0.0
    assert feed.history == []
    feed.stop()


def test_snapshot_does_not_override_stream(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()
    feed.ingest(44000.0)

    feed._on_snapshot(43000.0)

    assert feed.current_price == 44000.0
    assert feed.chart_data() == [44000.0]
    feed.stop()


def test_snapshot_after_stop_is_dropped(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()
    feed.stop()

    feed._on_snapshot(43000.0)

    assert feed.current_price == 0.0


def test_messages_flow_through_ingest(monkeypatch):
    feed = _feed(monkeypatch)

    feed._on_msg(json.dumps({"c": "46000.5", "E": 1700000000000}))
    feed._on_msg("garbage")

    assert feed.current_price == 46000.5
    assert len(feed.history) == 1


def test_connection_state_changes(monkeypatch):
    feed = _feed(monkeypatch)
    states = []
    feed.connectedChanged.connect(states.append)

    feed.start()
    feed._on_connected()
    feed._on_connected()
    feed.stop()

    assert states == [True, False]
    assert not feed.is_connected


def test_disconnect_schedules_reconnect_only_while_wanted(monkeypatch):
    feed = _feed(monkeypatch)

    feed._on_disconnected()
    assert not feed._reconnect_timer.isActive()

    feed.start()
    feed._on_connected()
    feed._on_disconnected()
    assert feed._reconnect_timer.isActive()

    feed.stop()
    assert not feed._reconnect_timer.isActive()


def test_reconnect_after_stop_does_not_reopen(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()
    feed.stop()
    opens = feed._ws.opens

    feed._reconnect()

    assert feed._ws.opens == opens


def test_reconnect_reopens_while_wanted(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()

    feed._reconnect()

    assert feed._ws.opens == 2
    feed.stop()


def test_stop_is_idempotent(monkeypatch):
    feed = _feed(monkeypatch)
    feed.start()

    feed.stop()
    feed.stop()

    assert feed._ws.closes == 2  # one from start, one from the first stop
    assert not feed.is_running


def test_error_reports_and_retries_when_not_connected(monkeypatch):
    feed = _feed(monkeypatch)
    errors = []
    feed.error.connect(errors.append)
    feed.start()

    feed._on_error("handshake failed")

    assert errors == ["handshake failed"]
    assert feed._reconnect_timer.isActive()
    feed.stop()
