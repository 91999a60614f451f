"""Tests for synthetic series and the price book."""

from __future__ import annotations

import random
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from investsim.data.instruments import DEFAULT_INSTRUMENTS, base_price_for
from investsim.data.sources import LivePriceSource, PriceBook, SyntheticPriceSource
from investsim.data.synthetic import generate_series
from investsim.ws.binance import BitcoinPriceFeed


@given(
    base=st.floats(min_value=0.01, max_value=1_000_000, allow_nan=False, allow_infinity=False),
    seed=st.integers(min_value=0, max_value=2**32 - 1),
)
@settings(max_examples=100)
def test_series_steps_stay_within_two_percent(base: float, seed: int):
    series = generate_series(base, rng=random.Random(seed))

    assert len(series) == 30
    previous = base
    for value in series:
        assert previous * 0.98 - 1e-9 <= value <= previous * 1.02 + 1e-9
        previous = value


def test_series_rejects_non_positive_base():
    with pytest.raises(ValueError):
        generate_series(0)
    with pytest.raises(ValueError):
        generate_series(-5.0)


def test_catalog_base_prices():
    assert base_price_for("gold") == 1950.0
    assert base_price_for("BTC") == 45000.0
    assert base_price_for("XYZ") == 100.0


def test_synthetic_series_is_cached(rng):
    book = PriceBook(rng=rng)
    book.register_synthetic("GOLD", 1950.0)

    first = book.price_series("GOLD")

    assert book.price_series("GOLD") == first
    assert book.current_price("GOLD") == first[-1]
    assert book.get_current_price("GOLD") == Decimal(str(first[-1]))


def test_refresh_draws_new_series_and_notifies(rng):
    book = PriceBook(rng=rng)
    book.register_synthetic("OIL", 75.0)
    before = book.price_series("OIL")
    seen = []
    book.on_price_updated(lambda sym, price: seen.append((sym, price)))

    book.refresh("OIL")

    after = book.price_series("OIL")
    assert after != before
    assert seen == [("OIL", Decimal(str(after[-1])))]


def test_unknown_symbol_gets_default_synthetic_source(rng):
    book = PriceBook(rng=rng)

    series = book.price_series("ZZZ")

    assert "ZZZ" in book.symbols()
    assert isinstance(book.source_for("ZZZ"), SyntheticPriceSource)
    assert 98.0 <= series[0] <= 102.0


def test_from_instruments_binds_live_symbols_once(rng):
    feed = BitcoinPriceFeed()
    book = PriceBook.from_instruments(DEFAULT_INSTRUMENTS, feed=feed, rng=rng)

    assert isinstance(book.source_for("BTC"), LivePriceSource)
    assert isinstance(book.source_for("AAPL"), SyntheticPriceSource)
    assert sorted(book.symbols()) == ["AAPL", "BTC", "GOLD", "MSFT", "OIL"]


def test_without_feed_every_symbol_is_synthetic(rng):
    book = PriceBook.from_instruments(DEFAULT_INSTRUMENTS, rng=rng)

    assert all(isinstance(book.source_for(s), SyntheticPriceSource) for s in book.symbols())
    assert not book.is_connected()


def test_live_source_falls_back_until_connected(rng):
    feed = BitcoinPriceFeed()
    book = PriceBook(rng=rng)
    source = book.register_live("BTC", feed, 45000.0)
    fallback_price = source.fallback.current_price()

    assert book.current_price("BTC") == fallback_price
    assert book.price_series("BTC") == source.fallback.price_series()

    feed.ingest(50000.0)
    # priced from the feed only while connected
    assert book.current_price("BTC") == fallback_price
    assert book.price_series("BTC") == [50000.0]

    feed._set_connected(True)
    assert book.is_connected()
    assert book.get_current_price("BTC") == Decimal("50000")

    feed._set_connected(False)
    assert book.current_price("BTC") == fallback_price


def test_live_ticks_reach_price_listeners(rng):
    feed = BitcoinPriceFeed()
    book = PriceBook(rng=rng)
    book.register_live("BTC", feed, 45000.0)
    seen = []
    unsubscribe = book.on_price_updated(lambda sym, price: seen.append((sym, price)))

    feed.ingest(51000.5)
    unsubscribe()
    feed.ingest(52000.0)

    assert seen == [("BTC", Decimal("51000.5"))]


def test_failing_price_listener_does_not_stop_others(rng):
    book = PriceBook(rng=rng)
    book.register_synthetic("MSFT", 380.0)
    seen = []

    def broken(sym, price):
        raise RuntimeError("listener bug")

    book.on_price_updated(broken)
    book.on_price_updated(lambda sym, price: seen.append(sym))

    book.refresh("MSFT")

    assert seen == ["MSFT"]


def test_prices_snapshot(rng):
    book = PriceBook.from_instruments(DEFAULT_INSTRUMENTS, rng=rng)

    snapshot = book.get_prices_snapshot()
    assert set(snapshot) == {"GOLD", "OIL", "BTC", "AAPL", "MSFT"}
    assert all(p > 0 for p in snapshot.values())

    assert set(book.get_prices_snapshot(["GOLD"])) == {"GOLD"}


def test_symbols_match_case_insensitively(rng):
    feed = BitcoinPriceFeed()
    book = PriceBook.from_instruments(DEFAULT_INSTRUMENTS, feed=feed, rng=rng)

    assert book.source_for("btc") is book.source_for("BTC")
    assert isinstance(book.source_for(" btc "), LivePriceSource)
    assert book.price_series("gold") == book.price_series("GOLD")
    assert len(book.symbols()) == len(DEFAULT_INSTRUMENTS)
