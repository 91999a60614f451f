"""Price sources behind a single "current price for symbol" query.

Each symbol is bound once, when the price book is configured, to either a
synthetic random-walk source or a live feed source with a synthetic
fallback. Queries never branch on the symbol name.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from investsim.data.instruments import DEFAULT_BASE_PRICE, DEFAULT_INSTRUMENTS, Instrument, normalize_symbol
from investsim.data.synthetic import generate_series
from investsim.trading.orders import IDataProvider
from investsim.ws.binance import BitcoinPriceFeed

logger = logging.getLogger(__name__)

PriceListener = Callable[[str, Decimal], None]


class PriceSource(ABC):
    """Current price and recent series for one symbol."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol

    @abstractmethod
    def current_price(self) -> float:
        ...

    @abstractmethod
    def price_series(self) -> List[float]:
        """Recent prices, oldest first."""
        ...

    @property
    def is_live(self) -> bool:
        return False


class SyntheticPriceSource(PriceSource):
    """Random-walk prices around a base price.

    The series is generated once and cached so the chart and the ledger see
    the same last price; ``refresh`` draws a new one.
    """

    def __init__(self, symbol: str, base_price: float, rng: Optional[random.Random] = None) -> None:
        super().__init__(symbol)
        self.base_price = base_price
        self._rng = rng or random.Random()
        self._series = generate_series(base_price, rng=self._rng)

    def current_price(self) -> float:
        return self._series[-1]

    def price_series(self) -> List[float]:
        return list(self._series)

    def refresh(self) -> float:
        self._series = generate_series(self.base_price, rng=self._rng)
        return self._series[-1]


class LivePriceSource(PriceSource):
    """Prices from a live feed, falling back to a synthetic source.

    The feed's price is used only while it is connected and positive.
    """

    def __init__(self, symbol: str, feed: BitcoinPriceFeed, fallback: SyntheticPriceSource) -> None:
        super().__init__(symbol)
        self.feed = feed
        self.fallback = fallback

    @property
    def is_live(self) -> bool:
        return self.feed.is_connected and self.feed.current_price > 0

    def current_price(self) -> float:
        if self.is_live:
            return self.feed.current_price
        return self.fallback.current_price()

    def price_series(self) -> List[float]:
        data = self.feed.chart_data()
        return data if data else self.fallback.price_series()


class PriceBook(IDataProvider):
    """Registry of price sources keyed by ledger symbol.

    Symbols that were never configured get a synthetic source at
    ``DEFAULT_BASE_PRICE`` on first use.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()
        self._sources: Dict[str, PriceSource] = {}
        self._listeners: List[PriceListener] = []

    @classmethod
    def from_instruments(
        cls,
        instruments: Iterable[Instrument] = DEFAULT_INSTRUMENTS,
        feed: Optional[BitcoinPriceFeed] = None,
        rng: Optional[random.Random] = None,
    ) -> "PriceBook":
        """Bind every instrument; live ones use ``feed`` when one is given."""
        book = cls(rng=rng)
        for inst in instruments:
            if inst.live and feed is not None:
                book.register_live(inst.symbol, feed, inst.base_price)
            else:
                book.register_synthetic(inst.symbol, inst.base_price)
        return book

    def register_synthetic(self, symbol: str, base_price: float) -> SyntheticPriceSource:
        symbol = normalize_symbol(symbol)
        source = SyntheticPriceSource(symbol, base_price, rng=self._rng)
        self._sources[symbol] = source
        return source

    def register_live(self, symbol: str, feed: BitcoinPriceFeed, fallback_base_price: float) -> LivePriceSource:
        symbol = normalize_symbol(symbol)
        fallback = SyntheticPriceSource(symbol, fallback_base_price, rng=self._rng)
        source = LivePriceSource(symbol, feed, fallback)
        self._sources[symbol] = source
        feed.priceUpdated.connect(lambda price, _ts: self._notify(symbol, Decimal(str(price))))
        return source

    def source_for(self, symbol: str) -> PriceSource:
        """Source bound to ``symbol``, matched case-insensitively."""
        symbol = normalize_symbol(symbol)
        source = self._sources.get(symbol)
        if source is None:
            logger.debug(f"No source configured for {symbol}, using synthetic default")
            source = self.register_synthetic(symbol, DEFAULT_BASE_PRICE)
        return source

    def symbols(self) -> List[str]:
        return list(self._sources)

    def current_price(self, symbol: str) -> float:
        return self.source_for(symbol).current_price()

    def get_current_price(self, symbol: str) -> Optional[Decimal]:
        price = self.current_price(symbol)
        if price <= 0:
            return None
        return Decimal(str(price))

    def price_series(self, symbol: str) -> List[float]:
        return self.source_for(symbol).price_series()

    def refresh(self, symbol: str) -> None:
        """Draw a new synthetic series for ``symbol`` (the fallback, if live)."""
        source = self.source_for(symbol)
        synthetic = source.fallback if isinstance(source, LivePriceSource) else source
        synthetic.refresh()
        self._notify(source.symbol, Decimal(str(source.current_price())))

    def get_prices_snapshot(self, symbols: Optional[Iterable[str]] = None) -> Dict[str, Decimal]:
        wanted = self.symbols() if symbols is None else symbols
        out: Dict[str, Decimal] = {}
        for sym in wanted:
            price = self.get_current_price(sym)
            if price is not None:
                out[sym] = price
        return out

    def is_connected(self) -> bool:
        return any(s.is_live for s in self._sources.values())

    def on_price_updated(self, callback: PriceListener) -> Callable[[], None]:
        """Register ``callback(symbol, price)``; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, symbol: str, price: Decimal) -> None:
        for listener in list(self._listeners):
            try:
                listener(symbol, price)
            except Exception:
                logger.exception(f"Price listener failed for {symbol}")
