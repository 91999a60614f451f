"""Session wiring: one ledger, price book, live feed and progress tracker."""

from __future__ import annotations

import logging
import random
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from investsim.config import SimulatorSettings
from investsim.data.instruments import DEFAULT_INSTRUMENTS, Instrument
from investsim.data.providers import BinanceRestProvider
from investsim.data.sources import PriceBook
from investsim.progress.models import Rank
from investsim.progress.tracker import ProgressSerializer, ProgressTracker
from investsim.storage.storage import IStorageService, PORTFOLIO_KEY, PROGRESS_KEY
from investsim.trading.analytics import PortfolioSummary, summarize_portfolio
from investsim.trading.models import Number, OrderResult, Transaction
from investsim.trading.orders import OrderService
from investsim.trading.portfolio import PortfolioManager, PortfolioSerializer
from investsim.ws.binance import BitcoinPriceFeed

logger = logging.getLogger(__name__)


class InvestingSession:
    """Owns all simulator state for one running app.

    Callers (a UI or a test) hold the session and talk to its parts; state
    changes are observed through ``on_portfolio_changed``,
    ``on_price_updated`` and ``on_progress_changed``.
    """

    def __init__(
        self,
        settings: Optional[SimulatorSettings] = None,
        storage: Optional[IStorageService] = None,
        instruments: List[Instrument] = DEFAULT_INSTRUMENTS,
        feed: Optional[BitcoinPriceFeed] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or SimulatorSettings()
        self._storage = storage
        self.instruments = {i.symbol: i for i in instruments}

        if feed is None and self.settings.live_feed:
            feed = self._make_feed()
        self.feed = feed

        self.prices = PriceBook.from_instruments(instruments, feed=feed, rng=rng)
        self.portfolio = self._load_portfolio()
        self.progress = self._load_progress()
        self.orders = OrderService(
            self.portfolio,
            self.prices,
            tracker=self.progress,
            trade_xp=self.settings.trade_xp,
        )

    def _make_feed(self) -> BitcoinPriceFeed:
        s = self.settings
        return BitcoinPriceFeed(
            symbol=s.live_symbol,
            ws_base=s.ws_base_url,
            snapshot_provider=BinanceRestProvider(base_url=s.rest_base_url, timeout_s=s.rest_timeout_s),
            reconnect_delay_ms=s.reconnect_delay_ms,
            history_capacity=s.history_capacity,
            min_price=s.min_live_price,
            max_price=s.max_live_price,
        )

    # ----- lifecycle -----
    def start(self) -> None:
        if self.feed is not None:
            self.feed.start()

    def stop(self) -> None:
        if self.feed is not None:
            self.feed.stop()

    # ----- trading -----
    def buy(self, symbol: str, quantity: Number) -> OrderResult:
        return self.orders.submit_buy(symbol, quantity)

    def sell(self, symbol: str, quantity: Number) -> OrderResult:
        return self.orders.submit_sell(symbol, quantity)

    def current_price(self, symbol: str) -> float:
        return self.prices.current_price(symbol)

    def price_series(self, symbol: str) -> List[float]:
        return self.prices.price_series(symbol)

    def current_prices(self) -> Dict[str, Decimal]:
        held = list(self.portfolio.get_positions())
        return self.prices.get_prices_snapshot(held)

    def total_value(self) -> Decimal:
        """Cash plus every holding at its current price."""
        return self.portfolio.get_portfolio_value(self.current_prices())

    def summary(self) -> PortfolioSummary:
        return summarize_portfolio(self.portfolio, self.current_prices())

    # ----- progress -----
    def award_xp(self, amount: int) -> bool:
        return self.progress.award_xp(amount)

    def complete_lesson(self, lesson_id: str, module_id: str) -> bool:
        return self.progress.complete_lesson(lesson_id, module_id)

    @property
    def total_xp(self) -> int:
        return self.progress.total_xp

    @property
    def rank(self) -> Rank:
        return self.progress.rank

    # ----- notifications -----
    def on_portfolio_changed(self, callback: Callable[[Optional[Transaction]], None]) -> Callable[[], None]:
        return self.portfolio.on_change(callback)

    def on_price_updated(self, callback: Callable[[str, Decimal], None]) -> Callable[[], None]:
        return self.prices.on_price_updated(callback)

    def on_progress_changed(self, callback: Callable[[ProgressTracker], None]) -> Callable[[], None]:
        return self.progress.on_change(callback)

    # ----- persistence -----
    def _load_portfolio(self) -> PortfolioManager:
        """Restore the ledger from storage, or start a fresh one."""
        if self._storage is not None:
            data = self._storage.load(PORTFOLIO_KEY)
            if data is not None:
                try:
                    portfolio = PortfolioSerializer.deserialize(data)
                    logger.info("Portfolio restored from storage")
                    return portfolio
                except (KeyError, ValueError, ArithmeticError, TypeError) as e:
                    logger.error(f"Failed to load portfolio, creating new: {e}")
        return PortfolioManager(Decimal(self.settings.initial_cash))

    def _load_progress(self) -> ProgressTracker:
        if self._storage is not None:
            data = self._storage.load(PROGRESS_KEY)
            if data is not None:
                try:
                    tracker = ProgressSerializer.deserialize(data, lesson_xp=self.settings.lesson_xp)
                    logger.info("Progress restored from storage")
                    return tracker
                except (AttributeError, ValueError, TypeError) as e:
                    logger.error(f"Failed to load progress, starting over: {e}")
        return ProgressTracker(lesson_xp=self.settings.lesson_xp)

    def save(self) -> bool:
        """Write ledger and progress to storage; False if nothing was saved."""
        if self._storage is None:
            return False
        try:
            self._storage.save(PORTFOLIO_KEY, PortfolioSerializer.serialize(self.portfolio))
            self._storage.save(PROGRESS_KEY, ProgressSerializer.serialize(self.progress))
        except (TypeError, OSError) as e:
            logger.error(f"Failed to save session: {e}")
            return False
        logger.info("Session saved to storage")
        return True
