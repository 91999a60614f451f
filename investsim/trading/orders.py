"""Order service for paper investing.

This module provides order execution on top of the ledger:
- IDataProvider interface for price lookups
- OrderService for submitting market buy/sell orders at the current price
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING, Optional

from .models import Number, OrderRejectionReason, OrderResult, to_decimal
from .portfolio import IPortfolioManager

if TYPE_CHECKING:
    from investsim.progress.tracker import ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_TRADE_XP = 10

# Smallest tradable unit when converting a cash amount to a quantity.
QUANTITY_STEP = Decimal("0.00000001")


class IDataProvider(ABC):
    """Interface for market data providers.

    Abstracts the price source for order execution, allowing
    the OrderService to work with any data provider implementation.
    """

    @abstractmethod
    def get_current_price(self, symbol: str) -> Optional[Decimal]:
        """Get the current price for a symbol.

        Args:
            symbol: Instrument identifier (e.g., "BTC")

        Returns:
            Current price as Decimal, or None if unavailable
        """
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the live part of the data provider is connected."""
        ...


class OrderService:
    """Market order execution for paper investing.

    Prices orders from the data provider, lets the ledger validate and
    execute them, and rewards executed trades with XP when a progress
    tracker is attached.
    """

    def __init__(
        self,
        portfolio: IPortfolioManager,
        data_provider: IDataProvider,
        tracker: Optional[ProgressTracker] = None,
        trade_xp: int = DEFAULT_TRADE_XP,
    ) -> None:
        """Initialize order service.

        Args:
            portfolio: Ledger holding cash and positions
            data_provider: Data provider for current price lookup
            tracker: Optional progress tracker credited on executed orders
            trade_xp: XP awarded per executed order
        """
        self._portfolio = portfolio
        self._data_provider = data_provider
        self._tracker = tracker
        self._trade_xp = trade_xp

    def submit_buy(self, symbol: str, quantity: Number) -> OrderResult:
        """Buy ``quantity`` units of ``symbol`` at the current price."""
        price = self._data_provider.get_current_price(symbol)
        if price is None:
            return self._no_price(symbol)
        return self._finish(self._portfolio.buy(symbol, quantity, price))

    def submit_sell(self, symbol: str, quantity: Number) -> OrderResult:
        """Sell ``quantity`` units of ``symbol`` at the current price."""
        price = self._data_provider.get_current_price(symbol)
        if price is None:
            return self._no_price(symbol)
        return self._finish(self._portfolio.sell(symbol, quantity, price))

    def submit_buy_amount(self, symbol: str, amount: Number) -> OrderResult:
        """Spend a cash ``amount`` on ``symbol`` at the current price.

        The quantity is ``amount / price``, so fractional units result.
        """
        amount = to_decimal(amount)
        if not amount.is_finite() or amount <= 0:
            return OrderResult.rejected(
                OrderRejectionReason.INVALID_QUANTITY,
                "Amount must be greater than zero"
            )
        price = self._data_provider.get_current_price(symbol)
        if price is None:
            return self._no_price(symbol)
        if price <= 0:
            return OrderResult.rejected(
                OrderRejectionReason.INVALID_PRICE,
                f"Invalid price for {symbol}: {price}"
            )
        quantity = (amount / price).quantize(QUANTITY_STEP, rounding=ROUND_DOWN)
        return self._finish(self._portfolio.buy(symbol, quantity, price))

    def max_purchasable(self, symbol: str) -> Decimal:
        """Largest quantity of ``symbol`` the current cash can buy."""
        price = self._data_provider.get_current_price(symbol)
        if price is None or price <= 0:
            return Decimal("0")
        return (self._portfolio.get_balance() / price).quantize(QUANTITY_STEP, rounding=ROUND_DOWN)

    def _finish(self, result: OrderResult) -> OrderResult:
        if result:
            if self._tracker is not None:
                self._tracker.award_xp(self._trade_xp)
        else:
            logger.info(f"Order rejected: {result.message}")
        return result

    def _no_price(self, symbol: str) -> OrderResult:
        return OrderResult.rejected(
            OrderRejectionReason.NO_PRICE_DATA,
            f"No price data available for {symbol}"
        )
