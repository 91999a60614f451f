"""Portfolio ledger for paper investing."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from .models import (
    DUST_THRESHOLD,
    Number,
    OrderRejectionReason,
    OrderResult,
    Position,
    Transaction,
    TransactionKind,
    to_decimal,
)

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_BALANCE = Decimal("10000.00")

PortfolioListener = Callable[[Optional[Transaction]], None]


class IPortfolioManager(ABC):
    """Cash, holdings and the append-only transaction log of one user."""

    @abstractmethod
    def get_balance(self) -> Decimal:
        """Cash available for new purchases."""
        ...

    @abstractmethod
    def get_positions(self) -> Dict[str, Position]:
        """Snapshot of open holdings keyed by symbol."""
        ...

    @abstractmethod
    def get_position(self, symbol: str) -> Optional[Position]:
        ...

    @abstractmethod
    def get_portfolio_value(self, prices: Dict[str, Decimal]) -> Decimal:
        """Cash plus holdings valued at ``prices``."""
        ...

    @abstractmethod
    def get_unrealized_pnl(self, symbol: str, current_price: Decimal) -> Decimal:
        ...

    @abstractmethod
    def buy(self, symbol: str, quantity: Number, price: Number) -> OrderResult:
        """Validate and execute a buy order."""
        ...

    @abstractmethod
    def sell(self, symbol: str, quantity: Number, price: Number) -> OrderResult:
        """Validate and execute a sell order."""
        ...

    @abstractmethod
    def reset(self, initial_balance: Decimal) -> None:
        """Drop holdings and history and start over with fresh cash."""
        ...

    @abstractmethod
    def get_transactions(self) -> List[Transaction]:
        """Executed orders, oldest first."""
        ...

    @abstractmethod
    def get_initial_balance(self) -> Decimal:
        ...


class PortfolioManager(IPortfolioManager):
    """In-memory ledger of cash, positions and transactions.

    Uses the weighted average cost method for position tracking. Every
    expected failure (bad input, not enough cash, not enough units) comes
    back as a rejected ``OrderResult`` and leaves the ledger untouched.
    """

    def __init__(self, initial_balance: Decimal = DEFAULT_INITIAL_BALANCE) -> None:
        """Create a ledger holding only cash.

        Args:
            initial_balance: Opening cash, 10,000 unless given
        """
        if initial_balance < 0:
            raise ValueError("initial balance must not be negative")
        self._initial_balance = initial_balance
        self._balance = initial_balance
        self._positions: Dict[str, Position] = {}
        self._transactions: List[Transaction] = []
        self._listeners: List[PortfolioListener] = []
        self._lock = threading.RLock()

    def get_balance(self) -> Decimal:
        return self._balance

    def get_positions(self) -> Dict[str, Position]:
        return dict(self._positions)

    def get_position(self, symbol: str) -> Optional[Position]:
        return self._positions.get(symbol)

    def get_portfolio_value(self, prices: Dict[str, Decimal]) -> Decimal:
        """Cash plus every holding at its price in ``prices``.

        A holding without a price counts at its cost basis.
        """
        total = self._balance
        for position in self._positions.values():
            price = prices.get(position.symbol)
            total += position.total_cost if price is None else position.current_value(price)
        return total

    def get_unrealized_pnl(self, symbol: str, current_price: Decimal) -> Decimal:
        """Paper gain (or loss, negative) on ``symbol``; 0 if not held."""
        held = self._positions.get(symbol)
        return Decimal("0") if held is None else held.total_return(current_price)

    def buy(self, symbol: str, quantity: Number, price: Number) -> OrderResult:
        """Spend cash on ``quantity`` units of ``symbol`` at ``price``.

        Adding to a holding re-weights its average cost by quantity.

        Args:
            symbol: Instrument identifier
            quantity: Units to buy
            price: Fill price per unit

        Returns:
            OrderResult, EXECUTED with the transaction or REJECTED with
            INVALID_QUANTITY, INVALID_PRICE or INSUFFICIENT_CASH
        """
        quantity = to_decimal(quantity)
        price = to_decimal(price)
        rejection = self._validate_order(quantity, price)
        if rejection is not None:
            return rejection

        with self._lock:
            cost = quantity * price
            if cost > self._balance:
                return OrderResult.rejected(
                    OrderRejectionReason.INSUFFICIENT_CASH,
                    f"Insufficient cash: need {cost}, have {self._balance}",
                )

            held = self._positions.get(symbol)
            if held is None:
                updated = Position(symbol=symbol, quantity=quantity, average_cost=price)
            else:
                new_quantity = held.quantity + quantity
                updated = Position(
                    symbol=symbol,
                    quantity=new_quantity,
                    average_cost=(held.total_cost + cost) / new_quantity,
                )
            self._positions[symbol] = updated
            self._balance -= cost

            transaction = self._record(symbol, TransactionKind.BUY, quantity, price)

        self._notify(transaction)
        return OrderResult.executed(transaction, f"Bought {quantity} {symbol} at {price}")

    def sell(self, symbol: str, quantity: Number, price: Number) -> OrderResult:
        """Turn ``quantity`` units of ``symbol`` back into cash at ``price``.

        Average cost remains unchanged for the remaining units. A position
        whose remainder is at or below ``DUST_THRESHOLD`` is removed.

        Returns:
            OrderResult, EXECUTED with the transaction or REJECTED with
            INVALID_QUANTITY, INVALID_PRICE, NO_SUCH_HOLDING or
            INSUFFICIENT_QUANTITY
        """
        quantity = to_decimal(quantity)
        price = to_decimal(price)
        rejection = self._validate_order(quantity, price)
        if rejection is not None:
            return rejection

        with self._lock:
            held = self._positions.get(symbol)
            if held is None:
                return OrderResult.rejected(
                    OrderRejectionReason.NO_SUCH_HOLDING,
                    f"No holding for {symbol}",
                )
            if quantity > held.quantity:
                return OrderResult.rejected(
                    OrderRejectionReason.INSUFFICIENT_QUANTITY,
                    f"Insufficient holdings: need {quantity}, have {held.quantity}",
                )

            self._balance += quantity * price

            remaining = held.quantity - quantity
            if remaining <= DUST_THRESHOLD:
                del self._positions[symbol]
            else:
                self._positions[symbol] = Position(
                    symbol=symbol,
                    quantity=remaining,
                    average_cost=held.average_cost,
                )

            transaction = self._record(symbol, TransactionKind.SELL, quantity, price)

        self._notify(transaction)
        return OrderResult.executed(transaction, f"Sold {quantity} {symbol} at {price}")

    def reset(self, initial_balance: Decimal) -> None:
        """Start over with ``initial_balance`` cash and an empty log.

        Listeners are notified with None.
        """
        if initial_balance < 0:
            raise ValueError("initial balance must not be negative")
        with self._lock:
            self._initial_balance = initial_balance
            self._balance = initial_balance
            self._positions.clear()
            self._transactions.clear()
        self._notify(None)

    def get_transactions(self) -> List[Transaction]:
        return list(self._transactions)

    def get_initial_balance(self) -> Decimal:
        return self._initial_balance

    def on_change(self, callback: PortfolioListener) -> Callable[[], None]:
        """Register a callback fired after every executed order and reset.

        The callback receives the new transaction, or None after a reset.

        Returns:
            A function that removes the callback again
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _validate_order(self, quantity: Decimal, price: Decimal) -> Optional[OrderResult]:
        if not quantity.is_finite() or quantity <= 0:
            return OrderResult.rejected(
                OrderRejectionReason.INVALID_QUANTITY,
                "Quantity must be greater than zero"
            )
        if not price.is_finite() or price <= 0:
            return OrderResult.rejected(
                OrderRejectionReason.INVALID_PRICE,
                "Price must be greater than zero"
            )
        return None

    def _record(
        self, symbol: str, kind: TransactionKind, quantity: Decimal, price: Decimal
    ) -> Transaction:
        entry = Transaction(
            symbol=symbol,
            kind=kind,
            quantity=quantity,
            price=price,
            timestamp=datetime.now()
        )
        self._transactions.append(entry)
        return entry

    def _notify(self, transaction: Optional[Transaction]) -> None:
        for listener in list(self._listeners):
            try:
                listener(transaction)
            except Exception:
                logger.exception("Portfolio listener failed")


def _position_to_dict(position: Position) -> Dict[str, str]:
    return {
        "symbol": position.symbol,
        "quantity": str(position.quantity),
        "average_cost": str(position.average_cost),
    }


def _transaction_to_dict(txn: Transaction) -> Dict[str, str]:
    return {
        "id": txn.id,
        "symbol": txn.symbol,
        "kind": txn.kind.value,
        "quantity": str(txn.quantity),
        "price": str(txn.price),
        "timestamp": txn.timestamp.isoformat(),
    }


def _non_negative(value: Decimal, name: str) -> Decimal:
    if not value.is_finite() or value < 0:
        raise ValueError(f"{name} must be a non-negative amount, got {value}")
    return value


def _transaction_from_dict(raw: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=raw["id"],
        symbol=raw["symbol"],
        kind=TransactionKind(raw["kind"]),
        quantity=Decimal(raw["quantity"]),
        price=Decimal(raw["price"]),
        timestamp=datetime.fromisoformat(raw["timestamp"]),
    )


class PortfolioSerializer:
    """Ledger snapshots as JSON-compatible dictionaries.

    Amounts are stored as decimal strings so a round trip is exact.
    """

    @staticmethod
    def serialize(portfolio: IPortfolioManager) -> dict:
        return {
            "balance": str(portfolio.get_balance()),
            "initial_balance": str(portfolio.get_initial_balance()),
            "positions": {
                symbol: _position_to_dict(p) for symbol, p in portfolio.get_positions().items()
            },
            "transactions": [_transaction_to_dict(t) for t in portfolio.get_transactions()],
            "saved_at": datetime.now().isoformat(),
        }

    @staticmethod
    def deserialize(data: dict) -> PortfolioManager:
        """Rebuild a ledger from ``serialize`` output.

        Raises:
            KeyError: If a required field is missing
            ArithmeticError: If an amount is not a decimal string
            ValueError: If a kind or timestamp is malformed, or the snapshot
                breaks a ledger invariant (negative cash, non-positive
                holding, negative cost, symbol mismatch)
        """
        initial = _non_negative(Decimal(data["initial_balance"]), "initial_balance")
        portfolio = PortfolioManager(initial)
        portfolio._balance = _non_negative(Decimal(data["balance"]), "balance")
        for symbol, raw in data.get("positions", {}).items():
            if raw["symbol"] != symbol:
                raise ValueError(f"position key {symbol!r} holds symbol {raw['symbol']!r}")
            quantity = Decimal(raw["quantity"])
            if not quantity.is_finite() or quantity <= 0:
                raise ValueError(f"non-positive quantity for {symbol}: {quantity}")
            portfolio._positions[symbol] = Position(
                symbol=symbol,
                quantity=quantity,
                average_cost=_non_negative(Decimal(raw["average_cost"]), f"average_cost of {symbol}"),
            )
        for raw in data.get("transactions", []):
            txn = _transaction_from_dict(raw)
            if not (txn.quantity.is_finite() and txn.price.is_finite()) or txn.quantity <= 0 or txn.price <= 0:
                raise ValueError(f"transaction {txn.id} has non-positive quantity or price")
            portfolio._transactions.append(txn)
        return portfolio
