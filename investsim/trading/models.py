"""Data models for the paper investing ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
import uuid


Number = Union[Decimal, int, float, str]

# Positions at or below this quantity after a sell are treated as liquidated.
DUST_THRESHOLD = Decimal("0.000001")


def to_decimal(value: Number) -> Decimal:
    """Convert a user or feed supplied number to Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class TransactionKind(Enum):
    """Side of an executed order."""
    BUY = "buy"
    SELL = "sell"


@dataclass
class Position:
    """Represents a holding in the portfolio.

    Attributes:
        symbol: Instrument identifier (e.g., "BTC", "AAPL")
        quantity: Units held, fractional for crypto
        average_cost: Volume-weighted purchase price per unit
    """
    symbol: str
    quantity: Decimal
    average_cost: Decimal

    @property
    def total_cost(self) -> Decimal:
        """Calculate total cost basis for this position."""
        return self.quantity * self.average_cost

    def current_value(self, current_price: Decimal) -> Decimal:
        """Market value of the position at ``current_price``."""
        return self.quantity * current_price

    def total_return(self, current_price: Decimal) -> Decimal:
        """Unrealized gain or loss against the cost basis."""
        return self.current_value(current_price) - self.total_cost

    def total_return_percent(self, current_price: Decimal) -> Decimal:
        """Unrealized return as a percentage of the average cost.

        A zero average cost has no meaningful percentage, so 0 is returned.
        """
        if self.average_cost == 0:
            return Decimal("0")
        return (current_price - self.average_cost) / self.average_cost * Decimal("100")


@dataclass(frozen=True)
class Transaction:
    """Represents a completed trade.

    Attributes:
        id: Unique transaction identifier (UUID)
        symbol: Instrument identifier
        kind: BUY or SELL
        quantity: Amount traded
        price: Execution price per unit
        total_amount: quantity * price, fixed at creation
        timestamp: Time of execution
    """
    symbol: str
    kind: TransactionKind
    quantity: Decimal
    price: Decimal
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    total_amount: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_amount", self.quantity * self.price)


class OrderStatus(Enum):
    """Status of an order after submission."""
    EXECUTED = "executed"
    REJECTED = "rejected"


class OrderRejectionReason(Enum):
    """Reason for order rejection."""
    INSUFFICIENT_CASH = "insufficient_cash"
    NO_SUCH_HOLDING = "no_such_holding"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_PRICE = "invalid_price"
    NO_PRICE_DATA = "no_price_data"


@dataclass
class OrderResult:
    """Result of an order submission.

    Truthy when the order executed, so callers that only need success can
    write ``if portfolio.buy(...)``.

    Attributes:
        status: EXECUTED or REJECTED
        transaction: The transaction record if the order executed
        rejection_reason: The reason for rejection if the order was rejected
        message: Human-readable message describing the result
    """
    status: OrderStatus
    transaction: Optional[Transaction] = None
    rejection_reason: Optional[OrderRejectionReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.status is OrderStatus.EXECUTED

    @classmethod
    def executed(cls, transaction: Transaction, message: str = "") -> "OrderResult":
        return cls(status=OrderStatus.EXECUTED, transaction=transaction, message=message)

    @classmethod
    def rejected(cls, reason: OrderRejectionReason, message: str = "") -> "OrderResult":
        return cls(status=OrderStatus.REJECTED, rejection_reason=reason, message=message)
