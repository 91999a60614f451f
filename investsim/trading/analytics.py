"""Valuation and performance analytics for paper investing."""

import csv
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Tuple

from .models import Position, Transaction, TransactionKind
from .portfolio import IPortfolioManager


@dataclass
class HoldingValuation:
    """A position marked to a current price."""
    symbol: str
    quantity: Decimal
    average_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    total_return: Decimal
    total_return_percent: Decimal

    @classmethod
    def of(cls, position: Position, current_price: Decimal) -> "HoldingValuation":
        return cls(
            symbol=position.symbol,
            quantity=position.quantity,
            average_cost=position.average_cost,
            current_price=current_price,
            current_value=position.current_value(current_price),
            total_return=position.total_return(current_price),
            total_return_percent=position.total_return_percent(current_price),
        )


@dataclass
class AllocationSlice:
    """Share of the invested value held in one symbol (percentage 0-100)."""
    symbol: str
    value: Decimal
    percentage: Decimal


@dataclass
class PortfolioSummary:
    """Snapshot of a portfolio valued at a set of prices.

    Attributes:
        cash: Available cash
        holdings_value: Market value of all positions
        total_value: cash + holdings_value
        invested_cost: Cost basis of all positions
        unrealized_pnl: holdings_value - invested_cost
        unrealized_pnl_percent: unrealized_pnl relative to invested_cost
        holdings: Per-position valuations
        allocation: Per-symbol share of holdings_value, largest first
    """
    cash: Decimal
    holdings_value: Decimal
    total_value: Decimal
    invested_cost: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    holdings: List[HoldingValuation] = field(default_factory=list)
    allocation: List[AllocationSlice] = field(default_factory=list)


def summarize_portfolio(
    portfolio: IPortfolioManager, prices: Mapping[str, Decimal]
) -> PortfolioSummary:
    """Value every position and compute totals and allocation.

    Positions without an entry in ``prices`` are valued at their average
    cost, matching ``get_portfolio_value``.
    """
    holdings: List[HoldingValuation] = []
    for symbol, position in portfolio.get_positions().items():
        price = prices.get(symbol, position.average_cost)
        holdings.append(HoldingValuation.of(position, price))

    holdings_value = sum((h.current_value for h in holdings), Decimal("0"))
    invested_cost = sum((h.quantity * h.average_cost for h in holdings), Decimal("0"))
    unrealized = holdings_value - invested_cost
    if invested_cost > 0:
        unrealized_pct = unrealized / invested_cost * Decimal("100")
    else:
        unrealized_pct = Decimal("0")

    allocation: List[AllocationSlice] = []
    if holdings_value > 0:
        for h in sorted(holdings, key=lambda h: h.current_value, reverse=True):
            allocation.append(AllocationSlice(
                symbol=h.symbol,
                value=h.current_value,
                percentage=h.current_value / holdings_value * Decimal("100"),
            ))

    cash = portfolio.get_balance()
    return PortfolioSummary(
        cash=cash,
        holdings_value=holdings_value,
        total_value=cash + holdings_value,
        invested_cost=invested_cost,
        unrealized_pnl=unrealized,
        unrealized_pnl_percent=unrealized_pct,
        holdings=holdings,
        allocation=allocation,
    )


@dataclass
class PerformanceMetrics:
    """Performance metrics for trading activity.

    Attributes:
        total_trades: Number of sell trades
        profitable_trades: Number of sells with positive PnL
        win_rate: Percentage of profitable sells (0-100)
        realized_pnl: Total realized profit/loss from sells
        total_volume: Sum of all transaction amounts
    """
    total_trades: int
    profitable_trades: int
    win_rate: Decimal
    realized_pnl: Decimal
    total_volume: Decimal


class PerformanceAnalytics:
    """Realized performance computed from the transaction log.

    Replays the log with the same weighted average cost rule the ledger
    uses, so a sell's PnL is ``(sell price - average cost) * quantity``.
    """

    def calculate_metrics(self, transactions: List[Transaction]) -> PerformanceMetrics:
        sell_pnls = self._calculate_per_trade_pnl(transactions)
        total_trades = len(sell_pnls)
        profitable_trades = sum(1 for pnl in sell_pnls if pnl > 0)

        if total_trades > 0:
            win_rate = Decimal(profitable_trades) / Decimal(total_trades) * Decimal("100")
        else:
            win_rate = Decimal("0")

        return PerformanceMetrics(
            total_trades=total_trades,
            profitable_trades=profitable_trades,
            win_rate=win_rate,
            realized_pnl=sum(sell_pnls, Decimal("0")),
            total_volume=sum((txn.total_amount for txn in transactions), Decimal("0")),
        )

    def calculate_realized_pnl(self, transactions: List[Transaction]) -> Decimal:
        """Total realized profit/loss over all sells."""
        return sum(self._calculate_per_trade_pnl(transactions), Decimal("0"))

    def _calculate_per_trade_pnl(self, transactions: List[Transaction]) -> List[Decimal]:
        # {symbol: (quantity, cost)}
        cost_basis: Dict[str, Tuple[Decimal, Decimal]] = {}
        sell_pnls: List[Decimal] = []

        # sorted() is stable, so same-timestamp entries keep log order
        for txn in sorted(transactions, key=lambda t: t.timestamp):
            qty, cost = cost_basis.get(txn.symbol, (Decimal("0"), Decimal("0")))

            if txn.kind is TransactionKind.BUY:
                cost_basis[txn.symbol] = (qty + txn.quantity, cost + txn.total_amount)
                continue

            if qty <= 0:
                # Sell without a recorded buy, e.g. a truncated log
                sell_pnls.append(Decimal("0"))
                continue

            avg_cost = cost / qty
            sell_pnls.append((txn.price - avg_cost) * txn.quantity)
            remaining = qty - txn.quantity
            if remaining > 0:
                cost_basis[txn.symbol] = (remaining, avg_cost * remaining)
            else:
                cost_basis[txn.symbol] = (Decimal("0"), Decimal("0"))

        return sell_pnls

    def sort_transactions_by_timestamp(
        self, transactions: List[Transaction], descending: bool = True
    ) -> List[Transaction]:
        """Sort transactions by timestamp, most recent first by default."""
        return sorted(transactions, key=lambda t: t.timestamp, reverse=descending)

    def export_to_csv(self, transactions: List[Transaction], filepath: str) -> None:
        """Write the transaction history to a CSV file."""
        fieldnames = ["id", "symbol", "kind", "quantity", "price", "total_amount", "timestamp"]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
            writer.writeheader()

            for txn in transactions:
                writer.writerow({
                    "id": txn.id,
                    "symbol": txn.symbol,
                    "kind": txn.kind.value,
                    "quantity": str(txn.quantity),
                    "price": str(txn.price),
                    "total_amount": str(txn.total_amount),
                    "timestamp": txn.timestamp.isoformat()
                })
