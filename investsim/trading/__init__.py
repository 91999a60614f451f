# Trading module
"""Paper investing ledger, order service and analytics."""

from .models import (
    DUST_THRESHOLD,
    OrderRejectionReason,
    OrderResult,
    OrderStatus,
    Position,
    Transaction,
    TransactionKind,
)
from .portfolio import IPortfolioManager, PortfolioManager, PortfolioSerializer
from .orders import IDataProvider, OrderService
from .analytics import (
    AllocationSlice,
    HoldingValuation,
    PerformanceAnalytics,
    PerformanceMetrics,
    PortfolioSummary,
    summarize_portfolio,
)

__all__ = [
    "DUST_THRESHOLD",
    "OrderRejectionReason",
    "OrderResult",
    "OrderStatus",
    "Position",
    "Transaction",
    "TransactionKind",
    "IPortfolioManager",
    "PortfolioManager",
    "PortfolioSerializer",
    "IDataProvider",
    "OrderService",
    "AllocationSlice",
    "HoldingValuation",
    "PerformanceAnalytics",
    "PerformanceMetrics",
    "PortfolioSummary",
    "summarize_portfolio",
]
