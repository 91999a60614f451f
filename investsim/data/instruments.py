from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


# Base price for symbols that are not in the catalog.
DEFAULT_BASE_PRICE = 100.0


@dataclass(frozen=True)
class Instrument:
    symbol: str
    name: str
    base_price: float
    risk_level: str
    live: bool = False
    # Exchange pair used by the live feed, e.g. "BTCUSDT"
    exchange_symbol: str = ""


DEFAULT_INSTRUMENTS: List[Instrument] = [
    Instrument("GOLD", "Gold", 1950.0, "Low to Medium"),
    Instrument("OIL", "Crude Oil", 75.0, "Medium to High"),
    Instrument("BTC", "Bitcoin", 45000.0, "Very High", live=True, exchange_symbol="BTCUSDT"),
    Instrument("AAPL", "Apple Inc.", 175.0, "Low to Medium"),
    Instrument("MSFT", "Microsoft", 380.0, "Low to Medium"),
]


def normalize_symbol(symbol: str) -> str:
    """Canonical ledger symbol: trimmed and upper-case."""
    return symbol.strip().upper()


def catalog(instruments: List[Instrument] | None = None) -> Dict[str, Instrument]:
    items = DEFAULT_INSTRUMENTS if instruments is None else instruments
    return {i.symbol: i for i in items}


def base_price_for(symbol: str) -> float:
    inst = catalog().get(normalize_symbol(symbol))
    return inst.base_price if inst else DEFAULT_BASE_PRICE
