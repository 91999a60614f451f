from __future__ import annotations

import random
from typing import List, Optional


SERIES_LENGTH = 30
MAX_STEP_CHANGE = 0.02


def generate_series(
    base_price: float,
    points: int = SERIES_LENGTH,
    max_change: float = MAX_STEP_CHANGE,
    rng: Optional[random.Random] = None,
) -> List[float]:
    """Random walk of ``points`` prices starting from ``base_price``.

    Each step multiplies the running value by ``1 + u`` with ``u`` uniform in
    ``[-max_change, max_change]``; the base itself is not part of the output.
    Oldest first. A stand-in for display and valuation, not a market model.
    """
    if base_price <= 0:
        raise ValueError(f"base price must be positive, got {base_price}")
    r = rng or random
    out: List[float] = []
    value = base_price
    for _ in range(points):
        value *= 1 + r.uniform(-max_change, max_change)
        out.append(value)
    return out
