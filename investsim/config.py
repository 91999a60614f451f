"""Simulator settings.

Defaults can be overridden from a stored settings document and then from
``INVESTSIM_*`` environment variables, in that order.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

from investsim.storage.storage import IStorageService

logger = logging.getLogger(__name__)

SETTINGS_STORAGE_KEY = "settings"
ENV_PREFIX = "INVESTSIM_"


@dataclass
class SimulatorSettings:
    """Simulator settings model."""
    initial_cash: str = "10000.00"  # Decimal string
    data_dir: str = str(Path.home() / ".investsim" / "data")
    live_feed: bool = True
    live_symbol: str = "BTCUSDT"
    ws_base_url: str = "wss://stream.binance.com:9443/ws"
    rest_base_url: str = "https://api.binance.com"
    rest_timeout_s: float = 5.0
    reconnect_delay_ms: int = 5000
    history_capacity: int = 100
    min_live_price: float = 1000.0
    max_live_price: float = 200000.0
    trade_xp: int = 10
    lesson_xp: int = 20

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping) -> "SimulatorSettings":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "SimulatorSettings":
        """Copy with ``INVESTSIM_<FIELD>`` variables applied."""
        env = os.environ if environ is None else environ
        values = self.to_dict()
        for f in fields(self):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                values[f.name] = _coerce(raw, _FIELD_TYPES[f.type])
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{f.name.upper()}={raw!r}")
        return SimulatorSettings(**values)


# Field annotations are strings under postponed evaluation
_FIELD_TYPES = {"str": str, "bool": bool, "int": int, "float": float}


def _coerce(raw: str, kind: type):
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(raw)
    return kind(raw)


def load_settings(
    storage: Optional[IStorageService] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SimulatorSettings:
    """Defaults, then the stored document, then the environment."""
    settings = SimulatorSettings()
    if storage is not None:
        data = storage.load(SETTINGS_STORAGE_KEY)
        if isinstance(data, dict):
            settings = SimulatorSettings.from_dict(data)
    return settings.with_env(environ)
