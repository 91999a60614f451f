# Storage module
"""Persistence of ledger and progress snapshots."""

from investsim.storage.storage import IStorageService, JsonFileStorage, PORTFOLIO_KEY, PROGRESS_KEY

__all__ = ["IStorageService", "JsonFileStorage", "PORTFOLIO_KEY", "PROGRESS_KEY"]
