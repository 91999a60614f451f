"""Key/value persistence for simulator session state.

Each key is one JSON document on disk. Ledger and progress snapshots are
stored under ``PORTFOLIO_KEY`` and ``PROGRESS_KEY``.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

PORTFOLIO_KEY = "portfolio"
PROGRESS_KEY = "progress"

_SUFFIX = ".json"


class IStorageService(ABC):
    """Save, load and delete JSON-compatible documents by string key."""

    @abstractmethod
    def save(self, key: str, data: Any) -> None:
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Stored document for ``key``, or None if missing or unreadable."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class JsonFileStorage(IStorageService):
    """One ``<key>.json`` file per key under ``base_path``.

    Writes go to a temporary sibling first and are then moved over the
    target file.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._root = Path(base_path)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        name = key.replace("/", "_").replace("\\", "_")
        return self._root / (name + _SUFFIX)

    def save(self, key: str, data: Any) -> None:
        """Write ``data`` for ``key``.

        Raises:
            TypeError: If data is not JSON-serializable
            OSError: If the file cannot be written
        """
        target = self._path_for(key)
        staging = target.with_name(target.name + ".tmp")
        try:
            text = json.dumps(data, indent=2, ensure_ascii=False)
            staging.write_text(text, encoding="utf-8")
            os.replace(staging, target)
        except (TypeError, OSError) as e:
            logger.error(f"Could not store '{key}' in {self._root}: {e}")
            staging.unlink(missing_ok=True)
            raise

    def load(self, key: str) -> Optional[Any]:
        source = self._path_for(key)
        if not source.is_file():
            return None
        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Ignoring unreadable JSON in {source.name}: {e}")
        except OSError as e:
            logger.error(f"Could not read {source}: {e}")
        return None

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not remove '{key}' from {self._root}: {e}")

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self._root.glob("*" + _SUFFIX))
