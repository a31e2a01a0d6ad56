"""Persistence port.

The dashboard keeps a handful of small JSON values across sessions (history,
manual costs, UI toggles). Everything goes through `Storage` so the core can be
exercised with `MemoryStorage` and the app can use `JsonFileStorage`.
Persistence is best effort: unreadable or corrupt state loads as the default.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

LINKED_FILTERS_KEY = "utmdash_linked_filters"
HISTORY_KEY = "utmdash_history"
GENERAL_INVESTMENT_KEY = "utmdash_manual_invest"
FROZEN_BALANCE_KEY = "utmdash_frozen_balance"
GROUP_INVESTMENT_KEY = "utmdash_group_invest"


class Storage(Protocol):
    def load(self, key: str, default: Any = None) -> Any:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


class MemoryStorage:
    """In-process storage holding JSON text per key, like browser local storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt value for %s", key)
            return default

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def raw(self, key: str) -> Optional[str]:
        return self._data.get(key)


class JsonFileStorage:
    """All keys in one JSON document on disk, rewritten on every save."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Could not read state file %s; starting from defaults", self.path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object; ignoring it", self.path)
            return {}
        return data

    def load(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def save(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        except OSError:
            logger.exception("Failed to persist %s to %s", key, self.path)
