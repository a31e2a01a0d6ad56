from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from utmdash.columns import detect_revenue_column
from utmdash.parser import Table, is_number
from utmdash.storage import HISTORY_KEY, Storage

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class HistoryStats(BaseModel):
    vendas: int = 0
    faturamento: float = 0.0


class HistoryEntry(BaseModel):
    id: str
    name: str
    timestamp: int  # epoch milliseconds
    data: Dict[str, Any] = Field(default_factory=dict)
    stats: HistoryStats = Field(default_factory=HistoryStats)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000)

    def table(self) -> Table:
        return Table.from_dict(self.data)


def snapshot_revenue(table: Table) -> float:
    col = detect_revenue_column(table.headers)
    if col is None:
        return 0.0
    return float(sum(r[col] for r in table.rows if is_number(r.get(col))))


class HistoryStore:
    """Most recent imports, newest first, capped at `limit` entries."""

    def __init__(self, storage: Storage, *, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.storage = storage
        self.limit = max(1, int(limit))

    def list(self) -> List[HistoryEntry]:
        raw = self.storage.load(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed history (expected a list, got %s)", type(raw).__name__)
            return []
        entries: List[HistoryEntry] = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError:
                logger.warning("Dropping unreadable history entry", exc_info=True)
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def _save(self, entries: List[HistoryEntry]) -> None:
        self.storage.save(HISTORY_KEY, [e.model_dump(mode="json") for e in entries])

    def record(self, table: Table, name: str, *, now: Optional[datetime] = None) -> HistoryEntry:
        snapshot = table.copy()
        now = now or datetime.now()
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            name=name,
            timestamp=int(now.timestamp() * 1000),
            data=snapshot.to_dict(),
            stats=HistoryStats(vendas=len(snapshot), faturamento=snapshot_revenue(snapshot)),
        )
        entries = sorted([entry, *self.list()], key=lambda e: e.timestamp, reverse=True)
        self._save(entries[: self.limit])
        logger.info("Recorded import %r (%d rows)", name, entry.stats.vendas)
        return entry

    def remove(self, entry_id: str) -> bool:
        entries = self.list()
        kept = [e for e in entries if e.id != entry_id]
        if len(kept) == len(entries):
            return False
        self._save(kept)
        return True

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        return next((e for e in self.list() if e.id == entry_id), None)

    def load(self, entry_id: str) -> Optional[Table]:
        """Fresh copy of a stored table; the stored entry is never touched."""
        entry = self.get(entry_id)
        return entry.table() if entry is not None else None
