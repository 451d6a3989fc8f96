"""Core service layer - the caller-facing verbs of the staging queue.

Flow:
1. Producers call insert() with a uuid and an opaque JSON payload
2. The deliverer calls fetch_batch(), which checks entries out
3. After the collector confirms receipt, the deliverer calls acknowledge()
4. A reclaimer periodically calls reclaim_stale() so entries whose
   delivery never completed become available again
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from .store.models import TelemetryBatch, TelemetryEntry
from .store.repository import TelemetryRepository


logger = logging.getLogger(__name__)


@dataclass
class TelemetryService:
    """
    Telemetry staging service.

    Delivery is at-least-once: an entry whose acknowledgment arrives after
    it was reclaimed is simply deleted, and an entry reclaimed before its
    acknowledgment may be delivered twice.
    """
    repository: TelemetryRepository

    _stats: dict = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self):
        self._stats = {
            "inserted": 0,
            "checked_out": 0,
            "acknowledged": 0,
            "reclaimed": 0,
        }

    def insert(self, uuid: str, payload: Any) -> None:
        """Stage an event for delivery."""
        self.repository.insert_payload(uuid, payload)
        self._count("inserted", 1)

    def fetch_batch(self) -> TelemetryBatch:
        """Check out the next batch of events for delivery."""
        batch = self.repository.get_entries()
        self._count("checked_out", len(batch))
        return batch

    def acknowledge(self, uuids: Iterable[str]) -> int:
        """
        Permanently remove delivered events.

        Safe to repeat; ids that are already gone are ignored.
        Returns the number of entries actually removed.
        """
        removed = self.repository.remove_many(uuids)
        self._count("acknowledged", removed)
        if removed:
            logger.debug(f"Acknowledged {removed} telemetry entries")
        return removed

    def reclaim_stale(self) -> int:
        """Return stuck checkouts to the available pool."""
        reclaimed = self.repository.refresh_availability()
        self._count("reclaimed", reclaimed)
        return reclaimed

    def get_entry(self, uuid: str) -> TelemetryEntry:
        """Look up a single staged entry (raises EntryNotFoundError)."""
        return self.repository.get_entry(uuid)

    def _count(self, key: str, amount: int) -> None:
        # Called from the request threadpool and worker threads at once
        with self._lock:
            self._stats[key] += amount

    @property
    def stats(self) -> dict:
        """Get service statistics."""
        with self._lock:
            counters = dict(self._stats)
        return {
            **counters,
            "stored": self.repository.count(),
            "available": self.repository.count_available(),
            "entries_limit": self.repository.config.entries_limit,
        }
