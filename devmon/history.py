"""Time-windowed storage for device history and the alert log."""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Generic, Iterable, TypeVar

from devmon.models import HistorySample

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimeWindowBuffer(Generic[T]):
    """Append-only sequence of timestamped records with age-based eviction.

    Records must expose a ``ts`` datetime and are kept in insertion order,
    which callers guarantee is chronological. Eviction is explicit: nothing
    is dropped on append.
    """

    def __init__(self):
        self._records = deque()  # No maxlen - evicted by age
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def append(self, record: T):
        with self._lock:
            self._records.append(record)

    def evict_older_than(self, cutoff: datetime) -> int:
        """Drop records with ``ts`` strictly before ``cutoff``.

        Returns:
            Number of records removed
        """
        with self._lock:
            kept = deque(record for record in self._records if record.ts >= cutoff)
            removed = len(self._records) - len(kept)
            self._records = kept
        return removed

    def snapshot(self) -> list[T]:
        """Point-in-time copy of the retained records, oldest first."""
        with self._lock:
            return list(self._records)

    def tail(self, count: int) -> list[T]:
        """The last ``count`` records, oldest first."""
        if count <= 0:
            return []
        with self._lock:
            return list(self._records)[-count:]


class HistoryStore:
    """Per-device rolling history of probe samples."""

    def __init__(self, device_ids: Iterable[str]):
        self._buffers = {device_id: TimeWindowBuffer() for device_id in device_ids}

    def append(self, device_id: str, sample: HistorySample):
        self._buffers[device_id].append(sample)

    def samples(self, device_id: str) -> list[HistorySample]:
        """Return the retained samples for ``device_id`` in chronological order."""
        return self._buffers[device_id].snapshot()

    def evict_older_than(self, cutoff: datetime) -> int:
        removed = sum(buffer.evict_older_than(cutoff) for buffer in self._buffers.values())
        if removed:
            logger.debug("History eviction: removed=%d, cutoff=%s", removed, cutoff.isoformat())
        return removed
