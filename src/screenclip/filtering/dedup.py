"""
Bounded record of already published paths.
"""

import logging
import threading
from collections import OrderedDict
from pathlib import Path

logger = logging.getLogger(__name__)


class DedupSet:
    """
    LRU set of paths guarded by a single lock.

    add_if_absent() is the only mutation and performs check-and-insert
    atomically, so two settle tasks finishing together for the same path
    cannot both succeed.
    """

    def __init__(self, capacity: int = 10_000):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()
        self.evictions = 0

    @staticmethod
    def _key(path: Path) -> str:
        return str(path)

    def add_if_absent(self, path: Path) -> bool:
        """
        Insert ``path`` unless present.

        Returns:
            True if the path was newly inserted, False if already seen
        """
        key = self._key(path)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return False
            self._entries[key] = None
            if len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Dedup set full, evicted {evicted}")
            return True

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return self._key(path) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
