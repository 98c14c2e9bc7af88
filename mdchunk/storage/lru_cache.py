import logging
import threading
from collections import OrderedDict
from typing import Any, List, Optional, Tuple
from mdchunk.storage.base import RenderCacheStore

logger = logging.getLogger(__name__)

class LRURenderCache(RenderCacheStore):
    """
    Implements RenderCacheStore as a thread-safe LRU map.
    - Bounded by entry count and, optionally, by total cost.
    - Oldest entries are evicted first; reads refresh recency.
    - Last writer wins on key collisions.
    """

    def __init__(self, count_limit: int = 0, cost_limit: int = 0, name: str = "render"):
        # A limit of 0 means unbounded along that axis
        self.count_limit = count_limit
        self.cost_limit = cost_limit
        self.name = name
        self.total_cost = 0
        self._entries: "OrderedDict[str, Tuple[Any, int]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry[0]

    def set(self, key: str, artifact: Any, cost: int = 0) -> None:
        if artifact is None:
            self.remove(key)
            return
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self.total_cost -= previous[1]
            self._entries[key] = (artifact, cost)
            self.total_cost += cost
            self._evict()

    def remove(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return None
            self.total_cost -= entry[1]
            return entry[0]

    def clear_all(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self.total_cost = 0
        logger.debug(f"Cleared {dropped} entries from {self.name} cache")

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self) -> None:
        # Must be called with the lock held; the newest entry is never evicted
        while len(self._entries) > 1 and self._over_limit():
            key, (_, cost) = self._entries.popitem(last=False)
            self.total_cost -= cost
            logger.debug(f"Evicted '{key[:40]}' from {self.name} cache")

    def _over_limit(self) -> bool:
        if self.count_limit and len(self._entries) > self.count_limit:
            return True
        return bool(self.cost_limit) and self.total_cost > self.cost_limit
