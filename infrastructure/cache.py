"""Bounded in-process TTL cache for read-only rate lookups"""
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """LRU-evicting key/value store whose entries expire after ``ttl`` seconds.

    Keys are tuples whose first element is the hotel id, so that every entry
    of a hotel can be dropped when its pricing inputs change.
    """

    def __init__(self, ttl: int = 300, max_entries: int = 1024,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Tuple, Tuple[float, Any]]" = OrderedDict()

    async def get(self, key: Tuple) -> Optional[Any]:
        """Cached value, or None on miss or expiry"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    async def set(self, key: Tuple, value: Any, ttl: Optional[int] = None) -> None:
        if self.ttl <= 0 or self.max_entries <= 0:
            return
        self._entries[key] = (self._clock() + (ttl or self.ttl), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def delete(self, key: Tuple) -> bool:
        return self._entries.pop(key, None) is not None

    async def invalidate_hotel(self, hotel_id: str) -> int:
        stale = [k for k in self._entries if k and k[0] == hotel_id]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached rate lookups for hotel {hotel_id}")
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
