from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    fetched_at: float


class QueryCache:
    """
    In-memory TTL cache for fetched datasets. Staleness is checked on read;
    nothing is evicted in the background and there is no size bound.
    """

    def __init__(self, ttl_s: float = DEFAULT_TTL_S, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self.ttl_s = float(ttl_s)
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = self.clock() - entry.fetched_at
        if age < self.ttl_s:
            logger.debug("Cache hit for %s (age %.1fs)", key, age)
            return entry.payload
        logger.debug("Cache entry for %s expired (age %.1fs)", key, age)
        del self._entries[key]
        return None

    def put(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, fetched_at=self.clock())
        self._entries[key] = entry
        return entry

    def get_or_fetch(self, key: str, fetch: Callable[[], Any]) -> Any:
        """Return the cached payload or call fetch() and store its result. Errors are not cached."""
        payload = self.get(key)
        if payload is not None:
            return payload
        logger.debug("Cache miss for %s", key)
        payload = fetch()
        self.put(key, payload)
        return payload

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
