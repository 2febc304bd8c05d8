# casereview/services/cache.py
from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    written_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.written_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class FingerprintCache(Generic[T]):
    """
    In-memory key -> value store with per-entry TTL.

      - the oldest entry is evicted when the cache is full
      - expired entries are dropped on read and by `sweep()`
      - every map access is guarded by one lock so sessions can share it

    The cache owns stored values: `set` and `get` both deep-copy, so
    mutating a returned value never changes what is cached.
    """

    def __init__(
        self,
        default_ttl: float = 3600.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            value=copy.deepcopy(value),
            written_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.max_entries:
                oldest, _ = self._entries.popitem(last=False)
                logger.debug("Cache full; evicted %s", oldest)
            self._entries[key] = entry

    def contains(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    __contains__ = contains

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """
        Remove every expired entry. Returns how many were removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
