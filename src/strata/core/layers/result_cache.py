"""Bounded cache for search results over a published view.

Entries remember the ``MergedView`` they were computed from and only hit
while that same view is still published. The engine also clears the cache
whenever it publishes a new view.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional

from .merge import MergedView


@dataclass
class _Entry:
    view: MergedView
    value: List[Any]
    expires_at: float


class SearchResultCache:
    """LRU cache with an optional TTL and hit/miss/eviction counters.

    ``max_entries=0`` disables caching; every lookup is then a miss.
    """

    def __init__(
        self,
        *,
        max_entries: int = 256,
        ttl_seconds: Optional[float] = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must not be negative")
        self._data: "OrderedDict[Hashable, _Entry]" = OrderedDict()
        self._max_entries = int(max_entries)
        self._ttl = float(ttl_seconds) if ttl_seconds else None
        self._clock = clock
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.invalidations = 0

    @property
    def enabled(self) -> bool:
        return self._max_entries > 0

    def get(self, view: MergedView, key: Hashable) -> Optional[List[Any]]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.view is not view or entry.expires_at <= self._clock():
                if entry is not None:
                    del self._data[key]
                self.misses += 1
                return None
            self._data.move_to_end(key)
            self.hits += 1
            return list(entry.value)

    def put(self, view: MergedView, key: Hashable, value: List[Any]) -> None:
        if not self.enabled:
            return
        expires_at = self._clock() + self._ttl if self._ttl else float("inf")
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = _Entry(view=view, value=list(value), expires_at=expires_at)
            while len(self._data) > self._max_entries:
                self._data.popitem(last=False)
                self.evictions += 1

    def clear(self) -> None:
        with self._lock:
            if self._data:
                self.invalidations += 1
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            requests = self.hits + self.misses
            return {
                "enabled": self.enabled,
                "size": len(self._data),
                "max_entries": self._max_entries,
                "ttl_seconds": self._ttl,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "invalidations": self.invalidations,
                "hit_rate": round(self.hits / requests, 4) if requests else 0.0,
            }


__all__ = ["SearchResultCache"]
