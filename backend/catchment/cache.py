from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    key: str
    value: V
    expires_at: float


@dataclass
class TTLCache(Generic[V]):
    """
    Small in-memory cache with a fixed time-to-live.

    Expiry is lazy: an entry is only checked (and dropped) when it's looked up, there
    is no background sweep. Size is bounded by dropping the oldest inserted key.
    """

    ttl_s: float = 600.0
    max_items: int = 256
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _entries: dict[str, CacheEntry[V]] = field(default_factory=dict, repr=False)

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: V) -> CacheEntry[V]:
        entry = CacheEntry(key=key, value=value, expires_at=self.clock() + self.ttl_s)
        # Re-inserting moves the key to the end of the insertion order.
        self._entries.pop(key, None)
        self._entries[key] = entry
        _evict_oldest(self._entries, keep=key, max_items=self.max_items)
        return entry

    def entry(self, key: str) -> CacheEntry[V] | None:
        return self._entries.get(key)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None


def _evict_oldest(cache: dict[str, Any], *, keep: str, max_items: int) -> None:
    while len(cache) > max(1, int(max_items)):
        oldest = next(iter(cache.keys()))
        if oldest == keep:
            break
        cache.pop(oldest, None)
