# leadengine/service_layer/cache.py
from __future__ import annotations

import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class QueryCache(Generic[T]):
    """
    In-process read cache keyed by a criteria fingerprint.

    Entries expire `ttl_s` after insertion. Invalidation is wholesale: any write
    to the store clears every entry.
    """

    def __init__(self, ttl_s: float = 900, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = float(ttl_s)
        self._clock = clock
        self._entries: dict[str, tuple[float, list[T]]] = {}

    def get(self, key: str) -> list[T] | None:
        hit = self._entries.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if self._clock() - stored_at >= self.ttl_s:
            del self._entries[key]
            return None
        return list(value)

    def put(self, key: str, value: list[T]) -> None:
        self._entries[key] = (self._clock(), list(value))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
