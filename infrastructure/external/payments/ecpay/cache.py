"""In-process TTL cache holding orders that await their callback.

Orders keep live references (gateway, lock), so they stay in process memory
rather than going through the JSON-serializing Redis cache. Single-process only.
"""
from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, Iterator, Optional, TypeVar


V = TypeVar("V")


class PendingOrderCache(Generic[V]):
    """Time-bounded key -> order store; entries expire `ttl` seconds after insertion."""

    def __init__(self, ttl: float = 600, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[float, V]]" = OrderedDict()

    @property
    def ttl(self) -> float:
        return self._ttl

    def _purge(self) -> None:
        now = self._clock()
        # Insertion order == expiry order, so stop at the first live entry
        while self._entries:
            key, (expires_at, _) = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[key]

    def set(self, key: str, value: V) -> None:
        self._purge()
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self._ttl, value)

    def get(self, key: str) -> Optional[V]:
        self._purge()
        entry = self._entries.get(key)
        return entry[1] if entry is not None else None

    def delete(self, key: str) -> bool:
        self._purge()
        return self._entries.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def keys(self) -> Iterator[str]:
        self._purge()
        return iter(list(self._entries))

    def __len__(self) -> int:
        self._purge()
        return len(self._entries)
