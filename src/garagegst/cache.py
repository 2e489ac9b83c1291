from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Generic, TypeVar


V = TypeVar("V")


@dataclass(slots=True)
class TtlCache(Generic[V]):
    """Small in-memory cache whose entries expire ``ttl_s`` seconds after being set.

    Lives next to the engine, never inside it: callers that re-render the same
    report (list screens, PDF previews) memoize results here. ``clock`` is
    injectable so tests can move time forward.
    """

    ttl_s: float = 60.0
    max_entries: int = 256
    clock: Callable[[], float] = time.monotonic
    _entries: dict[Hashable, tuple[float, V]] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict()
            self._entries[key] = (self.clock() + self.ttl_s, value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self.clock()
            return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)

    def _evict(self) -> None:
        now = self.clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            # dicts keep insertion order: drop the oldest entry
            del self._entries[next(iter(self._entries))]
