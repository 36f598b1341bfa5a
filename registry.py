# registry.py — shared key -> state tables (channels, puzzle sessions) owned by the bot service
from __future__ import annotations

import threading
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

V = TypeVar("V")


def with_lock(fn):
    def wrap(self, *a, **k):
        with self._lock:
            return fn(self, *a, **k)
    return wrap


class Table(Generic[V]):
    """
    Thread-safe dict of entries. The table lock only guards membership;
    each entry carries its own `lock` for updates to its contents.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._items: Dict[str, V] = {}

    @with_lock
    def get(self, key: str) -> Optional[V]:
        return self._items.get(key)

    @with_lock
    def put(self, key: str, value: V) -> Optional[V]:
        """Insert or replace; returns the entry that was replaced."""
        old = self._items.get(key)
        self._items[key] = value
        return old

    @with_lock
    def claim(self, key: str, factory: Callable[[], V]) -> Tuple[V, bool]:
        """Return (entry, created). Only one caller ever creates a given key."""
        if key in self._items:
            return self._items[key], False
        value = self._items[key] = factory()
        return value, True

    @with_lock
    def pop(self, key: str) -> Optional[V]:
        return self._items.pop(key, None)

    @with_lock
    def drain(self) -> List[V]:
        """Remove and return every entry."""
        values = list(self._items.values())
        self._items.clear()
        return values

    @with_lock
    def is_current(self, key: str, value: V) -> bool:
        return self._items.get(key) is value

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class Registry:
    """All in-memory state of one bot instance."""

    def __init__(self):
        self.channels: Table = Table("channels")
        self.puzzles: Table = Table("puzzles")
