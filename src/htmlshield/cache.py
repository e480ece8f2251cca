"""Bounded least-recently-used cache shared by the shield's lookups."""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any


class LRUCache:
    """A thread-safe mapping that evicts the least recently used entry past `max_entries`."""

    __slots__ = ("_data", "_lock", "max_entries")

    def __init__(self, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._data: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            try:
                value = self._data[key]
            except KeyError:
                return default
            self._data.move_to_end(key)
            return value

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[Hashable], Any]) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss.

        `compute` runs outside the lock; two threads missing the same key may
        both compute it, and the last one stored wins.
        """
        missing = object()
        value = self.get(key, missing)
        if value is not missing:
            return value
        value = compute(key)
        self.put(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
