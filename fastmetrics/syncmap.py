"""Thread-safe containers: a map, a lazily sorted map and a set."""

from __future__ import annotations

import threading
from typing import Any, Callable, Generic, Hashable, Iterator, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
E = TypeVar("E", bound=Hashable)


class ConcurrentMap(Generic[K, V]):
    """A dictionary guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[K, V] = {}

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._data.clear()

    def load(self, key: K) -> Optional[V]:
        """Return the value stored for ``key``, or None."""
        with self._lock:
            return self._data.get(key)

    def load_or_store(self, key: K, value: V) -> tuple[V, bool]:
        """Return ``(existing, True)`` if present, else store ``value`` and return ``(value, False)``."""
        with self._lock:
            if key in self._data:
                return self._data[key], True
            self._data[key] = value
            return value, False

    def store(self, key: K, value: V) -> None:
        """Set the value for ``key``."""
        with self._lock:
            self._data[key] = value

    def delete(self, key: K) -> None:
        """Remove ``key`` if present."""
        with self._lock:
            self._data.pop(key, None)

    def load_and_delete(self, key: K) -> tuple[Optional[V], bool]:
        """Remove ``key`` and return ``(value, True)``, or ``(None, False)`` if absent."""
        with self._lock:
            if key in self._data:
                return self._data.pop(key), True
            return None, False

    def compare_and_delete(self, key: K, old: V) -> bool:
        """Remove ``key`` only if its value equals ``old``; report whether it was removed."""
        with self._lock:
            if key in self._data and self._data[key] == old:
                del self._data[key]
                return True
            return False

    def items(self) -> list[tuple[K, V]]:
        """Return a snapshot of the entries."""
        with self._lock:
            return list(self._data.items())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data


class SortedMap(Generic[K, V]):
    """A thread-safe map whose values can be read back in sorted order.

    The sorted snapshot is rebuilt lazily: every mutation marks the map
    dirty and the next call to :meth:`values` re-sorts.
    """

    def __init__(self, key: Optional[Callable[[V], Any]] = None) -> None:
        self._key = key
        self._lock = threading.Lock()
        self._data: dict[K, V] = {}
        self._dirty = 0
        self._values: tuple[V, ...] = ()

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._data.clear()
            self._values = ()
            self._dirty = 0

    def load(self, key: K) -> Optional[V]:
        """Return the value stored for ``key``, or None."""
        with self._lock:
            return self._data.get(key)

    def load_or_store(self, key: K, value: V) -> tuple[V, bool]:
        """Return ``(existing, True)`` if present, else store ``value`` and return ``(value, False)``."""
        with self._lock:
            if key in self._data:
                return self._data[key], True
            self._data[key] = value
            self._dirty += 1
            return value, False

    def store(self, key: K, value: V) -> None:
        """Set the value for ``key``."""
        with self._lock:
            self._data[key] = value
            self._dirty += 1

    def delete(self, key: K) -> None:
        """Remove ``key`` if present."""
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._dirty += 1

    def values(self) -> tuple[V, ...]:
        """Return the values sorted by the map's key function."""
        with self._lock:
            if self._dirty:
                self._values = tuple(sorted(self._data.values(), key=self._key))
                self._dirty = 0
            return self._values

    def dirty(self) -> int:
        """Return the number of mutations since the sorted values were last rebuilt."""
        return self._dirty

    def __len__(self) -> int:
        return len(self._data)


class ConcurrentSet(Generic[E]):
    """A set of unique entries guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[E, None] = {}

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._data.clear()

    def add(self, entry: E) -> bool:
        """Add ``entry``; return False if it was already present."""
        with self._lock:
            if entry in self._data:
                return False
            self._data[entry] = None
            return True

    def delete(self, entry: E) -> None:
        """Remove ``entry`` if present."""
        with self._lock:
            self._data.pop(entry, None)

    def __iter__(self) -> Iterator[E]:
        with self._lock:
            snapshot = list(self._data)
        return iter(snapshot)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, entry: object) -> bool:
        with self._lock:
            return entry in self._data