"""Thread-safe numeric cells used by the metric types."""

from __future__ import annotations

import threading

from .fasttime import Instant

_UINT64_MASK = (1 << 64) - 1


class Float64:
    """A thread-safe float. Starts at zero."""

    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0.0

    def add(self, value: float) -> None:
        """Add ``value`` to the stored float."""
        if value == 0:
            return
        with self._lock:
            self._value += value

    def load(self) -> float:
        """Return the stored float."""
        return self._value

    def store(self, value: float) -> None:
        """Replace the stored float."""
        with self._lock:
            self._value = float(value)


class Sum:
    """A thread-safe, add-only sum. Starts at zero; negative additions are ignored.

    Whole numbers are accumulated exactly in an unsigned 64-bit counter,
    fractional amounts in a separate float.
    """

    __slots__ = ("_lock", "_whole", "_fraction")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._whole = 0
        self._fraction = 0.0

    def inc(self) -> None:
        """Add one."""
        with self._lock:
            self._whole = (self._whole + 1) & _UINT64_MASK

    def dec(self) -> None:
        """Subtract one from the whole part, wrapping like an unsigned counter."""
        with self._lock:
            self._whole = (self._whole - 1) & _UINT64_MASK

    def add_uint64(self, value: int) -> None:
        """Add a non-negative integer."""
        if value == 0:
            return
        with self._lock:
            self._whole = (self._whole + value) & _UINT64_MASK

    def add(self, value: float) -> None:
        """Add ``value``; values that are not positive are ignored."""
        if value <= 0:
            return
        if value == 1:
            self.inc()
            return
        if value >= 1 and float(value).is_integer():
            self.add_uint64(int(value))
            return
        with self._lock:
            self._fraction += value

    def reset(self) -> None:
        """Set the sum back to zero."""
        with self._lock:
            self._whole = 0
            self._fraction = 0.0

    def load(self) -> float:
        """Return the current sum."""
        with self._lock:
            return float(self._whole) + self._fraction


class AtomicInstant:
    """A thread-safe holder for an :class:`Instant`. Starts at zero."""

    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = Instant(0)

    def load(self) -> Instant:
        """Return the stored instant."""
        return self._value

    def store(self, value: int) -> None:
        """Replace the stored instant."""
        with self._lock:
            self._value = Instant(value)