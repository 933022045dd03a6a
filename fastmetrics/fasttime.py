"""Cheap monotonic timestamps and a coarse, ticking clock."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

_ROOT_MONO_NS = time.monotonic_ns()
_ROOT_WALL = datetime.now(timezone.utc)


class Instant(int):
    """A point in time, stored as nanoseconds elapsed since process start."""

    __slots__ = ()

    def to_datetime(self) -> datetime:
        """Return the wall-clock time this instant corresponds to."""
        return _ROOT_WALL + timedelta(microseconds=int(self) / 1000)

    def sub(self, other: int) -> float:
        """Return the seconds between ``other`` and this instant."""
        return (int(self) - int(other)) / 1e9

    def __repr__(self) -> str:
        return f"Instant({int(self)})"

    def __str__(self) -> str:
        return self.to_datetime().isoformat()


def now() -> Instant:
    """Return the current instant."""
    return Instant(time.monotonic_ns() - _ROOT_MONO_NS)


def since(instant: int) -> float:
    """Return the seconds elapsed since ``instant``."""
    return now().sub(instant)


class Clock:
    """A clock that refreshes its cached time every ``granularity`` seconds.

    Reading the time is a plain attribute lookup. The cached time never lies
    in the future. A stopped clock cannot be restarted.
    """

    def __init__(self, granularity: float) -> None:
        if granularity <= 0:
            raise ValueError(f"granularity must be positive, got {granularity!r}")
        self._granularity = granularity
        self._now = now()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="fasttime-clock", daemon=True
        )
        self._thread.start()

    def now(self) -> Instant:
        """Return the cached current instant."""
        return self._now

    def since(self, instant: int) -> float:
        """Return the seconds from ``instant`` to the cached current instant."""
        return self._now.sub(instant)

    def stop(self) -> None:
        """Stop ticking; the cached time is frozen afterwards."""
        self._stopped.set()
        if threading.current_thread() is not self._thread:
            self._thread.join()

    def __enter__(self) -> Clock:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._stopped.wait(self._granularity):
            self._now = now()