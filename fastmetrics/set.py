"""Collections of metrics, child sets and collectors, exported in Prometheus text format."""

from __future__ import annotations

import io
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Protocol

from .atomics import AtomicInstant
from .collectors import new_process_metrics_collector
from .fasttime import Clock
from .metrics import Collector, ExpfmtWriter, Metric, MetricName, materialize_tags
from .setvec import SetVec
from .syncmap import ConcurrentMap, ConcurrentSet, SortedMap
from .validator import Ident, Tag, must_tags, must_value

# Expiry only needs one-second accuracy, so a coarse shared clock is used.
_CLOCK_GRANULARITY = 1.0
_clock: Optional[Clock] = None
_clock_lock = threading.Lock()


def _fast_clock() -> Clock:
    global _clock
    clock = _clock
    if clock is None:
        with _clock_lock:
            if _clock is None:
                _clock = Clock(_CLOCK_GRANULARITY)
            clock = _clock
    return clock


class _TextStream(Protocol):
    def write(self, text: str) -> object: ...


class SetExpiredError(Exception):
    """Raised when writing a set whose time to live has run out."""


@dataclass(frozen=True)
class _NamedMetric:
    name: MetricName
    metric: Metric


def _metric_id(name: MetricName) -> tuple:
    return (
        str(name.family),
        tuple((str(tag.label), str(tag.value)) for tag in name.tags),
    )


def _join_tags(previous: str, tags: Iterable[Tag]) -> str:
    rendered = materialize_tags(tags)
    return ",".join(part for part in (previous, rendered) if part)


class Set:
    """A collection of metrics, child sets and collectors.

    Constant tags given as alternating labels and values are placed in
    front of the tags of every metric in the set and in its children.
    A set with constant tags is unique among its parent's children.
    """

    def __init__(self, *args: str) -> None:
        self._id: Optional[tuple] = None
        self._metrics: SortedMap[tuple, _NamedMetric] = SortedMap(
            key=lambda nm: str(nm.name.family)
        )
        self._sets_by_id: ConcurrentMap[tuple, Set] = ConcurrentMap()
        self._unordered_sets: ConcurrentSet[Set] = ConcurrentSet()
        self._collectors: tuple[Collector, ...] = ()
        self._collectors_lock = threading.Lock()
        self._constant_tags = ""
        self._ttl = 0.0
        self._last_used = AtomicInstant()
        self._set_constant_tags("", args)

    @property
    def constant_tags(self) -> str:
        """The rendered constant tags of this set."""
        return self._constant_tags

    @property
    def ttl(self) -> float:
        """Seconds this set may stay unused before it expires; zero means never."""
        return self._ttl

    def __repr__(self) -> str:
        return f"Set(constant_tags={self._constant_tags!r})"

    def _set_constant_tags(self, previous: str, args: tuple[str, ...]) -> None:
        tags = must_tags(*args)
        self._constant_tags = _join_tags(previous, tags)
        if args:
            self._id = tuple(args)

    def append_constant_tags(self, *args: str) -> None:
        """Append constant tags to this set and, recursively, to its children.

        Meant for initial setup only. Raises ValueError if a child set
        stops being unique among its siblings.
        """
        if not args:
            return
        self._set_constant_tags(self._constant_tags, args)
        for child in list(self._live_children()):
            self.unregister_set(child)
            child.append_constant_tags(*args)
            self._must_store_set(child)

    def reset(self) -> None:
        """Remove all metrics, child sets and collectors; constant tags are kept."""
        self._metrics.clear()
        self._sets_by_id.clear()
        self._unordered_sets.clear()
        with self._collectors_lock:
            self._collectors = ()
        self.keep_alive()

    def new_set(self, *args: str) -> Set:
        """Create and register a child set with optional extra constant tags.

        Raises ValueError if a sibling already has the same constant tags.
        """
        child = Set()
        child._set_constant_tags(self._constant_tags, args)
        self._must_store_set(child)
        self.keep_alive()
        return child

    def unregister_set(self, child: Set) -> None:
        """Remove a previously registered child set."""
        if child._id is None:
            self._unordered_sets.delete(child)
        else:
            self._sets_by_id.delete(child._id)

    def register_collector(self, *args: Collector) -> None:
        """Register collectors; raises ValueError if one is already registered."""
        with self._collectors_lock:
            for collector in args:
                if any(collector is existing for existing in self._collectors):
                    raise ValueError("collector already registered")
            self._collectors = self._collectors + tuple(args)

    def unregister_collector(self, collector: Collector) -> None:
        """Remove a previously registered collector, if present."""
        with self._collectors_lock:
            for idx, existing in enumerate(self._collectors):
                if existing is collector:
                    self._collectors = self._collectors[:idx] + self._collectors[idx + 1 :]
                    return

    def register_metric(self, metric: Metric, name: MetricName) -> None:
        """Register ``metric`` under ``name``; raises ValueError if the name is taken."""
        try:
            _, loaded = self._metrics.load_or_store(
                _metric_id(name), _NamedMetric(name, metric)
            )
            if loaded:
                raise ValueError(f"metric {str(name)!r} is already registered")
        finally:
            self.keep_alive()

    def write_prometheus(self, stream: _TextStream) -> int:
        """Write all metrics, children and collectors to ``stream``.

        Yields to other threads between metrics. Returns the number of
        characters written. Raises SetExpiredError if the set has expired.
        """
        if self._is_expired():
            raise SetExpiredError("set expired")
        return self._write_to(stream, throttle=True)

    def write_prometheus_unthrottled(self, stream: _TextStream) -> int:
        """Like :meth:`write_prometheus`, without yielding between metrics."""
        if self._is_expired():
            raise SetExpiredError("set expired")
        return self._write_to(stream, throttle=False)

    def keep_alive(self) -> None:
        """Push back this set's expiry when it has a time to live."""
        if self._ttl > 0:
            self._last_used.store(_fast_clock().now())

    def new_set_vec(self, label: str) -> SetVec:
        """Return a :class:`SetVec` of children partitioned by ``label``."""
        return SetVec(self, label)

    def new_set_vec_with_ttl(self, label: str, ttl: float) -> SetVec:
        """Return a :class:`SetVec` whose children expire after ``ttl`` unused seconds."""
        return SetVec(self, label, ttl)

    def _write_to(self, stream: _TextStream, throttle: bool) -> int:
        buffer = io.StringIO()
        self._render(buffer, throttle)
        text = buffer.getvalue()
        if not text:
            return 0
        written = stream.write(text)
        return len(text) if written is None else int(written)

    def _render(self, buffer: io.StringIO, throttle: bool) -> None:
        writer = ExpfmtWriter(buffer, self._constant_tags)
        for named in self._metrics.values():
            if throttle:
                time.sleep(0)
            named.metric.marshal_to(writer, named.name)
        for child in self._live_children():
            child._render(buffer, throttle)
        for collector in self._collectors:
            if throttle:
                time.sleep(0)
            collector.collect(writer)

    def _live_children(self) -> Iterator[Set]:
        """Yield children that have not expired, dropping those that have."""
        for key, child in self._sets_by_id.items():
            if child._is_expired():
                self._sets_by_id.compare_and_delete(key, child)
                continue
            yield child
        for child in self._unordered_sets:
            if child._is_expired():
                self._unordered_sets.delete(child)
                continue
            yield child

    def _is_expired(self) -> bool:
        if self._ttl == 0:
            return False
        return _fast_clock().since(self._last_used.load()) > self._ttl

    def _must_store_set(self, child: Set) -> None:
        if child._id is None:
            if not self._unordered_sets.add(child):
                raise ValueError(f"set {child!r} is already registered")
        else:
            _, loaded = self._sets_by_id.load_or_store(child._id, child)
            if loaded:
                raise ValueError(f"set {child._constant_tags!r} is already registered")

    def _load_or_store_set_from_vec(
        self, key: tuple, ttl: float, label: Ident, value: str
    ) -> Set:
        child = Set()
        child._id = key
        child._ttl = ttl
        child.keep_alive()
        child._constant_tags = _join_tags(
            self._constant_tags, (Tag(label, must_value(value)),)
        )
        actual, _ = self._sets_by_id.load_or_store(key, child)
        return actual


_default_set = Set()


def default_set() -> Set:
    """Return the global set."""
    return _default_set


def reset_default_set() -> None:
    """Reset the global set."""
    _default_set.reset()


def register_default_collectors() -> None:
    """Register the default collectors on the global set."""
    register_collector(new_process_metrics_collector())


def register_collector(*args: Collector) -> None:
    """Register collectors on the global set."""
    _default_set.register_collector(*args)


def write_prometheus(stream: _TextStream) -> int:
    """Write the global set to ``stream``."""
    return _default_set.write_prometheus(stream)


def new_set_vec(label: str) -> SetVec:
    """Return a :class:`SetVec` on the global set."""
    return _default_set.new_set_vec(label)


def new_set_vec_with_ttl(label: str, ttl: float) -> SetVec:
    """Return a :class:`SetVec` with a time to live on the global set."""
    return _default_set.new_set_vec_with_ttl(label, ttl)