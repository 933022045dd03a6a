"""Collectors for process statistics and for the library's own state."""

from __future__ import annotations

import mmap
import os
import sys
import time
from dataclasses import dataclass, fields
from typing import Union

from .metrics import Collector, ExpfmtWriter
from .validator import ident_cache_size

try:
    import resource
except ImportError:  # not available on this platform
    resource = None  # type: ignore[assignment]

_UINT64_MAX = (1 << 64) - 1
_PAGE_SIZE = mmap.PAGESIZE
_START_TIME_SECONDS = time.time()
_IS_LINUX = sys.platform.startswith("linux")
_IS_UNIX = _IS_LINUX or sys.platform == "darwin"


@dataclass(frozen=True)
class ProcStat:
    """The leading fields of ``/proc/<pid>/stat`` after the command name."""

    state: str
    ppid: int
    pgrp: int
    session: int
    tty_nr: int
    tpgid: int
    flags: int
    minflt: int
    cminflt: int
    majflt: int
    cmajflt: int
    utime: int
    stime: int
    cutime: int
    cstime: int
    priority: int
    nice: int
    num_threads: int
    itreal_value: int
    starttime: int
    vsize: int
    rss: int


_UNSIGNED_FIELDS = frozenset(
    {"flags", "minflt", "cminflt", "majflt", "cmajflt", "utime", "stime", "starttime", "vsize"}
)
_NUMERIC_FIELDS = [f.name for f in fields(ProcStat)][1:]


def parse_proc_stat(data: Union[bytes, str]) -> ProcStat:
    """Parse the contents of a ``/proc/<pid>/stat`` file.

    Raises ValueError if the content is malformed.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    end = data.rfind(") ")
    if end < 0:
        raise ValueError("no end of command name in stat data")
    parts = data[end + 2 :].split()
    if len(parts) < 1 + len(_NUMERIC_FIELDS):
        raise ValueError(f"stat data has too few fields: {len(parts)}")
    state_field, *rest = parts
    numbers = {}
    for name, text in zip(_NUMERIC_FIELDS, rest):
        number = int(text)
        if name in _UNSIGNED_FIELDS and number < 0:
            raise ValueError(f"field {name} must not be negative: {text}")
        numbers[name] = number
    return ProcStat(state=state_field[0], **numbers)


def open_file_count() -> int:
    """Return the number of open file descriptors of this process.

    Raises OSError if ``/dev/fd`` cannot be listed.
    """
    # Listing the directory opens one descriptor of its own; do not count it.
    return len(os.listdir("/dev/fd")) - 1


def _limit(value: int) -> int:
    if resource is not None and value == resource.RLIM_INFINITY:
        return _UINT64_MAX
    return value & _UINT64_MAX


def _collect_unix(writer: ExpfmtWriter) -> None:
    writer.write_lazy_metric_float64("process_start_time_seconds", _START_TIME_SECONDS)
    if resource is None:
        return

    try:
        usage = resource.getrusage(resource.RUSAGE_SELF)
    except OSError:
        pass
    else:
        writer.write_lazy_metric_duration(
            "process_cpu_seconds_total", usage.ru_utime + usage.ru_stime
        )

    try:
        writer.write_lazy_metric_uint64("process_open_fds", open_file_count())
    except OSError:
        pass

    for family, limit_name in (
        ("process_max_fds", "RLIMIT_NOFILE"),
        ("process_virtual_memory_max_bytes", "RLIMIT_AS"),
    ):
        which = getattr(resource, limit_name, None)
        if which is None:
            continue
        try:
            soft, _hard = resource.getrlimit(which)
        except (OSError, ValueError):
            continue
        writer.write_lazy_metric_uint64(family, _limit(soft))


def _collect_stat(writer: ExpfmtWriter) -> None:
    try:
        with open("/proc/self/stat", "rb") as stat_file:
            stat = parse_proc_stat(stat_file.read())
    except (OSError, ValueError):
        return
    writer.write_lazy_metric_uint64(
        "process_resident_memory_bytes", (stat.rss * _PAGE_SIZE) & _UINT64_MAX
    )
    writer.write_lazy_metric_uint64("process_virtual_memory_bytes", stat.vsize)


class ProcessMetricsCollector(Collector):
    """Yields process runtime metrics, all prefixed with ``process_``.

    On platforms other than Linux and macOS nothing is collected.
    """

    def collect(self, writer: ExpfmtWriter) -> None:
        if not _IS_UNIX:
            return
        _collect_unix(writer)
        if _IS_LINUX:
            _collect_stat(writer)


class SelfMetricsCollector(Collector):
    """Yields metrics about this library's own state, prefixed with ``fastmetrics_``."""

    def collect(self, writer: ExpfmtWriter) -> None:
        size = ident_cache_size()
        writer.write_lazy_metric_uint64("fastmetrics_ident_cache_size", size)


def new_process_metrics_collector() -> ProcessMetricsCollector:
    """Return a new process metrics collector."""
    return ProcessMetricsCollector()


def new_self_metrics_collector() -> SelfMetricsCollector:
    """Return a new self metrics collector."""
    return SelfMetricsCollector()