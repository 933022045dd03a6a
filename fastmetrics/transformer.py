"""Adds HELP and TYPE annotations to Prometheus text output."""

from __future__ import annotations

import bisect
import io
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

_FAMILY_SUFFIXES = ("_bucket", "_count", "_sum")


class MetricType(Enum):
    """The type announced for a metric family."""

    UNTYPED = 0
    COUNTER = 1
    GAUGE = 2
    HISTOGRAM = 3
    SUMMARY = 4
    INFO = 5

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Desc:
    """A description of a metric family."""

    help: str = ""
    type: MetricType = MetricType.UNTYPED


def get_family(line: str) -> str:
    """Return the metric family a sample line belongs to."""
    brace = line.find("{")
    if brace != -1:
        line = line[:brace]
    else:
        space = line.find(" ")
        if space != -1:
            line = line[:space]
    for suffix in _FAMILY_SUFFIXES:
        if line.endswith(suffix):
            return line[: -len(suffix)]
    return line


def transform(text: str, mapping: Optional[Mapping[str, Desc]] = None) -> str:
    """Group sample lines by family and prefix each family with HELP and TYPE lines.

    Blank lines, lines starting with a space and comment lines are dropped.
    Families are sorted by name; within a family, lines come out in the
    reverse of the order they were read.
    """
    mapping = mapping or {}
    families: list[str] = []
    lines: list[str] = []
    for raw in text.split("\n"):
        line = raw[:-1] if raw.endswith("\r") else raw
        if not line or line.startswith(" ") or line.startswith("#"):
            continue
        family = get_family(line)
        idx = bisect.bisect_left(families, family)
        families.insert(idx, family)
        lines.insert(idx, line)

    out: list[str] = []
    last_family: Optional[str] = None
    for family, line in zip(families, lines):
        if family != last_family:
            last_family = family
            desc = mapping.get(family, Desc())
            help_text = f" {desc.help}" if desc.help else ""
            out.append(f"# HELP {family}{help_text}\n# TYPE {family} {desc.type}\n")
        out.append(line + "\n")
    return "".join(out)


class Transformer:
    """Collects written metric text and reads it back annotated by a mapping.

    All writing must be finished before the first read; once reading has
    started, further writes raise ValueError. Reading before anything has
    been written yields nothing.
    """

    def __init__(self, mapping: Optional[Mapping[str, Desc]] = None) -> None:
        self._mapping = mapping or {}
        self._chunks: list[str] = []
        self._output: Optional[io.StringIO] = None

    def write(self, data: str) -> int:
        """Append metric text; return the number of characters accepted."""
        if self._output is not None:
            raise ValueError("cannot write to a Transformer after reading from it")
        self._chunks.append(data)
        return len(data)

    def read(self, size: int = -1) -> str:
        """Read up to ``size`` characters of annotated output (all if negative)."""
        if self._output is None:
            self._output = io.StringIO(transform("".join(self._chunks), self._mapping))
            self._chunks.clear()
        return self._output.read(size)