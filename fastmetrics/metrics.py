"""Metric names and the writer for the Prometheus text exposition format."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from .validator import Ident, Tag, must_ident, must_tags


class _TextSink(Protocol):
    def write(self, text: str) -> object: ...


def format_float(value: float) -> str:
    """Format a float in the shortest form, using an exponent for large or tiny values."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    nd = len(digits)
    dp = nd + int(exponent)
    exp10 = dp - 1
    prefix = "-" if sign else ""

    if exp10 < -4 or exp10 >= 6:
        mantissa = digits[0] + ("." + digits[1:] if nd > 1 else "")
        exp_sign = "-" if exp10 < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"
    if dp >= nd:
        return prefix + digits + "0" * (dp - nd)
    if dp <= 0:
        return f"{prefix}0.{'0' * -dp}{digits}"
    return f"{prefix}{digits[:dp]}.{digits[dp:]}"


def materialize_tags(tags: Iterable[Tag]) -> str:
    """Render tags as ``label="value"`` pairs separated by commas."""
    return ",".join(str(tag) for tag in tags)


def _format_name(family: str, tags: Iterable[Tag], constant_tags: str) -> str:
    parts = [part for part in (constant_tags, materialize_tags(tags)) if part]
    if not parts:
        return family
    return f"{family}{{{','.join(parts)}}}"


@dataclass(frozen=True)
class MetricName:
    """A metric family with optional tags."""

    family: Ident
    tags: tuple[Tag, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))

    def __str__(self) -> str:
        return _format_name(str(self.family), self.tags, "")

    def has_tags(self) -> bool:
        """Return True if the name carries any tags."""
        return bool(self.tags)


def new_metric_name(family: str, *args: str) -> MetricName:
    """Build a validated :class:`MetricName` from a family and label/value pairs."""
    return MetricName(must_ident(family), must_tags(*args))


class ExpfmtWriter:
    """Writes metric lines in Prometheus text format to a text buffer.

    ``constant_tags`` is an already rendered tag list that is placed in
    front of every metric's own tags.
    """

    __slots__ = ("buffer", "constant_tags")

    def __init__(self, buffer: _TextSink, constant_tags: str = "") -> None:
        self.buffer = buffer
        self.constant_tags = constant_tags

    def write_metric_name(self, name: MetricName) -> None:
        """Write the fully qualified name, including constant tags."""
        self.buffer.write(_format_name(str(name.family), name.tags, self.constant_tags))

    def write_uint64(self, value: int) -> None:
        """Write an integer sample value and end the line."""
        self.buffer.write(f" {int(value)}\n")

    def write_float64(self, value: float) -> None:
        """Write a float sample value and end the line."""
        self.buffer.write(f" {format_float(value)}\n")

    def _write_family(self, family: str) -> None:
        self.buffer.write(_format_name(str(must_ident(family)), (), self.constant_tags))

    def write_lazy_metric_uint64(self, family: str, value: int) -> None:
        """Write a complete untagged integer metric line."""
        self._write_family(family)
        self.write_uint64(value)

    def write_lazy_metric_float64(self, family: str, value: float) -> None:
        """Write a complete untagged float metric line."""
        self._write_family(family)
        self.write_float64(value)

    def write_lazy_metric_duration(self, family: str, seconds: float) -> None:
        """Write a complete untagged metric line holding a duration in seconds."""
        self._write_family(family)
        self.write_float64(seconds)


class Metric(ABC):
    """A data point that can be written in Prometheus text format."""

    @abstractmethod
    def marshal_to(self, writer: ExpfmtWriter, name: MetricName) -> None:
        """Write this metric under ``name``."""


class Collector(ABC):
    """A source of metrics gathered at export time."""

    @abstractmethod
    def collect(self, writer: ExpfmtWriter) -> None:
        """Write the collected metrics."""