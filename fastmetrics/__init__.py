"""Metric sets, collectors and Prometheus text-format export, with WSGI handlers."""

__version__ = "0.1.0"

__all__ = [
    "atomics",
    "collectors",
    "fasttime",
    "metrics",
    "promhttp",
    "set",
    "setvec",
    "syncmap",
    "transformer",
    "validator",
]