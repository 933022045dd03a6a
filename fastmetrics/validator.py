"""Validation of metric identifiers, tag labels and tag values."""

from __future__ import annotations

import re
import threading
import weakref
from dataclasses import dataclass

_IDENT_RE = re.compile(r"[a-zA-Z_:.][a-zA-Z0-9_:.]*")
_ESCAPABLE = frozenset('n\\"')

_cache_lock = threading.Lock()
_ident_cache: weakref.WeakValueDictionary[str, Ident] = weakref.WeakValueDictionary()


class ValidationError(ValueError):
    """Raised when an identifier, tag or tag value is malformed."""


def validate_ident(s: str) -> bool:
    """Return True if ``s`` matches ``[a-zA-Z_:.][a-zA-Z0-9_:.]*``."""
    return isinstance(s, str) and _IDENT_RE.fullmatch(s) is not None


def validate_label_value(s: str) -> bool:
    """Return True if ``s`` is a valid tag value.

    Any UTF-8 text is allowed, except that double quotes and line feeds
    must appear escaped as ``\\"`` and ``\\n``, and a backslash may only
    start one of the escapes ``\\n``, ``\\\\`` or ``\\"``.
    """
    if not isinstance(s, str):
        return False
    try:
        s.encode("utf-8")
    except UnicodeEncodeError:
        return False
    chars = iter(s)
    for ch in chars:
        if ch in ('"', "\n"):
            return False
        if ch == "\\" and next(chars, None) not in _ESCAPABLE:
            return False
    return True


class Ident:
    """A validated metric identifier.

    Instances are interned: constructing the same identifier twice returns
    the same object for as long as it is referenced somewhere.
    """

    __slots__ = ("_value", "__weakref__")

    _value: str

    def __new__(cls, value: str) -> Ident:
        with _cache_lock:
            existing = _ident_cache.get(value) if isinstance(value, str) else None
            if existing is not None:
                return existing
            if not validate_ident(value):
                raise ValidationError(f"invalid identifier: {value!r}")
            obj = super().__new__(cls)
            obj._value = value
            _ident_cache[value] = obj
            return obj

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Ident({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Ident):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


Label = Ident


@dataclass(frozen=True)
class Value:
    """A tag value."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Tag:
    """A label and value pair."""

    label: Ident
    value: Value

    def __str__(self) -> str:
        return f'{self.label}="{self.value}"'


def must_ident(s: str) -> Ident:
    """Return ``s`` as an :class:`Ident`, raising ValidationError if invalid."""
    return Ident(s)


def must_label(s: str) -> Ident:
    """Return ``s`` as a tag label, raising ValidationError if invalid."""
    return Ident(s)


def unsafe_value(s: str) -> Value:
    """Return ``s`` as a :class:`Value` without validating it."""
    return Value(s)


def must_value(s: str) -> Value:
    """Return ``s`` as a :class:`Value`, raising ValidationError if invalid."""
    if not validate_label_value(s):
        raise ValidationError(f"invalid tag value: {s!r}")
    return Value(s)


def must_tag(label: str, value: str) -> Tag:
    """Return a validated :class:`Tag`."""
    return Tag(must_label(label), must_value(value))


def must_tags(*args: str) -> tuple[Tag, ...]:
    """Convert alternating labels and values into tags."""
    if len(args) % 2:
        raise ValidationError(f"tag label/values must be in pairs, got: {list(args)!r}")
    return tuple(must_tag(label, value) for label, value in zip(args[::2], args[1::2]))


def ident_cache_size() -> int:
    """Return the number of live interned identifiers."""
    with _cache_lock:
        return len(_ident_cache)