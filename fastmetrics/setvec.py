"""Collections of child sets partitioned by one label."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .validator import Ident, must_label

if TYPE_CHECKING:
    from .set import Set


class SetVec:
    """Child sets of ``parent`` that share one label but differ in its value.

    Each child carries the tag ``label="value"`` after the parent's constant
    tags. Removing a value drops the whole child set and every metric in it.

    Children live in the parent's ``_sets_by_id`` map under the key
    ``(label, value)``, and are created through the parent's
    ``_load_or_store_set_from_vec`` so that concurrent creations agree.

    ``ttl`` is in seconds; a positive value makes children expire when
    neither used through :meth:`with_label_value` nor kept alive for
    that long.
    """

    __slots__ = ("_parent", "_label", "_ttl")

    def __init__(self, parent: Set, label: str, ttl: float = 0.0) -> None:
        if ttl < 0:
            raise ValueError(f"ttl must not be negative, got {ttl!r}")
        self._parent = parent
        self._label: Ident = must_label(label)
        self._ttl = float(ttl)

    @property
    def parent(self) -> Set:
        """The set the children belong to."""
        return self._parent

    @property
    def label(self) -> Ident:
        """The label that partitions the children."""
        return self._label

    @property
    def ttl(self) -> float:
        """Seconds a child may stay unused before it expires; zero means never."""
        return self._ttl

    def _key(self, value: str) -> tuple[str, str]:
        return (str(self._label), value)

    def with_label_value(self, value: str) -> Set:
        """Return the child set for ``value``, creating it on first use.

        The returned set's expiry, if any, is pushed back.
        """
        key = self._key(value)
        child = self._parent._sets_by_id.load(key)
        if child is None:
            child = self._parent._load_or_store_set_from_vec(
                key, self._ttl, self._label, value
            )
        child.keep_alive()
        return child

    def remove_by_label_value(self, value: str) -> None:
        """Drop the child set for ``value``, if there is one."""
        self._parent._sets_by_id.delete(self._key(value))

    def __repr__(self) -> str:
        return f"SetVec(label={str(self._label)!r}, ttl={self._ttl!r})"