"""Insertion-ordered set of question ids.

Bookmarks and wrong answers are sets in memory but have to survive a trip
through JSON. ``to_list`` serializes in insertion order and
``from_sequence`` rebuilds the set, dropping duplicates.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class OrderedIdSet:
    """Set of string ids that remembers insertion order."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._items: dict[str, None] = dict.fromkeys(items)

    @classmethod
    def from_sequence(cls, items: Iterable[str] | None) -> "OrderedIdSet":
        if items is None:
            return cls()
        return cls(str(item) for item in items)

    def add(self, item: str) -> bool:
        """Add ``item``; returns False when it was already present."""
        if item in self._items:
            return False
        self._items[item] = None
        return True

    def discard(self, item: str) -> bool:
        """Remove ``item``; returns False when it was not present."""
        if item not in self._items:
            return False
        del self._items[item]
        return True

    def to_list(self) -> list[str]:
        return list(self._items)

    def copy(self) -> "OrderedIdSet":
        return OrderedIdSet(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OrderedIdSet):
            return set(self._items) == set(other._items)
        if isinstance(other, (set, frozenset)):
            return set(self._items) == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"OrderedIdSet({self.to_list()!r})"
