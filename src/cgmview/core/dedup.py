"""Keyed-set utility — first-seen-wins deduplication by an extracted key."""

from __future__ import annotations

from typing import Callable, Generic, Hashable, Iterable, Iterator, TypeVar

T = TypeVar("T")


class KeyedSet(Generic[T]):
    """Insertion-ordered mapping from key to the first item seen with that key.

    Usage::

        seen = KeyedSet(lambda reading: reading.mills)
        seen.extend(readings)
        unique = seen.items()
    """

    def __init__(self, key: Callable[[T], Hashable]) -> None:
        self._key = key
        self._items: dict[Hashable, T] = {}

    def add(self, item: T) -> bool:
        """Add ``item`` unless its key is already present.

        Returns:
            True if the item was kept, False if it was a duplicate.
        """
        k = self._key(item)
        if k in self._items:
            return False
        self._items[k] = item
        return True

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return self._key(item) in self._items  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())

    def items(self) -> list[T]:
        return list(self._items.values())


def unique_by(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Return ``items`` without later duplicates of the same key, order preserved."""
    seen: KeyedSet[T] = KeyedSet(key)
    seen.extend(items)
    return seen.items()
