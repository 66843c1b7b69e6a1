"""
Unordered set backed by a dense list plus an index map.

Used for pending epochs and locked NFTs, where removal
must be O(1) and ordering carries no meaning.
"""

from typing import Dict, Generic, Hashable, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T", bound=Hashable)


class IndexedSet(Generic[T]):
    """Set with O(1) add, contains and swap-and-pop removal."""

    def __init__(self, items: Optional[Iterable[T]] = None):
        self._items: List[T] = []
        self._index: Dict[T, int] = {}
        for item in items or ():
            self.add(item)

    def add(self, item: T) -> bool:
        """Add ``item``; returns False if it was already present."""
        if item in self._index:
            return False
        self._index[item] = len(self._items)
        self._items.append(item)
        return True

    def discard(self, item: T) -> bool:
        """Remove ``item`` if present; returns whether it was removed."""
        position = self._index.pop(item, None)
        if position is None:
            return False
        last = self._items.pop()
        if position < len(self._items):
            self._items[position] = last
            self._index[last] = position
        return True

    def clear(self) -> List[T]:
        """Empty the set and return its former contents."""
        items = self._items
        self._items = []
        self._index = {}
        return items

    def to_list(self) -> List[T]:
        return list(self._items)

    def __contains__(self, item) -> bool:
        return item in self._index

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other) -> bool:
        if isinstance(other, IndexedSet):
            return set(self._items) == set(other._items)
        return NotImplemented

    def __repr__(self) -> str:
        return f"IndexedSet({self._items!r})"
