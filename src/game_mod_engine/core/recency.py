from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, Iterator, TypeVar

T = TypeVar("T", bound=Hashable)


class RecentlyUsedIds(Generic[T]):
    """Fixed-capacity set that forgets its oldest entry once full."""

    def __init__(self, capacity: int):
        self._capacity = max(1, int(capacity))
        self._items: OrderedDict[T, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(reversed(self._items))

    def push(self, item: T) -> None:
        # Re-pushing a known id does not refresh it.
        if item in self._items:
            return
        self._items[item] = None
        while len(self._items) > self._capacity:
            self._items.popitem(last=False)

    def push_many(self, items) -> None:
        for item in items:
            self.push(item)
