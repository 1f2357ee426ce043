from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Iterable, Iterator, MutableMapping, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BoundedOrderedMap(Generic[K, V]):
    """
    Insertion-ordered map with a hard entry cap.

    Overflowing entries are dropped oldest-first. Reads do not refresh the
    position of a key, so this is a capacity guard rather than an LRU.
    Not thread-safe; the owner serialises access.
    """

    def __init__(self, max_size: int):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._store: MutableMapping[K, V] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def put(self, key: K, value: V) -> list[tuple[K, V]]:
        self._store[key] = value
        return self._trim()

    def put_many(self, items: Iterable[tuple[K, V]]) -> list[tuple[K, V]]:
        for key, value in items:
            self._store[key] = value
        return self._trim()

    def get(self, key: K, default: V | None = None) -> V | None:
        return self._store.get(key, default)

    def remove(self, key: K) -> V | None:
        return self._store.pop(key, None)

    def remove_if_same(self, key: K, value: V) -> bool:
        if self._store.get(key) is not value:
            return False
        del self._store[key]
        return True

    def clear(self) -> None:
        self._store.clear()

    def keys(self) -> list[K]:
        return list(self._store.keys())

    def items(self) -> list[tuple[K, V]]:
        return list(self._store.items())

    def _trim(self) -> list[tuple[K, V]]:
        evicted: list[tuple[K, V]] = []
        while len(self._store) > self._max_size:
            evicted.append(self._store.popitem(last=False))
        return evicted

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._store)
