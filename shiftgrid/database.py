from collections import defaultdict
from collections.abc import Iterator, MutableMapping
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")
T = TypeVar("T")


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.

    Keys are namespaced strings such as ``shift:12``; ``next_id`` hands out
    serial identifiers per namespace.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}
        self._sequences: defaultdict[str, int] = defaultdict(int)

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def all(self) -> list[V]:
        return list(self._store.values())

    def of_type(self, cls: type[T]) -> list[T]:
        return [v for v in self._store.values() if isinstance(v, cls)]

    def next_id(self, namespace: str) -> int:
        self._sequences[namespace] += 1
        return self._sequences[namespace]

    def clear(self) -> None:
        self._store.clear()
        self._sequences.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)
