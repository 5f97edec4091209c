import threading
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

K = TypeVar("K")
V = TypeVar("V", bound=BaseModel)


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database of immutable records.

    Writers are serialised by a re-entrant lock, so compound operations
    (`increment`, `update_if`) are atomic with respect to each other, and
    `transaction()` groups several writes into one unit of work.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}
        self._lock = threading.RLock()

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        with self._lock:
            self._store.pop(key, None)

    def snapshot(self) -> list[V]:
        """Consistent point-in-time copy of every stored value."""
        with self._lock:
            return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryKeyValueDatabase[K, V]"]:
        """
        Run a block of writes as one unit of work.

        If the block raises, every write made inside it is discarded and
        the store returns to its state at entry. Values are immutable, so a
        shallow copy of the mapping is a complete snapshot.
        """
        with self._lock:
            saved = dict(self._store)
            try:
                yield self
            except BaseException:
                self._store.clear()
                self._store.update(saved)
                raise

    def increment(self, key: K, field: str, by: int = 1) -> V | None:
        """
        Atomically add `by` to an integer field of the stored record.
        Returns the updated record, or None if the key is missing.
        """
        with self._lock:
            value = self._store.get(key)
            if value is None:
                return None
            updated = value.model_copy(update={field: getattr(value, field) + by})
            self._store[key] = updated
            return updated

    def update_if(
        self, key: K, expected: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> V | None:
        """
        Compare-and-set: apply `changes` only if every field in `expected`
        still holds its expected value. Returns the updated record, or None
        if the record is missing or has moved on.
        """
        with self._lock:
            value = self._store.get(key)
            if value is None:
                return None
            if any(getattr(value, f, None) != v for f, v in expected.items()):
                return None
            updated = value.model_copy(update=dict(changes))
            self._store[key] = updated
            return updated
