from collections.abc import Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Iterable, Optional, Tuple, Union

from txmap.impl.rw_lock import ReadWriteLock


class StoreHandle:
    """
    Write access to the backing mapping inside LockedStore.exclusive().

    The caller already holds the exclusive lock, so the calls go straight to
    the backing mapping. The handle is closed when the section ends.
    """

    def __init__(self, backing: MutableMapping):
        self._backing: Optional[MutableMapping] = backing

    def _target(self) -> MutableMapping:
        if self._backing is None:
            raise RuntimeError("StoreHandle used outside of its exclusive section")
        return self._backing

    def put(self, key, value):
        backing = self._target()
        old = backing.get(key)
        backing[key] = value
        return old

    def put_all(self, mapping: Mapping) -> None:
        self._target().update(mapping)

    def remove(self, key):
        return self._target().pop(key, None)

    def clear(self) -> None:
        self._target().clear()

    def close(self) -> None:
        self._backing = None


class LockedStore:
    """
    Backing mapping guarded by a reader-writer lock.

    Reads take the shared lock, writes the exclusive one. keys()/values()/items()
    return snapshots taken under the shared lock.
    """

    def __init__(self, backing: MutableMapping):
        self._backing = backing
        self.lock = ReadWriteLock()

    # =========================================================
    # Reads (shared lock)
    # =========================================================

    def get(self, key, default=None):
        with self.lock.read_locked():
            return self._backing.get(key, default)

    def contains_key(self, key) -> bool:
        with self.lock.read_locked():
            return key in self._backing

    def contains_value(self, value) -> bool:
        with self.lock.read_locked():
            return any(v == value for v in self._backing.values())

    def size(self) -> int:
        with self.lock.read_locked():
            return len(self._backing)

    def is_empty(self) -> bool:
        return self.size() == 0

    def keys(self) -> frozenset:
        with self.lock.read_locked():
            return frozenset(self._backing.keys())

    def values(self) -> Tuple[Any, ...]:
        with self.lock.read_locked():
            return tuple(self._backing.values())

    def items(self) -> Tuple[Tuple[Any, Any], ...]:
        with self.lock.read_locked():
            return tuple(self._backing.items())

    # =========================================================
    # Writes (exclusive lock)
    # =========================================================

    def put(self, key, value):
        with self.lock.write_locked():
            old = self._backing.get(key)
            self._backing[key] = value
            return old

    def put_all(self, mapping: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> None:
        with self.lock.write_locked():
            self._backing.update(mapping)

    def remove(self, key, default=None):
        with self.lock.write_locked():
            return self._backing.pop(key, default)

    def clear(self) -> None:
        with self.lock.write_locked():
            self._backing.clear()

    @contextmanager
    def exclusive(self):
        """
        Hold the exclusive lock for a batch of writes.

        Yields a StoreHandle that writes straight to the backing mapping.
        The lock is released, and the handle closed, on exit, including
        when the batch raises.
        """
        with self.lock.write_locked():
            handle = StoreHandle(self._backing)
            try:
                yield handle
            finally:
                handle.close()
